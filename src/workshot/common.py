"""workshot.common — shared utilities for the social output layer.

Contains: color parsing, font loading, image decoding, file hashing,
and atomic JSON writes.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path

from PIL import Image, ImageFont

from .errors import ImageDecodeError


# ── Font paths ─────────────────────────────────────────────────────
# DejaVu Sans Bold for labels, regular DejaVu as fallback.

FONT_PATHS = [
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    Path("/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/Library/Fonts/Arial Bold.ttf"),
]


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' string to (R, G, B) tuple."""
    hex_str = hex_str.lstrip("#")
    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


# ── Font loading ───────────────────────────────────────────────────

def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the first available bold sans font at the given size.

    Falls back to Pillow's built-in font, which ignores *size* on older
    Pillow releases. Label geometry is measured from the rendered text,
    so the fallback still lays out correctly.
    """
    for font_path in FONT_PATHS:
        if font_path.exists():
            try:
                return ImageFont.truetype(str(font_path), size=size)
            except OSError:
                continue
    return ImageFont.load_default()


# ── Image decoding ─────────────────────────────────────────────────

def open_image(path: str | Path, label: str = "Image") -> Image.Image:
    """Open and fully decode an image file.

    Decoding happens here rather than lazily so a truncated or corrupt
    file fails at a single, predictable point.

    Raises:
        ImageDecodeError: The file is missing, unreadable, or not an image.
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    # Pillow raises SyntaxError for structurally broken PNG chunks.
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as err:
        raise ImageDecodeError(f"{label} could not be decoded: {path} ({err})") from err


def image_size(path: str | Path) -> tuple[int, int]:
    """Read (width, height) from the header without decoding pixels."""
    with Image.open(path) as img:
        return img.size


# ── File utilities ─────────────────────────────────────────────────

def sha256_file(path: str | Path) -> str:
    """Hex SHA-256 of a file's bytes, read in 1 MiB chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


def write_json_atomic(path: str | Path, data: dict) -> None:
    """Write *data* as indented JSON, replacing *path* in one step.

    The temp file lives in the target directory so os.replace never
    crosses a filesystem boundary.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
