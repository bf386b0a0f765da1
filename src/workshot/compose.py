"""Platform-aware before/after composition.

Crops each source to fill its panel, labels the panels BEFORE/AFTER,
places them on a canvas of the platform's exact size, overlays the logo,
and encodes with explicit settings.

Crop source per panel:
  - crop advice present: cut the advised rectangle, then resize to the
    panel (a no-op in size when the advice was validated).
  - otherwise: cover-fit, centered. Aspect ratio is kept, overflow is
    cropped, and small sources are upscaled to meet the platform size.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageOps

from .common import open_image
from .labels import apply_label, apply_logo, prepare_logo
from .platforms import PlatformSpec, panel_size
from .smart_crop import CropAdvice, CropRegion

logger = logging.getLogger(__name__)


CANVAS_BACKGROUND = (255, 255, 255)

# Fixed encoder settings: never rely on library defaults.
JPEG_SAVE_OPTIONS = {"optimize": True, "progressive": False, "subsampling": 0}
PNG_SAVE_OPTIONS = {"compress_level": 9, "optimize": False}


@dataclass(frozen=True)
class CompositeResult:
    width: int
    height: int
    size_bytes: int


def cover_fit(img: Image.Image, width: int, height: int) -> Image.Image:
    """Scale and center-crop *img* to exactly width x height."""
    return ImageOps.fit(
        img.convert("RGB"), (width, height),
        method=Image.LANCZOS, centering=(0.5, 0.5),
    )


def crop_to_panel(
    img: Image.Image, region: CropRegion, width: int, height: int,
) -> Image.Image:
    """Cut *region* out of *img* and size it to the panel."""
    cropped = img.convert("RGB").crop(region.box)
    if cropped.size != (width, height):
        cropped = cropped.resize((width, height), Image.LANCZOS)
    return cropped


def panel_offsets(spec: PlatformSpec) -> tuple[tuple[int, int], tuple[int, int]]:
    """Top-left (x, y) of the before and after panels on the canvas."""
    panel_w, panel_h = panel_size(spec)
    if spec.layout == "side-by-side":
        return (0, 0), (panel_w, 0)
    return (0, 0), (0, panel_h)


def render_composite(
    before: Image.Image,
    after: Image.Image,
    spec: PlatformSpec,
    crop_advice: CropAdvice | None = None,
    logo: Image.Image | str | Path | None = None,
) -> Image.Image:
    """Build the composite image in memory (RGB, spec dimensions)."""
    panel_w, panel_h = panel_size(spec)

    if crop_advice is not None:
        before_panel = crop_to_panel(before, crop_advice.before, panel_w, panel_h)
        after_panel = crop_to_panel(after, crop_advice.after, panel_w, panel_h)
    else:
        before_panel = cover_fit(before, panel_w, panel_h)
        after_panel = cover_fit(after, panel_w, panel_h)

    before_panel = apply_label(before_panel, "BEFORE")
    after_panel = apply_label(after_panel, "AFTER")

    canvas = Image.new(
        "RGB", (spec.image.width, spec.image.height), CANVAS_BACKGROUND,
    )
    before_xy, after_xy = panel_offsets(spec)
    canvas.paste(before_panel, before_xy)
    canvas.paste(after_panel, after_xy)

    return apply_logo(canvas, prepare_logo(logo, spec.image.width))


def save_composite(
    img: Image.Image, output_path: str | Path, spec: PlatformSpec,
) -> None:
    """Encode with the platform's format and fixed encoder settings."""
    if spec.image.format == "jpeg":
        img.save(
            output_path, format="JPEG",
            quality=spec.image.quality, **JPEG_SAVE_OPTIONS,
        )
    else:
        img.save(output_path, format="PNG", **PNG_SAVE_OPTIONS)


def compose_social_image(
    before_path: str | Path,
    after_path: str | Path,
    output_path: str | Path,
    spec: PlatformSpec,
    crop_advice: CropAdvice | None = None,
    logo: Image.Image | str | Path | None = None,
) -> CompositeResult:
    """Compose and write one platform's before/after image.

    Args:
        before_path: Before source image.
        after_path: After source image.
        output_path: Where to write the encoded composite.
        spec: Target platform.
        crop_advice: Validated crop rectangles, or None for cover-fit.
        logo: Logo image or path; None uses the built-in mark.

    Returns:
        Dimensions and byte size of the written file.

    Raises:
        ImageDecodeError: A source image could not be decoded.
    """
    before = open_image(before_path, label="Before image")
    after = open_image(after_path, label="After image")

    composite = render_composite(before, after, spec, crop_advice, logo)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_composite(composite, output_path, spec)

    size_bytes = output_path.stat().st_size
    if size_bytes > spec.image.max_file_size_bytes:
        logger.warning(
            "%s: %s is %d bytes, over the %d byte platform limit",
            spec.name, output_path.name, size_bytes, spec.image.max_file_size_bytes,
        )

    with Image.open(output_path) as written:
        width, height = written.size
    return CompositeResult(width=width, height=height, size_bytes=size_bytes)
