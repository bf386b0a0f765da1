"""Platform registry — maps platform names to immutable output specs.

Specs are declared in platforms.yaml next to this module, parsed and
validated once, then frozen. Adding a platform means adding a YAML entry;
nothing else in the package branches on platform names.

Registry schema:
  platforms:
    <name>:
      image:   {width, height, format, quality, max_file_size_bytes}
      caption: {max_length, hashtags}
      layout:  side-by-side | stacked
"""

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml

from .errors import UnknownPlatformError


REGISTRY_PATH = Path(__file__).with_name("platforms.yaml")

VALID_FORMATS = {"jpeg", "png"}

VALID_HASHTAG_POLICIES = {"none", "inline", "block"}

VALID_LAYOUTS = {"side-by-side", "stacked"}


# ── Spec types ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ImageSpec:
    width: int
    height: int
    format: str
    quality: int
    max_file_size_bytes: int


@dataclass(frozen=True)
class CaptionSpec:
    max_length: int
    hashtags: str


@dataclass(frozen=True)
class PlatformSpec:
    name: str
    image: ImageSpec
    caption: CaptionSpec
    layout: str

    @property
    def panel_size(self) -> tuple[int, int]:
        return panel_size(self)

    @property
    def extension(self) -> str:
        return "jpg" if self.image.format == "jpeg" else "png"


def panel_size(spec: PlatformSpec) -> tuple[int, int]:
    """Size of one panel: half the width side-by-side, half the height stacked."""
    if spec.layout == "side-by-side":
        return spec.image.width // 2, spec.image.height
    return spec.image.width, spec.image.height // 2


# ── Registry loading ──────────────────────────────────────────────


def load_platforms(registry_path: str | Path) -> Mapping[str, PlatformSpec]:
    """Load and validate a platform registry file.

    Args:
        registry_path: Path to a YAML registry.

    Returns:
        Read-only mapping of name -> PlatformSpec, in file order.

    Raises:
        ValueError: Missing or invalid fields.
        FileNotFoundError: Missing registry file.
    """
    with open(registry_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or not isinstance(raw.get("platforms"), dict):
        raise ValueError("Platform registry: missing required 'platforms' mapping")

    specs = {}
    for name, entry in raw["platforms"].items():
        specs[name] = _parse_platform(str(name), entry)
    return MappingProxyType(specs)


def _parse_platform(name: str, entry) -> PlatformSpec:
    prefix = f"Platform '{name}'"
    if not isinstance(entry, dict):
        raise ValueError(f"{prefix}: entry must be a mapping")

    for key in ("image", "caption", "layout"):
        if key not in entry:
            raise ValueError(f"{prefix}: missing required field '{key}'")

    image = entry["image"]
    for key in ("width", "height", "format", "quality", "max_file_size_bytes"):
        if key not in image:
            raise ValueError(f"{prefix}: image missing required field '{key}'")
    for key in ("width", "height", "max_file_size_bytes"):
        _require_positive_int(image[key], f"{prefix}: image.{key}")

    fmt = image["format"]
    if fmt not in VALID_FORMATS:
        raise ValueError(
            f"{prefix}: invalid image.format '{fmt}'. "
            f"Valid: {sorted(VALID_FORMATS)}"
        )

    quality = image["quality"]
    if not isinstance(quality, int) or isinstance(quality, bool) or not 1 <= quality <= 100:
        raise ValueError(
            f"{prefix}: image.quality must be an integer 1-100, got {quality!r}"
        )

    caption = entry["caption"]
    for key in ("max_length", "hashtags"):
        if key not in caption:
            raise ValueError(f"{prefix}: caption missing required field '{key}'")
    _require_positive_int(caption["max_length"], f"{prefix}: caption.max_length")

    hashtags = caption["hashtags"]
    if hashtags not in VALID_HASHTAG_POLICIES:
        raise ValueError(
            f"{prefix}: invalid caption.hashtags '{hashtags}'. "
            f"Valid: {sorted(VALID_HASHTAG_POLICIES)}"
        )

    layout = entry["layout"]
    if layout not in VALID_LAYOUTS:
        raise ValueError(
            f"{prefix}: invalid layout '{layout}'. Valid: {sorted(VALID_LAYOUTS)}"
        )

    return PlatformSpec(
        name=name,
        image=ImageSpec(
            width=image["width"],
            height=image["height"],
            format=fmt,
            quality=quality,
            max_file_size_bytes=image["max_file_size_bytes"],
        ),
        caption=CaptionSpec(max_length=caption["max_length"], hashtags=hashtags),
        layout=layout,
    )


def _require_positive_int(value, what: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{what} must be a positive integer, got {value!r}")


# ── Lookup ────────────────────────────────────────────────────────

_registry: Mapping[str, PlatformSpec] | None = None


def _platforms() -> Mapping[str, PlatformSpec]:
    global _registry
    if _registry is None:
        _registry = load_platforms(REGISTRY_PATH)
    return _registry


def get_platform(name: str) -> PlatformSpec:
    """Look up a registered platform.

    Raises:
        UnknownPlatformError: Name not registered. The message lists
            every available name.
    """
    registry = _platforms()
    if name not in registry:
        raise UnknownPlatformError(
            f"Unknown platform '{name}'. Available: {', '.join(registry)}"
        )
    return registry[name]


def available_platforms() -> list[str]:
    """Registered platform names, in registry order."""
    return list(_platforms())
