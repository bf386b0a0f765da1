"""Social output generation — one composite, caption and manifest per platform.

Reads the base pipeline's manifest to find the source images, then for
each requested platform writes into <job>/output/social/<platform>/:

  image.jpg|png     composite at the platform's exact size
  caption.txt       platform caption
  transition.gif    crossfade (only when enabled and generated)
  manifest.json     written last, only after everything above succeeded

Platforms run one at a time in the order given. A decode or I/O failure
in one platform is logged and skips that platform only.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .captions import generate_social_caption
from .common import sha256_file, write_json_atomic
from .compose import compose_social_image
from .config import SocialConfig, load_config
from .crossfade import TransitionResult, generate_crossfade
from .errors import ImageDecodeError, UpstreamMissingError
from .paths import (
    assert_contained_in,
    assert_resolved_contained_in,
    assert_safe_filename,
)
from .platforms import PlatformSpec, get_platform, panel_size
from .upstream import JobMeta, load_job_meta, load_upstream_manifest

logger = logging.getLogger(__name__)


SCHEMA_VERSION = "1.0"
OUTPUT_DIRNAME = "output"
SOCIAL_DIRNAME = "social"
UPSTREAM_MANIFEST_NAME = "manifest.json"
MANIFEST_NAME = "manifest.json"
CAPTION_NAME = "caption.txt"
TRANSITION_NAME = "transition.gif"


@dataclass(frozen=True)
class SocialOutput:
    platform: str
    image_path: Path
    caption_path: Path
    manifest_path: Path
    image_width: int
    image_height: int
    image_size_bytes: int
    caption_length: int
    transition: TransitionResult | None = None


def _relative_ref(target: Path, start: Path) -> str:
    return Path(os.path.relpath(target, start)).as_posix()


def build_social_manifest(
    spec: PlatformSpec,
    platform_dir: Path,
    upstream_manifest_path: Path,
    image_path: Path,
    image_width: int,
    image_height: int,
    image_size_bytes: int,
    caption_path: Path,
    caption: str,
    transition: TransitionResult | None = None,
    generated_at: str | None = None,
) -> dict:
    """Assemble the per-platform manifest dict (camelCase JSON schema)."""
    manifest = {
        "schemaVersion": SCHEMA_VERSION,
        "platform": spec.name,
        "generatedAt": generated_at or datetime.now(timezone.utc).isoformat(
            timespec="milliseconds"
        ).replace("+00:00", "Z"),
        "upstreamManifestRef": _relative_ref(upstream_manifest_path, platform_dir),
        "image": {
            "path": _relative_ref(image_path, platform_dir),
            "width": image_width,
            "height": image_height,
            "sizeBytes": image_size_bytes,
            "format": spec.image.format,
            "sha256": sha256_file(image_path),
        },
        "caption": {
            "path": _relative_ref(caption_path, platform_dir),
            "charCount": len(caption),
        },
    }
    if transition is not None:
        manifest["transition"] = {
            "path": _relative_ref(transition.path, platform_dir),
            "sizeBytes": transition.size_bytes,
            "frameCount": transition.frame_count,
            "durationMs": transition.duration_ms,
            "width": transition.width,
            "height": transition.height,
            "sha256": sha256_file(transition.path),
        }
    return manifest


def _render_platform(
    spec: PlatformSpec,
    platform_dir: Path,
    before_path: Path,
    after_path: Path,
    upstream_manifest_path: Path,
    meta: JobMeta,
    config: SocialConfig,
    crop_advisor: Callable,
    transition_generator: Callable,
) -> SocialOutput:
    """Write every artifact for one platform, manifest last."""
    manifest_path = platform_dir / MANIFEST_NAME
    # A stale manifest must not outlive a failed re-run.
    manifest_path.unlink(missing_ok=True)

    panel_w, panel_h = panel_size(spec)
    crop_advice = crop_advisor(before_path, after_path, panel_w, panel_h)

    image_path = platform_dir / f"image.{spec.extension}"
    assert_resolved_contained_in(image_path, platform_dir, "Image output path")
    image_result = compose_social_image(
        before_path, after_path, image_path, spec,
        crop_advice=crop_advice, logo=config.logo_path,
    )

    caption = generate_social_caption(meta, spec)
    caption_path = platform_dir / CAPTION_NAME
    caption_path.write_text(caption, encoding="utf-8")

    transition = None
    if config.transition_enabled:
        transition = transition_generator(
            before_path, after_path, platform_dir / TRANSITION_NAME,
        )

    manifest = build_social_manifest(
        spec=spec,
        platform_dir=platform_dir,
        upstream_manifest_path=upstream_manifest_path,
        image_path=image_path,
        image_width=image_result.width,
        image_height=image_result.height,
        image_size_bytes=image_result.size_bytes,
        caption_path=caption_path,
        caption=caption,
        transition=transition,
    )
    write_json_atomic(manifest_path, manifest)

    return SocialOutput(
        platform=spec.name,
        image_path=image_path,
        caption_path=caption_path,
        manifest_path=manifest_path,
        image_width=image_result.width,
        image_height=image_result.height,
        image_size_bytes=image_result.size_bytes,
        caption_length=len(caption),
        transition=transition,
    )


def run_social(
    job_dir: str | Path,
    platforms: list[str],
    *,
    config: SocialConfig | None = None,
    crop_advisor: Callable | None = None,
    transition_generator: Callable | None = None,
) -> list[SocialOutput]:
    """Generate social outputs for a job the base pipeline has finished.

    Args:
        job_dir: Job folder containing output/manifest.json.
        platforms: Registered platform names, processed in this order.
        config: Defaults to load_config() from the environment.
        crop_advisor: (before, after, panel_w, panel_h) -> CropAdvice | None.
            Defaults to Gemini smart crop with the config's API key.
        transition_generator: (before, after, output) -> TransitionResult |
            None. Defaults to generate_crossfade.

    Returns:
        One SocialOutput per platform that succeeded, in request order.

    Raises:
        UnknownPlatformError: A platform name is not registered.
        UpstreamMissingError: output/manifest.json does not exist.
        ValueError: The upstream manifest is malformed.
        PathEscapeError: A source path escapes the job directory.
        FileNotFoundError: A source image listed in the manifest is missing.
    """
    # Resolve every name first so a typo fails before anything is written.
    specs = [get_platform(name) for name in platforms]

    if config is None:
        config = load_config()
    if crop_advisor is None:
        from .smart_crop import get_smart_crop

        def crop_advisor(before, after, panel_w, panel_h):
            return get_smart_crop(
                before, after, panel_w, panel_h,
                api_key=config.gemini_api_key or "",
                model=config.gemini_model,
            )
    if transition_generator is None:
        transition_generator = generate_crossfade

    job_dir = Path(os.path.abspath(job_dir))
    output_dir = job_dir / OUTPUT_DIRNAME
    upstream_path = output_dir / UPSTREAM_MANIFEST_NAME

    if not upstream_path.exists():
        raise UpstreamMissingError(
            f"Upstream manifest not found at {upstream_path}. "
            "Run the base pipeline first."
        )

    upstream = load_upstream_manifest(upstream_path)
    pair = upstream.media_pairs[0]

    # Pair paths are relative to output/ but may point anywhere in the job.
    before_path = assert_contained_in(output_dir / pair.before, job_dir, "Before image path")
    after_path = assert_contained_in(output_dir / pair.after, job_dir, "After image path")
    if not before_path.exists():
        raise FileNotFoundError(f"Before image not found: {before_path}")
    if not after_path.exists():
        raise FileNotFoundError(f"After image not found: {after_path}")

    meta = load_job_meta(job_dir, fallback_service=upstream.job_id)

    social_dir = assert_contained_in(SOCIAL_DIRNAME, output_dir, "Social output directory")
    social_dir.mkdir(parents=True, exist_ok=True)

    results = []
    for spec in specs:
        assert_safe_filename(spec.name, "Platform name")
        platform_dir = assert_contained_in(
            spec.name, social_dir, f"Platform directory ({spec.name})",
        )
        platform_dir.mkdir(parents=True, exist_ok=True)

        try:
            output = _render_platform(
                spec, platform_dir, before_path, after_path, upstream_path,
                meta, config, crop_advisor, transition_generator,
            )
        except (ImageDecodeError, OSError) as err:
            logger.error("%s: social output failed: %s", spec.name, err)
            continue

        logger.info("%s: wrote %s", spec.name, output.manifest_path)
        results.append(output)

    return results
