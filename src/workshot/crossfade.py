"""Crossfade GIF — animated before -> after transition.

Frame sequence: a held "before" frame, frame_count blended frames, then a
held "after" frame. Blending is plain per-channel linear interpolation on
RGBA buffers, so identical inputs and options always give identical
frames before encoding. Encoded bytes may still differ between encoder
versions.

Encoding uses imageio (pip install workshot[transition]). When it cannot
be imported, or anything else fails, generate_crossfade() logs and returns
None; callers carry on without a transition.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import numpy as np
from PIL import Image, ImageSequence

from .common import open_image

logger = logging.getLogger(__name__)


CHANNELS = 4                     # RGBA
MAX_COLORS = 256                 # palette bound per frame


@dataclass(frozen=True)
class CrossfadeOptions:
    frame_count: int = 20        # blended frames between the holds
    frame_delay: int = 80        # ms per blended frame
    hold_before: int = 1500      # ms on the before frame
    hold_after: int = 6000       # ms on the after frame
    output_width: int = 720      # px; height follows the before image


CROSSFADE_DEFAULTS = CrossfadeOptions()


@dataclass(frozen=True)
class TransitionResult:
    path: Path
    size_bytes: int
    frame_count: int             # frames actually encoded
    duration_ms: int             # sum of encoded frame delays
    width: int
    height: int


def _load_encoder():
    """Import the optional GIF encoder. Raises ImportError if absent."""
    import imageio.v3 as iio
    return iio


def _validate_options(opts: CrossfadeOptions) -> None:
    if opts.frame_count < 0:
        raise ValueError(f"frame_count must be >= 0, got {opts.frame_count}")
    for name in ("frame_delay", "hold_before", "hold_after"):
        if getattr(opts, name) < 0:
            raise ValueError(f"{name} must be >= 0, got {getattr(opts, name)}")
    if opts.output_width < 1:
        raise ValueError(f"output_width must be >= 1, got {opts.output_width}")


def frame_delays(opts: CrossfadeOptions) -> list[int]:
    """Per-frame delays in ms: hold, N transition frames, hold."""
    return [opts.hold_before] + [opts.frame_delay] * opts.frame_count + [opts.hold_after]


def load_frame_pair(
    before_path: str | Path, after_path: str | Path, output_width: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Decode both sources to equally sized RGBA uint8 arrays.

    Before keeps its aspect ratio at *output_width*; after is stretched to
    exactly the same size so the buffers line up pixel for pixel.
    """
    before = open_image(before_path, label="Before image").convert("RGBA")
    after = open_image(after_path, label="After image").convert("RGBA")

    height = max(1, round(before.height * output_width / before.width))
    before = before.resize((output_width, height), Image.LANCZOS)
    after = after.resize((output_width, height), Image.LANCZOS)
    return np.asarray(before, dtype=np.uint8), np.asarray(after, dtype=np.uint8)


def build_crossfade_frames(
    before: np.ndarray, after: np.ndarray, frame_count: int,
) -> np.ndarray:
    """Blend two (h, w, 4) buffers into the full frame sequence.

    Frame i of frame_count (1-based) uses alpha = i / (frame_count + 1)
    and round-half-up(before * (1 - alpha) + after * alpha) per channel.

    Returns:
        uint8 array of shape (frame_count + 2, h, w, 4).

    Raises:
        ValueError: The buffers differ in shape or are not RGBA.
    """
    if before.shape != after.shape:
        raise ValueError(
            f"Frame buffers differ in shape: {before.shape} vs {after.shape}"
        )
    if before.ndim != 3 or before.shape[2] != CHANNELS:
        raise ValueError(f"Expected (h, w, {CHANNELS}) buffers, got {before.shape}")

    h, w, _ = before.shape
    frames = np.empty((frame_count + 2, h, w, CHANNELS), dtype=np.uint8)
    frames[0] = before
    frames[-1] = after

    src = before.astype(np.float64)
    dst = after.astype(np.float64)
    for i in range(1, frame_count + 1):
        alpha = i / (frame_count + 1)
        frames[i] = np.floor(src * (1 - alpha) + dst * alpha + 0.5).astype(np.uint8)
    return frames


def quantize_frame(frame: np.ndarray) -> np.ndarray:
    """Reduce an RGBA frame to at most MAX_COLORS RGB colors, undithered."""
    rgb = Image.fromarray(np.ascontiguousarray(frame[:, :, :3]))
    paletted = rgb.quantize(
        colors=MAX_COLORS,
        method=Image.Quantize.MEDIANCUT,
        dither=Image.Dither.NONE,
    )
    return np.asarray(paletted.convert("RGB"), dtype=np.uint8)


def read_gif_timing(path: str | Path) -> tuple[int, int]:
    """(frame count, total delay in ms) as actually encoded in a GIF."""
    with Image.open(path) as gif:
        frames = 0
        total = 0
        for frame in ImageSequence.Iterator(gif):
            frames += 1
            total += int(frame.info.get("duration", 0))
    return frames, total


def generate_crossfade(
    before_path: str | Path,
    after_path: str | Path,
    output_path: str | Path,
    options: CrossfadeOptions | None = None,
    *,
    encoder_provider: Callable | None = None,
) -> TransitionResult | None:
    """Write a crossfade GIF from before to after.

    Args:
        before_path: Before source image.
        after_path: After source image.
        output_path: GIF destination.
        options: Timing and size; defaults to CROSSFADE_DEFAULTS.
        encoder_provider: Returns the imageio.v3 module; raises ImportError
            when unavailable. Defaults to importing imageio.

    Returns:
        TransitionResult with the encoded frame count and duration (the
        encoder merges identical consecutive frames), or None on any
        failure. Never raises.
    """
    provider = encoder_provider or _load_encoder
    try:
        iio = provider()
    except ImportError:
        logger.warning("imageio not available, skipping transition GIF")
        return None

    opts = options or CROSSFADE_DEFAULTS
    try:
        _validate_options(opts)
        before, after = load_frame_pair(before_path, after_path, opts.output_width)
        frames = build_crossfade_frames(before, after, opts.frame_count)
        height, width = frames.shape[1:3]

        rgb_frames = np.stack([quantize_frame(f) for f in frames])
        delays = frame_delays(opts)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        iio.imwrite(
            output_path, rgb_frames,
            plugin="pillow", extension=".gif", is_batch=True,
            duration=delays, loop=0,
        )

        size_bytes = output_path.stat().st_size
        frame_count, duration_ms = read_gif_timing(output_path)
    except Exception as err:
        logger.warning("Transition GIF generation failed: %s", err)
        return None

    return TransitionResult(
        path=output_path,
        size_bytes=size_bytes,
        frame_count=frame_count,
        duration_ms=duration_ms,
        width=width,
        height=height,
    )
