"""Smart crop — Gemini vision picks crop rectangles for before/after panels.

Asks the model for one panel-sized rectangle per source image, positioned
so a shared anchor (a tree's trunk base, or a fixed landmark when no tree
is visible) sits at the same relative spot in both crops.

The model's answer is untrusted. parse_and_validate() checks it against
the source and panel geometry and throws the whole answer away on any
violation; it never repairs, clamps, or rescales a rectangle.

get_smart_crop() returns None, and the compositor center-crops instead,
when:
  - no Gemini API key is configured
  - google-genai is not installed (pip install workshot[smartcrop])
  - either source is smaller than the panel
  - the call fails, times out, or returns invalid geometry
"""

import io
import json
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from PIL import Image

from .common import image_size
from .config import load_config

logger = logging.getLogger(__name__)


MAX_ANALYSIS_EDGE = 1600         # longest edge of images sent to the model
ANALYSIS_JPEG_QUALITY = 80
GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_TIMEOUT_S = 30.0

_RECT_FIELDS = ("left", "top", "width", "height")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


# ── Result types ─────────────────────────────────────────────────


@dataclass(frozen=True)
class CropRegion:
    left: int
    top: int
    width: int
    height: int

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Pillow crop box (left, top, right, bottom)."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class AnchorPoint:
    x: int
    y: int


@dataclass(frozen=True)
class CropAdvice:
    before: CropRegion
    after: CropRegion
    before_anchor: AnchorPoint | None = None
    after_anchor: AnchorPoint | None = None
    reasoning: str = ""


# ── Validation ───────────────────────────────────────────────────


def _is_non_negative_int(value) -> bool:
    # bool is an int subclass; JSON true/false must not pass as 0/1.
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_region(
    raw, source_w: int, source_h: int, panel_w: int, panel_h: int,
) -> CropRegion | None:
    if not isinstance(raw, dict):
        return None
    if not all(_is_non_negative_int(raw.get(key)) for key in _RECT_FIELDS):
        return None

    region = CropRegion(**{key: raw[key] for key in _RECT_FIELDS})

    if region.width != panel_w or region.height != panel_h:
        return None
    if region.left + region.width > source_w or region.top + region.height > source_h:
        return None
    return region


def _parse_anchor(
    raw, region: CropRegion, source_w: int, source_h: int,
) -> AnchorPoint | None:
    if not isinstance(raw, dict):
        return None
    x, y = raw.get("x"), raw.get("y")
    if not (_is_non_negative_int(x) and _is_non_negative_int(y)):
        return None
    if x >= source_w or y >= source_h:
        return None
    # Half-open: the rectangle's right and bottom edges are outside it.
    if not (region.left <= x < region.left + region.width):
        return None
    if not (region.top <= y < region.top + region.height):
        return None
    return AnchorPoint(x=x, y=y)


def parse_and_validate(
    text: str,
    before_w: int,
    before_h: int,
    after_w: int,
    after_h: int,
    panel_w: int,
    panel_h: int,
) -> CropAdvice | None:
    """Parse a model response into CropAdvice, or None if anything is off.

    Pure function of the response text and the geometry; safe to call
    with arbitrary input.

    Checks, in order:
      1. A JSON object can be extracted (prose and code fences tolerated).
      2. 'before' and 'after' are objects with non-negative integer
         left/top/width/height.
      3. Both rectangles are exactly panel_w x panel_h.
      4. Both rectangles lie inside their source image.
      5. 'before_anchor' / 'after_anchor', when present, are non-negative
         integer points inside the source and inside their rectangle.
         A present but invalid anchor rejects the whole response.
    """
    if not isinstance(text, str):
        return None
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict):
        return None

    before = _parse_region(parsed.get("before"), before_w, before_h, panel_w, panel_h)
    after = _parse_region(parsed.get("after"), after_w, after_h, panel_w, panel_h)
    if before is None or after is None:
        return None

    anchors = {}
    for key, region, sw, sh in (
        ("before_anchor", before, before_w, before_h),
        ("after_anchor", after, after_w, after_h),
    ):
        if key not in parsed:
            anchors[key] = None
            continue
        anchor = _parse_anchor(parsed[key], region, sw, sh)
        if anchor is None:
            return None
        anchors[key] = anchor

    reasoning = parsed.get("reasoning")
    return CropAdvice(
        before=before,
        after=after,
        before_anchor=anchors["before_anchor"],
        after_anchor=anchors["after_anchor"],
        reasoning=reasoning if isinstance(reasoning, str) else "",
    )


# ── Prompt ───────────────────────────────────────────────────────


def build_prompt(
    before_w: int, before_h: int, after_w: int, after_h: int,
    panel_w: int, panel_h: int,
) -> str:
    """Build the crop-analysis prompt.

    Layout: what we have (exact sizes), what stays fixed (panel size),
    numbered rules, the anchor, boundary math, then the exact JSON shape.
    """
    return f"""I have two photos of the same tree service job: a "before" photo (image 1, {before_w}x{before_h} pixels) and an "after" photo (image 2, {after_w}x{after_h} pixels).

I need to crop EACH image to exactly {panel_w}x{panel_h} pixels for a before/after social media composite.

First find the anchor in each image: the base of the main tree's trunk where it meets the ground. If the tree was removed or no trunk is visible, use the nearest fixed landmark instead (a house corner, fence post, or driveway edge) and use the same landmark in both images.

Rules:
1. Each crop must be EXACTLY {panel_w}x{panel_h} pixels
2. Position both crops so the anchor sits at the same relative position inside each crop
3. The main subject (tree, stump, or work area) must stay fully visible in both crops
4. Fixed landmarks should appear in similar positions in both crops when possible
5. Each crop rectangle must stay within its source image boundaries
6. Each anchor must lie inside its own crop rectangle

Before image (image 1) dimensions: {before_w}x{before_h}
After image (image 2) dimensions: {after_w}x{after_h}
Target crop size: {panel_w}x{panel_h}

Boundary constraints:
- Before crop: left >= 0, top >= 0, left + {panel_w} <= {before_w}, top + {panel_h} <= {before_h}
- After crop: left >= 0, top >= 0, left + {panel_w} <= {after_w}, top + {panel_h} <= {after_h}
- Before anchor: 0 <= x < {before_w}, 0 <= y < {before_h}
- After anchor: 0 <= x < {after_w}, 0 <= y < {after_h}

Return ONLY valid JSON in this exact format, no other text:
{{
  "before_anchor": {{ "x": 0, "y": 0 }},
  "after_anchor": {{ "x": 0, "y": 0 }},
  "before": {{ "left": 0, "top": 0, "width": {panel_w}, "height": {panel_h} }},
  "after": {{ "left": 0, "top": 0, "width": {panel_w}, "height": {panel_h} }},
  "reasoning": "brief explanation of the anchor and crop choice"
}}

All values must be non-negative integers in source-image pixels. Width must be exactly {panel_w} and height must be exactly {panel_h} for both crops."""


# ── Gemini call ──────────────────────────────────────────────────


def _load_genai():
    """Import the optional Gemini client. Raises ImportError if absent."""
    from google import genai
    from google.genai import types
    return genai, types


def downscale_for_analysis(image_path: str | Path) -> bytes:
    """JPEG bytes of the image, longest edge capped at MAX_ANALYSIS_EDGE."""
    with Image.open(image_path) as img:
        img = img.convert("RGB")
        img.thumbnail((MAX_ANALYSIS_EDGE, MAX_ANALYSIS_EDGE), Image.LANCZOS)
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=ANALYSIS_JPEG_QUALITY)
    return buf.getvalue()


def _call_with_timeout(fn: Callable, timeout: float, **kwargs):
    """Run *fn* on a worker thread and wait at most *timeout* seconds.

    On timeout the call is abandoned, not cancelled; its eventual result
    is dropped. The client carries its own HTTP timeout, so an abandoned
    call still ends.

    Raises:
        TimeoutError: The call did not finish in time.
    """
    outcome = {}

    def run():
        try:
            outcome["value"] = fn(**kwargs)
        except Exception as err:
            outcome["error"] = err

    # Daemon, so a hung call cannot hold the process open at exit.
    worker = threading.Thread(target=run, name="gemini-call", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise TimeoutError(f"Timed out after {timeout:.0f}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def get_smart_crop(
    before_path: str | Path,
    after_path: str | Path,
    panel_width: int,
    panel_height: int,
    *,
    api_key: str | None = None,
    genai_provider: Callable | None = None,
    model: str | None = None,
    timeout: float = GEMINI_TIMEOUT_S,
) -> CropAdvice | None:
    """Ask Gemini for panel crops of both images.

    Args:
        before_path: Before source image.
        after_path: After source image.
        panel_width: Exact crop width required.
        panel_height: Exact crop height required.
        api_key: Gemini key. Defaults to GEMINI_API_KEY from config.
        genai_provider: Returns (genai, types) modules; raises ImportError
            when unavailable. Defaults to importing google-genai.
        model: Model name. Defaults to config, then GEMINI_MODEL.
        timeout: Seconds to wait for the model.

    Returns:
        Validated CropAdvice, or None when crop advice is unavailable.
        Never raises.
    """
    config = None
    if api_key is None or model is None:
        config = load_config()
    if api_key is None:
        api_key = config.gemini_api_key
    if not api_key:
        logger.info("Smart crop disabled: no Gemini API key configured")
        return None

    provider = genai_provider or _load_genai
    try:
        genai, types = provider()
    except ImportError:
        logger.warning("google-genai not available, using center-crop fallback")
        return None

    try:
        bw, bh = image_size(before_path)
        aw, ah = image_size(after_path)

        if bw < panel_width or bh < panel_height or aw < panel_width or ah < panel_height:
            logger.warning("Image(s) smaller than panel, using center-crop fallback")
            return None

        before_jpeg = downscale_for_analysis(before_path)
        after_jpeg = downscale_for_analysis(after_path)
        prompt = build_prompt(bw, bh, aw, ah, panel_width, panel_height)

        client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )
        response = _call_with_timeout(
            client.models.generate_content,
            timeout,
            model=model or (config.gemini_model if config else None) or GEMINI_MODEL,
            contents=[
                types.Part.from_bytes(data=before_jpeg, mime_type="image/jpeg"),
                types.Part.from_bytes(data=after_jpeg, mime_type="image/jpeg"),
                types.Part.from_text(text=prompt),
            ],
        )
        text = getattr(response, "text", None) or ""
        result = parse_and_validate(text, bw, bh, aw, ah, panel_width, panel_height)
    except Exception as err:
        logger.warning("Smart crop failed: %s, using center-crop fallback", err)
        return None

    if result is None:
        logger.warning("Invalid Gemini crop response, using center-crop fallback")
        return None

    logger.info(
        "Gemini crop: before(%d,%d) after(%d,%d): %s",
        result.before.left, result.before.top,
        result.after.left, result.after.top,
        result.reasoning,
    )
    return result
