"""Label and logo overlays for social composites.

Labels are "BEFORE"/"AFTER" pills: bold white text on a rounded,
semi-transparent black box, placed at a fixed margin from the top-left
corner of each panel.

The logo is a small mark anchored bottom-left of the whole canvas. Its
alpha channel is scaled by LOGO_OPACITY before compositing, so an opaque
logo ends up translucent and an already-soft edge stays proportionally
soft.

These constants are the social layer's own styling; the base composite
pipeline draws its labels separately.
"""

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from .common import load_font, open_image, parse_hex_color


# ── Label constants ──────────────────────────────────────────────

LABEL_FONT_SIZE = 36
LABEL_PADDING_X = 20
LABEL_PADDING_Y = 12
LABEL_MARGIN = 20
LABEL_BG_ALPHA = 140             # ~55% opacity (0.55 * 255)
LABEL_TEXT_COLOR = (255, 255, 255)
LABEL_BORDER_RADIUS = 8

# ── Logo constants ───────────────────────────────────────────────

LOGO_WIDTH_FRACTION = 0.10       # logo width as fraction of canvas width
LOGO_OPACITY = 0.4
LOGO_MARGIN = 16

DEFAULT_LOGO_TEXT = "WORKSHOT"
DEFAULT_LOGO_COLOR = parse_hex_color("#1A5E20")


# ── Labels ───────────────────────────────────────────────────────


def render_label_patch(text: str) -> Image.Image:
    """Render one label pill as an RGBA image sized to its text."""
    font = load_font(LABEL_FONT_SIZE)

    draw_tmp = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    bbox = draw_tmp.textbbox((0, 0), text, font=font)
    text_w = bbox[2] - bbox[0]
    text_h = bbox[3] - bbox[1]

    patch_w = text_w + 2 * LABEL_PADDING_X
    patch_h = text_h + 2 * LABEL_PADDING_Y

    img = Image.new("RGBA", (patch_w, patch_h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle(
        [(0, 0), (patch_w - 1, patch_h - 1)],
        radius=LABEL_BORDER_RADIUS,
        fill=(0, 0, 0, LABEL_BG_ALPHA),
    )
    # Offset by the bbox origin so glyph ink, not the baseline, is padded.
    draw.text(
        (LABEL_PADDING_X - bbox[0], LABEL_PADDING_Y - bbox[1]),
        text,
        fill=(*LABEL_TEXT_COLOR, 255),
        font=font,
    )
    return img


def apply_label(panel: Image.Image, text: str) -> Image.Image:
    """Return a copy of *panel* with a label pill at the top-left margin.

    The pill is clipped to the panel if the panel is smaller than it.
    """
    result = panel.convert("RGB")
    patch = render_label_patch(text)
    result.paste(patch, (LABEL_MARGIN, LABEL_MARGIN), patch)
    return result


# ── Logo ─────────────────────────────────────────────────────────


def render_default_logo() -> Image.Image:
    """Built-in wordmark used when no logo file is configured."""
    font = load_font(48)
    draw_tmp = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    bbox = draw_tmp.textbbox((0, 0), DEFAULT_LOGO_TEXT, font=font)
    text_w = bbox[2] - bbox[0]
    text_h = bbox[3] - bbox[1]
    pad = 16

    img = Image.new("RGBA", (text_w + 2 * pad, text_h + 2 * pad), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle(
        [(0, 0), (img.width - 1, img.height - 1)],
        radius=pad,
        fill=(*DEFAULT_LOGO_COLOR, 255),
    )
    draw.text(
        (pad - bbox[0], pad - bbox[1]),
        DEFAULT_LOGO_TEXT,
        fill=(255, 255, 255, 255),
        font=font,
    )
    return img


def prepare_logo(
    logo: Image.Image | str | Path | None, canvas_width: int,
) -> Image.Image:
    """Resize the logo for a canvas and scale its alpha by LOGO_OPACITY.

    Args:
        logo: An image, a path to one, or None for the built-in wordmark.
        canvas_width: Width of the final composite.

    Returns:
        RGBA image, LOGO_WIDTH_FRACTION of the canvas wide.
    """
    if logo is None:
        src = render_default_logo()
    elif isinstance(logo, Image.Image):
        src = logo
    else:
        src = open_image(logo, label="Logo")
    src = src.convert("RGBA")

    target_w = max(1, round(canvas_width * LOGO_WIDTH_FRACTION))
    target_h = max(1, round(src.height * target_w / src.width))
    resized = src.resize((target_w, target_h), Image.LANCZOS)

    pixels = np.array(resized)
    alpha = pixels[:, :, 3].astype(np.float64) * LOGO_OPACITY
    pixels[:, :, 3] = np.floor(alpha + 0.5).astype(np.uint8)
    return Image.fromarray(pixels)


def apply_logo(canvas: Image.Image, logo: Image.Image) -> Image.Image:
    """Composite a prepared RGBA logo at the bottom-left of *canvas*."""
    result = canvas.copy()
    x = LOGO_MARGIN
    y = canvas.height - logo.height - LOGO_MARGIN
    result.paste(logo, (x, y), logo)
    return result
