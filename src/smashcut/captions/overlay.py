"""Caption text rasterization and alpha blending onto BGR frames."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw, ImageFilter, ImageFont

from smashcut.core.config import CaptionConfig

_FONT_CACHE: dict[tuple[str | None, int], ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}

_SIDE_MARGIN = 24
_LINE_SPACING = 6


def get_font(font_path: str | None, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load and cache a font. ``None`` uses Pillow's bundled default font."""
    key = (font_path, size)
    font = _FONT_CACHE.get(key)
    if font is None:
        font = ImageFont.truetype(font_path, size) if font_path else ImageFont.load_default(size)
        _FONT_CACHE[key] = font
    return font


def wrap_text(text: str, font, max_width: int) -> list[str]:
    """Greedy word wrap so no line is wider than ``max_width`` (a single long word may be)."""
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if current and font.getlength(candidate) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


@dataclass
class CaptionLayer:
    """A rasterized caption band: BGR color, coverage, and its row in the frame."""

    bgr: np.ndarray  # (band_height, width, 3) uint8
    alpha: np.ndarray  # (band_height, width, 1) uint8, 255 = opaque
    top: int

    @property
    def nbytes(self) -> int:
        return self.bgr.nbytes + self.alpha.nbytes


def render_caption_layer(
    text: str, width: int, frame_height: int, style: CaptionConfig
) -> CaptionLayer:
    """Rasterize ``text`` centered in a band above the bottom of the frame.

    White text over a blurred black drop shadow. The band's bottom edge sits
    ``style.bottom_margin`` pixels above the bottom of the frame.
    """
    band_height = style.band_height
    font = get_font(style.font_path, style.font_size)
    lines = wrap_text(text, font, max(1, width - 2 * _SIDE_MARGIN))

    left, top, right, bottom = font.getbbox("Ag")
    line_height = bottom - top + _LINE_SPACING
    y = (band_height - line_height * len(lines) + _LINE_SPACING) / 2 - top

    text_img = Image.new("RGBA", (width, band_height), (0, 0, 0, 0))
    shadow_img = Image.new("RGBA", (width, band_height), (0, 0, 0, 0))
    text_draw = ImageDraw.Draw(text_img)
    shadow_draw = ImageDraw.Draw(shadow_img)
    dx, dy = style.shadow_offset

    for line in lines:
        x = (width - font.getlength(line)) / 2
        shadow_draw.text((x + dx, y + dy), line, font=font, fill=(*style.shadow_color, 255))
        text_draw.text((x, y), line, font=font, fill=(*style.text_color, 255))
        y += line_height

    if style.shadow_radius > 0:
        shadow_img = shadow_img.filter(ImageFilter.GaussianBlur(style.shadow_radius))
    composed = np.asarray(Image.alpha_composite(shadow_img, text_img), dtype=np.uint8)

    return CaptionLayer(
        bgr=np.ascontiguousarray(composed[..., 2::-1]),
        alpha=np.ascontiguousarray(composed[..., 3:4]),
        top=frame_height - style.bottom_margin - band_height,
    )


def blend_layer(image: np.ndarray, layer: CaptionLayer, opacity: float) -> None:
    """Blend ``layer`` into ``image`` in place at the given overall opacity."""
    if opacity <= 0.0:
        return
    band_height = layer.alpha.shape[0]
    y0 = max(0, layer.top)
    y1 = min(image.shape[0], layer.top + band_height)
    if y1 <= y0:
        return

    ly0, ly1 = y0 - layer.top, y1 - layer.top
    alpha = layer.alpha[ly0:ly1].astype(np.float32) * min(1.0, opacity) / 255.0
    region = image[y0:y1].astype(np.float32)
    blended = region * (1.0 - alpha) + layer.bgr[ly0:ly1].astype(np.float32) * alpha
    image[y0:y1] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
