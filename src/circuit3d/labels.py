"""Rounded text-label textures for placeholder boxes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from xml.sax.saxutils import escape

from circuit3d.cache import LRUCache
from circuit3d.rasterize import Rasterizer
from circuit3d.scene import Texture

logger = logging.getLogger(__name__)

_XML_ENTITIES = {'"': "&quot;", "'": "&#39;"}


@dataclass(frozen=True)
class LabelStyle:
    font_size: float = 48.0
    font_family: str = "Arial, Helvetica, sans-serif"
    padding: Optional[float] = None
    background_color: str = "rgba(0,0,0,0.7)"
    text_color: str = "#ffffff"
    border_radius: Optional[float] = None
    min_width: Optional[float] = None
    min_height: Optional[float] = None
    pixel_width: int = 512

    def resolved(self) -> "LabelStyle":
        fs = self.font_size
        return LabelStyle(
            font_size=fs,
            font_family=self.font_family,
            padding=fs * 0.4 if self.padding is None else self.padding,
            background_color=self.background_color,
            text_color=self.text_color,
            border_radius=fs * 0.3 if self.border_radius is None else self.border_radius,
            min_width=fs * 2 if self.min_width is None else self.min_width,
            min_height=fs * 1.6 if self.min_height is None else self.min_height,
            pixel_width=self.pixel_width,
        )


def label_dimensions(text: str, style: LabelStyle) -> tuple:
    """SVG width and height; text width is estimated at 0.6 em per character."""

    style = style.resolved()
    estimated = max(len(text), 1) * style.font_size * 0.6
    width = max(estimated + style.padding * 2, style.min_width)
    height = max(style.font_size + style.padding * 2, style.min_height)
    return width, height


def label_svg(text: str, style: LabelStyle = LabelStyle()) -> str:
    style = style.resolved()
    width, height = label_dimensions(text, style)
    radius = style.border_radius
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width:g}" height="{height:g}" '
        f'viewBox="0 0 {width:g} {height:g}">'
        f'<rect x="0" y="0" width="{width:g}" height="{height:g}" rx="{radius:g}" ry="{radius:g}" '
        f'fill="{style.background_color}" />'
        f'<text x="50%" y="50%" fill="{style.text_color}" font-family="{style.font_family}" '
        f'font-size="{style.font_size:g}" font-weight="700" dominant-baseline="middle" '
        f'text-anchor="middle">{escape(text, _XML_ENTITIES)}</text>'
        f"</svg>"
    )


class LabelTextureFactory:
    """Rasterizes label SVGs, caching by text and every style parameter."""

    def __init__(self, rasterizer: Rasterizer, cache: Optional[LRUCache] = None):
        self.rasterizer = rasterizer
        self.cache = cache if cache is not None else LRUCache(name="labels")

    def texture(self, text: str, style: LabelStyle = LabelStyle()) -> Texture:
        style = style.resolved()
        key = (text, style)

        def render() -> Texture:
            width, height = label_dimensions(text, style)
            pixel_height = round(height / width * style.pixel_width)
            png = self.rasterizer(label_svg(text, style), style.pixel_width, pixel_height, "transparent")
            return Texture(png)

        return self.cache.get_or_compute(key, render)


__all__ = ["LabelStyle", "LabelTextureFactory", "label_svg", "label_dimensions"]
