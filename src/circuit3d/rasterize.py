"""SVG to PNG bridge.

Anything callable as ``rasterizer(svg, width, height, background)`` and
returning PNG bytes can be used; the converter takes one through its
context so tests and embedding applications can supply their own.  The
default renders with svglib + reportlab and resizes/encodes with Pillow.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from typing import Optional, Protocol

from PIL import Image
from reportlab.graphics import renderPM
from svglib.svglib import svg2rlg

from circuit3d.config import parse_color

logger = logging.getLogger(__name__)


class RasterizationError(RuntimeError):
    """SVG could not be turned into a PNG."""


class Rasterizer(Protocol):
    def __call__(self, svg: str, width: int, height: Optional[int] = None,
                 background: Optional[str] = None) -> bytes: ...


def _background_int(background: Optional[str]) -> int:
    if not background:
        return 0xFFFFFF
    r, g, b, a = parse_color(background)
    if a == 0:
        return 0xFFFFFF
    return (r << 16) | (g << 8) | b


class SvgRasterizer:
    """Rasterize with svglib/reportlab; the output width is exact, height
    follows the SVG aspect ratio unless given."""

    def __call__(self, svg: str, width: int, height: Optional[int] = None,
                 background: Optional[str] = None) -> bytes:
        if width <= 0:
            raise RasterizationError(f"width must be positive, got {width}")

        # svglib reads from a path
        with tempfile.NamedTemporaryFile(mode="w", suffix=".svg", encoding="utf-8", delete=False) as tmp:
            tmp.write(svg)
            tmp_path = tmp.name
        try:
            drawing = svg2rlg(tmp_path)
            if drawing is None or not drawing.width:
                raise RasterizationError("failed to parse SVG content")
            scale = width / float(drawing.width)
            drawing.scale(scale, scale)
            drawing.width *= scale
            drawing.height *= scale
            image = renderPM.drawToPIL(drawing, dpi=72, bg=_background_int(background))

            target = (width, height or max(1, round(image.height * width / max(image.width, 1))))
            if image.size != target:
                image = image.resize(target, Image.LANCZOS)
            out = io.BytesIO()
            image.save(out, format="PNG")
            return out.getvalue()
        except RasterizationError:
            raise
        except Exception as exc:
            raise RasterizationError(f"SVG rasterization failed: {exc}") from exc
        finally:
            os.unlink(tmp_path)


class CheckedRasterizer:
    """Wraps any rasterizer so that its failures surface as
    :class:`RasterizationError`, whatever the backend raised."""

    def __init__(self, rasterizer: Rasterizer):
        self.rasterizer = rasterizer

    def __call__(self, svg: str, width: int, height: Optional[int] = None,
                 background: Optional[str] = None) -> bytes:
        try:
            return self.rasterizer(svg, width, height, background)
        except RasterizationError:
            raise
        except Exception as exc:
            raise RasterizationError(f"{type(exc).__name__}: {exc}") from exc


def png_size(png: bytes) -> tuple:
    with Image.open(io.BytesIO(png)) as image:
        return image.size


__all__ = ["Rasterizer", "RasterizationError", "SvgRasterizer", "CheckedRasterizer", "png_size"]
