"""Top and bottom board-layer textures.

Each layer is drawn as an SVG in board units (millimetres, Y up in the
circuit so flipped for SVG) matching the board's aspect ratio, then
rasterized.  The bottom layer is mirrored horizontally so it reads
correctly when seen from below.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

from circuit3d.bulge import ring_to_points
from circuit3d.circuit import (
    BRepPour,
    CirclePad,
    Circuit,
    CircularHole,
    PillHole,
    PolygonPour,
    RectPad,
    RectPour,
    RotatedPillHole,
    number,
    parse_point,
)
from circuit3d.rasterize import Rasterizer
from circuit3d.scene import BoxTextures, Texture

logger = logging.getLogger(__name__)

TOP_BACKGROUND = "#008C00"
BOTTOM_BACKGROUND = "#006600"


@dataclass(frozen=True)
class LayerColors:
    soldermask: str = "#4CAF50"
    copper: str = "#ffe066"
    silkscreen: str = "#ffffff"
    drill: str = "rgba(0,0,0,0.5)"


def carrier_bounds(circuit: Circuit) -> Optional[Tuple[float, float, float, float]]:
    """``(min_x, min_y, max_x, max_y)`` of the panel, else the board."""

    panel = circuit.panel
    if panel is not None:
        return (panel.center.x - panel.width / 2, panel.center.y - panel.height / 2,
                panel.center.x + panel.width / 2, panel.center.y + panel.height / 2)
    board = circuit.board
    if board is None:
        return None
    if len(board.outline) >= 3:
        xs = [p.x for p in board.outline]
        ys = [p.y for p in board.outline]
        return min(xs), min(ys), max(xs), max(ys)
    return (board.center.x - board.width / 2, board.center.y - board.height / 2,
            board.center.x + board.width / 2, board.center.y + board.height / 2)


class _Canvas:
    def __init__(self, bounds, mirror: bool):
        self.min_x, self.min_y, self.max_x, self.max_y = bounds
        self.mirror = mirror
        self.parts: List[str] = []

    def pt(self, x: float, y: float) -> Tuple[float, float]:
        sx = self.max_x - x if self.mirror else x - self.min_x
        return sx, self.max_y - y

    def polygon(self, points, fill: str) -> None:
        coords = " ".join(f"{x:.4f},{y:.4f}" for x, y in (self.pt(px, py) for px, py in points))
        self.parts.append(f'<polygon points="{coords}" fill="{fill}" />')

    def path(self, rings, fill: str) -> None:
        d = []
        for ring in rings:
            pts = [self.pt(px, py) for px, py in ring]
            d.append("M " + " L ".join(f"{x:.4f} {y:.4f}" for x, y in pts) + " Z")
        self.parts.append(f'<path d="{" ".join(d)}" fill="{fill}" fill-rule="evenodd" />')

    def circle(self, x: float, y: float, r: float, fill: str) -> None:
        cx, cy = self.pt(x, y)
        self.parts.append(f'<circle cx="{cx:.4f}" cy="{cy:.4f}" r="{r:.4f}" fill="{fill}" />')

    def rect(self, x: float, y: float, w: float, h: float, rotation_deg: float, fill: str,
             rx: float = 0.0) -> None:
        cx, cy = self.pt(x, y)
        angle = -rotation_deg if not self.mirror else rotation_deg
        self.parts.append(
            f'<rect x="{cx - w / 2:.4f}" y="{cy - h / 2:.4f}" width="{w:.4f}" height="{h:.4f}" '
            f'rx="{rx:.4f}" fill="{fill}" transform="rotate({angle:.4f} {cx:.4f} {cy:.4f})" />'
        )

    def polyline(self, points, stroke: str, width: float) -> None:
        coords = " ".join(f"{x:.4f},{y:.4f}" for x, y in (self.pt(px, py) for px, py in points))
        self.parts.append(
            f'<polyline points="{coords}" fill="none" stroke="{stroke}" stroke-width="{width:.4f}" '
            f'stroke-linecap="round" stroke-linejoin="round" />'
        )

    def text(self, x: float, y: float, text: str, size: float, fill: str) -> None:
        cx, cy = self.pt(x, y)
        transform = f' transform="scale(-1 1) translate({-2 * cx:.4f} 0)"' if self.mirror else ""
        self.parts.append(
            f'<text x="{cx:.4f}" y="{cy:.4f}" font-size="{size:.4f}" fill="{fill}" '
            f'font-family="Arial, Helvetica, sans-serif" text-anchor="middle" '
            f'dominant-baseline="middle"{transform}>{escape(text)}</text>'
        )


def render_layer_svg(circuit: Circuit, layer: str, background: str,
                     colors: LayerColors = LayerColors()) -> Optional[str]:
    """SVG for one board face, or ``None`` when there is no board or panel."""

    bounds = carrier_bounds(circuit)
    if bounds is None:
        return None
    width = max(bounds[2] - bounds[0], 1e-6)
    height = max(bounds[3] - bounds[1], 1e-6)
    canvas = _Canvas(bounds, mirror=(layer == "bottom"))

    board = circuit.board
    if board is not None and len(board.outline) >= 3 and circuit.panel is None:
        canvas.polygon([(p.x, p.y) for p in board.outline], colors.soldermask)
    else:
        canvas.rect((bounds[0] + bounds[2]) / 2, (bounds[1] + bounds[3]) / 2, width, height, 0.0, colors.soldermask)

    for pour in circuit.copper_pours():
        if pour.layer != layer:
            continue
        if isinstance(pour, RectPour):
            canvas.rect(pour.center.x, pour.center.y, pour.width, pour.height,
                        math.degrees(pour.rotation), colors.copper)
        elif isinstance(pour, PolygonPour):
            canvas.polygon([(p.x, p.y) for p in pour.points], colors.copper)
        elif isinstance(pour, BRepPour):
            rings = [ring_to_points(pour.outer_ring)] + [ring_to_points(r) for r in pour.inner_rings]
            canvas.path(rings, colors.copper)

    for pad in circuit.smt_pads():
        if pad.layer != layer:
            continue
        if isinstance(pad, RectPad):
            canvas.rect(pad.center.x, pad.center.y, pad.width, pad.height,
                        math.degrees(pad.rotation), colors.copper)
        elif isinstance(pad, CirclePad):
            canvas.circle(pad.center.x, pad.center.y, pad.radius, colors.copper)

    # plated holes show copper on both faces
    for record in circuit.plated_holes():
        center = parse_point(record)
        if center is None:
            continue
        outer = number(record, "outer_diameter")
        pad_w, pad_h = number(record, "rect_pad_width"), number(record, "rect_pad_height")
        if pad_w and pad_h:
            canvas.rect(center.x, center.y, pad_w, pad_h, 0.0, colors.copper)
        elif outer:
            canvas.circle(center.x, center.y, outer / 2, colors.copper)
        elif number(record, "outer_width") and number(record, "outer_height"):
            w, h = number(record, "outer_width"), number(record, "outer_height")
            canvas.rect(center.x, center.y, w, h, 0.0, colors.copper, rx=min(w, h) / 2)

    for hole in circuit.holes():
        if isinstance(hole, CircularHole):
            canvas.circle(hole.x, hole.y, hole.diameter / 2, colors.drill)
        elif isinstance(hole, (PillHole, RotatedPillHole)):
            rotation = hole.ccw_rotation if isinstance(hole, RotatedPillHole) else 0.0
            canvas.rect(hole.x, hole.y, hole.width, hole.height, rotation, colors.drill,
                        rx=min(hole.width, hole.height) / 2)

    for path in circuit.silkscreen_paths():
        if path.layer == layer:
            canvas.polyline([(p.x, p.y) for p in path.points], colors.silkscreen, path.stroke_width)
    for text in circuit.silkscreen_texts():
        if text.layer == layer:
            canvas.text(text.anchor.x, text.anchor.y, text.text, text.font_size, colors.silkscreen)

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width:.4f}" height="{height:.4f}" '
        f'viewBox="0 0 {width:.4f} {height:.4f}">'
        f'<rect x="0" y="0" width="{width:.4f}" height="{height:.4f}" fill="{background}" />'
        + "".join(canvas.parts)
        + "</svg>"
    )


def render_board_textures(circuit: Circuit, resolution: int, rasterizer: Rasterizer,
                          colors: LayerColors = LayerColors()) -> BoxTextures:
    """Rasterize both faces concurrently; either failure propagates."""

    jobs = (("top", TOP_BACKGROUND), ("bottom", BOTTOM_BACKGROUND))
    svgs = [render_layer_svg(circuit, layer, bg, colors) for layer, bg in jobs]
    if any(svg is None for svg in svgs):
        raise ValueError("circuit has no board or panel to texture")

    logger.debug("rasterizing board layers at %dpx", resolution)
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="circuit3d-texture") as pool:
        futures = [pool.submit(rasterizer, svg, resolution, None, bg) for svg, (_, bg) in zip(svgs, jobs)]
        top, bottom = (future.result() for future in futures)
    return BoxTextures(top=Texture(top), bottom=Texture(bottom))


__all__ = ["LayerColors", "carrier_bounds", "render_layer_svg", "render_board_textures",
           "TOP_BACKGROUND", "BOTTOM_BACKGROUND"]
