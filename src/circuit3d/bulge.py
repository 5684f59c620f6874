"""Bulge-arc tessellation for polyline rings.

A bulge is the CAD/DXF way of encoding an arc between two consecutive
polyline vertices: ``bulge = tan(theta / 4)`` where ``theta`` is the
included angle.  Zero is a straight edge, 1 is a semicircle, and the
sign selects the sweep direction (positive sweeps counter-clockwise).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

Point2D = Tuple[float, float]

SEGMENTS_PER_HALF_TURN = 32
MIN_ARC_SEGMENTS = 3
_BULGE_TOL = 1e-4
_CHORD_TOL = 1e-4


@dataclass(frozen=True)
class BulgeVertex:
    x: float
    y: float
    bulge: float = 0.0


def arc_points(start: BulgeVertex, end: BulgeVertex,
               segments_per_half_turn: int = SEGMENTS_PER_HALF_TURN) -> List[Point2D]:
    """Points approximating the arc leaving ``start``, excluding ``end``.

    The segment count scales with the swept angle, never below
    ``MIN_ARC_SEGMENTS``, so tight arcs stay smooth and shallow ones stay
    cheap.
    """

    bulge = start.bulge
    dx = end.x - start.x
    dy = end.y - start.y
    chord = math.hypot(dx, dy)
    if abs(bulge) < _BULGE_TOL or chord < _CHORD_TOL:
        return [(start.x, start.y)]

    included = 4.0 * math.atan(bulge)
    half_chord = chord / 2.0
    radius = abs(half_chord / math.sin(included / 2.0))
    sagitta = abs(bulge) * half_chord

    # center sits radius - sagitta from the chord midpoint, on the left
    # of travel for positive bulges and on the right for negative ones
    mid_x = (start.x + end.x) / 2.0
    mid_y = (start.y + end.y) / 2.0
    perp_x = -dy / chord
    perp_y = dx / chord
    offset = (radius - sagitta) * (1.0 if bulge > 0 else -1.0)
    cx = mid_x + perp_x * offset
    cy = mid_y + perp_y * offset

    start_angle = math.atan2(start.y - cy, start.x - cx)
    end_angle = math.atan2(end.y - cy, end.x - cx)
    sweep = end_angle - start_angle
    if bulge > 0:
        if sweep < 0:
            sweep += 2.0 * math.pi
    elif sweep > 0:
        sweep -= 2.0 * math.pi

    count = max(MIN_ARC_SEGMENTS, math.ceil(abs(sweep) * segments_per_half_turn / math.pi))
    points = []
    for j in range(count):
        angle = start_angle + sweep * (j / count)
        points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
    return points


def ring_to_points(vertices: Sequence[BulgeVertex],
                   segments_per_half_turn: int = SEGMENTS_PER_HALF_TURN) -> List[Point2D]:
    """Expand a closed ring of bulge vertices into a plain point loop."""

    points: List[Point2D] = []
    count = len(vertices)
    for i in range(count):
        points.extend(arc_points(vertices[i], vertices[(i + 1) % count], segments_per_half_turn))
    return points


__all__ = ["BulgeVertex", "arc_points", "ring_to_points", "MIN_ARC_SEGMENTS"]
