"""Copper pours and pads as thin solids on either face of the board.

Used when layers are rendered as geometry rather than baked into the
board textures.  Shapes are drafted in the same board-local frame as
the board outline, so the resulting mesh shares the board's center.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional

import trimesh

from circuit3d import solids
from circuit3d.board import polygons_to_triangles
from circuit3d.bulge import ring_to_points
from circuit3d.circuit import BRepPour, CirclePad, CopperPour, Pad, Point2, PolygonPour, RectPad, RectPour
from circuit3d.geometry_utils import BoundingBox, Color, Mesh, Triangle

COPPER_THICKNESS = 0.035


def _to_local(points, center: Point2) -> list:
    return [(x - center.x, -(y - center.y)) for x, y in points]


def _rect_profile(center: Point2, width: float, height: float, rotation: float, origin: Point2) -> list:
    profile = solids.rectangle(width, height)
    if rotation:
        profile = solids.rotate_points(profile, -rotation)
    (x, y), = _to_local([(center.x, center.y)], origin)
    return solids.translate_points(profile, x, y)


def pour_solid(pour: CopperPour, origin: Point2) -> Optional[trimesh.Trimesh]:
    if isinstance(pour, RectPour):
        profile = _rect_profile(pour.center, pour.width, pour.height, pour.rotation, origin)
        return solids.extrude_linear(profile, COPPER_THICKNESS)
    if isinstance(pour, PolygonPour):
        return solids.extrude_linear(_to_local([(p.x, p.y) for p in pour.points], origin), COPPER_THICKNESS)
    if isinstance(pour, BRepPour):
        outer = _to_local(ring_to_points(pour.outer_ring), origin)
        holes = [_to_local(ring_to_points(ring), origin) for ring in pour.inner_rings]
        return solids.extrude_linear(outer, COPPER_THICKNESS, holes)
    return None


def pad_solid(pad: Pad, origin: Point2) -> Optional[trimesh.Trimesh]:
    if isinstance(pad, RectPad):
        profile = _rect_profile(pad.center, pad.width, pad.height, pad.rotation, origin)
        return solids.extrude_linear(profile, COPPER_THICKNESS)
    if isinstance(pad, CirclePad):
        (x, y), = _to_local([(pad.center.x, pad.center.y)], origin)
        return solids.cylinder(x, y, pad.radius, COPPER_THICKNESS)
    return None


def create_copper_mesh(pours: Iterable[CopperPour], pads: Iterable[Pad], origin: Point2,
                       board_thickness: float, layer: str, color: Color) -> Optional[Mesh]:
    """Mesh of every copper feature on ``layer``, sitting on that face of the board.

    Returns ``None`` when the layer carries no copper.
    """

    parts: List[trimesh.Trimesh] = []
    parts.extend(s for s in (pour_solid(p, origin) for p in pours if p.layer == layer) if s is not None)
    parts.extend(s for s in (pad_solid(p, origin) for p in pads if p.layer == layer) if s is not None)
    if not parts:
        return None

    solid = trimesh.util.concatenate(parts)
    offset = board_thickness / 2.0 + COPPER_THICKNESS / 2.0
    solid.apply_translation([0.0, 0.0, offset if layer == "top" else -offset])
    solid = solids.rotate_x(solid, -math.pi / 2.0)

    triangles = [
        Triangle(tri.v0, tri.v1, tri.v2, tri.normal, color=color)
        for tri in polygons_to_triangles(solid.vertices[solid.faces].tolist())
    ]
    lo, hi = solid.bounds
    return Mesh(
        triangles=tuple(triangles),
        bounding_box=BoundingBox(tuple(float(v) for v in lo), tuple(float(v) for v in hi)),
    )


__all__ = ["COPPER_THICKNESS", "pour_solid", "pad_solid", "create_copper_mesh"]
