"""Procedural board and panel solids.

The outline is drafted in the XY plane in board-local coordinates (the
board center at the origin, circuit Y negated), extruded through the
board thickness, pierced by every hole and cutout in a single boolean
difference and finally rotated -90 degrees about X so the board lies in
the scene's XZ plane with its thickness along Y.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

import trimesh

from circuit3d import boolean, solids
from circuit3d.bulge import ring_to_points
from circuit3d.circuit import (
    Board,
    CircleCutout,
    CircularHole,
    Cutout,
    Hole,
    Panel,
    PillHole,
    Point2,
    PolygonCutout,
    RectCutout,
    RotatedPillHole,
)
from circuit3d.geometry_utils import BoundingBox, Mesh, Triangle, Vec3, triangle_area
from circuit3d.triangulator import ensure_ccw

DEFAULT_SEGMENTS = solids.DEFAULT_SEGMENTS
RADIUS_EPSILON = 1e-4
TOOL_CLEARANCE = 1.0


def _local(x: float, y: float, center: Point2) -> tuple:
    return x - center.x, -(y - center.y)


def board_outline(board: Board) -> List[tuple]:
    """Counter-clockwise board-local outline of ``board``."""

    if len(board.outline) >= 3:
        return ensure_ccw([_local(p.x, p.y, board.center) for p in board.outline])
    return solids.rectangle(board.width, board.height)


def _pill_profile(width: float, height: float) -> List[tuple]:
    max_radius = max(0.0, min(width, height) / 2.0 - RADIUS_EPSILON)
    radius = 0.0 if max_radius <= 0 else min(height / 2.0, max_radius)
    return solids.rounded_rectangle(width, height, radius, DEFAULT_SEGMENTS)


def _prism(profile: Sequence[tuple], thickness: float) -> Optional[trimesh.Trimesh]:
    return solids.extrude_linear(profile, thickness + TOOL_CLEARANCE)


def hole_tool(hole: Hole, center: Point2, thickness: float) -> Optional[trimesh.Trimesh]:
    """Subtraction volume for one hole, taller than the board on both faces."""

    x, y = _local(hole.x, hole.y, center)
    if isinstance(hole, CircularHole):
        return solids.cylinder(x, y, hole.diameter / 2.0, thickness + TOOL_CLEARANCE, DEFAULT_SEGMENTS)
    if isinstance(hole, RotatedPillHole):
        profile = _pill_profile(hole.width, hole.height)
        # negated: the final rotation about X mirrors circuit Y
        angle = -math.radians(hole.ccw_rotation)
        if angle:
            profile = solids.rotate_points(profile, angle)
        return _prism(solids.translate_points(profile, x, y), thickness)
    if isinstance(hole, PillHole):
        turn = hole.height > hole.width
        width, height = (hole.height, hole.width) if turn else (hole.width, hole.height)
        profile = _pill_profile(width, height)
        if turn:
            profile = solids.rotate_points(profile, math.pi / 2.0)
        return _prism(solids.translate_points(profile, x, y), thickness)
    return None


def cutout_tool(cutout: Cutout, center: Point2, thickness: float) -> Optional[trimesh.Trimesh]:
    """Subtraction volume for one board cutout."""

    if isinstance(cutout, RectCutout):
        x, y = _local(cutout.center.x, cutout.center.y, center)
        profile = solids.rectangle(cutout.width, cutout.height)
        if cutout.rotation:
            profile = solids.rotate_points(profile, -cutout.rotation)
        return _prism(solids.translate_points(profile, x, y), thickness)
    if isinstance(cutout, CircleCutout):
        x, y = _local(cutout.center.x, cutout.center.y, center)
        return solids.cylinder(x, y, cutout.radius, thickness + TOOL_CLEARANCE, DEFAULT_SEGMENTS)
    if isinstance(cutout, PolygonCutout):
        # arcs are expanded before mirroring so bulge signs keep their meaning
        points = ring_to_points(cutout.points) if cutout.has_arcs else [(p.x, p.y) for p in cutout.points]
        local = [_local(px, py, center) for px, py in points]
        if len(local) < 3:
            return None
        return _prism(ensure_ccw(local), thickness)
    return None


def polygons_to_triangles(polygons: Iterable[Sequence[Sequence[float]]]) -> List[Triangle]:
    """Fan-triangulate planar polygons from their first vertex.

    Each polygon gets one unit normal from the cross product of its
    first two edges.
    """

    triangles: List[Triangle] = []
    for poly in polygons:
        if len(poly) < 3:
            continue
        base = tuple(float(c) for c in poly[0])
        nxt = tuple(float(c) for c in poly[1])
        nxt2 = tuple(float(c) for c in poly[2])
        ab = (nxt[0] - base[0], nxt[1] - base[1], nxt[2] - base[2])
        ac = (nxt2[0] - base[0], nxt2[1] - base[1], nxt2[2] - base[2])
        cx = ab[1] * ac[2] - ab[2] * ac[1]
        cy = ab[2] * ac[0] - ab[0] * ac[2]
        cz = ab[0] * ac[1] - ab[1] * ac[0]
        length = math.sqrt(cx * cx + cy * cy + cz * cz) or 1.0
        normal: Vec3 = (cx / length, cy / length, cz / length)
        for i in range(1, len(poly) - 1):
            v1 = tuple(float(c) for c in poly[i])
            v2 = tuple(float(c) for c in poly[i + 1])
            triangles.append(Triangle(base, v1, v2, normal))
    return triangles


def _solid_to_mesh(solid: trimesh.Trimesh) -> Mesh:
    rotated = solids.rotate_x(solid, -math.pi / 2.0)
    polygons = rotated.vertices[rotated.faces].tolist() if len(rotated.faces) else []
    triangles = polygons_to_triangles(polygons)
    if len(rotated.vertices):
        lo, hi = rotated.bounds
        box = BoundingBox(tuple(float(v) for v in lo), tuple(float(v) for v in hi))
    else:
        box = BoundingBox()
    return Mesh(triangles=tuple(triangles), bounding_box=box)


def _carrier_mesh(outline: Sequence[tuple], thickness: float,
                  tools: Iterable[Optional[trimesh.Trimesh]]) -> Mesh:
    solid = solids.extrude_linear(outline, thickness)
    if solid is None:
        return Mesh()
    cutters = [tool for tool in tools if tool is not None]
    solid = boolean.subtract(solid, cutters)
    return _solid_to_mesh(solid)


def create_board_mesh(board: Board, thickness: float, holes: Iterable[Hole] = (),
                      cutouts: Iterable[Cutout] = ()) -> Mesh:
    """Build the pierced board solid as a triangle mesh centered on the origin.

    The bounding box is measured on the solid itself, so its Y extent is
    exactly ``[-thickness/2, thickness/2]``.
    """

    tools = [hole_tool(hole, board.center, thickness) for hole in holes]
    tools += [cutout_tool(cutout, board.center, thickness) for cutout in cutouts]
    return _carrier_mesh(board_outline(board), thickness, tools)


def create_panel_mesh(panel: Panel, thickness: float, holes: Iterable[Hole] = ()) -> Mesh:
    """Panels are plain rectangles; they take mounting holes but never cutouts."""

    tools = [hole_tool(hole, panel.center, thickness) for hole in holes]
    return _carrier_mesh(solids.rectangle(panel.width, panel.height), thickness, tools)


def top_face_area(mesh: Mesh, tolerance: float = 1e-6) -> float:
    """Area of the upward-facing triangles at the top of ``mesh``."""

    top = mesh.bounding_box.max[1]
    area = 0.0
    for tri in mesh.triangles:
        if tri.normal[1] < 1.0 - tolerance:
            continue
        if any(abs(v[1] - top) > 1e-6 for v in tri.vertices):
            continue
        area += triangle_area(*tri.vertices)
    return area


__all__ = [
    "board_outline",
    "hole_tool",
    "cutout_tool",
    "polygons_to_triangles",
    "create_board_mesh",
    "create_panel_mesh",
    "top_face_area",
]
