"""Parametric solids used by the board engine.

Every solid is a closed, consistently wound ``trimesh.Trimesh`` whose
vertices are shared between faces, which is what the manifold boolean
backend expects.  Profiles are 2D point loops in the drafting plane
(XY); extrusion runs along +Z.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import trimesh

from circuit3d.triangulator import Point2D, triangulate_rings

DEFAULT_SEGMENTS = 64


def rectangle(width: float, height: float) -> List[Point2D]:
    """Axis-aligned rectangle centered on the origin, counter-clockwise."""

    hw, hh = width / 2.0, height / 2.0
    return [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]


def circle(radius: float, segments: int = DEFAULT_SEGMENTS) -> List[Point2D]:
    step = 2.0 * math.pi / segments
    return [(radius * math.cos(i * step), radius * math.sin(i * step)) for i in range(segments)]


def rounded_rectangle(width: float, height: float, round_radius: float,
                      segments: int = DEFAULT_SEGMENTS) -> List[Point2D]:
    """Rectangle with circular corners of ``round_radius``.

    ``segments`` is the count for a full circle; each corner gets a
    quarter of it.  A non-positive radius degenerates to a rectangle.
    """

    if round_radius <= 0:
        return rectangle(width, height)
    hw = width / 2.0 - round_radius
    hh = height / 2.0 - round_radius
    per_corner = max(1, segments // 4)
    corners = [(hw, -hh, -math.pi / 2), (hw, hh, 0.0), (-hw, hh, math.pi / 2), (-hw, -hh, math.pi)]
    points: List[Point2D] = []
    for cx, cy, start in corners:
        for j in range(per_corner + 1):
            angle = start + (math.pi / 2) * j / per_corner
            points.append((cx + round_radius * math.cos(angle), cy + round_radius * math.sin(angle)))
    return points


def rotate_points(points: Iterable[Point2D], angle: float) -> List[Point2D]:
    c, s = math.cos(angle), math.sin(angle)
    return [(x * c - y * s, x * s + y * c) for x, y in points]


def translate_points(points: Iterable[Point2D], dx: float, dy: float) -> List[Point2D]:
    return [(x + dx, y + dy) for x, y in points]


def extrude_linear(outline: Sequence[Sequence[float]], height: float,
                   holes: Iterable[Sequence[Sequence[float]]] = (),
                   *, centered: bool = True) -> trimesh.Trimesh | None:
    """Extrude a profile (with optional inner holes) by ``height`` along +Z.

    With ``centered`` the solid spans ``[-height/2, height/2]``, otherwise
    ``[0, height]``.  Returns ``None`` when the outline is degenerate.
    """

    rings, caps = triangulate_rings(outline, holes)
    if not rings or len(caps) == 0:
        return None

    flat = np.asarray([pt for ring in rings for pt in ring], dtype=np.float64)
    n = len(flat)
    z0 = -height / 2.0 if centered else 0.0
    z1 = z0 + height

    vertices = np.vstack([
        np.column_stack([flat, np.full(n, z0)]),
        np.column_stack([flat, np.full(n, z1)]),
    ])

    faces: List[Tuple[int, int, int]] = []
    faces.extend((int(a) + n, int(b) + n, int(c) + n) for a, b, c in caps)
    faces.extend((int(a), int(c), int(b)) for a, b, c in caps)

    # side walls; outer ring is ccw and holes cw, so the same
    # quad split faces outward from the material on every ring
    start = 0
    for ring in rings:
        count = len(ring)
        for k in range(count):
            i = start + k
            j = start + (k + 1) % count
            faces.append((i, j, j + n))
            faces.append((i, j + n, i + n))
        start += count

    return trimesh.Trimesh(vertices=vertices, faces=np.asarray(faces, dtype=np.int64), process=False)


def cylinder(x: float, y: float, radius: float, height: float,
             segments: int = DEFAULT_SEGMENTS) -> trimesh.Trimesh | None:
    """Z-aligned cylinder centered at ``(x, y, 0)``."""

    return extrude_linear(translate_points(circle(radius, segments), x, y), height)


def rotate_x(mesh: trimesh.Trimesh, angle: float) -> trimesh.Trimesh:
    """Return a rotated copy of ``mesh`` about the X axis."""

    matrix = trimesh.transformations.rotation_matrix(angle, [1.0, 0.0, 0.0])
    rotated = mesh.copy()
    rotated.apply_transform(matrix)
    return rotated


__all__ = [
    "DEFAULT_SEGMENTS",
    "rectangle",
    "circle",
    "rounded_rectangle",
    "rotate_points",
    "translate_points",
    "extrude_linear",
    "cylinder",
    "rotate_x",
]
