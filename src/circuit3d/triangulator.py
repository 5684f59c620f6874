"""Triangulation and winding helpers for planar outlines.

We delegate to ``mapbox-earcut`` (the fast ear clipping implementation
used by Mapbox GL) to keep the logic compact and reliable.  The helpers
in this file normalise outline inputs into the format expected by
earcut and hand back vertex/index arrays the solid builders can lift
into 3D.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np

try:
    import mapbox_earcut as _earcut
except ImportError as exc:  # pragma: no cover - import guard
    raise ImportError(
        "mapbox-earcut must be installed to triangulate polygons with holes"
    ) from exc

Point2D = Tuple[float, float]

EPSILON = 1e-9


def signed_area(loop: Sequence[Sequence[float]]) -> float:
    """Shoelace area of ``loop``; positive for counter-clockwise order."""

    total = 0.0
    count = len(loop)
    for i in range(count):
        x0, y0 = loop[i][0], loop[i][1]
        x1, y1 = loop[(i + 1) % count][0], loop[(i + 1) % count][1]
        total += x0 * y1 - x1 * y0
    return total / 2.0


def are_points_clockwise(loop: Sequence[Sequence[float]]) -> bool:
    """``True`` when ``loop`` winds clockwise (zero area counts as clockwise)."""

    return signed_area(loop) <= 0


def ensure_ccw(loop: Sequence[Sequence[float]]) -> List[Point2D]:
    """Return ``loop`` as a list of points in counter-clockwise order."""

    points = [(float(p[0]), float(p[1])) for p in loop]
    if are_points_clockwise(points):
        points.reverse()
    return points


def prepare_loop(points: Sequence[Sequence[float]], *, want_ccw: bool) -> List[Point2D]:
    """Drop repeated points and the closing duplicate, then fix winding."""

    loop: List[Point2D] = []
    for pt in points:
        x, y = float(pt[0]), float(pt[1])
        if loop and _near(loop[-1], (x, y)):
            continue
        loop.append((x, y))
    if len(loop) > 1 and _near(loop[0], loop[-1]):
        loop.pop()
    if len(loop) < 3:
        return loop
    area = signed_area(loop)
    if want_ccw and area < 0:
        loop.reverse()
    elif not want_ccw and area > 0:
        loop.reverse()
    return loop


def triangulate_rings(outer: Sequence[Sequence[float]],
                      holes: Iterable[Sequence[Sequence[float]]] | None = None
                      ) -> Tuple[List[List[Point2D]], np.ndarray]:
    """Triangulate ``outer`` minus ``holes``.

    Returns the prepared rings (outer counter-clockwise, holes clockwise,
    degenerate holes dropped) and an ``(n, 3)`` array of indices into the
    concatenated ring vertices.  Every returned triangle winds
    counter-clockwise.  An outer ring with fewer than three distinct
    points yields no rings and no triangles.
    """

    outer_loop = prepare_loop(outer, want_ccw=True)
    if len(outer_loop) < 3:
        return [], np.zeros((0, 3), dtype=np.int64)

    rings = [outer_loop]
    for hole in holes or []:
        loop = prepare_loop(hole, want_ccw=False)
        if len(loop) >= 3:
            rings.append(loop)

    flat = [pt for ring in rings for pt in ring]
    ring_ends = np.cumsum([len(ring) for ring in rings]).astype(np.uint32)
    vertices = np.asarray(flat, dtype=np.float64).reshape(-1, 2)
    indices = np.asarray(_earcut.triangulate_float64(vertices, ring_ends), dtype=np.int64)
    faces = indices.reshape(-1, 3)

    if len(faces):
        a = vertices[faces[:, 0]]
        b = vertices[faces[:, 1]]
        c = vertices[faces[:, 2]]
        cross_z = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
        flipped = cross_z < 0
        faces[flipped] = faces[flipped][:, [0, 2, 1]]

    return rings, faces


def triangulate_polygon(outer: Sequence[Sequence[float]],
                        holes: Iterable[Sequence[Sequence[float]]] | None = None
                        ) -> List[List[Point2D]]:
    """Return counter-clockwise triangles covering ``outer`` minus ``holes``."""

    rings, faces = triangulate_rings(outer, holes)
    flat = [pt for ring in rings for pt in ring]
    return [[flat[i] for i in face] for face in faces.tolist()]


def _near(p1: Point2D, p2: Point2D) -> bool:
    return abs(p1[0] - p2[0]) <= EPSILON and abs(p1[1] - p2[1]) <= EPSILON


__all__ = [
    "signed_area",
    "are_points_clockwise",
    "ensure_ccw",
    "prepare_loop",
    "triangulate_rings",
    "triangulate_polygon",
]
