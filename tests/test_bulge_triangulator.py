import math

import pytest

from circuit3d.bulge import MIN_ARC_SEGMENTS, BulgeVertex, arc_points, ring_to_points
from circuit3d.triangulator import (
    are_points_clockwise,
    ensure_ccw,
    signed_area,
    triangulate_polygon,
    triangulate_rings,
)

SQUARE = [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0)]


# ---------------------------------------------------------------------------
# Bulge arcs
# ---------------------------------------------------------------------------


def test_zero_bulge_is_a_straight_edge():
    assert arc_points(BulgeVertex(0, 0), BulgeVertex(5, 0)) == [(0, 0)]


def test_semicircle_points_lie_on_circle():
    points = arc_points(BulgeVertex(0.0, 0.0, 1.0), BulgeVertex(2.0, 0.0))
    assert points[0] == pytest.approx((0.0, 0.0))
    for x, y in points:
        assert math.hypot(x - 1.0, y) == pytest.approx(1.0)
        assert y <= 1e-9
    assert len(points) >= MIN_ARC_SEGMENTS


def test_negative_bulge_sweeps_the_other_way():
    points = arc_points(BulgeVertex(0.0, 0.0, -1.0), BulgeVertex(2.0, 0.0))
    assert all(y >= -1e-9 for _, y in points)
    assert max(y for _, y in points) == pytest.approx(1.0, abs=0.01)


def test_quarter_arc_center():
    # bulge tan(pi/8) is a 90 degree arc
    points = arc_points(BulgeVertex(1.0, 0.0, math.tan(math.pi / 8)), BulgeVertex(0.0, 1.0))
    for x, y in points:
        assert math.hypot(x, y) == pytest.approx(1.0)


def test_ring_with_arc_area():
    # 2x2 square whose top edge bulges outward into a semicircle
    ring = [BulgeVertex(0, 0), BulgeVertex(2, 0), BulgeVertex(2, 2, 1.0), BulgeVertex(0, 2)]
    points = ring_to_points(ring)
    assert signed_area(points) == pytest.approx(4.0 + math.pi / 2, rel=1e-2)


# ---------------------------------------------------------------------------
# Triangulation
# ---------------------------------------------------------------------------


def test_winding_helpers():
    assert signed_area(SQUARE) == pytest.approx(16.0)
    assert not are_points_clockwise(SQUARE)
    assert are_points_clockwise(list(reversed(SQUARE)))
    assert ensure_ccw(list(reversed(SQUARE))) == SQUARE


def test_triangulate_square_with_hole():
    hole = [(1.0, 1.0), (3.0, 1.0), (3.0, 3.0), (1.0, 3.0)]
    triangles = triangulate_polygon(SQUARE, [hole])
    assert sum(signed_area(t) for t in triangles) == pytest.approx(12.0)
    assert all(signed_area(t) > 0 for t in triangles)


def test_clockwise_input_still_yields_ccw_triangles():
    rings, faces = triangulate_rings(list(reversed(SQUARE)))
    assert len(faces) == 2
    assert signed_area(rings[0]) > 0


def test_degenerate_outer_ring():
    rings, faces = triangulate_rings([(0, 0), (1, 1), (0, 0)])
    assert rings == [] and len(faces) == 0
