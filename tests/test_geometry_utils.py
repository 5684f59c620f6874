import math

import pytest

from circuit3d.geometry_utils import (
    DEFAULT_MATERIAL_COLOR,
    BoundingBox,
    Mesh,
    Triangle,
    compute_bounding_box,
    face_normal,
    group_by_color,
    scale_mesh,
    triangle_area,
)


def _mesh():
    return Mesh(triangles=(
        Triangle((0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 3.0, 0.0), (0.0, 0.0, 1.0)),
        Triangle((0.0, 0.0, 1.0), (1.0, -1.0, 1.0), (0.0, 1.0, 4.0), (1.0, 0.0, 0.0)),
    ))


def test_bounding_box_computed_from_triangles():
    box = _mesh().bounding_box
    assert box.min == (0.0, -1.0, 0.0)
    assert box.max == (2.0, 3.0, 4.0)
    assert box.size == (2.0, 4.0, 4.0)


def test_empty_bounding_box_collapses_to_origin():
    box = compute_bounding_box([])
    assert box.min == (0.0, 0.0, 0.0) and box.max == (0.0, 0.0, 0.0)
    assert len(Mesh()) == 0


def test_scale_mesh_scales_vertices_and_box():
    mesh = _mesh()
    scaled = scale_mesh(mesh, 2.5)
    for a, b in zip(mesh.triangles, scaled.triangles):
        for va, vb in zip(a.vertices, b.vertices):
            assert vb == pytest.approx(tuple(c * 2.5 for c in va))
        assert a.normal == b.normal
    assert scaled.bounding_box.min == pytest.approx((0.0, -2.5, 0.0))
    assert scaled.bounding_box.max == pytest.approx((5.0, 7.5, 10.0))


def test_negative_scale_keeps_box_ordered():
    scaled = scale_mesh(_mesh(), -2.0)
    assert scaled.bounding_box.min == pytest.approx((-4.0, -6.0, -8.0))
    assert scaled.bounding_box.max == pytest.approx((0.0, 2.0, 0.0))
    assert scaled.bounding_box == compute_bounding_box(scaled.triangles)


def test_scale_by_one_returns_same_object():
    mesh = _mesh()
    assert scale_mesh(mesh, 1) is mesh
    assert scale_mesh(mesh, math.nan) is mesh


def test_group_by_color_first_seen_order():
    red, blue = (255, 0, 0, 1.0), (0, 0, 255, 1.0)
    tris = [
        Triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1), color=blue),
        Triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1), color=red),
        Triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)),
        Triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1), color=blue),
    ]
    mesh = group_by_color(tris)
    assert [m.name for m in mesh.materials.values()] == ['Material_0', 'Material_1', 'Material_2']
    assert mesh.materials[0].color == blue
    assert mesh.materials[1].color == red
    assert mesh.materials[2].color == DEFAULT_MATERIAL_COLOR
    assert [t.material_index for t in mesh.triangles] == [0, 0, 1, 2]
    assert mesh.has_materials


def test_normals_and_area():
    assert face_normal((0, 0, 0), (1, 0, 0), (0, 1, 0)) == (0, 0, 1)
    assert triangle_area((0, 0, 0), (2, 0, 0), (0, 2, 0)) == pytest.approx(2.0)


def test_bounding_box_center():
    box = BoundingBox((-1.0, 0.0, 2.0), (3.0, 4.0, 2.0))
    assert box.center == (1.0, 2.0, 2.0)
