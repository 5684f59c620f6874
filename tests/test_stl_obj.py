import pytest

from circuit3d.geometry_utils import Triangle
from circuit3d.io.obj import material_libraries, parse_mtl, parse_obj
from circuit3d.io.stl import is_binary_stl, parse_stl

TRIS = [
    Triangle((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)),
    Triangle((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 2.0), (0.0, 0.0, 0.0)),
]


# ---------------------------------------------------------------------------
# STL
# ---------------------------------------------------------------------------


def test_binary_stl(stl_bytes):
    data = stl_bytes(TRIS)
    assert len(data) == 80 + 4 + 50 * 2
    assert is_binary_stl(data)
    parsed = parse_stl(data)
    assert [t.vertices for t in parsed] == [t.vertices for t in TRIS]


def test_ascii_stl(ascii_stl_bytes):
    data = ascii_stl_bytes(TRIS, name='ascii_part')
    assert not is_binary_stl(data)
    parsed = parse_stl(data)
    assert len(parsed) == 2
    assert parsed[0].v1 == pytest.approx((1.0, 0.0, 0.0))


def test_zero_normals_are_recomputed(stl_bytes):
    parsed = parse_stl(stl_bytes(TRIS))
    assert parsed[0].normal == pytest.approx((0.0, 0.0, 1.0))
    assert parsed[1].normal == pytest.approx((2.0, 0.0, 0.0))


# ---------------------------------------------------------------------------
# OBJ / MTL
# ---------------------------------------------------------------------------

OBJ_TEXT = """\
# two coloured faces
mtllib part.mtl
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
usemtl body
f 1 2 3 4
usemtl pins
f -4/1/1 -2/2/2 -1/3/3
"""

MTL_TEXT = """\
newmtl body
Kd 0.2 0.2 0.2
d 0.5
newmtl pins
Kd 1.0 0.8 0.0
"""


def test_parse_mtl():
    colors = parse_mtl(MTL_TEXT)
    assert colors['body'] == (51, 51, 51, 0.5)
    assert colors['pins'] == (255, 204, 0, 1.0)


def test_material_libraries():
    assert material_libraries(OBJ_TEXT) == ['part.mtl']


def test_parse_obj_fans_polygons_and_colors_faces():
    triangles = parse_obj(OBJ_TEXT, parse_mtl(MTL_TEXT))
    assert len(triangles) == 3
    assert triangles[0].color == (51, 51, 51, 0.5)
    assert triangles[1].vertices == ((0.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0))
    assert triangles[2].color == (255, 204, 0, 1.0)
    assert triangles[2].vertices == ((0.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0))
    assert triangles[0].normal == pytest.approx((0.0, 0.0, 1.0))


def test_obj_without_materials_is_uncoloured():
    triangles = parse_obj(OBJ_TEXT)
    assert all(t.color is None for t in triangles)


def test_bad_face_reference():
    with pytest.raises(ValueError, match='line 2'):
        parse_obj('v 0 0 0\nf 1 2 3\n')
