import pytest

from circuit3d.geometry_utils import Triangle, dot, face_normal
from circuit3d.xform import (
    COORDINATE_TRANSFORMS,
    GLB_Y_Z_SWAP,
    IDENTITY,
    Z_UP_TO_Y_UP,
    CoordinateTransform,
    transform_triangles,
)


def _tri():
    return Triangle((1.0, 2.0, 3.0), (4.0, 5.0, 6.0), (-1.0, 0.5, 2.0), (0.0, 0.0, 1.0),
                    color=(10, 20, 30, 1.0))


def test_z_up_to_y_up_maps_axes():
    assert Z_UP_TO_Y_UP.apply_point((1.0, 2.0, 3.0)) == (1.0, 3.0, -2.0)
    assert Z_UP_TO_Y_UP.apply_direction((0.0, 0.0, 1.0)) == (0.0, 1.0, 0.0)


def test_glb_swap_exchanges_y_and_z():
    assert GLB_Y_Z_SWAP.apply_point((1.0, 2.0, 3.0)) == (1.0, 3.0, 2.0)


def test_none_and_identity_are_noops():
    tris = [_tri()]
    assert transform_triangles(tris, None) == tris
    assert transform_triangles(tris, IDENTITY) == tris
    assert IDENTITY.is_identity


def test_transform_preserves_order_and_color():
    tris = [_tri(), _tri()]
    out = transform_triangles(tris, Z_UP_TO_Y_UP)
    assert len(out) == 2
    assert out[0].color == (10, 20, 30, 1.0)
    assert out[0].v0 == (1.0, 3.0, -2.0)
    assert out[0].normal == (0.0, 1.0, 0.0)
    # inputs untouched
    assert tris[0].v0 == (1.0, 2.0, 3.0)


@pytest.mark.parametrize('transform', [
    Z_UP_TO_Y_UP,
    GLB_Y_Z_SWAP,
    CoordinateTransform(axis_mapping=('-z', 'x', 'y'), flip=(False, True, False), translate=(1.0, -2.0, 0.5)),
    CoordinateTransform.from_dict({'axis_mapping': {'x': 'y', 'y': 'x'}, 'flip': {'z': True},
                                   'translate': {'x': 3.0}}),
])
def test_inverse_round_trip(transform):
    tri = _tri()
    back = transform_triangles(transform_triangles([tri], transform), transform.inverse())[0]
    for got, want in zip(back.vertices, tri.vertices):
        assert got == pytest.approx(want)
    assert back.normal == pytest.approx(tri.normal)


def test_translation_never_touches_normals():
    shift = CoordinateTransform(translate=(5.0, -1.0, 2.0))
    out = transform_triangles([_tri()], shift)[0]
    assert out.normal == (0.0, 0.0, 1.0)
    assert out.v0 == (6.0, 1.0, 5.0)


def test_from_dict():
    transform = CoordinateTransform.from_dict({'axis_mapping': {'y': 'z', 'z': 'y'}, 'flip': {'x': True}})
    assert transform.apply_point((1.0, 2.0, 3.0)) == (-1.0, 3.0, 2.0)
    assert CoordinateTransform.from_dict(None) is IDENTITY


def test_mapping_must_be_permutation():
    with pytest.raises(ValueError):
        CoordinateTransform(axis_mapping=('x', 'x', 'z'))
    with pytest.raises(ValueError):
        CoordinateTransform(axis_mapping=('x', 'y', 'w'))


def test_presets_registered():
    for name in ('Z_UP_TO_Y_UP', 'Z_UP_TO_Y_UP_USB_FIX', 'OBJ_Z_UP_TO_Y_UP',
                 'GLB_Y_Z_SWAP', 'FOOTPRINTER_MODEL_TRANSFORM'):
        assert isinstance(COORDINATE_TRANSFORMS[name], CoordinateTransform)


def test_reflection_detection():
    assert GLB_Y_Z_SWAP.mirrors
    assert not Z_UP_TO_Y_UP.mirrors
    assert not IDENTITY.mirrors
    assert CoordinateTransform(flip=(True, False, False)).mirrors
    assert not CoordinateTransform(flip=(True, True, False)).mirrors
    # three-cycle is a rotation
    assert not CoordinateTransform(axis_mapping=('y', 'z', 'x')).mirrors


@pytest.mark.parametrize('name', sorted(COORDINATE_TRANSFORMS))
def test_winding_agrees_with_normal_after_transform(name):
    tri = Triangle((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
    out = transform_triangles([tri], COORDINATE_TRANSFORMS[name])[0]
    assert dot(face_normal(*out.vertices), out.normal) == pytest.approx(1.0)
