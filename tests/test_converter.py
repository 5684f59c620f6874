import math
import struct

import pytest

from circuit3d.camera import DEFAULT_CAMERA
from circuit3d.config import ConversionOptions, parse_color
from circuit3d.converter import (
    ConversionContext,
    convert_circuit_to_gltf,
    convert_circuit_to_scene,
    default_lights,
)
from circuit3d.io.glb import decode_glb, encode_glb

FLAT = ConversionOptions(render_board_textures=False)

BOARD = {'type': 'pcb_board', 'pcb_board_id': 'board_0', 'center': {'x': 0, 'y': 0}, 'width': 50, 'height': 30}


def pcb_component(pcb_id, x=0.0, y=0.0, width=2.0, height=2.0, layer='top', source=None):
    return {
        'type': 'pcb_component',
        'pcb_component_id': pcb_id,
        'source_component_id': source,
        'center': {'x': x, 'y': y},
        'width': width,
        'height': height,
        'layer': layer,
    }


def cad_component(pcb_id, **fields):
    record = {'type': 'cad_component', 'cad_component_id': f'cad_{pcb_id}', 'pcb_component_id': pcb_id}
    record.update(fields)
    return record


def convert(elements, options=FLAT, fetcher=None, rasterizer=None):
    return convert_circuit_to_scene(elements, options, ConversionContext(fetcher=fetcher, rasterizer=rasterizer))


def box_named(scene, name):
    matches = [b for b in scene.boxes if b.name == name]
    assert len(matches) == 1, [b.name for b in scene.boxes]
    return matches[0]


# ---------------------------------------------------------------------------
# Carrier
# ---------------------------------------------------------------------------


def test_plain_board(fetcher, rasterizer):
    scene = convert([BOARD], fetcher=fetcher, rasterizer=rasterizer)
    assert len(scene.boxes) == 1
    board = scene.boxes[0]
    assert board.center == (0.0, 0.0, 0.0)
    assert board.size == pytest.approx((50.0, 1.6, 30.0))
    assert board.color == parse_color('rgba(0,140,0,0.8)')
    assert board.textures is None
    assert rasterizer.calls == []


def test_board_center_maps_to_scene_xz(fetcher, rasterizer):
    moved = dict(BOARD, center={'x': 10, 'y': -5})
    board = convert([moved], fetcher=fetcher, rasterizer=rasterizer).boxes[0]
    assert board.center == (10.0, 0.0, -5.0)


def test_board_thickness_overrides_option(fetcher, rasterizer):
    thick = dict(BOARD, thickness=2.4)
    board = convert([thick], fetcher=fetcher, rasterizer=rasterizer).boxes[0]
    assert board.size[1] == pytest.approx(2.4)


def test_panel_takes_priority_over_board(fetcher, rasterizer):
    panel = {'type': 'pcb_panel', 'pcb_panel_id': 'panel_0', 'center': {'x': 0, 'y': 0},
             'width': 100, 'height': 80}
    scene = convert([BOARD, panel], fetcher=fetcher, rasterizer=rasterizer)
    assert len(scene.boxes) == 1
    carrier = scene.boxes[0]
    assert carrier.name == 'panel_0'
    assert carrier.size == pytest.approx((100.0, 1.6, 80.0))
    distance = math.hypot(100, 80) * 1.5
    assert scene.camera.far == pytest.approx(distance * 4)


def test_board_textures(fetcher, rasterizer):
    options = ConversionOptions(texture_resolution=64)
    board = convert([BOARD], options, fetcher, rasterizer).boxes[0]
    assert board.textures is not None
    assert board.textures.top.png.startswith(b'\x89PNG')
    assert sorted(call[1] for call in rasterizer.calls) == [64, 64]


def test_texture_failure_falls_back_to_flat_board(fetcher, failing_rasterizer, caplog):
    options = ConversionOptions(texture_resolution=64)
    scene = convert([BOARD], options, fetcher, failing_rasterizer)
    assert scene.boxes[0].textures is None
    assert scene.boxes[0].color == parse_color(options.pcb_color)
    assert 'board texture rendering failed' in caplog.text


def test_backend_crash_falls_back_to_flat_board(fetcher, crashing_rasterizer, caplog):
    options = ConversionOptions(texture_resolution=64)
    scene = convert([BOARD], options, fetcher, crashing_rasterizer)
    assert scene.boxes[0].textures is None
    assert 'ZeroDivisionError' in caplog.text


def test_geometry_layers_emit_copper(fetcher, rasterizer):
    pad = {'type': 'pcb_smtpad', 'shape': 'rect', 'x': 5, 'y': 5, 'width': 2, 'height': 1, 'layer': 'top'}
    options = ConversionOptions(layer_rendering='geometry')
    scene = convert([BOARD, pad], options, fetcher, rasterizer)
    assert [b.name for b in scene.boxes] == ['board_0', 'copper_top']
    copper = scene.boxes[1]
    assert copper.mesh.bounding_box.min[1] > 0
    assert rasterizer.calls == []


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def test_placeholder_box(fetcher, rasterizer):
    elements = [BOARD, pcb_component('pcb_1', x=3, y=4, width=4, height=3, source='src_1'),
                {'type': 'source_component', 'source_component_id': 'src_1', 'name': 'U1'}]
    box = box_named(convert(elements, fetcher=fetcher, rasterizer=rasterizer), 'pcb_1')
    assert box.center == pytest.approx((3.0, 1.8, 4.0))
    assert box.size == (4.0, 2.0, 3.0)
    assert box.label == 'U1'
    assert box.label_color == (255, 255, 255, 1.0)
    assert box.mesh is None


def test_placeholder_height_is_clamped_by_footprint(fetcher, rasterizer):
    elements = [BOARD, pcb_component('pcb_1', width=0.5, height=1.0, layer='bottom')]
    box = box_named(convert(elements, fetcher=fetcher, rasterizer=rasterizer), 'pcb_1')
    assert box.size[1] == pytest.approx(0.5)
    assert box.center[1] == pytest.approx(-(0.8 + 0.25))
    assert box.label == '?'


def test_placeholders_can_be_disabled(fetcher, rasterizer):
    options = ConversionOptions(render_board_textures=False, show_bounding_boxes=False)
    scene = convert([BOARD, pcb_component('pcb_1')], options, fetcher, rasterizer)
    assert [b.name for b in scene.boxes] == ['board_0']


def test_placeholder_labels(fetcher, rasterizer):
    options = ConversionOptions(render_board_textures=False, render_labels=True)
    scene = convert([BOARD, pcb_component('pcb_1')], options, fetcher, rasterizer)
    assert box_named(scene, 'pcb_1').label_texture is not None
    assert len(rasterizer.calls) == 1


def test_label_failure_keeps_placeholder(fetcher, failing_rasterizer):
    options = ConversionOptions(render_board_textures=False, render_labels=True)
    scene = convert([BOARD, pcb_component('pcb_1')], options, fetcher, failing_rasterizer)
    box = box_named(scene, 'pcb_1')
    assert box.label_texture is None
    assert box.label == '?'


def test_label_backend_crash_keeps_placeholder(fetcher, crashing_rasterizer):
    options = ConversionOptions(render_board_textures=False, render_labels=True)
    scene = convert([BOARD, pcb_component('pcb_1')], options, fetcher, crashing_rasterizer)
    assert box_named(scene, 'pcb_1').label_texture is None
    assert len(crashing_rasterizer.calls) == 1


def test_footprinter_component_on_bottom(fetcher, rasterizer):
    elements = [
        BOARD,
        pcb_component('pcb_1', x=2, y=3, layer='bottom'),
        cad_component('pcb_1', footprinter_string='0402', size={'x': 1, 'y': 2, 'z': 0.5}),
    ]
    scene = convert(elements, fetcher=fetcher, rasterizer=rasterizer)
    assert [b.name for b in scene.boxes] == ['board_0', 'cad_pcb_1']
    box = scene.boxes[1]
    assert box.center == pytest.approx((2.0, -1.8, 3.0))
    assert box.rotation == pytest.approx((0.0, 0.0, math.pi))
    assert box.mesh is not None and box.color is None
    assert box.mesh_url is None and box.mesh_type is None
    assert fetcher.calls == []


def test_component_without_size_uses_footprint_and_default_height(fetcher, rasterizer):
    elements = [BOARD, pcb_component('pcb_1', width=3, height=1.5), cad_component('pcb_1', footprinter_string='0603')]
    box = box_named(convert(elements, fetcher=fetcher, rasterizer=rasterizer), 'cad_pcb_1')
    assert box.size == (3.0, 2.0, 1.5)
    assert box.center == pytest.approx((0.0, 1.8, 0.0))
    assert box.rotation is None


def test_scale_factor_applies_to_size_and_mesh(fetcher, rasterizer):
    plain = [BOARD, pcb_component('pcb_1'),
             cad_component('pcb_1', footprinter_string='0805', size={'x': 1, 'y': 1, 'z': 1})]
    scaled = [BOARD, pcb_component('pcb_1'),
              cad_component('pcb_1', footprinter_string='0805', size={'x': 1, 'y': 1, 'z': 1},
                            model_unit_to_mm_scale_factor=10)]
    small = box_named(convert(plain, fetcher=fetcher, rasterizer=rasterizer), 'cad_pcb_1')
    large = box_named(convert(scaled, fetcher=fetcher, rasterizer=rasterizer), 'cad_pcb_1')
    assert large.size == pytest.approx((10.0, 10.0, 10.0))
    assert large.mesh.bounding_box.size[0] == pytest.approx(small.mesh.bounding_box.size[0] * 10)


def test_explicit_position_and_rotation(fetcher, rasterizer):
    elements = [
        BOARD,
        pcb_component('pcb_1', layer='bottom'),
        cad_component('pcb_1', footprinter_string='0603', position={'x': 1, 'y': 2, 'z': 3},
                      rotation={'x': 0, 'y': 0, 'z': 90}),
    ]
    box = box_named(convert(elements, fetcher=fetcher, rasterizer=rasterizer), 'cad_pcb_1')
    # a bottom-side part may not sit above the board's underside
    assert box.center[0] == 1.0 and box.center[2] == 2.0
    assert box.center[1] < 0
    assert box.rotation == pytest.approx((0.0, math.pi / 2, 0.0))


def test_obj_with_position_sits_on_its_base(fetcher, rasterizer):
    fetcher.files['https://models.test/part.obj'] = (
        b'v 0 0 -0.5\nv 1 0 -0.5\nv 0 1 0.5\nf 1 2 3\n')
    elements = [
        BOARD,
        pcb_component('pcb_1'),
        cad_component('pcb_1', model_obj_url='https://models.test/part.obj', position={'x': 1, 'y': 2, 'z': 0.8}),
    ]
    box = box_named(convert(elements, fetcher=fetcher, rasterizer=rasterizer), 'cad_pcb_1')
    assert box.center == pytest.approx((1.0, 1.3, 2.0))
    assert box.mesh_type == 'obj'
    assert box.mesh_url == 'https://models.test/part.obj'


def test_failed_model_keeps_component_box(fetcher, rasterizer):
    elements = [
        BOARD,
        pcb_component('pcb_1', layer='bottom'),
        cad_component('pcb_1', model_stl_url='https://models.test/missing.stl'),
    ]
    scene = convert(elements, fetcher=fetcher, rasterizer=rasterizer)
    # no extra placeholder for a component that has a model reference
    assert [b.name for b in scene.boxes] == ['board_0', 'cad_pcb_1']
    box = scene.boxes[1]
    assert box.mesh is None
    assert box.color == parse_color('rgba(128,128,128,0.5)')
    assert box.rotation == pytest.approx((math.pi, 0.0, 0.0))
    assert box.mesh_url == 'https://models.test/missing.stl'


def test_model_failure_is_reported_once_per_context(fetcher, rasterizer, caplog):
    elements = [
        BOARD,
        pcb_component('pcb_1'),
        cad_component('pcb_1', model_stl_url='https://models.test/missing.stl'),
    ]
    context = ConversionContext(fetcher=fetcher, rasterizer=rasterizer)
    convert_circuit_to_scene(elements, FLAT, context)
    convert_circuit_to_scene(elements, FLAT, context)
    assert caplog.text.count('using placeholder box') == 1
    convert_circuit_to_scene(elements, FLAT, ConversionContext(fetcher=fetcher, rasterizer=rasterizer))
    assert caplog.text.count('using placeholder box') == 2


def test_malformed_glb_degrades_to_component_box(fetcher, rasterizer):
    positions = struct.pack('<9f', 0, 0, 0, 1, 0, 0, 0, 1, 0)
    normals = struct.pack('<3f', 0, 0, 1)
    document = {
        'asset': {'version': '2.0'},
        'buffers': [{'byteLength': 48}],
        'bufferViews': [
            {'buffer': 0, 'byteOffset': 0, 'byteLength': 36},
            {'buffer': 0, 'byteOffset': 36, 'byteLength': 12},
        ],
        # one normal for three positions
        'accessors': [
            {'bufferView': 0, 'componentType': 5126, 'count': 3, 'type': 'VEC3'},
            {'bufferView': 1, 'componentType': 5126, 'count': 1, 'type': 'VEC3'},
        ],
        'meshes': [{'primitives': [{'attributes': {'POSITION': 0, 'NORMAL': 1}}]}],
    }
    fetcher.files['https://models.test/bad.glb'] = encode_glb(document, positions + normals)
    elements = [
        BOARD,
        pcb_component('pcb_1'),
        cad_component('pcb_1', model_glb_url='https://models.test/bad.glb'),
    ]
    scene = convert(elements, fetcher=fetcher, rasterizer=rasterizer)
    assert [b.name for b in scene.boxes] == ['board_0', 'cad_pcb_1']
    box = scene.boxes[1]
    assert box.mesh is None
    assert box.color == parse_color('rgba(128,128,128,0.5)')
    assert box.mesh_type == 'glb'


def test_models_are_shared_through_the_context(fetcher, rasterizer):
    fetcher.files['part.stl'] = b'solid x\nfacet normal 0 0 1\nouter loop\nvertex 0 0 0\nvertex 1 0 0\n' \
                                b'vertex 0 1 0\nendloop\nendfacet\nendsolid x\n'
    elements = [BOARD] + [pcb_component(f'pcb_{i}') for i in range(3)] + \
        [cad_component(f'pcb_{i}', model_stl_url='part.stl') for i in range(3)]
    context = ConversionContext(fetcher=fetcher, rasterizer=rasterizer)
    convert_circuit_to_scene(elements, FLAT, context)
    convert_circuit_to_scene(elements, FLAT, context)
    assert fetcher.calls == ['part.stl']


# ---------------------------------------------------------------------------
# Camera, lights and export
# ---------------------------------------------------------------------------


def test_camera_frames_board(fetcher, rasterizer):
    scene = convert([BOARD], fetcher=fetcher, rasterizer=rasterizer)
    distance = math.hypot(50, 30) * 1.5
    assert scene.camera.target == (0.0, 0.0, 0.0)
    assert scene.camera.position == pytest.approx((distance * 0.5, distance * 0.7, distance * 0.5))
    assert scene.camera.fov == 50.0
    assert scene.camera.near == 0.1
    assert scene.camera == convert([BOARD], fetcher=fetcher, rasterizer=rasterizer).camera


def test_empty_circuit(fetcher, rasterizer):
    scene = convert([], fetcher=fetcher, rasterizer=rasterizer)
    assert scene.boxes == ()
    assert scene.camera == DEFAULT_CAMERA
    assert scene.lights == default_lights()


def test_lights():
    ambient, directional = default_lights()
    assert (ambient.kind, ambient.intensity) == ('ambient', 0.5)
    assert (directional.kind, directional.intensity) == ('directional', 0.5)
    assert directional.direction == (-1.0, -1.0, -1.0)


def test_convert_to_glb(fetcher, rasterizer):
    options = ConversionOptions(format='glb', render_board_textures=False)
    data = convert_circuit_to_gltf([BOARD, pcb_component('pcb_1')], options,
                                   ConversionContext(fetcher=fetcher, rasterizer=rasterizer))
    assert data[:4] == b'glTF'
    document, _ = decode_glb(data)
    names = [node.get('name') for node in document['nodes']]
    assert 'board_0' in names and 'pcb_1' in names and 'camera' in names


def test_convert_to_gltf_json(fetcher, rasterizer):
    document = convert_circuit_to_gltf([BOARD], FLAT, ConversionContext(fetcher=fetcher, rasterizer=rasterizer))
    assert document['asset']['version'] == '2.0'
    assert document['buffers'][0]['uri'].startswith('data:application/octet-stream;base64,')


def test_bad_options_rejected():
    with pytest.raises(ValueError):
        ConversionOptions(format='fbx')
    with pytest.raises(ValueError):
        ConversionOptions(layer_rendering='wireframe')
