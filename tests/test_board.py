import math

import pytest

from circuit3d.board import create_board_mesh, create_panel_mesh, top_face_area
from circuit3d.circuit import Circuit, parse_cutout, parse_hole, parse_plated_hole
from circuit3d.triangulator import signed_area


def board_record(width=50.0, height=30.0, center=(0.0, 0.0), **extra):
    record = {'type': 'pcb_board', 'pcb_board_id': 'pcb_board_0',
              'center': {'x': center[0], 'y': center[1]}, 'width': width, 'height': height}
    record.update(extra)
    return record


def _board(**kwargs):
    return Circuit([board_record(**kwargs)]).board


def _hole(x, y, diameter):
    return {'type': 'pcb_hole', 'hole_shape': 'circle', 'x': x, 'y': y, 'hole_diameter': diameter}


def test_plain_board_top_area_and_extent():
    board = _board(width=50, height=30, center=(10.0, 5.0))
    mesh = create_board_mesh(board, 1.6)
    assert len(mesh) > 0
    assert top_face_area(mesh) == pytest.approx(50 * 30, rel=1e-6)
    assert mesh.bounding_box.min[1] == pytest.approx(-0.8)
    assert mesh.bounding_box.max[1] == pytest.approx(0.8)
    assert mesh.bounding_box.size[0] == pytest.approx(50)
    assert mesh.bounding_box.size[2] == pytest.approx(30)


def test_single_centered_hole():
    board = _board(center=(3.0, -2.0))
    hole = parse_hole(_hole(3.0, -2.0, 2.0))
    mesh = create_board_mesh(board, 1.6, [hole])
    assert len(mesh) > 0
    assert abs(top_face_area(mesh) - (50 * 30 - math.pi)) < 1.0


def test_several_holes_subtract_their_areas():
    board = _board()
    holes = [parse_hole(_hole(x, 0.0, d)) for x, d in ((-15.0, 3.0), (0.0, 2.0), (15.0, 4.0))]
    expected = 50 * 30 - sum(math.pi * (d / 2) ** 2 for d in (3.0, 2.0, 4.0))
    assert abs(top_face_area(create_board_mesh(board, 1.6, holes)) - expected) < 1.0


def test_pill_hole():
    board = _board()
    hole = parse_hole({'type': 'pcb_hole', 'hole_shape': 'pill', 'x': 0, 'y': 0,
                       'hole_width': 4.0, 'hole_height': 2.0})
    pill_area = (4.0 - 2.0) * 2.0 + math.pi
    assert abs(top_face_area(create_board_mesh(board, 1.6, [hole])) - (1500 - pill_area)) < 0.2


def test_rotated_pill_and_plated_holes():
    board = _board()
    holes = [
        parse_hole({'type': 'pcb_hole', 'hole_shape': 'rotated_pill', 'x': -10, 'y': 0,
                    'hole_width': 4.0, 'hole_height': 2.0, 'ccw_rotation': 45}),
        parse_plated_hole({'type': 'pcb_plated_hole', 'shape': 'circle', 'x': 10, 'y': 0,
                           'outer_diameter': 2.0, 'hole_diameter': 1.0}),
        parse_plated_hole({'type': 'pcb_plated_hole', 'shape': 'pill_hole_with_rect_pad', 'x': 0, 'y': 5,
                           'hole_width': 3.0, 'hole_height': 1.0, 'hole_offset_x': 1.0}),
    ]
    expected = 1500 - ((4.0 - 2.0) * 2.0 + math.pi) - math.pi * 0.25 - ((3.0 - 1.0) * 1.0 + math.pi * 0.25)
    assert abs(top_face_area(create_board_mesh(board, 1.6, holes)) - expected) < 0.5


def test_plated_hole_offset_moves_drill():
    hole = parse_plated_hole({'type': 'pcb_plated_hole', 'shape': 'circle', 'x': 1, 'y': 2,
                              'hole_diameter': 1.0, 'hole_offset_x': 0.5, 'hole_offset_y': -0.5})
    assert (hole.x, hole.y) == (1.5, 1.5)


def test_rect_circle_and_polygon_cutouts():
    board = _board()
    triangle = [{'x': 5, 'y': 5}, {'x': 15, 'y': 5}, {'x': 15, 'y': 12}]
    cutouts = [
        parse_cutout({'type': 'pcb_cutout', 'shape': 'rect', 'center': {'x': -10, 'y': 0},
                      'width': 10, 'height': '5mm', 'rotation': 30}),
        parse_cutout({'type': 'pcb_cutout', 'shape': 'circle', 'center': {'x': 5, 'y': -7}, 'radius': 3}),
        parse_cutout({'type': 'pcb_cutout', 'shape': 'polygon', 'points': triangle}),
    ]
    polygon_area = abs(signed_area([(p['x'], p['y']) for p in triangle]))
    expected = 1500 - 50 - math.pi * 9 - polygon_area
    assert abs(top_face_area(create_board_mesh(board, 1.6, cutouts=cutouts)) - expected) < 1.0


@pytest.mark.parametrize('bulge, sign', [(1.0, 1.0), (-1.0, -1.0)])
def test_bulged_polygon_cutout(bulge, sign):
    # 8 x 4 slot whose right edge is a semicircle of radius 2, out for
    # a positive bulge and in for a negative one
    points = [
        {'x': -4, 'y': -2},
        {'x': 4, 'y': -2, 'bulge': bulge},
        {'x': 4, 'y': 2},
        {'x': -4, 'y': 2},
    ]
    cutout = parse_cutout({'type': 'pcb_cutout', 'shape': 'polygon', 'points': points})
    assert cutout.has_arcs
    expected = 1500 - (32 + sign * 2 * math.pi)
    assert abs(top_face_area(create_board_mesh(_board(), 1.6, cutouts=[cutout])) - expected) < 0.1


def test_cutouts_for_other_boards_are_ignored():
    circuit = Circuit([
        board_record(),
        {'type': 'pcb_cutout', 'shape': 'circle', 'center': {'x': 0, 'y': 0}, 'radius': 2,
         'pcb_board_id': 'some_other_board'},
        {'type': 'pcb_cutout', 'shape': 'circle', 'center': {'x': 10, 'y': 0}, 'radius': 2},
    ])
    cutouts = circuit.cutouts_for(circuit.board)
    assert len(cutouts) == 1


def test_malformed_features_are_skipped():
    circuit = Circuit([
        board_record(),
        {'type': 'pcb_hole', 'hole_shape': 'circle', 'x': 0, 'y': 0},
        {'type': 'pcb_hole', 'hole_shape': 'circle', 'x': float('nan'), 'y': 0, 'hole_diameter': 1},
        {'type': 'pcb_hole', 'hole_shape': 'pill', 'x': 0, 'y': 0, 'hole_width': 2},
        {'type': 'pcb_cutout', 'shape': 'rect', 'center': {'x': 0, 'y': 0}, 'width': 'wide', 'height': 2},
        {'type': 'pcb_cutout', 'shape': 'hexagon'},
    ])
    assert circuit.holes() == []
    assert circuit.cutouts_for(circuit.board) == []
    mesh = create_board_mesh(circuit.board, 1.6, circuit.holes(), circuit.cutouts_for(circuit.board))
    assert top_face_area(mesh) == pytest.approx(1500, rel=1e-6)


@pytest.mark.parametrize('clockwise', [False, True])
def test_custom_outline_any_winding(clockwise):
    outline = [(0, 0), (20, 0), (20, 10), (10, 10), (10, 20), (0, 20)]
    if clockwise:
        outline.reverse()
    board = _board(center=(10.0, 10.0), outline=[{'x': x, 'y': y} for x, y in outline])
    mesh = create_board_mesh(board, 2.0)
    assert top_face_area(mesh) == pytest.approx(300, rel=1e-6)
    assert mesh.bounding_box.min[1] == pytest.approx(-1.0)
    assert mesh.bounding_box.max[1] == pytest.approx(1.0)


def test_board_local_frame_puts_circuit_y_on_scene_z():
    board = _board(width=50, height=30, center=(0.0, 0.0))
    hole = parse_hole(_hole(0.0, 10.0, 2.0))
    mesh = create_board_mesh(board, 1.6, [hole])
    # hole walls are the only near-vertical faces away from the outline
    wall_z = [v[2] for t in mesh.triangles if abs(t.normal[1]) < 0.5
              for v in t.vertices if abs(v[0]) < 2 and abs(v[2]) < 14]
    assert wall_z and all(8.5 < z < 11.5 for z in wall_z)


def test_panel_takes_holes():
    panel = Circuit([{'type': 'pcb_panel', 'pcb_panel_id': 'p', 'center': {'x': 0, 'y': 0},
                      'width': 100, 'height': 80}]).panel
    mesh = create_panel_mesh(panel, 1.6, [parse_hole(_hole(40, 30, 3.0))])
    assert mesh.bounding_box.size[0] == pytest.approx(100)
    assert mesh.bounding_box.size[2] == pytest.approx(80)
    assert abs(top_face_area(mesh) - (8000 - math.pi * 2.25)) < 1.0
