import json

from circuit3d.cli import build_parser, main

CIRCUIT = [
    {'type': 'pcb_board', 'pcb_board_id': 'board_0', 'center': {'x': 0, 'y': 0}, 'width': 20, 'height': 10},
    {'type': 'pcb_component', 'pcb_component_id': 'pcb_1', 'center': {'x': 1, 'y': 1}, 'width': 2, 'height': 1},
]


def write_circuit(tmp_path, content):
    path = tmp_path / 'circuit.json'
    path.write_text(content if isinstance(content, str) else json.dumps(content), encoding='utf-8')
    return path


def test_writes_glb(tmp_path):
    source = write_circuit(tmp_path, CIRCUIT)
    output = tmp_path / 'out' / 'board.glb'
    assert main([str(source), '-o', str(output), '--no-textures']) == 0
    assert output.read_bytes()[:4] == b'glTF'


def test_writes_gltf_from_suffix(tmp_path):
    source = write_circuit(tmp_path, CIRCUIT)
    output = tmp_path / 'board.gltf'
    assert main([str(source), '-o', str(output), '--no-textures', '--no-bounding-boxes']) == 0
    document = json.loads(output.read_text(encoding='utf-8'))
    names = [node.get('name') for node in document['nodes']]
    assert 'board_0' in names and 'pcb_1' not in names


def test_missing_input(tmp_path, capsys):
    assert main([str(tmp_path / 'nope.json'), '-o', str(tmp_path / 'x.glb')]) == 1
    assert 'File not found' in capsys.readouterr().err


def test_invalid_json(tmp_path, capsys):
    source = write_circuit(tmp_path, '{not json')
    assert main([str(source), '-o', str(tmp_path / 'x.glb')]) == 1
    assert 'not valid JSON' in capsys.readouterr().err


def test_input_must_be_a_list(tmp_path, capsys):
    source = write_circuit(tmp_path, {'type': 'pcb_board'})
    assert main([str(source), '-o', str(tmp_path / 'x.glb')]) == 1
    assert 'JSON array' in capsys.readouterr().err


def test_bad_background_colour(tmp_path, capsys):
    source = write_circuit(tmp_path, CIRCUIT)
    assert main([str(source), '-o', str(tmp_path / 'x.glb'), '--no-textures', '--background', 'no-such-colour']) == 1
    assert capsys.readouterr().err.startswith('Error:')


def test_parser_defaults():
    args = build_parser().parse_args(['in.json', '-o', 'out.glb'])
    assert args.format is None
    assert args.layers == 'texture'
    assert args.bounding_boxes is True
    assert args.labels is False
