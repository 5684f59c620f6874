"""Command line front-end: ``circuit3d INPUT.json -o OUTPUT.glb``."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from circuit3d.config import ConversionOptions, DEFAULT_TEXTURE_RESOLUTION
from circuit3d.converter import convert_circuit_to_gltf
from circuit3d.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _infer_format(output: Path, requested: Optional[str]) -> str:
    if requested:
        return requested
    return "gltf" if output.suffix.lower() == ".gltf" else "glb"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='circuit3d',
        description='Convert circuit JSON into a 3D glTF/GLB scene',
    )
    parser.add_argument('input', help='circuit JSON file')
    parser.add_argument('-o', '--output', metavar='FILE', required=True,
                        help='output file (.glb or .gltf)')
    parser.add_argument('--format', choices=('glb', 'gltf'),
                        help='output container (default: from the output suffix)')
    parser.add_argument('--texture-resolution', type=int, default=DEFAULT_TEXTURE_RESOLUTION, metavar='N',
                        help='board texture width in pixels')
    parser.add_argument('--no-textures', action='store_true',
                        help='skip board textures and use a flat board colour')
    parser.add_argument('--layers', choices=('texture', 'geometry'), default='texture',
                        help='bake copper into textures or emit it as geometry')
    parser.add_argument('--bounding-boxes', action=argparse.BooleanOptionalAction, default=True,
                        help='placeholder boxes for components without a model')
    parser.add_argument('--labels', action='store_true',
                        help='draw component names on placeholder boxes')
    parser.add_argument('--background', metavar='COLOR',
                        help='background colour recorded in the scene')
    parser.add_argument('--log-level', default='WARNING', metavar='LEVEL',
                        help='logging level (default: WARNING)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    source = Path(args.input)
    output = Path(args.output)
    try:
        elements = json.loads(source.read_text(encoding='utf-8'))
    except FileNotFoundError:
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: {source} is not valid JSON: {e}", file=sys.stderr)
        return 1
    if not isinstance(elements, list):
        print(f"Error: {source} must contain a JSON array of circuit elements", file=sys.stderr)
        return 1

    try:
        options = ConversionOptions(
            format=_infer_format(output, args.format),
            texture_resolution=args.texture_resolution,
            render_board_textures=not args.no_textures,
            layer_rendering=args.layers,
            show_bounding_boxes=args.bounding_boxes,
            render_labels=args.labels,
            background_color=args.background,
        )
        result = convert_circuit_to_gltf(elements, options)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(result, bytes):
        output.write_bytes(result)
    else:
        output.write_text(json.dumps(result), encoding='utf-8')
    logger.info("wrote %s", output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
