"""Wavefront OBJ and MTL parsing.

Only geometry and diffuse colour are read: ``v`` and ``f`` records,
``mtllib``/``usemtl`` for materials, and ``Kd``/``d``/``Tr`` from the
material library.  Polygonal faces are fan-triangulated.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from circuit3d.geometry_utils import Color, Triangle, Vec3, face_normal


def parse_mtl(text: str) -> Dict[str, Color]:
    """Map material names to their diffuse RGBA colour."""

    colors: Dict[str, list] = {}
    current: Optional[str] = None
    for raw in text.splitlines():
        parts = raw.split('#', 1)[0].split()
        if not parts:
            continue
        keyword, args = parts[0], parts[1:]
        if keyword == 'newmtl' and args:
            current = ' '.join(args)
            colors[current] = [204, 204, 204, 1.0]
        elif current is None:
            continue
        elif keyword == 'Kd' and len(args) >= 3:
            colors[current][:3] = [int(round(float(c) * 255)) for c in args[:3]]
        elif keyword == 'd' and args:
            colors[current][3] = float(args[0])
        elif keyword == 'Tr' and args:
            colors[current][3] = 1.0 - float(args[0])
    return {name: tuple(rgba) for name, rgba in colors.items()}


def material_libraries(text: str) -> List[str]:
    """Names referenced by ``mtllib`` statements, in order."""

    libs = []
    for raw in text.splitlines():
        parts = raw.split('#', 1)[0].split(None, 1)
        if len(parts) == 2 and parts[0] == 'mtllib':
            libs.append(parts[1].strip())
    return libs


def _vertex_index(token: str, count: int) -> int:
    index = int(token.split('/', 1)[0])
    # OBJ indices are 1-based; negative ones count back from the end
    return index - 1 if index > 0 else count + index


def parse_obj(text: str, materials: Optional[Mapping[str, Color]] = None) -> List[Triangle]:
    """Triangles of every face in ``text``, coloured by their active material."""

    materials = materials or {}
    vertices: List[Vec3] = []
    triangles: List[Triangle] = []
    color: Optional[Color] = None

    for line_no, raw in enumerate(text.splitlines(), 1):
        parts = raw.split('#', 1)[0].split()
        if not parts:
            continue
        keyword = parts[0]
        if keyword == 'v' and len(parts) >= 4:
            vertices.append((float(parts[1]), float(parts[2]), float(parts[3])))
        elif keyword == 'usemtl':
            color = materials.get(' '.join(parts[1:])) if len(parts) > 1 else None
        elif keyword == 'f' and len(parts) >= 4:
            try:
                ids = [_vertex_index(token, len(vertices)) for token in parts[1:]]
                corners = [vertices[i] for i in ids]
            except (ValueError, IndexError) as exc:
                raise ValueError(f"bad face on line {line_no}: {raw.strip()!r}") from exc
            for i in range(1, len(corners) - 1):
                v0, v1, v2 = corners[0], corners[i], corners[i + 1]
                triangles.append(Triangle(v0, v1, v2, face_normal(v0, v1, v2), color=color))
    return triangles


__all__ = ['parse_obj', 'parse_mtl', 'material_libraries']
