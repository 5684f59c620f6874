"""Incremental glTF 2.0 document builder.

All binary data goes into a single buffer; every buffer view starts on a
4-byte boundary so any component type can be addressed.  The finished
document is emitted either as a GLB container or as JSON with the
buffer inlined as a base64 data URI.
"""

from __future__ import annotations

import base64
import copy
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from circuit3d.geometry_utils import Color, Triangle
from circuit3d.io.glb import encode_glb

FLOAT = 5126
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

_TYPES = {1: 'SCALAR', 2: 'VEC2', 3: 'VEC3', 4: 'VEC4'}
_DTYPES = {FLOAT: np.dtype('<f4'), UNSIGNED_SHORT: np.dtype('<u2'), UNSIGNED_INT: np.dtype('<u4')}

GENERATOR = 'circuit3d'


def color_factor(color: Color) -> List[float]:
    r, g, b, a = color
    return [r / 255.0, g / 255.0, b / 255.0, float(a)]


def unit_normal(tri: Triangle) -> Tuple[float, float, float]:
    nx, ny, nz = tri.normal
    length = math.sqrt(nx * nx + ny * ny + nz * nz)
    if length == 0.0:
        (ax, ay, az), (bx, by, bz), (cx, cy, cz) = tri.vertices
        ux, uy, uz = bx - ax, by - ay, bz - az
        vx, vy, vz = cx - ax, cy - ay, cz - az
        nx, ny, nz = uy * vz - uz * vy, uz * vx - ux * vz, ux * vy - uy * vx
        length = math.sqrt(nx * nx + ny * ny + nz * nz)
        if length == 0.0:
            return 0.0, 1.0, 0.0
    return nx / length, ny / length, nz / length


class GLTFBuilder:
    """Accumulates glTF objects and their binary payload."""

    def __init__(self, generator: str = GENERATOR):
        self.document: Dict[str, Any] = {
            'asset': {'version': '2.0', 'generator': generator},
            'scene': 0,
            'scenes': [{'nodes': []}],
        }
        self._data = bytearray()
        self._materials: Dict[Tuple, int] = {}

    def _list(self, key: str) -> list:
        return self.document.setdefault(key, [])

    # -- binary -----------------------------------------------------------

    def add_buffer_view(self, data: bytes, target: Optional[int] = None) -> int:
        self._data.extend(b'\x00' * ((4 - len(self._data) % 4) % 4))
        view = {'buffer': 0, 'byteOffset': len(self._data), 'byteLength': len(data)}
        if target is not None:
            view['target'] = target
        self._data.extend(data)
        views = self._list('bufferViews')
        views.append(view)
        return len(views) - 1

    def add_accessor(self, values: np.ndarray, component_type: int = FLOAT, *,
                     target: Optional[int] = None, with_bounds: bool = False) -> int:
        """Store a ``(count, components)`` (or flat scalar) array as an accessor."""

        array = np.asarray(values)
        if array.ndim == 1:
            array = array.reshape(-1, 1)
        array = np.ascontiguousarray(array, dtype=_DTYPES[component_type])
        view = self.add_buffer_view(array.tobytes(), target)
        accessor: Dict[str, Any] = {
            'bufferView': view,
            'componentType': component_type,
            'count': int(array.shape[0]),
            'type': _TYPES[array.shape[1]],
        }
        if with_bounds and len(array):
            accessor['min'] = [float(v) for v in array.min(axis=0)]
            accessor['max'] = [float(v) for v in array.max(axis=0)]
        accessors = self._list('accessors')
        accessors.append(accessor)
        return len(accessors) - 1

    # -- materials and textures -----------------------------------------

    def add_image_texture(self, png: bytes, name: Optional[str] = None,
                          mime_type: str = 'image/png') -> int:
        view = self.add_buffer_view(png)
        images = self._list('images')
        image: Dict[str, Any] = {'bufferView': view, 'mimeType': mime_type}
        if name:
            image['name'] = name
        images.append(image)
        samplers = self._list('samplers')
        if not samplers:
            samplers.append({'magFilter': 9729, 'minFilter': 9987, 'wrapS': 33071, 'wrapT': 33071})
        textures = self._list('textures')
        textures.append({'sampler': 0, 'source': len(images) - 1})
        return len(textures) - 1

    def add_material(self, color: Color, *, name: Optional[str] = None,
                     texture: Optional[int] = None, double_sided: bool = True,
                     unlit: bool = False) -> int:
        """Metallic-roughness material; identical requests share one material."""

        key = (tuple(color), name, texture, double_sided, unlit)
        if key in self._materials:
            return self._materials[key]
        pbr: Dict[str, Any] = {
            'baseColorFactor': color_factor(color),
            'metallicFactor': 0.0,
            'roughnessFactor': 0.8,
        }
        if texture is not None:
            pbr['baseColorTexture'] = {'index': texture}
        material: Dict[str, Any] = {'pbrMetallicRoughness': pbr, 'doubleSided': double_sided}
        if name:
            material['name'] = name
        if color[3] < 1.0 or texture is not None:
            material['alphaMode'] = 'BLEND'
        if unlit:
            material['extensions'] = {'KHR_materials_unlit': {}}
            self.use_extension('KHR_materials_unlit')
        materials = self._list('materials')
        materials.append(material)
        self._materials[key] = len(materials) - 1
        return len(materials) - 1

    # -- meshes and nodes -------------------------------------------------

    def add_primitive(self, positions: np.ndarray, normals: np.ndarray, material: Optional[int] = None,
                      *, uvs: Optional[np.ndarray] = None, indices: Optional[np.ndarray] = None) -> Dict[str, Any]:
        primitive: Dict[str, Any] = {
            'attributes': {
                'POSITION': self.add_accessor(positions, target=ARRAY_BUFFER, with_bounds=True),
                'NORMAL': self.add_accessor(normals, target=ARRAY_BUFFER),
            },
            'mode': 4,
        }
        if uvs is not None:
            primitive['attributes']['TEXCOORD_0'] = self.add_accessor(uvs, target=ARRAY_BUFFER)
        if indices is not None:
            component = UNSIGNED_SHORT if len(positions) < 65536 else UNSIGNED_INT
            primitive['indices'] = self.add_accessor(np.asarray(indices).reshape(-1), component,
                                                     target=ELEMENT_ARRAY_BUFFER)
        if material is not None:
            primitive['material'] = material
        return primitive

    def add_triangles(self, groups: Iterable[Tuple[Sequence[Triangle], Color]], *,
                      force_indices: bool = False, name: Optional[str] = None) -> Optional[int]:
        """Add a mesh with one primitive per ``(triangles, colour)`` group.

        Returns ``None`` when every group is empty.
        """

        primitives = []
        for triangles, color in groups:
            if not triangles:
                continue
            positions = np.array([v for tri in triangles for v in tri.vertices], dtype=np.float64)
            normals = np.repeat(np.array([unit_normal(tri) for tri in triangles], dtype=np.float64), 3, axis=0)
            indices = np.arange(len(positions)) if force_indices else None
            primitives.append(self.add_primitive(positions, normals, self.add_material(color), indices=indices))
        if not primitives:
            return None
        return self.add_mesh(primitives, name)

    def add_mesh(self, primitives: List[Dict[str, Any]], name: Optional[str] = None) -> int:
        mesh: Dict[str, Any] = {'primitives': primitives}
        if name:
            mesh['name'] = name
        meshes = self._list('meshes')
        meshes.append(mesh)
        return len(meshes) - 1

    def add_node(self, node: Dict[str, Any], *, root: bool = True) -> int:
        nodes = self._list('nodes')
        nodes.append(node)
        index = len(nodes) - 1
        if root:
            self.document['scenes'][0]['nodes'].append(index)
        return index

    def add_camera(self, camera: Dict[str, Any]) -> int:
        cameras = self._list('cameras')
        cameras.append(camera)
        return len(cameras) - 1

    def use_extension(self, name: str) -> None:
        used = self._list('extensionsUsed')
        if name not in used:
            used.append(name)

    # -- output -----------------------------------------------------------

    def _finished(self) -> Dict[str, Any]:
        document = copy.deepcopy(self.document)
        if self._data:
            document['buffers'] = [{'byteLength': len(self._data)}]
        return document

    def to_glb(self) -> bytes:
        return encode_glb(self._finished(), bytes(self._data))

    def to_gltf(self) -> Dict[str, Any]:
        """JSON document with the buffer embedded as a data URI."""

        document = self._finished()
        if self._data:
            encoded = base64.b64encode(bytes(self._data)).decode('ascii')
            document['buffers'][0]['uri'] = f'data:application/octet-stream;base64,{encoded}'
        return document


__all__ = ['GLTFBuilder', 'color_factor', 'unit_normal', 'FLOAT', 'UNSIGNED_SHORT', 'UNSIGNED_INT']
