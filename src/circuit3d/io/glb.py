"""Binary glTF (GLB) container: parsing to triangle meshes and chunk packing.

Layout of a GLB file::

    header  magic 'glTF' | version (2) | total length      (3 x uint32 LE)
    chunk 0 length | 'JSON' | UTF-8 JSON, space padded to 4 bytes
    chunk 1 length | 'BIN\\0' | payload, zero padded to 4 bytes (optional)

Only the mesh-level geometry is read: node hierarchies, skins and
morph targets are ignored.
"""

from __future__ import annotations

import json
import math
import struct
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from circuit3d.geometry_utils import Color, Mesh, Triangle, group_by_color
from circuit3d.xform import GLB_Y_Z_SWAP, CoordinateTransform, transform_triangles

GLB_MAGIC = 0x46546C67  # 'glTF'
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A  # 'JSON'
CHUNK_BIN = 0x004E4942  # 'BIN\0'

MODE_TRIANGLES = 4

COMPONENT_DTYPES = {
    5120: np.dtype('<i1'),  # BYTE
    5121: np.dtype('<u1'),  # UNSIGNED_BYTE
    5122: np.dtype('<i2'),  # SHORT
    5123: np.dtype('<u2'),  # UNSIGNED_SHORT
    5124: np.dtype('<i4'),  # INT, not in the glTF core set but seen in the wild
    5125: np.dtype('<u4'),  # UNSIGNED_INT
    5126: np.dtype('<f4'),  # FLOAT
}

TYPE_COMPONENTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}

_HEADER = struct.Struct('<III')
_CHUNK_HEADER = struct.Struct('<II')


class GLBFormatError(ValueError):
    """The data is not a readable GLB container."""


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


def _pad(data: bytes, fill: bytes) -> bytes:
    return data + fill * ((4 - len(data) % 4) % 4)


def encode_glb(document: Dict[str, Any], binary: Optional[bytes] = None) -> bytes:
    """Pack a glTF JSON document and its binary payload into a GLB container.

    The BIN chunk is omitted when ``binary`` is empty.
    """

    json_chunk = _pad(json.dumps(document, separators=(',', ':')).encode('utf-8'), b' ')
    chunks = [_CHUNK_HEADER.pack(len(json_chunk), CHUNK_JSON), json_chunk]
    if binary:
        bin_chunk = _pad(bytes(binary), b'\x00')
        chunks += [_CHUNK_HEADER.pack(len(bin_chunk), CHUNK_BIN), bin_chunk]
    body = b''.join(chunks)
    return _HEADER.pack(GLB_MAGIC, GLB_VERSION, _HEADER.size + len(body)) + body


def decode_glb(data: bytes) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """Split a GLB container into its JSON document and BIN payload.

    The payload is ``None`` when the container has no BIN chunk.
    """

    data = bytes(data)
    if len(data) < _HEADER.size:
        raise GLBFormatError("truncated GLB: missing header")
    magic, version, length = _HEADER.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise GLBFormatError(f"invalid GLB magic 0x{magic:08x}")
    if version != GLB_VERSION:
        raise GLBFormatError(f"unsupported GLB version {version}")
    if length > len(data):
        raise GLBFormatError(f"truncated GLB: header declares {length} bytes, got {len(data)}")

    offset = _HEADER.size
    if offset + _CHUNK_HEADER.size > length:
        raise GLBFormatError("truncated GLB: missing JSON chunk")
    json_length, json_type = _CHUNK_HEADER.unpack_from(data, offset)
    offset += _CHUNK_HEADER.size
    if json_type != CHUNK_JSON:
        raise GLBFormatError(f"first chunk must be JSON, got 0x{json_type:08x}")
    if offset + json_length > length:
        raise GLBFormatError("truncated GLB: JSON chunk overruns container")
    try:
        document = json.loads(data[offset:offset + json_length].decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise GLBFormatError(f"malformed JSON chunk: {exc}") from exc
    if not isinstance(document, dict):
        raise GLBFormatError("JSON chunk is not an object")
    offset += json_length

    binary = None
    if offset + _CHUNK_HEADER.size <= length:
        bin_length, bin_type = _CHUNK_HEADER.unpack_from(data, offset)
        offset += _CHUNK_HEADER.size
        if bin_type == CHUNK_BIN:
            if offset + bin_length > length:
                raise GLBFormatError("truncated GLB: BIN chunk overruns container")
            binary = data[offset:offset + bin_length]
    return document, binary


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------


def _normalize_integers(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    info = np.iinfo(dtype)
    scaled = values.astype(np.float64) / float(info.max)
    if info.min < 0:
        scaled = np.maximum(scaled, -1.0)
    return scaled


def read_accessor(document: Dict[str, Any], binary: Optional[bytes], index: int) -> np.ndarray:
    """Decode accessor ``index`` into a ``(count, components)`` float array.

    Integer accessors flagged ``normalized`` are mapped to [0, 1] (unsigned)
    or [-1, 1] (signed).
    """

    accessors = document.get('accessors') or []
    if not isinstance(index, int) or not 0 <= index < len(accessors):
        raise GLBFormatError(f"accessor {index} does not exist")
    accessor = accessors[index]

    component_type = accessor.get('componentType')
    dtype = COMPONENT_DTYPES.get(component_type)
    if dtype is None:
        raise GLBFormatError(f"unknown accessor component type {component_type}")
    components = TYPE_COMPONENTS.get(accessor.get('type', 'SCALAR'), 1)
    count = int(accessor.get('count', 0))

    if accessor.get('bufferView') is None or count == 0:
        # per glTF, an accessor without a buffer view reads as zeros
        return np.zeros((count, components), dtype=np.float64)

    views = document.get('bufferViews') or []
    view_index = accessor['bufferView']
    if not 0 <= view_index < len(views):
        raise GLBFormatError(f"buffer view {view_index} does not exist")
    if binary is None:
        raise GLBFormatError("accessor references binary data but the container has no BIN chunk")
    view = views[view_index]

    element_size = dtype.itemsize * components
    stride = int(view.get('byteStride') or element_size)
    start = int(view.get('byteOffset', 0)) + int(accessor.get('byteOffset', 0))
    end = start + (count - 1) * stride + element_size
    if end > len(binary):
        raise GLBFormatError(f"accessor {index} overruns the binary payload ({end} > {len(binary)})")

    raw = np.ndarray(
        shape=(count, components),
        dtype=dtype,
        buffer=binary,
        offset=start,
        strides=(stride, dtype.itemsize),
    )
    if accessor.get('normalized') and dtype.kind in 'iu':
        return _normalize_integers(raw, dtype)
    return raw.astype(np.float64)


# ---------------------------------------------------------------------------
# Triangles
# ---------------------------------------------------------------------------


def _round_channel(value: float) -> int:
    return int(math.floor(value * 255.0 + 0.5))


def _material_color(document: Dict[str, Any], material_index: Optional[int]) -> Optional[Color]:
    if material_index is None:
        return None
    materials = document.get('materials') or []
    if not 0 <= material_index < len(materials):
        return None
    factor = (materials[material_index].get('pbrMetallicRoughness') or {}).get('baseColorFactor')
    if not factor or len(factor) < 3:
        return None
    alpha = float(factor[3]) if len(factor) > 3 else 1.0
    return _round_channel(factor[0]), _round_channel(factor[1]), _round_channel(factor[2]), alpha


def _vertex_attribute(document: Dict[str, Any], binary: Optional[bytes], index: int,
                      name: str, vertex_count: int) -> np.ndarray:
    values = read_accessor(document, binary, index)
    if len(values) < vertex_count:
        raise GLBFormatError(f"{name} accessor has {len(values)} entries for {vertex_count} vertices")
    return values


def _primitive_triangles(document: Dict[str, Any], binary: Optional[bytes],
                         primitive: Dict[str, Any]) -> List[Triangle]:
    attributes = primitive.get('attributes') or {}
    if attributes.get('POSITION') is None:
        raise GLBFormatError("primitive has no POSITION accessor")
    positions = read_accessor(document, binary, attributes['POSITION'])[:, :3]
    vertex_count = len(positions)

    if primitive.get('indices') is not None:
        indices = read_accessor(document, binary, primitive['indices']).reshape(-1).astype(np.int64)
    else:
        indices = np.arange(vertex_count, dtype=np.int64)
    usable = len(indices) - len(indices) % 3
    faces = indices[:usable].reshape(-1, 3)
    if len(faces) and (faces.min() < 0 or faces.max() >= vertex_count):
        raise GLBFormatError("primitive index out of range")

    corners = positions[faces]  # (n, 3, 3)
    if attributes.get('NORMAL') is not None:
        normals = _vertex_attribute(document, binary, attributes['NORMAL'], 'NORMAL', vertex_count)
        normals = normals[:, :3][faces].mean(axis=1)
    else:
        normals = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])

    colors: List[Optional[Color]]
    if attributes.get('COLOR_0') is not None:
        vertex_colors = _vertex_attribute(document, binary, attributes['COLOR_0'], 'COLOR_0', vertex_count)
        vertex_colors = vertex_colors[faces].mean(axis=1)
        colors = []
        for rgba in vertex_colors.tolist():
            alpha = float(rgba[3]) if len(rgba) > 3 else 1.0
            colors.append((_round_channel(rgba[0]), _round_channel(rgba[1]), _round_channel(rgba[2]), alpha))
    else:
        colors = [_material_color(document, primitive.get('material'))] * len(faces)

    triangles = []
    for (v0, v1, v2), normal, color in zip(corners.tolist(), normals.tolist(), colors):
        triangles.append(Triangle(tuple(v0), tuple(v1), tuple(v2), tuple(normal), color=color))
    return triangles


def extract_triangles(document: Dict[str, Any], binary: Optional[bytes]) -> List[Triangle]:
    """Every triangle-list primitive of every mesh, in document order."""

    triangles: List[Triangle] = []
    for mesh in document.get('meshes') or []:
        for primitive in mesh.get('primitives') or []:
            if primitive.get('mode', MODE_TRIANGLES) != MODE_TRIANGLES:
                continue
            triangles.extend(_primitive_triangles(document, binary, primitive))
    return triangles


def build_mesh(triangles: List[Triangle]) -> Mesh:
    """Multi-material mesh when any triangle is coloured, plain mesh otherwise."""

    if any(tri.color is not None for tri in triangles):
        return group_by_color(triangles)
    return Mesh(triangles=tuple(triangles))


def parse_glb(data: bytes, transform: Optional[CoordinateTransform] = None) -> Mesh:
    """Parse GLB bytes into a mesh in scene coordinates.

    Without an explicit ``transform`` the Y and Z axes are swapped.
    """

    document, binary = decode_glb(data)
    triangles = extract_triangles(document, binary)
    triangles = transform_triangles(triangles, transform if transform is not None else GLB_Y_Z_SWAP)
    return build_mesh(triangles)


__all__ = [
    'GLBFormatError',
    'GLB_MAGIC',
    'GLB_VERSION',
    'CHUNK_JSON',
    'CHUNK_BIN',
    'COMPONENT_DTYPES',
    'encode_glb',
    'decode_glb',
    'read_accessor',
    'extract_triangles',
    'build_mesh',
    'parse_glb',
]
