"""STL parsing into triangle lists."""

from __future__ import annotations

import re
import struct
from typing import List

from circuit3d.geometry_utils import Triangle, face_normal

_STRUCT_TRIANGLE = struct.Struct('<12fH')

_NUMBER = r'([eE\d.+-]+)'
_FACET_PATTERN = re.compile(
    r'facet\s+normal\s+' + r'\s+'.join([_NUMBER] * 3) + r'\s+'
    r'outer\s+loop\s+'
    r'vertex\s+' + r'\s+'.join([_NUMBER] * 3) + r'\s+'
    r'vertex\s+' + r'\s+'.join([_NUMBER] * 3) + r'\s+'
    r'vertex\s+' + r'\s+'.join([_NUMBER] * 3) + r'\s+'
    r'endloop\s+endfacet',
    re.IGNORECASE
)


def is_binary_stl(data: bytes) -> bool:
    """Determine if STL data is binary format.

    Binary STL has 80-byte header + 4-byte count, then 50 bytes per triangle.
    ASCII STL starts with 'solid' keyword, but so do some binary headers,
    so the size check decides.
    """
    if len(data) < 84:
        return False

    header = data[:80].decode('ascii', errors='ignore').strip().lower()
    if not header.startswith('solid'):
        return True
    tri_count = struct.unpack('<I', data[80:84])[0]
    if len(data) != 84 + tri_count * 50:
        return False
    rest = data[84:min(200, len(data))]
    return not (b'facet' in rest or b'vertex' in rest)


def _checked_normal(normal, v0, v1, v2):
    # zero normals are common in exported STLs
    if normal == (0.0, 0.0, 0.0):
        return face_normal(v0, v1, v2)
    return normal


def parse_binary_stl(data: bytes) -> List[Triangle]:
    if len(data) < 84:
        raise ValueError("Invalid binary STL: file too small")

    tri_count = struct.unpack('<I', data[80:84])[0]
    triangles = []
    offset = 84
    for _ in range(tri_count):
        if offset + 50 > len(data):
            break
        values = _STRUCT_TRIANGLE.unpack(data[offset:offset + 50])
        v0, v1, v2 = values[3:6], values[6:9], values[9:12]
        triangles.append(Triangle(v0=v0, v1=v1, v2=v2, normal=_checked_normal(values[0:3], v0, v1, v2)))
        offset += 50
    return triangles


def parse_ascii_stl(text: str) -> List[Triangle]:
    triangles = []
    for match in _FACET_PATTERN.finditer(text):
        values = tuple(float(g) for g in match.groups())
        v0, v1, v2 = values[3:6], values[6:9], values[9:12]
        triangles.append(Triangle(v0=v0, v1=v1, v2=v2, normal=_checked_normal(values[0:3], v0, v1, v2)))
    return triangles


def parse_stl(data: bytes) -> List[Triangle]:
    """Parse binary or ASCII STL bytes into triangles."""

    if is_binary_stl(data):
        return parse_binary_stl(data)
    return parse_ascii_stl(data.decode('utf-8', errors='replace'))


__all__ = ['parse_stl', 'parse_binary_stl', 'parse_ascii_stl', 'is_binary_stl']
