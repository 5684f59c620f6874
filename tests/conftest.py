import io
import struct

import pytest
from PIL import Image

from circuit3d.fetch import FetchError
from circuit3d.rasterize import RasterizationError


def png_bytes(width, height, color=(0, 0, 0, 0)):
    out = io.BytesIO()
    Image.new('RGBA', (width, height), color).save(out, format='PNG')
    return out.getvalue()


def binary_stl(triangles, name=b'part'):
    data = name.ljust(80, b' ') + struct.pack('<I', len(triangles))
    for tri in triangles:
        data += struct.pack('<12fH', *tri.normal, *tri.v0, *tri.v1, *tri.v2, 0)
    return data


def ascii_stl(triangles, name='part'):
    lines = [f'solid {name}']
    for tri in triangles:
        lines.append('  facet normal %g %g %g' % tri.normal)
        lines.append('    outer loop')
        lines.extend('      vertex %g %g %g' % v for v in tri.vertices)
        lines.append('    endloop')
        lines.append('  endfacet')
    lines.append(f'endsolid {name}')
    return '\n'.join(lines).encode('ascii')


class DictFetcher:
    """Serves bytes from a dict and records every request."""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.calls = []

    def __call__(self, reference):
        self.calls.append(reference)
        try:
            return self.files[reference]
        except KeyError:
            raise FetchError(f'no such file {reference}') from None


class FakeRasterizer:
    """Returns a blank PNG of the requested size, or fails on demand.

    ``error`` is raised as given, standing in for a backend that fails
    with its own exception type.
    """

    def __init__(self, fail=False, error=None):
        self.fail = fail
        self.error = error
        self.calls = []

    def __call__(self, svg, width, height=None, background=None):
        self.calls.append((svg, width, height, background))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise RasterizationError('rasterizer offline')
        return png_bytes(width, height or width)


@pytest.fixture
def fetcher():
    return DictFetcher()


@pytest.fixture
def rasterizer():
    return FakeRasterizer()


@pytest.fixture
def failing_rasterizer():
    return FakeRasterizer(fail=True)


@pytest.fixture
def crashing_rasterizer():
    return FakeRasterizer(error=ZeroDivisionError('float division by zero'))


@pytest.fixture
def stl_bytes():
    """Binary STL encoder for building model fixtures."""
    return binary_stl


@pytest.fixture
def ascii_stl_bytes():
    return ascii_stl
