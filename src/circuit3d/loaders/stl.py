"""STL model loader."""

from __future__ import annotations

from typing import Optional

from circuit3d.fetch import Fetcher
from circuit3d.geometry_utils import Mesh
from circuit3d.io.stl import parse_stl
from circuit3d.loaders.base import ModelCache, cached_load, fetch_bytes
from circuit3d.xform import Z_UP_TO_Y_UP_USB_FIX, CoordinateTransform, transform_triangles


def load_stl(reference: str, fetcher: Fetcher, cache: ModelCache,
             transform: Optional[CoordinateTransform] = None) -> Mesh:
    transform = transform if transform is not None else Z_UP_TO_Y_UP_USB_FIX

    def load() -> Mesh:
        triangles = parse_stl(fetch_bytes(fetcher, reference))
        return Mesh(triangles=tuple(transform_triangles(triangles, transform)))

    return cached_load(cache, "stl", reference, transform, load)


__all__ = ["load_stl"]
