"""Binary glTF model loader."""

from __future__ import annotations

from typing import Optional

from circuit3d.fetch import Fetcher
from circuit3d.geometry_utils import Mesh
from circuit3d.io.glb import parse_glb
from circuit3d.loaders.base import ModelCache, cached_load, fetch_bytes
from circuit3d.xform import GLB_Y_Z_SWAP, CoordinateTransform


def load_glb(reference: str, fetcher: Fetcher, cache: ModelCache,
             transform: Optional[CoordinateTransform] = None) -> Mesh:
    transform = transform if transform is not None else GLB_Y_Z_SWAP
    return cached_load(cache, "glb", reference, transform,
                       lambda: parse_glb(fetch_bytes(fetcher, reference), transform))


__all__ = ["load_glb"]
