"""Models synthesised from footprint descriptor strings.

The procedural body is encoded to GLB and parsed back through the
binary codec, so footprint models go through exactly the same
material grouping and axis conversion as downloaded GLB models.
"""

from __future__ import annotations

from typing import Optional

from circuit3d.footprints import footprint_glb
from circuit3d.geometry_utils import Mesh
from circuit3d.io.glb import parse_glb
from circuit3d.loaders.base import ModelCache, cached_load
from circuit3d.xform import FOOTPRINTER_MODEL_TRANSFORM, CoordinateTransform


def load_footprinter(descriptor: str, cache: ModelCache,
                     transform: Optional[CoordinateTransform] = None) -> Mesh:
    transform = transform if transform is not None else FOOTPRINTER_MODEL_TRANSFORM
    return cached_load(cache, "footprinter", descriptor, transform,
                       lambda: parse_glb(footprint_glb(descriptor), transform))


__all__ = ["load_footprinter"]
