"""OBJ model loader.

Material libraries named by ``mtllib`` are resolved relative to the OBJ
reference.  A library that cannot be fetched leaves its faces
uncoloured rather than failing the model.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from circuit3d.fetch import Fetcher, FetchError, resolve_reference
from circuit3d.geometry_utils import Color, Mesh
from circuit3d.io.glb import build_mesh
from circuit3d.io.obj import material_libraries, parse_mtl, parse_obj
from circuit3d.loaders.base import ModelCache, cached_load, fetch_bytes
from circuit3d.xform import OBJ_Z_UP_TO_Y_UP, CoordinateTransform, transform_triangles

logger = logging.getLogger(__name__)


def _load_materials(text: str, reference: str, fetcher: Fetcher) -> Dict[str, Color]:
    materials: Dict[str, Color] = {}
    for library in material_libraries(text):
        location = resolve_reference(library, None if reference.startswith("data:") else reference)
        try:
            materials.update(parse_mtl(fetch_bytes(fetcher, location).decode("utf-8", errors="replace")))
        except FetchError as exc:
            logger.warning("material library %s unavailable: %s", library, exc)
    return materials


def load_obj(reference: str, fetcher: Fetcher, cache: ModelCache,
             transform: Optional[CoordinateTransform] = None) -> Mesh:
    transform = transform if transform is not None else OBJ_Z_UP_TO_Y_UP

    def load() -> Mesh:
        text = fetch_bytes(fetcher, reference).decode("utf-8", errors="replace")
        triangles = parse_obj(text, _load_materials(text, reference, fetcher))
        return build_mesh(transform_triangles(triangles, transform))

    return cached_load(cache, "obj", reference, transform, load)


__all__ = ["load_obj"]
