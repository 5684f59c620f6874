"""Mesh loaders for externally referenced and procedural component models.

Every loader fetches through an injected :data:`~circuit3d.fetch.Fetcher`,
applies its format's default coordinate transform unless one is given
and memoises the parsed mesh in a shared :class:`ModelCache`.

>>> loader = ModelLoader()
>>> mesh = loader.load("footprinter", "0603")
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from circuit3d.fetch import Fetcher, HTTPFetcher
from circuit3d.geometry_utils import Mesh
from circuit3d.loaders.base import ModelCache, ModelLoadError
from circuit3d.loaders.footprinter import load_footprinter
from circuit3d.loaders.glb import load_glb
from circuit3d.loaders.gltf import load_gltf, pack_gltf
from circuit3d.loaders.obj import load_obj
from circuit3d.loaders.stl import load_stl
from circuit3d.xform import CoordinateTransform

FORMATS = ("stl", "obj", "glb", "gltf", "footprinter")


class ModelLoader:
    """Dispatches model references to the loader for their format."""

    def __init__(self, fetcher: Optional[Fetcher] = None, cache: Optional[ModelCache] = None):
        self.fetcher: Fetcher = fetcher if fetcher is not None else HTTPFetcher()
        self.cache = cache if cache is not None else ModelCache()
        self._loaders: Dict[str, Callable[..., Mesh]] = {
            "stl": lambda ref, t: load_stl(ref, self.fetcher, self.cache, t),
            "obj": lambda ref, t: load_obj(ref, self.fetcher, self.cache, t),
            "glb": lambda ref, t: load_glb(ref, self.fetcher, self.cache, t),
            "gltf": lambda ref, t: load_gltf(ref, self.fetcher, self.cache, t),
            "footprinter": lambda ref, t: load_footprinter(ref, self.cache, t),
        }

    def load(self, model_format: str, reference: str,
             transform: Optional[CoordinateTransform] = None) -> Mesh:
        """Load ``reference`` as ``model_format``; raises :class:`ModelLoadError`."""

        loader = self._loaders.get(model_format)
        if loader is None:
            expected = ", ".join(FORMATS)
            raise ModelLoadError(model_format, reference,
                                 ValueError(f"unsupported model format {model_format!r}, expected one of {expected}"))
        return loader(reference, transform)


__all__ = [
    "FORMATS",
    "ModelCache",
    "ModelLoadError",
    "ModelLoader",
    "load_stl",
    "load_obj",
    "load_glb",
    "load_gltf",
    "load_footprinter",
    "pack_gltf",
]
