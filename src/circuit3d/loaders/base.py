"""Shared pieces of the model loaders: errors, the mesh cache and fetching."""

from __future__ import annotations

import logging
import struct
from typing import Callable, Hashable, Optional

from circuit3d.cache import LRUCache
from circuit3d.fetch import Fetcher, FetchError, decode_data_uri
from circuit3d.geometry_utils import Mesh
from circuit3d.xform import CoordinateTransform

logger = logging.getLogger(__name__)

# errors raised while turning bytes into triangles
PARSE_ERRORS = (FetchError, OSError, ValueError, UnicodeDecodeError, struct.error, KeyError, TypeError,
                IndexError, AttributeError)


class ModelLoadError(RuntimeError):
    """A model reference could not be fetched or parsed."""

    def __init__(self, model_format: str, reference: str, cause: BaseException):
        super().__init__(f"failed to load {model_format} model {_short(reference)}: {cause}")
        self.model_format = model_format
        self.reference = reference
        self.cause = cause


def _short(reference: str, limit: int = 96) -> str:
    if reference.startswith("data:"):
        return reference[:32] + "..."
    return reference if len(reference) <= limit else reference[:limit] + "..."


class ModelCache(LRUCache[Mesh]):
    """Loaded meshes keyed by ``(format, reference, transform)``."""

    def __init__(self, max_entries: Optional[int] = None):
        super().__init__(max_entries, name="models")

    @staticmethod
    def key(model_format: str, reference: str, transform: Optional[CoordinateTransform]) -> Hashable:
        return model_format, reference, transform


def fetch_bytes(fetcher: Fetcher, reference: str) -> bytes:
    """Fetch through ``fetcher``, decoding ``data:`` URIs locally."""

    if reference.startswith("data:"):
        return decode_data_uri(reference)
    return fetcher(reference)


def cached_load(cache: ModelCache, model_format: str, reference: str,
                transform: Optional[CoordinateTransform], load: Callable[[], Mesh]) -> Mesh:
    """Run ``load`` through ``cache``; parse failures become :class:`ModelLoadError`."""

    def compute() -> Mesh:
        try:
            mesh = load()
        except PARSE_ERRORS as exc:
            raise ModelLoadError(model_format, reference, exc) from exc
        logger.debug("loaded %s model %s (%d triangles)", model_format, _short(reference), len(mesh))
        return mesh

    return cache.get_or_compute(ModelCache.key(model_format, reference, transform), compute)


__all__ = ["ModelLoadError", "ModelCache", "fetch_bytes", "cached_load", "PARSE_ERRORS"]
