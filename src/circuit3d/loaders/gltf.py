"""JSON glTF model loader.

The document's buffers are fetched (external files resolved relative to
the document, data URIs decoded in place), concatenated into a single
4-byte aligned payload and the buffer views rebased onto it.  The
result is packed into a GLB container and parsed by the binary codec,
so both flavours share one accessor implementation.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Optional

from circuit3d.fetch import Fetcher, resolve_reference
from circuit3d.geometry_utils import Mesh
from circuit3d.io.glb import GLBFormatError, encode_glb, parse_glb
from circuit3d.loaders.base import ModelCache, cached_load, fetch_bytes
from circuit3d.xform import GLB_Y_Z_SWAP, CoordinateTransform


def pack_gltf(document: Dict[str, Any], fetcher: Fetcher, base: Optional[str] = None) -> bytes:
    """Inline every buffer of ``document`` and return it as GLB bytes."""

    document = copy.deepcopy(document)
    payload = bytearray()
    offsets = []
    for index, buffer in enumerate(document.get("buffers") or []):
        uri = buffer.get("uri")
        if not uri:
            raise GLBFormatError(f"buffer {index} has no uri")
        data = fetch_bytes(fetcher, resolve_reference(uri, base))
        length = int(buffer.get("byteLength", len(data)))
        if len(data) < length:
            raise GLBFormatError(f"buffer {index} is truncated ({len(data)} < {length} bytes)")
        payload.extend(b"\x00" * ((4 - len(payload) % 4) % 4))
        offsets.append(len(payload))
        payload.extend(data[:length])

    for view in document.get("bufferViews") or []:
        source = int(view.get("buffer", 0))
        if not 0 <= source < len(offsets):
            raise GLBFormatError(f"buffer view references missing buffer {source}")
        view["buffer"] = 0
        view["byteOffset"] = int(view.get("byteOffset", 0)) + offsets[source]

    if payload:
        document["buffers"] = [{"byteLength": len(payload)}]
    else:
        document.pop("buffers", None)
    return encode_glb(document, bytes(payload))


def load_gltf(reference: str, fetcher: Fetcher, cache: ModelCache,
              transform: Optional[CoordinateTransform] = None) -> Mesh:
    transform = transform if transform is not None else GLB_Y_Z_SWAP

    def load() -> Mesh:
        document = json.loads(fetch_bytes(fetcher, reference).decode("utf-8"))
        if not isinstance(document, dict):
            raise GLBFormatError("glTF document is not a JSON object")
        base = None if reference.startswith("data:") else reference
        return parse_glb(pack_gltf(document, fetcher, base), transform)

    return cached_load(cache, "gltf", reference, transform, load)


__all__ = ["load_gltf", "pack_gltf"]
