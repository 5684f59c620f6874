"""Trimesh-backed boolean subtraction for board solids.

Solids are ``trimesh.Trimesh`` instances; booleans are dispatched via
:mod:`trimesh.boolean` to the ``manifold3d`` backend, which is exact
enough that coplanar-free cutters produce clean through-holes.
"""

from __future__ import annotations

from typing import Sequence

import trimesh

ENGINE_NAME = "manifold"


def engines_available() -> set[str]:
    """Return the set of trimesh boolean backends that are operational."""

    return set(trimesh.boolean.engines_available)


def subtract(base: trimesh.Trimesh, tools: Sequence[trimesh.Trimesh], *,
             backend: str = ENGINE_NAME) -> trimesh.Trimesh:
    """Subtract the union of ``tools`` from ``base`` in one operation.

    With no tools ``base`` is returned untouched.
    """

    if not tools:
        return base

    available = engines_available()
    if backend not in available:
        raise RuntimeError(
            f"trimesh backend '{backend}' is not available; install manifold3d (available: {available})"
        )

    try:
        if len(tools) == 1:
            cutter = tools[0]
        else:
            cutter = trimesh.boolean.union(list(tools), engine=backend, check_volume=False)
        result = trimesh.boolean.difference([base, cutter], engine=backend, check_volume=False)
    except Exception as exc:
        raise RuntimeError(f"trimesh boolean difference failed: {exc}") from exc

    if result is None:
        return trimesh.Trimesh()
    return result


__all__ = ["ENGINE_NAME", "engines_available", "subtract"]
