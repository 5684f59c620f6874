## axis remapping transformations between model coordinate conventions

## Copyright (c) 2020 Richard W. DeVaul
## Copyright (c) 2020 yapCAD contributors
## All rights reserved

# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation files
# (the "Software"), to deal in the Software without restriction,
# including without limitation the rights to use, copy, modify, merge,
# publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so,
# subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
==========================================
Coordinate convention transforms
==========================================

Imported models arrive in whatever convention their authoring tool
used (Z-up or Y-up, origin at the center or at the base).  A
``CoordinateTransform`` describes how to get from that convention to
the scene convention (Y-up, board in the XZ plane):

* ``axis_mapping`` -- for each output axis, the signed input axis it
  takes its value from, e.g. ``y="z"`` or ``z="-y"``;
* ``flip`` -- output axes negated after the mapping;
* ``translate`` -- offset added to positions (never to normals).

The transform is a signed permutation plus an offset, so it always has
an exact inverse.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from circuit3d.geometry_utils import Triangle, Vec3

_AXES = ("x", "y", "z")
_AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


def _parse_axis(spec: str) -> Tuple[int, float]:
    text = spec.strip().lower()
    sign = 1.0
    if text.startswith("-"):
        sign = -1.0
        text = text[1:]
    elif text.startswith("+"):
        text = text[1:]
    if text not in _AXIS_INDEX:
        raise ValueError(f"bad axis in coordinate transform: {spec!r}")
    return _AXIS_INDEX[text], sign


@dataclass(frozen=True)
class CoordinateTransform:
    """Signed axis permutation with optional flips and translation."""

    axis_mapping: Tuple[str, str, str] = ("x", "y", "z")
    flip: Tuple[bool, bool, bool] = (False, False, False)
    translate: Vec3 = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        sources = [_parse_axis(a)[0] for a in self.axis_mapping]
        if sorted(sources) != [0, 1, 2]:
            raise ValueError(f"axis mapping must be a permutation: {self.axis_mapping}")

    @classmethod
    def from_dict(cls, config: Optional[Mapping]) -> "CoordinateTransform":
        """Build from a dict like ``{"axis_mapping": {"y": "z"}, "flip": {"x": True}}``."""

        if config is None:
            return IDENTITY
        if isinstance(config, CoordinateTransform):
            return config
        mapping = dict(zip(_AXES, _AXES))
        mapping.update(config.get("axis_mapping") or config.get("axisMapping") or {})
        flip = config.get("flip") or {}
        offset = config.get("translate") or config.get("translation") or {}
        return cls(
            axis_mapping=tuple(str(mapping[a]) for a in _AXES),
            flip=tuple(bool(flip.get(a, False)) for a in _AXES),
            translate=tuple(float(offset.get(a, 0.0)) for a in _AXES),
        )

    def _terms(self) -> List[Tuple[int, float]]:
        terms = []
        for out_axis, spec in enumerate(self.axis_mapping):
            src, sign = _parse_axis(spec)
            if self.flip[out_axis]:
                sign = -sign
            terms.append((src, sign))
        return terms

    @property
    def mirrors(self) -> bool:
        """True when the mapping has determinant -1 (a reflection)."""

        terms = self._terms()
        sources = [src for src, _ in terms]
        # a permutation of three axes is odd exactly when it fixes one axis
        odd = sum(1 for axis, src in enumerate(sources) if axis == src) == 1
        negative = sum(1 for _, sign in terms if sign < 0) % 2 == 1
        return odd != negative

    @property
    def is_identity(self) -> bool:
        return self._terms() == [(0, 1.0), (1, 1.0), (2, 1.0)] and self.translate == (0.0, 0.0, 0.0)

    def apply_direction(self, v: Vec3) -> Vec3:
        x, y, z = (sign * v[src] for src, sign in self._terms())
        return x, y, z

    def apply_point(self, p: Vec3) -> Vec3:
        x, y, z = self.apply_direction(p)
        tx, ty, tz = self.translate
        return x + tx, y + ty, z + tz

    def inverse(self) -> "CoordinateTransform":
        """Return the transform that undoes this one."""

        mapping: List[str] = ["x", "y", "z"]
        for out_axis, (src, sign) in enumerate(self._terms()):
            mapping[src] = ("-" if sign < 0 else "") + _AXES[out_axis]
        undo = CoordinateTransform(axis_mapping=tuple(mapping))
        tx, ty, tz = undo.apply_direction(self.translate)
        return replace(undo, translate=(-tx, -ty, -tz))


IDENTITY = CoordinateTransform()


def transform_triangles(triangles: Iterable[Triangle],
                        transform: Optional[CoordinateTransform] = None) -> List[Triangle]:
    """Return a new list with every vertex and normal remapped by ``transform``.

    Positions receive the translation; normals never do.  Order and
    per-triangle colour/material data are preserved.  A reflecting
    transform swaps ``v1`` and ``v2`` so the winding still agrees with
    the normal.  ``None`` is the identity transform.
    """

    if transform is None or transform.is_identity:
        return list(triangles)
    point = transform.apply_point
    direction = transform.apply_direction
    if transform.mirrors:
        return [
            replace(tri, v0=point(tri.v0), v1=point(tri.v2), v2=point(tri.v1), normal=direction(tri.normal))
            for tri in triangles
        ]
    return [
        replace(
            tri,
            v0=point(tri.v0),
            v1=point(tri.v1),
            v2=point(tri.v2),
            normal=direction(tri.normal),
        )
        for tri in triangles
    ]


# Z-up authoring convention to the scene's Y-up convention
Z_UP_TO_Y_UP = CoordinateTransform(axis_mapping=("x", "z", "-y"))

# plain Y/Z swap; STL parts exported from board tools put circuit Y on model Y
Z_UP_TO_Y_UP_USB_FIX = CoordinateTransform(axis_mapping=("x", "z", "y"))

# OBJ parts are Z-up with the origin on the seating plane
OBJ_Z_UP_TO_Y_UP = CoordinateTransform(axis_mapping=("x", "z", "y"))

# default for the binary container
GLB_Y_Z_SWAP = CoordinateTransform(axis_mapping=("x", "z", "y"))

# procedural footprint bodies are authored Z-up in circuit coordinates
FOOTPRINTER_MODEL_TRANSFORM = CoordinateTransform(axis_mapping=("x", "z", "y"))

COORDINATE_TRANSFORMS: Dict[str, CoordinateTransform] = {
    "IDENTITY": IDENTITY,
    "Z_UP_TO_Y_UP": Z_UP_TO_Y_UP,
    "Z_UP_TO_Y_UP_USB_FIX": Z_UP_TO_Y_UP_USB_FIX,
    "OBJ_Z_UP_TO_Y_UP": OBJ_Z_UP_TO_Y_UP,
    "GLB_Y_Z_SWAP": GLB_Y_Z_SWAP,
    "FOOTPRINTER_MODEL_TRANSFORM": FOOTPRINTER_MODEL_TRANSFORM,
}


__all__ = [
    "CoordinateTransform",
    "IDENTITY",
    "transform_triangles",
    "COORDINATE_TRANSFORMS",
    "Z_UP_TO_Y_UP",
    "Z_UP_TO_Y_UP_USB_FIX",
    "OBJ_Z_UP_TO_Y_UP",
    "GLB_Y_Z_SWAP",
    "FOOTPRINTER_MODEL_TRANSFORM",
]
