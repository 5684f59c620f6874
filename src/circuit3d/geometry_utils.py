"""Common geometric types and helpers shared by loaders, solids and exporters."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

Vec3 = Tuple[float, float, float]
Color = Tuple[float, float, float, float]

ORIGIN: Vec3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Triangle:
    """Immutable triangle in XYZ space.

    ``normal`` is not guaranteed to be unit length; consumers normalise
    when they need to.  ``color`` is RGBA with RGB in 0-255 and alpha in
    0-1.
    """

    v0: Vec3
    v1: Vec3
    v2: Vec3
    normal: Vec3
    color: Optional[Color] = None
    material_index: Optional[int] = None

    @property
    def vertices(self) -> Tuple[Vec3, Vec3, Vec3]:
        return self.v0, self.v1, self.v2


@dataclass(frozen=True)
class BoundingBox:
    min: Vec3 = ORIGIN
    max: Vec3 = ORIGIN

    @property
    def size(self) -> Vec3:
        return (
            self.max[0] - self.min[0],
            self.max[1] - self.min[1],
            self.max[2] - self.min[2],
        )

    @property
    def center(self) -> Vec3:
        return (
            (self.min[0] + self.max[0]) / 2.0,
            (self.min[1] + self.max[1]) / 2.0,
            (self.min[2] + self.max[2]) / 2.0,
        )


@dataclass(frozen=True)
class Material:
    name: str
    color: Color


@dataclass(frozen=True)
class Mesh:
    """Triangle mesh with a bounding box that always matches its triangles.

    The bounding box may be supplied explicitly by producers that have a
    more exact source (the board engine measures its solid); otherwise it
    is derived from the triangles.
    """

    triangles: Tuple[Triangle, ...] = ()
    bounding_box: Optional[BoundingBox] = None
    materials: Mapping[int, Material] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.triangles, tuple):
            object.__setattr__(self, "triangles", tuple(self.triangles))
        if self.bounding_box is None:
            object.__setattr__(self, "bounding_box", compute_bounding_box(self.triangles))

    @property
    def has_materials(self) -> bool:
        return bool(self.materials)

    def __len__(self) -> int:
        return len(self.triangles)


def sub(a: Vec3, b: Vec3) -> Vec3:
    return a[0] - b[0], a[1] - b[1], a[2] - b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def mag(a: Vec3) -> float:
    return math.sqrt(dot(a, a))


def face_normal(v0: Vec3, v1: Vec3, v2: Vec3) -> Vec3:
    """Right-hand cross product of the two edges from ``v0``; not normalised."""

    return cross(sub(v1, v0), sub(v2, v0))


def triangle_area(v0: Vec3, v1: Vec3, v2: Vec3) -> float:
    """Return the area of a triangle."""

    return 0.5 * mag(face_normal(v0, v1, v2))


def compute_bounding_box(triangles: Iterable[Triangle]) -> BoundingBox:
    """Axis-aligned bounds of ``triangles``; collapsed to the origin when empty."""

    min_x = min_y = min_z = math.inf
    max_x = max_y = max_z = -math.inf
    seen = False
    for tri in triangles:
        for x, y, z in tri.vertices:
            seen = True
            min_x, min_y, min_z = min(min_x, x), min(min_y, y), min(min_z, z)
            max_x, max_y, max_z = max(max_x, x), max(max_y, y), max(max_z, z)
    if not seen:
        return BoundingBox()
    return BoundingBox((min_x, min_y, min_z), (max_x, max_y, max_z))


def scale_point(point: Vec3, factor: float) -> Vec3:
    return point[0] * factor, point[1] * factor, point[2] * factor


def scale_mesh(mesh: Mesh, factor: float) -> Mesh:
    """Uniformly scale every vertex and the bounding box of ``mesh``.

    A factor of 1 (or a non-finite factor) returns ``mesh`` unchanged.
    Normals are left alone.  The box corners are reordered so a negative
    factor still yields ``min <= max``.
    """

    if not math.isfinite(factor) or factor == 1:
        return mesh
    triangles = tuple(
        replace(
            tri,
            v0=scale_point(tri.v0, factor),
            v1=scale_point(tri.v1, factor),
            v2=scale_point(tri.v2, factor),
        )
        for tri in mesh.triangles
    )
    lo = scale_point(mesh.bounding_box.min, factor)
    hi = scale_point(mesh.bounding_box.max, factor)
    return Mesh(
        triangles=triangles,
        bounding_box=BoundingBox(
            (min(lo[0], hi[0]), min(lo[1], hi[1]), min(lo[2], hi[2])),
            (max(lo[0], hi[0]), max(lo[1], hi[1]), max(lo[2], hi[2])),
        ),
        materials=mesh.materials,
    )


DEFAULT_MATERIAL_COLOR: Color = (179, 179, 179, 1.0)


def group_by_color(triangles: Sequence[Triangle]) -> Mesh:
    """Build a multi-material mesh grouping ``triangles`` by exact colour.

    Materials are numbered from 0 in first-seen order and named
    ``Material_<n>``; triangles without a colour share the default grey
    material.  The returned triangle order follows the material order.
    """

    groups: Dict[Optional[Color], list] = {}
    for tri in triangles:
        groups.setdefault(tri.color, []).append(tri)

    materials: Dict[int, Material] = {}
    ordered = []
    for index, (color, members) in enumerate(groups.items()):
        name = f"Material_{index}"
        materials[index] = Material(name=name, color=color if color is not None else DEFAULT_MATERIAL_COLOR)
        ordered.extend(replace(tri, material_index=index) for tri in members)

    return Mesh(triangles=tuple(ordered), materials=materials)


__all__ = [
    "Vec3",
    "Color",
    "Triangle",
    "BoundingBox",
    "Material",
    "Mesh",
    "sub",
    "cross",
    "dot",
    "mag",
    "face_normal",
    "triangle_area",
    "compute_bounding_box",
    "scale_point",
    "scale_mesh",
    "group_by_color",
    "DEFAULT_MATERIAL_COLOR",
]
