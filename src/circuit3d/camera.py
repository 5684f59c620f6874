"""Deterministic camera framing.

The camera always looks down on the XZ plane from the same azimuth and
elevation; only its distance and target depend on the framed extents.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

from circuit3d.scene import Box3D, Camera

DISTANCE_FACTOR = 1.5
OFFSET_RATIO = 0.5
ELEVATION_RATIO = 0.7
FAR_FACTOR = 4.0
FOV = 50.0
NEAR = 0.1

DEFAULT_CAMERA = Camera(position=(30.0, 30.0, 25.0), target=(0.0, 0.0, 0.0), fov=FOV, near=NEAR, far=120.0)


def frame_extent(center_x: float, center_z: float, width: float, depth: float) -> Camera:
    """Camera framing a ``width`` by ``depth`` rectangle centered at ``(center_x, 0, center_z)``."""

    distance = math.hypot(width, depth) * DISTANCE_FACTOR
    return Camera(
        position=(center_x + distance * OFFSET_RATIO, distance * ELEVATION_RATIO, center_z + distance * OFFSET_RATIO),
        target=(center_x, 0.0, center_z),
        fov=FOV,
        near=NEAR,
        far=distance * FAR_FACTOR,
    )


def frame_boxes(boxes: Iterable[Box3D]) -> Camera:
    """Frame the XZ union of ``boxes``; an empty scene gets the default camera."""

    min_x = min_z = math.inf
    max_x = max_z = -math.inf
    for box in boxes:
        half_x = box.size[0] / 2.0
        half_z = box.size[2] / 2.0
        min_x = min(min_x, box.center[0] - half_x)
        max_x = max(max_x, box.center[0] + half_x)
        min_z = min(min_z, box.center[2] - half_z)
        max_z = max(max_z, box.center[2] + half_z)
    if min_x == math.inf:
        return DEFAULT_CAMERA
    return frame_extent(
        (min_x + max_x) / 2.0,
        (min_z + max_z) / 2.0,
        max(max_x - min_x, 1.0),
        max(max_z - min_z, 1.0),
    )


def auto_camera(boxes: Iterable[Box3D], carrier: Optional[tuple] = None) -> Camera:
    """Camera for a scene.

    ``carrier`` is ``(center_x, center_y, width, height)`` of the board or
    panel in circuit coordinates; when present it alone decides framing.
    """

    if carrier is not None:
        cx, cy, width, height = carrier
        return frame_extent(cx, cy, width, height)
    return frame_boxes(boxes)


__all__ = ["DEFAULT_CAMERA", "frame_extent", "frame_boxes", "auto_camera"]
