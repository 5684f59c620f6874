"""Scene description produced by the converter and consumed by the exporters."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional, Tuple

from circuit3d.geometry_utils import Color, Mesh, Vec3

UP: Vec3 = (0.0, 1.0, 0.0)


@dataclass(frozen=True)
class Texture:
    """An encoded PNG image."""

    png: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.png).decode('ascii')}"


@dataclass(frozen=True)
class BoxTextures:
    top: Texture
    bottom: Texture


@dataclass(frozen=True)
class Box3D:
    """One scene node.

    ``rotation`` is an XYZ Euler triple in radians.  A box either carries
    a ``mesh`` (placed so its local origin sits at ``center``) or is drawn
    as a solid block of ``size`` filled with ``color``.
    """

    center: Vec3
    size: Vec3
    rotation: Optional[Vec3] = None
    mesh: Optional[Mesh] = None
    mesh_url: Optional[str] = None
    mesh_type: Optional[str] = None
    color: Optional[Color] = None
    textures: Optional[BoxTextures] = None
    label: Optional[str] = None
    label_color: Optional[Color] = None
    label_texture: Optional[Texture] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Camera:
    position: Vec3
    target: Vec3
    up: Vec3 = UP
    fov: float = 50.0
    near: float = 0.1
    far: float = 1000.0


@dataclass(frozen=True)
class Light:
    kind: str  # "ambient" or "directional"
    color: Color
    intensity: float
    direction: Optional[Vec3] = None


@dataclass(frozen=True)
class Scene:
    boxes: Tuple[Box3D, ...]
    camera: Camera
    lights: Tuple[Light, ...]


__all__ = ["Texture", "BoxTextures", "Box3D", "Camera", "Light", "Scene"]
