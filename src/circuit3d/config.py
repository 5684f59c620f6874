"""Conversion options and colour handling.

Options are immutable; callers derive variants with
:func:`dataclasses.replace`.  Colours are accepted as CSS strings or as
RGBA tuples and normalised to ``(r, g, b, a)`` with RGB in 0-255 and
alpha in 0-1, the convention used on triangles and materials.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from PIL import ImageColor

from circuit3d.geometry_utils import Color
from circuit3d.xform import CoordinateTransform

ColorLike = Union[str, Sequence[float]]

DEFAULT_BOARD_THICKNESS = 1.6  # mm
DEFAULT_COMPONENT_HEIGHT = 2.0  # mm
DEFAULT_TEXTURE_RESOLUTION = 1024
DEFAULT_CACHE_SIZE = 256

CACHE_SIZE_ENV = "CIRCUIT3D_CACHE_SIZE"
LOG_LEVEL_ENV = "CIRCUIT3D_LOG_LEVEL"

_RGBA_RE = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)$",
    re.IGNORECASE,
)


def parse_color(value: ColorLike) -> Color:
    """Normalise a CSS colour string or RGB(A) sequence.

    >>> parse_color("rgba(0,140,0,0.8)")
    (0, 140, 0, 0.8)
    >>> parse_color("#C87B4B")
    (200, 123, 75, 1.0)
    """

    if not isinstance(value, str):
        parts = [float(v) for v in value]
        if len(parts) not in (3, 4):
            raise ValueError(f"colour needs 3 or 4 components: {value!r}")
        alpha = parts[3] if len(parts) == 4 else 1.0
        return int(round(parts[0])), int(round(parts[1])), int(round(parts[2])), alpha

    text = value.strip()
    if text.lower() == "transparent":
        return 0, 0, 0, 0.0
    match = _RGBA_RE.match(text)
    if match:
        r, g, b, a = match.groups()
        if a is None:
            alpha = 1.0
        elif a.endswith("%"):
            alpha = float(a[:-1]) / 100.0
        else:
            alpha = float(a)
        return int(round(float(r))), int(round(float(g))), int(round(float(b))), min(1.0, max(0.0, alpha))

    rgb = ImageColor.getrgb(text)
    if len(rgb) == 4:
        return rgb[0], rgb[1], rgb[2], rgb[3] / 255.0
    return rgb[0], rgb[1], rgb[2], 1.0


def cache_size_from_env(default: int = DEFAULT_CACHE_SIZE) -> int:
    raw = os.environ.get(CACHE_SIZE_ENV)
    if not raw:
        return default
    try:
        size = int(raw)
    except ValueError:
        raise ValueError(f"{CACHE_SIZE_ENV} must be an integer, got {raw!r}") from None
    if size < 1:
        raise ValueError(f"{CACHE_SIZE_ENV} must be positive, got {size}")
    return size


@dataclass(frozen=True)
class ConversionOptions:
    """Everything that shapes one circuit conversion.

    All lengths are in millimetres.
    """

    format: str = "gltf"
    """Output container: ``"glb"`` for binary, ``"gltf"`` for JSON."""

    embed_images: bool = True
    """Embed board and label textures in the exported asset."""

    force_indices: bool = False
    """Always write index buffers, even for unshared vertices."""

    texture_resolution: int = DEFAULT_TEXTURE_RESOLUTION
    render_board_textures: bool = True

    layer_rendering: str = "texture"
    """``"texture"`` bakes copper and silkscreen into the board textures;
    ``"geometry"`` emits copper as thin solids instead."""

    show_bounding_boxes: bool = True
    """Emit placeholder boxes for components without a 3D model."""

    render_labels: bool = False
    background_color: Optional[ColorLike] = None
    coordinate_transform: Optional[CoordinateTransform] = None
    board_thickness: float = DEFAULT_BOARD_THICKNESS
    default_component_height: float = DEFAULT_COMPONENT_HEIGHT
    pcb_color: ColorLike = "rgba(0,140,0,0.8)"
    component_color: ColorLike = "rgba(128,128,128,0.5)"
    copper_color: ColorLike = "#C87B4B"
    max_workers: int = 8

    def __post_init__(self) -> None:
        if self.format not in ("glb", "gltf"):
            raise ValueError(f"format must be 'glb' or 'gltf', got {self.format!r}")
        if self.layer_rendering not in ("texture", "geometry"):
            raise ValueError(f"layer_rendering must be 'texture' or 'geometry', got {self.layer_rendering!r}")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def binary(self) -> bool:
        return self.format == "glb"

    @property
    def wants_textures(self) -> bool:
        return (self.render_board_textures and self.texture_resolution > 0
                and self.layer_rendering == "texture")


@dataclass(frozen=True)
class GLTFExportOptions:
    binary: bool = True
    embed_images: bool = True
    force_indices: bool = False
    background_color: Optional[ColorLike] = None

    @classmethod
    def from_conversion(cls, options: ConversionOptions) -> "GLTFExportOptions":
        return cls(
            binary=options.binary,
            embed_images=options.embed_images,
            force_indices=options.force_indices,
            background_color=options.background_color,
        )


DEFAULT_OPTIONS = ConversionOptions()


__all__ = [
    "ColorLike",
    "ConversionOptions",
    "GLTFExportOptions",
    "DEFAULT_OPTIONS",
    "DEFAULT_BOARD_THICKNESS",
    "DEFAULT_COMPONENT_HEIGHT",
    "DEFAULT_TEXTURE_RESOLUTION",
    "DEFAULT_CACHE_SIZE",
    "CACHE_SIZE_ENV",
    "LOG_LEVEL_ENV",
    "parse_color",
    "cache_size_from_env",
]
