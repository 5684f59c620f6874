# -*- coding: utf-8 -*-
"""Circuit JSON to 3D scene and glTF/GLB conversion."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("circuit3d")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"

from circuit3d.config import ConversionOptions, GLTFExportOptions  # noqa: E402
from circuit3d.converter import (  # noqa: E402
    ConversionContext,
    convert_circuit_to_gltf,
    convert_circuit_to_scene,
)
from circuit3d.io.gltf_export import convert_scene_to_gltf  # noqa: E402
from circuit3d.scene import Box3D, Camera, Light, Scene  # noqa: E402

__all__ = [
    "__version__",
    "ConversionOptions",
    "GLTFExportOptions",
    "ConversionContext",
    "convert_circuit_to_scene",
    "convert_circuit_to_gltf",
    "convert_scene_to_gltf",
    "Box3D",
    "Camera",
    "Light",
    "Scene",
]
