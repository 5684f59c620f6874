"""Circuit JSON to 3D scene assembly.

The pipeline is linear: the carrier solid (panel before board), then
modelled components, then placeholder boxes for the rest, then camera
and lights.  Component models load concurrently through the shared
model cache.  A failure in a degradable step (textures, one model, one
label) is logged and replaced by a flat colour; it never aborts the
scene.

Scene axes are Y-up: circuit ``(x, y)`` maps to scene ``(x, z)`` and the
board's mid-plane is ``y = 0``.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from circuit3d.board import create_board_mesh, create_panel_mesh
from circuit3d.board_renderer import render_board_textures
from circuit3d.cache import LRUCache
from circuit3d.camera import auto_camera
from circuit3d.circuit import CadComponent, Circuit, PcbComponent, as_circuit
from circuit3d.config import DEFAULT_OPTIONS, ConversionOptions, GLTFExportOptions, parse_color
from circuit3d.copper import create_copper_mesh
from circuit3d.fetch import Fetcher
from circuit3d.geometry_utils import Color, Mesh, Vec3, scale_mesh
from circuit3d.io.gltf_export import convert_scene_to_gltf
from circuit3d.labels import LabelTextureFactory
from circuit3d.logging_utils import LogOnce
from circuit3d.loaders import ModelCache, ModelLoader, ModelLoadError
from circuit3d.rasterize import CheckedRasterizer, RasterizationError, Rasterizer, SvgRasterizer
from circuit3d.scene import Box3D, BoxTextures, Light, Scene
from circuit3d.xform import FOOTPRINTER_MODEL_TRANSFORM, OBJ_Z_UP_TO_Y_UP, Z_UP_TO_Y_UP_USB_FIX, CoordinateTransform

logger = logging.getLogger(__name__)

WHITE: Color = (255, 255, 255, 1.0)

# formats whose models flip about Z (rather than X) on the bottom layer
_Z_FLIPPED_FORMATS = ("glb", "gltf", "footprinter")

_DEFAULT_TRANSFORMS = {
    "glb": None,
    "gltf": None,
    "footprinter": FOOTPRINTER_MODEL_TRANSFORM,
    "obj": OBJ_Z_UP_TO_Y_UP,
    "stl": Z_UP_TO_Y_UP_USB_FIX,
}


class ConversionContext:
    """Collaborators and caches shared by conversions.

    Reusing one context across conversions reuses its model and label
    caches and its record of already reported model failures; each
    context owns its own, nothing is process global.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, rasterizer: Optional[Rasterizer] = None,
                 model_cache: Optional[ModelCache] = None, label_cache: Optional[LRUCache] = None):
        self.rasterizer: Rasterizer = CheckedRasterizer(rasterizer if rasterizer is not None else SvgRasterizer())
        self.models = ModelLoader(fetcher, model_cache)
        self.labels = LabelTextureFactory(self.rasterizer, label_cache)
        self.log_once = LogOnce()

    @property
    def fetcher(self) -> Fetcher:
        return self.models.fetcher


# ---------------------------------------------------------------------------
# Carrier (panel or board)
# ---------------------------------------------------------------------------


def _board_textures(circuit: Circuit, options: ConversionOptions,
                    context: ConversionContext) -> Optional[BoxTextures]:
    if not options.wants_textures:
        return None
    try:
        return render_board_textures(circuit, options.texture_resolution, context.rasterizer)
    except RasterizationError as exc:
        logger.warning("board texture rendering failed, using flat colour: %s", exc)
        return None


def _carrier_box(circuit: Circuit, thickness: float, options: ConversionOptions,
                 context: ConversionContext) -> Tuple[Optional[Box3D], Optional[tuple]]:
    panel, board = circuit.panel, circuit.board
    if panel is not None:
        mesh = create_panel_mesh(panel, thickness, circuit.holes())
        center, width, height, name = panel.center, panel.width, panel.height, panel.panel_id or "panel"
    elif board is not None:
        mesh = create_board_mesh(board, thickness, circuit.holes(), circuit.cutouts_for(board))
        center, width, height, name = board.center, board.width, board.height, board.board_id or "board"
    else:
        return None, None

    mesh_width, _, mesh_depth = mesh.bounding_box.size
    box = Box3D(
        center=(center.x, 0.0, center.y),
        size=(
            mesh_width if math.isfinite(mesh_width) and len(mesh) else width,
            thickness,
            mesh_depth if math.isfinite(mesh_depth) and len(mesh) else height,
        ),
        mesh=mesh,
        color=parse_color(options.pcb_color),
        textures=_board_textures(circuit, options, context),
        name=name,
    )
    return box, (center.x, center.y, width, height)


def _copper_boxes(circuit: Circuit, thickness: float, options: ConversionOptions) -> List[Box3D]:
    carrier = circuit.panel or circuit.board
    if carrier is None:
        return []
    color = parse_color(options.copper_color)
    pours, pads = circuit.copper_pours(), circuit.smt_pads()
    boxes = []
    for layer in ("top", "bottom"):
        mesh = create_copper_mesh(pours, pads, carrier.center, thickness, layer, color)
        if mesh is None:
            continue
        boxes.append(Box3D(
            center=(carrier.center.x, 0.0, carrier.center.y),
            size=mesh.bounding_box.size,
            mesh=mesh,
            color=color,
            name=f"copper_{layer}",
        ))
    return boxes


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def _model_source(cad: CadComponent) -> Tuple[str, str]:
    if cad.model_url is not None:
        return cad.model_format, cad.model_url
    return "footprinter", cad.footprinter_string


def _component_size(cad: CadComponent, pcb: Optional[PcbComponent], options: ConversionOptions) -> Vec3:
    if cad.size is not None:
        k = cad.scale_factor
        return cad.size.x * k, cad.size.y * k, cad.size.z * k
    return (
        pcb.width if pcb is not None and pcb.width else 2.0,
        options.default_component_height,
        pcb.height if pcb is not None and pcb.height else 2.0,
    )


def _component_center(cad: CadComponent, pcb: Optional[PcbComponent], size: Vec3, thickness: float) -> Vec3:
    bottom = pcb is not None and pcb.is_bottom
    clearance = thickness / 2.0 + size[1] / 2.0
    if cad.position is not None:
        y = cad.position.z
        if bottom:
            y = min(y, -clearance)
        return cad.position.x, y, cad.position.y
    cx = pcb.center.x if pcb is not None else 0.0
    cz = pcb.center.y if pcb is not None else 0.0
    return cx, -clearance if bottom else clearance, cz


def _component_rotation(cad: CadComponent, pcb: Optional[PcbComponent], model_format: str) -> Optional[Vec3]:
    if cad.rotation is not None:
        # circuit Z rotation becomes scene Y rotation
        return math.radians(cad.rotation.x), math.radians(cad.rotation.z), math.radians(cad.rotation.y)
    if pcb is not None and pcb.is_bottom:
        if model_format in _Z_FLIPPED_FORMATS:
            return 0.0, 0.0, math.pi
        return math.pi, 0.0, 0.0
    return None


def _load_mesh(context: ConversionContext, model_format: str, reference: str,
               transform: Optional[CoordinateTransform]) -> Optional[Mesh]:
    try:
        return context.models.load(model_format, reference, transform)
    except ModelLoadError as exc:
        context.log_once(logger, f"{model_format}:{reference}", logging.WARNING, "%s; using placeholder box", exc)
        return None


def _model_boxes(circuit: Circuit, cads: List[CadComponent], thickness: float,
                 options: ConversionOptions, context: ConversionContext) -> List[Box3D]:
    jobs = []
    for cad in cads:
        model_format, reference = _model_source(cad)
        transform = options.coordinate_transform
        if transform is None:
            transform = _DEFAULT_TRANSFORMS.get(model_format)
        jobs.append((model_format, reference, transform))

    with ThreadPoolExecutor(max_workers=options.max_workers, thread_name_prefix="circuit3d-model") as pool:
        meshes = list(pool.map(lambda job: _load_mesh(context, *job), jobs))

    component_color = parse_color(options.component_color)
    boxes = []
    for cad, (model_format, reference, _), mesh in zip(cads, jobs, meshes):
        pcb = circuit.pcb_component(cad.pcb_component_id)
        size = _component_size(cad, pcb, options)
        cx, cy, cz = _component_center(cad, pcb, size, thickness)

        if mesh is not None:
            mesh = scale_mesh(mesh, cad.scale_factor)
            if cad.position is not None and model_format == "obj":
                # the given height is where the model's base sits
                cy -= mesh.bounding_box.min[1]

        boxes.append(Box3D(
            center=(cx, cy, cz),
            size=size,
            rotation=_component_rotation(cad, pcb, model_format),
            mesh=mesh,
            mesh_url=cad.model_url,
            mesh_type=cad.model_format if cad.model_url is not None else None,
            color=None if mesh is not None else component_color,
            name=cad.cad_component_id or cad.pcb_component_id,
        ))
    return boxes


def _placeholder_boxes(circuit: Circuit, skip: Iterable[Optional[str]], thickness: float,
                       options: ConversionOptions, context: ConversionContext) -> List[Box3D]:
    skip = set(skip)
    color = parse_color(options.component_color)
    boxes = []
    for pcb in circuit.pcb_components():
        if pcb.pcb_component_id in skip:
            continue
        height = min(min(pcb.width, pcb.height), options.default_component_height)
        offset = thickness / 2.0 + height / 2.0
        label = circuit.source_name(pcb.source_component_id) or "?"
        label_texture = None
        if options.render_labels:
            try:
                label_texture = context.labels.texture(label)
            except RasterizationError as exc:
                logger.warning("label %r could not be rasterized: %s", label, exc)
        boxes.append(Box3D(
            center=(pcb.center.x, -offset if pcb.is_bottom else offset, pcb.center.y),
            size=(pcb.width, height, pcb.height),
            color=color,
            label=label,
            label_color=WHITE,
            label_texture=label_texture,
            name=pcb.pcb_component_id,
        ))
    return boxes


def default_lights() -> Tuple[Light, ...]:
    return (
        Light(kind="ambient", color=WHITE, intensity=0.5),
        Light(kind="directional", color=WHITE, intensity=0.5, direction=(-1.0, -1.0, -1.0)),
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


CircuitLike = Union[Circuit, Iterable[Mapping[str, Any]]]


def convert_circuit_to_scene(circuit: CircuitLike, options: Optional[ConversionOptions] = None,
                             context: Optional[ConversionContext] = None) -> Scene:
    """Assemble the 3D scene for a circuit JSON element list."""

    circuit = as_circuit(circuit)
    options = options or DEFAULT_OPTIONS
    context = context or ConversionContext()

    board = circuit.board
    thickness = board.thickness if board is not None and board.thickness else options.board_thickness

    boxes: List[Box3D] = []
    carrier_box, carrier = _carrier_box(circuit, thickness, options, context)
    if carrier_box is not None:
        boxes.append(carrier_box)
        if options.layer_rendering == "geometry":
            boxes.extend(_copper_boxes(circuit, thickness, options))

    modelled = [cad for cad in circuit.cad_components() if cad.has_model]
    boxes.extend(_model_boxes(circuit, modelled, thickness, options, context))

    if options.show_bounding_boxes:
        skip = (cad.pcb_component_id for cad in modelled)
        boxes.extend(_placeholder_boxes(circuit, skip, thickness, options, context))

    logger.debug("assembled scene with %d boxes (%d modelled)", len(boxes), len(modelled))
    return Scene(boxes=tuple(boxes), camera=auto_camera(boxes, carrier), lights=default_lights())


def convert_circuit_to_gltf(circuit: CircuitLike, options: Optional[ConversionOptions] = None,
                            context: Optional[ConversionContext] = None) -> Union[bytes, dict]:
    """Assemble and export in one step: GLB bytes or a glTF JSON dict per ``options.format``."""

    options = options or DEFAULT_OPTIONS
    scene = convert_circuit_to_scene(circuit, options, context)
    return convert_scene_to_gltf(scene, GLTFExportOptions.from_conversion(options))


__all__ = [
    "ConversionContext",
    "convert_circuit_to_scene",
    "convert_circuit_to_gltf",
    "default_lights",
]
