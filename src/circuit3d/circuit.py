"""Typed views over circuit JSON records.

Circuit JSON is a flat list of dicts tagged by ``type``.  Records whose
shape varies (holes, cutouts, copper pours) are parsed into one frozen
dataclass per shape kind; a record that is unrecognised or lacks a
finite value for a required field parses to ``None`` and is skipped by
callers.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from circuit3d.bulge import BulgeVertex

Record = Mapping[str, Any]

_MM_PER_UNIT = {"mm": 1.0, "mil": 0.0254, "in": 25.4}
_LENGTH_RE = re.compile(r"^(-?\d+(?:\.\d+)?)(mm|mil|in)?$", re.IGNORECASE)


@dataclass(frozen=True)
class Point2:
    x: float
    y: float


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def number(record: Record, *keys: str) -> Optional[float]:
    """First finite numeric value among ``keys``."""

    for key in keys:
        value = record.get(key)
        if is_finite_number(value):
            return float(value)
    return None


def parse_point(value: Any) -> Optional[Point2]:
    if not isinstance(value, Mapping):
        return None
    if not (is_finite_number(value.get("x")) and is_finite_number(value.get("y"))):
        return None
    return Point2(float(value["x"]), float(value["y"]))


def _parse_vertices(raw: Iterable[Any]) -> Tuple[BulgeVertex, ...]:
    """Finite points with an optional ``bulge``; others are dropped."""

    parsed = []
    for vertex in raw:
        point = parse_point(vertex)
        if point is None:
            continue
        bulge = vertex.get("bulge")
        parsed.append(BulgeVertex(point.x, point.y, float(bulge) if is_finite_number(bulge) else 0.0))
    return tuple(parsed)


def resolve_length(value: Any) -> Optional[float]:
    """Length in mm from a number, a ``"1.2mm"``/``"40mil"`` string or a unit object."""

    if is_finite_number(value):
        return float(value)
    if isinstance(value, str):
        match = _LENGTH_RE.match(value.strip())
        if match:
            unit = (match.group(2) or "mm").lower()
            return float(match.group(1)) * _MM_PER_UNIT[unit]
        return None
    if isinstance(value, Mapping):
        if is_finite_number(value.get("value")):
            unit = value.get("unit") or value.get("units") or "mm"
            return float(value["value"]) * _MM_PER_UNIT.get(str(unit).lower(), 1.0)
        for keys, scale in ((("mm", "millimeters", "millimetres"), 1.0),
                            (("mil", "mils"), 0.0254),
                            (("in", "inch", "inches"), 25.4)):
            found = number(value, *keys)
            if found is not None:
                return found * scale
    return None


def resolve_rotation(value: Any) -> float:
    """Rotation in radians from degrees or a named-unit object; 0 when absent."""

    if is_finite_number(value):
        return math.radians(value)
    if isinstance(value, Mapping):
        degrees = number(value, "deg", "degs", "degree", "degrees", "ccw", "ccw_degrees", "ccw_degree")
        if degrees is not None:
            return math.radians(degrees)
        radians = number(value, "rad", "rads", "radian", "radians", "ccw_radians")
        if radians is not None:
            return radians
    return 0.0


# -- boards -----------------------------------------------------------------


@dataclass(frozen=True)
class Board:
    board_id: str
    center: Point2
    width: float
    height: float
    thickness: Optional[float] = None
    outline: Tuple[Point2, ...] = ()
    material: Optional[str] = None
    panel_id: Optional[str] = None


@dataclass(frozen=True)
class Panel:
    panel_id: str
    center: Point2
    width: float
    height: float


def _parse_board(record: Record) -> Optional[Board]:
    width = number(record, "width")
    height = number(record, "height")
    outline = tuple(p for p in (parse_point(v) for v in record.get("outline") or []) if p is not None)
    if (width is None or height is None) and len(outline) < 3:
        return None
    if width is None or height is None:
        xs = [p.x for p in outline]
        ys = [p.y for p in outline]
        width, height = max(xs) - min(xs), max(ys) - min(ys)
    return Board(
        board_id=str(record.get("pcb_board_id", "")),
        center=parse_point(record.get("center")) or Point2(0.0, 0.0),
        width=width,
        height=height,
        thickness=number(record, "thickness"),
        outline=outline,
        material=record.get("material"),
        panel_id=record.get("pcb_panel_id"),
    )


def _parse_panel(record: Record) -> Optional[Panel]:
    width = number(record, "width")
    height = number(record, "height")
    if width is None or height is None:
        return None
    return Panel(
        panel_id=str(record.get("pcb_panel_id", "")),
        center=parse_point(record.get("center")) or Point2(0.0, 0.0),
        width=width,
        height=height,
    )


# -- holes ------------------------------------------------------------------


@dataclass(frozen=True)
class CircularHole:
    x: float
    y: float
    diameter: float


@dataclass(frozen=True)
class PillHole:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class RotatedPillHole:
    x: float
    y: float
    width: float
    height: float
    ccw_rotation: float  # degrees


Hole = Union[CircularHole, PillHole, RotatedPillHole]


def parse_hole(record: Record) -> Optional[Hole]:
    """Parse a ``pcb_hole`` record."""

    x, y = number(record, "x"), number(record, "y")
    if x is None or y is None:
        return None
    shape = record.get("hole_shape")
    if shape in ("pill", "rotated_pill"):
        width, height = number(record, "hole_width"), number(record, "hole_height")
        if not width or not height:
            return None
        if shape == "rotated_pill":
            return RotatedPillHole(x, y, width, height, number(record, "ccw_rotation") or 0.0)
        return PillHole(x, y, width, height)
    diameter = number(record, "hole_diameter", "diameter")
    if not diameter:
        return None
    return CircularHole(x, y, diameter)


def parse_plated_hole(record: Record) -> Optional[Hole]:
    """Parse a ``pcb_plated_hole`` record into the drill it leaves in the board."""

    x, y = number(record, "x"), number(record, "y")
    if x is None or y is None:
        return None
    x += number(record, "hole_offset_x") or 0.0
    y += number(record, "hole_offset_y") or 0.0
    shape = record.get("shape")
    if shape in ("pill", "pill_hole_with_rect_pad", "rotated_pill_hole_with_rect_pad"):
        width = number(record, "hole_width", "outer_diameter")
        height = number(record, "hole_height", "hole_diameter")
        if not width or not height:
            return None
        if shape == "rotated_pill_hole_with_rect_pad":
            rotation = number(record, "hole_ccw_rotation", "ccw_rotation") or 0.0
            return RotatedPillHole(x, y, width, height, rotation)
        return PillHole(x, y, width, height)
    diameter = number(record, "hole_diameter", "outer_diameter")
    if not diameter:
        return None
    return CircularHole(x, y, diameter)


# -- cutouts ----------------------------------------------------------------


@dataclass(frozen=True)
class RectCutout:
    center: Point2
    width: float
    height: float
    rotation: float = 0.0  # radians, ccw


@dataclass(frozen=True)
class CircleCutout:
    center: Point2
    radius: float


@dataclass(frozen=True)
class PolygonCutout:
    points: Tuple[BulgeVertex, ...]

    @property
    def has_arcs(self) -> bool:
        return any(p.bulge for p in self.points)


Cutout = Union[RectCutout, CircleCutout, PolygonCutout]


def parse_cutout(record: Record) -> Optional[Cutout]:
    shape = record.get("shape")
    if shape == "rect":
        center = parse_point(record.get("center"))
        width, height = resolve_length(record.get("width")), resolve_length(record.get("height"))
        if center is None or not width or not height:
            return None
        return RectCutout(center, width, height, resolve_rotation(record.get("rotation")))
    if shape == "circle":
        center = parse_point(record.get("center"))
        radius = resolve_length(record.get("radius"))
        if radius is None:
            diameter = resolve_length(record.get("diameter"))
            radius = diameter / 2.0 if diameter is not None else None
        if center is None or not radius:
            return None
        return CircleCutout(center, radius)
    if shape == "polygon":
        raw = record.get("points")
        if not isinstance(raw, list) or len(raw) < 3:
            return None
        points = _parse_vertices(raw)
        if len(points) < 3:
            return None
        return PolygonCutout(points)
    return None


def cutout_applies_to_board(record: Record, board: Board) -> bool:
    owner = record.get("pcb_board_id")
    return owner is None or owner == board.board_id


# -- copper -----------------------------------------------------------------


@dataclass(frozen=True)
class RectPour:
    layer: str
    center: Point2
    width: float
    height: float
    rotation: float = 0.0


@dataclass(frozen=True)
class PolygonPour:
    layer: str
    points: Tuple[Point2, ...]


@dataclass(frozen=True)
class BRepPour:
    layer: str
    outer_ring: Tuple[BulgeVertex, ...]
    inner_rings: Tuple[Tuple[BulgeVertex, ...], ...] = ()


CopperPour = Union[RectPour, PolygonPour, BRepPour]


def _layer_name(value: Any) -> str:
    if isinstance(value, Mapping):
        value = value.get("name")
    return "bottom" if value == "bottom" else "top"


def _parse_ring(ring: Any) -> Tuple[BulgeVertex, ...]:
    vertices = ring.get("vertices") if isinstance(ring, Mapping) else None
    return _parse_vertices(vertices or [])


def parse_copper_pour(record: Record) -> Optional[CopperPour]:
    layer = _layer_name(record.get("layer"))
    shape = record.get("shape")
    if shape == "rect":
        center = parse_point(record.get("center"))
        width, height = number(record, "width"), number(record, "height")
        if center is None or not width or not height:
            return None
        return RectPour(layer, center, width, height, resolve_rotation(record.get("rotation")))
    if shape == "polygon":
        points = tuple(p for p in (parse_point(v) for v in record.get("points") or []) if p is not None)
        if len(points) < 3:
            return None
        return PolygonPour(layer, points)
    if shape == "brep":
        brep = record.get("brep_shape")
        if not isinstance(brep, Mapping):
            return None
        outer = _parse_ring(brep.get("outer_ring"))
        if len(outer) < 2:
            return None
        inners = tuple(r for r in (_parse_ring(ring) for ring in brep.get("inner_rings") or []) if len(r) >= 2)
        return BRepPour(layer, outer, inners)
    return None


# -- pads and silkscreen (texture rendering / copper geometry) --------------


@dataclass(frozen=True)
class RectPad:
    layer: str
    center: Point2
    width: float
    height: float
    rotation: float = 0.0


@dataclass(frozen=True)
class CirclePad:
    layer: str
    center: Point2
    radius: float


Pad = Union[RectPad, CirclePad]


def parse_smt_pad(record: Record) -> Optional[Pad]:
    layer = _layer_name(record.get("layer"))
    x, y = number(record, "x"), number(record, "y")
    if x is None or y is None:
        return None
    shape = record.get("shape")
    if shape in ("rect", "rotated_rect", "pill", "rotated_pill"):
        width, height = number(record, "width"), number(record, "height")
        if not width or not height:
            return None
        rotation = math.radians(number(record, "ccw_rotation") or 0.0)
        return RectPad(layer, Point2(x, y), width, height, rotation)
    if shape == "circle":
        radius = number(record, "radius")
        if not radius:
            return None
        return CirclePad(layer, Point2(x, y), radius)
    return None


@dataclass(frozen=True)
class SilkscreenText:
    layer: str
    text: str
    anchor: Point2
    font_size: float


@dataclass(frozen=True)
class SilkscreenPath:
    layer: str
    points: Tuple[Point2, ...]
    stroke_width: float


def parse_silkscreen_text(record: Record) -> Optional[SilkscreenText]:
    anchor = parse_point(record.get("anchor_position"))
    text = record.get("text")
    if anchor is None or not isinstance(text, str) or not text:
        return None
    return SilkscreenText(_layer_name(record.get("layer")), text, anchor, number(record, "font_size") or 1.0)


def parse_silkscreen_path(record: Record) -> Optional[SilkscreenPath]:
    points = tuple(p for p in (parse_point(v) for v in record.get("route") or []) if p is not None)
    if len(points) < 2:
        return None
    return SilkscreenPath(_layer_name(record.get("layer")), points, number(record, "stroke_width") or 0.1)


# -- components -------------------------------------------------------------


MODEL_URL_KEYS = (
    ("model_stl_url", "stl"),
    ("model_obj_url", "obj"),
    ("model_glb_url", "glb"),
    ("model_gltf_url", "gltf"),
)


@dataclass(frozen=True)
class Vec3Record:
    x: float
    y: float
    z: float


def _parse_vec3(value: Any) -> Optional[Vec3Record]:
    if not isinstance(value, Mapping):
        return None
    coords = [value.get(k) for k in ("x", "y", "z")]
    if not all(is_finite_number(c) for c in coords):
        return None
    return Vec3Record(*(float(c) for c in coords))


@dataclass(frozen=True)
class CadComponent:
    cad_component_id: str
    pcb_component_id: Optional[str]
    model_url: Optional[str] = None
    model_format: Optional[str] = None
    footprinter_string: Optional[str] = None
    size: Optional[Vec3Record] = None
    position: Optional[Vec3Record] = None
    rotation: Optional[Vec3Record] = None
    scale_factor: float = 1.0

    @property
    def uses_footprinter(self) -> bool:
        return self.model_url is None and bool(self.footprinter_string)

    @property
    def has_model(self) -> bool:
        return self.model_url is not None or self.uses_footprinter


def parse_cad_component(record: Record) -> CadComponent:
    model_url = model_format = None
    for key, fmt in MODEL_URL_KEYS:
        if record.get(key):
            model_url, model_format = str(record[key]), fmt
            break
    footprinter = record.get("footprinter_string")
    return CadComponent(
        cad_component_id=str(record.get("cad_component_id", "")),
        pcb_component_id=record.get("pcb_component_id"),
        model_url=model_url,
        model_format=model_format,
        footprinter_string=footprinter if isinstance(footprinter, str) and footprinter else None,
        size=_parse_vec3(record.get("size")),
        position=_parse_vec3(record.get("position")),
        rotation=_parse_vec3(record.get("rotation")),
        scale_factor=number(record, "model_unit_to_mm_scale_factor") or 1.0,
    )


@dataclass(frozen=True)
class PcbComponent:
    pcb_component_id: str
    source_component_id: Optional[str]
    center: Point2
    width: float
    height: float
    layer: str = "top"

    @property
    def is_bottom(self) -> bool:
        return self.layer == "bottom"


def parse_pcb_component(record: Record) -> PcbComponent:
    return PcbComponent(
        pcb_component_id=str(record.get("pcb_component_id", "")),
        source_component_id=record.get("source_component_id"),
        center=parse_point(record.get("center")) or Point2(0.0, 0.0),
        width=number(record, "width") or 0.0,
        height=number(record, "height") or 0.0,
        layer=_layer_name(record.get("layer")),
    )


# -- index ------------------------------------------------------------------


@dataclass
class Circuit:
    """Index over a circuit JSON element list."""

    elements: List[Record] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_type: Dict[str, List[Record]] = {}
        for element in self.elements:
            if isinstance(element, Mapping) and "type" in element:
                self._by_type.setdefault(element["type"], []).append(element)

    def records(self, kind: str) -> List[Record]:
        return list(self._by_type.get(kind, []))

    def _first(self, kind: str, parser) -> Any:
        for record in self._by_type.get(kind, []):
            parsed = parser(record)
            if parsed is not None:
                return parsed
        return None

    @property
    def board(self) -> Optional[Board]:
        return self._first("pcb_board", _parse_board)

    @property
    def panel(self) -> Optional[Panel]:
        return self._first("pcb_panel", _parse_panel)

    def holes(self) -> List[Hole]:
        parsed = [parse_hole(r) for r in self.records("pcb_hole")]
        parsed += [parse_plated_hole(r) for r in self.records("pcb_plated_hole")]
        return [h for h in parsed if h is not None]

    def cutouts_for(self, board: Board) -> List[Cutout]:
        parsed = (parse_cutout(r) for r in self.records("pcb_cutout") if cutout_applies_to_board(r, board))
        return [c for c in parsed if c is not None]

    def copper_pours(self) -> List[CopperPour]:
        return [p for p in (parse_copper_pour(r) for r in self.records("pcb_copper_pour")) if p is not None]

    def smt_pads(self) -> List[Pad]:
        return [p for p in (parse_smt_pad(r) for r in self.records("pcb_smtpad")) if p is not None]

    def silkscreen_texts(self) -> List[SilkscreenText]:
        parsed = (parse_silkscreen_text(r) for r in self.records("pcb_silkscreen_text"))
        return [t for t in parsed if t is not None]

    def silkscreen_paths(self) -> List[SilkscreenPath]:
        parsed = (parse_silkscreen_path(r) for r in self.records("pcb_silkscreen_path"))
        return [p for p in parsed if p is not None]

    def plated_holes(self) -> List[Record]:
        return self.records("pcb_plated_hole")

    def cad_components(self) -> List[CadComponent]:
        return [parse_cad_component(r) for r in self.records("cad_component")]

    def pcb_components(self) -> List[PcbComponent]:
        return [parse_pcb_component(r) for r in self.records("pcb_component")]

    def pcb_component(self, pcb_component_id: Optional[str]) -> Optional[PcbComponent]:
        for record in self._by_type.get("pcb_component", []):
            if record.get("pcb_component_id") == pcb_component_id:
                return parse_pcb_component(record)
        return None

    def source_name(self, source_component_id: Optional[str]) -> Optional[str]:
        for record in self._by_type.get("source_component", []):
            if record.get("source_component_id") == source_component_id:
                return record.get("name")
        return None


def as_circuit(circuit: Union[Circuit, Iterable[Record]]) -> Circuit:
    if isinstance(circuit, Circuit):
        return circuit
    return Circuit(list(circuit))


__all__ = [
    "Point2",
    "Board",
    "Panel",
    "CircularHole",
    "PillHole",
    "RotatedPillHole",
    "Hole",
    "RectCutout",
    "CircleCutout",
    "PolygonCutout",
    "Cutout",
    "RectPour",
    "PolygonPour",
    "BRepPour",
    "CopperPour",
    "RectPad",
    "CirclePad",
    "Pad",
    "SilkscreenText",
    "SilkscreenPath",
    "CadComponent",
    "PcbComponent",
    "Circuit",
    "as_circuit",
    "parse_hole",
    "parse_plated_hole",
    "parse_cutout",
    "parse_copper_pour",
    "parse_smt_pad",
    "parse_cad_component",
    "parse_pcb_component",
    "resolve_length",
    "resolve_rotation",
]
