"""Procedural package bodies from footprint descriptor strings.

A descriptor names a package family, an optional size or pin count and
optional ``_<param><value>`` overrides, e.g. ``"0603"``, ``"res0402"``,
``"soic8_p1.27mm"``, ``"dip16_w7.62mm"``, ``"qfn32_w5mm"`` or
``"pinrow6"``.  Bodies are authored Z-up in circuit coordinates (X
right, Y up the board, Z out of the board) and centered on the origin
in all three axes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from circuit3d.geometry_utils import Color, Triangle, compute_bounding_box
from circuit3d.io.gltf_builder import GLTFBuilder

BODY_COLOR: Color = (40, 40, 40, 1.0)
TERMINAL_COLOR: Color = (200, 200, 200, 1.0)
PIN_COLOR: Color = (212, 175, 55, 1.0)
CERAMIC_COLOR: Color = (196, 164, 120, 1.0)
LED_COLOR: Color = (235, 235, 235, 0.8)

# imperial code -> (length, width, height) in mm
PASSIVE_SIZES: Dict[str, Tuple[float, float, float]] = {
    "01005": (0.4, 0.2, 0.13),
    "0201": (0.6, 0.3, 0.3),
    "0402": (1.0, 0.5, 0.35),
    "0603": (1.6, 0.8, 0.45),
    "0805": (2.0, 1.25, 0.5),
    "1206": (3.2, 1.6, 0.55),
    "1210": (3.2, 2.5, 0.55),
    "2010": (5.0, 2.5, 0.6),
    "2512": (6.4, 3.2, 0.6),
}

_PASSIVE_PREFIXES = {"": BODY_COLOR, "res": BODY_COLOR, "r": BODY_COLOR, "cap": CERAMIC_COLOR,
                     "c": CERAMIC_COLOR, "ind": BODY_COLOR, "l": BODY_COLOR, "led": LED_COLOR,
                     "diode": BODY_COLOR, "d": BODY_COLOR}

_HEAD_RE = re.compile(r"^([a-z]*?)(\d+)?$")
_PARAM_RE = re.compile(r"^([a-z]+)(-?\d+(?:\.\d+)?)(mm|mil|in)?$")
_UNIT_SCALE = {"mm": 1.0, "mil": 0.0254, "in": 25.4}


class FootprintError(ValueError):
    """The descriptor names no package family this module can build."""


@dataclass(frozen=True)
class FootprintDescriptor:
    family: str
    number: Optional[str] = None
    params: Dict[str, float] = field(default_factory=dict)

    @property
    def pins(self) -> int:
        return int(self.number) if self.number else 0

    def param(self, name: str, default: float) -> float:
        return self.params.get(name, default)


def parse_descriptor(text: str) -> FootprintDescriptor:
    """Split a descriptor into family, number and numeric parameters (mm)."""

    tokens = [t for t in text.strip().lower().split("_") if t]
    if not tokens:
        raise FootprintError("empty footprint descriptor")
    head = _HEAD_RE.match(tokens[0])
    if head is None:
        raise FootprintError(f"unrecognised footprint descriptor {text!r}")
    params: Dict[str, float] = {}
    for token in tokens[1:]:
        match = _PARAM_RE.match(token)
        if match is None:
            continue
        name, value, unit = match.groups()
        params[name] = float(value) * _UNIT_SCALE[unit or "mm"]
    return FootprintDescriptor(family=head.group(1), number=head.group(2), params=params)


def box_triangles(center: Tuple[float, float], z0: float, size: Tuple[float, float, float],
                  color: Color) -> List[Triangle]:
    """Axis-aligned cuboid standing on ``z0``; faces wound outward."""

    cx, cy = center
    sx, sy, sz = size
    x0, x1 = cx - sx / 2, cx + sx / 2
    y0, y1 = cy - sy / 2, cy + sy / 2
    z1 = z0 + sz
    quads = [
        ((0.0, 0.0, 1.0), [(x0, y0, z1), (x1, y0, z1), (x1, y1, z1), (x0, y1, z1)]),
        ((0.0, 0.0, -1.0), [(x0, y1, z0), (x1, y1, z0), (x1, y0, z0), (x0, y0, z0)]),
        ((1.0, 0.0, 0.0), [(x1, y0, z0), (x1, y1, z0), (x1, y1, z1), (x1, y0, z1)]),
        ((-1.0, 0.0, 0.0), [(x0, y1, z0), (x0, y0, z0), (x0, y0, z1), (x0, y1, z1)]),
        ((0.0, 1.0, 0.0), [(x1, y1, z0), (x0, y1, z0), (x0, y1, z1), (x1, y1, z1)]),
        ((0.0, -1.0, 0.0), [(x0, y0, z0), (x1, y0, z0), (x1, y0, z1), (x0, y0, z1)]),
    ]
    triangles = []
    for normal, (a, b, c, d) in quads:
        triangles.append(Triangle(a, b, c, normal, color=color))
        triangles.append(Triangle(a, c, d, normal, color=color))
    return triangles


def _passive(desc: FootprintDescriptor) -> List[Triangle]:
    length, width, height = PASSIVE_SIZES[desc.number]
    cap = length * 0.2
    body = box_triangles((0.0, 0.0), 0.0, (length - 2 * cap, width, height), _PASSIVE_PREFIXES[desc.family])
    for side in (-1, 1):
        body += box_triangles((side * (length - cap) / 2, 0.0), 0.0, (cap, width, height), TERMINAL_COLOR)
    return body


def _dual_row(desc: FootprintDescriptor, pitch: float, row_span: float, body_width: float,
              height: float, lead_length: float) -> List[Triangle]:
    pins = desc.pins or 8
    if pins % 2:
        raise FootprintError(f"dual-row package needs an even pin count, got {pins}")
    pitch = desc.param("p", pitch)
    row_span = desc.param("w", row_span)
    per_side = pins // 2
    body_length = (per_side - 1) * pitch + pitch * 0.8
    triangles = box_triangles((0.0, 0.0), 0.1, (body_width, body_length, height), BODY_COLOR)
    lead_width = desc.param("pw", pitch * 0.35)
    for i in range(per_side):
        y = (per_side - 1) * pitch / 2 - i * pitch
        for side in (-1, 1):
            x = side * (row_span / 2 - lead_length / 2)
            triangles += box_triangles((x, y), 0.0, (lead_length, lead_width, 0.2), TERMINAL_COLOR)
    return triangles


def _dip(desc: FootprintDescriptor) -> List[Triangle]:
    pins = desc.pins or 8
    if pins % 2:
        raise FootprintError(f"DIP needs an even pin count, got {pins}")
    pitch = desc.param("p", 2.54)
    row_span = desc.param("w", 7.62)
    per_side = pins // 2
    body_length = per_side * pitch
    triangles = box_triangles((0.0, 0.0), 0.5, (row_span - 1.27, body_length, 3.3), BODY_COLOR)
    for i in range(per_side):
        y = (per_side - 1) * pitch / 2 - i * pitch
        for side in (-1, 1):
            triangles += box_triangles((side * row_span / 2, y), -3.0, (0.5, 0.5, 4.0), TERMINAL_COLOR)
    return triangles


def _quad(desc: FootprintDescriptor, pitch: float, height: float, leaded: bool) -> List[Triangle]:
    pins = desc.pins or 16
    if pins % 4:
        raise FootprintError(f"quad package needs a pin count divisible by 4, got {pins}")
    pitch = desc.param("p", pitch)
    per_side = pins // 4
    side = desc.param("w", (per_side + 1) * pitch)
    lead = 1.0 if leaded else 0.0
    triangles = box_triangles((0.0, 0.0), 0.0 if not leaded else 0.1, (side, side, height), BODY_COLOR)
    pad_len = 0.4 if not leaded else lead
    offset = side / 2 + lead / 2 - (pad_len / 2 if not leaded else 0.0)
    for i in range(per_side):
        t = (per_side - 1) * pitch / 2 - i * pitch
        size_x = (pad_len, pitch * 0.5, 0.2 if leaded else 0.05)
        size_y = (pitch * 0.5, pad_len, 0.2 if leaded else 0.05)
        z0 = 0.0 if leaded else -0.05
        triangles += box_triangles((offset, t), z0, size_x, TERMINAL_COLOR)
        triangles += box_triangles((-offset, -t), z0, size_x, TERMINAL_COLOR)
        triangles += box_triangles((-t, offset), z0, size_y, TERMINAL_COLOR)
        triangles += box_triangles((t, -offset), z0, size_y, TERMINAL_COLOR)
    return triangles


def _sot(desc: FootprintDescriptor) -> List[Triangle]:
    if desc.number not in ("23", "235", "236", "223", None):
        raise FootprintError(f"unsupported SOT variant sot{desc.number}")
    if desc.number == "223":
        triangles = box_triangles((0.0, 0.0), 0.1, (6.5, 3.5, 1.6), BODY_COLOR)
        triangles += box_triangles((0.0, 2.9), 0.0, (3.0, 1.8, 0.25), TERMINAL_COLOR)
        for x in (-2.3, 0.0, 2.3):
            triangles += box_triangles((x, -2.9), 0.0, (0.7, 1.8, 0.25), TERMINAL_COLOR)
        return triangles
    leads = {"235": 5, "236": 6}.get(desc.number or "", int(desc.param("n", 3)))
    triangles = box_triangles((0.0, 0.0), 0.1, (2.9, 1.3, 1.0), BODY_COLOR)
    bottom = (leads + 1) // 2
    top = leads - bottom
    for count, y in ((bottom, -1.0), (top, 1.0)):
        for i in range(count):
            x = 0.0 if count == 1 else -0.95 + i * (1.9 / (count - 1))
            triangles += box_triangles((x, y), 0.0, (0.4, 0.7, 0.15), TERMINAL_COLOR)
    return triangles


def _pinrow(desc: FootprintDescriptor) -> List[Triangle]:
    pins = desc.pins or 1
    pitch = desc.param("p", 2.54)
    triangles = []
    for i in range(pins):
        x = (pins - 1) * pitch / 2 - i * pitch
        triangles += box_triangles((x, 0.0), 0.0, (pitch, pitch, 2.5), BODY_COLOR)
        triangles += box_triangles((x, 0.0), -3.0, (0.64, 0.64, 11.5), PIN_COLOR)
    return triangles


def _families():
    return {
        "soic": lambda d: _dual_row(d, 1.27, 6.0, 3.9, 1.5, 1.05),
        "sop": lambda d: _dual_row(d, 1.27, 7.8, 5.3, 1.8, 1.25),
        "ssop": lambda d: _dual_row(d, 0.65, 7.8, 5.3, 1.75, 1.25),
        "tssop": lambda d: _dual_row(d, 0.65, 6.4, 4.4, 1.0, 1.0),
        "msop": lambda d: _dual_row(d, 0.65, 4.9, 3.0, 0.95, 0.95),
        "dip": _dip,
        "qfn": lambda d: _quad(d, 0.5, 0.9, leaded=False),
        "dfn": lambda d: _quad(d, 0.5, 0.9, leaded=False),
        "qfp": lambda d: _quad(d, 0.8, 1.4, leaded=True),
        "lqfp": lambda d: _quad(d, 0.5, 1.4, leaded=True),
        "tqfp": lambda d: _quad(d, 0.8, 1.0, leaded=True),
        "sot": _sot,
        "pinrow": _pinrow,
        "pinheader": _pinrow,
    }


def footprint_triangles(text: str) -> List[Triangle]:
    """Coloured triangles of the package body for descriptor ``text``."""

    desc = parse_descriptor(text)
    if desc.family in _PASSIVE_PREFIXES and desc.number in PASSIVE_SIZES:
        triangles = _passive(desc)
    else:
        builder = _families().get(desc.family)
        if builder is None:
            raise FootprintError(f"unsupported footprint {text!r}")
        triangles = builder(desc)

    box = compute_bounding_box(triangles)
    dz = (box.min[2] + box.max[2]) / 2
    return [
        Triangle((a[0], a[1], a[2] - dz), (b[0], b[1], b[2] - dz), (c[0], c[1], c[2] - dz), t.normal, color=t.color)
        for t in triangles
        for a, b, c in (t.vertices,)
    ]


def footprint_glb(text: str) -> bytes:
    """Package body for ``text`` encoded as a GLB container, one material per colour."""

    groups: Dict[Color, List[Triangle]] = {}
    for tri in footprint_triangles(text):
        groups.setdefault(tri.color, []).append(tri)
    builder = GLTFBuilder()
    mesh = builder.add_triangles(list((tris, color) for color, tris in groups.items()), name=text)
    builder.add_node({"mesh": mesh, "name": text})
    return builder.to_glb()


__all__ = [
    "FootprintError",
    "FootprintDescriptor",
    "PASSIVE_SIZES",
    "parse_descriptor",
    "box_triangles",
    "footprint_triangles",
    "footprint_glb",
]
