"""Scene to glTF 2.0 export.

Each :class:`~circuit3d.scene.Box3D` becomes a root node carrying its
translation and rotation; meshes stay in box-local coordinates and
placeholders are a shared unit cube scaled to the box size.  The scene
frame is mirrored across X on the way out (positions, normals,
quaternions, and triangle winding) so the asset is right-handed.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from circuit3d.config import GLTFExportOptions, parse_color
from circuit3d.geometry_utils import DEFAULT_MATERIAL_COLOR, Color, Mesh, Triangle, Vec3
from circuit3d.io.gltf_builder import GLTFBuilder, color_factor, unit_normal
from circuit3d.rasterize import png_size
from circuit3d.scene import Box3D, Camera, Light, Scene, Texture

logger = logging.getLogger(__name__)

TEXTURE_OFFSET = 0.001
LABEL_OFFSET = 0.01
LABEL_WIDTH_RATIO = 0.9

Quaternion = Tuple[float, float, float, float]


# ---------------------------------------------------------------------------
# Math helpers
# ---------------------------------------------------------------------------


def euler_to_quaternion(rotation: Vec3) -> Quaternion:
    """Quaternion ``(x, y, z, w)`` for intrinsic XYZ Euler angles in radians."""

    x, y, z = rotation
    c1, c2, c3 = math.cos(x / 2), math.cos(y / 2), math.cos(z / 2)
    s1, s2, s3 = math.sin(x / 2), math.sin(y / 2), math.sin(z / 2)
    return (
        s1 * c2 * c3 + c1 * s2 * s3,
        c1 * s2 * c3 - s1 * c2 * s3,
        c1 * c2 * s3 + s1 * s2 * c3,
        c1 * c2 * c3 - s1 * s2 * s3,
    )


def matrix_to_quaternion(m: np.ndarray) -> Quaternion:
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0:
        s = 0.5 / math.sqrt(trace + 1.0)
        return ((m[2, 1] - m[1, 2]) * s, (m[0, 2] - m[2, 0]) * s, (m[1, 0] - m[0, 1]) * s, 0.25 / s)
    if m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        return (0.25 * s, (m[0, 1] + m[1, 0]) / s, (m[0, 2] + m[2, 0]) / s, (m[2, 1] - m[1, 2]) / s)
    if m[1, 1] > m[2, 2]:
        s = 2.0 * math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        return ((m[0, 1] + m[1, 0]) / s, 0.25 * s, (m[1, 2] + m[2, 1]) / s, (m[0, 2] - m[2, 0]) / s)
    s = 2.0 * math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
    return ((m[0, 2] + m[2, 0]) / s, (m[1, 2] + m[2, 1]) / s, 0.25 * s, (m[1, 0] - m[0, 1]) / s)


def look_rotation(forward: Vec3, up: Vec3 = (0.0, 1.0, 0.0)) -> Quaternion:
    """Rotation turning a node's -Z axis towards ``forward``."""

    f = np.asarray(forward, dtype=np.float64)
    length = np.linalg.norm(f)
    if length == 0:
        return 0.0, 0.0, 0.0, 1.0
    z_axis = -f / length
    x_axis = np.cross(np.asarray(up, dtype=np.float64), z_axis)
    if np.linalg.norm(x_axis) < 1e-9:
        # looking straight along up; any perpendicular will do
        x_axis = np.cross((0.0, 0.0, 1.0), z_axis)
    x_axis /= np.linalg.norm(x_axis)
    y_axis = np.cross(z_axis, x_axis)
    return matrix_to_quaternion(np.column_stack([x_axis, y_axis, z_axis]))


def mirror_point(p: Vec3) -> List[float]:
    return [-float(p[0]), float(p[1]), float(p[2])]


def mirror_quaternion(q: Quaternion) -> List[float]:
    x, y, z, w = q
    return [x, -y, -z, w]


def mirror_triangles(triangles: Sequence[Triangle]) -> List[Triangle]:
    """Reflect across X and reverse winding so faces keep pointing outward."""

    mirrored = []
    for tri in triangles:
        (ax, ay, az), (bx, by, bz), (cx, cy, cz) = tri.vertices
        nx, ny, nz = tri.normal
        mirrored.append(Triangle(
            (-ax, ay, az), (-cx, cy, cz), (-bx, by, bz), (-nx, ny, nz),
            color=tri.color, material_index=tri.material_index,
        ))
    return mirrored


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


def _unit_cube() -> List[Triangle]:
    triangles = []
    faces = [
        ((1, 0, 0), [(0.5, -0.5, -0.5), (0.5, 0.5, -0.5), (0.5, 0.5, 0.5), (0.5, -0.5, 0.5)]),
        ((-1, 0, 0), [(-0.5, -0.5, 0.5), (-0.5, 0.5, 0.5), (-0.5, 0.5, -0.5), (-0.5, -0.5, -0.5)]),
        ((0, 1, 0), [(-0.5, 0.5, -0.5), (-0.5, 0.5, 0.5), (0.5, 0.5, 0.5), (0.5, 0.5, -0.5)]),
        ((0, -1, 0), [(-0.5, -0.5, 0.5), (-0.5, -0.5, -0.5), (0.5, -0.5, -0.5), (0.5, -0.5, 0.5)]),
        ((0, 0, 1), [(-0.5, -0.5, 0.5), (0.5, -0.5, 0.5), (0.5, 0.5, 0.5), (-0.5, 0.5, 0.5)]),
        ((0, 0, -1), [(0.5, -0.5, -0.5), (-0.5, -0.5, -0.5), (-0.5, 0.5, -0.5), (0.5, 0.5, -0.5)]),
    ]
    for normal, (a, b, c, d) in faces:
        triangles.append(Triangle(a, b, c, normal))
        triangles.append(Triangle(a, c, d, normal))
    return triangles


UNIT_CUBE = tuple(_unit_cube())


def color_groups(mesh: Mesh, fallback: Color) -> List[Tuple[List[Triangle], Color]]:
    """Split ``mesh`` into same-colour runs in first-seen order.

    Precedence: the mesh material, then the triangle colour, then
    ``fallback``.
    """

    groups: Dict[Color, List[Triangle]] = {}
    for tri in mesh.triangles:
        color: Optional[Color] = None
        if tri.material_index is not None and tri.material_index in mesh.materials:
            color = mesh.materials[tri.material_index].color
        elif tri.color is not None:
            color = tri.color
        groups.setdefault(tuple(color or fallback), []).append(tri)
    return [(tris, color) for color, tris in groups.items()]


class SceneExporter:
    """Writes one scene into a :class:`GLTFBuilder`."""

    def __init__(self, options: GLTFExportOptions):
        self.options = options
        self.builder = GLTFBuilder()
        self._cubes: Dict[Color, int] = {}

    def _mesh(self, groups, name: Optional[str]) -> Optional[int]:
        mirrored = [(mirror_triangles(tris), color) for tris, color in groups]
        return self.builder.add_triangles(mirrored, force_indices=self.options.force_indices, name=name)

    def _cube_mesh(self, color: Color) -> int:
        if color not in self._cubes:
            self._cubes[color] = self._mesh([(list(UNIT_CUBE), color)], name="box")
        return self._cubes[color]

    def _quad(self, corners: Sequence[Vec3], uvs: Sequence[Tuple[float, float]], normal: Vec3,
              texture: Texture, name: str) -> int:
        """Textured two-triangle mesh; ``corners`` wind counter-clockwise seen from ``normal``."""

        tex = self.builder.add_image_texture(texture.png, name=name)
        material = self.builder.add_material((255, 255, 255, 1.0), texture=tex, unlit=True)
        # mirrored frame: negate x and swap winding
        positions = np.array([mirror_point(c) for c in corners], dtype=np.float64)
        normals = np.repeat(np.array([mirror_point(normal)], dtype=np.float64), 4, axis=0)
        indices = np.array([0, 2, 1, 0, 3, 2], dtype=np.uint32)
        primitive = self.builder.add_primitive(positions, normals, material,
                                               uvs=np.asarray(uvs, dtype=np.float64), indices=indices)
        return self.builder.add_mesh([primitive], name=name)

    def _node(self, box: Box3D, mesh: int, *, scale: Optional[Vec3] = None,
              name: Optional[str] = None) -> Dict[str, Any]:
        node: Dict[str, Any] = {'mesh': mesh, 'translation': mirror_point(box.center)}
        if box.rotation is not None and any(box.rotation):
            node['rotation'] = mirror_quaternion(euler_to_quaternion(box.rotation))
        if scale is not None:
            node['scale'] = [float(s) for s in scale]
        if name:
            node['name'] = name
        return node

    def add_box(self, box: Box3D, index: int) -> None:
        name = box.name or f"box_{index}"
        color = box.color or DEFAULT_MATERIAL_COLOR
        if box.mesh is not None and len(box.mesh):
            mesh = self._mesh(color_groups(box.mesh, color), name)
            node = self._node(box, mesh, name=name)
        else:
            node = self._node(box, self._cube_mesh(color), scale=box.size, name=name)

        children = []
        if box.textures is not None and self.options.embed_images:
            children.extend(self._texture_nodes(box))
        if children:
            node['children'] = children
        self.builder.add_node(node)

        if box.label_texture is not None and self.options.embed_images:
            self._label_node(box, name)

    def _texture_nodes(self, box: Box3D) -> List[int]:
        if box.mesh is not None and len(box.mesh):
            lo, hi = box.mesh.bounding_box.min, box.mesh.bounding_box.max
        else:
            lo = tuple(-s / 2 for s in box.size)
            hi = tuple(s / 2 for s in box.size)
        x0, x1, z0, z1 = lo[0], hi[0], lo[2], hi[2]
        top_y = hi[1] + TEXTURE_OFFSET
        bottom_y = lo[1] - TEXTURE_OFFSET
        # image v runs from the far (max z) edge; the bottom image is mirrored in u
        top = self._quad(
            [(x0, top_y, z1), (x1, top_y, z1), (x1, top_y, z0), (x0, top_y, z0)],
            [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)],
            (0.0, 1.0, 0.0), box.textures.top, "board_top",
        )
        bottom = self._quad(
            [(x0, bottom_y, z0), (x1, bottom_y, z0), (x1, bottom_y, z1), (x0, bottom_y, z1)],
            [(1.0, 1.0), (0.0, 1.0), (0.0, 0.0), (1.0, 0.0)],
            (0.0, -1.0, 0.0), box.textures.bottom, "board_bottom",
        )
        return [self.builder.add_node({'mesh': top, 'name': 'board_top'}, root=False),
                self.builder.add_node({'mesh': bottom, 'name': 'board_bottom'}, root=False)]

    def _label_node(self, box: Box3D, name: str) -> None:
        width_px, height_px = png_size(box.label_texture.png)
        width = max(box.size[0], 0.1) * LABEL_WIDTH_RATIO
        depth = width * height_px / max(width_px, 1)
        y = box.size[1] / 2 + LABEL_OFFSET
        hw, hd = width / 2, depth / 2
        mesh = self._quad(
            [(-hw, y, hd), (hw, y, hd), (hw, y, -hd), (-hw, y, -hd)],
            [(0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)],
            (0.0, 1.0, 0.0), box.label_texture, f"{name}_label",
        )
        self.builder.add_node({'mesh': mesh, 'translation': mirror_point(box.center), 'name': f"{name}_label"})

    def add_camera(self, camera: Camera) -> None:
        index = self.builder.add_camera({
            'type': 'perspective',
            'perspective': {'yfov': math.radians(camera.fov), 'znear': camera.near, 'zfar': camera.far},
        })
        position = mirror_point(camera.position)
        target = mirror_point(camera.target)
        forward = tuple(t - p for t, p in zip(target, position))
        self.builder.add_node({
            'camera': index,
            'translation': position,
            'rotation': list(look_rotation(forward, mirror_point(camera.up))),
            'name': 'camera',
        })

    def add_lights(self, lights: Sequence[Light]) -> None:
        punctual = []
        extras = self.builder.document['scenes'][0].setdefault('extras', {})
        for light in lights:
            if light.kind == 'ambient':
                extras['ambientLight'] = {'color': color_factor(light.color)[:3], 'intensity': light.intensity}
                continue
            punctual.append({'type': 'directional', 'color': color_factor(light.color)[:3],
                             'intensity': light.intensity})
            direction = mirror_point(light.direction or (0.0, -1.0, 0.0))
            self.builder.add_node({
                'rotation': list(look_rotation(direction)),
                'extensions': {'KHR_lights_punctual': {'light': len(punctual) - 1}},
                'name': f"light_{len(punctual) - 1}",
            })
        if punctual:
            self.builder.document.setdefault('extensions', {})['KHR_lights_punctual'] = {'lights': punctual}
            self.builder.use_extension('KHR_lights_punctual')

    def export(self, scene: Scene) -> Union[bytes, Dict[str, Any]]:
        for index, box in enumerate(scene.boxes):
            self.add_box(box, index)
        self.add_camera(scene.camera)
        self.add_lights(scene.lights)
        if self.options.background_color is not None:
            extras = self.builder.document['scenes'][0].setdefault('extras', {})
            extras['backgroundColor'] = color_factor(parse_color(self.options.background_color))
        return self.builder.to_glb() if self.options.binary else self.builder.to_gltf()


def convert_scene_to_gltf(scene: Scene, options: Optional[GLTFExportOptions] = None) -> Union[bytes, Dict[str, Any]]:
    """Export ``scene`` as GLB bytes or as a glTF JSON dict with an inline buffer."""

    options = options or GLTFExportOptions()
    logger.debug("exporting %d boxes (binary=%s)", len(scene.boxes), options.binary)
    return SceneExporter(options).export(scene)


__all__ = [
    'convert_scene_to_gltf',
    'SceneExporter',
    'euler_to_quaternion',
    'look_rotation',
    'mirror_triangles',
    'color_groups',
    'UNIT_CUBE',
]
