"""Flatten a committed object graph into arrays for the path tracer.

The Taichi kernels cannot follow Python object references, so before each
render the committed scene, its materials and textures, the lights and the
camera are packed into flat numpy arrays (structure of arrays). Materials and
textures shared by several geometries are packed once; triangles refer to
them by index, with -1 meaning "none".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from tritrace.camera.projection import Camera, CameraBasis
from tritrace.materials.material import Material
from tritrace.materials.texture import Texture2D
from tritrace.scene.lights import Light
from tritrace.scene.model import Scene

logger = logging.getLogger(__name__)


@dataclass
class SceneArrays:
    """Flat, device-ready description of everything a render needs.

    Attributes:
        positions: Triangle corners, shape (n, 3, 3).
        texcoords: Per-corner texture coordinates, shape (n, 3, 2).
        material_ids: Material index per triangle, shape (n,).
        material_kinds: MaterialKind per material, shape (m,).
        diffuse: Diffuse color per material, shape (m, 3).
        emission: Emitted radiance per material, shape (m, 3).
        texture_ids: Texture index per material, shape (m,).
        texels: All textures' linear RGBA texels, concatenated, shape (k, 4).
        texture_offsets: First texel of each texture, shape (t,).
        texture_sizes: (width, height) of each texture, shape (t, 2).
        texture_nearest: 1 for nearest filtering, 0 for bilinear, shape (t,).
        light_kinds: LightKind per light, shape (l,).
        light_radiance: Radiance per light, shape (l, 3).
        light_directions: Travel direction per light, shape (l, 3).
        camera: The camera's ray-generation basis.
    """

    positions: npt.NDArray[np.float32]
    texcoords: npt.NDArray[np.float32]
    material_ids: npt.NDArray[np.int32]
    material_kinds: npt.NDArray[np.int32]
    diffuse: npt.NDArray[np.float32]
    emission: npt.NDArray[np.float32]
    texture_ids: npt.NDArray[np.int32]
    texels: npt.NDArray[np.float32]
    texture_offsets: npt.NDArray[np.int32]
    texture_sizes: npt.NDArray[np.int32]
    texture_nearest: npt.NDArray[np.int32]
    light_kinds: npt.NDArray[np.int32]
    light_radiance: npt.NDArray[np.float32]
    light_directions: npt.NDArray[np.float32]
    camera: CameraBasis

    @property
    def num_triangles(self) -> int:
        return int(self.positions.shape[0])

    @property
    def num_lights(self) -> int:
        return int(self.light_kinds.shape[0])


class _Table:
    """Assigns consecutive indices to objects, keyed by identity."""

    def __init__(self) -> None:
        self._index: dict[int, int] = {}
        self.objects: list = []

    def index_of(self, obj) -> int:
        key = id(obj)
        if key not in self._index:
            self._index[key] = len(self.objects)
            self.objects.append(obj)
        return self._index[key]


def _pack_textures(textures: Sequence[Texture2D]):
    offsets = np.zeros(len(textures), dtype=np.int32)
    sizes = np.zeros((len(textures), 2), dtype=np.int32)
    nearest = np.zeros(len(textures), dtype=np.int32)
    chunks = []
    offset = 0
    for i, texture in enumerate(textures):
        texels = texture.texels()
        offsets[i] = offset
        sizes[i] = texture.size
        nearest[i] = int(texture.nearest)
        chunks.append(texels)
        offset += texels.shape[0]
    texels = np.concatenate(chunks) if chunks else np.zeros((0, 4), dtype=np.float32)
    return np.ascontiguousarray(texels, dtype=np.float32), offsets, sizes, nearest


def compile_scene(scene: Scene, camera: Camera, lights: Sequence[Light]) -> SceneArrays:
    """Pack committed objects into a SceneArrays.

    Args:
        scene: The committed model.
        camera: The committed camera.
        lights: Committed lights, in the order they are evaluated.

    Returns:
        The flattened scene.
    """
    materials = _Table()
    textures = _Table()

    positions = []
    texcoords = []
    material_ids = []

    for geometry in scene.geometries:
        corners, uvs = geometry.triangles()
        count = corners.shape[0]
        if uvs is None:
            uvs = np.zeros((count, 3, 2), dtype=np.float32)

        material: Material | None = geometry.material
        material_id = -1 if material is None else materials.index_of(material)

        positions.append(corners)
        texcoords.append(uvs)
        material_ids.append(np.full(count, material_id, dtype=np.int32))

    num_materials = len(materials.objects)
    material_kinds = np.zeros(num_materials, dtype=np.int32)
    diffuse = np.zeros((num_materials, 3), dtype=np.float32)
    emission = np.zeros((num_materials, 3), dtype=np.float32)
    texture_ids = np.full(num_materials, -1, dtype=np.int32)

    for i, material in enumerate(materials.objects):
        material_kinds[i] = int(material.material_kind)
        diffuse[i] = material.diffuse
        emission[i] = material.emission
        if material.texture is not None:
            texture_ids[i] = textures.index_of(material.texture)

    texels, texture_offsets, texture_sizes, texture_nearest = _pack_textures(textures.objects)

    light_kinds = np.array([int(light.light_kind) for light in lights], dtype=np.int32)
    light_radiance = np.array([light.radiance for light in lights], dtype=np.float32).reshape(-1, 3)
    light_directions = np.array(
        [light.direction for light in lights], dtype=np.float32
    ).reshape(-1, 3)

    if positions:
        all_positions = np.concatenate(positions).astype(np.float32)
        all_texcoords = np.concatenate(texcoords).astype(np.float32)
        all_material_ids = np.concatenate(material_ids)
    else:
        all_positions = np.zeros((0, 3, 3), dtype=np.float32)
        all_texcoords = np.zeros((0, 3, 2), dtype=np.float32)
        all_material_ids = np.zeros(0, dtype=np.int32)

    arrays = SceneArrays(
        positions=np.ascontiguousarray(all_positions),
        texcoords=np.ascontiguousarray(all_texcoords),
        material_ids=np.ascontiguousarray(all_material_ids),
        material_kinds=material_kinds,
        diffuse=diffuse,
        emission=emission,
        texture_ids=texture_ids,
        texels=texels,
        texture_offsets=texture_offsets,
        texture_sizes=texture_sizes,
        texture_nearest=texture_nearest,
        light_kinds=light_kinds,
        light_radiance=np.ascontiguousarray(light_radiance),
        light_directions=np.ascontiguousarray(light_directions),
        camera=camera.basis(),
    )
    logger.debug(
        "compiled scene: %d triangles, %d materials, %d textures, %d lights",
        arrays.num_triangles,
        num_materials,
        len(textures.objects),
        arrays.num_lights,
    )
    return arrays
