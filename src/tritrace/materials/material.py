"""Materials for the path tracer.

Materials are created for a renderer type, mirroring how each renderer
understands its own shading models. The path tracer supports:

- "obj" (alias "OBJMaterial"): Lambertian diffuse with color ``Kd`` and an
  optional texture ``map_Kd`` that multiplies ``Kd``.
- "luminous": an emitter with ``color`` and ``intensity``; paths end on it.

Without a material, a geometry renders black (it reflects nothing).

Example:
    >>> material = device.new_material("pathtracer", "OBJMaterial")
    >>> material.set("map_Kd", texture).commit()
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from tritrace.core.handle import ManagedObject, as_float, as_object, as_vector
from tritrace.errors import InvalidArgumentError
from tritrace.materials.texture import Texture2D

# Default diffuse reflectance of OBJ materials
DEFAULT_KD = (0.8, 0.8, 0.8)


class MaterialKind(IntEnum):
    """Shading model index used for dispatch in the integrator."""

    DIFFUSE = 0
    LUMINOUS = 1


class Material(ManagedObject):
    """Base class of renderer materials."""

    kind = "material"
    material_kind = MaterialKind.DIFFUSE

    @property
    def diffuse(self) -> tuple[float, float, float]:
        return (0.0, 0.0, 0.0)

    @property
    def emission(self) -> tuple[float, float, float]:
        return (0.0, 0.0, 0.0)

    @property
    def texture(self) -> Texture2D | None:
        return None


class ObjMaterial(Material):
    """Wavefront OBJ style diffuse material."""

    PARAMETERS = {
        "Kd": as_vector(3),
        "map_Kd": as_object(Texture2D),
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        params.setdefault("Kd", DEFAULT_KD)
        if any(c < 0.0 or c > 1.0 for c in params["Kd"]):
            raise InvalidArgumentError(f"{self!r}: Kd components must lie in [0, 1]")

    @property
    def diffuse(self) -> tuple[float, float, float]:
        return self.get("Kd")

    @property
    def texture(self) -> Texture2D | None:
        return self.get("map_Kd")


class LuminousMaterial(Material):
    """Emissive material; surfaces using it glow and do not reflect."""

    material_kind = MaterialKind.LUMINOUS
    PARAMETERS = {
        "color": as_vector(3),
        "intensity": as_float,
    }

    @property
    def emission(self) -> tuple[float, float, float]:
        color = self.get("color", (1.0, 1.0, 1.0))
        intensity = self.get("intensity", 1.0)
        return (color[0] * intensity, color[1] * intensity, color[2] * intensity)


# Materials understood by each renderer type, keyed by lowercase type name
MATERIAL_TYPES: dict[str, dict[str, type[Material]]] = {
    "pathtracer": {
        "obj": ObjMaterial,
        "objmaterial": ObjMaterial,
        "luminous": LuminousMaterial,
    },
}


def material_class(renderer_type: str, material_type: str) -> type[Material]:
    """Look up the material class for a renderer and material type name.

    Raises:
        InvalidArgumentError: If the renderer or material type is unknown.
    """
    materials = MATERIAL_TYPES.get(renderer_type.lower())
    if materials is None:
        raise InvalidArgumentError(f"unknown renderer type {renderer_type!r} for materials")
    cls = materials.get(material_type.lower())
    if cls is None:
        raise InvalidArgumentError(
            f"renderer {renderer_type!r} has no material type {material_type!r}"
        )
    return cls
