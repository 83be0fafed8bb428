"""Scene module.

Components:
    model: Scene, the ordered set of geometries to render
    lights: Ambient and distant lights
    compile: Flattening of a committed scene into arrays for the integrator
"""

from .compile import SceneArrays, compile_scene
from .lights import LIGHT_TYPES, AmbientLight, DistantLight, Light, LightKind
from .model import Scene

__all__ = [
    "Scene",
    "Light",
    "LightKind",
    "AmbientLight",
    "DistantLight",
    "LIGHT_TYPES",
    "SceneArrays",
    "compile_scene",
]
