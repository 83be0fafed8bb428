"""Taichi path tracer with a reference-counted scene-graph API.

This package provides a small rendering library in which every object is
created by a device, configured through named parameters, committed, and
released when no longer needed:

- Typed data buffers, shared (zero-copy) or copied
- Triangle meshes with per-vertex texture coordinates
- 2D textures with nearest or bilinear filtering
- OBJ (textured diffuse) and luminous materials
- Orthographic and perspective cameras
- Ambient and distant lights
- A path tracing renderer writing into mappable frame buffers

Subpackages:
    core: Object lifecycle, data buffers, frame buffers, renderer and integrator
    geometry: Triangle meshes and ray-triangle intersection
    materials: Textures, materials and Lambertian scattering
    camera: Camera models and ray generation bases
    scene: Scene container, lights and scene flattening

Example:
    >>> import tritrace
    >>> device = tritrace.init(["prog", "--tt:device=cpu"])
    >>> with device.new_scene() as scene:
    ...     scene.commit()
    >>> device.shutdown()
"""

from tritrace.core.data import DataType
from tritrace.core.framebuffer import Channel, FrameBufferFormat
from tritrace.device import Device, init
from tritrace.errors import (
    CapacityError,
    ErrorCode,
    InitializationError,
    InvalidArgumentError,
    InvalidOperationError,
    ReleasedHandleError,
    TritraceError,
    UncommittedObjectError,
)
from tritrace.materials.texture import TextureFlag, TextureFormat

__version__ = "0.1.0"

__all__ = [
    "init",
    "Device",
    "DataType",
    "Channel",
    "FrameBufferFormat",
    "TextureFlag",
    "TextureFormat",
    "ErrorCode",
    "TritraceError",
    "InitializationError",
    "InvalidArgumentError",
    "InvalidOperationError",
    "UncommittedObjectError",
    "ReleasedHandleError",
    "CapacityError",
]
