"""Core library module.

Components:
    handle: ManagedObject, the reference-counted commit-before-use base class
    data: Typed shared or copied buffers
    color: sRGB encoding and 8-bit quantization
    ray: Sampling helpers for Taichi kernels
    framebuffer: Render targets with mappable channels
    renderer: The "pathtracer" renderer object
    integrator: Taichi fields and kernels doing the actual path tracing

Rendering flattens the committed object graph into arrays, uploads them to
preallocated Taichi fields and runs one kernel launch per frame.
"""

from .color import linear_to_srgb, quantize_unorm8, srgb_to_linear
from .data import Data, DataType, as_data
from .handle import ManagedObject, require_committed
from .ray import pixel_sample_offset, radical_inverse, sample_cosine_hemisphere

# Note: framebuffer, renderer and integrator are NOT imported here to avoid
# circular imports. Import them from their modules directly.

__all__ = [
    "ManagedObject",
    "require_committed",
    "Data",
    "DataType",
    "as_data",
    "srgb_to_linear",
    "linear_to_srgb",
    "quantize_unorm8",
    "sample_cosine_hemisphere",
    "radical_inverse",
    "pixel_sample_offset",
]
