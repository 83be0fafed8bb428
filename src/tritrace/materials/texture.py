"""2D textures sampled by materials.

A Texture2D is configured with:

- ``size``: (width, height) in texels
- ``type``: a TextureFormat describing channels and encoding
- ``flags``: TextureFlag.FILTER_NEAREST for blocky lookups, 0 for bilinear
- ``data``: a Data buffer with width * height * channels values, starting at
  the lower-left texel and running row by row upward

Texture coordinates wrap (repeat), so (0, 0) and (1, 1) both address the
lower-left corner. At commit the texels are converted once to linear float
RGBA, which is what the path tracer uploads.
"""

from __future__ import annotations

from enum import Enum, IntFlag
from typing import Any

import numpy as np
import numpy.typing as npt

from tritrace.core.color import srgb_to_linear
from tritrace.core.data import DataType, as_data
from tritrace.core.handle import ManagedObject, as_enum, as_positive_int, as_vector
from tritrace.errors import InvalidArgumentError


class TextureFormat(Enum):
    """Texel format: (label, channels, floating point, sRGB encoded)."""

    R8 = ("r8", 1, False, False)
    RGB8 = ("rgb8", 3, False, False)
    RGBA8 = ("rgba8", 4, False, False)
    SRGB = ("srgb", 3, False, True)
    SRGBA = ("srgba", 4, False, True)
    R32F = ("r32f", 1, True, False)
    RGB32F = ("rgb32f", 3, True, False)
    RGBA32F = ("rgba32f", 4, True, False)

    def __init__(self, label: str, channels: int, is_float: bool, srgb: bool) -> None:
        self.label = label
        self.channels = channels
        self.is_float = is_float
        self.srgb = srgb


class TextureFlag(IntFlag):
    """Texture sampling flags."""

    FILTER_BILINEAR = 0
    FILTER_NEAREST = 1


def texels_to_linear_rgba(
    values: npt.NDArray[Any], texture_format: TextureFormat
) -> npt.NDArray[np.float32]:
    """Convert raw texel values to an (n, 4) linear float RGBA array.

    Single-channel formats expand to gray with opaque alpha; three-channel
    formats get opaque alpha. sRGB formats decode the color channels only.
    """
    channels = texture_format.channels
    texels = values.reshape(-1, channels).astype(np.float32)
    if not texture_format.is_float:
        texels /= 255.0
    if texture_format.srgb:
        texels[:, :3] = srgb_to_linear(texels[:, :3])

    rgba = np.ones((texels.shape[0], 4), dtype=np.float32)
    if channels == 1:
        rgba[:, :3] = texels[:, :1]
    else:
        rgba[:, :channels] = texels
    return rgba


class Texture2D(ManagedObject):
    """A 2D texture image (type "texture2d")."""

    kind = "texture"
    PARAMETERS = {
        "size": as_vector(2, as_positive_int),
        "type": as_enum(TextureFormat),
        "flags": TextureFlag,
        "data": as_data(DataType.UCHAR, DataType.FLOAT, DataType.FLOAT3, DataType.FLOAT4),
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        for required in ("size", "type", "data"):
            if required not in params:
                raise InvalidArgumentError(f"{self!r} requires the {required!r} parameter")

        width, height = params["size"]
        texture_format: TextureFormat = params["type"]
        data = params["data"]

        if texture_format.is_float == (data.data_type is DataType.UCHAR):
            raise InvalidArgumentError(
                f"{texture_format.label} textures cannot use {data.data_type.label} data"
            )

        expected = width * height * texture_format.channels
        if data.array.size != expected:
            raise InvalidArgumentError(
                f"{width}x{height} {texture_format.label} texture needs {expected} values, "
                f"data has {data.array.size}"
            )

        params.setdefault("flags", TextureFlag.FILTER_BILINEAR)
        params["_texels"] = texels_to_linear_rgba(data.array, texture_format)

    @property
    def size(self) -> tuple[int, int]:
        return self.get("size")

    @property
    def nearest(self) -> bool:
        """True if lookups snap to the nearest texel."""
        return bool(self.get("flags") & TextureFlag.FILTER_NEAREST)

    def texels(self) -> npt.NDArray[np.float32]:
        """Committed texels as linear RGBA, shape (width * height, 4)."""
        return self.get("_texels")
