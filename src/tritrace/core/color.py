"""Color encoding helpers shared by textures and frame buffers."""

import numpy as np
import numpy.typing as npt


def srgb_to_linear(values: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Decode sRGB-encoded values in [0, 1] to linear intensity."""
    values = np.clip(values, 0.0, 1.0)
    linear = np.where(
        values <= 0.04045,
        values / 12.92,
        np.power((values + 0.055) / 1.055, 2.4),
    )
    return linear.astype(np.float32)


def linear_to_srgb(values: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Encode linear intensity in [0, 1] with the sRGB transfer curve."""
    values = np.clip(values, 0.0, 1.0)
    encoded = np.where(
        values <= 0.0031308,
        values * 12.92,
        1.055 * np.power(values, 1.0 / 2.4) - 0.055,
    )
    return encoded.astype(np.float32)


def quantize_unorm8(values: npt.NDArray[np.float32]) -> npt.NDArray[np.uint8]:
    """Convert [0, 1] floats to 8-bit values, rounding to nearest."""
    return (np.clip(values, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
