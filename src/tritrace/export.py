"""PNG export of raw interleaved pixels.

write_png takes pixels the way a mapped frame buffer provides them: 8-bit
channels interleaved per pixel, rows ``stride`` bytes apart, the first row
in memory written as the top row of the file. Frame buffers store their
bottom row first, so writing one unchanged produces a vertically mirrored
file; ``flip_vertical=True`` writes the rows in reverse order instead.

Example:
    >>> with framebuffer.mapped(Channel.COLOR) as pixels:
    ...     write_png("output.png", pixels, 400, 400, 4, 400 * 4)
"""

from __future__ import annotations

import logging
from os import PathLike
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Pillow modes for 8-bit images by channel count
_MODES = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}


def write_png(
    path: str | PathLike[str],
    pixels: Any,
    width: int,
    height: int,
    channels: int,
    stride: int,
    *,
    flip_vertical: bool = False,
) -> Path:
    """Encode raw 8-bit pixels as a PNG file.

    Args:
        path: Destination file.
        pixels: A bytes-like object or uint8 numpy array holding at least
            stride * height bytes.
        width: Image width in pixels.
        height: Image height in pixels.
        channels: Channels per pixel (1 to 4).
        stride: Distance in bytes between the starts of consecutive rows.
        flip_vertical: Write the last row in memory as the top of the image.

    Returns:
        The path written.

    Raises:
        ValueError: On an unsupported channel count, inconsistent sizes or
            too little pixel data.
    """
    if channels not in _MODES:
        raise ValueError(f"PNG export supports 1 to 4 channels, got {channels}")
    if width < 1 or height < 1:
        raise ValueError(f"image size must be positive, got {width}x{height}")
    if stride < width * channels:
        raise ValueError(f"stride {stride} is smaller than a row of {width * channels} bytes")

    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise ValueError(f"expected uint8 pixels, got {pixels.dtype}")
        pixels = np.ascontiguousarray(pixels)
    data = memoryview(pixels).cast("B")

    needed = stride * height
    if data.nbytes < needed:
        raise ValueError(f"{width}x{height} image with stride {stride} needs {needed} bytes, "
                         f"got {data.nbytes}")

    mode = _MODES[channels]
    orientation = -1 if flip_vertical else 1
    image = PILImage.frombuffer(
        mode, (width, height), data[:needed].tobytes(), "raw", mode, stride, orientation
    )

    path = Path(path)
    image.save(path, format="PNG")
    logger.info("wrote %dx%d %s image to %s", width, height, mode, path)
    return path
