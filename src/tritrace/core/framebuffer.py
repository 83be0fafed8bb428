"""Frame buffers: render targets that can be mapped for reading.

A frame buffer has a size, a color format and a set of channels:

- COLOR: pixels in the chosen FrameBufferFormat (NONE stores no color)
- DEPTH: float32 distance to the first hit, inf where nothing was hit
- ACCUM: keep a running average of all frames rendered since the last
  clear(), instead of replacing the image every frame

Pixels are stored row by row starting at the bottom-left corner of the
image. ``map()`` returns a read-only numpy view of a channel that must be
handed back to ``unmap()`` once the caller is done with it.

Example:
    >>> fb = device.new_framebuffer((400, 400), FrameBufferFormat.RGBA8, Channel.COLOR)
    >>> fb.commit()
    >>> renderer.render_frame(fb, Channel.COLOR)
    >>> with fb.mapped(Channel.COLOR) as pixels:
    ...     pixels.shape
    (400, 400, 4)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum, IntFlag
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from tritrace.core.color import linear_to_srgb, quantize_unorm8
from tritrace.core.handle import ManagedObject
from tritrace.errors import InvalidArgumentError, InvalidOperationError

if TYPE_CHECKING:
    from tritrace.device import Device

logger = logging.getLogger(__name__)


class FrameBufferFormat(Enum):
    """Color storage format: (label, numpy dtype or None)."""

    NONE = ("none", None)
    RGBA8 = ("rgba8", np.uint8)
    SRGBA = ("srgba", np.uint8)
    RGBA32F = ("rgba32f", np.float32)

    def __init__(self, label: str, dtype: type | None) -> None:
        self.label = label
        self.dtype = dtype


class Channel(IntFlag):
    """Frame buffer channels."""

    COLOR = 1
    DEPTH = 2
    ACCUM = 4


class FrameBuffer(ManagedObject):
    """A render target of fixed size.

    Attributes:
        width: Width in pixels.
        height: Height in pixels.
        format: Color storage format.
        channels: Channels the buffer was created with.
    """

    kind = "framebuffer"

    def __init__(
        self,
        device: Device,
        size: tuple[int, int],
        color_format: FrameBufferFormat = FrameBufferFormat.RGBA8,
        channels: Channel = Channel.COLOR,
    ) -> None:
        width, height = (int(v) for v in size)
        if width < 1 or height < 1:
            raise InvalidArgumentError(f"frame buffer size must be positive, got {width}x{height}")
        if not isinstance(color_format, FrameBufferFormat):
            raise InvalidArgumentError(f"unknown frame buffer format {color_format!r}")

        super().__init__(device, color_format.label)
        self.width = width
        self.height = height
        self.format = color_format
        self.channels = Channel(channels)

        self._color: npt.NDArray[Any] | None = None
        if color_format is not FrameBufferFormat.NONE:
            self._color = np.zeros((height, width, 4), dtype=color_format.dtype)
        self._depth: npt.NDArray[np.float32] | None = None
        if Channel.DEPTH in self.channels:
            self._depth = np.full((height, width), np.inf, dtype=np.float32)

        self._accum = np.zeros((height, width, 4), dtype=np.float64)
        self._accum_frames = 0
        self._mapped: list[npt.NDArray[Any]] = []

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def frames_accumulated(self) -> int:
        """Frames averaged into the ACCUM buffer since the last clear()."""
        return self._accum_frames

    @property
    def num_mapped(self) -> int:
        return len(self._mapped)

    def clear(self, channels: Channel | None = None) -> None:
        """Reset channels (all by default) to their initial contents."""
        self._require_alive()
        channels = self.channels if channels is None else Channel(channels)
        if Channel.COLOR in channels and self._color is not None:
            self._color[...] = 0
        if Channel.DEPTH in channels and self._depth is not None:
            self._depth[...] = np.inf
        if Channel.ACCUM in channels:
            self._accum[...] = 0.0
            self._accum_frames = 0

    # -------------------------------------------------------------------------
    # Writing (renderer side)
    # -------------------------------------------------------------------------

    def _store(self, color: npt.NDArray[np.float32], depth: npt.NDArray[np.float32],
               channels: Channel) -> None:
        """Store one rendered frame of linear RGBA color and hit distances."""
        if self._mapped:
            raise InvalidOperationError(f"{self!r} cannot be rendered into while mapped")

        if Channel.ACCUM in self.channels:
            self._accum_frames += 1
            self._accum += (color - self._accum) / self._accum_frames
            color = self._accum.astype(np.float32)

        if Channel.COLOR in channels and self._color is not None:
            if self.format is FrameBufferFormat.RGBA32F:
                self._color[...] = color
            elif self.format is FrameBufferFormat.SRGBA:
                encoded = color.copy()
                encoded[..., :3] = linear_to_srgb(color[..., :3])
                self._color[...] = quantize_unorm8(encoded)
            else:
                self._color[...] = quantize_unorm8(color)

        if Channel.DEPTH in channels and self._depth is not None:
            self._depth[...] = depth

    # -------------------------------------------------------------------------
    # Mapping (application side)
    # -------------------------------------------------------------------------

    def map(self, channel: Channel = Channel.COLOR) -> npt.NDArray[Any]:
        """Map a channel for reading.

        Returns:
            A read-only view: (height, width, 4) for COLOR, (height, width)
            for DEPTH. Row 0 is the bottom row of the image.

        Raises:
            InvalidArgumentError: If the channel is not stored by this buffer.
        """
        self._require_alive()
        channel = Channel(channel)
        if channel == Channel.COLOR:
            source = self._color
        elif channel == Channel.DEPTH:
            source = self._depth
        else:
            raise InvalidArgumentError(f"cannot map channel {channel!r}")
        if source is None:
            raise InvalidArgumentError(f"{self!r} has no {channel.name} channel")

        view = source.view()
        view.flags.writeable = False
        self._mapped.append(view)
        return view

    def unmap(self, view: npt.NDArray[Any]) -> None:
        """Release a view returned by map().

        Raises:
            InvalidOperationError: If view was not mapped from this buffer.
        """
        self._require_alive()
        for index, mapped in enumerate(self._mapped):
            if mapped is view:
                del self._mapped[index]
                return
        raise InvalidOperationError(f"array was not mapped from {self!r}")

    @contextmanager
    def mapped(self, channel: Channel = Channel.COLOR) -> Iterator[npt.NDArray[Any]]:
        """Map a channel for the duration of a with block."""
        view = self.map(channel)
        try:
            yield view
        finally:
            self.unmap(view)

    def _destroy(self) -> None:
        if self._mapped:
            logger.warning("%r destroyed with %d mapped view(s)", self, len(self._mapped))
        super()._destroy()
        self._mapped.clear()
        self._color = None
        self._depth = None
