"""The path tracing renderer (type "pathtracer").

Parameters:
    model: committed Scene to render (required)
    camera: committed Camera (required)
    lights: LIGHT data listing the lights (optional; without lights only
        luminous materials are visible)
    spp: samples per pixel per frame (default 1)
    maxDepth: maximum path length (default 20)
    rouletteDepth: bounce count from which Russian roulette applies (default 5)
    bgColor: RGB or RGBA background for primary rays that miss
        (default transparent black)

The model, camera and light list are bound by reference: a render uses
their most recently committed snapshots, so changes committed after the
renderer itself was committed are still picked up.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from tritrace.camera.projection import Camera
from tritrace.core.data import DataType, as_data
from tritrace.core.framebuffer import Channel, FrameBuffer
from tritrace.core.handle import (
    ManagedObject,
    as_color,
    as_object,
    as_positive_int,
    require_committed,
)
from tritrace.core.integrator import MAX_DEPTH
from tritrace.errors import InvalidArgumentError, UncommittedObjectError
from tritrace.scene.compile import compile_scene
from tritrace.scene.model import Scene

logger = logging.getLogger(__name__)

DEFAULT_SPP = 1
DEFAULT_MAX_DEPTH = 20
DEFAULT_ROULETTE_DEPTH = 5
DEFAULT_BG_COLOR = (0.0, 0.0, 0.0, 0.0)


class Renderer(ManagedObject):
    """Monte Carlo path tracer over the device's Taichi backend."""

    kind = "renderer"
    PARAMETERS = {
        "model": as_object(Scene),
        "camera": as_object(Camera),
        "lights": as_data(DataType.LIGHT),
        "spp": as_positive_int,
        "maxDepth": as_positive_int,
        "rouletteDepth": as_positive_int,
        "bgColor": as_color,
    }

    def _finalize(self, params: dict[str, Any]) -> None:
        params.setdefault("spp", DEFAULT_SPP)
        params.setdefault("maxDepth", DEFAULT_MAX_DEPTH)
        if params["maxDepth"] > MAX_DEPTH:
            raise InvalidArgumentError(
                f"{self!r}: maxDepth {params['maxDepth']} exceeds the supported maximum {MAX_DEPTH}"
            )
        params.setdefault("rouletteDepth", DEFAULT_ROULETTE_DEPTH)
        params.setdefault("bgColor", DEFAULT_BG_COLOR)

    def render_frame(self, framebuffer: FrameBuffer, channels: Channel = Channel.COLOR) -> float:
        """Render one frame synchronously into framebuffer.

        Args:
            framebuffer: A committed frame buffer.
            channels: Channels to write (COLOR and/or DEPTH).

        Returns:
            Wall-clock render time in seconds.

        Raises:
            UncommittedObjectError: If the renderer, the frame buffer, or the
                bound model, camera or lights are not committed.
            InvalidArgumentError: If no model or camera is bound.
        """
        self._require_alive()
        if not self.is_committed:
            raise UncommittedObjectError(f"{self!r} must be committed before rendering")
        require_committed(framebuffer, repr(self))
        if framebuffer.device is not self.device:
            raise InvalidArgumentError(f"{framebuffer!r} belongs to a different device")

        scene = self.get("model")
        camera = self.get("camera")
        if scene is None:
            raise InvalidArgumentError(f"{self!r} has no 'model'")
        if camera is None:
            raise InvalidArgumentError(f"{self!r} has no 'camera'")
        require_committed(scene, repr(self))
        require_committed(camera, repr(self))

        light_data = self.get("lights")
        lights = []
        if light_data is not None:
            require_committed(light_data, repr(self))
            lights = list(light_data.items)
            for light in lights:
                require_committed(light, repr(self))

        start = time.perf_counter()

        arrays = compile_scene(scene, camera, lights)
        tracer = self.device.tracer
        tracer.upload(
            arrays,
            max_depth=self.get("maxDepth"),
            roulette_depth=self.get("rouletteDepth"),
            bg_color=self.get("bgColor"),
        )
        color, depth = tracer.render(framebuffer.width, framebuffer.height, self.get("spp"))
        framebuffer._store(color, depth, Channel(channels))

        elapsed = time.perf_counter() - start
        logger.info(
            "rendered %dx%d frame (%d spp, %d triangles) in %.3fs",
            framebuffer.width,
            framebuffer.height,
            self.get("spp"),
            arrays.num_triangles,
            elapsed,
        )
        return elapsed


RENDERER_TYPES: dict[str, type[Renderer]] = {
    "pathtracer": Renderer,
}
