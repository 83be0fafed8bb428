"""Library initialization and the rendering device.

``init()`` parses the ``--tt:`` library flags, initializes Taichi and
returns the Device, which creates every other library object and tracks the
ones still alive. ``Device.shutdown()`` must be the last library call: it
reports leaked objects and resets Taichi, after which neither the device nor
any object created from it may be used.

Example:
    >>> argv = sys.argv[:]
    >>> device = tritrace.init(argv)
    >>> with device.new_scene() as scene:
    ...     scene.commit()
    >>> device.shutdown()
"""

from __future__ import annotations

import logging
from typing import Any

import taichi as ti

from tritrace.camera.projection import CAMERA_TYPES, Camera
from tritrace.config import DeviceConfig, parse_library_args
from tritrace.core.data import Data, DataType
from tritrace.core.framebuffer import Channel, FrameBuffer, FrameBufferFormat
from tritrace.core.handle import ManagedObject
from tritrace.core.integrator import PathTracer
from tritrace.core.renderer import RENDERER_TYPES, Renderer
from tritrace.errors import InitializationError, InvalidArgumentError, InvalidOperationError
from tritrace.geometry.mesh import TriangleMesh
from tritrace.materials.material import Material, material_class
from tritrace.materials.texture import Texture2D
from tritrace.scene.lights import LIGHT_TYPES, Light
from tritrace.scene.model import Scene

logger = logging.getLogger(__name__)

_active_device: Device | None = None


def accepted_archs(device: str) -> list:
    """Taichi archs that satisfy a --tt:device value ("gpu" accepts any GPU backend)."""
    arch = getattr(ti, device)
    if isinstance(arch, (list, tuple)):
        return list(arch)
    return [arch]


def _lookup(table: dict[str, type], kind: str, type_name: str) -> type:
    cls = table.get(type_name.lower())
    if cls is None:
        raise InvalidArgumentError(
            f"unknown {kind} type {type_name!r}; expected one of {', '.join(sorted(table))}"
        )
    return cls


class Device:
    """Factory and registry for library objects on one Taichi backend.

    Attributes:
        config: The configuration the device was initialized with.
    """

    def __init__(self, config: DeviceConfig) -> None:
        self.config = config
        self._objects: dict[int, ManagedObject] = {}
        self._tracer: PathTracer | None = None
        self._active = True

    def __repr__(self) -> str:
        state = "active" if self._active else "shut down"
        return f"Device({self.config.device!r}, {state}, {len(self._objects)} live objects)"

    def __enter__(self) -> Device:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._active:
            self.shutdown()

    @property
    def is_active(self) -> bool:
        return self._active

    def _require_active(self) -> None:
        if not self._active:
            raise InvalidOperationError("the device has been shut down")

    # -------------------------------------------------------------------------
    # Object registry
    # -------------------------------------------------------------------------

    def _register(self, obj: ManagedObject) -> None:
        self._require_active()
        self._objects[id(obj)] = obj

    def _unregister(self, obj: ManagedObject) -> None:
        self._objects.pop(id(obj), None)

    def live_objects(self) -> list[ManagedObject]:
        """Objects that have been created but not yet destroyed."""
        return list(self._objects.values())

    @property
    def tracer(self) -> PathTracer:
        """The Taichi path tracer, created on first use."""
        self._require_active()
        if self._tracer is None:
            logger.debug("allocating path tracer fields")
            self._tracer = PathTracer()
        return self._tracer

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def new_data(self, source: Any, data_type: DataType, *, shared: bool = False) -> Data:
        """Create a typed buffer.

        Args:
            source: Numbers (any array-like; a buffer or matching ndarray when
                shared) or, for object types, a sequence of committed objects.
            data_type: Element type.
            shared: Wrap the caller's memory without copying.
        """
        self._require_active()
        return Data(self, source, data_type, shared=shared)

    def new_geometry(self, type_name: str = "triangles") -> TriangleMesh:
        self._require_active()
        cls = _lookup({"triangles": TriangleMesh}, "geometry", type_name)
        return cls(self, type_name)

    def new_texture(self, type_name: str = "texture2d") -> Texture2D:
        self._require_active()
        cls = _lookup({"texture2d": Texture2D}, "texture", type_name)
        return cls(self, type_name)

    def new_material(self, renderer_type: str, material_type: str) -> Material:
        self._require_active()
        return material_class(renderer_type, material_type)(self, material_type)

    def new_scene(self) -> Scene:
        self._require_active()
        return Scene(self)

    def new_camera(self, type_name: str) -> Camera:
        self._require_active()
        return _lookup(CAMERA_TYPES, "camera", type_name)(self, type_name)

    def new_light(self, type_name: str) -> Light:
        self._require_active()
        return _lookup(LIGHT_TYPES, "light", type_name)(self, type_name)

    def new_renderer(self, type_name: str = "pathtracer") -> Renderer:
        self._require_active()
        return _lookup(RENDERER_TYPES, "renderer", type_name)(self, type_name)

    def new_framebuffer(
        self,
        size: tuple[int, int],
        color_format: FrameBufferFormat = FrameBufferFormat.RGBA8,
        channels: Channel = Channel.COLOR,
    ) -> FrameBuffer:
        self._require_active()
        return FrameBuffer(self, size, color_format, channels)

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def shutdown(self) -> None:
        """Shut the device down and reset Taichi.

        Objects still alive are reported as leaks and become unusable: any
        further use raises ReleasedHandleError.
        """
        global _active_device

        self._require_active()
        leaked = self.live_objects()
        if leaked:
            logger.warning(
                "shutting down with %d unreleased object(s): %s",
                len(leaked),
                ", ".join(repr(obj) for obj in leaked),
            )
        for obj in leaked:
            if isinstance(obj, FrameBuffer) and obj.num_mapped:
                logger.warning("%r still has %d mapped view(s)", obj, obj.num_mapped)

        for obj in leaked:
            obj._invalidate()
        self._objects.clear()

        self._tracer = None
        self._active = False
        if _active_device is self:
            _active_device = None
        ti.reset()
        logger.debug("device shut down")


def init(argv: list[str] | None = None) -> Device:
    """Initialize the library.

    Library flags (``--tt:...``) are removed from argv in place so the
    application can parse what remains.

    Args:
        argv: The argument vector, including the program name.

    Returns:
        The active Device.

    Raises:
        InitializationError: If the flags are invalid, a device is already
            active, or the Taichi backend cannot be initialized.
    """
    global _active_device

    if argv is None:
        argv = []
    config = parse_library_args(argv)

    if _active_device is not None:
        raise InitializationError("a device is already active; shut it down first")

    logging.getLogger("tritrace").setLevel(config.log_level)

    arch = getattr(ti, config.device)
    options: dict[str, Any] = {
        "arch": arch,
        "random_seed": config.seed,
        "debug": config.debug,
        "log_level": ti.DEBUG if config.debug else ti.ERROR,
    }
    if config.num_threads > 0:
        options["cpu_max_num_threads"] = config.num_threads

    try:
        ti.init(**options)
    except Exception as exc:
        raise InitializationError(f"cannot initialize the {config.device} backend: {exc}") from exc

    # Taichi falls back to the CPU when the requested backend is missing
    actual = ti.lang.impl.current_cfg().arch
    if actual not in accepted_archs(config.device):
        ti.reset()
        raise InitializationError(
            f"no compatible {config.device} device is available (Taichi started on {actual.name})"
        )

    _active_device = Device(config)
    logger.info("initialized %s device (seed %d)", config.device, config.seed)
    return _active_device
