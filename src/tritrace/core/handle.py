"""Reference-counted, commit-before-use base class for library objects.

Every object the device hands out (data buffers, geometries, textures,
materials, scenes, cameras, lights, renderers, frame buffers) derives from
ManagedObject and follows the same lifecycle:

    create -> set parameters -> commit -> use -> release

Parameters are *staged* by ``set()`` and only become visible to dependents
and to the renderer when ``commit()`` publishes a snapshot of them. Objects
stored as parameters must already be committed, and are retained by the
parent; the application drops its own reference with ``release()`` (or by
leaving a ``with`` block), transferring ownership to the parent.

Example:
    >>> with device.new_data(vertices, DataType.FLOAT3) as buffer:
    ...     buffer.commit()
    ...     geometry.set("vertex", buffer)   # geometry now holds a reference
    >>> # buffer released here; it lives on inside the geometry
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from tritrace.errors import (
    InvalidArgumentError,
    ReleasedHandleError,
    UncommittedObjectError,
)

if TYPE_CHECKING:
    from tritrace.device import Device

logger = logging.getLogger(__name__)

# Parameter converter: takes the staged value, returns the committed value,
# raises TypeError/ValueError (or a library error) when the value is unusable.
Converter = Callable[[Any], Any]


def require_committed(obj: ManagedObject, user: str) -> None:
    """Check that obj may be consumed by a dependent object.

    Raises:
        ReleasedHandleError: If obj has been destroyed.
        UncommittedObjectError: If obj was never committed.
    """
    if not obj.is_alive:
        raise ReleasedHandleError(f"{obj!r} was released before being used by {user}")
    if not obj.is_committed:
        raise UncommittedObjectError(f"{obj!r} must be committed before it is used by {user}")


# =============================================================================
# Parameter Converters
# =============================================================================


def as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number, got bool")
    return float(value)


def as_int(value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise TypeError(f"expected an integer, got {value!r}")
    return int(value)


def as_positive_int(value: Any) -> int:
    number = as_int(value)
    if number < 1:
        raise ValueError(f"expected a positive integer, got {number}")
    return number


def as_vector(size: int, element: Converter = as_float) -> Converter:
    """Build a converter accepting a sequence of exactly ``size`` numbers."""

    def convert(value: Any) -> tuple:
        items = tuple(value)
        if len(items) != size:
            raise ValueError(f"expected {size} components, got {len(items)}")
        return tuple(element(item) for item in items)

    return convert


def as_color(value: Any) -> tuple[float, float, float, float]:
    """Accept RGB (alpha defaults to 1) or RGBA."""
    items = tuple(value)
    if len(items) == 3:
        items = items + (1.0,)
    return as_vector(4)(items)


def as_enum(enum_cls: type[Enum]) -> Converter:
    def convert(value: Any) -> Enum:
        return enum_cls(value)

    return convert


def as_object(cls: type[ManagedObject]) -> Converter:
    """Build a converter accepting a committed instance of cls."""

    def convert(value: Any) -> ManagedObject:
        if not isinstance(value, cls):
            raise TypeError(f"expected a {cls.kind} object, got {type(value).__name__}")
        return value

    return convert


# =============================================================================
# ManagedObject
# =============================================================================


class ManagedObject:
    """Base class for reference-counted library objects.

    Subclasses declare ``kind`` (used in messages and type checks) and
    ``PARAMETERS``, a mapping from parameter name to converter. Derived state
    is computed in ``_finalize`` at commit time.

    Attributes:
        type_name: The type string the object was created with (for example
            "triangles" or "orthographic").
    """

    kind: ClassVar[str] = "object"
    PARAMETERS: ClassVar[dict[str, Converter]] = {}

    def __init__(self, device: Device, type_name: str) -> None:
        self._device = device
        self.type_name = type_name
        self._refcount = 1
        self._alive = True
        self._params: dict[str, Any] = {}
        self._committed: dict[str, Any] | None = None
        self._dirty = True
        self._pending_release: list[ManagedObject] = []
        device._register(self)

    def __repr__(self) -> str:
        state = "released" if not self._alive else f"refcount={self._refcount}"
        return f"{type(self).__name__}({self.type_name!r}, {state})"

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def device(self) -> Device:
        return self._device

    @property
    def refcount(self) -> int:
        """Number of live references (application plus parents)."""
        return self._refcount

    @property
    def is_alive(self) -> bool:
        return self._alive

    @property
    def is_committed(self) -> bool:
        """True once commit() has published at least one snapshot."""
        return self._committed is not None

    @property
    def is_dirty(self) -> bool:
        """True if parameters changed since the last commit."""
        return self._dirty

    def _require_alive(self) -> None:
        if not self._alive:
            raise ReleasedHandleError(f"{self!r} was used after its last reference was released")

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def _accept_object(self, value: ManagedObject) -> None:
        if value.device is not self._device:
            raise InvalidArgumentError(f"{value!r} belongs to a different device")
        require_committed(value, repr(self))
        value.retain()

    def set(self, name: str, value: Any) -> ManagedObject:
        """Stage a parameter value.

        Object values must be committed; they are retained until replaced
        (and the replacement committed) or until this object is destroyed.

        Returns:
            self, so calls can be chained.
        """
        self._require_alive()
        if isinstance(value, ManagedObject):
            self._accept_object(value)
        previous = self._params.get(name)
        self._params[name] = value
        if isinstance(previous, ManagedObject):
            self._pending_release.append(previous)
        self._dirty = True
        return self

    def remove(self, name: str) -> ManagedObject:
        """Unstage a parameter so the default applies after the next commit."""
        self._require_alive()
        previous = self._params.pop(name, None)
        if isinstance(previous, ManagedObject):
            self._pending_release.append(previous)
        self._dirty = True
        return self

    def get(self, name: str, default: Any = None) -> Any:
        """Read a value from the committed snapshot.

        Raises:
            UncommittedObjectError: If the object has never been committed.
        """
        self._require_alive()
        if self._committed is None:
            raise UncommittedObjectError(f"{self!r} has not been committed")
        return self._committed.get(name, default)

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def _finalize(self, params: dict[str, Any]) -> None:
        """Validate converted parameters and add derived entries in place."""

    def _children(self, params: dict[str, Any]) -> Iterator[ManagedObject]:
        for value in params.values():
            if isinstance(value, ManagedObject):
                yield value

    def commit(self) -> ManagedObject:
        """Publish the staged parameters as the committed snapshot.

        Raises:
            InvalidArgumentError: If a parameter value cannot be converted or
                the combination of parameters is invalid.
            UncommittedObjectError: If a referenced object is no longer usable.
        """
        self._require_alive()
        resolved: dict[str, Any] = {}
        for name, value in self._params.items():
            convert = self.PARAMETERS.get(name)
            if convert is None:
                logger.debug("%r: ignoring unknown parameter %r", self, name)
                continue
            if isinstance(value, ManagedObject):
                require_committed(value, repr(self))
            try:
                resolved[name] = convert(value)
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(f"{self!r}: invalid value for {name!r}: {exc}") from exc

        self._finalize(resolved)

        for child in self._children(resolved):
            if child.is_dirty:
                logger.warning(
                    "%r has uncommitted changes; %r will see its previous snapshot", child, self
                )

        self._committed = resolved
        self._dirty = False
        pending, self._pending_release = self._pending_release, []
        for obj in pending:
            obj.release()

        logger.debug("committed %r", self)
        return self

    # -------------------------------------------------------------------------
    # Reference counting
    # -------------------------------------------------------------------------

    def _owned_objects(self) -> Iterator[ManagedObject]:
        """Every reference this object holds on other objects."""
        for value in self._params.values():
            if isinstance(value, ManagedObject):
                yield value
        yield from self._pending_release

    def retain(self) -> ManagedObject:
        """Add a reference."""
        self._require_alive()
        self._refcount += 1
        return self

    def release(self) -> None:
        """Drop a reference, destroying the object when none remain.

        Raises:
            ReleasedHandleError: If the object was already destroyed.
        """
        self._require_alive()
        self._refcount -= 1
        if self._refcount == 0:
            self._destroy()

    def _destroy(self) -> None:
        owned = list(self._owned_objects())
        self._alive = False
        self._params.clear()
        self._pending_release.clear()
        self._committed = None
        for obj in owned:
            obj.release()
        self._device._unregister(self)
        logger.debug("destroyed %s(%r)", type(self).__name__, self.type_name)

    def _invalidate(self) -> None:
        """Mark the object dead without releasing what it references.

        Used at device shutdown, when every remaining object goes away at once.
        """
        self._alive = False
        self._params.clear()
        self._pending_release.clear()
        self._committed = None

    def __enter__(self) -> ManagedObject:
        self._require_alive()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # An in-flight error takes precedence over a double release
        if exc_type is not None and not self._alive:
            return
        self.release()
