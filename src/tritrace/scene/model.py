"""Scene (model) containing the geometries to render."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from tritrace.core.handle import ManagedObject
from tritrace.errors import InvalidArgumentError
from tritrace.geometry.mesh import TriangleMesh

if TYPE_CHECKING:
    from tritrace.device import Device


class Scene(ManagedObject):
    """An ordered collection of committed geometries.

    Geometries are retained when added. Like parameters, additions and
    removals only take effect for renders once the scene is committed.
    """

    kind = "scene"

    def __init__(self, device: Device, type_name: str = "scene") -> None:
        super().__init__(device, type_name)
        self._geometries: list[TriangleMesh] = []

    def add_geometry(self, geometry: TriangleMesh) -> Scene:
        """Add a committed geometry; the scene takes a reference to it.

        Raises:
            InvalidArgumentError: If geometry is not a triangle mesh.
            UncommittedObjectError: If geometry has not been committed.
        """
        self._require_alive()
        if not isinstance(geometry, TriangleMesh):
            raise InvalidArgumentError(
                f"scenes hold geometries, got {type(geometry).__name__}"
            )
        self._accept_object(geometry)
        self._geometries.append(geometry)
        self._dirty = True
        return self

    def remove_geometry(self, geometry: TriangleMesh) -> Scene:
        """Remove a geometry; its reference is dropped at the next commit.

        Raises:
            InvalidArgumentError: If geometry is not part of the scene.
        """
        self._require_alive()
        for index, candidate in enumerate(self._geometries):
            if candidate is geometry:
                del self._geometries[index]
                self._pending_release.append(geometry)
                self._dirty = True
                return self
        raise InvalidArgumentError(f"{geometry!r} is not part of {self!r}")

    def _finalize(self, params: dict[str, Any]) -> None:
        params["_geometries"] = tuple(self._geometries)

    def _children(self, params: dict[str, Any]) -> Iterator[ManagedObject]:
        yield from params["_geometries"]

    @property
    def geometries(self) -> tuple[TriangleMesh, ...]:
        """Geometries of the committed snapshot, in insertion order."""
        return self.get("_geometries")

    def _owned_objects(self) -> Iterator[ManagedObject]:
        yield from super()._owned_objects()
        yield from self._geometries

    def _destroy(self) -> None:
        super()._destroy()
        self._geometries = []
