"""Typed data buffers handed to the library.

A Data object wraps an array of numeric elements (vertex positions, indices,
texels) or a list of library objects (lights). Numeric data can be created
in two modes:

- shared: the buffer is a zero-copy view of the caller's memory. Later
  changes to that memory are visible to the library, and the memory is kept
  alive for as long as the Data object exists.
- copied: the library keeps its own copy, independent of the caller.

Object data is always copied and holds a reference on each element.

Example:
    >>> vertices = np.array([0, 0, 0, 1, 1, 0, 1, 0, 0], dtype=np.float32)
    >>> with device.new_data(vertices, DataType.FLOAT3, shared=True) as data:
    ...     data.num_items
    3
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from tritrace.core.handle import ManagedObject, require_committed
from tritrace.errors import InvalidArgumentError

if TYPE_CHECKING:
    from tritrace.device import Device


class DataType(Enum):
    """Element type of a Data buffer: (label, numpy dtype, components).

    Object types have no numpy dtype; their label names the object kind the
    elements must have ("object" accepts any kind).
    """

    UCHAR = ("uchar", np.uint8, 1)
    INT = ("int", np.int32, 1)
    INT3 = ("int3", np.int32, 3)
    FLOAT = ("float", np.float32, 1)
    FLOAT2 = ("float2", np.float32, 2)
    FLOAT3 = ("float3", np.float32, 3)
    FLOAT4 = ("float4", np.float32, 4)
    OBJECT = ("object", None, 1)
    LIGHT = ("light", None, 1)
    GEOMETRY = ("geometry", None, 1)
    MATERIAL = ("material", None, 1)
    TEXTURE = ("texture", None, 1)

    def __init__(self, label: str, dtype: type | None, components: int) -> None:
        self.label = label
        self.dtype = dtype
        self.components = components

    @property
    def is_object(self) -> bool:
        return self.dtype is None


def _wrap_array(source: Any, data_type: DataType, shared: bool) -> npt.NDArray[Any]:
    """Convert source into an (n,) or (n, components) array of data_type."""
    dtype = np.dtype(data_type.dtype)

    if shared:
        if isinstance(source, np.ndarray):
            if source.dtype != dtype:
                raise InvalidArgumentError(
                    f"shared {data_type.label} data needs dtype {dtype}, got {source.dtype}"
                )
            if not source.flags.c_contiguous:
                raise InvalidArgumentError("shared data must be C-contiguous")
            flat = source.reshape(-1)
        else:
            try:
                flat = np.frombuffer(source, dtype=dtype)
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(
                    f"shared data requires an object exposing a buffer: {exc}"
                ) from exc
    else:
        try:
            flat = np.array(source, dtype=dtype).reshape(-1)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"cannot convert data to {data_type.label}: {exc}") from exc

    if flat.size % data_type.components:
        raise InvalidArgumentError(
            f"{flat.size} values do not form whole {data_type.label} elements"
        )
    if data_type.components == 1:
        return flat
    return flat.reshape(-1, data_type.components)


class Data(ManagedObject):
    """A typed buffer of numbers or library objects.

    Attributes:
        data_type: The element type.
        shared: True if the buffer aliases caller memory.
    """

    kind = "data"

    def __init__(
        self,
        device: Device,
        source: Any,
        data_type: DataType,
        *,
        shared: bool = False,
    ) -> None:
        self.data_type = data_type
        self.shared = shared
        self._array: npt.NDArray[Any] | None = None
        self._items: tuple[ManagedObject, ...] = ()

        if data_type.is_object:
            if shared:
                raise InvalidArgumentError("object data cannot be shared; it is always copied")
            items = tuple(source)
            for item in items:
                if not isinstance(item, ManagedObject):
                    raise InvalidArgumentError(f"{data_type.label} data holds {type(item).__name__}")
                if data_type is not DataType.OBJECT and item.kind != data_type.label:
                    raise InvalidArgumentError(
                        f"{data_type.label} data cannot hold a {item.kind} object"
                    )
                if item.device is not device:
                    raise InvalidArgumentError(f"{item!r} belongs to a different device")
                require_committed(item, f"{data_type.label} data")
            self._items = items
        else:
            self._array = _wrap_array(source, data_type, shared)

        super().__init__(device, data_type.label)
        for item in self._items:
            item.retain()

    def __len__(self) -> int:
        return self.num_items

    @property
    def num_items(self) -> int:
        if self.data_type.is_object:
            return len(self._items)
        assert self._array is not None
        return int(self._array.shape[0])

    @property
    def array(self) -> npt.NDArray[Any]:
        """The numeric contents, shaped (n,) or (n, components).

        Raises:
            InvalidArgumentError: For object data.
        """
        self._require_alive()
        if self._array is None:
            raise InvalidArgumentError(f"{self.data_type.label} data has no numeric array")
        return self._array

    @property
    def items(self) -> tuple[ManagedObject, ...]:
        """The object elements (empty for numeric data)."""
        self._require_alive()
        return self._items

    def _owned_objects(self) -> Iterator[ManagedObject]:
        yield from super()._owned_objects()
        yield from self._items

    def _destroy(self) -> None:
        super()._destroy()
        self._array = None
        self._items = ()


def as_data(*data_types: DataType):
    """Build a parameter converter accepting Data of the given element types."""

    def convert(value: Any) -> Data:
        if not isinstance(value, Data):
            raise TypeError(f"expected data, got {type(value).__name__}")
        if value.data_type not in data_types:
            expected = ", ".join(t.label for t in data_types)
            raise TypeError(f"expected {expected} data, got {value.data_type.label}")
        return value

    return convert
