"""Error codes and exceptions raised by the tritrace library.

Every library failure is a TritraceError carrying an ErrorCode, so callers
that only care about "did the renderer fail" can catch the base class while
tests can assert on the specific code.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes reported by the library."""

    NO_ERROR = 0
    UNKNOWN_ERROR = 1
    INVALID_ARGUMENT = 2
    INVALID_OPERATION = 3
    OUT_OF_MEMORY = 4
    UNSUPPORTED_DEVICE = 5


class TritraceError(RuntimeError):
    """Base class for all library errors.

    Attributes:
        code: The ErrorCode describing the failure category.
    """

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.code = self.default_code if code is None else code


class InitializationError(TritraceError):
    """The device could not be initialized (bad flags, no compatible backend)."""

    default_code = ErrorCode.UNSUPPORTED_DEVICE


class InvalidArgumentError(TritraceError, ValueError):
    """A parameter, type name or buffer was rejected."""

    default_code = ErrorCode.INVALID_ARGUMENT


class InvalidOperationError(TritraceError):
    """An operation was attempted in a state that does not allow it."""

    default_code = ErrorCode.INVALID_OPERATION


class UncommittedObjectError(InvalidOperationError):
    """An object was used by a dependent before being committed."""


class ReleasedHandleError(InvalidOperationError):
    """A handle was used after its last reference was released."""


class CapacityError(TritraceError):
    """The scene does not fit in the preallocated device storage."""

    default_code = ErrorCode.OUT_OF_MEMORY
