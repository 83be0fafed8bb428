"""Device configuration parsed from library command-line flags.

Library flags use the ``--tt:`` prefix and are consumed from the argument
vector passed to ``tritrace.init``, leaving application arguments in place:

    --tt:device=<cpu|gpu|cuda|vulkan|metal|opengl>   Taichi backend (default cpu)
    --tt:seed=<int>                                  Random seed for sampling
    --tt:num-threads=<int>                           CPU worker threads (0 = all)
    --tt:log-level=<debug|info|warning|error>        Library log level
    --tt:debug                                       Taichi debug mode, debug logging

Example:
    >>> argv = ["prog", "--tt:device=cpu", "--output", "x.png"]
    >>> config = parse_library_args(argv)
    >>> argv
    ['prog', '--output', 'x.png']
"""

import logging
from dataclasses import dataclass

from tritrace.errors import ErrorCode, InitializationError

FLAG_PREFIX = "--tt:"

# Backends accepted by --tt:device, mapped to Taichi arch attribute names
SUPPORTED_DEVICES = ("cpu", "gpu", "cuda", "vulkan", "metal", "opengl")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class DeviceConfig:
    """Settings used to initialize the rendering device.

    Attributes:
        device: Taichi backend name (one of SUPPORTED_DEVICES).
        seed: Random seed handed to Taichi.
        num_threads: Maximum CPU threads, 0 to let Taichi decide.
        log_level: Level applied to the ``tritrace`` logger.
        debug: Enable Taichi debug mode (bounds checks).
    """

    device: str = "cpu"
    seed: int = 0
    num_threads: int = 0
    log_level: int = logging.WARNING
    debug: bool = False


def _parse_int(key: str, value: str | None, minimum: int = 0) -> int:
    if value is None:
        raise InitializationError(f"{FLAG_PREFIX}{key} requires a value", ErrorCode.INVALID_ARGUMENT)
    try:
        number = int(value)
    except ValueError:
        raise InitializationError(
            f"{FLAG_PREFIX}{key} expects an integer, got {value!r}", ErrorCode.INVALID_ARGUMENT
        ) from None
    if number < minimum:
        raise InitializationError(
            f"{FLAG_PREFIX}{key} must be >= {minimum}, got {number}", ErrorCode.INVALID_ARGUMENT
        )
    return number


def parse_library_args(argv: list[str]) -> DeviceConfig:
    """Consume ``--tt:`` flags from argv and build a DeviceConfig.

    The list is modified in place: recognized library flags are removed and
    all other arguments keep their order.

    Args:
        argv: The argument vector, including the program name.

    Returns:
        The parsed configuration.

    Raises:
        InitializationError: On unknown flags, unknown devices or malformed values.
    """
    config = DeviceConfig()
    remaining = []

    for arg in argv:
        if not arg.startswith(FLAG_PREFIX):
            remaining.append(arg)
            continue

        key, sep, value = arg[len(FLAG_PREFIX) :].partition("=")
        value = value if sep else None

        if key == "device":
            if value not in SUPPORTED_DEVICES:
                raise InitializationError(
                    f"unsupported device {value!r}; expected one of {', '.join(SUPPORTED_DEVICES)}"
                )
            config.device = value
        elif key == "seed":
            config.seed = _parse_int(key, value)
        elif key == "num-threads":
            config.num_threads = _parse_int(key, value)
        elif key == "log-level":
            if value not in LOG_LEVELS:
                raise InitializationError(
                    f"unknown log level {value!r}", ErrorCode.INVALID_ARGUMENT
                )
            config.log_level = LOG_LEVELS[value]
        elif key == "debug":
            config.debug = True
            config.log_level = logging.DEBUG
        else:
            raise InitializationError(f"unknown library flag {arg!r}", ErrorCode.INVALID_ARGUMENT)

    argv[:] = remaining
    return config
