"""Unit tests for library flag parsing.

Tests cover:
- Defaults when no library flags are given
- Each --tt: flag and its effect on DeviceConfig
- In-place removal of library flags from argv
- Rejection of unknown flags, devices and malformed values
"""

import logging

import pytest


class TestParseLibraryArgs:
    """Tests for parse_library_args."""

    def test_defaults(self):
        """Test that an argv without library flags yields the defaults."""
        from tritrace.config import parse_library_args

        argv = ["prog"]
        config = parse_library_args(argv)

        assert config.device == "cpu"
        assert config.seed == 0
        assert config.num_threads == 0
        assert config.log_level == logging.WARNING
        assert config.debug is False
        assert argv == ["prog"]

    def test_consumes_library_flags_in_place(self):
        """Test that library flags are removed and other arguments keep their order."""
        from tritrace.config import parse_library_args

        argv = ["prog", "--output", "x.png", "--tt:device=vulkan", "--samples", "4", "--tt:seed=7"]
        config = parse_library_args(argv)

        assert config.device == "vulkan"
        assert config.seed == 7
        assert argv == ["prog", "--output", "x.png", "--samples", "4"]

    def test_num_threads_and_log_level(self):
        """Test numeric and log level flags."""
        from tritrace.config import parse_library_args

        config = parse_library_args(["prog", "--tt:num-threads=2", "--tt:log-level=info"])

        assert config.num_threads == 2
        assert config.log_level == logging.INFO

    def test_debug_enables_debug_logging(self):
        """Test that --tt:debug turns on debug mode and debug logging."""
        from tritrace.config import parse_library_args

        config = parse_library_args(["prog", "--tt:debug"])

        assert config.debug is True
        assert config.log_level == logging.DEBUG

    @pytest.mark.parametrize("backend", ["cpu", "gpu", "cuda", "vulkan", "metal", "opengl"])
    def test_supported_devices(self, backend):
        """Test that every supported backend name is accepted."""
        from tritrace.config import parse_library_args

        assert parse_library_args(["prog", f"--tt:device={backend}"]).device == backend


class TestParseLibraryArgsErrors:
    """Tests for malformed library flags."""

    def test_unknown_device(self):
        """Test that an unknown device fails with UNSUPPORTED_DEVICE."""
        from tritrace.config import parse_library_args
        from tritrace.errors import ErrorCode, InitializationError

        with pytest.raises(InitializationError) as excinfo:
            parse_library_args(["prog", "--tt:device=abacus"])
        assert excinfo.value.code == ErrorCode.UNSUPPORTED_DEVICE

    def test_unknown_flag(self):
        """Test that an unknown --tt: flag fails with INVALID_ARGUMENT."""
        from tritrace.config import parse_library_args
        from tritrace.errors import ErrorCode, InitializationError

        with pytest.raises(InitializationError) as excinfo:
            parse_library_args(["prog", "--tt:turbo"])
        assert excinfo.value.code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.parametrize(
        "flag",
        ["--tt:seed", "--tt:seed=abc", "--tt:seed=-1", "--tt:num-threads=1.5"],
    )
    def test_malformed_integers(self, flag):
        """Test that missing, non-integer and negative values are rejected."""
        from tritrace.config import parse_library_args
        from tritrace.errors import InitializationError

        with pytest.raises(InitializationError):
            parse_library_args(["prog", flag])

    def test_unknown_log_level(self):
        """Test that an unknown log level is rejected."""
        from tritrace.config import parse_library_args
        from tritrace.errors import InitializationError

        with pytest.raises(InitializationError):
            parse_library_args(["prog", "--tt:log-level=chatty"])

    def test_argv_untouched_on_error(self):
        """Test that argv is only modified when parsing succeeds."""
        from tritrace.config import parse_library_args
        from tritrace.errors import InitializationError

        argv = ["prog", "--tt:seed=1", "--tt:bogus"]
        with pytest.raises(InitializationError):
            parse_library_args(argv)
        assert argv == ["prog", "--tt:seed=1", "--tt:bogus"]
