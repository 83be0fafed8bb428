"""Unit tests for library initialization and the device.

Tests cover:
- A single active device per process
- Type name lookup for the object factories
- Live object tracking
- Shutdown: leak reports, reuse of a shut down device, re-initialization
"""

import os
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


def run_script(source):
    """Run Python source in a fresh interpreter with the package importable."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(SRC_DIR), env.get("PYTHONPATH")) if p)
    return subprocess.run(
        [sys.executable, "-c", textwrap.dedent(source)],
        env=env,
        capture_output=True,
        text=True,
        timeout=600,
    )


class TestInit:
    """Tests for tritrace.init."""

    def test_second_init_rejected(self, device):
        """Test that only one device can be active at a time."""
        import tritrace
        from tritrace.errors import InitializationError

        with pytest.raises(InitializationError):
            tritrace.init(["prog"])
        assert device.is_active

    def test_invalid_flag_rejected_before_device_check(self):
        """Test that malformed library flags are reported as initialization errors."""
        import tritrace
        from tritrace.errors import ErrorCode, InitializationError

        with pytest.raises(InitializationError) as exc_info:
            tritrace.init(["prog", "--tt:seed=abc"])
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    def test_device_config(self, device):
        """Test that the session device keeps the flags it was created with."""
        assert device.config.device == "cpu"
        assert device.config.seed == 42

    @pytest.mark.parametrize(
        "backend, expected",
        [("cpu", "cpu"), ("cuda", "cuda"), ("vulkan", "vulkan"), ("gpu", "cuda"), ("gpu", "metal")],
    )
    def test_accepted_archs(self, backend, expected):
        """Test that "gpu" accepts any GPU backend and other names only themselves."""
        import taichi as ti
        from tritrace.device import accepted_archs

        archs = accepted_archs(backend)

        assert getattr(ti, expected) in archs
        if backend != "gpu":
            assert archs == [getattr(ti, expected)]
        assert ti.cpu not in accepted_archs("gpu")


class TestFactories:
    """Tests for type name lookup."""

    @pytest.mark.parametrize(
        "factory, type_name",
        [
            ("new_light", "ambient"),
            ("new_light", "Distant"),
            ("new_light", "directional"),
            ("new_camera", "ORTHOGRAPHIC"),
            ("new_camera", "perspective"),
            ("new_geometry", "triangles"),
            ("new_texture", "texture2d"),
            ("new_renderer", "pathtracer"),
        ],
    )
    def test_known_types(self, device, factory, type_name):
        """Test that type names are matched case-insensitively."""
        with getattr(device, factory)(type_name) as obj:
            assert obj.type_name == type_name
            assert obj.refcount == 1

    @pytest.mark.parametrize(
        "factory", ["new_light", "new_camera", "new_geometry", "new_texture", "new_renderer"]
    )
    def test_unknown_type(self, device, factory):
        """Test that unknown type names are rejected."""
        from tritrace.errors import InvalidArgumentError

        with pytest.raises(InvalidArgumentError):
            getattr(device, factory)("nonexistent")

    def test_live_objects(self, device):
        """Test that objects are tracked from creation until destruction."""
        before = len(device.live_objects())

        scene = device.new_scene()
        assert scene in device.live_objects()
        assert len(device.live_objects()) == before + 1

        scene.release()
        assert scene not in device.live_objects()
        assert len(device.live_objects()) == before


class TestShutdown:
    """Tests for Device.shutdown, run in separate processes."""

    def test_leaked_objects_reported(self):
        """Test that objects alive at shutdown are logged as leaks and become unusable."""
        result = run_script(
            """
            import tritrace
            from tritrace.errors import ReleasedHandleError

            device = tritrace.init(["prog", "--tt:device=cpu"])
            scene = device.new_scene()
            device.shutdown()
            print("alive", scene.is_alive)
            try:
                scene.commit()
            except ReleasedHandleError:
                print("dead")
            """
        )

        assert result.returncode == 0, result.stderr
        assert "1 unreleased object(s)" in result.stderr
        assert "alive False" in result.stdout
        assert "dead" in result.stdout

    def test_clean_shutdown_is_silent(self):
        """Test that a shutdown without live objects logs no warning."""
        result = run_script(
            """
            import tritrace
            device = tritrace.init(["prog", "--tt:device=cpu"])
            with device.new_scene() as scene:
                scene.commit()
            device.shutdown()
            """
        )

        assert result.returncode == 0, result.stderr
        assert "unreleased" not in result.stderr

    def test_device_unusable_after_shutdown(self):
        """Test that a shut down device refuses work and a new one can be started."""
        result = run_script(
            """
            import tritrace
            from tritrace.errors import InvalidOperationError

            device = tritrace.init(["prog", "--tt:device=cpu"])
            device.shutdown()
            try:
                device.new_scene()
            except InvalidOperationError:
                print("refused")
            with tritrace.init(["prog", "--tt:device=cpu"]) as second:
                print("active", second.is_active)
            print("after", second.is_active)
            """
        )

        assert result.returncode == 0, result.stderr
        assert "refused" in result.stdout
        assert "active True" in result.stdout
        assert "after False" in result.stdout
