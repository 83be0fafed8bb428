"""Pytest configuration for tritrace tests.

This module provides shared fixtures for all test modules, including the
library device, which wraps Taichi initialization and must therefore be
created once per session.
"""

import pytest


@pytest.fixture(scope="session", autouse=True)
def device():
    """Initialize the library once for the entire test session.

    Using session scope prevents repeated ti.init()/ti.reset() cycles, which
    would invalidate the path tracer fields between tests.
    """
    import tritrace

    argv = ["pytest", "--tt:device=cpu", "--tt:seed=42"]
    session_device = tritrace.init(argv)
    yield session_device
    session_device.shutdown()


@pytest.fixture(autouse=True)
def release_leftovers(device):
    """Destroy objects a test left alive.

    This keeps the live object registry identical from test to test.
    """
    before = {id(obj) for obj in device.live_objects()}

    yield

    for obj in device.live_objects():
        if id(obj) in before:
            continue
        while obj.is_alive:
            obj.release()
