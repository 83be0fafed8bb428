"""Unit tests for typed data buffers.

Tests cover:
- Shared (zero-copy) buffers over numpy arrays and bytes
- Copied buffers independent of the source
- Element shape and dtype validation
- Object data holding committed lights
"""

import numpy as np
import pytest


class TestNumericData:
    """Tests for numeric Data buffers."""

    def test_shared_data_is_zero_copy(self, device):
        """Test that shared data aliases the caller's array."""
        from tritrace.core.data import DataType

        vertices = np.array([[0, 0, 0], [1, 1, 0], [1, 0, 0]], dtype=np.float32)
        with device.new_data(vertices, DataType.FLOAT3, shared=True) as data:
            assert np.shares_memory(data.array, vertices)

            vertices[1, 1] = 5.0
            assert data.array[1, 1] == 5.0

    def test_shared_data_over_bytes(self, device):
        """Test that any buffer object can be shared."""
        from tritrace.core.data import DataType

        texels = bytes([255, 0, 0, 0, 255, 0])
        with device.new_data(texels, DataType.UCHAR, shared=True) as data:
            assert data.num_items == 6
            assert data.array.tolist() == [255, 0, 0, 0, 255, 0]

    def test_copied_data_is_independent(self, device):
        """Test that copied data does not follow later source changes."""
        from tritrace.core.data import DataType

        uvs = np.array([0.0, 0.0, 1.0, 1.0, 1.0, 0.0], dtype=np.float32)
        with device.new_data(uvs, DataType.FLOAT2) as data:
            uvs[0] = 9.0

            assert not np.shares_memory(data.array, uvs)
            assert data.array.shape == (3, 2)
            assert data.array[0, 0] == 0.0

    def test_copied_data_converts_lists(self, device):
        """Test that copied data accepts plain sequences."""
        from tritrace.core.data import DataType

        with device.new_data([0, 1, 2], DataType.INT) as data:
            assert data.array.dtype == np.int32
            assert len(data) == 3

    def test_shared_data_requires_matching_dtype(self, device):
        """Test that sharing an array of the wrong dtype is rejected."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        with pytest.raises(InvalidArgumentError):
            device.new_data(np.zeros(9, dtype=np.float64), DataType.FLOAT3, shared=True)

    def test_shared_data_requires_contiguous_memory(self, device):
        """Test that sharing a strided view is rejected."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        strided = np.zeros((6, 3), dtype=np.float32)[::2]
        with pytest.raises(InvalidArgumentError):
            device.new_data(strided, DataType.FLOAT3, shared=True)

    def test_partial_elements_rejected(self, device):
        """Test that a value count not divisible by the components fails."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        with pytest.raises(InvalidArgumentError):
            device.new_data(np.zeros(4, dtype=np.float32), DataType.FLOAT3)

    def test_failed_creation_registers_nothing(self, device):
        """Test that rejected buffers never become live objects."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        before = len(device.live_objects())
        with pytest.raises(InvalidArgumentError):
            device.new_data(np.zeros(5, dtype=np.float32), DataType.FLOAT2)
        assert len(device.live_objects()) == before


class TestObjectData:
    """Tests for Data holding library objects."""

    def test_light_data_retains_lights(self, device):
        """Test that object data takes a reference on each element."""
        from tritrace.core.data import DataType

        light = device.new_light("ambient").commit()
        with device.new_data([light], DataType.LIGHT) as lights:
            assert light.refcount == 2
            assert lights.items == (light,)

            light.release()
            assert light.is_alive

        assert not light.is_alive

    def test_object_data_requires_committed_elements(self, device):
        """Test that uncommitted elements are rejected."""
        from tritrace.core.data import DataType
        from tritrace.errors import UncommittedObjectError

        with device.new_light("ambient") as light:
            with pytest.raises(UncommittedObjectError):
                device.new_data([light], DataType.LIGHT)

    def test_object_data_checks_kind(self, device):
        """Test that LIGHT data cannot hold other kinds of objects."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        with device.new_scene() as scene:
            scene.commit()
            with pytest.raises(InvalidArgumentError):
                device.new_data([scene], DataType.LIGHT)

    def test_object_data_cannot_be_shared(self, device):
        """Test that object data is always copied."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        with device.new_light("ambient") as light:
            light.commit()
            with pytest.raises(InvalidArgumentError):
                device.new_data([light], DataType.LIGHT, shared=True)

    def test_object_data_has_no_array(self, device):
        """Test that object data exposes items but no numeric array."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError

        with device.new_light("ambient") as light:
            light.commit()
            with device.new_data([light], DataType.LIGHT) as lights:
                with pytest.raises(InvalidArgumentError):
                    lights.array
