"""Unit tests for textures and materials.

Tests cover:
- Texel conversion to linear RGBA for 8-bit, sRGB and float formats
- Texture2D validation of size, format and data
- Filter flags
- Material lookup per renderer type and OBJ/luminous parameters
"""

import numpy as np
import pytest

RGB8_TEXELS = np.array([255, 0, 0, 0, 255, 0, 0, 0, 255, 255, 255, 0], dtype=np.uint8)


def make_texture(device, texels=RGB8_TEXELS, size=(2, 2), texture_format=None, flags=None):
    """Create an uncommitted texture with its data attached."""
    from tritrace.core.data import DataType
    from tritrace.materials.texture import TextureFormat

    texture_format = TextureFormat.RGB8 if texture_format is None else texture_format
    data_type = DataType.FLOAT if texture_format.is_float else DataType.UCHAR

    texture = device.new_texture("texture2d")
    texture.set("size", size)
    texture.set("type", texture_format)
    if flags is not None:
        texture.set("flags", flags)
    with device.new_data(texels, data_type) as data:
        texture.set("data", data.commit())
    return texture


class TestTexelConversion:
    """Tests for texels_to_linear_rgba."""

    def test_rgb8_normalized_with_opaque_alpha(self):
        """Test that 8-bit values map to [0, 1] and alpha defaults to 1."""
        from tritrace.materials.texture import TextureFormat, texels_to_linear_rgba

        rgba = texels_to_linear_rgba(RGB8_TEXELS, TextureFormat.RGB8)

        assert rgba.shape == (4, 4)
        np.testing.assert_allclose(rgba[0], [1.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(rgba[3], [1.0, 1.0, 0.0, 1.0])

    def test_single_channel_expands_to_gray(self):
        """Test that R8 texels become gray."""
        from tritrace.materials.texture import TextureFormat, texels_to_linear_rgba

        rgba = texels_to_linear_rgba(np.array([0, 255], dtype=np.uint8), TextureFormat.R8)

        np.testing.assert_allclose(rgba[1], [1.0, 1.0, 1.0, 1.0])
        np.testing.assert_allclose(rgba[0], [0.0, 0.0, 0.0, 1.0])

    def test_srgb_decoded_to_linear(self):
        """Test that sRGB color channels are decoded but alpha is not."""
        from tritrace.materials.texture import TextureFormat, texels_to_linear_rgba

        rgba = texels_to_linear_rgba(np.array([188, 188, 188, 128], dtype=np.uint8),
                                     TextureFormat.SRGBA)

        # sRGB 188/255 is close to linear 0.5
        assert abs(rgba[0, 0] - 0.5) < 0.01
        assert abs(rgba[0, 3] - 128 / 255) < 1e-6

    def test_float_formats_pass_through(self):
        """Test that float texels are not rescaled."""
        from tritrace.materials.texture import TextureFormat, texels_to_linear_rgba

        rgba = texels_to_linear_rgba(np.array([0.25, 2.0, 0.5], dtype=np.float32),
                                     TextureFormat.RGB32F)

        np.testing.assert_allclose(rgba[0], [0.25, 2.0, 0.5, 1.0])


class TestTexture2D:
    """Tests for Texture2D validation."""

    def test_commit_converts_texels(self, device):
        """Test that a valid texture exposes its size and linear texels."""
        with make_texture(device) as texture:
            texture.commit()

            assert texture.size == (2, 2)
            assert texture.texels().shape == (4, 4)
            assert not texture.nearest

    def test_nearest_flag(self, device):
        """Test that FILTER_NEAREST selects nearest lookups."""
        from tritrace.materials.texture import TextureFlag

        with make_texture(device, flags=TextureFlag.FILTER_NEAREST) as texture:
            texture.commit()
            assert texture.nearest

    def test_wrong_value_count(self, device):
        """Test that the data must hold exactly width * height * channels values."""
        from tritrace.errors import InvalidArgumentError

        with make_texture(device, texels=RGB8_TEXELS[:9]) as texture:
            with pytest.raises(InvalidArgumentError):
                texture.commit()

    def test_float_format_needs_float_data(self, device):
        """Test that 8-bit data cannot back a float format."""
        from tritrace.core.data import DataType
        from tritrace.errors import InvalidArgumentError
        from tritrace.materials.texture import TextureFormat

        with make_texture(device) as texture:
            texture.set("type", TextureFormat.RGB32F)
            with pytest.raises(InvalidArgumentError):
                texture.commit()

        with make_texture(device) as texture:
            with device.new_data(np.zeros(12, dtype=np.float32), DataType.FLOAT) as data:
                texture.set("data", data.commit())
            with pytest.raises(InvalidArgumentError):
                texture.commit()

    @pytest.mark.parametrize("missing", ["size", "type", "data"])
    def test_required_parameters(self, device, missing):
        """Test that size, type and data are all required."""
        from tritrace.errors import InvalidArgumentError

        with make_texture(device) as texture:
            texture.remove(missing)
            with pytest.raises(InvalidArgumentError):
                texture.commit()

    def test_size_must_be_positive(self, device):
        """Test that a zero-sized texture is rejected."""
        from tritrace.errors import InvalidArgumentError

        with make_texture(device, size=(0, 2)) as texture:
            with pytest.raises(InvalidArgumentError):
                texture.commit()


class TestMaterials:
    """Tests for material creation and parameters."""

    @pytest.mark.parametrize("name", ["OBJMaterial", "obj", "objmaterial"])
    def test_obj_material_names(self, device, name):
        """Test the accepted names of the OBJ material."""
        from tritrace.materials.material import ObjMaterial

        with device.new_material("pathtracer", name) as material:
            assert isinstance(material, ObjMaterial)

    def test_unknown_material_or_renderer(self, device):
        """Test that unknown material and renderer types are rejected."""
        from tritrace.errors import InvalidArgumentError

        with pytest.raises(InvalidArgumentError):
            device.new_material("pathtracer", "velvet")
        with pytest.raises(InvalidArgumentError):
            device.new_material("rasterizer", "obj")

    def test_obj_defaults(self, device):
        """Test the default diffuse color and absent texture."""
        from tritrace.materials.material import DEFAULT_KD

        with device.new_material("pathtracer", "obj") as material:
            material.commit()

            assert material.diffuse == DEFAULT_KD
            assert material.texture is None
            assert material.emission == (0.0, 0.0, 0.0)

    def test_obj_kd_range(self, device):
        """Test that Kd components outside [0, 1] are rejected."""
        from tritrace.errors import InvalidArgumentError

        with device.new_material("pathtracer", "obj") as material:
            material.set("Kd", (1.5, 0.0, 0.0))
            with pytest.raises(InvalidArgumentError):
                material.commit()

    def test_map_kd_retains_texture(self, device):
        """Test that the material keeps its texture alive."""
        with device.new_material("pathtracer", "obj") as material:
            with make_texture(device) as texture:
                material.set("map_Kd", texture.commit())
                material.commit()

            assert texture.is_alive
            assert material.texture is texture

        assert not texture.is_alive

    def test_luminous_emission(self, device):
        """Test that luminous emission is color times intensity."""
        from tritrace.materials.material import MaterialKind

        with device.new_material("pathtracer", "luminous") as material:
            material.set("color", (1.0, 0.5, 0.0)).set("intensity", 2.0).commit()

            assert material.material_kind == MaterialKind.LUMINOUS
            assert material.emission == (2.0, 1.0, 0.0)
