"""Unit tests for triangle geometry.

Tests cover:
- Ray-triangle intersection (front and back face, edges, misses, t range)
- Barycentric interpolation of texture coordinates
- TriangleMesh commit-time validation of vertices, indices and texcoords
"""

import numpy as np
import pytest
import taichi as ti


class TestTriangleIntersection:
    """Tests for hit_triangle."""

    def _trace(self, origin, direction, t_min=1e-4, t_max=1e10):
        from tritrace.geometry.triangle import hit_triangle, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        bary = ti.field(dtype=ti.math.vec2, shape=())
        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(
            ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32,
            t0: ti.f32, t1: ti.f32,
        ):
            # Triangle in the z=0 plane, winding normal +z
            rec = hit_triangle(
                vec3(ox, oy, oz),
                vec3(dx, dy, dz),
                vec3(0.0, 0.0, 0.0),
                vec3(1.0, 0.0, 0.0),
                vec3(0.0, 1.0, 0.0),
                t0,
                t1,
            )
            hit[None] = rec.hit
            t_val[None] = rec.t
            bary[None] = ti.math.vec2(rec.b1, rec.b2)
            normal[None] = rec.normal
            front_face[None] = rec.front_face

        test_kernel(*origin, *direction, t_min, t_max)
        return hit[None], t_val[None], bary[None], normal[None], front_face[None]

    def test_hit_front_face(self):
        """Test a ray hitting the side the winding normal points to."""
        hit, t, bary, normal, front = self._trace((0.25, 0.25, 2.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert abs(t - 2.0) < 1e-5
        assert abs(bary[0] - 0.25) < 1e-5
        assert abs(bary[1] - 0.25) < 1e-5
        assert front == 1
        assert abs(normal[2] - 1.0) < 1e-5

    def test_hit_back_face_flips_normal(self):
        """Test that the normal faces the ray when hitting the back side."""
        hit, t, _, normal, front = self._trace((0.25, 0.25, -1.0), (0.0, 0.0, 1.0))

        assert hit == 1
        assert abs(t - 1.0) < 1e-5
        assert front == 0
        assert abs(normal[2] + 1.0) < 1e-5

    def test_miss_outside(self):
        """Test a ray passing beside the hypotenuse."""
        hit, *_ = self._trace((0.75, 0.75, 1.0), (0.0, 0.0, -1.0))
        assert hit == 0

    def test_miss_parallel(self):
        """Test a ray parallel to the triangle plane."""
        hit, *_ = self._trace((-1.0, 0.25, 0.0), (1.0, 0.0, 0.0))
        assert hit == 0

    def test_respects_t_range(self):
        """Test that hits beyond t_max or behind the origin are ignored."""
        hit_far, *_ = self._trace((0.25, 0.25, 2.0), (0.0, 0.0, -1.0), t_max=1.5)
        hit_behind, *_ = self._trace((0.25, 0.25, -1.0), (0.0, 0.0, -1.0))

        assert hit_far == 0
        assert hit_behind == 0

    def test_interpolate_vec2(self):
        """Test barycentric interpolation of per-vertex coordinates."""
        from tritrace.geometry.triangle import interpolate_vec2, vec2

        result = ti.field(dtype=ti.math.vec2, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = interpolate_vec2(
                vec2(0.0, 0.0), vec2(1.0, 1.0), vec2(1.0, 0.0), 0.5, 0.25
            )

        test_kernel()
        uv = result[None]
        assert abs(uv[0] - 0.75) < 1e-6
        assert abs(uv[1] - 0.5) < 1e-6


class TestTriangleMesh:
    """Tests for TriangleMesh validation."""

    VERTICES = np.array([[0, 0, 0], [1, 1, 0], [1, 0, 0]], dtype=np.float32)
    UVS = np.array([[0, 0], [1, 1], [1, 0]], dtype=np.float32)

    def _mesh(self, device, indices=None, uvs=None):
        from tritrace.core.data import DataType

        mesh = device.new_geometry("triangles")
        with device.new_data(self.VERTICES, DataType.FLOAT3, shared=True) as vertices:
            mesh.set("vertex", vertices.commit())
        if indices is not None:
            with device.new_data(indices, DataType.INT) as index:
                mesh.set("index", index.commit())
        if uvs is not None:
            with device.new_data(uvs, DataType.FLOAT2) as texcoords:
                mesh.set("vertex.texcoord", texcoords.commit())
        return mesh

    def test_indexed_triangle(self, device):
        """Test that an index buffer selects triangle corners."""
        with self._mesh(device, indices=[2, 1, 0], uvs=self.UVS) as mesh:
            mesh.commit()
            positions, texcoords = mesh.triangles()

            assert mesh.num_triangles == 1
            np.testing.assert_allclose(positions[0], self.VERTICES[[2, 1, 0]])
            np.testing.assert_allclose(texcoords[0], self.UVS[[2, 1, 0]])

    def test_without_index_uses_consecutive_vertices(self, device):
        """Test that an unindexed mesh takes vertices three at a time."""
        with self._mesh(device) as mesh:
            mesh.commit()
            positions, texcoords = mesh.triangles()

            np.testing.assert_allclose(positions[0], self.VERTICES)
            assert texcoords is None

    @pytest.mark.parametrize("indices", [[0, 1, 3], [0, -1, 2]])
    def test_out_of_range_index_rejected(self, device, indices):
        """Test that every index must address an existing vertex."""
        from tritrace.errors import InvalidArgumentError

        with self._mesh(device, indices=indices) as mesh:
            with pytest.raises(InvalidArgumentError):
                mesh.commit()

    def test_partial_triangle_rejected(self, device):
        """Test that the index count must be a multiple of three."""
        from tritrace.errors import InvalidArgumentError

        with self._mesh(device, indices=[0, 1, 2, 0]) as mesh:
            with pytest.raises(InvalidArgumentError):
                mesh.commit()

    def test_texcoord_count_must_match(self, device):
        """Test that there must be one texture coordinate per vertex."""
        from tritrace.errors import InvalidArgumentError

        with self._mesh(device, uvs=self.UVS[:2]) as mesh:
            with pytest.raises(InvalidArgumentError):
                mesh.commit()

    def test_vertex_required(self, device):
        """Test that a mesh without vertices cannot be committed."""
        from tritrace.errors import InvalidArgumentError

        with device.new_geometry("triangles") as mesh:
            with pytest.raises(InvalidArgumentError):
                mesh.commit()

    def test_material_must_be_material(self, device):
        """Test that only materials are accepted for the material parameter."""
        from tritrace.errors import InvalidArgumentError

        with self._mesh(device) as mesh, device.new_light("ambient") as light:
            mesh.set("material", light.commit())
            with pytest.raises(InvalidArgumentError):
                mesh.commit()

    def test_unknown_geometry_type(self, device):
        """Test that unknown geometry types are rejected."""
        from tritrace.errors import InvalidArgumentError

        with pytest.raises(InvalidArgumentError):
            device.new_geometry("spheres")
