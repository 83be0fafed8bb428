"""Path tracing integrator for triangle scenes.

PathTracer owns the Taichi fields holding the flattened scene (triangles,
materials, textures, lights, camera) and the kernel that renders it. The
fields are preallocated to fixed maximum sizes so the kernels compile once;
each render uploads the current scene into them.

Light transport per path:
    - Luminous surfaces add their emission and end the path.
    - Diffuse surfaces use next-event estimation against every light:
      ambient lights with one cosine-weighted shadow ray (an unoccluded
      surface reflects albedo * L), distant lights with the Lambert term
      albedo / pi * L * cos and a shadow ray toward the light.
    - The path continues with a Lambertian bounce; Russian roulette may end
      it once the bounce count reaches the roulette depth.
    - A primary ray that escapes returns the background color (including
      its alpha); secondary escapes add nothing, since lights are already
      accounted for by next-event estimation.

The first sample of each pixel goes through the pixel centre, so with one
sample per pixel the image does not depend on the random seed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> tracer = PathTracer()
    >>> tracer.upload(arrays, max_depth=20, roulette_depth=5, bg_color=(0, 0, 0, 0))
    >>> color, depth = tracer.render(400, 400, spp=1)
"""

import logging
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from tritrace.camera.projection import ProjectionType
from tritrace.core.ray import pixel_sample_offset
from tritrace.errors import CapacityError
from tritrace.geometry.triangle import hit_triangle, interpolate_vec2
from tritrace.materials.lambertian import eval_lambertian, pdf_lambertian, scatter_lambertian
from tritrace.materials.material import MaterialKind
from tritrace.scene.lights import LightKind

if TYPE_CHECKING:
    from tritrace.scene.compile import SceneArrays

logger = logging.getLogger(__name__)

vec2 = tm.vec2
vec3 = tm.vec3
vec4 = tm.vec4

# =============================================================================
# Capacity
# =============================================================================

MAX_TRIANGLES = 1 << 16
MAX_MATERIALS = 1024
MAX_TEXTURES = 256
MAX_TEXELS = 1 << 20
MAX_LIGHTS = 64

# Upper bound accepted for the maxDepth renderer parameter
MAX_DEPTH = 128

# =============================================================================
# Rendering Constants
# =============================================================================

# Ray offset epsilon to avoid self-intersection
RAY_EPSILON = 1e-4

# t_min and t_max for ray intersection
T_MIN = 1e-4
T_MAX = 1e10

# Russian roulette survival probability cap
MAX_RR_PROBABILITY = 0.95


@ti.dataclass
class SceneHit:
    """Closest intersection of a ray with the uploaded triangles.

    Attributes:
        hit: 1 if any triangle was hit.
        t: Ray parameter of the hit.
        b1: Barycentric weight of the second corner.
        b2: Barycentric weight of the third corner.
        point: World-space hit point.
        normal: Unit normal facing the incoming ray.
        triangle: Index of the hit triangle, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    b1: ti.f32
    b2: ti.f32
    point: vec3
    normal: vec3
    triangle: ti.i32


@ti.data_oriented
class PathTracer:
    """Taichi-side scene storage and render kernel.

    Must be created after ti.init and is invalidated by ti.reset.
    """

    def __init__(self) -> None:
        # Triangles (structure of arrays)
        self.tri_v0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_v1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_v2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_uv0 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_uv1 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_uv2 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
        self.tri_material = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
        self.num_triangles = ti.field(dtype=ti.i32, shape=())

        # Materials
        self.mat_kind = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
        self.mat_diffuse = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
        self.mat_emission = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
        self.mat_texture = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)

        # Textures share one texel pool
        self.texels = ti.Vector.field(4, dtype=ti.f32, shape=MAX_TEXELS)
        self.tex_offset = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
        self.tex_size = ti.Vector.field(2, dtype=ti.i32, shape=MAX_TEXTURES)
        self.tex_nearest = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)

        # Lights
        self.light_kind = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
        self.light_radiance = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
        self.light_direction = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
        self.num_lights = ti.field(dtype=ti.i32, shape=())

        # Camera
        self.cam_projection = ti.field(dtype=ti.i32, shape=())
        self.cam_position = ti.Vector.field(3, dtype=ti.f32, shape=())
        self.cam_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        self.cam_du = ti.Vector.field(3, dtype=ti.f32, shape=())
        self.cam_dv = ti.Vector.field(3, dtype=ti.f32, shape=())

        # Renderer settings
        self.max_depth = ti.field(dtype=ti.i32, shape=())
        self.roulette_depth = ti.field(dtype=ti.i32, shape=())
        self.bg_color = ti.Vector.field(4, dtype=ti.f32, shape=())

    # =========================================================================
    # Upload
    # =========================================================================

    @ti.kernel
    def _upload_triangles(
        self,
        positions: ti.types.ndarray(dtype=ti.f32, ndim=3),
        texcoords: ti.types.ndarray(dtype=ti.f32, ndim=3),
        material_ids: ti.types.ndarray(dtype=ti.i32, ndim=1),
        count: ti.i32,
    ):
        for k in range(count):
            self.tri_v0[k] = vec3(positions[k, 0, 0], positions[k, 0, 1], positions[k, 0, 2])
            self.tri_v1[k] = vec3(positions[k, 1, 0], positions[k, 1, 1], positions[k, 1, 2])
            self.tri_v2[k] = vec3(positions[k, 2, 0], positions[k, 2, 1], positions[k, 2, 2])
            self.tri_uv0[k] = vec2(texcoords[k, 0, 0], texcoords[k, 0, 1])
            self.tri_uv1[k] = vec2(texcoords[k, 1, 0], texcoords[k, 1, 1])
            self.tri_uv2[k] = vec2(texcoords[k, 2, 0], texcoords[k, 2, 1])
            self.tri_material[k] = material_ids[k]

    @ti.kernel
    def _upload_materials(
        self,
        kinds: ti.types.ndarray(dtype=ti.i32, ndim=1),
        diffuse: ti.types.ndarray(dtype=ti.f32, ndim=2),
        emission: ti.types.ndarray(dtype=ti.f32, ndim=2),
        texture_ids: ti.types.ndarray(dtype=ti.i32, ndim=1),
        count: ti.i32,
    ):
        for k in range(count):
            self.mat_kind[k] = kinds[k]
            self.mat_diffuse[k] = vec3(diffuse[k, 0], diffuse[k, 1], diffuse[k, 2])
            self.mat_emission[k] = vec3(emission[k, 0], emission[k, 1], emission[k, 2])
            self.mat_texture[k] = texture_ids[k]

    @ti.kernel
    def _upload_texels(self, texels: ti.types.ndarray(dtype=ti.f32, ndim=2), count: ti.i32):
        for k in range(count):
            self.texels[k] = vec4(texels[k, 0], texels[k, 1], texels[k, 2], texels[k, 3])

    @ti.kernel
    def _upload_textures(
        self,
        offsets: ti.types.ndarray(dtype=ti.i32, ndim=1),
        sizes: ti.types.ndarray(dtype=ti.i32, ndim=2),
        nearest: ti.types.ndarray(dtype=ti.i32, ndim=1),
        count: ti.i32,
    ):
        for k in range(count):
            self.tex_offset[k] = offsets[k]
            self.tex_size[k] = ti.Vector([sizes[k, 0], sizes[k, 1]])
            self.tex_nearest[k] = nearest[k]

    @ti.kernel
    def _upload_lights(
        self,
        kinds: ti.types.ndarray(dtype=ti.i32, ndim=1),
        radiance: ti.types.ndarray(dtype=ti.f32, ndim=2),
        directions: ti.types.ndarray(dtype=ti.f32, ndim=2),
        count: ti.i32,
    ):
        for k in range(count):
            self.light_kind[k] = kinds[k]
            self.light_radiance[k] = vec3(radiance[k, 0], radiance[k, 1], radiance[k, 2])
            self.light_direction[k] = vec3(directions[k, 0], directions[k, 1], directions[k, 2])

    def upload(
        self,
        arrays: "SceneArrays",
        max_depth: int,
        roulette_depth: int,
        bg_color: tuple[float, float, float, float],
    ) -> None:
        """Copy a flattened scene and renderer settings into the fields.

        Raises:
            CapacityError: If the scene exceeds the preallocated storage.
        """
        limits = (
            ("triangles", arrays.num_triangles, MAX_TRIANGLES),
            ("materials", arrays.material_kinds.shape[0], MAX_MATERIALS),
            ("textures", arrays.texture_offsets.shape[0], MAX_TEXTURES),
            ("texels", arrays.texels.shape[0], MAX_TEXELS),
            ("lights", arrays.num_lights, MAX_LIGHTS),
        )
        for what, count, limit in limits:
            if count > limit:
                raise CapacityError(f"scene has {count} {what}, the maximum is {limit}")

        n = arrays.num_triangles
        if n:
            self._upload_triangles(
                np.ascontiguousarray(arrays.positions, dtype=np.float32),
                np.ascontiguousarray(arrays.texcoords, dtype=np.float32),
                np.ascontiguousarray(arrays.material_ids, dtype=np.int32),
                n,
            )
        self.num_triangles[None] = n

        m = arrays.material_kinds.shape[0]
        if m:
            self._upload_materials(
                np.ascontiguousarray(arrays.material_kinds, dtype=np.int32),
                np.ascontiguousarray(arrays.diffuse, dtype=np.float32),
                np.ascontiguousarray(arrays.emission, dtype=np.float32),
                np.ascontiguousarray(arrays.texture_ids, dtype=np.int32),
                m,
            )

        if arrays.texels.shape[0]:
            self._upload_texels(
                np.ascontiguousarray(arrays.texels, dtype=np.float32), arrays.texels.shape[0]
            )
        t = arrays.texture_offsets.shape[0]
        if t:
            self._upload_textures(
                np.ascontiguousarray(arrays.texture_offsets, dtype=np.int32),
                np.ascontiguousarray(arrays.texture_sizes, dtype=np.int32),
                np.ascontiguousarray(arrays.texture_nearest, dtype=np.int32),
                t,
            )

        lights = arrays.num_lights
        if lights:
            self._upload_lights(
                np.ascontiguousarray(arrays.light_kinds, dtype=np.int32),
                np.ascontiguousarray(arrays.light_radiance, dtype=np.float32),
                np.ascontiguousarray(arrays.light_directions, dtype=np.float32),
                lights,
            )
        self.num_lights[None] = lights

        basis = arrays.camera
        self.cam_projection[None] = int(basis.projection)
        self.cam_position[None] = basis.position.tolist()
        self.cam_direction[None] = basis.direction.tolist()
        self.cam_du[None] = basis.du.tolist()
        self.cam_dv[None] = basis.dv.tolist()

        self.max_depth[None] = max_depth
        self.roulette_depth[None] = roulette_depth
        self.bg_color[None] = list(bg_color)

        logger.debug("uploaded %d triangles, %d materials, %d lights", n, m, lights)

    # =========================================================================
    # Scene Queries
    # =========================================================================

    @ti.func
    def _intersect(self, origin: vec3, direction: vec3, t_max: ti.f32) -> SceneHit:
        """Closest triangle hit along the ray within (T_MIN, t_max)."""
        closest_t = t_max
        result = SceneHit(
            hit=0,
            t=0.0,
            b1=0.0,
            b2=0.0,
            point=vec3(0.0, 0.0, 0.0),
            normal=vec3(0.0, 0.0, 0.0),
            triangle=-1,
        )
        for k in range(self.num_triangles[None]):
            rec = hit_triangle(
                origin, direction, self.tri_v0[k], self.tri_v1[k], self.tri_v2[k], T_MIN, closest_t
            )
            if rec.hit == 1:
                closest_t = rec.t
                result = SceneHit(
                    hit=1,
                    t=rec.t,
                    b1=rec.b1,
                    b2=rec.b2,
                    point=rec.point,
                    normal=rec.normal,
                    triangle=k,
                )
        return result

    @ti.func
    def _occluded(self, origin: vec3, direction: vec3, t_max: ti.f32) -> ti.i32:
        """1 if any triangle blocks the ray (shadow query)."""
        blocked = 0
        for k in range(self.num_triangles[None]):
            if blocked == 0:
                rec = hit_triangle(
                    origin, direction, self.tri_v0[k], self.tri_v1[k], self.tri_v2[k], T_MIN, t_max
                )
                if rec.hit == 1:
                    blocked = 1
        return blocked

    # =========================================================================
    # Textures and Materials
    # =========================================================================

    @ti.func
    def _texel(self, texture_id: ti.i32, x: ti.i32, y: ti.i32) -> vec4:
        """Texel at integer coordinates, wrapping out-of-range values."""
        size = self.tex_size[texture_id]
        wx = ((x % size[0]) + size[0]) % size[0]
        wy = ((y % size[1]) + size[1]) % size[1]
        return self.texels[self.tex_offset[texture_id] + wy * size[0] + wx]

    @ti.func
    def _sample_texture(self, texture_id: ti.i32, uv: vec2) -> vec4:
        """Look up a texture at uv with repeat wrapping.

        Texel (0, 0) is the lower-left one. Nearest filtering picks the texel
        containing uv; bilinear filtering blends the four nearest texel
        centres.
        """
        size = self.tex_size[texture_id]
        fx = uv[0] * ti.cast(size[0], ti.f32)
        fy = uv[1] * ti.cast(size[1], ti.f32)
        result = vec4(0.0, 0.0, 0.0, 0.0)

        if self.tex_nearest[texture_id] == 1:
            x = ti.cast(ti.floor(fx), ti.i32)
            y = ti.cast(ti.floor(fy), ti.i32)
            result = self._texel(texture_id, x, y)
        else:
            gx = fx - 0.5
            gy = fy - 0.5
            x0 = ti.cast(ti.floor(gx), ti.i32)
            y0 = ti.cast(ti.floor(gy), ti.i32)
            tx = gx - ti.floor(gx)
            ty = gy - ti.floor(gy)
            bottom = tm.mix(
                self._texel(texture_id, x0, y0), self._texel(texture_id, x0 + 1, y0), tx
            )
            top = tm.mix(
                self._texel(texture_id, x0, y0 + 1), self._texel(texture_id, x0 + 1, y0 + 1), tx
            )
            result = tm.mix(bottom, top, ty)

        return result

    @ti.func
    def _albedo(self, material_id: ti.i32, uv: vec2) -> vec3:
        """Diffuse reflectance at a surface point; black without a material."""
        albedo = vec3(0.0, 0.0, 0.0)
        if material_id >= 0:
            albedo = self.mat_diffuse[material_id]
            texture_id = self.mat_texture[material_id]
            if texture_id >= 0:
                texel = self._sample_texture(texture_id, uv)
                albedo *= vec3(texel[0], texel[1], texel[2])
        return albedo

    # =========================================================================
    # Light Transport
    # =========================================================================

    @ti.func
    def _direct_light(self, point: vec3, normal: vec3, albedo: vec3) -> vec3:
        """Next-event estimate of light reflected toward the viewer."""
        result = vec3(0.0, 0.0, 0.0)
        origin = point + RAY_EPSILON * normal

        for k in range(self.num_lights[None]):
            radiance = self.light_radiance[k]
            if self.light_kind[k] == int(LightKind.AMBIENT):
                # BRDF * cos / pdf collapses to albedo for a cosine sample
                direction, _weight, _pdf = scatter_lambertian(albedo, normal)
                if pdf_lambertian(normal, direction) > 0.0:
                    if self._occluded(origin, direction, T_MAX) == 0:
                        result += albedo * radiance
            elif self.light_kind[k] == int(LightKind.DISTANT):
                to_light = -self.light_direction[k]
                cos_theta = tm.dot(normal, to_light)
                if cos_theta > 0.0:
                    if self._occluded(origin, to_light, T_MAX) == 0:
                        result += eval_lambertian(albedo) * radiance * cos_theta

        return result

    @ti.func
    def _generate_ray(self, sx: ti.f32, sy: ti.f32):
        """Camera ray through normalized screen position (sx, sy).

        Returns:
            A tuple (origin, direction) with a unit direction.
        """
        offset = (sx - 0.5) * self.cam_du[None] + (sy - 0.5) * self.cam_dv[None]
        origin = self.cam_position[None]
        direction = self.cam_direction[None]
        if self.cam_projection[None] == int(ProjectionType.ORTHOGRAPHIC):
            origin = origin + offset
        else:
            direction = tm.normalize(direction + offset)
        return origin, direction

    @ti.func
    def _trace(self, ray_origin: vec3, ray_direction: vec3):
        """Trace one path.

        Returns:
            A tuple (rgba, hit_distance); hit_distance is -1 when the
            primary ray escapes.
        """
        origin = ray_origin
        direction = ray_direction
        color = vec3(0.0, 0.0, 0.0)
        alpha = 0.0
        hit_distance = -1.0
        throughput = vec3(1.0, 1.0, 1.0)

        # Active flag for path continuation
        active = 1

        for bounce in range(self.max_depth[None]):
            if active == 1:
                rec = self._intersect(origin, direction, T_MAX)

                if rec.hit == 0:
                    if bounce == 0:
                        bg = self.bg_color[None]
                        color = vec3(bg[0], bg[1], bg[2])
                        alpha = bg[3]
                    active = 0
                else:
                    if bounce == 0:
                        alpha = 1.0
                        hit_distance = rec.t

                    tri = rec.triangle
                    material_id = self.tri_material[tri]
                    is_emitter = 0
                    if material_id >= 0:
                        if self.mat_kind[material_id] == int(MaterialKind.LUMINOUS):
                            is_emitter = 1

                    if is_emitter == 1:
                        color += throughput * self.mat_emission[material_id]
                        active = 0
                    else:
                        uv = interpolate_vec2(
                            self.tri_uv0[tri], self.tri_uv1[tri], self.tri_uv2[tri], rec.b1, rec.b2
                        )
                        albedo = self._albedo(material_id, uv)
                        color += throughput * self._direct_light(rec.point, rec.normal, albedo)

                        scattered, attenuation, _ = scatter_lambertian(albedo, rec.normal)
                        throughput *= attenuation

                        survival = ti.max(throughput.x, ti.max(throughput.y, throughput.z))
                        if survival <= 0.0:
                            active = 0
                        elif bounce + 1 >= self.roulette_depth[None]:
                            rr_prob = ti.min(survival, MAX_RR_PROBABILITY)
                            if ti.random(ti.f32) > rr_prob:
                                active = 0
                            else:
                                throughput /= rr_prob

                        if active == 1:
                            origin = rec.point + RAY_EPSILON * rec.normal
                            direction = scattered

        return vec4(color[0], color[1], color[2], alpha), hit_distance

    # =========================================================================
    # Rendering
    # =========================================================================

    @ti.kernel
    def _render(
        self,
        color: ti.types.ndarray(dtype=ti.f32, ndim=3),
        depth: ti.types.ndarray(dtype=ti.f32, ndim=2),
        width: ti.i32,
        height: ti.i32,
        spp: ti.i32,
    ):
        for j, i in ti.ndrange(height, width):
            total = vec4(0.0, 0.0, 0.0, 0.0)
            first_distance = -1.0
            for s in range(spp):
                offset = pixel_sample_offset(s)
                sx = (ti.cast(i, ti.f32) + offset.x) / ti.cast(width, ti.f32)
                sy = (ti.cast(j, ti.f32) + offset.y) / ti.cast(height, ti.f32)
                origin, direction = self._generate_ray(sx, sy)
                rgba, distance = self._trace(origin, direction)
                total += rgba
                if s == 0:
                    first_distance = distance

            total /= ti.cast(spp, ti.f32)
            for c in ti.static(range(4)):
                value = total[c]
                if tm.isnan(value) or tm.isinf(value):
                    value = 0.0
                color[j, i, c] = ti.max(value, 0.0)
            depth[j, i] = first_distance

    def render(
        self, width: int, height: int, spp: int
    ) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.float32]]:
        """Render the uploaded scene.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.
            spp: Samples per pixel.

        Returns:
            (color, depth): linear RGBA shaped (height, width, 4) and primary
            hit distance shaped (height, width), inf where nothing was hit.
            Row 0 is the bottom of the image.
        """
        color = np.zeros((height, width, 4), dtype=np.float32)
        depth = np.zeros((height, width), dtype=np.float32)
        self._render(color, depth, width, height, spp)
        depth[depth < 0.0] = np.inf
        return color, depth
