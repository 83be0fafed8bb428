"""Ray-triangle intersection for the path tracer.

Triangles are stored by their three vertices. Intersection uses the
Moller-Trumbore algorithm, which solves directly for the ray parameter t and
the barycentric coordinates (b1, b2) of the hit point:

    P = (1 - b1 - b2) * v0 + b1 * v1 + b2 * v2

The barycentrics are kept in the hit record so per-vertex attributes such as
texture coordinates can be interpolated with interpolate_vec2().

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from tritrace.geometry.triangle import hit_triangle, vec3
    >>> # Use hit_triangle within a Taichi kernel:
    >>> # rec = hit_triangle(origin, direction, v0, v1, v2, 1e-4, 1e10)
"""

import taichi as ti
import taichi.math as tm

vec2 = tm.vec2
vec3 = tm.vec3

# Determinant threshold below which the ray is treated as parallel
PARALLEL_EPSILON = 1e-9


@ti.dataclass
class TriangleHit:
    """Record of a ray-triangle intersection.

    Attributes:
        hit: 1 if the ray hit the triangle, 0 otherwise.
        t: Ray parameter of the hit. Only valid if hit == 1.
        b1: Barycentric weight of v1. Only valid if hit == 1.
        b2: Barycentric weight of v2. Only valid if hit == 1.
        point: World-space hit point.
        normal: Unit geometric normal, flipped to face the incoming ray.
        front_face: 1 if the ray hit the side the winding normal points to.
    """

    hit: ti.i32
    t: ti.f32
    b1: ti.f32
    b2: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def triangle_normal(v0: vec3, v1: vec3, v2: vec3) -> vec3:
    """Unit normal from the winding order (right-hand rule on v0->v1->v2)."""
    return tm.normalize(tm.cross(v1 - v0, v2 - v0))


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    v0: vec3,
    v1: vec3,
    v2: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> TriangleHit:
    """Test a ray against a triangle (two-sided).

    Args:
        ray_origin: Start of the ray.
        ray_direction: Direction of the ray (need not be normalized).
        v0, v1, v2: Triangle vertices.
        t_min: Smallest accepted t (avoids self-intersection).
        t_max: Largest accepted t (closest hit so far).

    Returns:
        A TriangleHit; check its hit field.
    """
    edge1 = v1 - v0
    edge2 = v2 - v0
    pvec = tm.cross(ray_direction, edge2)
    det = tm.dot(edge1, pvec)

    did_hit = 0
    hit_t = 0.0
    b1 = 0.0
    b2 = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if ti.abs(det) > PARALLEL_EPSILON:
        inv_det = 1.0 / det
        tvec = ray_origin - v0
        u = tm.dot(tvec, pvec) * inv_det
        if u >= 0.0 and u <= 1.0:
            qvec = tm.cross(tvec, edge1)
            v = tm.dot(ray_direction, qvec) * inv_det
            if v >= 0.0 and u + v <= 1.0:
                t = tm.dot(edge2, qvec) * inv_det
                if t > t_min and t < t_max:
                    did_hit = 1
                    hit_t = t
                    b1 = u
                    b2 = v
                    hit_point = ray_origin + t * ray_direction

                    normal = triangle_normal(v0, v1, v2)
                    if tm.dot(normal, ray_direction) < 0.0:
                        is_front_face = 1
                        hit_normal = normal
                    else:
                        hit_normal = -normal

    return TriangleHit(
        hit=did_hit,
        t=hit_t,
        b1=b1,
        b2=b2,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
    )


@ti.func
def interpolate_vec2(a0: vec2, a1: vec2, a2: vec2, b1: ti.f32, b2: ti.f32) -> vec2:
    """Interpolate a per-vertex attribute with barycentric weights."""
    return (1.0 - b1 - b2) * a0 + b1 * a1 + b2 * a2
