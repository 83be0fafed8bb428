"""Sampling utilities for the Taichi path tracer.

All functions here are Taichi functions (@ti.func) meant to be called from
kernels. Random numbers come from ti.random, seeded by the device
(``--tt:seed``); pixel sample positions come from a Halton sequence so the
image plane is sampled deterministically.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from tritrace.core.ray import pixel_sample_offset
    >>> # Inside a kernel:
    >>> # offset = pixel_sample_offset(sample_index)
"""

import taichi as ti
import taichi.math as tm

vec2 = tm.vec2
vec3 = tm.vec3


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 if every component of v is within 1e-8 of zero."""
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Hemisphere Sampling
# =============================================================================


@ti.func
def random_cosine_direction() -> vec3:
    """Cosine-distributed direction in a local z-up frame (pdf = cos / pi)."""
    r1 = ti.random(ti.f32)
    r2 = ti.random(ti.f32)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    return vec3(ti.cos(phi) * sqrt_r2, ti.sin(phi) * sqrt_r2, ti.sqrt(1.0 - r2))


@ti.func
def build_onb_from_normal(normal: vec3):
    """Orthonormal basis (tangent, bitangent, normal) around a unit normal."""
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(a, normal))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def sample_cosine_hemisphere(normal: vec3):
    """Sample the hemisphere around normal with a cosine-weighted density.

    Returns:
        A tuple (direction, pdf) with pdf = cos(theta) / pi.
    """
    local_dir = random_cosine_direction()
    tangent, bitangent, n = build_onb_from_normal(normal)
    world_dir = local_to_world(local_dir, tangent, bitangent, n)
    pdf = tm.dot(world_dir, normal) / tm.pi
    return world_dir, pdf


# =============================================================================
# Image Plane Sampling
# =============================================================================


@ti.func
def radical_inverse(base: ti.i32, index: ti.i32) -> ti.f32:
    """Van der Corput radical inverse of index in the given base."""
    inv_base = 1.0 / ti.cast(base, ti.f32)
    factor = inv_base
    result = 0.0
    i = index
    while i > 0:
        result += ti.cast(i % base, ti.f32) * factor
        i = i // base
        factor *= inv_base
    return result


@ti.func
def pixel_sample_offset(sample_index: ti.i32) -> vec2:
    """Sub-pixel position in [0, 1)^2 for the given sample number.

    Sample 0 goes through the pixel centre; later samples follow the
    Halton (2, 3) sequence.
    """
    offset = vec2(0.5, 0.5)
    if sample_index > 0:
        offset = vec2(radical_inverse(2, sample_index), radical_inverse(3, sample_index))
    return offset
