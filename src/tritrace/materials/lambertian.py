"""Lambertian (ideal diffuse) scattering.

The Lambertian BRDF reflects light equally in all directions:

    f_r(wi, wo) = albedo / pi

Sampling directions with a cosine-weighted hemisphere distribution
(pdf = cos(theta) / pi) makes the BRDF * cos / pdf weight collapse to the
albedo, so a diffuse bounce only multiplies the path throughput by the
surface color.
"""

import taichi as ti
import taichi.math as tm

from tritrace.core.ray import near_zero, sample_cosine_hemisphere

vec3 = tm.vec3


@ti.func
def eval_lambertian(albedo: vec3) -> vec3:
    """BRDF value albedo / pi (the cosine term is applied by the caller)."""
    return albedo / tm.pi


@ti.func
def pdf_lambertian(normal: vec3, direction: vec3) -> ti.f32:
    """Cosine-weighted sampling density; zero below the surface."""
    cos_theta = tm.dot(normal, direction)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3):
    """Sample a diffuse bounce.

    Args:
        albedo: Surface reflectance (RGB in [0, 1]).
        normal: Unit normal on the side the ray arrived from.

    Returns:
        A tuple (direction, attenuation, pdf); attenuation equals albedo.
    """
    direction, pdf = sample_cosine_hemisphere(normal)

    # Degenerate samples fall back to the normal
    if near_zero(direction):
        direction = normal
        pdf = 1.0 / tm.pi

    return direction, albedo, pdf
