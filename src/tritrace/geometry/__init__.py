"""Geometry module for triangle meshes.

Components:
    mesh: TriangleMesh, the "triangles" geometry object
    triangle: Ray-triangle intersection (Taichi functions)

Intersection follows the pattern:
    rec = hit_triangle(ray_origin, ray_direction, v0, v1, v2, t_min, t_max)
"""

from .mesh import TriangleMesh
from .triangle import TriangleHit, hit_triangle, interpolate_vec2, triangle_normal

__all__ = [
    "TriangleMesh",
    "TriangleHit",
    "hit_triangle",
    "interpolate_vec2",
    "triangle_normal",
]
