"""Geometry module for object-space shapes and intersection.

This module provides the closed set of shapes scene objects can reference:

Components:
    hit: HitRecord with its per-kind payload, and SurfaceProperties
    sphere: Unit sphere at the origin (robust quadratic solve)
    quad: Unit quad in the y = 0 plane (Cramer's-rule solve)
    mesh: Indexed triangle meshes (Moller-Trumbore, linear scan)
    tessellate: Octahedron and subdivided-sphere mesh builders
    pool: Geometry pool owning shapes and dispatching on the kind tag

All intersection routines are Taichi functions (@ti.func) working entirely in
object space. Every shape supports three queries:

    rec = hit_*(origin, direction, t_min, t_max)       # nearest hit + payload
    blocked = shadow_*(origin, direction, t_min, t_max)  # any hit
    props = *_properties(payload)                      # normal + texcoord

Note: mesh and pool are NOT imported here because they allocate Taichi
fields at import time. Import them directly after ti.init().
"""

from .hit import (
    GEOMETRY_MESH,
    GEOMETRY_NONE,
    GEOMETRY_QUAD,
    GEOMETRY_SPHERE,
    HitRecord,
    SurfaceProperties,
    make_miss_record,
)
from .quad import hit_unit_quad, shadow_unit_quad, solve_edge_frame, unit_quad_properties
from .sphere import hit_unit_sphere, shadow_unit_sphere, sphere_texcoord, unit_sphere_properties

__all__ = [
    "GEOMETRY_NONE",
    "GEOMETRY_SPHERE",
    "GEOMETRY_QUAD",
    "GEOMETRY_MESH",
    "HitRecord",
    "SurfaceProperties",
    "make_miss_record",
    "hit_unit_sphere",
    "shadow_unit_sphere",
    "sphere_texcoord",
    "unit_sphere_properties",
    "hit_unit_quad",
    "shadow_unit_quad",
    "solve_edge_frame",
    "unit_quad_properties",
]
