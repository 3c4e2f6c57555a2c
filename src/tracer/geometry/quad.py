"""Unit quad geometry with Cramer's-rule ray-quad intersection.

The quad lies in the object-space plane y = 0 with corners at (+-1, 0, +-1)
and a constant normal of +Y. Scene objects scale, rotate and translate it
into walls and floors.

A point on the quad is written with a base vertex and two edge vectors:

    P = V0 + u * E1 + v * E2,    V0 = (-1, 0, -1), E1 = (0, 0, 2), E2 = (2, 0, 0)

and the ray equation o + t * d = P is solved for (t, u, v) with Cramer's rule
(the same decomposition the triangle mesh uses). The quad differs from a
triangle only in the acceptance test: u and v must each lie in [0, 1]
independently instead of jointly satisfying u + v <= 1.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.geometry.quad import hit_unit_quad
    >>> # Use hit_unit_quad within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec2, vec3
from src.tracer.geometry.hit import (
    GEOMETRY_QUAD,
    PARALLEL_EPSILON,
    HitRecord,
    SurfaceProperties,
    make_miss_record,
)


@ti.func
def solve_edge_frame(ray_origin: vec3, ray_direction: vec3, v0: vec3, e1: vec3, e2: vec3):
    """Solve o + t*d = v0 + u*e1 + v*e2 for (t, u, v).

    This is the Moller-Trumbore formulation of Cramer's rule shared by the
    quad and the triangle mesh.

    Args:
        ray_origin: The ray origin.
        ray_direction: The ray direction.
        v0: Base vertex of the parallelogram or triangle.
        e1: First edge vector.
        e2: Second edge vector.

    Returns:
        Tuple of (valid, t, u, v). valid is 0 when the determinant magnitude
        is below PARALLEL_EPSILON (ray nearly parallel to the plane), in which
        case t, u and v are meaningless.
    """
    p = tm.cross(ray_direction, e2)
    det = tm.dot(p, e1)

    valid = 0
    t = 0.0
    u = 0.0
    v = 0.0

    if ti.abs(det) >= PARALLEL_EPSILON:
        valid = 1
        inv_det = 1.0 / det
        offset = ray_origin - v0
        u = tm.dot(p, offset) * inv_det
        q = tm.cross(offset, e1)
        v = tm.dot(q, ray_direction) * inv_det
        t = tm.dot(q, e2) * inv_det

    return valid, t, u, v


@ti.func
def _quad_solve(ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32):
    """Return (found, t, u, v) for the unit quad inside [t_min, t_max]."""
    v0 = vec3(-1.0, 0.0, -1.0)
    e1 = vec3(0.0, 0.0, 2.0)
    e2 = vec3(2.0, 0.0, 0.0)

    valid, t, u, v = solve_edge_frame(ray_origin, ray_direction, v0, e1, e2)

    found = 0
    if valid == 1:
        if u >= 0.0 and u <= 1.0 and v >= 0.0 and v <= 1.0:
            if t >= t_min and t <= t_max:
                found = 1

    return found, t, u, v


@ti.func
def hit_unit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect an object-space ray with the unit quad.

    Both edge parameters are tested on the closed interval [0, 1], so rays
    through the boundary are accepted.

    Args:
        ray_origin: The ray origin in object space.
        ray_direction: The ray direction in object space (need not be unit).
        t_min: Smallest accepted ray parameter (inclusive).
        t_max: Largest accepted ray parameter (inclusive).

    Returns:
        A HitRecord with (u, v) as payload, or a miss record.
    """
    rec = make_miss_record()
    found, t, u, v = _quad_solve(ray_origin, ray_direction, t_min, t_max)

    if found == 1:
        rec.hit = 1
        rec.t = t
        rec.kind = GEOMETRY_QUAD
        rec.uv = vec2(u, v)

    return rec


@ti.func
def shadow_unit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Return 1 if the ray meets the unit quad inside [t_min, t_max]."""
    found, _t, _u, _v = _quad_solve(ray_origin, ray_direction, t_min, t_max)
    return found


@ti.func
def unit_quad_properties(uv: vec2) -> SurfaceProperties:
    """The quad normal is constant; its texcoords are the edge parameters."""
    return SurfaceProperties(normal=vec3(0.0, 1.0, 0.0), texcoord=uv)
