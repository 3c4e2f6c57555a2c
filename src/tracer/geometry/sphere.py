"""Unit sphere geometry with robust ray-sphere intersection.

The sphere has radius 1 and is centred at the object-space origin; scene
objects place it in the world with their transform. Intersection uses the
robust quadratic formula from Ray Tracing Gems to avoid catastrophic
cancellation when b^2 is nearly equal to 4ac.

The hit payload is the object-space hit position, from which the normal
(the normalized position) and the spherical texture coordinates are
recovered later.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.geometry.sphere import hit_unit_sphere
    >>> # Use hit_unit_sphere within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec2, vec3
from src.tracer.geometry.hit import (
    GEOMETRY_SPHERE,
    HitRecord,
    SurfaceProperties,
    make_miss_record,
)


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 with the numerically stable formula.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of the discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray through the centre plane
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def _nearest_root(ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32):
    """Find the smallest root of |o + t*d|^2 = 1 inside [t_min, t_max].

    Returns:
        Tuple of (found, t) where found is 1 if a root lies in range.
    """
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, ray_origin)
    c = tm.dot(ray_origin, ray_origin) - 1.0

    discriminant = h * h - a * c

    found = 0
    t = 0.0

    if discriminant >= 0.0 and a > 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        if t0 >= t_min and t0 <= t_max:
            found = 1
            t = t0
        elif t1 >= t_min and t1 <= t_max:
            found = 1
            t = t1

    return found, t


@ti.func
def hit_unit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect an object-space ray with the unit sphere.

    The ray-sphere intersection is found by solving:
        |ray_origin + t * ray_direction|^2 = 1

    which expands to a*t^2 + 2*h*t + c = 0 with
        a = dot(d, d), h = dot(d, o), c = dot(o, o) - 1.

    Args:
        ray_origin: The ray origin in object space.
        ray_direction: The ray direction in object space (need not be unit).
        t_min: Smallest accepted ray parameter (inclusive).
        t_max: Largest accepted ray parameter (inclusive).

    Returns:
        A HitRecord with the object-space hit position as payload, or a miss
        record if no root lies in [t_min, t_max].
    """
    rec = make_miss_record()
    found, t = _nearest_root(ray_origin, ray_direction, t_min, t_max)

    if found == 1:
        rec.hit = 1
        rec.t = t
        rec.kind = GEOMETRY_SPHERE
        rec.position = ray_origin + t * ray_direction

    return rec


@ti.func
def shadow_unit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Return 1 if the ray meets the unit sphere inside [t_min, t_max]."""
    found, _ = _nearest_root(ray_origin, ray_direction, t_min, t_max)
    return found


@ti.func
def sphere_texcoord(position: vec3) -> vec2:
    """Spherical projection of an object-space point to texture coordinates.

    Args:
        position: A point on the unit sphere.

    Returns:
        (s, t) with s = (atan2(-x, z)/pi + 1)/2 and t = (asin(-y)/pi + 1)/2.
    """
    y = tm.clamp(-position.y, -1.0, 1.0)
    s = (ti.atan2(-position.x, position.z) / tm.pi + 1.0) / 2.0
    t = (ti.asin(y) / tm.pi + 1.0) / 2.0
    return vec2(s, t)


@ti.func
def unit_sphere_properties(position: vec3) -> SurfaceProperties:
    """Recover the object-space normal and texcoord from a sphere payload."""
    return SurfaceProperties(normal=tm.normalize(position), texcoord=sphere_texcoord(position))
