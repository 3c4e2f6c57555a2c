"""Ray data structure and sampling utilities for the recursive ray tracer.

This module provides the Ray dataclass together with the small set of vector
helpers the intersection and shading code relies on. All functions are Taichi
funcs and can only be called from inside kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.core.ray import Ray, ray_at, vec3
    >>>
    >>> @ti.kernel
    ... def probe() -> ti.f32:
    ...     ray = Ray(origin=vec3(0.0, 0.0, 5.0), direction=vec3(0.0, 0.0, -1.0))
    ...     return ray_at(ray, 4.0).z
    >>> probe()
    1.0
"""

import taichi as ti
import taichi.math as tm

# Type aliases for vectors using Taichi's math module
vec2 = tm.vec2
vec3 = tm.vec3


@ti.dataclass
class Ray:
    """A parametric ray r(t) = origin + t * direction.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Intersection code
            does not require unit length; shading normalizes where needed.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction inside a kernel."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The mirrored direction, pointing away from the surface.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def is_finite(v: vec3) -> ti.i32:
    """Return 1 when no component of v is NaN or infinite."""
    finite = 1
    for c in ti.static(range(3)):
        if tm.isnan(v[c]) or tm.isinf(v[c]):
            finite = 0
    return finite


# =============================================================================
# Hemisphere Sampling
# =============================================================================


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis around a unit normal.

    The helper vector is formed from the normal itself: the component with
    the largest magnitude is swapped with the next component and negated.
    That vector is never parallel to the normal, so the cross product below
    is always well defined.

    Args:
        normal: The surface normal (must be normalized).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    ax = ti.abs(normal.x)
    ay = ti.abs(normal.y)
    az = ti.abs(normal.z)

    helper = vec3(-normal.z, normal.y, normal.x)
    if ax >= ay and ax >= az:
        helper = vec3(normal.y, -normal.x, normal.z)
    elif ay >= az:
        helper = vec3(normal.x, normal.z, -normal.y)

    tangent = tm.normalize(tm.cross(normal, helper))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def random_cosine_direction() -> vec3:
    """Generate a random direction with cosine-weighted distribution.

    The distribution has PDF = cos(theta) / pi about the local z-axis.

    Returns:
        A random unit direction in the local coordinate frame (z-up).
    """
    r1 = ti.random(ti.f32)
    r2 = ti.random(ti.f32)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    x = ti.cos(phi) * sqrt_r2
    y = ti.sin(phi) * sqrt_r2
    z = ti.sqrt(ti.max(0.0, 1.0 - r2))
    return vec3(x, y, z)


@ti.func
def random_direction(normal: vec3) -> vec3:
    """Sample a cosine-weighted unit direction on the hemisphere about a normal.

    Args:
        normal: Unit normal defining the hemisphere.

    Returns:
        A unit direction d with dot(d, normal) >= 0.
    """
    local_dir = random_cosine_direction()
    tangent, bitangent, n = build_onb_from_normal(normal)
    world_dir = local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * n
    return tm.normalize(world_dir)
