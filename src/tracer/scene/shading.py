"""Point light, ambient light and recursive ray shading.

The radiance leaving a hit point toward the ray origin is the sum of:

1. Direct light: the shading model evaluated with the point light, if a
   shadow ray toward the light reaches it unblocked (0 otherwise).
2. Mirror reflection (mirror materials only, depth > 0): the reflected ray's
   radiance, scaled by the mirror reflectance.
3. Indirect diffuse (depth > 0): one cosine-weighted random ray whose
   radiance is fed through the shading model as if it were a light.

Secondary rays that miss contribute nothing.

Taichi functions cannot recurse, so the recursion is unrolled into an
explicit depth-first stack per lane (one lane per pixel of a row). This is
exact because the shading model is affine in the incoming radiance:

    shade_model(l, L) = A(l) * L + B

so a child ray's radiance can be accumulated with a throughput weight (the
product of the A terms along its path) instead of being returned to its
parent. Each indirect child also adds its parent's constant term B.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.scene.shading import set_light, trace_single_ray
    >>> set_light((0.0, 4.5, 0.0), (1.0, 1.0, 1.0))
    >>> color = trace_single_ray((0.0, 2.0, 3.0), (0.0, -0.5, -1.0), depth=2)
"""

import logging

import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import random_direction, reflect, vec2, vec3
from src.tracer.geometry.hit import HitRecord
from src.tracer.materials.material import is_mirror, mirror_reflectance
from src.tracer.materials.phong import (
    IndirectWeighting,
    ambient_term,
    indirect_response,
    shade_model,
)
from src.tracer.scene.intersection import (
    intersect_scene,
    intersect_scene_any,
    object_hit_properties,
    object_material,
)

logger = logging.getLogger(__name__)

# Offset applied to secondary ray t_min to avoid self-intersection
SHADOW_EPSILON = 0.001

# Upper t bound for unbounded secondary rays
T_MAX = 1e10

# Deepest recursion the shading stack can hold
MAX_RAY_DEPTH = 8

# Each shaded node pushes at most two children, so depth d needs d + 1 slots
STACK_SIZE = MAX_RAY_DEPTH + 2

# One lane per pixel of a row
MAX_LANES = 2048

DEFAULT_LIGHT_POSITION = (0.0, 0.0, 0.0)
DEFAULT_LIGHT_RADIANCE = (0.6, 0.6, 0.6)
DEFAULT_AMBIENT = (0.025, 0.025, 0.025)

# =============================================================================
# Lighting Configuration
# =============================================================================

light_position = ti.Vector.field(3, dtype=ti.f32, shape=())
light_radiance = ti.Vector.field(3, dtype=ti.f32, shape=())
ambient_radiance = ti.Vector.field(3, dtype=ti.f32, shape=())
indirect_weighting = ti.field(dtype=ti.i32, shape=())


def set_light(
    position: tuple[float, float, float],
    radiance: tuple[float, float, float],
) -> None:
    """Place the point light.

    Args:
        position: World-space light position.
        radiance: Radiance emitted by the light (RGB, non-negative).

    Raises:
        ValueError: If a radiance component is negative.
    """
    if any(c < 0.0 for c in radiance):
        raise ValueError(f"Light radiance must be non-negative, got {radiance}")
    light_position[None] = vec3(position[0], position[1], position[2])
    light_radiance[None] = vec3(radiance[0], radiance[1], radiance[2])


def set_ambient(radiance: tuple[float, float, float]) -> None:
    """Set the ambient radiance.

    Raises:
        ValueError: If a component is negative.
    """
    if any(c < 0.0 for c in radiance):
        raise ValueError(f"Ambient radiance must be non-negative, got {radiance}")
    ambient_radiance[None] = vec3(radiance[0], radiance[1], radiance[2])


def set_indirect_weighting(weighting: IndirectWeighting) -> None:
    """Choose how indirect diffuse samples are weighted."""
    indirect_weighting[None] = int(IndirectWeighting(weighting))


def reset_lighting() -> None:
    """Restore the default light, ambient and indirect weighting."""
    set_light(DEFAULT_LIGHT_POSITION, DEFAULT_LIGHT_RADIANCE)
    set_ambient(DEFAULT_AMBIENT)
    set_indirect_weighting(IndirectWeighting.LEGACY)


def _as_tuple(field: ti.Field) -> tuple[float, float, float]:
    value = field[None]
    return float(value[0]), float(value[1]), float(value[2])


def get_light_info() -> dict[str, tuple[float, ...]]:
    """Get the current lighting configuration.

    Returns:
        Dict with "position", "radiance" and "ambient" tuples.
    """
    return {
        "position": _as_tuple(light_position),
        "radiance": _as_tuple(light_radiance),
        "ambient": _as_tuple(ambient_radiance),
    }


def check_ray_depth(depth: int) -> int:
    """Validate a recursion depth for shade_ray.

    Raises:
        ValueError: If depth is negative or above MAX_RAY_DEPTH.
    """
    if depth < 0 or depth > MAX_RAY_DEPTH:
        raise ValueError(f"Ray depth must be in [0, {MAX_RAY_DEPTH}], got {depth}")
    return int(depth)


# =============================================================================
# Shading Stack (Taichi fields)
# =============================================================================

stack_origins = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_LANES, STACK_SIZE))
stack_directions = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_LANES, STACK_SIZE))
stack_hits = HitRecord.field(shape=(MAX_LANES, STACK_SIZE))
stack_depths = ti.field(dtype=ti.i32, shape=(MAX_LANES, STACK_SIZE))
stack_weights = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_LANES, STACK_SIZE))


@ti.func
def _push(
    lane: ti.i32,
    sp: ti.i32,
    origin: vec3,
    direction: vec3,
    hit: HitRecord,
    depth: ti.i32,
    weight: vec3,
) -> ti.i32:
    """Push a shading task; returns the new stack size."""
    new_sp = sp
    if sp < STACK_SIZE:
        stack_origins[lane, sp] = origin
        stack_directions[lane, sp] = direction
        stack_hits[lane, sp] = hit
        stack_depths[lane, sp] = depth
        stack_weights[lane, sp] = weight
        new_sp = sp + 1
    return new_sp


@ti.func
def _direct_light(slot: ti.i32, point: vec3, normal: vec3, eye: vec3, texcoord: vec2) -> vec3:
    """Shading model with the point light, or 0 if the light is blocked."""
    color = vec3(0.0, 0.0, 0.0)
    to_light = light_position[None] - point
    dist = tm.length(to_light)
    if dist > SHADOW_EPSILON:
        light_dir = to_light / dist
        if intersect_scene_any(point, light_dir, SHADOW_EPSILON, dist) == 0:
            color = shade_model(
                slot, normal, eye, light_dir, light_radiance[None], texcoord, ambient_radiance[None]
            )
    return color


@ti.func
def shade_ray(origin: vec3, direction: vec3, hit: HitRecord, depth: ti.i32, lane: ti.i32) -> vec3:
    """Radiance arriving at origin along direction from the surface in hit.

    Args:
        origin: World-space ray origin.
        direction: World-space ray direction.
        hit: Nearest hit of the ray (must have hit == 1).
        depth: Remaining recursion depth (0 = direct light only).
        lane: Stack lane of the caller; lanes used concurrently must differ.

    Returns:
        The shaded radiance.
    """
    color = vec3(0.0, 0.0, 0.0)
    sp = _push(lane, 0, origin, direction, hit, depth, vec3(1.0, 1.0, 1.0))

    while sp > 0:
        sp -= 1
        d = stack_directions[lane, sp]
        rec = stack_hits[lane, sp]
        level = stack_depths[lane, sp]
        weight = stack_weights[lane, sp]
        point = stack_origins[lane, sp] + rec.t * d

        props = object_hit_properties(rec)
        normal = props.normal
        texcoord = props.texcoord
        slot = object_material(rec.object_id)
        eye = tm.normalize(-d)

        color += weight * _direct_light(slot, point, normal, eye, texcoord)

        if level > 0:
            if is_mirror(slot) == 1:
                mirror_dir = tm.normalize(reflect(d, normal))
                mirror_hit = intersect_scene(point, mirror_dir, SHADOW_EPSILON, T_MAX)
                if mirror_hit.hit == 1:
                    sp = _push(
                        lane,
                        sp,
                        point,
                        mirror_dir,
                        mirror_hit,
                        level - 1,
                        weight * mirror_reflectance(slot),
                    )

            indirect_dir = random_direction(normal)
            indirect_hit = intersect_scene(point, indirect_dir, SHADOW_EPSILON, T_MAX)
            if indirect_hit.hit == 1:
                color += weight * ambient_term(slot, texcoord, ambient_radiance[None])
                response = indirect_response(
                    slot, normal, eye, indirect_dir, texcoord, indirect_weighting[None]
                )
                sp = _push(lane, sp, point, indirect_dir, indirect_hit, level - 1, weight * response)

    return color


# =============================================================================
# Single-ray Tracing (host helper)
# =============================================================================

_single_result = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _trace_single(origin: vec3, direction: vec3, depth: ti.i32, t_min: ti.f32, t_max: ti.f32):
    rec = intersect_scene(origin, direction, t_min, t_max)
    color = vec3(0.0, 0.0, 0.0)
    if rec.hit == 1:
        color = shade_ray(origin, direction, rec, depth, 0)
    _single_result[None] = color


def trace_single_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int = 0,
    t_min: float = 0.0,
    t_max: float = T_MAX,
) -> tuple[float, float, float]:
    """Trace and shade one world-space ray from the host.

    Args:
        origin: Ray origin.
        direction: Ray direction.
        depth: Recursion depth.
        t_min: Minimum accepted t for the primary hit.
        t_max: Maximum accepted t for the primary hit.

    Returns:
        The shaded RGB radiance, or black if the ray misses.

    Raises:
        ValueError: If depth is outside [0, MAX_RAY_DEPTH].
    """
    check_ray_depth(depth)
    _trace_single(vec3(*origin), vec3(*direction), depth, t_min, t_max)
    result = _single_result[None]
    return float(result[0]), float(result[1]), float(result[2])
