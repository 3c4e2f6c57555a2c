"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and cosine-weighted sampling
    integrator: Accumulation buffer and the row-tracing kernel
    progressive: Time-budgeted progressive renderer (state machine)

Rendering proceeds one image row at a time. Each row step casts one
(optionally jittered) camera ray per pixel, shades it recursively, and folds
the sample into a per-pixel running mean. The progressive renderer runs as
many rows as fit in a wall-clock budget and then returns control to the
host loop.
"""

from .ray import (
    Ray,
    build_onb_from_normal,
    is_finite,
    make_ray,
    random_cosine_direction,
    random_direction,
    ray_at,
    reflect,
    vec2,
    vec3,
)

# Note: integrator and progressive are NOT imported here because they
# allocate Taichi fields at import time.
#
# For progressive rendering, use:
#   from src.tracer.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec2",
    "vec3",
    "reflect",
    "is_finite",
    "build_onb_from_normal",
    "random_cosine_direction",
    "random_direction",
]
