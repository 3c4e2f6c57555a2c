"""Lambertian plus Phong-specular shading model.

For a surface point with unit normal n, unit direction to the eye e, unit
direction to the light l and incoming radiance L:

    shade = refl * L * max(0, n.l) + refl * ambient
          + spec_refl * L * max(0, r.e)^spec_exp       (spec_exp > 0 only)

where r = reflect(-l, n) and refl is the material's Lambertian reflectance
(constant or textured). SIMPLE materials skip lighting and return refl.

The model is affine in L, which the recursive shader relies on:

    shade_model(..., L, ...) = light_response(...) * L + ambient_term(...)

Indirect samples can optionally be divided by their cosine-weighted sampling
PDF (see IndirectWeighting).
"""

import enum

import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import reflect, vec2, vec3
from src.tracer.materials.material import (
    SHADER_SIMPLE,
    material_shader_types,
    material_spec_exponents,
    material_spec_reflectances,
    surface_reflectance,
)

# Lower bound on n.l when dividing by the cosine PDF
MIN_PDF_COSINE = 1e-3


class IndirectWeighting(enum.IntEnum):
    """How a one-sample indirect diffuse estimate is weighted.

    LEGACY: the sampled radiance goes through the shading model as if it
    were a point light, without dividing by the sampling PDF.
    COSINE_PDF: the Lambertian response is divided by the cosine-weighted
    PDF cos(theta)/pi, which gives refl * pi * L for the diffuse part.
    """

    LEGACY = 0
    COSINE_PDF = 1


WEIGHT_COSINE_PDF = int(IndirectWeighting.COSINE_PDF)


@ti.func
def _specular(slot: ti.i32, normal: vec3, eye: vec3, light_dir: vec3) -> vec3:
    spec = vec3(0.0, 0.0, 0.0)
    spec_exp = material_spec_exponents[slot]
    if spec_exp > 0.0:
        r = reflect(-light_dir, normal)
        spec = material_spec_reflectances[slot] * ti.pow(ti.max(0.0, tm.dot(r, eye)), spec_exp)
    return spec


@ti.func
def light_response(slot: ti.i32, normal: vec3, eye: vec3, light_dir: vec3, texcoord: vec2) -> vec3:
    """Coefficient of the incoming radiance in the shading model."""
    response = vec3(0.0, 0.0, 0.0)
    if material_shader_types[slot] != SHADER_SIMPLE:
        refl = surface_reflectance(slot, texcoord)
        response = refl * ti.max(0.0, tm.dot(normal, light_dir))
        response += _specular(slot, normal, eye, light_dir)
    return response


@ti.func
def indirect_response(
    slot: ti.i32,
    normal: vec3,
    eye: vec3,
    light_dir: vec3,
    texcoord: vec2,
    weighting: ti.i32,
) -> vec3:
    """light_response for a cosine-sampled indirect direction.

    With COSINE_PDF weighting the Lambertian part becomes refl * pi, the
    cosine cancelling against the PDF; the specular part is divided by the
    PDF as well.
    """
    response = light_response(slot, normal, eye, light_dir, texcoord)
    if weighting == WEIGHT_COSINE_PDF and material_shader_types[slot] != SHADER_SIMPLE:
        cos_theta = ti.max(tm.dot(normal, light_dir), MIN_PDF_COSINE)
        response = response * (tm.pi / cos_theta)
    return response


@ti.func
def ambient_term(slot: ti.i32, texcoord: vec2, ambient: vec3) -> vec3:
    """Constant part of the shading model (independent of the light)."""
    refl = surface_reflectance(slot, texcoord)
    result = refl
    if material_shader_types[slot] != SHADER_SIMPLE:
        result = refl * ambient
    return result


@ti.func
def shade_model(
    slot: ti.i32,
    normal: vec3,
    eye: vec3,
    light_dir: vec3,
    light_rad: vec3,
    texcoord: vec2,
    ambient: vec3,
) -> vec3:
    """Radiance leaving a surface toward the eye for one light.

    Args:
        slot: Material slot.
        normal: Unit surface normal (world space).
        eye: Unit direction from the point toward the eye.
        light_dir: Unit direction from the point toward the light.
        light_rad: Radiance arriving from the light.
        texcoord: Texture coordinates at the point.
        ambient: Ambient radiance.
    """
    return light_response(slot, normal, eye, light_dir, texcoord) * light_rad + ambient_term(
        slot, texcoord, ambient
    )
