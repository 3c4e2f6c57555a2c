"""Surface materials and the material table.

A Material describes how a surface is shaded: which shading model to use,
where its Lambertian reflectance comes from (a constant color or a texture),
its specular lobe, and whether it is a perfect mirror.

Materials are plain host dataclasses. Scene objects never share a material:
store_material() copies the material into a new table slot every time it is
called, so changing a Material after it has been assigned does not affect
objects that already use it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.materials.material import Material, ShaderType, store_material
    >>> red = Material(shader_type=ShaderType.PHONG, surface_reflectance=(0.63, 0.06, 0.04))
    >>> slot = store_material(red)
"""

import enum
from dataclasses import dataclass
from typing import Any

import taichi as ti

from src.tracer.core.ray import vec2, vec3
from src.tracer.materials.texture import get_texture_count, texture_lookup

Color = tuple[float, float, float]


class ShaderType(enum.IntEnum):
    """Shading model used for a surface.

    SIMPLE returns the surface reflectance without lighting. GOURAUD and
    PHONG evaluate the same Lambertian plus Phong-specular model.
    """

    SIMPLE = 0
    GOURAUD = 1
    PHONG = 2


class LambertianSource(enum.IntEnum):
    """Where the Lambertian reflectance of a surface comes from."""

    CONSTANT = 0
    TEXTURE = 1


# Plain integers for use inside Taichi funcs
SHADER_SIMPLE = int(ShaderType.SIMPLE)
SOURCE_TEXTURE = int(LambertianSource.TEXTURE)


def _validate_color(name: str, value: Color) -> Color:
    if len(value) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(value)}")
    for i, component in enumerate(value):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"{name} component {i} = {component} is outside [0, 1]")
    return (float(value[0]), float(value[1]), float(value[2]))


@dataclass
class Material:
    """Shading parameters for one surface.

    Attributes:
        shader_type: Shading model.
        lambertian_source: CONSTANT uses surface_reflectance, TEXTURE looks up
            texture_id at the hit's texture coordinates.
        surface_reflectance: Lambertian reflectance (RGB in [0, 1]).
        specular_exponent: Phong exponent; values <= 0 disable specular.
        specular_reflectance: Specular reflectance (RGB in [0, 1]).
        texture_id: Id in the texture pool, or -1 for none.
        mirror: Whether the surface also reflects like a perfect mirror.
        mirror_reflectance: Mirror reflectance (RGB in [0, 1]).

    Raises:
        ValueError: If a reflectance is outside [0, 1], or a TEXTURE source
            has no texture.
    """

    shader_type: ShaderType = ShaderType.GOURAUD
    lambertian_source: LambertianSource = LambertianSource.CONSTANT
    surface_reflectance: Color = (1.0, 1.0, 1.0)
    specular_exponent: float = -1.0
    specular_reflectance: Color = (1.0, 1.0, 1.0)
    texture_id: int = -1
    mirror: bool = False
    mirror_reflectance: Color = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        self.shader_type = ShaderType(self.shader_type)
        self.lambertian_source = LambertianSource(self.lambertian_source)
        self.surface_reflectance = _validate_color("surface_reflectance", self.surface_reflectance)
        self.specular_reflectance = _validate_color(
            "specular_reflectance", self.specular_reflectance
        )
        self.mirror_reflectance = _validate_color("mirror_reflectance", self.mirror_reflectance)
        self.specular_exponent = float(self.specular_exponent)
        self.texture_id = int(self.texture_id)
        if self.lambertian_source == LambertianSource.TEXTURE and self.texture_id < 0:
            raise ValueError("A TEXTURE lambertian source needs a texture_id")

    @property
    def has_specular(self) -> bool:
        """Whether the specular lobe is enabled."""
        return self.specular_exponent > 0.0

    def with_texture(self, texture_id: int) -> "Material":
        """Return a copy that takes its reflectance from a texture.

        A negative id returns a copy with a constant source.
        """
        data = self.to_dict()
        data["texture_id"] = texture_id
        data["lambertian_source"] = "TEXTURE" if texture_id >= 0 else "CONSTANT"
        return Material.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "shader_type": self.shader_type.name,
            "lambertian_source": self.lambertian_source.name,
            "surface_reflectance": list(self.surface_reflectance),
            "specular_exponent": self.specular_exponent,
            "specular_reflectance": list(self.specular_reflectance),
            "texture_id": self.texture_id,
            "mirror": self.mirror,
            "mirror_reflectance": list(self.mirror_reflectance),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Material":
        """Deserialize from a dict produced by to_dict().

        Missing keys take their default values.
        """
        kwargs = dict(data)
        if "shader_type" in kwargs:
            kwargs["shader_type"] = ShaderType[kwargs["shader_type"]]
        if "lambertian_source" in kwargs:
            kwargs["lambertian_source"] = LambertianSource[kwargs["lambertian_source"]]
        for key in ("surface_reflectance", "specular_reflectance", "mirror_reflectance"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        return cls(**kwargs)


# =============================================================================
# Material Table (Taichi fields)
# =============================================================================

# SceneManager stores one material slot per object
MAX_MATERIALS = 1024

material_shader_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_sources = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_reflectances = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_spec_exponents = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_spec_reflectances = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_texture_ids = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_mirrors = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_mirror_reflectances = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Remove all materials from the table."""
    num_materials[None] = 0


def store_material(material: Material) -> int:
    """Copy a material into a new table slot.

    Args:
        material: The material to copy.

    Returns:
        The slot index.

    Raises:
        ValueError: If the material names a texture that does not exist.
        RuntimeError: If the table is full.
    """
    if material.texture_id >= get_texture_count():
        raise ValueError(f"Unknown texture id {material.texture_id}")

    slot = int(num_materials[None])
    if slot >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    use_texture = (
        material.lambertian_source == LambertianSource.TEXTURE and material.texture_id >= 0
    )
    material_shader_types[slot] = int(material.shader_type)
    material_sources[slot] = int(material.lambertian_source)
    material_reflectances[slot] = vec3(*material.surface_reflectance)
    material_spec_exponents[slot] = material.specular_exponent
    material_spec_reflectances[slot] = vec3(*material.specular_reflectance)
    material_texture_ids[slot] = material.texture_id if use_texture else -1
    material_mirrors[slot] = 1 if material.mirror else 0
    material_mirror_reflectances[slot] = vec3(*material.mirror_reflectance)
    num_materials[None] = slot + 1
    return slot


def get_material_count() -> int:
    """Get the number of stored materials."""
    return int(num_materials[None])


@ti.func
def surface_reflectance(slot: ti.i32, texcoord: vec2) -> vec3:
    """Lambertian reflectance of a material at a texture coordinate."""
    refl = material_reflectances[slot]
    if material_sources[slot] == SOURCE_TEXTURE and material_texture_ids[slot] >= 0:
        refl = texture_lookup(material_texture_ids[slot], texcoord)
    return refl


@ti.func
def is_mirror(slot: ti.i32) -> ti.i32:
    return material_mirrors[slot]


@ti.func
def mirror_reflectance(slot: ti.i32) -> vec3:
    return material_mirror_reflectances[slot]
