"""Materials module: surface descriptions, textures and the shading model.

Components:
    material: Material dataclass, shader/source enums and the material table
    texture: Texture pool with nearest/bilinear lookup and repeat/clamp wrap
    phong: Lambertian + Phong-specular shading model (affine in the light)

Materials are described on the host and copied into Taichi fields with
store_material(). All shading computations are Taichi functions.

Note: importing this package allocates the material and texture fields, so
call ti.init() first.
"""

from .material import (
    LambertianSource,
    Material,
    ShaderType,
    clear_materials,
    get_material_count,
    is_mirror,
    mirror_reflectance,
    store_material,
    surface_reflectance,
)
from .phong import (
    IndirectWeighting,
    ambient_term,
    indirect_response,
    light_response,
    shade_model,
)
from .texture import (
    TextureFilter,
    TextureWrap,
    add_texture,
    clear_textures,
    get_texture_count,
    get_texture_size,
    load_texture,
    make_checker_texture,
    texture_lookup,
)

__all__ = [
    # Materials
    "Material",
    "ShaderType",
    "LambertianSource",
    "store_material",
    "clear_materials",
    "get_material_count",
    "surface_reflectance",
    "is_mirror",
    "mirror_reflectance",
    # Shading model
    "IndirectWeighting",
    "shade_model",
    "light_response",
    "indirect_response",
    "ambient_term",
    # Textures
    "TextureFilter",
    "TextureWrap",
    "add_texture",
    "load_texture",
    "make_checker_texture",
    "clear_textures",
    "get_texture_count",
    "get_texture_size",
    "texture_lookup",
]
