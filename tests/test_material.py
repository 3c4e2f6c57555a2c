"""Tests for materials, the material table and the shading model."""

import math

import numpy as np
import pytest
import taichi as ti


def _shade(slot, normal, eye, light_dir, light_rad=(1.0, 1.0, 1.0), texcoord=(0.0, 0.0), ambient=(0.0, 0.0, 0.0)):
    from src.tracer.materials.phong import shade_model

    result = ti.field(dtype=ti.math.vec3, shape=())

    @ti.kernel
    def test_kernel(
        slot: ti.i32,
        n: ti.math.vec3,
        e: ti.math.vec3,
        l: ti.math.vec3,
        rad: ti.math.vec3,
        tc: ti.math.vec2,
        amb: ti.math.vec3,
    ):
        result[None] = shade_model(slot, n.normalized(), e.normalized(), l.normalized(), rad, tc, amb)

    test_kernel(
        slot,
        ti.math.vec3(*normal),
        ti.math.vec3(*eye),
        ti.math.vec3(*light_dir),
        ti.math.vec3(*light_rad),
        ti.math.vec2(*texcoord),
        ti.math.vec3(*ambient),
    )
    return result[None].to_numpy()


class TestMaterial:
    """Tests for the host-side Material dataclass."""

    def test_defaults(self):
        from src.tracer.materials.material import LambertianSource, Material, ShaderType

        m = Material()
        assert m.shader_type == ShaderType.GOURAUD
        assert m.lambertian_source == LambertianSource.CONSTANT
        assert m.surface_reflectance == (1.0, 1.0, 1.0)
        assert m.specular_exponent == -1.0
        assert not m.has_specular
        assert not m.mirror
        assert m.mirror_reflectance == (1.0, 1.0, 1.0)

    def test_rejects_reflectance_out_of_range(self):
        from src.tracer.materials.material import Material

        with pytest.raises(ValueError, match="surface_reflectance"):
            Material(surface_reflectance=(1.5, 0.0, 0.0))
        with pytest.raises(ValueError, match="mirror_reflectance"):
            Material(mirror_reflectance=(0.0, -0.1, 0.0))

    def test_texture_source_needs_texture(self):
        from src.tracer.materials.material import LambertianSource, Material

        with pytest.raises(ValueError, match="texture_id"):
            Material(lambertian_source=LambertianSource.TEXTURE)

    def test_with_texture(self):
        from src.tracer.materials.material import LambertianSource, Material

        m = Material(surface_reflectance=(0.5, 0.5, 0.5)).with_texture(2)
        assert m.lambertian_source == LambertianSource.TEXTURE
        assert m.texture_id == 2
        assert m.with_texture(-1).lambertian_source == LambertianSource.CONSTANT

    def test_dict_round_trip(self):
        from src.tracer.materials.material import Material, ShaderType

        m = Material(
            shader_type=ShaderType.PHONG,
            surface_reflectance=(0.2, 0.3, 0.4),
            specular_exponent=16.0,
            mirror=True,
        )
        data = m.to_dict()
        assert data["shader_type"] == "PHONG"
        assert Material.from_dict(data) == m


class TestMaterialTable:
    """Tests for storing materials in Taichi fields."""

    def test_store_returns_sequential_slots(self):
        from src.tracer.materials.material import Material, get_material_count, store_material

        assert store_material(Material()) == 0
        assert store_material(Material()) == 1
        assert get_material_count() == 2

    def test_store_rejects_unknown_texture(self):
        from src.tracer.materials.material import Material, store_material

        with pytest.raises(ValueError, match="Unknown texture"):
            store_material(Material().with_texture(0))

    def test_table_capacity(self):
        from src.tracer.materials.material import MAX_MATERIALS, Material, store_material

        for _ in range(MAX_MATERIALS):
            store_material(Material())
        with pytest.raises(RuntimeError, match="Maximum number of materials"):
            store_material(Material())


class TestShadingModel:
    """Tests for the Lambertian plus Phong shading model."""

    def test_simple_returns_reflectance(self):
        from src.tracer.materials.material import Material, ShaderType, store_material

        slot = store_material(Material(shader_type=ShaderType.SIMPLE, surface_reflectance=(0.2, 0.4, 0.6)))
        result = _shade(slot, (0, 1, 0), (0, 1, 0), (0, -1, 0), light_rad=(5.0, 5.0, 5.0))
        np.testing.assert_allclose(result, [0.2, 0.4, 0.6], atol=1e-6)

    def test_lambertian_cosine(self):
        from src.tracer.materials.material import Material, ShaderType, store_material

        slot = store_material(Material(shader_type=ShaderType.PHONG, surface_reflectance=(0.5, 0.5, 0.5)))
        result = _shade(slot, (0, 1, 0), (0, 1, 0), (1, 1, 0), light_rad=(2.0, 2.0, 2.0))
        expected = 0.5 * 2.0 * math.cos(math.pi / 4.0)
        np.testing.assert_allclose(result, [expected] * 3, atol=1e-5)

    def test_light_below_surface(self):
        """Only the ambient term remains when the light is behind the surface."""
        from src.tracer.materials.material import Material, ShaderType, store_material

        slot = store_material(Material(shader_type=ShaderType.GOURAUD, surface_reflectance=(0.5, 0.5, 0.5)))
        result = _shade(slot, (0, 1, 0), (0, 1, 0), (0, -1, 0), ambient=(0.2, 0.2, 0.2))
        np.testing.assert_allclose(result, [0.1, 0.1, 0.1], atol=1e-6)

    def test_specular_highlight(self):
        """The highlight peaks when the eye sits on the reflected light ray."""
        from src.tracer.materials.material import Material, ShaderType, store_material

        slot = store_material(
            Material(
                shader_type=ShaderType.PHONG,
                surface_reflectance=(0.0, 0.0, 0.0),
                specular_exponent=10.0,
                specular_reflectance=(0.5, 0.5, 0.5),
            )
        )
        peak = _shade(slot, (0, 1, 0), (-1, 1, 0), (1, 1, 0))
        off = _shade(slot, (0, 1, 0), (1, 1, 0), (1, 1, 0))
        np.testing.assert_allclose(peak, [0.5, 0.5, 0.5], atol=1e-5)
        np.testing.assert_allclose(off, [0.0, 0.0, 0.0], atol=1e-5)

    def test_textured_reflectance(self):
        from src.tracer.materials.material import Material, ShaderType, store_material
        from src.tracer.materials.texture import add_texture

        tex_id = add_texture(np.full((2, 2, 3), 0.25))
        slot = store_material(Material(shader_type=ShaderType.SIMPLE).with_texture(tex_id))
        result = _shade(slot, (0, 1, 0), (0, 1, 0), (0, 1, 0))
        np.testing.assert_allclose(result, [0.25, 0.25, 0.25], atol=1e-6)

    def test_cosine_pdf_weighting(self):
        """COSINE_PDF turns the diffuse response into refl * pi."""
        from src.tracer.materials.material import Material, ShaderType, store_material
        from src.tracer.materials.phong import IndirectWeighting, indirect_response

        slot = store_material(Material(shader_type=ShaderType.PHONG, surface_reflectance=(0.5, 0.5, 0.5)))
        result = ti.field(dtype=ti.math.vec3, shape=2)
        legacy = int(IndirectWeighting.LEGACY)
        cosine_pdf = int(IndirectWeighting.COSINE_PDF)

        @ti.kernel
        def test_kernel(slot: ti.i32):
            n = ti.math.vec3(0.0, 1.0, 0.0)
            l = ti.math.normalize(ti.math.vec3(1.0, 1.0, 0.0))
            tc = ti.math.vec2(0.0, 0.0)
            result[0] = indirect_response(slot, n, n, l, tc, legacy)
            result[1] = indirect_response(slot, n, n, l, tc, cosine_pdf)

        test_kernel(slot)
        np.testing.assert_allclose(result[0].to_numpy(), [0.5 * math.cos(math.pi / 4.0)] * 3, atol=1e-5)
        np.testing.assert_allclose(result[1].to_numpy(), [0.5 * math.pi] * 3, atol=1e-4)
