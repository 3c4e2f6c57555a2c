"""Tests for lighting state and recursive shading."""

import math

import numpy as np
import pytest


def _floor_scene(surface=(0.5, 0.5, 0.5), mirror=False):
    """A 10x10 floor at y=0 lit from (0, 4, 0) with no ambient light."""
    from src.tracer.materials.material import Material, ShaderType
    from src.tracer.scene.manager import SceneManager, scale

    scene = SceneManager()
    quad = scene.add_quad_geometry()
    scene.add_object(
        quad,
        Material(shader_type=ShaderType.PHONG, surface_reflectance=surface, mirror=mirror),
        scale(5.0, 1.0, 5.0),
    )
    scene.set_light((0.0, 4.0, 0.0), (1.0, 1.0, 1.0))
    scene.set_ambient((0.0, 0.0, 0.0))
    return scene


# Camera ray hitting the floor at the origin at 45 degrees
EYE = (0.0, 2.0, 2.0)
DOWN = (0.0, -1.0, -1.0)


class TestLighting:
    """Tests for light and ambient state."""

    def test_defaults(self):
        from src.tracer.scene.shading import (
            DEFAULT_AMBIENT,
            DEFAULT_LIGHT_POSITION,
            DEFAULT_LIGHT_RADIANCE,
            get_light_info,
        )

        info = get_light_info()
        np.testing.assert_allclose(info["position"], DEFAULT_LIGHT_POSITION)
        np.testing.assert_allclose(info["radiance"], DEFAULT_LIGHT_RADIANCE)
        np.testing.assert_allclose(info["ambient"], DEFAULT_AMBIENT)

    def test_set_light(self):
        from src.tracer.scene.shading import get_light_info, set_ambient, set_light

        set_light((1.0, 2.0, 3.0), (0.5, 0.25, 2.0))
        set_ambient((0.1, 0.1, 0.1))
        info = get_light_info()

        np.testing.assert_allclose(info["position"], (1.0, 2.0, 3.0))
        np.testing.assert_allclose(info["radiance"], (0.5, 0.25, 2.0))
        np.testing.assert_allclose(info["ambient"], (0.1, 0.1, 0.1), atol=1e-7)

    def test_rejects_negative_radiance(self):
        from src.tracer.scene.shading import set_ambient, set_light

        with pytest.raises(ValueError):
            set_light((0.0, 0.0, 0.0), (-1.0, 0.0, 0.0))
        with pytest.raises(ValueError):
            set_ambient((0.0, -0.5, 0.0))

    @pytest.mark.parametrize("depth", [-1, 9])
    def test_rejects_bad_depth(self, depth):
        from src.tracer.scene.shading import trace_single_ray

        with pytest.raises(ValueError, match="Ray depth"):
            trace_single_ray(EYE, DOWN, depth=depth)


class TestDirectShading:
    """Tests for depth-0 shading."""

    def test_miss_is_black(self):
        from src.tracer.scene.shading import trace_single_ray

        _floor_scene()
        assert trace_single_ray(EYE, (0.0, 1.0, 0.0)) == (0.0, 0.0, 0.0)

    def test_depth_zero_equals_direct_term(self):
        """Light straight above: refl * L * n.l = 0.5."""
        from src.tracer.scene.shading import trace_single_ray

        _floor_scene()
        np.testing.assert_allclose(trace_single_ray(EYE, DOWN, depth=0), [0.5, 0.5, 0.5], atol=1e-4)

    def test_ambient_added_when_lit(self):
        from src.tracer.scene.shading import trace_single_ray

        scene = _floor_scene()
        scene.set_ambient((0.2, 0.2, 0.2))
        np.testing.assert_allclose(trace_single_ray(EYE, DOWN, depth=0), [0.6, 0.6, 0.6], atol=1e-4)

    def test_occluded_point_is_black(self):
        """A blocker between the point and the light zeroes the direct term."""
        from src.tracer.materials.material import Material
        from src.tracer.scene.manager import scale, translate
        from src.tracer.scene.shading import trace_single_ray

        scene = _floor_scene()
        scene.set_ambient((0.2, 0.2, 0.2))
        blocker = scene.add_sphere_geometry()
        scene.add_object(blocker, Material(), translate(0.0, 2.0, 0.0) @ scale(0.5))

        np.testing.assert_allclose(trace_single_ray(EYE, DOWN, depth=0), [0.0, 0.0, 0.0], atol=1e-6)

    def test_simple_material_ignores_light_strength(self):
        from src.tracer.materials.material import Material, ShaderType
        from src.tracer.scene.manager import SceneManager, scale
        from src.tracer.scene.shading import trace_single_ray

        scene = SceneManager()
        quad = scene.add_quad_geometry()
        scene.add_object(
            quad,
            Material(shader_type=ShaderType.SIMPLE, surface_reflectance=(0.2, 0.4, 0.6)),
            scale(5.0, 1.0, 5.0),
        )
        scene.set_light((0.0, 4.0, 0.0), (3.0, 3.0, 3.0))

        np.testing.assert_allclose(trace_single_ray(EYE, DOWN), [0.2, 0.4, 0.6], atol=1e-5)


class TestRecursiveShading:
    """Tests for mirror and indirect recursion."""

    def _mirror_scene(self):
        from src.tracer.materials.material import Material, ShaderType
        from src.tracer.scene.manager import translate

        scene = _floor_scene(surface=(0.0, 0.0, 0.0), mirror=True)
        sphere = scene.add_sphere_geometry()
        # Sits on the mirrored camera ray
        scene.add_object(
            sphere,
            Material(shader_type=ShaderType.SIMPLE, surface_reflectance=(0.2, 0.4, 0.6)),
            translate(0.0, 3.0, -3.0),
        )
        return scene

    def test_mirror_needs_depth(self):
        from src.tracer.scene.shading import trace_single_ray

        self._mirror_scene()
        np.testing.assert_allclose(trace_single_ray(EYE, DOWN, depth=0), [0.0, 0.0, 0.0], atol=1e-6)

    def test_mirror_reflects_object(self):
        from src.tracer.scene.shading import trace_single_ray

        self._mirror_scene()
        np.testing.assert_allclose(trace_single_ray(EYE, DOWN, depth=1), [0.2, 0.4, 0.6], atol=1e-4)

    def test_depth_adds_non_negative_indirect_light(self):
        """Indirect bounces off a ceiling facing the floor only add light."""
        from src.tracer.materials.material import Material, ShaderType
        from src.tracer.scene.manager import rotate_x, scale, translate
        from src.tracer.scene.shading import trace_single_ray

        scene = _floor_scene()
        quad = scene.add_quad_geometry()
        scene.add_object(
            quad,
            Material(shader_type=ShaderType.PHONG, surface_reflectance=(0.8, 0.8, 0.8)),
            translate(0.0, 5.0, 0.0) @ rotate_x(math.pi) @ scale(5.0, 1.0, 5.0),
        )

        direct = np.array(trace_single_ray(EYE, DOWN, depth=0))
        samples = np.array([trace_single_ray(EYE, DOWN, depth=2) for _ in range(16)])

        assert np.all(samples >= direct - 1e-4)
        assert np.all(np.isfinite(samples))
        assert samples.mean() > direct.mean()
