"""Unit tests for the SceneManager.

Tests cover:
- Transform helpers
- Texture, geometry and object registration
- Per-object material copies
- Lighting passthrough
- Scene serialization (to_config, from_config, to_dict, from_dict)
- Scene clearing
"""

import json
import math

import numpy as np
import pytest


@pytest.fixture
def fresh_scene():
    """Create a fresh SceneManager for each test."""
    from src.tracer.scene.manager import SceneManager

    scene = SceneManager()
    yield scene
    scene.clear()


class TestTransforms:
    """Tests for the elementary transform matrices."""

    def test_translate(self):
        from src.tracer.scene.manager import translate

        np.testing.assert_allclose(translate(1.0, 2.0, 3.0) @ [0.0, 0.0, 0.0, 1.0], [1.0, 2.0, 3.0, 1.0])

    def test_uniform_scale(self):
        from src.tracer.scene.manager import scale

        np.testing.assert_allclose(np.diag(scale(2.0)), [2.0, 2.0, 2.0, 1.0])
        np.testing.assert_allclose(np.diag(scale(1.0, 2.0, 3.0)), [1.0, 2.0, 3.0, 1.0])

    @pytest.mark.parametrize(
        "name, point, expected",
        [
            ("rotate_x", (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)),
            ("rotate_y", (0.0, 0.0, 1.0), (1.0, 0.0, 0.0)),
            ("rotate_z", (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)),
        ],
    )
    def test_quarter_turns_are_right_handed(self, name, point, expected):
        from src.tracer.scene import manager

        m = getattr(manager, name)(math.pi / 2.0)
        np.testing.assert_allclose((m @ [*point, 1.0])[:3], expected, atol=1e-12)

    def test_composition_order(self):
        """Rightmost transform applies first."""
        from src.tracer.scene.manager import scale, translate

        m = translate(0.0, 1.0, 0.0) @ scale(2.0)
        np.testing.assert_allclose(m @ [1.0, 0.0, 0.0, 1.0], [2.0, 1.0, 0.0, 1.0])


class TestRegistration:
    """Tests for adding textures, geometry and objects."""

    def test_geometry_ids(self, fresh_scene):
        assert fresh_scene.add_sphere_geometry() == 0
        assert fresh_scene.add_quad_geometry() == 1
        assert fresh_scene.add_octahedron_geometry() == 2
        assert fresh_scene.add_sphere_mesh_geometry(1) == 3
        assert fresh_scene.get_geometry_count() == 4
        assert [g.params["type"] for g in fresh_scene.geometries] == [
            "sphere",
            "quad",
            "octahedron",
            "sphere_mesh",
        ]

    def test_textures(self, fresh_scene):
        from src.tracer.materials.texture import get_texture_count

        assert fresh_scene.add_checker_texture(size=8, checks=2) == 0
        assert fresh_scene.add_texture(np.zeros((2, 2, 3))) == 1
        assert get_texture_count() == 2
        assert fresh_scene.textures[0].params["type"] == "checker"

    def test_add_object_defaults_to_identity(self, fresh_scene):
        from src.tracer.materials.material import Material
        from src.tracer.scene.intersection import get_object_transform

        sphere = fresh_scene.add_sphere_geometry()
        obj = fresh_scene.add_object(sphere, Material())

        assert obj == 0
        assert fresh_scene.get_object_count() == 1
        np.testing.assert_allclose(get_object_transform(obj), np.eye(4))

    def test_each_object_gets_its_own_material(self, fresh_scene):
        """Sharing a Material instance still yields separate slots and copies."""
        from src.tracer.materials.material import Material

        sphere = fresh_scene.add_sphere_geometry()
        material = Material(surface_reflectance=(0.5, 0.5, 0.5))
        fresh_scene.add_object(sphere, material)
        fresh_scene.add_object(sphere, material)

        first, second = fresh_scene.objects
        assert first.material_slot != second.material_slot
        assert first.material is not material
        assert second.material is not first.material
        assert first.material == material

    def test_material_table_holds_every_object(self, fresh_scene):
        """Per-object material copies run out no earlier than object slots."""
        from src.tracer.materials.material import MAX_MATERIALS, Material
        from src.tracer.scene.intersection import MAX_OBJECTS

        assert MAX_MATERIALS >= MAX_OBJECTS
        sphere = fresh_scene.add_sphere_geometry()
        for _ in range(MAX_OBJECTS):
            fresh_scene.add_object(sphere, Material())

        assert fresh_scene.get_object_count() == MAX_OBJECTS
        with pytest.raises(RuntimeError, match="Maximum number"):
            fresh_scene.add_object(sphere, Material())

    def test_textured_object(self, fresh_scene):
        from src.tracer.materials.material import LambertianSource, Material

        tex = fresh_scene.add_checker_texture(size=4, checks=2)
        quad = fresh_scene.add_quad_geometry()
        fresh_scene.add_object(quad, Material().with_texture(tex))

        assert fresh_scene.objects[0].material.lambertian_source == LambertianSource.TEXTURE

    def test_add_object_rejects_unknown_geometry(self, fresh_scene):
        from src.tracer.materials.material import Material

        with pytest.raises(ValueError, match="Unknown geometry"):
            fresh_scene.add_object(5, Material())

    def test_set_object_transform(self, fresh_scene):
        from src.tracer.materials.material import Material
        from src.tracer.scene.intersection import get_object_transform
        from src.tracer.scene.manager import translate

        sphere = fresh_scene.add_sphere_geometry()
        obj = fresh_scene.add_object(sphere, Material())
        fresh_scene.set_object_transform(obj, translate(0.0, 3.0, 0.0))

        np.testing.assert_allclose(fresh_scene.objects[obj].transform, translate(0.0, 3.0, 0.0))
        np.testing.assert_allclose(get_object_transform(obj), translate(0.0, 3.0, 0.0), atol=1e-6)

    def test_lighting(self, fresh_scene):
        fresh_scene.set_light((0.0, 4.5, 0.0), (1.0, 1.0, 1.0))
        fresh_scene.set_ambient((0.0, 0.0, 0.0))

        info = fresh_scene.get_light_info()
        assert info["position"] == (0.0, 4.5, 0.0)
        assert info["ambient"] == (0.0, 0.0, 0.0)


class TestSceneClear:
    """Tests for clearing the scene."""

    def test_clear_empties_everything(self, fresh_scene):
        from src.tracer.materials.material import Material, get_material_count
        from src.tracer.materials.texture import get_texture_count
        from src.tracer.scene.shading import DEFAULT_LIGHT_RADIANCE

        fresh_scene.add_checker_texture(size=4)
        sphere = fresh_scene.add_sphere_geometry()
        fresh_scene.add_object(sphere, Material())
        fresh_scene.set_light((1.0, 1.0, 1.0), (2.0, 2.0, 2.0))

        fresh_scene.clear()

        assert fresh_scene.get_object_count() == 0
        assert fresh_scene.get_geometry_count() == 0
        assert get_material_count() == 0
        assert get_texture_count() == 0
        assert fresh_scene.objects == []
        np.testing.assert_allclose(fresh_scene.get_light_info()["radiance"], DEFAULT_LIGHT_RADIANCE)

    def test_new_manager_clears_previous_scene(self, fresh_scene):
        from src.tracer.materials.material import Material
        from src.tracer.scene.manager import SceneManager

        sphere = fresh_scene.add_sphere_geometry()
        fresh_scene.add_object(sphere, Material())

        other = SceneManager()
        assert other.get_object_count() == 0
        assert other.add_sphere_geometry() == 0


class TestSerialization:
    """Tests for scene serialization."""

    def _build(self, scene):
        from src.tracer.geometry.tessellate import make_octahedron
        from src.tracer.materials.material import Material, ShaderType
        from src.tracer.scene.manager import rotate_y, scale, translate

        tex = scene.add_checker_texture(size=8, checks=4)
        sphere = scene.add_sphere_geometry()
        quad = scene.add_quad_geometry()
        mesh = scene.add_mesh_geometry(make_octahedron())
        scene.add_object(quad, Material(shader_type=ShaderType.PHONG).with_texture(tex), scale(5.0, 1.0, 5.0))
        scene.add_object(sphere, Material(mirror=True), translate(-1.0, 1.0, 0.0))
        scene.add_object(mesh, Material(specular_exponent=8.0), translate(1.0, 1.0, 0.0) @ rotate_y(0.5))
        scene.set_light((0.0, 4.5, 0.0), (1.0, 0.9, 0.8))
        scene.set_ambient((0.0, 0.0, 0.0))

    def test_to_config(self, fresh_scene):
        self._build(fresh_scene)
        config = fresh_scene.to_config()

        assert len(config.textures) == 1
        assert [g["type"] for g in config.geometries] == ["sphere", "quad", "mesh"]
        assert len(config.objects) == 3
        assert config.objects[1]["material"]["mirror"] is True
        assert config.light["position"] == [0.0, 4.5, 0.0]

    def test_dict_is_json_serializable(self, fresh_scene):
        self._build(fresh_scene)
        text = json.dumps(fresh_scene.to_dict())
        assert "checker" in text

    def test_round_trip_rebuilds_scene(self, fresh_scene):
        from src.tracer.scene.intersection import get_object_transform

        self._build(fresh_scene)
        data = json.loads(json.dumps(fresh_scene.to_dict()))
        before = [get_object_transform(i) for i in range(3)]

        fresh_scene.clear()
        fresh_scene.from_dict(data)

        assert fresh_scene.get_object_count() == 3
        assert fresh_scene.get_geometry_count() == 3
        assert len(fresh_scene.textures) == 1
        assert fresh_scene.objects[1].material.mirror
        for i in range(3):
            np.testing.assert_allclose(get_object_transform(i), before[i], atol=1e-6)
        info = fresh_scene.get_light_info()
        np.testing.assert_allclose(info["radiance"], (1.0, 0.9, 0.8), atol=1e-6)
        assert info["ambient"] == (0.0, 0.0, 0.0)

    def test_unknown_geometry_type(self, fresh_scene):
        from src.tracer.scene.manager import SceneConfig

        with pytest.raises(ValueError, match="Unknown geometry type"):
            fresh_scene.from_config(SceneConfig(geometries=[{"type": "torus"}]))

    def test_unknown_texture_type(self, fresh_scene):
        from src.tracer.scene.manager import SceneConfig

        with pytest.raises(ValueError, match="Unknown texture type"):
            fresh_scene.from_config(SceneConfig(textures=[{"type": "noise"}]))
