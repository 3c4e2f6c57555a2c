"""Tests for the object table and scene-level intersection queries."""

import math

import numpy as np
import pytest
import taichi as ti


def _intersect(origin, direction, t_min=0.001, t_max=1000.0):
    from src.tracer.scene.intersection import intersect_scene, object_hit_properties

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    object_id = ti.field(dtype=ti.i32, shape=())
    normal = ti.field(dtype=ti.math.vec3, shape=())

    @ti.kernel
    def test_kernel(o: ti.math.vec3, d: ti.math.vec3, t_min: ti.f32, t_max: ti.f32):
        rec = intersect_scene(o, d, t_min, t_max)
        hit[None] = rec.hit
        t_val[None] = rec.t
        object_id[None] = rec.object_id
        if rec.hit == 1:
            normal[None] = object_hit_properties(rec).normal

    test_kernel(ti.math.vec3(*origin), ti.math.vec3(*direction), t_min, t_max)
    return hit[None], t_val[None], object_id[None], normal[None].to_numpy()


def _blocked(origin, direction, t_min=0.001, t_max=1000.0):
    from src.tracer.scene.intersection import intersect_scene_any

    result = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(o: ti.math.vec3, d: ti.math.vec3, t_min: ti.f32, t_max: ti.f32):
        result[None] = intersect_scene_any(o, d, t_min, t_max)

    test_kernel(ti.math.vec3(*origin), ti.math.vec3(*direction), t_min, t_max)
    return result[None]


def _add(geometry, matrix):
    from src.tracer.materials.material import Material, store_material
    from src.tracer.scene.intersection import add_object

    return add_object(geometry, store_material(Material()), matrix)


class TestObjectTable:
    """Tests for adding and moving objects."""

    def test_add_object_ids(self):
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.intersection import get_object_count

        sphere = add_sphere_geometry()
        assert _add(sphere, np.eye(4)) == 0
        assert _add(sphere, np.eye(4)) == 1
        assert get_object_count() == 2

    def test_rejects_unknown_geometry(self):
        from src.tracer.materials.material import Material, store_material
        from src.tracer.scene.intersection import add_object

        slot = store_material(Material())
        with pytest.raises(ValueError, match="Unknown geometry"):
            add_object(0, slot, np.eye(4))

    def test_rejects_unknown_material(self):
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.intersection import add_object

        sphere = add_sphere_geometry()
        with pytest.raises(ValueError, match="Unknown material"):
            add_object(sphere, 0, np.eye(4))

    @pytest.mark.parametrize(
        "matrix, message",
        [
            (np.eye(3), "4x4"),
            (np.diag([1.0, 0.0, 1.0, 1.0]), "singular"),
            (np.full((4, 4), np.nan), "non-finite"),
        ],
    )
    def test_rejects_bad_matrix(self, matrix, message):
        from src.tracer.geometry.pool import add_sphere_geometry

        sphere = add_sphere_geometry()
        with pytest.raises(ValueError, match=message):
            _add(sphere, matrix)

    def test_transform_storage_round_trip(self):
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.intersection import get_object_transform, set_object_transform
        from src.tracer.scene.manager import rotate_y, scale, translate

        sphere = add_sphere_geometry()
        matrix = translate(1.0, 2.0, 3.0) @ rotate_y(0.3) @ scale(2.0, 0.5, 1.0)
        obj = _add(sphere, matrix)
        np.testing.assert_allclose(get_object_transform(obj), matrix, atol=1e-6)

        moved = translate(-1.0, 0.0, 0.0)
        set_object_transform(obj, moved)
        np.testing.assert_allclose(get_object_transform(obj), moved, atol=1e-6)

    def test_set_transform_unknown_object(self):
        from src.tracer.scene.intersection import set_object_transform

        with pytest.raises(ValueError, match="Unknown object"):
            set_object_transform(0, np.eye(4))


class TestSceneIntersection:
    """Tests for world-space nearest-hit and any-hit queries."""

    def test_empty_scene_misses(self):
        hit, _, object_id, _ = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert hit == 0
        assert object_id == -1

    def test_identity_sphere(self):
        from src.tracer.geometry.pool import add_sphere_geometry

        _add(add_sphere_geometry(), np.eye(4))
        hit, t, object_id, normal = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert object_id == 0
        assert abs(t - 4.0) < 1e-5
        np.testing.assert_allclose(normal, [0.0, 0.0, 1.0], atol=1e-5)

    def test_translated_scaled_sphere(self):
        """t stays in world units because object-space rays are not renormalized."""
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.manager import scale, translate

        _add(add_sphere_geometry(), translate(0.0, 0.0, -3.0) @ scale(2.0))
        hit, t, _, normal = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert abs(t - 6.0) < 1e-4
        np.testing.assert_allclose(normal, [0.0, 0.0, 1.0], atol=1e-5)

    def test_non_uniform_scale_normal(self):
        """Normals go through the inverse transpose and come out unit length."""
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.manager import scale

        _add(add_sphere_geometry(), scale(1.0, 0.25, 1.0))
        hit, _, _, normal = _intersect((0.5, 5.0, 0.0), (0.0, -1.0, 0.0))

        assert hit == 1
        assert abs(np.linalg.norm(normal) - 1.0) < 1e-4
        # On the flattened sphere the normal tilts much further toward +Y
        # than the position vector does
        y_hit = 0.25 * math.sqrt(1.0 - 0.25)
        assert normal[1] / normal[0] > y_hit / 0.5

    def test_general_affine_hit_matches_object_space_hit(self):
        """The world hit point equals M applied to the hit of M^-1 r with the unit sphere."""
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.geometry.sphere import hit_unit_sphere
        from src.tracer.scene.manager import rotate_x, rotate_y, scale, translate

        shear = np.eye(4)
        shear[0, 1] = 0.3
        matrix = translate(0.3, -0.2, -4.0) @ rotate_y(0.7) @ rotate_x(-0.4) @ shear @ scale(1.5, 0.6, 1.1)
        _add(add_sphere_geometry(), matrix)

        origin = np.array([0.5, 0.2, 3.0])
        direction = np.array([-0.15, -0.35, -7.0])
        hit, t, _, _ = _intersect(origin, direction)
        assert hit == 1

        inverse = np.linalg.inv(matrix)
        local_origin = (inverse @ np.append(origin, 1.0))[:3]
        local_direction = (inverse @ np.append(direction, 0.0))[:3]

        local_hit = ti.field(dtype=ti.i32, shape=())
        local_t = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(o: ti.math.vec3, d: ti.math.vec3):
            rec = hit_unit_sphere(o, d, 0.001, 1000.0)
            local_hit[None] = rec.hit
            local_t[None] = rec.t

        test_kernel(ti.math.vec3(*local_origin), ti.math.vec3(*local_direction))
        assert local_hit[None] == 1

        local_point = local_origin + local_t[None] * local_direction
        world_point = origin + t * direction
        np.testing.assert_allclose(world_point, (matrix @ np.append(local_point, 1.0))[:3], atol=1e-3)

    def test_rotated_quad(self):
        from src.tracer.geometry.pool import add_quad_geometry
        from src.tracer.scene.manager import rotate_x, translate

        _add(add_quad_geometry(), translate(0.0, 0.0, -2.0) @ rotate_x(math.pi / 2.0))
        hit, t, _, normal = _intersect((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert abs(t - 2.0) < 1e-5
        np.testing.assert_allclose(np.abs(normal), [0.0, 0.0, 1.0], atol=1e-5)

    @pytest.mark.parametrize("order", [(0.0, -3.0), (-3.0, 0.0)])
    def test_nearest_hit_independent_of_order(self, order):
        """The closer object wins whichever was inserted first."""
        from src.tracer.geometry.pool import add_sphere_geometry
        from src.tracer.scene.manager import translate

        sphere = add_sphere_geometry()
        ids = {z: _add(sphere, translate(0.0, 0.0, z)) for z in order}
        hit, t, object_id, _ = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert abs(t - 4.0) < 1e-5
        assert object_id == ids[0.0]

    def test_interval_limits(self):
        from src.tracer.geometry.pool import add_sphere_geometry

        _add(add_sphere_geometry(), np.eye(4))
        hit, _, _, _ = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.5)
        assert hit == 0

    def test_any_hit(self):
        from src.tracer.geometry.pool import add_sphere_geometry

        _add(add_sphere_geometry(), np.eye(4))
        assert _blocked((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)) == 1
        assert _blocked((0.0, 0.0, 5.0), (0.0, 0.0, 1.0)) == 0
        assert _blocked((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.0) == 0

    def test_mesh_object(self):
        from src.tracer.geometry.pool import add_mesh_geometry
        from src.tracer.geometry.tessellate import make_sphere_mesh

        _add(add_mesh_geometry(make_sphere_mesh(3)), np.eye(4))
        hit, t, _, normal = _intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert hit == 1
        assert abs(t - 4.0) < 0.05
        assert normal[2] > 0.95
