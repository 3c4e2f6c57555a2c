"""Scene objects and scene-level ray queries.

An object places a pool geometry in the world with an object-to-world matrix
M and shades it with a material slot. The inverse M^-1 and the normal matrix
(M^-1)^T are derived on the host whenever the placement is set and stored
alongside M, so kernels never invert matrices.

Rays are intersected in object space: the origin is transformed as a point
and the direction as a vector, without renormalizing the direction. The ray
parameter t is therefore the same in object and world space, and hits from
different objects can be compared directly.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.geometry.pool import add_sphere_geometry
    >>> from src.tracer.materials.material import Material, store_material
    >>> from src.tracer.scene.intersection import add_object
    >>> obj = add_object(add_sphere_geometry(), store_material(Material()), np.eye(4))
    >>> # Use intersect_scene within a Taichi kernel
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec3
from src.tracer.geometry.hit import HitRecord, SurfaceProperties, make_miss_record
from src.tracer.geometry.pool import (
    geometry_properties,
    get_geometry_kind,
    intersect_geometry,
    shadow_geometry,
)
from src.tracer.materials.material import get_material_count

vec4 = tm.vec4

# Maximum number of objects in the scene
MAX_OBJECTS = 1024

object_geometry_ids = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_material_slots = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_to_world = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_OBJECTS)
world_to_object = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_OBJECTS)
normal_matrices = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_OBJECTS)
num_objects = ti.field(dtype=ti.i32, shape=())


def clear_objects() -> None:
    """Remove every object from the scene.

    Objects are never removed individually; geometry and materials are
    cleared separately by their own pools.
    """
    num_objects[None] = 0


def get_object_count() -> int:
    """Get the number of objects in the scene."""
    return int(num_objects[None])


def _derive_matrices(matrix: npt.ArrayLike) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError(f"Object transform must be a 4x4 matrix, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise ValueError("Object transform contains non-finite values")
    try:
        inverse = np.linalg.inv(m)
    except np.linalg.LinAlgError as exc:
        raise ValueError("Object transform is singular") from exc
    return m, inverse, inverse.T


def _write_matrices(object_id: int, matrix: npt.ArrayLike) -> None:
    m, inverse, normal = _derive_matrices(matrix)
    object_to_world[object_id] = ti.Matrix(m.astype(np.float32).tolist())
    world_to_object[object_id] = ti.Matrix(inverse.astype(np.float32).tolist())
    normal_matrices[object_id] = ti.Matrix(normal.astype(np.float32).tolist())


def add_object(geometry_id: int, material_slot: int, matrix: npt.ArrayLike) -> int:
    """Add an object to the scene.

    Args:
        geometry_id: Id of a geometry in the geometry pool.
        material_slot: Slot returned by store_material().
        matrix: 4x4 object-to-world transform.

    Returns:
        The object id. Objects are intersected in id order.

    Raises:
        ValueError: If the geometry or material does not exist, or the
            matrix is not an invertible 4x4 matrix.
        RuntimeError: If the maximum number of objects is exceeded.
    """
    get_geometry_kind(geometry_id)
    if material_slot < 0 or material_slot >= get_material_count():
        raise ValueError(f"Unknown material slot {material_slot}")

    idx = int(num_objects[None])
    if idx >= MAX_OBJECTS:
        raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")

    _write_matrices(idx, matrix)
    object_geometry_ids[idx] = geometry_id
    object_material_slots[idx] = material_slot
    num_objects[None] = idx + 1
    return idx


def set_object_transform(object_id: int, matrix: npt.ArrayLike) -> None:
    """Replace an object's placement, re-deriving its inverse and normal matrix.

    Raises:
        ValueError: If the object does not exist or the matrix is invalid.
    """
    if object_id < 0 or object_id >= get_object_count():
        raise ValueError(f"Unknown object id {object_id}")
    _write_matrices(object_id, matrix)


def get_object_transform(object_id: int) -> np.ndarray:
    """Get an object's object-to-world matrix as a (4, 4) float32 array."""
    if object_id < 0 or object_id >= get_object_count():
        raise ValueError(f"Unknown object id {object_id}")
    return object_to_world[object_id].to_numpy()


# =============================================================================
# Object Queries (Taichi funcs)
# =============================================================================


@ti.func
def _to_object_space(object_id: ti.i32, ray_origin: vec3, ray_direction: vec3):
    inv = world_to_object[object_id]
    o = inv @ vec4(ray_origin[0], ray_origin[1], ray_origin[2], 1.0)
    d = inv @ vec4(ray_direction[0], ray_direction[1], ray_direction[2], 0.0)
    return vec3(o[0], o[1], o[2]), vec3(d[0], d[1], d[2])


@ti.func
def intersect_object(
    object_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a world-space ray with one object.

    Returns:
        The geometry's hit record tagged with object_id, or a miss record.
        The hit t is valid in world space.
    """
    local_o, local_d = _to_object_space(object_id, ray_origin, ray_direction)
    rec = intersect_geometry(object_geometry_ids[object_id], local_o, local_d, t_min, t_max)
    if rec.hit == 1:
        rec.object_id = object_id
    return rec


@ti.func
def shadow_object(
    object_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    local_o, local_d = _to_object_space(object_id, ray_origin, ray_direction)
    return shadow_geometry(object_geometry_ids[object_id], local_o, local_d, t_min, t_max)


@ti.func
def object_hit_properties(rec: HitRecord) -> SurfaceProperties:
    """World-space normal and texcoord of a hit.

    The object-space normal is mapped with the object's normal matrix and
    renormalized; texture coordinates are unchanged.
    """
    props = geometry_properties(rec)
    n = normal_matrices[rec.object_id] @ vec4(props.normal[0], props.normal[1], props.normal[2], 0.0)
    props.normal = tm.normalize(vec3(n[0], n[1], n[2]))
    return props


@ti.func
def object_material(object_id: ti.i32) -> ti.i32:
    return object_material_slots[object_id]


# =============================================================================
# Scene Queries (Taichi funcs)
# =============================================================================


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest hit of a world-space ray against all objects.

    Objects are tested in insertion order, each over [t_min, closest_t].
    A hit replaces the current one only if it is strictly closer, so ties
    go to the object inserted first.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be unit).
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest hit record, or a miss record (object_id = -1).
    """
    closest_t = t_max
    result = make_miss_record()

    for i in range(num_objects[None]):
        rec = intersect_object(i, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1 and (result.hit == 0 or rec.t < closest_t):
            closest_t = rec.t
            result = rec

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test if a ray hits any object in [t_min, t_max] (shadow query).

    Returns:
        1 if any object was hit, 0 otherwise.
    """
    hit_any = 0

    for i in range(num_objects[None]):
        if hit_any == 0:
            hit_any = shadow_object(i, ray_origin, ray_direction, t_min, t_max)

    return hit_any
