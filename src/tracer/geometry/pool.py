"""Geometry pool: the shared, immutable shapes that scene objects reference.

Scene objects never own geometry. They hold an integer geometry id into this
pool, and the pool outlives every object that refers to it (both are cleared
together when a scene is torn down). The set of shape kinds is closed:

- SPHERE: the unit sphere at the origin
- QUAD: the unit quad with corners (+-1, 0, +-1)
- MESH: an uploaded triangle mesh

Dispatch on the kind tag happens in the Taichi funcs below.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.geometry.pool import add_quad_geometry, add_sphere_geometry
    >>> sphere_id = add_sphere_geometry()
    >>> quad_id = add_quad_geometry()
"""

import taichi as ti

from src.tracer.core.ray import vec2, vec3
from src.tracer.geometry.hit import (
    GEOMETRY_MESH,
    GEOMETRY_QUAD,
    GEOMETRY_SPHERE,
    HitRecord,
    SurfaceProperties,
    make_miss_record,
)
from src.tracer.geometry.mesh import (
    TriangleMesh,
    clear_meshes,
    hit_mesh,
    mesh_properties,
    shadow_mesh,
    upload_mesh,
)
from src.tracer.geometry.quad import hit_unit_quad, shadow_unit_quad, unit_quad_properties
from src.tracer.geometry.sphere import (
    hit_unit_sphere,
    shadow_unit_sphere,
    unit_sphere_properties,
)

# Maximum number of distinct geometries
MAX_GEOMETRIES = 256

geometry_kinds = ti.field(dtype=ti.i32, shape=MAX_GEOMETRIES)
geometry_mesh_ids = ti.field(dtype=ti.i32, shape=MAX_GEOMETRIES)
num_geometries = ti.field(dtype=ti.i32, shape=())


def clear_geometry() -> None:
    """Remove all geometry, including uploaded meshes."""
    num_geometries[None] = 0
    clear_meshes()


def _add_geometry(kind: int, mesh_id: int = -1) -> int:
    idx = int(num_geometries[None])
    if idx >= MAX_GEOMETRIES:
        raise RuntimeError(f"Maximum number of geometries ({MAX_GEOMETRIES}) exceeded")
    geometry_kinds[idx] = kind
    geometry_mesh_ids[idx] = mesh_id
    num_geometries[None] = idx + 1
    return idx


def add_sphere_geometry() -> int:
    """Add a unit sphere to the pool and return its geometry id."""
    return _add_geometry(GEOMETRY_SPHERE)


def add_quad_geometry() -> int:
    """Add a unit quad to the pool and return its geometry id."""
    return _add_geometry(GEOMETRY_QUAD)


def add_mesh_geometry(mesh: TriangleMesh) -> int:
    """Upload a triangle mesh and add it to the pool.

    Args:
        mesh: The mesh to upload.

    Returns:
        The geometry id of the mesh.

    Raises:
        RuntimeError: If the mesh pools or the geometry pool are full. No
            geometry is created in that case.
    """
    if int(num_geometries[None]) >= MAX_GEOMETRIES:
        raise RuntimeError(f"Maximum number of geometries ({MAX_GEOMETRIES}) exceeded")
    mesh_id = upload_mesh(mesh)
    if mesh_id < 0:
        raise RuntimeError(
            f"Mesh with {mesh.num_vertices} vertices and {mesh.num_triangles} "
            "triangles could not be stored"
        )
    return _add_geometry(GEOMETRY_MESH, mesh_id)


def get_geometry_count() -> int:
    """Get the number of geometries in the pool."""
    return int(num_geometries[None])


def get_geometry_kind(geometry_id: int) -> int:
    """Get the kind tag of a geometry.

    Raises:
        ValueError: If the id does not name an existing geometry.
    """
    if geometry_id < 0 or geometry_id >= get_geometry_count():
        raise ValueError(f"Unknown geometry id {geometry_id}")
    return int(geometry_kinds[geometry_id])


# =============================================================================
# Dispatch (Taichi funcs)
# =============================================================================


@ti.func
def intersect_geometry(
    geometry_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest hit of an object-space ray against one geometry."""
    rec = make_miss_record()
    kind = geometry_kinds[geometry_id]

    if kind == GEOMETRY_SPHERE:
        rec = hit_unit_sphere(ray_origin, ray_direction, t_min, t_max)
    elif kind == GEOMETRY_QUAD:
        rec = hit_unit_quad(ray_origin, ray_direction, t_min, t_max)
    elif kind == GEOMETRY_MESH:
        rec = hit_mesh(geometry_mesh_ids[geometry_id], ray_origin, ray_direction, t_min, t_max)

    return rec


@ti.func
def shadow_geometry(
    geometry_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Any-hit test of an object-space ray against one geometry."""
    blocked = 0
    kind = geometry_kinds[geometry_id]

    if kind == GEOMETRY_SPHERE:
        blocked = shadow_unit_sphere(ray_origin, ray_direction, t_min, t_max)
    elif kind == GEOMETRY_QUAD:
        blocked = shadow_unit_quad(ray_origin, ray_direction, t_min, t_max)
    elif kind == GEOMETRY_MESH:
        blocked = shadow_mesh(geometry_mesh_ids[geometry_id], ray_origin, ray_direction, t_min, t_max)

    return blocked


@ti.func
def geometry_properties(rec: HitRecord) -> SurfaceProperties:
    """Object-space normal and texcoord, read through the variant that wrote rec."""
    props = SurfaceProperties(normal=vec3(0.0, 1.0, 0.0), texcoord=vec2(0.0, 0.0))

    if rec.kind == GEOMETRY_SPHERE:
        props = unit_sphere_properties(rec.position)
    elif rec.kind == GEOMETRY_QUAD:
        props = unit_quad_properties(rec.uv)
    elif rec.kind == GEOMETRY_MESH:
        props = mesh_properties(rec.tri, rec.uv)

    return props
