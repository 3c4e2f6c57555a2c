"""Indexed triangle mesh geometry with Moller-Trumbore intersection.

Mesh data lives in global vertex and triangle pools shared by every mesh in
the scene. Each mesh owns a contiguous range of triangles; triangle indices
are stored as absolute positions in the vertex pool, so a hit record only
needs the three indices (plus barycentrics) to recover surface properties.

Intersection is a linear scan over the mesh's triangles. Each hit tightens
the upper bound for the remaining triangles so the nearest hit wins; there
is no spatial subdivision.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.geometry.mesh import upload_mesh
    >>> from src.tracer.geometry.tessellate import make_octahedron
    >>> mesh_id = upload_mesh(make_octahedron())
    >>> mesh_id
    0
"""

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec2, vec3
from src.tracer.geometry.hit import (
    GEOMETRY_MESH,
    HitRecord,
    SurfaceProperties,
    ivec3,
    make_miss_record,
)
from src.tracer.geometry.quad import solve_edge_frame

logger = logging.getLogger(__name__)

# =============================================================================
# Host-side Mesh Description
# =============================================================================


@dataclass
class TriangleMesh:
    """An indexed triangle mesh in object space.

    Arrays are converted to contiguous float32/int32 on construction and
    validated against each other.

    Attributes:
        positions: Vertex positions, shape (n, 3).
        normals: Per-vertex unit normals, shape (n, 3).
        texcoords: Per-vertex texture coordinates, shape (n, 2).
        triangles: Vertex indices of each triangle, shape (m, 3).

    Raises:
        ValueError: If array shapes disagree or an index is out of range.
    """

    positions: npt.NDArray[np.float32]
    normals: npt.NDArray[np.float32]
    texcoords: npt.NDArray[np.float32]
    triangles: npt.NDArray[np.int32]

    def __post_init__(self) -> None:
        self.positions = np.ascontiguousarray(self.positions, dtype=np.float32)
        self.normals = np.ascontiguousarray(self.normals, dtype=np.float32)
        self.texcoords = np.ascontiguousarray(self.texcoords, dtype=np.float32)
        self.triangles = np.ascontiguousarray(self.triangles, dtype=np.int32)

        n = self.positions.shape[0]
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (n, 3), got {self.positions.shape}")
        if self.normals.shape != (n, 3):
            raise ValueError(f"normals must have shape ({n}, 3), got {self.normals.shape}")
        if self.texcoords.shape != (n, 2):
            raise ValueError(f"texcoords must have shape ({n}, 2), got {self.texcoords.shape}")
        if self.triangles.ndim != 2 or self.triangles.shape[1] != 3:
            raise ValueError(f"triangles must have shape (m, 3), got {self.triangles.shape}")
        if self.triangles.size > 0 and (self.triangles.min() < 0 or self.triangles.max() >= n):
            raise ValueError(f"Triangle indices must lie in [0, {n - 1}]")

    @property
    def num_vertices(self) -> int:
        """Number of vertices in the mesh."""
        return int(self.positions.shape[0])

    @property
    def num_triangles(self) -> int:
        """Number of triangles in the mesh."""
        return int(self.triangles.shape[0])


# =============================================================================
# Mesh Storage (Taichi fields)
# =============================================================================

# Pool capacities (preallocated to avoid kernel recompilation)
MAX_MESHES = 64
MAX_MESH_VERTICES = 1 << 16
MAX_MESH_TRIANGLES = 1 << 16

# Vertex pool: Structure of Arrays layout
vertex_positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MESH_VERTICES)
vertex_normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MESH_VERTICES)
vertex_texcoords = ti.Vector.field(2, dtype=ti.f32, shape=MAX_MESH_VERTICES)
num_vertices = ti.field(dtype=ti.i32, shape=())

# Triangle pool with absolute vertex indices
triangle_indices = ti.Vector.field(3, dtype=ti.i32, shape=MAX_MESH_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())

# Mesh table: each mesh is a contiguous triangle range
mesh_triangle_offset = ti.field(dtype=ti.i32, shape=MAX_MESHES)
mesh_triangle_count = ti.field(dtype=ti.i32, shape=MAX_MESHES)
num_meshes = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _write_vertices(
    offset: ti.i32,
    positions: ti.types.ndarray(),
    normals: ti.types.ndarray(),
    texcoords: ti.types.ndarray(),
):
    for i in range(positions.shape[0]):
        vertex_positions[offset + i] = vec3(positions[i, 0], positions[i, 1], positions[i, 2])
        vertex_normals[offset + i] = vec3(normals[i, 0], normals[i, 1], normals[i, 2])
        vertex_texcoords[offset + i] = vec2(texcoords[i, 0], texcoords[i, 1])


@ti.kernel
def _write_triangles(offset: ti.i32, vertex_offset: ti.i32, triangles: ti.types.ndarray()):
    for i in range(triangles.shape[0]):
        triangle_indices[offset + i] = ivec3(
            triangles[i, 0] + vertex_offset,
            triangles[i, 1] + vertex_offset,
            triangles[i, 2] + vertex_offset,
        )


def clear_meshes() -> None:
    """Release all meshes.

    Resets the pool counters; field contents are overwritten by later uploads.
    """
    num_vertices[None] = 0
    num_triangles[None] = 0
    num_meshes[None] = 0


def upload_mesh(mesh: TriangleMesh) -> int:
    """Copy a mesh into the global pools.

    Nothing is written when the mesh does not fit, so a failed upload leaves
    the pools exactly as they were.

    Args:
        mesh: The mesh to upload.

    Returns:
        The new mesh id, or -1 if the mesh table, vertex pool or triangle
        pool is out of capacity. Callers must not build objects on a -1 id.
    """
    mesh_id = int(num_meshes[None])
    vertex_offset = int(num_vertices[None])
    triangle_offset = int(num_triangles[None])

    if (
        mesh_id >= MAX_MESHES
        or vertex_offset + mesh.num_vertices > MAX_MESH_VERTICES
        or triangle_offset + mesh.num_triangles > MAX_MESH_TRIANGLES
    ):
        logger.warning(
            "Mesh with %d vertices and %d triangles does not fit the mesh pools",
            mesh.num_vertices,
            mesh.num_triangles,
        )
        return -1

    if mesh.num_vertices > 0:
        _write_vertices(vertex_offset, mesh.positions, mesh.normals, mesh.texcoords)
    if mesh.num_triangles > 0:
        _write_triangles(triangle_offset, vertex_offset, mesh.triangles)

    mesh_triangle_offset[mesh_id] = triangle_offset
    mesh_triangle_count[mesh_id] = mesh.num_triangles
    num_vertices[None] = vertex_offset + mesh.num_vertices
    num_triangles[None] = triangle_offset + mesh.num_triangles
    num_meshes[None] = mesh_id + 1
    return mesh_id


def get_mesh_count() -> int:
    """Get the number of uploaded meshes."""
    return int(num_meshes[None])


# =============================================================================
# Intersection (Taichi funcs)
# =============================================================================


@ti.func
def _triangle_solve(tri: ivec3, ray_origin: vec3, ray_direction: vec3):
    """Moller-Trumbore solve against one triangle of the vertex pool.

    Returns:
        Tuple of (inside, t, u, v) where inside is 1 when the determinant is
        usable and the barycentrics satisfy u >= 0, v >= 0, u + v <= 1.
    """
    p0 = vertex_positions[tri[0]]
    p1 = vertex_positions[tri[1]]
    p2 = vertex_positions[tri[2]]

    valid, t, u, v = solve_edge_frame(ray_origin, ray_direction, p0, p1 - p0, p2 - p0)

    inside = 0
    if valid == 1 and u >= 0.0 and v >= 0.0 and u + v <= 1.0:
        inside = 1

    return inside, t, u, v


@ti.func
def hit_mesh(
    mesh_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect an object-space ray with every triangle of a mesh.

    Args:
        mesh_id: The mesh to test.
        ray_origin: The ray origin in object space.
        ray_direction: The ray direction in object space.
        t_min: Smallest accepted ray parameter (inclusive).
        t_max: Largest accepted ray parameter (inclusive).

    Returns:
        A HitRecord for the nearest triangle hit, carrying the triangle's
        vertex indices and barycentric (u, v), or a miss record.
    """
    rec = make_miss_record()
    closest_t = t_max

    start = mesh_triangle_offset[mesh_id]
    count = mesh_triangle_count[mesh_id]
    for k in range(count):
        tri = triangle_indices[start + k]
        inside, t, u, v = _triangle_solve(tri, ray_origin, ray_direction)
        if inside == 1 and t >= t_min and t <= closest_t:
            closest_t = t
            rec.hit = 1
            rec.t = t
            rec.kind = GEOMETRY_MESH
            rec.tri = tri
            rec.uv = vec2(u, v)

    return rec


@ti.func
def shadow_mesh(
    mesh_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Return 1 if any triangle of the mesh is hit inside [t_min, t_max]."""
    hit_any = 0

    start = mesh_triangle_offset[mesh_id]
    count = mesh_triangle_count[mesh_id]
    for k in range(count):
        if hit_any == 0:
            inside, t, _u, _v = _triangle_solve(triangle_indices[start + k], ray_origin, ray_direction)
            if inside == 1 and t >= t_min and t <= t_max:
                hit_any = 1

    return hit_any


@ti.func
def mesh_properties(tri: ivec3, uv: vec2) -> SurfaceProperties:
    """Interpolate normal and texcoord at a barycentric point of a triangle.

    Weights are (1 - u - v, u, v) for the triangle's three vertices; the
    interpolated normal is renormalized.
    """
    w0 = 1.0 - uv[0] - uv[1]
    w1 = uv[0]
    w2 = uv[1]

    normal = (
        w0 * vertex_normals[tri[0]] + w1 * vertex_normals[tri[1]] + w2 * vertex_normals[tri[2]]
    )
    texcoord = (
        w0 * vertex_texcoords[tri[0]]
        + w1 * vertex_texcoords[tri[1]]
        + w2 * vertex_texcoords[tri[2]]
    )

    return SurfaceProperties(normal=tm.normalize(normal), texcoord=texcoord)
