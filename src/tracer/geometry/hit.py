"""Hit records shared by all geometry variants.

A HitRecord carries the hit distance, the object that produced it, and a
payload whose meaning depends on the geometry kind that wrote it:

- SPHERE: ``position`` is the object-space hit point.
- QUAD: ``uv`` holds the two edge parameters in [0, 1].
- MESH: ``tri`` holds the three vertex indices and ``uv`` the barycentric
  coordinates of the hit.

The payload must only be read when ``hit == 1`` and only through the geometry
variant named by ``kind``.
"""

import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec2, vec3

ivec3 = tm.ivec3

# =============================================================================
# Geometry Kind Tags
# =============================================================================

GEOMETRY_NONE = -1
GEOMETRY_SPHERE = 0
GEOMETRY_QUAD = 1
GEOMETRY_MESH = 2

# Determinant magnitude below which a ray counts as parallel to a surface
PARALLEL_EPSILON = 1e-4


@ti.dataclass
class HitRecord:
    """Record of a ray-surface intersection.

    Attributes:
        hit: 1 if an intersection was found, 0 otherwise.
        t: Ray parameter at the intersection point.
        object_id: Scene object that was hit, or -1 below the scene level.
        kind: Geometry kind tag that wrote the payload.
        position: Object-space hit position (sphere payload).
        uv: Edge parameters (quad) or barycentric coordinates (mesh).
        tri: Vertex indices of the hit triangle (mesh payload).
    """

    hit: ti.i32
    t: ti.f32
    object_id: ti.i32
    kind: ti.i32
    position: vec3
    uv: vec2
    tri: ivec3


@ti.dataclass
class SurfaceProperties:
    """Normal and texture coordinates recovered from a hit.

    Attributes:
        normal: Unit surface normal.
        texcoord: Texture coordinates (s, t).
    """

    normal: vec3
    texcoord: vec2


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord representing no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        object_id=-1,
        kind=GEOMETRY_NONE,
        position=vec3(0.0, 0.0, 0.0),
        uv=vec2(0.0, 0.0),
        tri=ivec3(0, 0, 0),
    )
