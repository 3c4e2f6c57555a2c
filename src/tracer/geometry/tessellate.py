"""Tessellated mesh builders for the triangle-mesh geometry.

Provides an octahedron and a subdivided-octahedron sphere. Both are built on
the host with numpy and returned as TriangleMesh instances ready for
upload_mesh().

The sphere starts from an octahedron whose poles are duplicated per face so
that each face can carry its own s coordinate at the pole, and whose +X
equator vertex is duplicated to close the texture seam (s = 0 and s = 1).
Every subdivision level splits each triangle into four and pushes the new
edge midpoints out to the unit sphere, giving 8 * 4**levels faces.

Example:
    >>> from src.tracer.geometry.tessellate import make_sphere_mesh
    >>> mesh = make_sphere_mesh(2)
    >>> mesh.num_triangles
    128
"""

import math

import numpy as np

from src.tracer.geometry.mesh import TriangleMesh

# Tolerance used to merge coincident vertices during subdivision
VERTEX_EPSILON = 1e-5

# Level-0 octahedron with duplicated poles and seam vertex
_LEVEL0_POSITIONS = (
    (0.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
    (1.0, 0.0, 0.0),
    (0.0, 0.0, -1.0),
    (-1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0),
    (1.0, 0.0, 0.0),
    (0.0, -1.0, 0.0),
    (0.0, -1.0, 0.0),
    (0.0, -1.0, 0.0),
    (0.0, -1.0, 0.0),
)

_LEVEL0_TEXCOORDS = (
    (0.125, 0.0),
    (0.375, 0.0),
    (0.625, 0.0),
    (0.875, 0.0),
    (0.0, 0.5),
    (0.25, 0.5),
    (0.5, 0.5),
    (0.75, 0.5),
    (1.0, 0.5),
    (0.125, 1.0),
    (0.375, 1.0),
    (0.625, 1.0),
    (0.875, 1.0),
)

_LEVEL0_TRIANGLES = (
    (0, 4, 5),
    (1, 5, 6),
    (2, 6, 7),
    (3, 7, 8),
    (9, 5, 4),
    (10, 6, 5),
    (11, 7, 6),
    (12, 8, 7),
)


def _seam_texcoord(position: tuple[float, float, float]) -> tuple[float, float]:
    """Texture coordinates used by the tessellated sphere's seam layout."""
    x, y, z = position
    s = (math.atan2(z, -x) / math.pi + 1.0) / 2.0
    t = (math.asin(max(-1.0, min(1.0, -y))) / math.pi + 1.0) / 2.0
    return s, t


class _SphereBuilder:
    """Accumulates deduplicated vertices and faces during subdivision."""

    def __init__(self) -> None:
        self.positions: list[tuple[float, float, float]] = list(_LEVEL0_POSITIONS)
        self.texcoords: list[tuple[float, float]] = list(_LEVEL0_TEXCOORDS)
        self.faces: list[tuple[int, int, int]] = []
        self._index: dict[tuple[int, ...], int] = {}
        for i, (p, tc) in enumerate(zip(self.positions, self.texcoords)):
            self._index.setdefault(self._key(p, tc), i)

    @staticmethod
    def _key(position: tuple[float, float, float], texcoord: tuple[float, float]) -> tuple[int, ...]:
        return tuple(round(c / VERTEX_EPSILON) for c in (*position, *texcoord))

    def find_vertex(self, position: tuple[float, float, float], texcoord: tuple[float, float]) -> int:
        key = self._key(position, texcoord)
        if key not in self._index:
            self.positions.append(position)
            self.texcoords.append(texcoord)
            self._index[key] = len(self.positions) - 1
        return self._index[key]

    def _midpoint(self, a: int, b: int) -> tuple[float, float, float]:
        pa = np.array(self.positions[a])
        pb = np.array(self.positions[b])
        mid = pa + pb
        mid = mid / np.linalg.norm(mid)
        return float(mid[0]), float(mid[1]), float(mid[2])

    def subdivide(self, level: int, levels: int, i0: int, i1: int, i2: int) -> None:
        if level == levels:
            self.faces.append((i0, i1, i2))
            return

        v01 = list(self._midpoint(i0, i1))
        v12 = list(self._midpoint(i1, i2))
        v20 = list(self._midpoint(i2, i0))

        # Points on z = 0 with x > 0 get s = 0 or s = 1 depending on which
        # side of the seam the parent triangle lies.
        positive_z = v01[2] > 0.0 or v12[2] > 0.0 or v20[2] > 0.0
        for v in (v01, v12, v20):
            if not positive_z and v[0] > 0.0 and abs(v[2]) < VERTEX_EPSILON:
                v[2] = -0.0

        i01 = self.find_vertex(tuple(v01), _seam_texcoord(tuple(v01)))
        i12 = self.find_vertex(tuple(v12), _seam_texcoord(tuple(v12)))
        i20 = self.find_vertex(tuple(v20), _seam_texcoord(tuple(v20)))

        self.subdivide(level + 1, levels, i0, i01, i20)
        self.subdivide(level + 1, levels, i01, i1, i12)
        self.subdivide(level + 1, levels, i01, i12, i20)
        self.subdivide(level + 1, levels, i20, i12, i2)


def make_sphere_mesh(levels: int = 3) -> TriangleMesh:
    """Build a unit sphere by recursively subdividing an octahedron.

    Args:
        levels: Number of subdivision passes (0 gives the octahedron).

    Returns:
        A TriangleMesh with 8 * 4**levels triangles whose normals equal
        their positions.

    Raises:
        ValueError: If levels is negative.
    """
    if levels < 0:
        raise ValueError(f"Subdivision levels must be non-negative, got {levels}")

    builder = _SphereBuilder()
    for i0, i1, i2 in _LEVEL0_TRIANGLES:
        builder.subdivide(0, levels, i0, i1, i2)

    positions = np.array(builder.positions, dtype=np.float32)
    return TriangleMesh(
        positions=positions,
        normals=positions.copy(),
        texcoords=np.array(builder.texcoords, dtype=np.float32),
        triangles=np.array(builder.faces, dtype=np.int32),
    )


def make_octahedron() -> TriangleMesh:
    """Build a flat-shaded unit octahedron.

    Each face gets its own three vertices so the face normal is constant
    across the triangle.

    Returns:
        A TriangleMesh with 24 vertices and 8 triangles.
    """
    positions = []
    normals = []
    texcoords = []
    triangles = []

    for i0, i1, i2 in _LEVEL0_TRIANGLES:
        corners = [np.array(_LEVEL0_POSITIONS[i], dtype=np.float64) for i in (i0, i1, i2)]
        normal = np.cross(corners[1] - corners[0], corners[2] - corners[0])
        normal = normal / np.linalg.norm(normal)

        base = len(positions)
        for corner, index in zip(corners, (i0, i1, i2)):
            positions.append(corner)
            normals.append(normal)
            texcoords.append(_LEVEL0_TEXCOORDS[index])
        triangles.append((base, base + 1, base + 2))

    return TriangleMesh(
        positions=np.array(positions, dtype=np.float32),
        normals=np.array(normals, dtype=np.float32),
        texcoords=np.array(texcoords, dtype=np.float32),
        triangles=np.array(triangles, dtype=np.int32),
    )
