"""Scene manager: host-side facade for building and serializing scenes.

The SceneManager coordinates the module-level pools that make up a scene:

- textures (materials.texture)
- geometry: spheres, quads and meshes (geometry.pool)
- materials, one private copy per object (materials.material)
- objects and their transforms (scene.intersection)
- the point light and ambient radiance (scene.shading)

It also records how each piece was created, so a scene can be written to a
plain dict and rebuilt from it. Ids are assigned sequentially from zero after
clear(), so rebuilding in the recorded order reproduces the same ids.

Transforms are 4x4 numpy matrices. translate(), scale() and rotate_x/y/z()
build the usual elementary matrices; compose them with @, rightmost first.

Example:
    >>> import math
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.materials.material import Material, ShaderType
    >>> from src.tracer.scene.manager import SceneManager, rotate_z, scale, translate
    >>> scene = SceneManager()
    >>> quad = scene.add_quad_geometry()
    >>> floor = Material(shader_type=ShaderType.PHONG, surface_reflectance=(0.76, 0.75, 0.5))
    >>> scene.add_object(quad, floor, translate(0, 0, 0) @ scale(5, 1, 5))
    0
    >>> scene.set_light((0.0, 4.5, 0.0), (1.0, 1.0, 1.0))
"""

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt

from src.tracer.geometry.mesh import TriangleMesh
from src.tracer.geometry.pool import (
    add_mesh_geometry,
    add_quad_geometry,
    add_sphere_geometry,
    clear_geometry,
    get_geometry_count,
)
from src.tracer.geometry.tessellate import make_octahedron, make_sphere_mesh
from src.tracer.materials.material import Material, clear_materials, store_material
from src.tracer.materials.texture import (
    TextureFilter,
    TextureWrap,
    add_texture,
    clear_textures,
    load_texture,
    make_checker_texture,
)
from src.tracer.scene.intersection import (
    add_object,
    clear_objects,
    get_object_count,
    set_object_transform,
)
from src.tracer.scene.shading import (
    get_light_info,
    reset_lighting,
    set_ambient,
    set_light,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Transform Helpers
# =============================================================================


def translate(x: float, y: float, z: float) -> np.ndarray:
    """Translation matrix."""
    m = np.eye(4)
    m[:3, 3] = (x, y, z)
    return m


def scale(sx: float, sy: float | None = None, sz: float | None = None) -> np.ndarray:
    """Scale matrix; a single argument scales uniformly."""
    if sy is None:
        sy = sx
    if sz is None:
        sz = sx
    return np.diag([sx, sy, sz, 1.0])


def rotate_x(angle: float) -> np.ndarray:
    """Rotation about +X by angle radians."""
    c, s = math.cos(angle), math.sin(angle)
    m = np.eye(4)
    m[1, 1], m[1, 2] = c, -s
    m[2, 1], m[2, 2] = s, c
    return m


def rotate_y(angle: float) -> np.ndarray:
    """Rotation about +Y by angle radians."""
    c, s = math.cos(angle), math.sin(angle)
    m = np.eye(4)
    m[0, 0], m[0, 2] = c, s
    m[2, 0], m[2, 2] = -s, c
    return m


def rotate_z(angle: float) -> np.ndarray:
    """Rotation about +Z by angle radians."""
    c, s = math.cos(angle), math.sin(angle)
    m = np.eye(4)
    m[0, 0], m[0, 1] = c, -s
    m[1, 0], m[1, 1] = s, c
    return m


# =============================================================================
# Scene Records
# =============================================================================


@dataclass
class GeometryInfo:
    """How a geometry in the pool was created.

    Attributes:
        geometry_id: Id in the geometry pool.
        params: Creation parameters; "type" is one of sphere, quad,
            octahedron, sphere_mesh or mesh.
    """

    geometry_id: int
    params: dict[str, Any]


@dataclass
class TextureInfo:
    """How a texture in the pool was created.

    Attributes:
        texture_id: Id in the texture pool.
        params: Creation parameters; "type" is one of checker, file or array.
    """

    texture_id: int
    params: dict[str, Any]


@dataclass
class ObjectInfo:
    """An object in the scene.

    Attributes:
        object_id: Id in the object table.
        geometry_id: Geometry the object places.
        material: The object's own copy of its material.
        material_slot: Slot of that copy in the material table.
        transform: Object-to-world matrix.
    """

    object_id: int
    geometry_id: int
    material: Material
    material_slot: int
    transform: np.ndarray


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        textures: Texture creation parameters, in id order.
        geometries: Geometry creation parameters, in id order.
        objects: Object configurations, in insertion order.
        light: Light position and radiance.
        ambient: Ambient radiance.
    """

    textures: list[dict[str, Any]] = field(default_factory=list)
    geometries: list[dict[str, Any]] = field(default_factory=list)
    objects: list[dict[str, Any]] = field(default_factory=list)
    light: dict[str, list[float]] = field(default_factory=dict)
    ambient: list[float] = field(default_factory=list)


def _filter_name(value: TextureFilter) -> str:
    return TextureFilter(value).name


def _wrap_name(value: TextureWrap) -> str:
    return TextureWrap(value).name


class SceneManager:
    """Builds a scene in the global pools and remembers how it was built.

    Creating a SceneManager clears every pool, so only one scene exists at
    a time.

    Attributes:
        textures: TextureInfo for every texture.
        geometries: GeometryInfo for every geometry.
        objects: ObjectInfo for every object, in insertion order.
    """

    def __init__(self) -> None:
        """Initialize an empty scene with the default lighting."""
        self.textures: list[TextureInfo] = []
        self.geometries: list[GeometryInfo] = []
        self.objects: list[ObjectInfo] = []
        self._clear_all()

    def _clear_all(self) -> None:
        clear_objects()
        clear_materials()
        clear_geometry()
        clear_textures()
        reset_lighting()
        self.textures.clear()
        self.geometries.clear()
        self.objects.clear()

    def clear(self) -> None:
        """Tear down the whole scene and restore the default lighting."""
        self._clear_all()

    # =========================================================================
    # Textures
    # =========================================================================

    def add_checker_texture(
        self,
        size: int = 64,
        checks: int = 8,
        color_a: tuple[float, float, float] = (0.9, 0.9, 0.9),
        color_b: tuple[float, float, float] = (0.35, 0.35, 0.35),
        filter_mode: TextureFilter = TextureFilter.NEAREST,
        wrap_mode: TextureWrap = TextureWrap.REPEAT,
    ) -> int:
        """Add a checkerboard texture. Returns its texture id."""
        tex_id = make_checker_texture(size, checks, color_a, color_b, filter_mode, wrap_mode)
        self.textures.append(
            TextureInfo(
                texture_id=tex_id,
                params={
                    "type": "checker",
                    "size": size,
                    "checks": checks,
                    "color_a": list(color_a),
                    "color_b": list(color_b),
                    "filter": _filter_name(filter_mode),
                    "wrap": _wrap_name(wrap_mode),
                },
            )
        )
        return tex_id

    def load_texture(
        self,
        path: str | Path,
        filter_mode: TextureFilter = TextureFilter.NEAREST,
        wrap_mode: TextureWrap = TextureWrap.REPEAT,
    ) -> int:
        """Load an image file as a texture. Returns its texture id."""
        tex_id = load_texture(path, filter_mode, wrap_mode)
        self.textures.append(
            TextureInfo(
                texture_id=tex_id,
                params={
                    "type": "file",
                    "path": str(path),
                    "filter": _filter_name(filter_mode),
                    "wrap": _wrap_name(wrap_mode),
                },
            )
        )
        return tex_id

    def add_texture(
        self,
        image: npt.ArrayLike,
        filter_mode: TextureFilter = TextureFilter.NEAREST,
        wrap_mode: TextureWrap = TextureWrap.REPEAT,
    ) -> int:
        """Add an in-memory (h, w, 3) image as a texture. Returns its id."""
        data = np.asarray(image, dtype=np.float32)
        tex_id = add_texture(data, filter_mode, wrap_mode)
        self.textures.append(
            TextureInfo(
                texture_id=tex_id,
                params={
                    "type": "array",
                    "data": data.tolist(),
                    "filter": _filter_name(filter_mode),
                    "wrap": _wrap_name(wrap_mode),
                },
            )
        )
        return tex_id

    # =========================================================================
    # Geometry
    # =========================================================================

    def _record_geometry(self, geometry_id: int, params: dict[str, Any]) -> int:
        self.geometries.append(GeometryInfo(geometry_id=geometry_id, params=params))
        return geometry_id

    def add_sphere_geometry(self) -> int:
        """Add an analytic unit sphere. Returns its geometry id."""
        return self._record_geometry(add_sphere_geometry(), {"type": "sphere"})

    def add_quad_geometry(self) -> int:
        """Add a unit quad. Returns its geometry id."""
        return self._record_geometry(add_quad_geometry(), {"type": "quad"})

    def add_octahedron_geometry(self) -> int:
        """Add a flat-shaded octahedron mesh. Returns its geometry id."""
        return self._record_geometry(add_mesh_geometry(make_octahedron()), {"type": "octahedron"})

    def add_sphere_mesh_geometry(self, levels: int = 3) -> int:
        """Add a tessellated sphere mesh. Returns its geometry id.

        Raises:
            ValueError: If levels is negative.
            RuntimeError: If the mesh does not fit the mesh pools.
        """
        geometry_id = add_mesh_geometry(make_sphere_mesh(levels))
        return self._record_geometry(geometry_id, {"type": "sphere_mesh", "levels": levels})

    def add_mesh_geometry(self, mesh: TriangleMesh) -> int:
        """Add an arbitrary triangle mesh. Returns its geometry id.

        Raises:
            RuntimeError: If the mesh does not fit the mesh pools.
        """
        geometry_id = add_mesh_geometry(mesh)
        params = {
            "type": "mesh",
            "positions": mesh.positions.tolist(),
            "normals": mesh.normals.tolist(),
            "texcoords": mesh.texcoords.tolist(),
            "triangles": mesh.triangles.tolist(),
        }
        return self._record_geometry(geometry_id, params)

    def get_geometry_count(self) -> int:
        return get_geometry_count()

    # =========================================================================
    # Objects
    # =========================================================================

    def add_object(
        self,
        geometry_id: int,
        material: Material,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Place a geometry in the scene with its own copy of a material.

        Args:
            geometry_id: Id returned by one of the add_*_geometry methods.
            material: Material for the object; it is copied.
            transform: 4x4 object-to-world matrix (identity if omitted).

        Returns:
            The object id.

        Raises:
            ValueError: If the geometry, texture or transform is invalid.
            RuntimeError: If the object or material table is full.
        """
        matrix = np.eye(4) if transform is None else np.asarray(transform, dtype=np.float64)
        material_copy = dataclasses.replace(material)
        slot = store_material(material_copy)
        object_id = add_object(geometry_id, slot, matrix)
        self.objects.append(
            ObjectInfo(
                object_id=object_id,
                geometry_id=geometry_id,
                material=material_copy,
                material_slot=slot,
                transform=matrix.copy(),
            )
        )
        return object_id

    def set_object_transform(self, object_id: int, transform: npt.ArrayLike) -> None:
        """Move an existing object.

        Raises:
            ValueError: If the object does not exist or the matrix is invalid.
        """
        matrix = np.asarray(transform, dtype=np.float64)
        set_object_transform(object_id, matrix)
        self.objects[object_id].transform = matrix.copy()

    def get_object_count(self) -> int:
        return get_object_count()

    # =========================================================================
    # Lighting
    # =========================================================================

    def set_light(
        self,
        position: tuple[float, float, float],
        radiance: tuple[float, float, float],
    ) -> None:
        """Place the point light."""
        set_light(position, radiance)

    def set_ambient(self, radiance: tuple[float, float, float]) -> None:
        """Set the ambient radiance."""
        set_ambient(radiance)

    def get_light_info(self) -> dict[str, tuple[float, ...]]:
        return get_light_info()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        light = get_light_info()
        return SceneConfig(
            textures=[dict(info.params) for info in self.textures],
            geometries=[dict(info.params) for info in self.geometries],
            objects=[
                {
                    "geometry_id": obj.geometry_id,
                    "material": obj.material.to_dict(),
                    "transform": obj.transform.tolist(),
                }
                for obj in self.objects
            ],
            light={
                "position": list(light["position"]),
                "radiance": list(light["radiance"]),
            },
            ambient=list(light["ambient"]),
        )

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene first.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        for tex in config.textures:
            tex_type = tex.get("type", "")
            filter_mode = TextureFilter[tex.get("filter", "NEAREST")]
            wrap_mode = TextureWrap[tex.get("wrap", "REPEAT")]
            if tex_type == "checker":
                self.add_checker_texture(
                    tex.get("size", 64),
                    tex.get("checks", 8),
                    tuple(tex.get("color_a", (0.9, 0.9, 0.9))),
                    tuple(tex.get("color_b", (0.35, 0.35, 0.35))),
                    filter_mode,
                    wrap_mode,
                )
            elif tex_type == "file":
                self.load_texture(tex["path"], filter_mode, wrap_mode)
            elif tex_type == "array":
                self.add_texture(np.asarray(tex["data"], dtype=np.float32), filter_mode, wrap_mode)
            else:
                raise ValueError(f"Unknown texture type: {tex_type}")

        for geom in config.geometries:
            geom_type = geom.get("type", "")
            if geom_type == "sphere":
                self.add_sphere_geometry()
            elif geom_type == "quad":
                self.add_quad_geometry()
            elif geom_type == "octahedron":
                self.add_octahedron_geometry()
            elif geom_type == "sphere_mesh":
                self.add_sphere_mesh_geometry(geom.get("levels", 3))
            elif geom_type == "mesh":
                self.add_mesh_geometry(
                    TriangleMesh(
                        positions=np.asarray(geom["positions"]),
                        normals=np.asarray(geom["normals"]),
                        texcoords=np.asarray(geom["texcoords"]),
                        triangles=np.asarray(geom["triangles"]),
                    )
                )
            else:
                raise ValueError(f"Unknown geometry type: {geom_type}")

        for obj in config.objects:
            self.add_object(
                obj["geometry_id"],
                Material.from_dict(obj.get("material", {})),
                np.asarray(obj.get("transform", np.eye(4).tolist())),
            )

        if config.light:
            self.set_light(tuple(config.light["position"]), tuple(config.light["radiance"]))
        if config.ambient:
            self.set_ambient(tuple(config.ambient))

        logger.debug(
            "Loaded scene with %d geometries and %d objects",
            len(self.geometries),
            len(self.objects),
        )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        return dataclasses.asdict(self.to_config())

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by to_dict()."""
        config = SceneConfig(
            textures=data.get("textures", []),
            geometries=data.get("geometries", []),
            objects=data.get("objects", []),
            light=data.get("light", {}),
            ambient=data.get("ambient", []),
        )
        self.from_config(config)
