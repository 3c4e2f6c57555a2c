"""Scene module: objects, lighting, recursive shading and scene building.

Components:
    intersection: Object table (geometry id, material slot, transforms) and
        nearest / any-hit queries over every object
    shading: Point light, ambient radiance and the recursive shading model
    manager: SceneManager host facade and transform helpers
    demo: The demo box scene

Note: importing this package allocates the scene fields, so call ti.init()
first.
"""

from .demo import build_demo_scene, make_demo_camera, populate_demo_scene
from .intersection import (
    MAX_OBJECTS,
    add_object,
    clear_objects,
    get_object_count,
    get_object_transform,
    intersect_scene,
    intersect_scene_any,
    set_object_transform,
)
from .manager import (
    GeometryInfo,
    ObjectInfo,
    SceneConfig,
    SceneManager,
    TextureInfo,
    rotate_x,
    rotate_y,
    rotate_z,
    scale,
    translate,
)
from .shading import (
    MAX_RAY_DEPTH,
    get_light_info,
    reset_lighting,
    set_ambient,
    set_indirect_weighting,
    set_light,
    shade_ray,
    trace_single_ray,
)

__all__ = [
    # Intersection module
    "MAX_OBJECTS",
    "add_object",
    "clear_objects",
    "get_object_count",
    "get_object_transform",
    "set_object_transform",
    "intersect_scene",
    "intersect_scene_any",
    # Shading module
    "MAX_RAY_DEPTH",
    "set_light",
    "set_ambient",
    "set_indirect_weighting",
    "reset_lighting",
    "get_light_info",
    "shade_ray",
    "trace_single_ray",
    # Manager module
    "SceneManager",
    "SceneConfig",
    "GeometryInfo",
    "TextureInfo",
    "ObjectInfo",
    "translate",
    "scale",
    "rotate_x",
    "rotate_y",
    "rotate_z",
    # Demo scene
    "build_demo_scene",
    "make_demo_camera",
    "populate_demo_scene",
]
