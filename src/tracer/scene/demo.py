"""Demo scene: a closed box with a textured floor, lit from above.

The scene contains:
- a textured beige floor and an untextured beige top, 10 x 10 units
- green walls on the +-X sides and red walls on the +-Z sides, 5 units high
- a flattened beige sphere under the light that casts a soft-edged shadow
- a beige octahedron in the middle
- a mirror sphere on the left and a beige sphere on the right
- a white point light at (0, 4.5, 0) and no ambient light

Every material is Phong with the specular highlight turned off. The floor
texture is loaded from texture_path when given, otherwise a gray checkerboard
stands in for it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.scene.demo import build_demo_scene
    >>> camera = build_demo_scene(width=256, height=256)
    >>> camera.position
    array([0., 2., 3.])
"""

import logging
import math
from pathlib import Path

from src.tracer.camera.camera import Camera, ProjectionType
from src.tracer.materials.material import LambertianSource, Material, ShaderType
from src.tracer.scene.manager import (
    SceneManager,
    rotate_x,
    rotate_y,
    rotate_z,
    scale,
    translate,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Demo Scene Parameters
# =============================================================================

BEIGE = (0.76, 0.75, 0.5)
RED = (0.63, 0.06, 0.04)
GREEN = (0.15, 0.48, 0.09)
BLACK = (0.0, 0.0, 0.0)

LIGHT_POSITION = (0.0, 4.5, 0.0)
LIGHT_RADIANCE = (1.0, 1.0, 1.0)
AMBIENT_RADIANCE = (0.0, 0.0, 0.0)

CAMERA_EYE = (0.0, 2.0, 3.0)
CAMERA_TARGET = (0.0, 0.0, 0.0)
CAMERA_NEAR = 0.5
CAMERA_FAR = 30.0


def _diffuse(
    color: tuple[float, float, float],
    texture_id: int = -1,
    mirror: bool = False,
) -> Material:
    source = LambertianSource.TEXTURE if texture_id >= 0 else LambertianSource.CONSTANT
    return Material(
        shader_type=ShaderType.PHONG,
        lambertian_source=source,
        surface_reflectance=color,
        specular_exponent=-1.0,
        texture_id=texture_id,
        mirror=mirror,
    )


def populate_demo_scene(scene: SceneManager, texture_path: str | Path | None = None) -> None:
    """Add the demo geometry, materials and lighting to a scene.

    The scene is cleared first.

    Args:
        scene: The scene manager to fill.
        texture_path: Image file for the floor texture (checkerboard if None).
    """
    scene.clear()

    if texture_path is not None:
        floor_texture = scene.load_texture(texture_path)
    else:
        floor_texture = scene.add_checker_texture()

    sphere = scene.add_sphere_geometry()
    octahedron = scene.add_octahedron_geometry()
    plane = scene.add_quad_geometry()

    quarter = math.pi / 2.0

    # Floor and top
    scene.add_object(plane, _diffuse(BEIGE, floor_texture), translate(0.0, 0.0, 0.0) @ scale(5.0, 1.0, 5.0))
    scene.add_object(
        plane,
        _diffuse(BEIGE),
        translate(0.5, 5.0, 0.0) @ rotate_z(2.0 * quarter) @ scale(5.0, 1.0, 5.0),
    )

    # Walls
    green = _diffuse(GREEN)
    scene.add_object(plane, green, translate(5.0, 2.5, 0.0) @ rotate_z(quarter) @ scale(2.5, 1.0, 5.0))
    scene.add_object(plane, green, translate(-5.0, 2.5, 0.0) @ rotate_z(-quarter) @ scale(2.5, 1.0, 5.0))
    red = _diffuse(RED)
    scene.add_object(plane, red, translate(0.0, 2.5, 5.0) @ rotate_x(-quarter) @ scale(5.0, 1.0, 2.5))
    scene.add_object(plane, red, translate(0.0, 2.5, -5.0) @ rotate_x(quarter) @ scale(5.0, 1.0, 2.5))

    # Light blocker
    beige = _diffuse(BEIGE)
    scene.add_object(sphere, beige, translate(0.0, 2.0, 0.0) @ scale(1.5, 0.15, 2.5))

    rot_scale = rotate_y(math.radians(25.0)) @ scale(0.5)
    scene.add_object(octahedron, beige, translate(0.0, 0.75, 0.0) @ rot_scale)

    mirror = _diffuse(BLACK, mirror=True)
    scene.add_object(sphere, mirror, translate(-2.0, 0.75, -2.0) @ rot_scale)
    scene.add_object(sphere, beige, translate(2.0, 0.75, -2.0) @ rot_scale)

    scene.set_ambient(AMBIENT_RADIANCE)
    scene.set_light(LIGHT_POSITION, LIGHT_RADIANCE)

    logger.debug("Demo scene built with %d objects", scene.get_object_count())


def make_demo_camera(
    width: int = 512,
    height: int = 512,
    projection: ProjectionType = ProjectionType.PERSPECTIVE,
) -> Camera:
    """Camera inside the demo box looking down at the centre of the floor."""
    camera = Camera(projection=projection, width=width, height=height)
    camera.look_at(CAMERA_EYE, CAMERA_TARGET)
    camera.set_depth_clip(CAMERA_NEAR, CAMERA_FAR)
    camera.set_image_dimensions(width, height)
    return camera


def build_demo_scene(
    width: int = 512,
    height: int = 512,
    texture_path: str | Path | None = None,
    projection: ProjectionType = ProjectionType.PERSPECTIVE,
    scene: SceneManager | None = None,
) -> Camera:
    """Build the demo scene and return a camera for it.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        texture_path: Image file for the floor texture (checkerboard if None).
        projection: Projection of the returned camera.
        scene: Scene manager to fill (a new one if None).

    Returns:
        The camera, sized to width x height.
    """
    if scene is None:
        scene = SceneManager()
    populate_demo_scene(scene, texture_path)
    return make_demo_camera(width, height, projection)
