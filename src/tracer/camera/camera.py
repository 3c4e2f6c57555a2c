"""Movable camera with perspective and orthographic projection.

The camera keeps an orthonormal frame in world space:

- u: right
- v: up
- w: view direction (the camera looks along +w)

and a view plane at distance `near` along w whose extents follow from the
field of view and aspect ratio:

    top = tan(fov / 2) * near,  right = aspect * top,  left = -right,  bottom = -top

Pixel centres sit at integer image coordinates, so x ranges over
[-0.5, width - 0.5] and maps to the view plane as

    us = left + (right - left) * (x + 0.5) / width
    vs = bottom + (top - bottom) * (y + 0.5) / height

A perspective ray leaves the camera position toward us*u + vs*v + near*w;
an orthographic ray leaves the view plane point position + us*u + vs*v
along w.

The host Camera owns the state and is moved with the navigation methods.
setup_camera() uploads it to Taichi fields for gen_view_ray() in kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.camera.camera import Camera, ProjectionType, setup_camera
    >>> camera = Camera(projection=ProjectionType.PERSPECTIVE)
    >>> camera.look_at((0.0, 2.0, 3.0), (0.0, 0.0, 0.0))
    >>> camera.set_image_dimensions(512, 512)
    >>> setup_camera(camera)
"""

import enum
import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import Ray, make_ray, vec3

Vec3Like = npt.ArrayLike


class ProjectionType(enum.IntEnum):
    """Camera projection."""

    PERSPECTIVE = 0
    ORTHOGRAPHIC = 1


PROJECTION_PERSPECTIVE = int(ProjectionType.PERSPECTIVE)


def _normalize(v: np.ndarray) -> np.ndarray:
    return v / np.linalg.norm(v)


def _rotate_about(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues rotation of v about a unit axis by angle radians."""
    c = math.cos(angle)
    s = math.sin(angle)
    return v * c + np.cross(axis, v) * s + axis * np.dot(axis, v) * (1.0 - c)


def _vec(value: Vec3Like) -> np.ndarray:
    v = np.asarray(value, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {v.shape}")
    return v.copy()


# =============================================================================
# Host Camera
# =============================================================================


@dataclass
class Camera:
    """Camera position, frame, projection and image size.

    Attributes:
        position: Eye position in world space.
        right: Unit right vector u.
        up: Unit up vector v.
        view_dir: Unit view direction w.
        projection: PERSPECTIVE or ORTHOGRAPHIC.
        fov: Vertical field of view in degrees.
        aspect: Width / height of the view plane.
        near: Distance to the near plane (the view plane).
        far: Distance to the far plane.
        width: Image width in pixels.
        height: Image height in pixels.
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    right: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0]))
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    view_dir: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, -1.0]))
    projection: ProjectionType = ProjectionType.ORTHOGRAPHIC
    fov: float = 60.0
    aspect: float = 1.0
    near: float = 1.0
    far: float = 30.0
    width: int = 512
    height: int = 512

    def __post_init__(self) -> None:
        self.position = _vec(self.position)
        self.right = _vec(self.right)
        self.up = _vec(self.up)
        self.view_dir = _vec(self.view_dir)
        self.projection = ProjectionType(self.projection)
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def look_at(self, eye: Vec3Like, target: Vec3Like, up: Vec3Like = (0.0, 1.0, 0.0)) -> None:
        """Place the camera at eye looking at target.

        up must not be parallel to target - eye.
        """
        self.position = _vec(eye)
        self.view_dir = _normalize(_vec(target) - self.position)
        self.right = _normalize(np.cross(self.view_dir, _vec(up)))
        self.up = _normalize(np.cross(self.right, self.view_dir))

    def set_fov(self, degrees: float) -> None:
        self.fov = float(degrees)

    def set_aspect(self, aspect: float) -> None:
        self.aspect = float(aspect)

    def set_depth_clip(self, near: float, far: float) -> None:
        self.near = float(near)
        self.far = float(far)

    def set_projection(self, projection: ProjectionType) -> None:
        self.projection = ProjectionType(projection)

    def set_image_dimensions(self, width: int, height: int) -> None:
        """Set the image size and match the aspect ratio to it.

        Raises:
            ValueError: If either dimension is not positive.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.aspect = self.width / self.height

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def move_forward(self, distance: float) -> None:
        self.position = self.position + distance * _normalize(self.view_dir)

    def move_up(self, distance: float) -> None:
        self.position = self.position + distance * _normalize(self.up)

    def strafe_right(self, distance: float) -> None:
        self.position = self.position + distance * _normalize(self.right)

    def rotate_right(self, angle: float) -> None:
        """Turn about the up vector; positive angles turn toward -u.

        Args:
            angle: Rotation in radians.
        """
        self.right = _normalize(_rotate_about(self.right, _normalize(self.up), angle))
        self.view_dir = _normalize(np.cross(self.up, self.right))
        self.up = _normalize(np.cross(self.right, self.view_dir))
        self._orthonormalize()

    def rotate_up(self, angle: float) -> None:
        """Pitch about the right vector.

        Args:
            angle: Rotation in radians.
        """
        self.view_dir = _normalize(_rotate_about(self.view_dir, _normalize(self.right), angle))
        self.up = _normalize(np.cross(self.right, self.view_dir))
        self._orthonormalize()

    def spin_camera(self, angle: float) -> None:
        """Roll about the view direction.

        Args:
            angle: Rotation in radians.
        """
        self.up = _normalize(_rotate_about(self.up, _normalize(self.view_dir), angle))
        self.right = _normalize(np.cross(self.view_dir, self.up))
        self._orthonormalize()

    def _orthonormalize(self) -> None:
        # Keeps u, v, w orthonormal against accumulated rounding
        self.view_dir = _normalize(self.view_dir)
        self.right = _normalize(np.cross(self.view_dir, self.up))
        self.up = np.cross(self.right, self.view_dir)

    # -------------------------------------------------------------------------
    # Matrices and ray generation
    # -------------------------------------------------------------------------

    def view_plane_extents(self) -> tuple[float, float, float, float]:
        """Return (left, right, bottom, top) of the view plane."""
        top = math.tan(math.radians(self.fov) / 2.0) * self.near
        right = self.aspect * top
        return -right, right, -top, top

    def world_view(self) -> np.ndarray:
        """World-to-camera matrix: rows u, v, w after translating by -position."""
        rotation = np.eye(4)
        rotation[0, :3] = self.right
        rotation[1, :3] = self.up
        rotation[2, :3] = self.view_dir
        translation = np.eye(4)
        translation[:3, 3] = -self.position
        return rotation @ translation

    def perspective_matrix(self) -> np.ndarray:
        n, f = self.near, self.far
        return np.array(
            [
                [n, 0.0, 0.0, 0.0],
                [0.0, n, 0.0, 0.0],
                [0.0, 0.0, n + f, -n * f],
                [0.0, 0.0, 1.0, 0.0],
            ]
        )

    def ortho_matrix(self) -> np.ndarray:
        """Map the view volume [l, r] x [b, t] x [near, far] to [-1, 1]^3."""
        left, right, bottom, top = self.view_plane_extents()
        n, f = self.near, self.far
        return np.array(
            [
                [2.0 / (right - left), 0.0, 0.0, -(right + left) / (right - left)],
                [0.0, 2.0 / (top - bottom), 0.0, -(top + bottom) / (top - bottom)],
                [0.0, 0.0, 2.0 / (f - n), -(f + n) / (f - n)],
                [0.0, 0.0, 0.0, 1.0],
            ]
        )

    def projection_matrix(self) -> np.ndarray:
        if self.projection == ProjectionType.PERSPECTIVE:
            return self.ortho_matrix() @ self.perspective_matrix()
        return self.ortho_matrix()

    def gen_view_ray(self, x: float, y: float) -> tuple[np.ndarray, np.ndarray]:
        """Generate the primary ray through image coordinates (x, y).

        Args:
            x: Horizontal image coordinate; pixel centres are integers.
            y: Vertical image coordinate, 0 at the bottom row.

        Returns:
            Tuple of (origin, direction) arrays.
        """
        left, right, bottom, top = self.view_plane_extents()
        us = left + (right - left) * (x + 0.5) / self.width
        vs = bottom + (top - bottom) * (y + 0.5) / self.height

        if self.projection == ProjectionType.PERSPECTIVE:
            origin = self.position.copy()
            direction = _normalize(us * self.right + vs * self.up + self.near * self.view_dir)
        else:
            origin = self.position + us * self.right + vs * self.up
            direction = self.view_dir.copy()
        return origin, direction

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the viewpoint to a JSON-compatible dict."""
        return {
            "position": self.position.tolist(),
            "right": self.right.tolist(),
            "up": self.up.tolist(),
            "view_dir": self.view_dir.tolist(),
            "projection": self.projection.name,
            "fov": self.fov,
            "aspect": self.aspect,
            "near": self.near,
            "far": self.far,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Camera":
        kwargs = dict(data)
        if "projection" in kwargs:
            kwargs["projection"] = ProjectionType[kwargs["projection"]]
        return cls(**kwargs)


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_position = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

# (left, right, bottom, top) of the view plane
_view_plane = ti.Vector.field(4, dtype=ti.f32, shape=())
_depth_clip = ti.Vector.field(2, dtype=ti.f32, shape=())
_image_size = ti.Vector.field(2, dtype=ti.i32, shape=())
_projection = ti.field(dtype=ti.i32, shape=())


def setup_camera(camera: Camera) -> None:
    """Upload the camera state for use by gen_view_ray() in kernels.

    Must be called again after the camera moves or changes projection.
    """
    _camera_position[None] = camera.position.astype(np.float32).tolist()
    _camera_u[None] = camera.right.astype(np.float32).tolist()
    _camera_v[None] = camera.up.astype(np.float32).tolist()
    _camera_w[None] = camera.view_dir.astype(np.float32).tolist()
    _view_plane[None] = list(camera.view_plane_extents())
    _depth_clip[None] = [camera.near, camera.far]
    _image_size[None] = [camera.width, camera.height]
    _projection[None] = int(camera.projection)


def get_camera_info() -> dict[str, Any]:
    """Get the uploaded camera state for debugging."""
    position = _camera_position[None]
    u_vec = _camera_u[None]
    v_vec = _camera_v[None]
    w_vec = _camera_w[None]
    clip = _depth_clip[None]
    return {
        "position": (float(position[0]), float(position[1]), float(position[2])),
        "u": (float(u_vec[0]), float(u_vec[1]), float(u_vec[2])),
        "v": (float(v_vec[0]), float(v_vec[1]), float(v_vec[2])),
        "w": (float(w_vec[0]), float(w_vec[1]), float(w_vec[2])),
        "near": float(clip[0]),
        "far": float(clip[1]),
        "projection": ProjectionType(int(_projection[None])),
    }


# =============================================================================
# Ray Generation (Taichi funcs)
# =============================================================================


@ti.func
def gen_view_ray(x: ti.f32, y: ti.f32) -> Ray:
    """Generate the primary ray through image coordinates (x, y).

    Kernel counterpart of Camera.gen_view_ray(); uses the state uploaded by
    setup_camera().
    """
    extents = _view_plane[None]
    size = _image_size[None]
    us = extents[0] + (extents[1] - extents[0]) * (x + 0.5) / ti.cast(size[0], ti.f32)
    vs = extents[2] + (extents[3] - extents[2]) * (y + 0.5) / ti.cast(size[1], ti.f32)

    u = _camera_u[None]
    v = _camera_v[None]
    w = _camera_w[None]
    origin = _camera_position[None]
    direction = w

    if _projection[None] == PROJECTION_PERSPECTIVE:
        direction = tm.normalize(us * u + vs * v + _depth_clip[None][0] * w)
    else:
        origin = origin + us * u + vs * v

    return make_ray(origin, direction)


@ti.func
def camera_depth_clip():
    """Return (near, far) of the uploaded camera."""
    clip = _depth_clip[None]
    return clip[0], clip[1]
