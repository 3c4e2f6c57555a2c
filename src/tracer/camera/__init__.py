"""Camera module for view and ray generation.

Components:
    camera: Movable camera with perspective and orthographic projection

Camera responsibilities:
    - Keep an orthonormal frame (u right, v up, w view direction)
    - Navigate: move along the frame axes, turn, pitch and roll
    - Build world-view and projection matrices
    - Map image coordinates (pixel centres at integers) to world-space rays

Ray generation runs on the host through Camera.gen_view_ray() and in
kernels through gen_view_ray() after setup_camera() uploads the state.

Note: importing this package allocates the camera fields, so call
ti.init() first.
"""

from .camera import (
    Camera,
    ProjectionType,
    camera_depth_clip,
    gen_view_ray,
    get_camera_info,
    setup_camera,
)

__all__ = [
    "Camera",
    "ProjectionType",
    "setup_camera",
    "get_camera_info",
    "gen_view_ray",
    "camera_depth_clip",
]
