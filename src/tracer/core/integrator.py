"""Accumulation buffer and row-tracing kernel.

Each pass over the image traces every row once. Tracing a row casts one
camera ray per pixel (jittered inside the pixel when enabled), shades the
nearest hit within the camera's [near, far] range and folds the sample into
the pixel's running mean:

    avg <- (p * avg + sample) / (p + 1)

where p is the number of completed passes. Misses are black, and samples
that come out non-finite are replaced by black so a single bad ray cannot
poison a pixel for the rest of the accumulation.

The buffer is preallocated at MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT and indexed
[x, y] with y = 0 at the bottom row; get_image_numpy() returns it top row
first in the usual (height, width, 3) layout.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.core.integrator import setup_render_target, trace_row
    >>> from src.tracer.camera.camera import Camera, setup_camera
    >>> camera = Camera(width=64, height=64)
    >>> setup_camera(camera)
    >>> setup_render_target(64, 64)
    >>> for row in range(64):
    ...     trace_row(row, pass_index=0, depth=2)
"""

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti

from src.tracer.camera.camera import camera_depth_clip, gen_view_ray
from src.tracer.core.ray import is_finite, vec3
from src.tracer.scene.intersection import intersect_scene
from src.tracer.scene.shading import MAX_LANES, check_ray_depth, shade_ray

logger = logging.getLogger(__name__)

# =============================================================================
# Render Target (Accumulation Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = MAX_LANES
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Running mean of all passes so far
_accum_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image dimensions and clear the buffer.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If a dimension is not positive or exceeds the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()
    logger.debug("Render target set to %dx%d", width, height)


def clear_render_target() -> None:
    """Clear the accumulation buffer to black."""
    _accum_buffer.fill(0.0)


def reset_render_target() -> None:
    """Forget the render target entirely (dimensions and contents)."""
    _render_target_initialized[None] = 0
    _image_width[None] = 0
    _image_height[None] = 0
    clear_render_target()


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_image() -> "ti.MatrixField":
    """Get the raw accumulation buffer.

    Note: This returns the full preallocated buffer. Use
    get_image_dimensions() to determine the active region.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    return _accum_buffer


# =============================================================================
# Accumulation (Taichi funcs and kernels)
# =============================================================================


@ti.func
def running_mean(avg: vec3, sample: vec3, passes: ti.i32) -> vec3:
    """Mean after adding sample to an average of `passes` earlier samples."""
    p = ti.cast(passes, ti.f32)
    return (p * avg + sample) / (p + 1.0)


@ti.kernel
def _trace_row(row: ti.i32, pass_index: ti.i32, width: ti.i32, depth: ti.i32, jitter: ti.i32):
    for c in range(width):
        x = ti.cast(c, ti.f32)
        y = ti.cast(row, ti.f32)
        if jitter == 1:
            x = x - 0.5 + ti.random(ti.f32)
            y = y - 0.5 + ti.random(ti.f32)

        ray = gen_view_ray(x, y)
        near, far = camera_depth_clip()
        rec = intersect_scene(ray.origin, ray.direction, near, far)

        color = vec3(0.0, 0.0, 0.0)
        if rec.hit == 1:
            color = shade_ray(ray.origin, ray.direction, rec, depth, c)
        if is_finite(color) == 0:
            color = vec3(0.0, 0.0, 0.0)

        _accum_buffer[c, row] = running_mean(_accum_buffer[c, row], color, pass_index)


@ti.kernel
def _merge_row(row: ti.i32, pass_index: ti.i32, samples: ti.types.ndarray()):
    for c in range(samples.shape[0]):
        sample = vec3(samples[c, 0], samples[c, 1], samples[c, 2])
        _accum_buffer[c, row] = running_mean(_accum_buffer[c, row], sample, pass_index)


def _check_row(row: int, pass_index: int) -> None:
    _check_render_target_initialized()
    _, height = get_image_dimensions()
    if row < 0 or row >= height:
        raise ValueError(f"Row {row} outside image of height {height}")
    if pass_index < 0:
        raise ValueError(f"Pass index must be non-negative, got {pass_index}")


def trace_row(row: int, pass_index: int, depth: int, jitter: bool = True) -> None:
    """Trace one image row and merge it into the running mean.

    The camera must have been uploaded with setup_camera() and match the
    render target's dimensions.

    Args:
        row: Row to trace (0 = bottom).
        pass_index: Number of passes already averaged into this row.
        depth: Recursion depth for shading.
        jitter: Whether to jitter the sample inside each pixel.

    Raises:
        RuntimeError: If the render target has not been set up.
        ValueError: If row, pass_index or depth is out of range.
    """
    _check_row(row, pass_index)
    check_ray_depth(depth)
    width, _ = get_image_dimensions()
    _trace_row(row, pass_index, width, depth, 1 if jitter else 0)


def accumulate_row(row: int, pass_index: int, samples: npt.ArrayLike) -> None:
    """Merge externally computed samples for one row into the running mean.

    Args:
        row: Row to update (0 = bottom).
        pass_index: Number of passes already averaged into this row.
        samples: Array of shape (width, 3).

    Raises:
        RuntimeError: If the render target has not been set up.
        ValueError: If the row, pass index or sample shape is invalid.
    """
    _check_row(row, pass_index)
    width, _ = get_image_dimensions()
    data = np.ascontiguousarray(samples, dtype=np.float32)
    if data.shape != (width, 3):
        raise ValueError(f"Row samples must have shape ({width}, 3), got {data.shape}")
    _merge_row(row, pass_index, data)


# =============================================================================
# Image Access
# =============================================================================


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the accumulated image as a NumPy array.

    Returns:
        Array of shape (height, width, 3), top row first, clamped to [0, 1].

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _accum_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) -> (height, width, 3), bottom row last
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.clip(image, 0.0, 1.0).astype(np.float32)


def get_pixel(x: int, y: int) -> tuple[float, float, float]:
    """Get the running mean of one pixel (y = 0 is the bottom row)."""
    _check_render_target_initialized()
    value = _accum_buffer[x, y]
    return float(value[0]), float(value[1]), float(value[2])


def save_image(filepath: str | Path, gamma: float = 2.2) -> None:
    """Save the accumulated image as a gamma-encoded 8-bit PNG.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    from src.tracer.preview.export import save_png_from_array

    save_png_from_array(get_image_numpy(), filepath, gamma=gamma)
