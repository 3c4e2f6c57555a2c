"""Texture pool with nearest and bilinear lookup.

Textures are RGB float images packed one after another into a single texel
field. Each texture records its offset into that field, its size, and how it
is sampled:

- Filter: NEAREST picks the closest texel, LINEAR blends the four
  surrounding texels.
- Wrap: REPEAT keeps the fractional part of each coordinate, CLAMP clamps
  each coordinate to [0, 1].

Texture coordinates map s to image columns and t to image rows, with row 0
being the first row of the image array (the top row of an image file).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.materials.texture import make_checker_texture
    >>> tex_id = make_checker_texture(size=64, checks=8)
"""

import enum
import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.tracer.core.ray import vec2, vec3

logger = logging.getLogger(__name__)


class TextureFilter(enum.IntEnum):
    """How a texture is sampled between texel centres."""

    NEAREST = 0
    LINEAR = 1


class TextureWrap(enum.IntEnum):
    """How texture coordinates outside [0, 1] are handled."""

    REPEAT = 0
    CLAMP = 1


# Plain integers for use inside Taichi funcs
FILTER_NEAREST = int(TextureFilter.NEAREST)
FILTER_LINEAR = int(TextureFilter.LINEAR)
WRAP_REPEAT = int(TextureWrap.REPEAT)
WRAP_CLAMP = int(TextureWrap.CLAMP)

# Pool capacities
MAX_TEXTURES = 16
MAX_TEXELS = 1 << 20

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())

texture_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_filters = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_wraps = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _write_texels(offset: ti.i32, image: ti.types.ndarray()):
    height = image.shape[0]
    width = image.shape[1]
    for r, c in ti.ndrange(height, width):
        texels[offset + r * width + c] = vec3(image[r, c, 0], image[r, c, 1], image[r, c, 2])


def clear_textures() -> None:
    """Remove all textures from the pool."""
    num_texels[None] = 0
    num_textures[None] = 0


def add_texture(
    image: npt.ArrayLike,
    filter_mode: TextureFilter = TextureFilter.NEAREST,
    wrap_mode: TextureWrap = TextureWrap.REPEAT,
) -> int:
    """Add an RGB image to the texture pool.

    Args:
        image: Float array of shape (height, width, 3) with values in [0, 1].
            A (height, width) array is treated as grayscale.
        filter_mode: Sampling filter.
        wrap_mode: Coordinate wrapping mode.

    Returns:
        The texture id.

    Raises:
        ValueError: If the array shape is invalid or the image is empty.
        RuntimeError: If the texture table or texel pool is full.
    """
    data = np.asarray(image, dtype=np.float32)
    if data.ndim == 2:
        data = np.repeat(data[:, :, np.newaxis], 3, axis=2)
    if data.ndim != 3 or data.shape[2] != 3:
        raise ValueError(f"Texture image must have shape (h, w, 3), got {data.shape}")
    height, width = data.shape[0], data.shape[1]
    if height == 0 or width == 0:
        raise ValueError("Texture image must not be empty")

    tex_id = int(num_textures[None])
    if tex_id >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    offset = int(num_texels[None])
    if offset + width * height > MAX_TEXELS:
        raise RuntimeError(
            f"Texture of {width}x{height} texels does not fit the texel pool "
            f"({MAX_TEXELS - offset} texels free)"
        )

    _write_texels(offset, np.ascontiguousarray(data))

    texture_offsets[tex_id] = offset
    texture_widths[tex_id] = width
    texture_heights[tex_id] = height
    texture_filters[tex_id] = int(TextureFilter(filter_mode))
    texture_wraps[tex_id] = int(TextureWrap(wrap_mode))
    num_texels[None] = offset + width * height
    num_textures[None] = tex_id + 1
    return tex_id


def load_texture(
    path: str | Path,
    filter_mode: TextureFilter = TextureFilter.NEAREST,
    wrap_mode: TextureWrap = TextureWrap.REPEAT,
) -> int:
    """Load an image file with Pillow and add it to the texture pool.

    Args:
        path: Path to any image format Pillow can read.
        filter_mode: Sampling filter.
        wrap_mode: Coordinate wrapping mode.

    Returns:
        The texture id.
    """
    from PIL import Image as PILImage

    with PILImage.open(path) as img:
        data = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
    logger.debug("Loaded texture %s (%dx%d)", path, data.shape[1], data.shape[0])
    return add_texture(data, filter_mode, wrap_mode)


def make_checker_texture(
    size: int = 64,
    checks: int = 8,
    color_a: tuple[float, float, float] = (0.9, 0.9, 0.9),
    color_b: tuple[float, float, float] = (0.35, 0.35, 0.35),
    filter_mode: TextureFilter = TextureFilter.NEAREST,
    wrap_mode: TextureWrap = TextureWrap.REPEAT,
) -> int:
    """Add a square checkerboard texture.

    Args:
        size: Width and height in texels.
        checks: Number of squares along each side.
        color_a: Color of the square containing texel (0, 0).
        color_b: The other color.

    Returns:
        The texture id.

    Raises:
        ValueError: If size or checks is not positive.
    """
    if size <= 0 or checks <= 0:
        raise ValueError(f"size and checks must be positive, got {size} and {checks}")

    cell = np.arange(size) * checks // size
    parity = (cell[:, np.newaxis] + cell[np.newaxis, :]) % 2
    image = np.where(
        parity[:, :, np.newaxis] == 0,
        np.asarray(color_a, dtype=np.float32),
        np.asarray(color_b, dtype=np.float32),
    )
    return add_texture(image, filter_mode, wrap_mode)


def get_texture_count() -> int:
    """Get the number of textures in the pool."""
    return int(num_textures[None])


def get_texture_size(tex_id: int) -> tuple[int, int]:
    """Get (width, height) of a texture.

    Raises:
        ValueError: If the id does not name an existing texture.
    """
    if tex_id < 0 or tex_id >= get_texture_count():
        raise ValueError(f"Unknown texture id {tex_id}")
    return int(texture_widths[tex_id]), int(texture_heights[tex_id])


# =============================================================================
# Lookup (Taichi funcs)
# =============================================================================


@ti.func
def _wrap_coordinate(c: ti.f32, wrap: ti.i32) -> ti.f32:
    result = tm.clamp(c, 0.0, 1.0)
    if wrap == WRAP_REPEAT:
        result = c - ti.floor(c)
    return result


@ti.func
def _fetch(tex_id: ti.i32, row: ti.i32, col: ti.i32) -> vec3:
    return texels[texture_offsets[tex_id] + row * texture_widths[tex_id] + col]


@ti.func
def texture_lookup(tex_id: ti.i32, st: vec2) -> vec3:
    """Sample a texture at texture coordinates st.

    Args:
        tex_id: The texture to sample. Negative ids return white.
        st: Texture coordinates (s along columns, t along rows).

    Returns:
        The filtered RGB value.
    """
    color = vec3(1.0, 1.0, 1.0)

    if tex_id >= 0:
        width = texture_widths[tex_id]
        height = texture_heights[tex_id]
        wrap = texture_wraps[tex_id]
        s = _wrap_coordinate(st[0], wrap)
        t = _wrap_coordinate(st[1], wrap)

        x = s * ti.cast(width - 1, ti.f32)
        y = t * ti.cast(height - 1, ti.f32)

        if texture_filters[tex_id] == FILTER_NEAREST:
            col = ti.min(ti.cast(x + 0.5, ti.i32), width - 1)
            row = ti.min(ti.cast(y + 0.5, ti.i32), height - 1)
            color = _fetch(tex_id, row, col)
        else:
            low_x = ti.min(ti.cast(ti.floor(x), ti.i32), width - 1)
            low_y = ti.min(ti.cast(ti.floor(y), ti.i32), height - 1)
            high_x = ti.min(low_x + 1, width - 1)
            high_y = ti.min(low_y + 1, height - 1)
            fx = x - ti.cast(low_x, ti.f32)
            fy = y - ti.cast(low_y, ti.f32)

            top = (1.0 - fx) * _fetch(tex_id, low_y, low_x) + fx * _fetch(tex_id, low_y, high_x)
            bottom = (1.0 - fx) * _fetch(tex_id, high_y, low_x) + fx * _fetch(tex_id, high_y, high_x)
            color = (1.0 - fy) * top + fy * bottom

    return color
