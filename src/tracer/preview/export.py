"""Image export utilities for rendered images.

Rendered radiance is clamped to [0, 1], gamma encoded and written as an
8-bit RGB PNG through Pillow.

Example:
    >>> from src.tracer.preview.export import save_png
    >>> from src.tracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(camera)
    >>> renderer.render_passes(16)
    >>> save_png(renderer, "output.png", gamma=2.2)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from src.tracer.core.progressive import ProgressiveRenderer

DEFAULT_GAMMA = 2.2


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = DEFAULT_GAMMA,
) -> npt.NDArray[np.float32]:
    """Clamp to [0, 1] and apply gamma encoding out = in^(1/gamma).

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")

    result = np.clip(np.asarray(image, dtype=np.float32), 0.0, 1.0)
    if gamma != 1.0:
        result = np.power(result, 1.0 / gamma)
    return result.astype(np.float32)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    gamma: float = DEFAULT_GAMMA,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float image of shape (H, W, 3) to uint8.

    Values are rounded to the nearest 8-bit level.
    """
    encoded = apply_gamma(image, gamma)
    return np.round(encoded * 255.0).astype(np.uint8)


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Save a linear float image of shape (H, W, 3) as a PNG file.

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Image must have shape (H, W, 3), got {image.shape}")

    pil_image = PILImage.fromarray(image_to_uint8(image, gamma=gamma))
    pil_image.save(filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str | Path,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Save the renderer's current image as a PNG file."""
    save_png_from_array(renderer.get_image_numpy(), filepath, gamma=gamma)
