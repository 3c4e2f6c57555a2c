"""Preview module for output and visualization.

Components:
    export: Gamma-encoded PNG export through Pillow
    interactive: Taichi GGUI host loop for the progressive renderer

Example:
    >>> from src.tracer.preview import InteractivePreview, save_png
    >>> from src.tracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(camera)
    >>> renderer.render_passes(16)
    >>> save_png(renderer, "output.png", gamma=2.2)
    >>> InteractivePreview(renderer).run()
"""

from src.tracer.preview.export import (
    DEFAULT_GAMMA,
    apply_gamma,
    image_to_uint8,
    save_png,
    save_png_from_array,
)
from src.tracer.preview.interactive import (
    CAMERA_KEYS,
    MOVEMENT_SPEED,
    ROTATION_SPEED,
    InteractivePreview,
    camera_moves,
)

__all__ = [
    # Interactive preview
    "InteractivePreview",
    "camera_moves",
    "CAMERA_KEYS",
    "MOVEMENT_SPEED",
    "ROTATION_SPEED",
    # Export functions
    "save_png",
    "save_png_from_array",
    "image_to_uint8",
    "apply_gamma",
    "DEFAULT_GAMMA",
]
