"""Interactive preview window using Taichi GGUI.

The window is the host loop of the progressive renderer. Each frame it
handles key events, then either traces rows for one time budget (while
tracing) or moves the camera according to the held keys (while idle), and
shows the current accumulation buffer.

Controls:
    W / S: move forward / backward
    A / D: strafe left / right
    Q / E: move up / down
    Arrow keys: turn left / right, pitch up / down
    Z / C: spin left / right
    O / P: orthographic / perspective projection
    Space: start or stop tracing
    Escape: quit

Movement is scaled by the time since the last frame, at MOVEMENT_SPEED units
per second and ROTATION_SPEED radians per second. Camera keys are ignored
while tracing. Resizing the window resizes the image and restarts the
accumulation.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.tracer.core.progressive import ProgressiveRenderer
    >>> from src.tracer.preview.interactive import InteractivePreview
    >>> from src.tracer.scene.demo import build_demo_scene
    >>>
    >>> renderer = ProgressiveRenderer(build_demo_scene(512, 512))
    >>> preview = InteractivePreview(renderer)
    >>> preview.run()
"""

from __future__ import annotations

import logging
import math
import os
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING

import numpy as np
import taichi as ti

from src.tracer.camera.camera import ProjectionType

if TYPE_CHECKING:
    import numpy.typing as npt

    from src.tracer.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)

# Camera movement speed in units per second
MOVEMENT_SPEED = 2.0

# Camera rotation speed in radians per second
ROTATION_SPEED = math.radians(40.0)

# Held key -> (camera method, direction, speed)
CAMERA_KEYS: dict[str, tuple[str, float, float]] = {
    "w": ("move_forward", 1.0, MOVEMENT_SPEED),
    "s": ("move_forward", -1.0, MOVEMENT_SPEED),
    "d": ("strafe_right", 1.0, MOVEMENT_SPEED),
    "a": ("strafe_right", -1.0, MOVEMENT_SPEED),
    "q": ("move_up", 1.0, MOVEMENT_SPEED),
    "e": ("move_up", -1.0, MOVEMENT_SPEED),
    ti.ui.UP: ("rotate_up", 1.0, ROTATION_SPEED),
    ti.ui.DOWN: ("rotate_up", -1.0, ROTATION_SPEED),
    ti.ui.LEFT: ("rotate_right", 1.0, ROTATION_SPEED),
    ti.ui.RIGHT: ("rotate_right", -1.0, ROTATION_SPEED),
    "z": ("spin_camera", 1.0, ROTATION_SPEED),
    "c": ("spin_camera", -1.0, ROTATION_SPEED),
}

# Pressed key -> projection
PROJECTION_KEYS: dict[str, ProjectionType] = {
    "o": ProjectionType.ORTHOGRAPHIC,
    "p": ProjectionType.PERSPECTIVE,
}

TOGGLE_KEY = ti.ui.SPACE
QUIT_KEY = ti.ui.ESCAPE


def camera_moves(pressed: Iterable[str], dt: float) -> list[tuple[str, float]]:
    """Translate held keys and elapsed time into camera method calls.

    Args:
        pressed: Keys currently held down.
        dt: Seconds since the camera was last moved.

    Returns:
        (camera method name, amount) pairs in a fixed key order. Empty when
        dt is not positive.
    """
    if dt <= 0.0:
        return []
    held = set(pressed)
    return [
        (method, sign * speed * dt)
        for key, (method, sign, speed) in CAMERA_KEYS.items()
        if key in held
    ]


class InteractivePreview:
    """GGUI window driving a ProgressiveRenderer.

    Attributes:
        renderer: The renderer being displayed.
        width: Window width in pixels.
        height: Window height in pixels.
        gamma: Display gamma applied to the linear image.
        display_image: Taichi field holding the displayed image.
    """

    def __init__(
        self,
        renderer: ProgressiveRenderer,
        *,
        title: str = "Progressive Tracer",
        gamma: float = 2.2,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Create the preview for a renderer.

        The window itself is created on first use so the object can be built
        without a display.
        """
        self.renderer = renderer
        self.width = renderer.width
        self.height = renderer.height
        self.gamma = gamma
        self._title = title
        self._clock = clock
        self._last_move_time = clock()

        self._window: ti.ui.Window | None = None
        self._canvas: ti.ui.Canvas | None = None

        self.display_image: ti.MatrixField = ti.Vector.field(
            3, dtype=ti.f32, shape=(self.width, self.height)
        )

    def _initialize_window(self) -> None:
        if self._window is not None:
            return
        self._window = ti.ui.Window(name=self._title, res=(self.width, self.height), vsync=True)
        self._canvas = self._window.get_canvas()

    @property
    def window(self) -> ti.ui.Window:
        if self._window is None:
            self._initialize_window()
        assert self._window is not None
        return self._window

    @property
    def canvas(self) -> ti.ui.Canvas:
        if self._canvas is None:
            self._initialize_window()
        assert self._canvas is not None
        return self._canvas

    def resize(self, width: int, height: int) -> None:
        """Match the renderer and the display field to a new window size.

        The accumulation buffer restarts at pass 0.
        """
        self.renderer.resize(width, height)
        self.width = width
        self.height = height
        self.display_image = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))
        logger.info("Window resized to %dx%d", width, height)

    def update_image(self, image: npt.NDArray[np.float32]) -> None:
        """Copy a (height, width, 3) image, top row first, to the display field.

        Raises:
            ValueError: If the image shape does not match the window.
        """
        expected_shape = (self.height, self.width, 3)
        if image.shape != expected_shape:
            raise ValueError(f"Image shape {image.shape} doesn't match expected {expected_shape}")

        # Taichi fields are indexed (x, y) with y = 0 at the bottom
        self.display_image.from_numpy(
            np.ascontiguousarray(np.transpose(np.flipud(image), (1, 0, 2)))
        )

    # =========================================================================
    # Input
    # =========================================================================

    def handle_key(self, key: str) -> None:
        """React to a single key press."""
        if key == QUIT_KEY:
            self.window.running = False
        elif key == TOGGLE_KEY:
            tracing = self.renderer.toggle()
            logger.info("Ray tracing %s", "started" if tracing else "stopped")
            self._last_move_time = self._clock()
        elif key in PROJECTION_KEYS and not self.renderer.is_tracing:
            self.renderer.navigate(self.renderer.camera.set_projection, PROJECTION_KEYS[key])

    def move_camera(self, pressed: Iterable[str]) -> bool:
        """Move the camera by the held keys since the last move.

        Does nothing while tracing.

        Returns:
            Whether the camera moved.
        """
        now = self._clock()
        dt = now - self._last_move_time
        self._last_move_time = now
        if self.renderer.is_tracing:
            return False

        camera = self.renderer.camera
        moves = camera_moves(pressed, dt)
        for method, amount in moves:
            self.renderer.navigate(getattr(camera, method), amount)
        return bool(moves)

    def _held_keys(self) -> list[str]:
        return [key for key in CAMERA_KEYS if self.window.is_pressed(key)]

    # =========================================================================
    # Main Loop
    # =========================================================================

    def is_running(self) -> bool:
        return self.window.running

    def show_frame(self) -> None:
        self.canvas.set_image(self.display_image)
        self._draw_gui_panel()
        self.window.show()

    def run_frame(self) -> None:
        """Handle input, trace or navigate, and show one frame."""
        width, height = self.window.get_window_shape()
        if (width, height) != (self.width, self.height) and width > 0 and height > 0:
            self.resize(width, height)

        for event in self.window.get_events(ti.ui.PRESS):
            self.handle_key(event.key)

        if self.renderer.is_tracing:
            self.renderer.step()
        else:
            self.move_camera(self._held_keys())

        self.update_image(self.renderer.get_image_numpy(gamma=self.gamma))
        self.show_frame()

    def run(self) -> None:
        """Run until the window is closed or Escape is pressed."""
        self._initialize_window()
        self._last_move_time = self._clock()
        while self.is_running():
            self.run_frame()

    def close(self) -> None:
        if self._window is not None:
            self._window.running = False

    def _draw_gui_panel(self) -> None:
        with self.window.GUI.sub_window("Tracer", 0.02, 0.02, 0.3, 0.16) as gui:
            gui.text(f"State: {self.renderer.state.name}")
            gui.text(f"Passes: {self.renderer.pass_index}  Row: {self.renderer.row}")
            if gui.button("Export PNG"):
                self._export_png()

    def _export_png(self) -> None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"render_{timestamp}.png"
        self.renderer.save_image(filename, gamma=self.gamma)
        print(f"Exported: {filename} ({self.renderer.pass_index} passes)")

    @staticmethod
    def is_display_available() -> bool:
        """Check whether a display is available for the GGUI window."""
        if os.name == "nt":
            return True
        if os.uname().sysname == "Darwin":
            return not (os.environ.get("SSH_CONNECTION") and not os.environ.get("DISPLAY"))
        return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))
