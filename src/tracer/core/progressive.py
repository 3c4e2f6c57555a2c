"""Progressive renderer with time-budgeted row stepping.

The renderer refines the image one pass at a time. Each pass traces every
row once and folds the new samples into a per-pixel running mean, so the
image keeps improving for as long as tracing runs.

Work is split into steps so the host loop stays responsive: step() traces
rows starting at the resume cursor until the pass is finished or the time
budget has elapsed, then returns. At least one row is traced per step.

States:
    IDLE: not tracing. The camera may be moved.
    IN_PASS: tracing, some rows of the current pass remain.
    PASS_COMPLETE: tracing, every row of the current pass is done. The next
        step starts another pass unless max_passes passes are complete.

A camera change or resize resets the buffer (no passes, row 0, all black).
Stopping keeps the resume cursor; rows already merged stay in the mean and
a later start() continues from the same row unless the camera changed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.tracer.camera.camera import Camera
    >>> from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
    >>> from src.tracer.scene.demo import build_demo_scene
    >>>
    >>> camera = build_demo_scene(width=256, height=256)
    >>> renderer = ProgressiveRenderer(camera, RenderSettings(max_passes=16))
    >>> renderer.render_passes(16)
    >>> image = renderer.get_image_numpy()
"""

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt

from src.tracer.camera.camera import Camera, setup_camera
from src.tracer.core.integrator import (
    clear_render_target,
    get_image_numpy,
    save_image,
    setup_render_target,
    trace_row,
)
from src.tracer.materials.phong import IndirectWeighting
from src.tracer.scene.shading import MAX_RAY_DEPTH, set_indirect_weighting

logger = logging.getLogger(__name__)

# Traces one row: receives (row, pass_index)
RowTracer = Callable[[int, int], None]

# Callback receives (passes_completed, target_passes)
ProgressCallback = Callable[[int, int], None]


class RenderState(enum.Enum):
    """Progressive renderer state."""

    IDLE = "idle"
    IN_PASS = "in_pass"
    PASS_COMPLETE = "pass_complete"


@dataclass
class RenderSettings:
    """Progressive rendering configuration.

    Attributes:
        time_budget: Seconds of row tracing per step.
        max_passes: Number of passes after which refinement stops.
        max_depth: Recursion depth for shading primary rays.
        jitter: Jitter primary rays inside each pixel.
        indirect_weighting: Weighting of indirect diffuse samples.

    Raises:
        ValueError: If a value is out of range.
    """

    time_budget: float = 0.1
    max_passes: int = 500
    max_depth: int = 2
    jitter: bool = True
    indirect_weighting: IndirectWeighting = IndirectWeighting.LEGACY

    def __post_init__(self) -> None:
        if self.time_budget <= 0.0:
            raise ValueError(f"time_budget must be positive, got {self.time_budget}")
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {self.max_passes}")
        if self.max_depth < 0 or self.max_depth > MAX_RAY_DEPTH:
            raise ValueError(f"max_depth must be in [0, {MAX_RAY_DEPTH}], got {self.max_depth}")
        self.indirect_weighting = IndirectWeighting(self.indirect_weighting)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["indirect_weighting"] = self.indirect_weighting.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderSettings":
        kwargs = dict(data)
        if "indirect_weighting" in kwargs:
            kwargs["indirect_weighting"] = IndirectWeighting[kwargs["indirect_weighting"]]
        return cls(**kwargs)


class ProgressiveRenderer:
    """Drives row-at-a-time progressive refinement of one camera's view.

    The renderer owns the accumulation buffer (a module-level Taichi field in
    core.integrator) and the resume cursor. The camera is shared with the
    host, which may only move it through navigate() while not tracing.

    Attributes:
        camera: The camera being rendered.
        settings: Rendering configuration.
    """

    def __init__(
        self,
        camera: Camera,
        settings: RenderSettings | None = None,
        clock: Callable[[], float] = time.perf_counter,
        row_tracer: RowTracer | None = None,
    ) -> None:
        """Initialize the renderer and its buffer.

        Args:
            camera: The camera to render through; its image dimensions size
                the accumulation buffer.
            settings: Rendering configuration (defaults to RenderSettings()).
            clock: Monotonic clock in seconds used for the time budget.
            row_tracer: Replaces the Taichi row kernel, mainly for testing.

        Raises:
            ValueError: If the camera's dimensions exceed the buffer maximum.
        """
        self.camera = camera
        self.settings = settings if settings is not None else RenderSettings()
        self._clock = clock
        self._row_tracer = row_tracer if row_tracer is not None else self._trace_row
        self._tracing = False
        self._row = 0
        self._passes = 0
        self._camera_dirty = True
        self._final_logged = False

        setup_render_target(camera.width, camera.height)
        setup_camera(camera)
        set_indirect_weighting(self.settings.indirect_weighting)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.camera.width

    @property
    def height(self) -> int:
        return self.camera.height

    @property
    def state(self) -> RenderState:
        if not self._tracing:
            return RenderState.IDLE
        if self._row < self.height:
            return RenderState.IN_PASS
        return RenderState.PASS_COMPLETE

    @property
    def is_tracing(self) -> bool:
        return self._tracing

    @property
    def pass_index(self) -> int:
        """Number of completed passes (the weight p of the running mean)."""
        return self._passes

    @property
    def row(self) -> int:
        """Next row to trace in the current pass."""
        return self._row

    @property
    def is_finished(self) -> bool:
        """Whether max_passes passes have been accumulated."""
        return self._passes >= self.settings.max_passes

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Enter tracing mode.

        If the camera changed since the last reset, the buffer is cleared
        first; otherwise tracing resumes where it stopped.
        """
        if self._tracing:
            return
        if self._camera_dirty:
            self.reset()
        self._tracing = True
        logger.debug("Tracing started at pass %d, row %d", self._passes, self._row)

    def stop(self) -> None:
        """Leave tracing mode. Merged rows are kept and the cursor is not reset."""
        if not self._tracing:
            return
        self._tracing = False
        logger.debug("Tracing stopped at pass %d, row %d", self._passes, self._row)

    def toggle(self) -> bool:
        """Start if idle, stop if tracing. Returns the new tracing flag."""
        if self._tracing:
            self.stop()
        else:
            self.start()
        return self._tracing

    def reset(self) -> None:
        """Clear the buffer and restart at pass 0, row 0.

        The camera is re-uploaded, so this also applies pending camera
        changes. The tracing flag is unchanged.
        """
        clear_render_target()
        setup_camera(self.camera)
        set_indirect_weighting(self.settings.indirect_weighting)
        self._row = 0
        self._passes = 0
        self._camera_dirty = False
        self._final_logged = False
        logger.debug("Accumulation buffer reset")

    def camera_changed(self) -> None:
        """Mark the camera as moved; the next start() resets the buffer."""
        self._camera_dirty = True

    def navigate(self, move: Callable[..., Any], *args: Any) -> Any:
        """Apply a camera movement while idle.

        Args:
            move: A camera method such as camera.move_forward.
            *args: Arguments for move.

        Returns:
            Whatever move returns.

        Raises:
            RuntimeError: If tracing is active.
        """
        if self._tracing:
            raise RuntimeError("Camera cannot be moved while tracing")
        result = move(*args)
        self.camera_changed()
        return result

    def resize(self, width: int, height: int) -> None:
        """Resize the camera image and the buffer together, then reset.

        Raises:
            ValueError: If the dimensions are invalid or too large.
        """
        setup_render_target(width, height)
        self.camera.set_image_dimensions(width, height)
        self.reset()
        logger.debug("Renderer resized to %dx%d", width, height)

    # -------------------------------------------------------------------------
    # Stepping
    # -------------------------------------------------------------------------

    def _trace_row(self, row: int, pass_index: int) -> None:
        trace_row(row, pass_index, self.settings.max_depth, self.settings.jitter)

    def step(self) -> int:
        """Trace rows for up to one time budget.

        Returns:
            The number of rows traced (0 when idle or finished).
        """
        if not self._tracing:
            return 0

        if self._row >= self.height:
            if self.is_finished:
                return 0
            self._row = 0

        start = self._clock()
        traced = 0
        while True:
            self._row_tracer(self._row, self._passes)
            self._row += 1
            traced += 1
            if self._row >= self.height or self._clock() - start >= self.settings.time_budget:
                break

        if self._row >= self.height:
            self._passes += 1
            if self.is_finished:
                if not self._final_logged:
                    logger.info("Final pass %d complete", self._passes)
                    self._final_logged = True
            else:
                logger.info("Pass %d complete", self._passes)

        return traced

    def render_passes(
        self,
        num_passes: int,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Step until num_passes more passes are complete (blocking).

        Tracing is started if needed and left running. The target is capped
        at settings.max_passes.

        Args:
            num_passes: Number of additional passes to accumulate.
            callback: Called after each completed pass with
                (passes_completed, target_passes).
        """
        if num_passes <= 0:
            return

        self.start()
        target = min(self._passes + num_passes, self.settings.max_passes)
        while self._passes < target:
            before = self._passes
            self.step()
            if callback is not None and self._passes != before:
                callback(self._passes, target)

    # -------------------------------------------------------------------------
    # Image access
    # -------------------------------------------------------------------------

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """Get the image as (height, width, 3) float32 in [0, 1], top row first.

        Args:
            gamma: Gamma encoding to apply (1.0 returns linear values).
        """
        image = get_image_numpy()
        if gamma != 1.0:
            image = np.power(image, 1.0 / gamma).astype(np.float32)
        return image

    def save_image(self, filepath: str | Path, gamma: float = 2.2) -> None:
        """Save the current image as a PNG."""
        save_image(filepath, gamma=gamma)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"state={self.state.name}, passes={self._passes}, row={self._row})"
        )
