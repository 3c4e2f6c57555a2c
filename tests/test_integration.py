"""Integration tests for the end-to-end rendering pipeline.

This module renders the demo scene from scene construction through the
progressive renderer to a saved PNG, and checks that the output meets basic
quality criteria.

Tests are designed to be fast (low resolution, few passes) while still
exercising the full pipeline.

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pytest

if TYPE_CHECKING:
    import numpy.typing as npt


def _render_demo(size: int = 24, passes: int = 2, **settings) -> npt.NDArray[np.float32]:
    from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
    from src.tracer.scene.demo import build_demo_scene

    camera = build_demo_scene(size, size)
    settings.setdefault("max_passes", passes)
    renderer = ProgressiveRenderer(camera, RenderSettings(**settings))
    renderer.render_passes(passes)
    return renderer.get_image_numpy()


class TestDemoIntegration:
    """Integration tests for demo scene rendering."""

    def test_demo_end_to_end_renders_successfully(self) -> None:
        image = _render_demo()

        assert image.shape == (24, 24, 3)
        assert image.dtype == np.float32

    def test_demo_output_is_finite_and_in_range(self) -> None:
        image = _render_demo(max_depth=3)

        assert np.all(np.isfinite(image))
        assert image.min() >= 0.0
        assert image.max() <= 1.0

    def test_demo_has_nonzero_illumination(self) -> None:
        image = _render_demo()

        assert image.mean() > 0.05
        # Red walls and green walls make the image far from gray
        assert np.abs(image[..., 0] - image[..., 1]).max() > 0.1

    def test_recursion_only_adds_light(self) -> None:
        """With fixed primary rays every pixel at depth 2 is at least its depth-0 value."""
        direct = _render_demo(passes=1, max_depth=0, jitter=False)
        recursive = _render_demo(passes=1, max_depth=2, jitter=False)

        assert np.all(recursive >= direct - 1e-5)
        assert recursive.mean() > direct.mean()

    @pytest.mark.parametrize("weighting", ["LEGACY", "COSINE_PDF"])
    def test_indirect_weightings_render(self, weighting: str) -> None:
        from src.tracer.materials.phong import IndirectWeighting

        image = _render_demo(indirect_weighting=IndirectWeighting[weighting])
        assert np.all(np.isfinite(image))
        assert image.mean() > 0.0

    def test_orthographic_demo(self) -> None:
        from src.tracer.camera.camera import ProjectionType
        from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
        from src.tracer.scene.demo import build_demo_scene

        camera = build_demo_scene(16, 16, projection=ProjectionType.ORTHOGRAPHIC)
        renderer = ProgressiveRenderer(camera, RenderSettings(max_passes=1))
        renderer.render_passes(1)

        assert renderer.is_finished
        assert renderer.get_image_numpy().shape == (16, 16, 3)

    def test_demo_save_png(self, tmp_path: Path) -> None:
        from PIL import Image

        from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
        from src.tracer.scene.demo import build_demo_scene

        renderer = ProgressiveRenderer(build_demo_scene(20, 12), RenderSettings(max_passes=1))
        renderer.render_passes(1)
        output = tmp_path / "demo.png"
        renderer.save_image(output)

        assert output.exists()
        with Image.open(output) as img:
            assert img.size == (20, 12)
            assert img.mode == "RGB"


class TestInteractiveSession:
    """Drives the renderer the way the preview loop does."""

    def test_trace_move_trace(self) -> None:
        from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings, RenderState
        from src.tracer.scene.demo import build_demo_scene

        renderer = ProgressiveRenderer(build_demo_scene(16, 16), RenderSettings(max_passes=3))

        renderer.toggle()
        while not renderer.is_finished:
            renderer.step()
        assert renderer.state == RenderState.PASS_COMPLETE
        first = renderer.get_image_numpy()

        with pytest.raises(RuntimeError):
            renderer.navigate(renderer.camera.rotate_right, 0.3)

        renderer.toggle()
        renderer.navigate(renderer.camera.rotate_right, 0.3)
        renderer.toggle()
        assert renderer.pass_index == 0

        renderer.render_passes(1)
        second = renderer.get_image_numpy()
        assert not np.allclose(first, second)
