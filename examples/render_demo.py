#!/usr/bin/env python3
"""Render the demo box scene to a PNG.

Builds the demo scene, accumulates a number of progressive passes and writes
the gamma-encoded result.

Usage:
    python -m examples.render_demo [options]

Options:
    --width WIDTH         Image width in pixels (default: 512)
    --height HEIGHT       Image height in pixels (default: 512)
    --passes PASSES       Number of passes to accumulate (default: 64)
    --depth DEPTH         Recursion depth for shading (default: 2)
    --output OUTPUT       Output file path (default: demo.png)
    --gamma GAMMA         Output gamma (default: 2.2)
    --weighting MODE      Indirect weighting: legacy or cosine_pdf
    --texture PATH        Floor texture image (default: checkerboard)
    --orthographic        Use an orthographic camera
    --no-jitter           Trace pixel centres only
    --quiet               Suppress progress output

Example:
    python -m examples.render_demo --width 256 --height 256 --passes 32
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the demo box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=512, help="Image width in pixels (default: 512)")
    parser.add_argument("--height", type=int, default=512, help="Image height in pixels (default: 512)")
    parser.add_argument(
        "--passes",
        type=int,
        default=64,
        help="Number of passes to accumulate (default: 64)",
    )
    parser.add_argument("--depth", type=int, default=2, help="Recursion depth for shading (default: 2)")
    parser.add_argument("--output", type=str, default="demo.png", help="Output file path (default: demo.png)")
    parser.add_argument("--gamma", type=float, default=2.2, help="Output gamma (default: 2.2)")
    parser.add_argument(
        "--weighting",
        choices=["legacy", "cosine_pdf"],
        default="legacy",
        help="Weighting of indirect diffuse samples (default: legacy)",
    )
    parser.add_argument("--texture", type=str, default=None, help="Floor texture image (default: checkerboard)")
    parser.add_argument("--orthographic", action="store_true", help="Use an orthographic camera")
    parser.add_argument("--no-jitter", action="store_true", help="Trace pixel centres only")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_demo(
    width: int = 512,
    height: int = 512,
    num_passes: int = 64,
    depth: int = 2,
    output_path: str = "demo.png",
    gamma: float = 2.2,
    weighting: str = "legacy",
    texture_path: str | None = None,
    orthographic: bool = False,
    jitter: bool = True,
    quiet: bool = False,
) -> Path:
    """Render the demo scene and save it.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so Taichi is initialized first
    from src.tracer.camera.camera import ProjectionType
    from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
    from src.tracer.materials.phong import IndirectWeighting
    from src.tracer.scene.demo import build_demo_scene

    if not quiet:
        print(f"Creating demo scene ({width}x{height})...")

    projection = ProjectionType.ORTHOGRAPHIC if orthographic else ProjectionType.PERSPECTIVE
    camera = build_demo_scene(width, height, texture_path=texture_path, projection=projection)

    settings = RenderSettings(
        max_passes=max(num_passes, 1),
        max_depth=depth,
        jitter=jitter,
        indirect_weighting=IndirectWeighting[weighting.upper()],
    )
    renderer = ProgressiveRenderer(camera, settings)

    if not quiet:
        print(f"Rendering {num_passes} passes at depth {depth}...")

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            passes_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} passes "
                f"({progress_pct:.1f}%) - {passes_per_sec:.2f} passes/s",
                end="",
                flush=True,
            )

    renderer.render_passes(num_passes, callback=progress_callback)

    if not quiet:
        print()

    output_file = Path(output_path)
    renderer.save_image(output_file, gamma=gamma)

    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu)
        if not args.quiet:
            print("Using GPU backend")
    except Exception:
        ti.init(arch=ti.cpu)
        if not args.quiet:
            print("Using CPU backend")

    try:
        render_demo(
            width=args.width,
            height=args.height,
            num_passes=args.passes,
            depth=args.depth,
            output_path=args.output,
            gamma=args.gamma,
            weighting=args.weighting,
            texture_path=args.texture,
            orthographic=args.orthographic,
            jitter=not args.no_jitter,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
