#!/usr/bin/env python3
"""Interactive progressive ray tracing of the demo box scene.

Usage:
    python -m examples.interactive_demo [--width W] [--height H] [--depth D]

Controls:
    W/S, A/D, Q/E: move the camera (while not tracing)
    Arrow keys, Z/C: turn and spin the camera (while not tracing)
    O/P: orthographic / perspective projection
    Space: start or stop ray tracing
    Export PNG button: save the current image
    Escape: quit
"""

from __future__ import annotations

import argparse
import logging
import platform
import sys

import taichi as ti


def initialize_taichi() -> str:
    """Initialize Taichi with the best available backend.

    Returns:
        Name of the backend being used.
    """
    if platform.system() == "Darwin":
        try:
            ti.init(arch=ti.metal)
            return "Metal (GPU)"
        except Exception:
            pass

    try:
        ti.init(arch=ti.gpu)
        return "GPU"
    except Exception:
        pass

    ti.init(arch=ti.cpu)
    return "CPU"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive demo scene renderer.")
    parser.add_argument("--width", type=int, default=512, help="Window width in pixels (default: 512)")
    parser.add_argument("--height", type=int, default=512, help="Window height in pixels (default: 512)")
    parser.add_argument("--depth", type=int, default=2, help="Recursion depth for shading (default: 2)")
    parser.add_argument("--texture", type=str, default=None, help="Floor texture image (default: checkerboard)")
    return parser.parse_args()


def main() -> int:
    """Main entry point for the interactive renderer.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    backend = initialize_taichi()
    print(f"Taichi backend: {backend}")

    # Import after Taichi initialization
    from src.tracer.core.progressive import ProgressiveRenderer, RenderSettings
    from src.tracer.preview.interactive import InteractivePreview
    from src.tracer.scene.demo import build_demo_scene

    if not InteractivePreview.is_display_available():
        print("Error: No display available. Cannot run interactive preview.")
        return 1

    camera = build_demo_scene(args.width, args.height, texture_path=args.texture)
    renderer = ProgressiveRenderer(camera, RenderSettings(max_depth=args.depth))
    preview = InteractivePreview(renderer)

    print(__doc__)
    try:
        preview.run()
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        preview.close()
        print("Preview window closed.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
