"""Pytest configuration for tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear every pool before and after each test."""
    # Import here so the fields are allocated after ti.init()
    from src.tracer.core.integrator import reset_render_target
    from src.tracer.geometry.pool import clear_geometry
    from src.tracer.materials.material import clear_materials
    from src.tracer.materials.texture import clear_textures
    from src.tracer.scene.intersection import clear_objects
    from src.tracer.scene.shading import reset_lighting

    def _clear_all():
        clear_objects()
        clear_materials()
        clear_textures()
        clear_geometry()
        reset_lighting()
        reset_render_target()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def sphere_scene():
    """A unit sphere at the origin with a white Gouraud material."""
    from src.tracer.materials.material import Material
    from src.tracer.scene.manager import SceneManager

    scene = SceneManager()
    sphere = scene.add_sphere_geometry()
    scene.add_object(sphere, Material(surface_reflectance=(1.0, 1.0, 1.0)))
    return scene
