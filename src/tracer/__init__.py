"""Interactive recursive ray tracer with progressive refinement, built on Taichi.

This package provides:
- Closed-form ray intersection for unit spheres, unit quads and triangle meshes
- Transformed scene objects with nearest-hit and shadow queries
- Lambertian + Phong shading with hard shadows, mirrors and one-sample
  indirect diffuse lighting
- Perspective and orthographic cameras with interactive navigation
- Progressive rendering one row at a time under a wall-clock budget

Subpackages:
    core: Rays, the accumulation buffer and the progressive renderer
    geometry: Shapes, mesh storage and the geometry pool
    materials: Materials, textures and the shading model
    scene: Scene objects, lighting, recursive shading and the demo scene
    camera: Camera model and ray generation
    preview: Image export and the interactive window
"""

__version__ = "0.1.0"
