"""Plot PNG: rasterize mathematical expressions into PNG images.

This package evaluates a user-supplied expression of ``x`` (curve mode) or
of ``x`` and ``y`` (surface/heatmap mode) over the unit square and writes
the result as an 8-bit RGB PNG.

Architecture layers (strict one-way dependency):
    scripts/ → src/plotpng/ → src/utils/

Key invariants:
    - Domain is fixed to [0, 1) on both axes
    - Pixel buffers are (H, W, 3) uint8, row 0 at the top of the image
    - Surface mode requires a square buffer
    - YAML-only configs, validated by pydantic
"""

__version__ = "1.0.0"
