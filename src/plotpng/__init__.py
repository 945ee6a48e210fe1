"""Expression plotting core.

Modules:
    - expression: Text formula → compiled vectorized function (SymPy)
    - rasterizer: Curve/surface sampling and colour assignment (NumPy)
    - encoder: PixelBuffer ↔ PNG file (Pillow)
    - cli: Argument validation and pipeline driver
    - errors: Fatal error taxonomy

Pipeline:
    1. Validate arguments (cli)
    2. Compile expression (expression.compile_expression)
    3. Select plot mode from the raw text (expression.select_plot_mode)
    4. Fill pixel buffer (rasterizer.Rasterizer.render)
    5. Write PNG atomically (encoder.write_png)
"""

from .encoder import PNGInfo, read_png_info, write_png
from .errors import (
    CompileError,
    ConfigError,
    DegenerateRangeError,
    DimensionError,
    EvaluationError,
    ImageIOError,
    PlotError,
    UsageError,
)
from .expression import Expression, PlotMode, compile_expression, select_plot_mode
from .rasterizer import Rasterizer, SurfaceRange, new_pixel_buffer

__all__ = [
    'CompileError',
    'ConfigError',
    'DegenerateRangeError',
    'DimensionError',
    'EvaluationError',
    'Expression',
    'ImageIOError',
    'PNGInfo',
    'PlotError',
    'PlotMode',
    'Rasterizer',
    'SurfaceRange',
    'UsageError',
    'compile_expression',
    'new_pixel_buffer',
    'read_png_info',
    'select_plot_mode',
    'write_png',
]
