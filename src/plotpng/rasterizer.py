"""Sampler/rasterizer: compiled expression → RGB pixel buffer.

Two modes, both over the fixed domain [0, 1):

Curve (y = f(x)):
    - Buffer starts as the background colour (white)
    - x is oversampled at W*K points (K = oversample, default 50) so the
      line has no gaps after scaling to pixel width
    - Results in [0, 1) are plotted at column floor(x*W), row
      (H-1) - floor(f(x)*H); anything else is dropped, never clamped

Surface (z = f(x, y), square buffers only):
    - f is sampled at (i/N, j/N) into an N×N grid
    - Values are normalized by the observed finite min/max
    - Colour is a linear gradient low → high (red → blue by default)
    - Cell (i, j) lands on row (N-1) - i, column j: x grows upward,
      y grows rightward

Invariants:
    - PixelBuffer is (H, W, 3) uint8, row 0 at the top of the image
    - Non-square surface requests fail before the expression is evaluated
    - NaN never reaches pixel data (degenerate range handled by policy)

Usage:
    from src.plotpng.rasterizer import Rasterizer
    from src.utils import validators

    cfg = validators.load_plot_config()
    rasterizer = Rasterizer(cfg)
    buffer = rasterizer.render(expr, PlotMode.CURVE)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from src.utils.validators import PlotConfigV1

from .errors import DegenerateRangeError, DimensionError
from .expression import Expression, PlotMode

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


def new_pixel_buffer(width: int, height: int, color: RGB = (255, 255, 255)) -> np.ndarray:
    """Allocate an (H, W, 3) uint8 buffer filled with ``color``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"buffer dimensions must be > 0, got {width}×{height}")
    buffer = np.empty((height, width, 3), dtype=np.uint8)
    buffer[:, :] = color
    return buffer


@dataclass(frozen=True)
class SurfaceRange:
    """Observed value range of a sampled surface.

    ``vmin``/``vmax`` are None when the grid holds no finite value.
    """

    vmin: Optional[float]
    vmax: Optional[float]

    @property
    def degenerate(self) -> bool:
        return self.vmin is None or self.vmin == self.vmax


def sample_surface(expression: Expression, size: int) -> np.ndarray:
    """Sample f(i/N, j/N) into an (N, N) float64 grid indexed [i, j]."""
    coords = np.arange(size, dtype=np.float64) / size
    gx, gy = np.meshgrid(coords, coords, indexing='ij')
    return np.array(expression.evaluate(gx, gy), dtype=np.float64)


def surface_range(grid: np.ndarray) -> SurfaceRange:
    """Min and max over the finite cells of ``grid``."""
    finite = grid[np.isfinite(grid)]
    if finite.size == 0:
        return SurfaceRange(vmin=None, vmax=None)
    return SurfaceRange(vmin=float(finite.min()), vmax=float(finite.max()))


class Rasterizer:
    """Fills pixel buffers from compiled expressions.

    Attributes
    ----------
    width, height : int
        Buffer dimensions in pixels
    oversample : int
        Curve samples per pixel column
    line_color, background : RGB
        Curve colours
    low_color, high_color, invalid_color : RGB
        Surface gradient endpoints and colour for non-finite cells
    degenerate_policy : str
        'midpoint' paints a flat surface at p=0.5; 'error' raises
    """

    def __init__(self, cfg: Optional[PlotConfigV1] = None):
        cfg = cfg or PlotConfigV1()
        self.width = cfg.image.width
        self.height = cfg.image.height
        self.oversample = cfg.curve.oversample
        self.line_color = tuple(cfg.curve.line_color)
        self.background = tuple(cfg.curve.background)
        self.low_color = tuple(cfg.surface.low_color)
        self.high_color = tuple(cfg.surface.high_color)
        self.invalid_color = tuple(cfg.surface.invalid_color)
        self.degenerate_policy = cfg.surface.degenerate_policy

    def check_dimensions(self, mode: PlotMode) -> None:
        """Raise DimensionError if ``mode`` cannot be drawn at this size."""
        if mode is PlotMode.SURFACE and self.width != self.height:
            raise DimensionError(
                "Invalid dimensions.\n\n"
                "Expressions of the form f(x,y) can only be written to PNG files with"
                " square dimension.\n"
                f"e.g. {self.width}x{self.height} is invalid, but"
                f" {self.width}x{self.width} or {self.height}x{self.height} are valid."
            )

    def render(self, expression: Expression, mode: PlotMode) -> np.ndarray:
        """Render ``expression`` in ``mode``.

        Returns
        -------
        np.ndarray
            (H, W, 3) uint8 pixel buffer

        Raises
        ------
        DimensionError
            Surface mode on a non-square buffer (before any evaluation)
        DegenerateRangeError
            Flat surface with degenerate_policy='error'
        EvaluationError
            If the expression raises while being sampled
        """
        self.check_dimensions(mode)
        if mode is PlotMode.SURFACE:
            return self.render_surface(expression)
        return self.render_curve(expression)

    def render_curve(self, expression: Expression) -> np.ndarray:
        """Plot y = f(x) as a line on the background colour."""
        w, h = self.width, self.height
        buffer = new_pixel_buffer(w, h, self.background)

        steps = w * self.oversample
        xs = np.arange(steps, dtype=np.float64) / steps
        results = expression.evaluate(xs)

        visible = np.isfinite(results) & (results >= 0.0) & (results < 1.0)
        cols = np.floor(xs[visible] * w).astype(np.intp)
        pixel_y = np.floor(results[visible] * h).astype(np.intp)
        # Guard float rounding at the top edge
        np.clip(cols, 0, w - 1, out=cols)
        np.clip(pixel_y, 0, h - 1, out=pixel_y)
        rows = (h - 1) - pixel_y

        buffer[rows, cols] = self.line_color

        logger.debug(f"Curve {expression.text!r}: {steps} samples, {int(visible.sum())} in range")
        return buffer

    def render_surface(self, expression: Expression) -> np.ndarray:
        """Plot z = f(x, y) as a heatmap on a square buffer."""
        self.check_dimensions(PlotMode.SURFACE)
        n = self.width

        grid = sample_surface(expression, n)
        rng = surface_range(grid)
        finite = np.isfinite(grid)

        if rng.degenerate:
            if self.degenerate_policy == 'error':
                raise DegenerateRangeError(
                    f"Expression \"{expression.text}\" is flat over the plot window"
                    f" (min == max == {rng.vmin}); cannot normalize colours."
                )
            logger.info(f"Surface {expression.text!r} is flat (value {rng.vmin}); painting midpoint colour")
            p = np.full(grid.shape, 0.5)
        else:
            with np.errstate(invalid='ignore'):
                p = (grid - rng.vmin) / (rng.vmax - rng.vmin)

        low = np.asarray(self.low_color, dtype=np.float64)
        high = np.asarray(self.high_color, dtype=np.float64)
        p = np.where(finite, p, 0.0)[..., None]
        colors = (low * (1.0 - p) + high * p).astype(np.uint8)
        colors[~finite] = self.invalid_color

        logger.debug(
            f"Surface {expression.text!r}: {n}×{n} samples, range=[{rng.vmin}, {rng.vmax}], "
            f"{int((~finite).sum())} non-finite"
        )

        # Cell (i, j) → row (N-1) - i, column j
        return np.ascontiguousarray(colors[::-1])
