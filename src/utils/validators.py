"""YAML schema validation and config loading.

Provides centralized validation for the plot configuration using pydantic:
    - Image section: output dimensions, bit depth, large-size warning threshold
    - Curve section: oversampling factor, line/background colours
    - Surface section: gradient endpoints, invalid-cell colour, flat-surface policy
    - Logging section: level, optional file with rotation, JSON mode

Missing sections and keys fall back to the defaults below, so an absent
config file behaves exactly like ``configs/plot_png.v1.yaml``.

Units:
    - Dimensions: pixels
    - Colours: RGB triples, each channel an int in [0, 255]

Usage:
    from src.utils import validators

    cfg = validators.load_plot_config("configs/plot_png.v1.yaml")
    cfg = validators.load_plot_config()   # built-in defaults
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import yaml
from pydantic import BaseModel, Field, field_validator


RGBTriple = Tuple[int, int, int]

_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


def _check_rgb(v: RGBTriple) -> RGBTriple:
    for channel in v:
        if not 0 <= channel <= 255:
            raise ValueError(f"colour channels must be in [0, 255], got {tuple(v)}")
    return v


# ============================================================================
# PLOT CONFIG SCHEMA V1
# ============================================================================

class ImageConfig(BaseModel):
    """Output image geometry."""
    width: int = Field(default=300, ge=1, description="Image width (px)")
    height: int = Field(default=300, ge=1, description="Image height (px)")
    bit_depth: int = Field(default=8, description="Bits per channel")
    warn_dimension_px: int = Field(
        default=1400, ge=1,
        description="Warn when width or height exceeds this"
    )

    @field_validator('bit_depth')
    @classmethod
    def validate_bit_depth(cls, v: int) -> int:
        if v != 8:
            raise ValueError(f"only 8-bit output is supported, got bit_depth={v}")
        return v


class CurveConfig(BaseModel):
    """Curve-mode (f(x)) rendering."""
    oversample: int = Field(default=50, ge=1, le=1000, description="Samples per pixel column")
    line_color: RGBTriple = Field(default=(0, 0, 255))
    background: RGBTriple = Field(default=(255, 255, 255))

    @field_validator('line_color', 'background')
    @classmethod
    def validate_colors(cls, v: RGBTriple) -> RGBTriple:
        return _check_rgb(v)


class SurfaceConfig(BaseModel):
    """Surface-mode (f(x, y)) rendering."""
    low_color: RGBTriple = Field(default=(255, 0, 0), description="Colour at the observed minimum")
    high_color: RGBTriple = Field(default=(0, 0, 255), description="Colour at the observed maximum")
    invalid_color: RGBTriple = Field(default=(255, 255, 255), description="Colour for NaN/inf cells")
    degenerate_policy: str = Field(default="midpoint")

    @field_validator('low_color', 'high_color', 'invalid_color')
    @classmethod
    def validate_colors(cls, v: RGBTriple) -> RGBTriple:
        return _check_rgb(v)

    @field_validator('degenerate_policy')
    @classmethod
    def validate_policy(cls, v: str) -> str:
        allowed = {'midpoint', 'error'}
        if v not in allowed:
            raise ValueError(f"degenerate_policy must be one of {allowed}, got {v}")
        return v


class LogRotateConfig(BaseModel):
    """Log file rotation (size- or time-based)."""
    mode: str = Field(default="size", description="'size' or 'time'")
    max_bytes: int = Field(default=10_000_000, ge=1, description="Size mode: bytes per file")
    when: str = Field(default="D", description="Time mode: TimedRotatingFileHandler unit")
    interval: int = Field(default=1, ge=1, description="Time mode: units per file")
    backup_count: int = Field(default=3, ge=0, description="Rotated files kept")

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if v not in ('size', 'time'):
            raise ValueError(f"rotation mode must be 'size' or 'time', got {v}")
        return v


class LoggingConfig(BaseModel):
    """Arguments forwarded to logging_config.setup_logging()."""
    level: str = Field(default="WARNING")
    file: Optional[str] = None
    json_format: bool = False
    color: bool = True
    rotate: Optional[LogRotateConfig] = Field(default=None, description="None: a single unrotated file")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"level must be one of {sorted(_LOG_LEVELS)}, got {v}")
        return v


class PlotConfigV1(BaseModel):
    """Plot configuration (plot_png.v1.yaml schema)."""
    version: str = Field(default="plot_png.v1")
    image: ImageConfig = Field(default_factory=ImageConfig)
    curve: CurveConfig = Field(default_factory=CurveConfig)
    surface: SurfaceConfig = Field(default_factory=SurfaceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('version')
    @classmethod
    def validate_version(cls, v: str) -> str:
        if v != "plot_png.v1":
            raise ValueError(f"version must be 'plot_png.v1', got {v}")
        return v


def load_plot_config(path: Optional[Union[str, Path]] = None) -> PlotConfigV1:
    """Load and validate plot config from YAML.

    Parameters
    ----------
    path : str or Path, optional
        Path to plot_png.v1.yaml; None returns the built-in defaults

    Returns
    -------
    PlotConfigV1
        Validated config model

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    if path is None:
        return PlotConfigV1()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Plot config not found: {path}")

    try:
        data = fs.load_yaml(path) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Plot config at {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Plot config at {path} must be a mapping, got {type(data).__name__}")
    try:
        return PlotConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Plot config validation failed at {path}: {e}") from e
