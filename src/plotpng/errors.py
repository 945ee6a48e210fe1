"""Fatal error taxonomy for the plotting pipeline.

Every condition that stops a run derives from ``PlotError``. Errors are
raised at the checkpoint that detects them and handled once, in
``cli.main``, which prints ``"<heading>: <message>"`` to stderr and
returns ``exit_code``.
"""


class PlotError(Exception):
    """Base class for fatal plotting errors."""

    heading = "Error"
    exit_code = 1


class UsageError(PlotError):
    """Bad command line: argument count, file name or expression form."""

    exit_code = 2


class ConfigError(PlotError):
    """Config file missing or failing schema validation."""


class CompileError(PlotError):
    """Expression failed to parse or references unknown names."""

    heading = "Fatal error"


class DimensionError(PlotError):
    """Surface plot requested on a non-square buffer."""


class EvaluationError(PlotError):
    """Compiled expression raised while being sampled."""

    heading = "Fatal error"


class DegenerateRangeError(PlotError):
    """Surface has no spread of values (max == min) and policy is 'error'."""


class ImageIOError(PlotError):
    """PNG file could not be written or decoded."""
