"""Command-line driver: validate → compile → rasterize → encode.

CLI:
    plot-png <file_out> <math_expr> [--config PATH] [--verbose]

    plot-png parabola.png "x^2"
    plot-png saddle.png "(x-0.5)^2 - (y-0.5)^2"
    plot-png wave.png "-sin(6*x)/2 + 0.5"

Only --config, --verbose/-v and --help/-h are options; every other token
is positional, so expressions may start with "-". A "--" token ends option
processing.

Checks (in order, all before any computation):
    1. Exactly two positional arguments              → UsageError
    2. <file_out> contains ".png"                     → UsageError
    3. <math_expr> has no "=" (reject "y=f(x)" form)  → UsageError
    4. Warn if <math_expr> has "y" but no "x"
    5. Warn if configured width/height exceeds the warning threshold

Output:
    - Success: "File <file_out> successfully created." on stdout, exit 0
    - Failure: notice on stdout, explanation on stderr, non-zero exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from src.utils import logging_config, validators
from src.utils.validators import PlotConfigV1

from .encoder import write_png
from .errors import ConfigError, PlotError, UsageError
from .expression import compile_expression, select_plot_mode
from .rasterizer import Rasterizer

logger = logging.getLogger(__name__)

PROG = "plot-png"
USAGE_LINE = f"Usage: {PROG} <file_out> <math_expr>"
ABORT_NOTICE = "Program aborted. See stderr for more information.\n"

FLAG_OPTIONS = frozenset({'-v', '--verbose', '-h', '--help'})
VALUE_OPTIONS = frozenset({'--config'})
HELP_OPTIONS = frozenset({'-h', '--help'})


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(f"{message}.\n{USAGE_LINE}")


def split_arguments(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Separate recognized options from positional arguments.

    A token is an option only if it is one of the parser's own option
    strings (or ``--config=PATH``); ``-x+1`` and ``-0.5*x`` stay positional.

    Returns
    -------
    (options, positionals)
    """
    options, positionals = [], []
    tokens = iter(argv)
    for token in tokens:
        if token == '--':
            positionals.extend(tokens)
            break
        if token in FLAG_OPTIONS or token.startswith('--config='):
            options.append(token)
        elif token in VALUE_OPTIONS:
            options.append(token)
            value = next(tokens, None)
            if value is not None:
                options.append(value)
        else:
            positionals.append(token)
    return options, positionals


def parse_arguments(argv: Sequence[str]) -> argparse.Namespace:
    """Parse ``argv`` (without the program name).

    Raises
    ------
    UsageError
        Wrong number of positionals, or a malformed option
    """
    options, positionals = split_arguments(argv)
    if len(positionals) != 2 and not HELP_OPTIONS.intersection(options):
        raise UsageError(f"Incorrect number of arguments given.\n{USAGE_LINE}")
    return build_parser().parse_args(options + ['--'] + positionals)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = _ArgumentParser(
        prog=PROG,
        description="Plot f(x) as a curve or f(x,y) as a heatmap into a PNG file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('output', help='Output file name (must contain ".png")')
    parser.add_argument('expression', help='Expression in x, or in x and y (e.g. "x^2", "sin(x*y)")')
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Plot config YAML (default: built-in values, see configs/plot_png.v1.yaml)'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable debug logging'
    )
    return parser


def validate_arguments(output_path: str, expression: str) -> None:
    """Reject bad file names and equation-style expressions.

    Raises
    ------
    UsageError
        If ``output_path`` lacks ".png" or ``expression`` contains "="
    """
    if ".png" not in output_path:
        raise UsageError(
            "Invalid file name given in second argument.\n"
            "Valid file names require the \".png\" extension.\n"
            "e.g. \"file.png\" rather than \"file\""
        )

    if "=" in expression:
        raise UsageError(
            "Invalid expression given in third argument.\n"
            "Expressions of the form y=f(x) or z=f(x,y) should be written"
            " f(x) or f(x,y) respectively.\n"
            "e.g. to plot y=x^2, provide \"x^2\" as third argument."
        )


def collect_warnings(expression: str, cfg: PlotConfigV1) -> List[str]:
    """Non-fatal warnings for ``expression`` under ``cfg``."""
    warnings = []

    if "y" in expression and "x" not in expression:
        warnings.append(
            "No x variable provided in third argument (expression). Will assume"
            " expression is of the form f(x,y).\n"
            "Univariable expression should be given in terms of x. e.g. \"y^2\""
            " should be written \"x^2\", else it will be treated as \"0*x + y^2\"."
        )

    limit = cfg.image.warn_dimension_px
    if cfg.image.width > limit or cfg.image.height > limit:
        warnings.append(
            f"Potential unexpected behaviour at dimensions greater than {limit}"
            f" ({cfg.image.width}x{cfg.image.height} configured).\n"
            "If memory runs out, try lowering the resolution in the config file."
        )

    return warnings


def load_config(path: Optional[str]) -> PlotConfigV1:
    """Load plot config, mapping loader errors to ConfigError."""
    try:
        return validators.load_plot_config(path)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigError(str(e)) from e


def run(output_path: str, expression_text: str, cfg: PlotConfigV1) -> Path:
    """Compile, rasterize and encode one plot.

    Returns
    -------
    Path
        Path of the written PNG

    Raises
    ------
    PlotError
        Any fatal condition; nothing is written in that case
    """
    expression = compile_expression(expression_text)
    mode = select_plot_mode(expression_text)
    logging_config.push_context(mode=mode.value)
    logger.info(f"Plotting {expression_text!r} ({mode.value}) at {cfg.image.width}x{cfg.image.height}")

    rasterizer = Rasterizer(cfg)
    buffer = rasterizer.render(expression, mode)
    return write_png(buffer, output_path)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point; returns the process exit status."""
    try:
        args = parse_arguments(sys.argv[1:] if argv is None else argv)
        validate_arguments(args.output, args.expression)
        cfg = load_config(args.config)

        log_level = "DEBUG" if args.verbose else cfg.logging.level
        logging_config.setup_logging(
            log_level=log_level,
            log_file=cfg.logging.file,
            json=cfg.logging.json_format,
            color=cfg.logging.color,
            rotate=cfg.logging.rotate.model_dump() if cfg.logging.rotate else None,
            context={'app': 'plot_png'},
        )

        for message in collect_warnings(args.expression, cfg):
            logger.warning(message)

        run(args.output, args.expression, cfg)
    except PlotError as e:
        logger.debug("Aborting", exc_info=True)
        print(ABORT_NOTICE, file=sys.stdout)
        print(f"{e.heading}: {e}", file=sys.stderr)
        return e.exit_code
    finally:
        logging_config.pop_context()
        logging_config.shutdown()

    print(f"File {args.output} successfully created.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
