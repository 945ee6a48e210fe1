"""Expression compilation and plot mode selection.

Turns the user's text formula into a vectorized NumPy function of ``x`` and
``y`` using SymPy's parser and ``lambdify``.

Grammar:
    - Numbers, variables ``x`` and ``y``
    - Operators ``+ - * / % ^`` (``^`` is exponentiation) and parentheses
    - Functions: abs acos asin atan atan2 ceil cos cosh exp floor ln log
      log10 pow sin sinh sqrt tan tanh
    - Constants: pi, e

``log`` is base 10 and ``ln`` is the natural logarithm. Any other name is a
compile error, as is anything that does not parse to a scalar expression.

Plot mode selection is purely textual (see ``select_plot_mode``).

Usage:
    from src.plotpng.expression import compile_expression, select_plot_mode

    expr = compile_expression("sin(x)^2")
    mode = select_plot_mode(expr.text)   # PlotMode.CURVE
    values = expr.evaluate(np.linspace(0, 1, 10))
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from tokenize import TokenError
from typing import Callable, FrozenSet

import numpy as np
import sympy
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from .errors import CompileError, EvaluationError

logger = logging.getLogger(__name__)

VARIABLES = ("x", "y")

X, Y = sympy.symbols("x y", real=True)

TRANSFORMS = standard_transformations + (convert_xor,)

# Characters the grammar can produce; anything else is rejected before parsing
_ALLOWED_CHARS = re.compile(r"^[0-9A-Za-z_\s.+\-*/^%(),]*$")


def _log10(arg):
    return sympy.log(arg, 10)


_FUNCTIONS = {
    'abs': sympy.Abs,
    'acos': sympy.acos,
    'asin': sympy.asin,
    'atan': sympy.atan,
    'atan2': sympy.atan2,
    'ceil': sympy.ceiling,
    'cos': sympy.cos,
    'cosh': sympy.cosh,
    'exp': sympy.exp,
    'floor': sympy.floor,
    'ln': sympy.log,
    'log': _log10,
    'log10': _log10,
    'pow': sympy.Pow,
    'sin': sympy.sin,
    'sinh': sympy.sinh,
    'sqrt': sympy.sqrt,
    'tan': sympy.tan,
    'tanh': sympy.tanh,
}

_CONSTANTS = {
    'e': sympy.E,
    'pi': sympy.pi,
}

COMPILE_HINT = (
    "Probably invalid expression given in third argument:\n\n"
    "     Expressions should be written in terms of x and y only.\n"
    "     x should be used for univariable expressions, or both x and y for"
    " multivariate expressions.\n"
    "     e.g. \"k^2\" is invalid, and should be written \"x^2\".\n\n"
    "     Equations of the form y=f(x) or z=f(x,y) are invalid, and should be"
    " written f(x) or f(x,y) respectively.\n"
    "     e.g. \"y=x^2\" is invalid, and should be written \"x^2\"."
)


class PlotMode(Enum):
    """Rendering mode: line plot of f(x) or heatmap of f(x, y)."""

    CURVE = "curve"
    SURFACE = "surface"


def select_plot_mode(text: str) -> PlotMode:
    """Choose the plot mode from the raw expression text.

    The check is intentionally naive: any ``"y"`` character selects
    ``SURFACE``, whether or not the compiled expression depends on ``y``.
    ``"sin(pi)"`` is a curve; ``"0*y + x"`` is a surface.
    """
    return PlotMode.SURFACE if "y" in text else PlotMode.CURVE


@dataclass(frozen=True)
class Expression:
    """Compiled expression of ``x`` and ``y``.

    Attributes
    ----------
    text : str
        Source text as given by the user
    expr : sympy.Expr
        Parsed symbolic expression
    variables : frozenset of str
        Variable names the expression actually references
    """

    text: str
    expr: sympy.Expr
    variables: FrozenSet[str]
    _func: Callable = field(repr=False, compare=False)

    def evaluate(self, x, y=0.0) -> np.ndarray:
        """Evaluate element-wise over broadcast ``x`` and ``y``.

        Parameters
        ----------
        x : array_like
            x coordinates
        y : array_like
            y coordinates, default 0.0 (ignored by expressions of x only)

        Returns
        -------
        np.ndarray
            float64 array with the broadcast shape of ``x`` and ``y``.
            Undefined points (log of negatives, 0/0, complex results)
            are NaN or ±inf rather than errors.

        Raises
        ------
        EvaluationError
            If the compiled function raises instead of producing NaN/inf
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        shape = np.broadcast_shapes(x.shape, y.shape)

        try:
            with np.errstate(all='ignore'):
                values = np.asarray(self._func(x, y))
                if np.iscomplexobj(values):
                    values = np.where(values.imag == 0, values.real, np.nan)
                values = values.astype(np.float64)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise EvaluationError(f"Failed to evaluate expression \"{self.text}\": {e}") from e

        return np.broadcast_to(values, shape)


def compile_expression(text: str) -> Expression:
    """Compile a text formula into an ``Expression``.

    Parameters
    ----------
    text : str
        Formula in terms of ``x`` and ``y`` (e.g. ``"x^2"``, ``"sin(x*y)"``)

    Returns
    -------
    Expression
        Immutable compiled expression

    Raises
    ------
    CompileError
        If the text does not parse, parses to something other than a scalar
        expression, or references names outside the grammar
    """
    if not text.strip() or not _ALLOWED_CHARS.match(text) or "__" in text:
        raise CompileError(f"Failed to compile math expression.\n\n{COMPILE_HINT}")

    local_dict = {'x': X, 'y': Y, **_FUNCTIONS, **_CONSTANTS}
    global_dict = {
        '__builtins__': {},
        'Integer': sympy.Integer,
        'Float': sympy.Float,
        'Rational': sympy.Rational,
        'Symbol': sympy.Symbol,
    }

    try:
        expr = parse_expr(text, local_dict=local_dict, global_dict=global_dict,
                          transformations=TRANSFORMS)
    except (SyntaxError, TokenError, TypeError, ValueError, NameError, AttributeError) as e:
        logger.debug(f"parse_expr rejected {text!r}: {e}")
        raise CompileError(f"Failed to compile math expression.\n\n{COMPILE_HINT}") from e

    if not isinstance(expr, sympy.Expr):
        raise CompileError(
            f"Failed to compile math expression: {text!r} is not a numeric expression.\n\n{COMPILE_HINT}"
        )

    names = {s.name for s in expr.free_symbols}
    unknown = sorted(names - set(VARIABLES))
    if unknown:
        raise CompileError(
            f"Failed to compile math expression: unknown name(s) {', '.join(unknown)}.\n\n{COMPILE_HINT}"
        )

    # Exact numbers become floats so 10^400 evaluates to inf instead of
    # overflowing a Python int → float conversion
    numeric = expr.xreplace({n: sympy.Float(n) for n in expr.atoms(sympy.Rational)})
    func = sympy.lambdify((X, Y), numeric, modules='numpy')
    logger.debug(f"Compiled {text!r} → {expr} (variables: {sorted(names) or 'none'})")

    return Expression(text=text, expr=expr, variables=frozenset(names), _func=func)
