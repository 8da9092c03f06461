"""
GeoCanvas - Formula evaluation
Evaluates user formulas like "2x^2 - 3", "a*sin(x)" or "ln(x) + k".

Usage:
    from construction.formula import evaluate_formula, is_defined

    y = evaluate_formula("ax^2 + 1", 2.0, {"a": 0.5})  # -> 3.0
    evaluate_formula("sqrt(x)", -1.0)                   # -> nan

Formulas are user text: every failure (syntax, unknown name, domain
error, division by zero, complex result) yields UNDEFINED instead of
raising. Callers test results with is_defined().
"""

import math
import re
from functools import lru_cache
from typing import Dict, FrozenSet, Mapping, Optional

from loguru import logger

from config.feature_flags import is_enabled


UNDEFINED = float("nan")


def _round_half_up(value):
    return math.floor(value + 0.5)


_MATH_FUNCS = {
    'sin': math.sin,
    'cos': math.cos,
    'tan': math.tan,
    'asin': math.asin,
    'acos': math.acos,
    'atan': math.atan,
    'atan2': math.atan2,
    'sqrt': math.sqrt,
    'log': math.log,
    'ln': math.log,
    'exp': math.exp,
    'floor': math.floor,
    'ceil': math.ceil,
    'round': _round_half_up,
    'abs': abs,
}

_CONSTANTS = {
    'pi': math.pi,
    'e': math.e,
}

# Number incl. scientific notation, not preceded by an identifier char
_NUMBER = re.compile(r"(?<![a-z_0-9.])(\d+(?:\.\d*)?(?:e[+-]?\d+)?|\.\d+)(?=\s*[a-z_(])")
_IDENTIFIER = re.compile(r"[a-z_][a-z0-9_]*")

# Bare integer literal; compiled as float so huge powers overflow instead of
# growing an exact int
_INT_LITERAL = re.compile(r"(?<![a-z_0-9.])(\d+)(?![\d.e])")


def is_defined(value: Optional[float]) -> bool:
    """True for a finite float, False for None / NaN / inf."""
    return value is not None and math.isfinite(value)


def normalize_formula(formula: str, variable_names: FrozenSet[str] = frozenset()) -> str:
    """
    Rewrites user notation into a Python expression.

    - lower case, '^' -> '**'
    - implicit multiplication: 2x, 2(x+1), 2sin(x), x(x+1), ax, mx
    - identifiers unknown as a whole are split into single letters when
      every letter is known ("ax" -> "a*x"), otherwise left untouched
    """
    expr = formula.strip().lower().replace('^', '**')

    # Leading "y =" / "f(x) =" is display sugar
    expr = re.sub(r"^\s*(?:y|f\s*\(\s*x\s*\))\s*=", "", expr)

    expr = _NUMBER.sub(lambda m: m.group(1) + '*', expr)

    known_values = set(_CONSTANTS) | set(variable_names) | {'x'}

    def _expand(match: re.Match) -> str:
        name = match.group(0)
        following = match.string[match.end():].lstrip()
        calls = following.startswith('(')

        if name in _MATH_FUNCS:
            return name
        if name in known_values:
            return name + '*' if calls else name
        if name.isalpha() and all(ch in known_values for ch in name):
            expanded = '*'.join(name)
            return expanded + '*' if calls else expanded
        return name

    return _IDENTIFIER.sub(_expand, expr)


@lru_cache(maxsize=512)
def _compile(formula: str, variable_names: FrozenSet[str]):
    expr = normalize_formula(formula, variable_names)
    if '__' in expr or not expr.strip():
        raise SyntaxError(f"Rejected formula: {formula!r}")
    expr = _INT_LITERAL.sub(r"\1.0", expr)
    return compile(expr, '<formula>', 'eval')


def evaluate_formula(formula: str, x: float = 0.0,
                     variables: Optional[Mapping[str, float]] = None) -> float:
    """
    Evaluates a formula at x with variable bindings.

    Args:
        formula: User formula text
        x: Value bound to 'x' (math units)
        variables: name -> value, names are matched case-insensitively

    Returns:
        Finite float or UNDEFINED (nan)
    """
    if not formula or not isinstance(formula, str):
        return UNDEFINED

    bindings: Dict[str, float] = {}
    if variables:
        bindings = {str(name).lower(): value for name, value in variables.items()}

    try:
        code = _compile(formula, frozenset(bindings))
        namespace = {**_CONSTANTS, **bindings, **_MATH_FUNCS, 'x': x}
        result = float(eval(code, {"__builtins__": {}}, namespace))
    except Exception as e:
        if is_enabled("resolver_debug"):
            logger.debug(f"[Formula] '{formula}' undefined at x={x}: {e}")
        return UNDEFINED

    return result if math.isfinite(result) else UNDEFINED


def evaluate_scalar(spec: str, variables: Optional[Mapping[str, float]] = None) -> float:
    """
    Evaluates a literal number or a variable/formula expression.

    Used for rotation angles: "45" -> 45.0, "alpha" -> value of alpha.
    """
    try:
        value = float(spec)
    except (TypeError, ValueError):
        return evaluate_formula(str(spec), 0.0, variables)
    return value if math.isfinite(value) else UNDEFINED
