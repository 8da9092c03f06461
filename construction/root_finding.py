"""
GeoCanvas - Root finding for graph intersections
Secant iteration (scipy.optimize.newton without derivative) seeded at the
current position, so repeated resolution during a drag stays on the
branch the point is already on.
"""

import math
import warnings
from typing import Callable, Mapping, Optional

from scipy import optimize

from config.tolerances import Tolerances
from .formula import evaluate_formula, is_defined


def find_root(func: Callable[[float], float], seed: float,
              step: float = Tolerances.ROOT_SEED_STEP,
              maxiter: int = Tolerances.ROOT_MAX_ITER,
              tol: float = Tolerances.ROOT_TOLERANCE,
              loose_tol: float = Tolerances.ROOT_LOOSE_TOLERANCE) -> Optional[float]:
    """
    Root of func near seed.

    The secant iteration starts from (seed, seed + step) and runs at most
    maxiter steps. A result is accepted when |func(root)| < loose_tol,
    converged or not.

    Returns:
        root or None (no acceptable root, undefined values)
    """
    if not is_defined(seed):
        return None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        try:
            root, _info = optimize.newton(
                func, seed, x1=seed + step, tol=tol, maxiter=maxiter,
                full_output=True, disp=False,
            )
        except (RuntimeError, ArithmeticError, ValueError):
            return None

    root = float(root)
    if not math.isfinite(root):
        return None

    residual = func(root)
    if not is_defined(residual) or abs(residual) >= loose_tol:
        return None
    return root


def find_formula_root(formula1: str, formula2: Optional[str], seed: float,
                      variables: Optional[Mapping[str, float]] = None) -> Optional[float]:
    """
    Solves formula1(x) = formula2(x), or formula1(x) = 0 without formula2.

    Args:
        seed: starting x in math units
    """
    def difference(x: float) -> float:
        y1 = evaluate_formula(formula1, x, variables)
        y2 = evaluate_formula(formula2, x, variables) if formula2 else 0.0
        return y1 - y2

    return find_root(difference, seed)
