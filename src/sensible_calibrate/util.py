from __future__ import annotations

import inspect
import math
from typing import Any, Callable, Tuple

import numpy as np


def infer_param_names(func: Callable[..., Any]) -> Tuple[str, ...]:
    """Infer parameter names from a function signature.

    Conventions:
    - first arg is independent variable container (x)
    - remaining positional/keyword parameters are fit parameters

    Restriction:
    - no *args/**kwargs in model functions
    """
    sig = inspect.signature(func)
    params = list(sig.parameters.values())

    if len(params) < 2:
        raise TypeError("Model function must have at least (x, p1, ...).")

    bad_kinds = {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}
    for p in params:
        if p.kind in bad_kinds:
            raise TypeError("*args/**kwargs are not supported in model functions.")

    names = [p.name for p in params[1:]]
    if len(set(names)) != len(names):
        raise TypeError("Duplicate parameter names in function signature.")
    return tuple(names)


def safe_float(x: Any) -> float:
    """Convert numpy scalar / 0-d array to python float."""
    if isinstance(x, np.ndarray) and x.shape == ():
        return float(x.item())
    return float(x)


def fitness_key(value: float) -> Tuple[bool, float]:
    """Sort key for minimisation where any finite value beats any non-finite one.

    NaN and +/-inf all rank behind every finite value and compare equal to
    each other.
    """
    value = float(value)
    if math.isfinite(value):
        return (False, value)
    return (True, 0.0)


def strictly_better(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Elementwise ``fitness_key(a) < fitness_key(b)`` for arrays."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    fa = np.isfinite(a)
    fb = np.isfinite(b)
    with np.errstate(invalid="ignore"):
        return fa & (~fb | (a < b))
