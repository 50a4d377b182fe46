from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Sequence
from warnings import warn

import numpy as np

from .evaluation import MapLike, Objective
from .solver import Callback, MutationConfig, TerminationConfig, minimize
from .variables import (
    OptimizationVariable,
    bounds_of,
    expand,
    initial_free_vector,
    partition,
)

__all__ = ["CalibrationResult", "fit"]

DEFAULT_CROSSOVER_RATE = 0.9


@dataclass(frozen=True)
class CalibrationResult:
    """Full-length best parameters, their error and the evaluations spent finding them."""

    parameters: np.ndarray
    error: float
    evaluations_used: int
    # Search extras (status, iterations, message); empty when no search ran.
    stats: Dict[str, Any] = field(default_factory=dict)


def fit(
    variables: Sequence[OptimizationVariable],
    objective: Objective,
    max_evaluations: int,
    population_size: int,
    *,
    seed: Any = None,
    workers: Optional[MapLike] = None,
    crossover_rate: float = DEFAULT_CROSSOVER_RATE,
    max_iterations: Optional[int] = None,
    target_error: float = 0.0,
    callback: Optional[Callback] = None,
) -> CalibrationResult:
    """Search the optimised variables for the lowest ``objective`` value.

    ``objective`` receives the full-length input vector (fixed values
    included) and returns a scalar error. The search stops once
    ``max_evaluations`` is used up, unless the error reaches ``target_error``
    first. With no optimised variables, or a zero budget, no search runs and
    ``evaluations_used`` is 0.

    The closing evaluation that reports ``error`` is not counted in
    ``evaluations_used``.
    """
    variables = tuple(variables)
    max_evaluations = int(max_evaluations)
    if max_evaluations < 0:
        raise ValueError("max_evaluations must be non-negative.")

    ranges, index_map = partition(variables)
    to_full = partial(expand, index_map, variables)

    if index_map.num_free_vars == 0 or max_evaluations == 0:
        theta = _clipped_initial(ranges)
        full = to_full(theta)
        return CalibrationResult(
            parameters=full,
            error=_final_error(objective, full),
            evaluations_used=0,
        )

    lo, hi = bounds_of(ranges)
    res = minimize(
        objective,
        lo,
        hi,
        mutation=MutationConfig(
            population_size=int(population_size), crossover_rate=float(crossover_rate)
        ),
        termination=TerminationConfig(
            max_iterations=max_iterations,
            max_evaluations=max_evaluations,
            target_error=float(target_error),
        ),
        seed=seed,
        workers=workers,
        callback=callback,
        transform=to_full,
    )

    full = to_full(res.x)
    return CalibrationResult(
        parameters=full,
        error=_final_error(objective, full),
        evaluations_used=int(res.nfev),
        stats={
            "status": res.status,
            "nit": int(res.nit),
            "message": str(res.message),
            "best_fitness": float(res.fun),
        },
    )


def _clipped_initial(ranges: Sequence[Any]) -> np.ndarray:
    """Initial values of the optimised variables, clipped into their bounds."""
    theta = initial_free_vector(ranges)
    if theta.size == 0:
        return theta
    lo, hi = bounds_of(ranges)
    clipped: List[int] = [j for j in range(theta.size) if not lo[j] <= theta[j] <= hi[j]]
    if clipped:
        warn(
            "Clipped initial values into bounds for free variables: "
            + ", ".join(str(j) for j in clipped),
            UserWarning,
        )
        theta = np.clip(theta, lo, hi)
    return theta


def _final_error(objective: Objective, full: np.ndarray) -> float:
    error = float(objective(full.copy()))
    if not np.isfinite(error):
        warn(f"Objective is not finite at the reported parameters ({error}).", UserWarning)
    return error
