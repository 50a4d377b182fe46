"""Generation loop and termination policy for the bounded free-vector search."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple
from warnings import warn

import numpy as np
from scipy.optimize import OptimizeResult

from .evaluation import BatchEvaluator, MapLike, Objective
from .mutation import draw_weight, mutate
from .population import PopulationState, initialize
from .selection import select
from .streams import Stream, as_stream, join

__all__ = [
    "MutationConfig",
    "TerminationConfig",
    "Status",
    "step",
    "termination_status",
    "minimize",
]

Callback = Callable[[PopulationState, int], Optional[bool]]

MIN_POPULATION_SIZE = 4


@dataclass(frozen=True)
class MutationConfig:
    population_size: int = 20
    crossover_rate: float = 0.9


@dataclass(frozen=True)
class TerminationConfig:
    # None = no iteration cap
    max_iterations: Optional[int] = None
    max_evaluations: int = 10_000
    target_error: float = 0.0


class Status(Enum):
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    MAX_EVALUATIONS_REACHED = "max_evaluations_reached"
    TARGET_REACHED = "target_reached"
    CALLBACK_STOPPED = "callback_stopped"


_MESSAGES = {
    Status.MAX_ITERATIONS_REACHED: "Maximum number of iterations has been reached.",
    Status.MAX_EVALUATIONS_REACHED: "Maximum number of function evaluations has been reached.",
    Status.TARGET_REACHED: "Target error has been reached.",
    Status.CALLBACK_STOPPED: "Stopped by callback.",
}


def validate_configs(
    lower: np.ndarray,
    upper: np.ndarray,
    mutation: MutationConfig,
    termination: TerminationConfig,
) -> None:
    """Raise ValueError for configurations the search is not defined for."""
    if lower.shape != upper.shape or lower.ndim != 1:
        raise ValueError("Bounds shape mismatch for free parameters.")
    if lower.size == 0:
        raise ValueError("The search needs at least one free parameter.")
    if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
        raise ValueError("The search requires finite bounds for all free parameters.")
    if np.any(upper < lower):
        raise ValueError("Invalid bounds: require lower_bound <= upper_bound.")
    if int(mutation.population_size) < MIN_POPULATION_SIZE:
        raise ValueError(
            f"population_size must be at least {MIN_POPULATION_SIZE}, "
            f"got {mutation.population_size}."
        )
    if not 0.0 <= float(mutation.crossover_rate) <= 1.0:
        raise ValueError("crossover_rate must lie in [0, 1].")
    if int(termination.max_evaluations) < 0:
        raise ValueError("max_evaluations must be non-negative.")
    if termination.max_iterations is not None and int(termination.max_iterations) < 0:
        raise ValueError("max_iterations must be non-negative.")


def termination_status(
    best_fitness: float,
    evaluations_used: int,
    iterations_remaining: float,
    termination: TerminationConfig,
) -> Optional[Status]:
    """Status if the loop must stop before the next generation, else None."""
    if math.isfinite(best_fitness) and best_fitness <= termination.target_error:
        return Status.TARGET_REACHED
    if evaluations_used >= termination.max_evaluations:
        return Status.MAX_EVALUATIONS_REACHED
    if iterations_remaining <= 0:
        return Status.MAX_ITERATIONS_REACHED
    return None


def step(
    state: PopulationState,
    stream: Stream,
    lower: np.ndarray,
    upper: np.ndarray,
    crossover_rate: float,
    evaluate: Callable[[np.ndarray], np.ndarray],
) -> Tuple[PopulationState, Stream]:
    """Run one generation; returns the new population and the continuation stream."""
    streams = stream.split(state.size + 1)
    weight = draw_weight(streams[0].generator())
    trials = np.stack(
        [
            mutate(
                i,
                state.candidates,
                state.best,
                lower,
                upper,
                weight,
                crossover_rate,
                member.generator(),
            )
            for i, member in enumerate(streams[1:])
        ]
    )
    return select(state, trials, evaluate), join(streams)


def minimize(
    objective: Objective,
    lower: Any,
    upper: Any,
    *,
    mutation: MutationConfig = MutationConfig(),
    termination: TerminationConfig = TerminationConfig(),
    seed: Any = None,
    workers: Optional[MapLike] = None,
    callback: Optional[Callback] = None,
    transform: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> OptimizeResult:
    """Minimise ``objective`` over the box ``[lower, upper]``.

    ``transform`` maps a free vector to the objective's input (identity if
    None). The initial population costs ``population_size`` evaluations and
    every generation another ``population_size``.

    Returns a ``scipy.optimize.OptimizeResult`` with ``x``, ``fun``, ``nfev``,
    ``nit``, ``status`` (a :class:`Status`), ``success``, ``message``,
    ``population`` and ``population_fitness``.
    """
    lower = np.asarray(lower, dtype=float).reshape((-1,))
    upper = np.asarray(upper, dtype=float).reshape((-1,))
    validate_configs(lower, upper, mutation, termination)

    size = int(mutation.population_size)
    if termination.max_evaluations < size:
        warn(
            f"Evaluation budget ({termination.max_evaluations}) is smaller than one "
            f"population ({size}); the initial population is still evaluated.",
            UserWarning,
        )

    evaluate = BatchEvaluator(objective, transform=transform, workers=workers)

    root = as_stream(seed).split(size + 1)
    state = initialize(lower, upper, root[1:], evaluate)
    stream = join(root)

    remaining = math.inf if termination.max_iterations is None else int(termination.max_iterations)
    nit = 0
    status: Optional[Status] = None
    if callback is not None and callback(state, nit):
        status = Status.CALLBACK_STOPPED

    while status is None:
        status = termination_status(state.best_fitness, evaluate.nfev, remaining, termination)
        if status is not None:
            break
        state, stream = step(
            state, stream, lower, upper, float(mutation.crossover_rate), evaluate
        )
        nit += 1
        remaining -= 1
        if callback is not None and callback(state, nit):
            status = Status.CALLBACK_STOPPED

    return OptimizeResult(
        x=state.best_vector.copy(),
        fun=state.best_fitness,
        nfev=evaluate.nfev,
        nit=nit,
        status=status,
        success=bool(np.isfinite(state.best_fitness)),
        message=_MESSAGES[status],
        population=state.candidates,
        population_fitness=state.fitness,
    )
