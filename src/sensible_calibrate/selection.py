from __future__ import annotations

from typing import Callable

import numpy as np

from .population import PopulationState, best_index
from .util import strictly_better


def select(
    state: PopulationState,
    trials: np.ndarray,
    evaluate: Callable[[np.ndarray], np.ndarray],
) -> PopulationState:
    """Evaluate trials, keep each one that strictly beats its parent, recompute the best.

    Costs exactly ``state.size`` objective evaluations.
    """
    trials = np.asarray(trials, dtype=float)
    trial_fitness = np.asarray(evaluate(trials), dtype=float)
    return replace_improved(state, trials, trial_fitness)


def replace_improved(
    state: PopulationState, trials: np.ndarray, trial_fitness: np.ndarray
) -> PopulationState:
    """Greedy per-candidate replacement given already-evaluated trials."""
    improved = strictly_better(trial_fitness, state.fitness)
    candidates = np.where(improved[:, None], trials, state.candidates)
    fitness = np.where(improved, trial_fitness, state.fitness)
    return PopulationState(candidates=candidates, fitness=fitness, best=best_index(fitness))
