"""Population state, uniform initialisation and the best-candidate reduction."""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Callable, Iterable, Sequence, Tuple

import numpy as np

from .streams import Stream
from .util import fitness_key

__all__ = [
    "PopulationState",
    "better",
    "best_index",
    "tree_best",
    "initialize",
]

# (fitness, index)
Ranked = Tuple[float, int]


@dataclass
class PopulationState:
    """Candidates, their fitness values and the index of the current best.

    ``fitness[i]`` is always the objective value of ``candidates[i]``.
    """

    candidates: np.ndarray  # shape (np, D)
    fitness: np.ndarray  # shape (np,)
    best: int

    @property
    def size(self) -> int:
        return int(self.candidates.shape[0])

    @property
    def best_vector(self) -> np.ndarray:
        return self.candidates[self.best]

    @property
    def best_fitness(self) -> float:
        return float(self.fitness[self.best])


def _rank(pair: Ranked) -> Tuple[bool, float, int]:
    value, index = pair
    return fitness_key(value) + (int(index),)


def better(a: Ranked, b: Ranked) -> Ranked:
    """Pairwise winner: lower fitness wins, finite beats non-finite, ties go to the lower index.

    This is a total order, so folding with it is associative and commutative.
    """
    return a if _rank(a) <= _rank(b) else b


def best_index(fitness: Sequence[float]) -> int:
    """Index of the best fitness value (sequential fold)."""
    pairs = [(float(f), i) for i, f in enumerate(fitness)]
    if not pairs:
        raise ValueError("Cannot pick the best of an empty population.")
    return reduce(better, pairs)[1]


def tree_best(pairs: Iterable[Ranked]) -> Ranked:
    """Pairwise tree reduction; picks the same winner as the sequential fold."""
    level = list(pairs)
    if not level:
        raise ValueError("Cannot pick the best of an empty population.")
    while len(level) > 1:
        nxt = [better(level[k], level[k + 1]) for k in range(0, len(level) - 1, 2)]
        if len(level) % 2:
            nxt.append(level[-1])
        level = nxt
    return level[0]


def initialize(
    lower: np.ndarray,
    upper: np.ndarray,
    streams: Sequence[Stream],
    evaluate: Callable[[np.ndarray], np.ndarray],
) -> PopulationState:
    """Uniform random population inside ``[lower, upper]``; one stream per candidate.

    Costs exactly ``len(streams)`` objective evaluations.
    """
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    candidates = np.empty((len(streams), lower.shape[0]), dtype=float)
    for i, stream in enumerate(streams):
        rng = stream.generator()
        for j in range(lower.shape[0]):
            candidates[i, j] = rng.uniform(lower[j], upper[j])
    # uniform() draws from [lo, hi); the clip only matters for degenerate rounding.
    candidates = np.clip(candidates, lower, upper)
    fitness = np.asarray(evaluate(candidates), dtype=float)
    return PopulationState(candidates=candidates, fitness=fitness, best=best_index(fitness))
