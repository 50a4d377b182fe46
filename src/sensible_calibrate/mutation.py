"""Differential mutation with binomial crossover and component-wise bound repair."""

from __future__ import annotations

from typing import Tuple

import numpy as np

__all__ = ["draw_distinct", "mutate", "draw_weight"]

# Donor base is the current best with this probability, else a random member.
BEST_DONOR_PROBABILITY = 0.5
WEIGHT_RANGE = (0.5, 1.0)


def draw_weight(rng: np.random.Generator) -> float:
    """Differential weight F for one generation."""
    lo, hi = WEIGHT_RANGE
    return float(rng.uniform(lo, hi))


def draw_distinct(
    rng: np.random.Generator, size: int, exclude: int
) -> Tuple[int, int, int]:
    """Three indices in ``[0, size)``, pairwise distinct and different from ``exclude``.

    Rejection sampling; needs ``size >= 4`` to terminate.
    """
    a = exclude
    while a == exclude:
        a = int(rng.integers(size))
    b = exclude
    while b in (exclude, a):
        b = int(rng.integers(size))
    c = exclude
    while c in (exclude, a, b):
        c = int(rng.integers(size))
    return a, b, c


def mutate(
    i: int,
    candidates: np.ndarray,
    best: int,
    lower: np.ndarray,
    upper: np.ndarray,
    weight: float,
    crossover_rate: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Build the trial vector for candidate ``i``.

    The donor is ``best`` or a random member, plus ``weight * (x_b - x_c)``.
    Dimension ``j0`` always crosses over; every other dimension crosses over
    with probability ``crossover_rate``. A crossed-over component outside
    ``[lower, upper]`` is rejected and the parent's value kept, so trials never
    leave the box.
    """
    size, dim = candidates.shape
    parent = candidates[i]
    a, b, c = draw_distinct(rng, size, i)
    base = candidates[best] if rng.uniform() <= BEST_DONOR_PROBABILITY else candidates[a]
    aux = base + weight * (candidates[b] - candidates[c])

    j0 = int(rng.integers(dim))
    trial = parent.copy()
    for j in range(dim):
        take = rng.uniform() <= crossover_rate or j == j0
        if take and lower[j] <= aux[j] <= upper[j]:
            trial[j] = aux[j]
    return trial
