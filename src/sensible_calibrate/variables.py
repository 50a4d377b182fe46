"""Fixed vs optimised inputs and the mapping between full and free vectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

__all__ = [
    "Range",
    "Fixed",
    "Optimized",
    "OptimizationVariable",
    "FreeVariableMap",
    "partition",
    "expand",
    "bounds_of",
    "initial_free_vector",
]


@dataclass(frozen=True)
class Range:
    """Bounds and seed value for one optimisable input.

    ``lower_bound <= initial_value <= upper_bound`` is the caller's job.
    """

    lower_bound: float
    upper_bound: float
    initial_value: float


@dataclass(frozen=True)
class Fixed:
    value: float


@dataclass(frozen=True)
class Optimized:
    range: Range

    @classmethod
    def between(
        cls, lower_bound: float, upper_bound: float, initial_value: Optional[float] = None
    ) -> "Optimized":
        """Shortcut; the initial value defaults to the mid-point of the bounds."""
        if initial_value is None:
            initial_value = 0.5 * (float(lower_bound) + float(upper_bound))
        return cls(Range(float(lower_bound), float(upper_bound), float(initial_value)))


OptimizationVariable = Union[Fixed, Optimized]


@dataclass(frozen=True)
class FreeVariableMap:
    """Per original position: ``None`` if fixed, else the index into the free vector."""

    slots: Tuple[Optional[int], ...]
    num_free_vars: int

    @property
    def num_vars(self) -> int:
        return len(self.slots)


def partition(
    variables: Sequence[OptimizationVariable],
) -> Tuple[Tuple[Range, ...], FreeVariableMap]:
    """Split variables into free-variable ranges (in original order) and an index map."""
    ranges: List[Range] = []
    slots: List[Optional[int]] = []
    for pos, var in enumerate(variables):
        if isinstance(var, Fixed):
            slots.append(None)
        elif isinstance(var, Optimized):
            slots.append(len(ranges))
            ranges.append(var.range)
        else:
            raise TypeError(
                f"Variable {pos} must be Fixed or Optimized, got {type(var).__name__}."
            )
    return tuple(ranges), FreeVariableMap(slots=tuple(slots), num_free_vars=len(ranges))


def expand(
    index_map: FreeVariableMap,
    variables: Sequence[OptimizationVariable],
    free_vector: Sequence[float],
) -> np.ndarray:
    """Rebuild the full input vector from a compact free-variable vector."""
    free_vector = np.asarray(free_vector, dtype=float).reshape((-1,))
    out = np.empty(index_map.num_vars, dtype=float)
    for pos, slot in enumerate(index_map.slots):
        if slot is None:
            out[pos] = float(variables[pos].value)  # type: ignore[union-attr]
        else:
            out[pos] = free_vector[slot]
    return out


def bounds_of(ranges: Sequence[Range]) -> Tuple[np.ndarray, np.ndarray]:
    """Return (lo, hi) arrays for the free variables."""
    lo = np.array([r.lower_bound for r in ranges], dtype=float)
    hi = np.array([r.upper_bound for r in ranges], dtype=float)
    return lo, hi


def initial_free_vector(ranges: Sequence[Range]) -> np.ndarray:
    return np.array([r.initial_value for r in ranges], dtype=float)
