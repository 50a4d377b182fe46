from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import numpy as np

Objective = Callable[[np.ndarray], float]
MapLike = Callable[[Callable[[Any], Any], Sequence[Any]], Any]


class BatchEvaluator:
    """Evaluate an objective over a batch of vectors.

    ``workers`` follows scipy's differential_evolution convention: any
    map-like callable (``Pool.map``, ``Executor.map``, ...). Results come back
    in input order so scheduling never changes the outcome.
    """

    def __init__(
        self,
        objective: Objective,
        *,
        transform: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        workers: Optional[MapLike] = None,
    ) -> None:
        self.objective = objective
        self.transform = transform
        self.workers = workers
        self.nfev = 0

    def _call(self, vector: np.ndarray) -> float:
        if self.transform is not None:
            vector = self.transform(vector)
        return float(self.objective(vector))

    def __call__(self, vectors: np.ndarray) -> np.ndarray:
        vectors = np.asarray(vectors, dtype=float)
        rows = [np.array(v, dtype=float) for v in vectors]
        if self.workers is None:
            values = [self._call(v) for v in rows]
        else:
            values = list(self.workers(self._call, rows))
        if len(values) != len(rows):
            raise ValueError(
                f"workers returned {len(values)} values for {len(rows)} vectors."
            )
        self.nfev += len(rows)
        return np.asarray(values, dtype=float)
