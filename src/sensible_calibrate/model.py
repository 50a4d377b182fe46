from __future__ import annotations

from dataclasses import dataclass, field, replace
import inspect
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from .calibrate import CalibrationResult, fit
from .evaluation import MapLike
from .util import infer_param_names, safe_float
from .variables import Fixed, OptimizationVariable, Optimized, Range

__all__ = ["ParameterSpec", "Model", "ModelFit", "SumOfSquares"]


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    fixed: bool = False
    fixed_value: Optional[float] = None
    bounds: Optional[Tuple[Optional[float], Optional[float]]] = None
    # Only reported when no search runs (zero budget)
    guess: Optional[float] = None


@dataclass(frozen=True)
class ModelFit:
    """Outcome of :meth:`Model.fit`."""

    model: "Model"
    values: Dict[str, float]
    chi2: float
    evaluations_used: int
    calibration: CalibrationResult = field(repr=False)

    def __getitem__(self, name: str) -> float:
        return self.values[name]

    def predict(self, x: Any) -> Any:
        return self.model.eval(x, params=self.values)


class SumOfSquares:
    """Least-squares objective over a full parameter vector.

    Picklable whenever ``func`` is, so it works with process-pool ``workers``.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        x: Any,
        y: np.ndarray,
        sigma: Optional[np.ndarray] = None,
    ) -> None:
        self.func = func
        self.x = x
        self.y = np.asarray(y, dtype=float)
        self.sigma = None if sigma is None else np.broadcast_to(
            np.asarray(sigma, dtype=float), self.y.shape
        )

    def residual(self, theta: np.ndarray) -> np.ndarray:
        ym = np.asarray(self.func(self.x, *np.asarray(theta, dtype=float)), dtype=float)
        if ym.shape != self.y.shape:
            try:
                ym = np.broadcast_to(ym, self.y.shape)
            except ValueError as exc:
                raise ValueError(
                    f"Model output shape {ym.shape} not broadcastable to y shape {self.y.shape}."
                ) from exc
        r = ym - self.y
        if self.sigma is not None:
            r = r / self.sigma
        return r.reshape(-1)

    def __call__(self, theta: np.ndarray) -> float:
        with np.errstate(all="ignore"):
            r = self.residual(theta)
        if not np.all(np.isfinite(r)):
            return float("inf")
        return float(np.sum(r * r))


@dataclass
class Model:
    """A model wraps a callable ``f(x, p1, p2, ...)`` and parameter metadata."""

    name: str
    func: Callable[..., Any]
    param_names: Tuple[str, ...]
    params: Tuple[ParameterSpec, ...]

    # ---- constructor ----
    @staticmethod
    def from_function(
        func: Callable[..., Any], *, name: Optional[str] = None
    ) -> "Model":
        """Construct a Model from a plain function signature."""
        names = infer_param_names(func)

        # Numeric defaults in the signature become guesses.
        sig = inspect.signature(func)
        specs = []
        for n in names:
            d = sig.parameters[n].default
            g = None
            if isinstance(d, (int, float, np.number)) and not isinstance(d, bool):
                g = float(d)
            specs.append(ParameterSpec(name=n, guess=g))
        return Model(
            name=name or getattr(func, "__name__", "model"),
            func=func,
            param_names=names,
            params=tuple(specs),
        )

    # ---- evaluation ----
    def eval(
        self, x: Any, *, params: Optional[Mapping[str, Any]] = None, **kwargs
    ) -> Any:
        """Evaluate the model function at x with given parameters."""
        values: Dict[str, Any] = dict(params or {})
        values.update(kwargs)

        for spec in self.params:
            if spec.fixed and spec.name not in values:
                values[spec.name] = spec.fixed_value

        missing = [n for n in self.param_names if n not in values]
        if missing:
            raise TypeError(f"Missing parameter values for: {missing}")

        args = [x] + [values[n] for n in self.param_names]
        return self.func(*args)

    # ---- builders (pure; return new model) ----
    def fix(self, **fixed: float) -> "Model":
        """Fix parameters to values; they are left out of the search."""
        return self._with(fixed, lambda v: {"fixed": True, "fixed_value": float(v)})

    def bound(self, **bounds: Tuple[Optional[float], Optional[float]]) -> "Model":
        """Search bounds (lo, hi); a free parameter needs both to be finite."""
        return self._with(bounds, lambda b: {"bounds": tuple(b)})

    def guess(self, **guesses: float) -> "Model":
        return self._with(guesses, lambda g: {"guess": float(g)})

    def _with(
        self, updates: Mapping[str, Any], fields: Callable[[Any], Dict[str, Any]]
    ) -> "Model":
        unknown = [k for k in updates if k not in self.param_names]
        if unknown:
            raise KeyError(", ".join(unknown))
        params = tuple(
            replace(p, **fields(updates[p.name])) if p.name in updates else p
            for p in self.params
        )
        return replace(self, params=params)

    # ---- fitting ----
    def variables(self) -> Tuple[OptimizationVariable, ...]:
        """Parameters as Fixed / Optimized variables, in signature order.

        Every free parameter needs finite bounds; a missing guess defaults to
        the mid-point of the bounds.
        """
        out = []
        unbounded = []
        for p in self.params:
            if p.fixed:
                if p.fixed_value is None:
                    raise ValueError(f"Parameter {p.name} is fixed but has no fixed_value.")
                out.append(Fixed(float(p.fixed_value)))
                continue
            lo, hi = p.bounds if p.bounds is not None else (None, None)
            if lo is None or hi is None or not (np.isfinite(lo) and np.isfinite(hi)):
                unbounded.append(p.name)
                continue
            lo, hi = float(lo), float(hi)
            g = 0.5 * (lo + hi) if p.guess is None else float(p.guess)
            out.append(Optimized(Range(lo, hi, g)))
        if unbounded:
            raise ValueError(
                "Free parameters need finite bounds: "
                + ", ".join(unbounded)
                + ". Use model.bound(...) or model.fix(...)."
            )
        return tuple(out)

    def fit(
        self,
        x: Any,
        y: Any,
        sigma: Any = None,
        *,
        max_evaluations: int = 10_000,
        population_size: int = 20,
        seed: Any = None,
        workers: Optional[MapLike] = None,
    ) -> ModelFit:
        """Least-squares fit of the free parameters to ``y`` (weighted by ``1/sigma``)."""
        objective = SumOfSquares(self.func, x, np.asarray(y, dtype=float), sigma)
        res = fit(
            self.variables(),
            objective,
            max_evaluations,
            population_size,
            seed=seed,
            workers=workers,
        )
        values = {
            n: safe_float(v) for n, v in zip(self.param_names, res.parameters)
        }
        return ModelFit(
            model=self,
            values=values,
            chi2=float(res.error),
            evaluations_used=res.evaluations_used,
            calibration=res,
        )
