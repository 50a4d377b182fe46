from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from sensible_calibrate.solver import (
    MutationConfig,
    Status,
    TerminationConfig,
    minimize,
    termination_status,
)


def shifted_sphere(v: np.ndarray) -> float:
    return float(np.sum((np.asarray(v) - 0.3) ** 2) + 1.0)


LO = np.array([-2.0, -2.0, -2.0])
HI = np.array([2.0, 2.0, 2.0])


def test_evaluation_accounting_is_exact():
    generations = []
    res = minimize(
        shifted_sphere,
        LO,
        HI,
        mutation=MutationConfig(population_size=10),
        termination=TerminationConfig(max_evaluations=105),
        seed=0,
        callback=lambda state, nit: generations.append(nit),
    )
    assert res.status is Status.MAX_EVALUATIONS_REACHED
    assert res.nit == 10
    assert res.nfev == 10 * (1 + res.nit)
    assert generations == list(range(11))


def test_best_is_monotonic_and_population_stays_in_bounds():
    history = []

    def check(state, nit):
        assert np.all(state.candidates >= LO)
        assert np.all(state.candidates <= HI)
        history.append(state.best_fitness)

    res = minimize(
        shifted_sphere,
        LO,
        HI,
        mutation=MutationConfig(population_size=12),
        termination=TerminationConfig(max_evaluations=1200),
        seed=1,
        callback=check,
    )
    assert np.all(np.diff(history) <= 0.0)
    assert res.fun == history[-1]
    assert np.allclose(res.x, 0.3, atol=0.1)


def test_runs_are_deterministic_for_a_seed():
    kwargs = dict(
        mutation=MutationConfig(population_size=8),
        termination=TerminationConfig(max_evaluations=400),
        seed=1234,
    )
    a = minimize(shifted_sphere, LO, HI, **kwargs)
    b = minimize(shifted_sphere, LO, HI, **kwargs)
    c = minimize(shifted_sphere, LO, HI, mutation=kwargs["mutation"],
                 termination=kwargs["termination"], seed=4321)
    assert np.array_equal(a.x, b.x)
    assert a.fun == b.fun
    assert np.array_equal(a.population, b.population)
    assert not np.array_equal(a.population, c.population)


def test_workers_do_not_change_the_outcome():
    kwargs = dict(
        mutation=MutationConfig(population_size=8),
        termination=TerminationConfig(max_evaluations=400),
        seed=99,
    )
    serial = minimize(shifted_sphere, LO, HI, **kwargs)
    with ThreadPoolExecutor(max_workers=4) as pool:
        threaded = minimize(shifted_sphere, LO, HI, workers=pool.map, **kwargs)
    mapped = minimize(shifted_sphere, LO, HI, workers=map, **kwargs)
    assert np.array_equal(serial.x, threaded.x)
    assert np.array_equal(serial.x, mapped.x)
    assert serial.nfev == threaded.nfev == mapped.nfev


def test_target_error_stops_early():
    res = minimize(
        lambda v: float(np.sum(np.asarray(v) ** 2)),
        LO,
        HI,
        mutation=MutationConfig(population_size=10),
        termination=TerminationConfig(max_evaluations=100_000, target_error=0.5),
        seed=0,
    )
    assert res.status is Status.TARGET_REACHED
    assert res.fun <= 0.5
    assert res.nfev < 100_000
    assert res.nfev == 10 * (1 + res.nit)


def test_iteration_cap():
    res = minimize(
        shifted_sphere,
        LO,
        HI,
        mutation=MutationConfig(population_size=6),
        termination=TerminationConfig(max_iterations=3, max_evaluations=10**6),
        seed=0,
    )
    assert res.status is Status.MAX_ITERATIONS_REACHED
    assert res.nit == 3
    assert res.nfev == 6 * 4


def test_callback_can_stop_the_search():
    res = minimize(
        shifted_sphere,
        LO,
        HI,
        mutation=MutationConfig(population_size=6),
        termination=TerminationConfig(max_evaluations=10**6),
        seed=0,
        callback=lambda state, nit: nit == 2,
    )
    assert res.status is Status.CALLBACK_STOPPED
    assert res.nit == 2
    assert res.nfev == 18


def test_termination_priority():
    cfg = TerminationConfig(max_iterations=5, max_evaluations=100, target_error=0.0)
    assert termination_status(0.0, 100, 0, cfg) is Status.TARGET_REACHED
    assert termination_status(1.0, 100, 0, cfg) is Status.MAX_EVALUATIONS_REACHED
    assert termination_status(1.0, 10, 0, cfg) is Status.MAX_ITERATIONS_REACHED
    assert termination_status(1.0, 10, 1, cfg) is None
    assert termination_status(np.nan, 10, 1, cfg) is None
    assert termination_status(-np.inf, 10, 1, cfg) is None
    assert termination_status(-np.inf, 100, 1, cfg) is Status.MAX_EVALUATIONS_REACHED


def test_non_finite_regions_are_never_reported_as_best():
    def objective(v):
        v = np.asarray(v)
        if v[0] > 0.0:
            return float("nan")
        return float(np.sum(v ** 2))

    res = minimize(
        objective,
        LO,
        HI,
        mutation=MutationConfig(population_size=10),
        termination=TerminationConfig(max_evaluations=500),
        seed=3,
    )
    assert np.isfinite(res.fun)
    assert res.x[0] <= 0.0
    assert res.success


def test_small_budget_warns_but_evaluates_initial_population():
    with pytest.warns(UserWarning, match="smaller than one population"):
        res = minimize(
            shifted_sphere,
            LO,
            HI,
            mutation=MutationConfig(population_size=10),
            termination=TerminationConfig(max_evaluations=5),
            seed=0,
        )
    assert res.nfev == 10
    assert res.nit == 0


@pytest.mark.parametrize(
    "lo, hi, mutation",
    [
        ([1.0], [0.0], MutationConfig()),
        ([0.0], [np.inf], MutationConfig()),
        ([0.0], [1.0], MutationConfig(population_size=3)),
        ([0.0], [1.0], MutationConfig(crossover_rate=1.5)),
    ],
)
def test_invalid_configuration_raises(lo, hi, mutation):
    with pytest.raises(ValueError):
        minimize(shifted_sphere, lo, hi, mutation=mutation, seed=0)


def test_degenerate_bounds_are_allowed():
    res = minimize(
        shifted_sphere,
        [0.5, -1.0],
        [0.5, 1.0],
        mutation=MutationConfig(population_size=6),
        termination=TerminationConfig(max_evaluations=120),
        seed=0,
    )
    assert np.all(res.population[:, 0] == 0.5)


def test_non_finite_fitness_never_meets_the_target():
    res = minimize(
        lambda v: -np.inf,
        LO,
        HI,
        mutation=MutationConfig(population_size=4),
        termination=TerminationConfig(max_evaluations=40),
        seed=0,
    )
    assert res.status is Status.MAX_EVALUATIONS_REACHED
    assert res.nfev == 40
    assert not res.success


def test_empty_box_is_rejected():
    with pytest.raises(ValueError, match="at least one free parameter"):
        minimize(
            lambda v: 1.0,
            [],
            [],
            mutation=MutationConfig(population_size=4),
            termination=TerminationConfig(max_evaluations=40),
        )
