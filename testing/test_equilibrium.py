import warnings

import numpy as np
import pytest

from twocity.equilibrium import (ConvergenceWarning, EquilibriumResult, NoEquilibriumError,
                                 expected_profits, find_equilibrium, fixed_point_map,
                                 law_of_motion)
from twocity.parameters import ModelParams


def test_symmetric_equilibrium(params):
    res = find_equilibrium(params)
    assert isinstance(res, EquilibriumResult)
    assert res.converged
    assert res.alpha_star == pytest.approx(0.5, abs=1e-6)
    assert abs(res.residual) < 1e-6


def test_fixed_point(params):
    res = find_equilibrium(params)
    alpha_next, _ = law_of_motion(res.alpha_star, params)
    assert abs(alpha_next - res.alpha_star) < 1e-6


def test_scenario_a():
    p = ModelParams(beta=0.95, theta=0.4, move_cost=0.25, sigma_z=0.1, sigma_eta=0.5, n_q=31)
    res = find_equilibrium(p)
    assert 0.05 < res.alpha_star < 0.95
    assert abs(res.residual) < 1e-6
    assert res.alpha_star == pytest.approx(0.5, abs=1e-6)


def test_threshold_rule_equilibrium(params):
    res = find_equilibrium(params.replace(sigma_eta=0.0))
    assert 0.05 < res.alpha_star < 0.95


def test_law_of_motion_restoring(params):
    """A crowded city loses firms and an empty one gains them."""
    lo, _ = law_of_motion(0.2, params)
    hi, _ = law_of_motion(0.8, params)
    assert lo > 0.2
    assert hi < 0.8
    assert lo == pytest.approx(1.0 - hi, abs=1e-10)


def test_no_sign_change(params):
    with pytest.raises(NoEquilibriumError):
        find_equilibrium(params, bracket=(0.6, 0.95))
    with pytest.raises(ValueError):
        find_equilibrium(params, bracket=(0.95, 0.6))


def test_unknown_model(params):
    with pytest.raises(ValueError):
        law_of_motion(0.5, params, model="mixed")


def test_nonconvergence_warns(params):
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        res = find_equilibrium(params.replace(maxit=3))
    assert any(issubclass(w.category, ConvergenceWarning) for w in caught)
    assert not res.converged


def test_fixed_point_map(params):
    alphas = np.array([0.2, 0.5, 0.8])
    phi = fixed_point_map(params, alphas)
    assert phi.shape == (3,)
    assert phi[1] == pytest.approx(0.5, abs=1e-10)
    assert np.allclose(phi, [law_of_motion(a, params)[0] for a in alphas])


def test_fixed_point_map_pool(params):
    alphas = np.array([0.3, 0.7])
    assert np.allclose(fixed_point_map(params, alphas, processes=2),
                       fixed_point_map(params, alphas))


def test_expected_profits(params):
    e1, e2 = expected_profits(0.5, params)
    assert e1 == pytest.approx(e2)
    assert e1 == pytest.approx(np.exp(params.sigma_z ** 2 / 2) * 0.5 ** -params.theta)
    e1, e2 = expected_profits(0.2, params)
    assert e1 > e2


def test_pool_after_parallel_spline_kernel(params):
    """The process pool still runs once the compiled spline kernel has used its threads."""
    from twocity.spline import create_grid, make_spline
    x = create_grid(0.0, 1.0, 11)
    make_spline(x, x ** 2)(np.linspace(0.0, 1.0, 50))
    alphas = np.array([0.3, 0.7])
    phi = fixed_point_map(params, alphas, processes=2)
    assert np.allclose(phi, [law_of_motion(a, params)[0] for a in alphas])
