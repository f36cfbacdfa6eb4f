"""
Tests for value-function iteration at a fixed share.
"""

import numpy as np
import pytest

from twocity.bellman import (BellmanSolution, choice_probability, move_probabilities,
                             solve_bellman)


def test_converges(params):
    sol = solve_bellman(0.4, params)
    assert isinstance(sol, BellmanSolution)
    assert sol.converged
    assert sol.distance < params.tol
    assert sol.iterations == len(sol.history)
    assert sol.v1.shape == sol.v2.shape == (params.n_q,)


def test_contraction(params):
    """Sup-norm changes shrink at least at rate beta."""
    h = solve_bellman(0.3, params).history
    assert np.all(h[1:] <= params.beta * h[:-1] + 1e-12)


def test_maxit_reported_not_raised(params):
    sol = solve_bellman(0.3, params.replace(maxit=5))
    assert not sol.converged
    assert sol.iterations == 5
    assert sol.distance > params.tol


def test_bellman_equation_holds(params):
    alpha = 0.35
    sol = solve_bellman(alpha, params)
    pi1 = np.exp(sol.nodes) * alpha ** -params.theta
    pi2 = np.exp(-sol.nodes) * (1 - alpha) ** -params.theta
    m, b = params.move_cost, params.beta
    assert np.allclose(sol.v1, np.maximum(pi1 + b * sol.ev1, pi2 - m + b * sol.ev2), atol=1e-6)
    assert np.allclose(sol.v2, np.maximum(pi2 + b * sol.ev2, pi1 - m + b * sol.ev1), atol=1e-6)
    assert np.allclose(sol.w1, pi1 + b * sol.ev1)


def test_warm_start(params):
    cold = solve_bellman(0.45, params)
    warm = solve_bellman(0.45, params, guess=cold)
    assert warm.iterations <= 2
    assert np.allclose(warm.v1, cold.v1, atol=1e-7)
    pair = solve_bellman(0.45, params, guess=(cold.v1, cold.v2))
    assert pair.iterations == warm.iterations


def test_guess_not_mutated(params):
    v1 = np.ones(params.n_q)
    v2 = np.ones(params.n_q)
    sol = solve_bellman(0.5, params, guess=(v1, v2))
    assert np.all(v1 == 1.0) and np.all(v2 == 1.0)
    assert sol.v1 is not v1


def test_bad_inputs(params):
    with pytest.raises(ValueError):
        solve_bellman(0.0, params)
    with pytest.raises(ValueError):
        solve_bellman(1.2, params)
    with pytest.raises(ValueError):
        solve_bellman(0.5, params, guess=(np.zeros(3), np.zeros(3)))


def test_symmetric_share(params):
    sol = solve_bellman(0.5, params)
    assert np.allclose(sol.v1, sol.v2[::-1], atol=1e-10)
    assert sol.ev1 == pytest.approx(sol.ev2, abs=1e-10)


def test_surplus(params):
    sol = solve_bellman(0.3, params)
    dv1, dv2 = sol.surplus()
    assert np.allclose(dv1 + dv2, -2 * params.move_cost)
    # moving out of city 1 is more attractive the worse the local shock
    assert np.all(np.diff(dv1) < 0)


def test_choice_probability():
    dv = np.array([-1.0, 0.0, 0.5])
    assert np.array_equal(choice_probability(dv, 0.0), [0.0, 0.0, 1.0])
    p = choice_probability(dv, 0.5)
    assert p[1] == 0.5
    assert np.allclose(p, 1.0 / (1.0 + np.exp(-dv / 0.5)))
    # no overflow for large surplus
    assert choice_probability(1e4, 1e-3) == 1.0


def test_move_probabilities_off_nodes(params):
    sol = solve_bellman(0.5, params)
    z = np.linspace(-0.3, 0.3, 13)
    p1, p2 = move_probabilities(sol, params, z)
    assert np.all((0 <= p1) & (p1 <= 1))
    assert np.all(np.diff(p1) < 0)
    assert np.allclose(p1, p2[::-1], atol=1e-8)
