"""
Monte-Carlo transition of the city-1 share.

Starting from alpha0, each period draws a cross-section of productivity
shocks, turns the forward-looking surplus into relocation probabilities
with the same choice rule as the equilibrium solver and updates

    alpha' = alpha (1 - mean P1) + (1 - alpha) mean P2

then re-solves the firm problem at alpha' (warm-started).
"""

import time
import warnings

import numpy as np

from twocity.bellman import move_probabilities, solve_bellman
from twocity.equilibrium import ConvergenceWarning, check_model, find_equilibrium
from twocity.search import search_move_probabilities, solve_search_bellman
from twocity.spline import ExtrapolationWarning


def _draw_shocks(model, params, state, rng, n_firms):
    if model == "baseline":
        return params.sigma_z * rng.standard_normal(n_firms)
    z1, z2 = state
    return (params.rho * z1 + params.sigma_z * rng.standard_normal(n_firms),
            params.rho * z2 + params.sigma_z * rng.standard_normal(n_firms))


def _initial_state(model, params, z0, rng, n_firms):
    if model == "baseline":
        return None
    if z0 is None:
        # stationary distribution of the AR(1)
        return (params.sigma_lr * rng.standard_normal(n_firms),
                params.sigma_lr * rng.standard_normal(n_firms))
    z1, z2 = np.broadcast_to(np.asarray(z0, dtype=np.float64), (2,))
    return np.full(n_firms, z1), np.full(n_firms, z2)


def _probabilities(model, solution, params, state):
    if model == "baseline":
        return move_probabilities(solution, params, state)
    return search_move_probabilities(solution, params, state[0], state[1])


def _solve(model, alpha, params, guess):
    if model == "baseline":
        return solve_bellman(alpha, params, guess=guess)
    return solve_search_bellman(alpha, params, guess=guess)


def _single_path(T, params, alpha0, n_firms, rng, model, resolve, z0, solution):
    alpha_path = np.empty(T)
    move_path = np.empty(T)
    alpha = alpha0
    sol = solution if solution is not None else _solve(model, alpha, params, None)
    state = _initial_state(model, params, z0, rng, n_firms)
    nonconverged = 0

    with warnings.catch_warnings():
        # shocks beyond the quadrature nodes are expected in a large cross-section
        warnings.simplefilter("ignore", ExtrapolationWarning)
        for t in range(T):
            alpha_path[t] = alpha
            state = _draw_shocks(model, params, state, rng, n_firms)
            p_move1, p_move2 = _probabilities(model, sol, params, state)
            move_path[t] = alpha * p_move1.mean() + (1.0 - alpha) * p_move2.mean()
            alpha = alpha * (1.0 - p_move1.mean()) + (1.0 - alpha) * p_move2.mean()
            # the share must stay interior for the profit functional
            alpha = float(np.clip(alpha, 1e-6, 1.0 - 1e-6))
            if resolve and t < T - 1:
                sol = _solve(model, alpha, params, sol)
                nonconverged += not sol.converged

    return alpha_path, move_path, nonconverged


def simulate_path(T, params, alpha0=None, n_firms=None, n_paths=1, rng=None,
                  model="baseline", resolve=True, z0=0.0, solution=None, verbose=False):
    """
    Simulate T periods of the aggregate share.

    Returns a dict with 'alpha' and 'move' averaged over paths and the
    per-path 'alpha_paths' / 'move_paths' of shape (n_paths, T).
    With n_paths > 1 each path draws from its own child generator
    spawned from rng.
    alpha0=None starts at the stationary equilibrium.
    """
    check_model(model)
    if T < 1:
        raise ValueError("T must be at least 1")
    if rng is None:
        rng = np.random.default_rng(params.seed)
    if n_firms is None:
        n_firms = params.n_mc
    if alpha0 is None:
        alpha0 = find_equilibrium(params, model).alpha_star
    if not 0.0 < alpha0 < 1.0:
        raise ValueError(f"alpha0 must lie in (0, 1), got {alpha0}")

    t0 = time.time()
    generators = [rng] if n_paths == 1 else rng.spawn(n_paths)
    alpha_paths = np.empty((n_paths, T))
    move_paths = np.empty((n_paths, T))
    nonconverged = 0
    for p, gen in enumerate(generators):
        alpha_paths[p], move_paths[p], nc = _single_path(
            T, params, float(alpha0), n_firms, gen, model, resolve, z0, solution)
        nonconverged += nc
        if verbose:
            print(f"  [Transition] path {p + 1}/{n_paths}: "
                  f"alpha_0={alpha_paths[p, 0]:.4f} -> alpha_T={alpha_paths[p, -1]:.4f}")

    if nonconverged:
        warnings.warn(f"{nonconverged} value-function solve(s) along the path hit maxit",
                      ConvergenceWarning, stacklevel=2)
    if verbose:
        print(f"  [Transition] {n_paths} path(s) x {T} periods in {time.time() - t0:.2f}s")

    return {"alpha": alpha_paths.mean(axis=0), "move": move_paths.mean(axis=0),
            "alpha_paths": alpha_paths, "move_paths": move_paths}


def hitting_time(path, target, band):
    """First period t with |path[t] - target| < band, or None."""
    hits = np.flatnonzero(np.abs(np.asarray(path) - target) < band)
    return int(hits[0]) if hits.size else None
