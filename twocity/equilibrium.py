"""
Stationary equilibrium of the city-1 share.

law_of_motion maps a conjectured share alpha to the next-period share
implied by optimal relocation; a stationary equilibrium is a root of

    g(alpha) = Phi(alpha) - alpha

found with Brent's method on params.bracket.
"""

import multiprocessing as mp
import time
import warnings
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy.optimize import brentq

from twocity.bellman import choice_probability, solve_bellman
from twocity.parameters import profit_function
from twocity.quadrature import gauss_hermite, scaled_nodes
from twocity.search import search_law_of_motion

MODELS = ("baseline", "search")


class NoEquilibriumError(ValueError):
    """Phi(alpha) - alpha has no sign change on the bracket."""


class ConvergenceWarning(UserWarning):
    """Value-function iteration stopped at maxit."""


@dataclass(frozen=True)
class EquilibriumResult:
    alpha_star: float
    residual: float
    solution: Any
    evaluations: int
    converged: bool
    elapsed: float = 0.0


def check_model(model):
    if model not in MODELS:
        raise ValueError(f"model must be one of {MODELS}, got '{model}'")


def baseline_law_of_motion(alpha, params, guess=None, verbose=False):
    """Phi(alpha) = sum_i omega_i [alpha (1 - P1(z_i)) + (1 - alpha) P2(z_i)]."""
    sol = solve_bellman(alpha, params, guess=guess, verbose=verbose)
    dv1, dv2 = sol.surplus()
    p_move1 = choice_probability(dv1, params.sigma_eta)
    p_move2 = choice_probability(dv2, params.sigma_eta)
    alpha_next = sol.weights @ (alpha * (1.0 - p_move1) + (1.0 - alpha) * p_move2)
    return float(alpha_next), sol


def law_of_motion(alpha, params, model="baseline", guess=None, verbose=False):
    """Return (Phi(alpha), solution) for the chosen model."""
    check_model(model)
    if model == "search":
        return search_law_of_motion(alpha, params, guess=guess, verbose=verbose)
    return baseline_law_of_motion(alpha, params, guess=guess, verbose=verbose)


def find_equilibrium(params, model="baseline", bracket=None, verbose=False):
    """
    Solve Phi(alpha) = alpha by Brent's method.

    Each trial alpha warm-starts value-function iteration from the
    previous trial. Raises NoEquilibriumError when g has the same sign
    (or a zero product) at both ends of the bracket.
    """
    check_model(model)
    lo, hi = params.bracket if bracket is None else (float(bracket[0]), float(bracket[1]))
    if not 0.0 < lo < hi < 1.0:
        raise ValueError(f"bracket must satisfy 0 < lo < hi < 1, got {(lo, hi)}")

    t0 = time.time()
    state = {"guess": None, "evals": 0, "nonconverged": 0}
    cache = {}

    def g(a):
        if a in cache:
            return cache[a]
        a_next, sol = law_of_motion(a, params, model, guess=state["guess"])
        state["guess"] = sol
        state["evals"] += 1
        if not sol.converged:
            state["nonconverged"] += 1
        cache[a] = a_next - a
        if verbose:
            print(f"  [Brent] alpha={a:.10f}  Phi={a_next:.10f}  g={a_next - a:+.3e}")
        return cache[a]

    g_lo, g_hi = g(lo), g(hi)
    if not g_lo * g_hi < 0.0:
        raise NoEquilibriumError(
            f"No sign change of Phi(alpha) - alpha on [{lo}, {hi}]: "
            f"g(lo)={g_lo:+.3e}, g(hi)={g_hi:+.3e}")

    alpha_star, info = brentq(g, lo, hi, xtol=params.xtol, full_output=True)

    alpha_next, sol = law_of_motion(alpha_star, params, model, guess=state["guess"])
    state["evals"] += 1
    if not sol.converged:
        state["nonconverged"] += 1
    if state["nonconverged"]:
        warnings.warn(
            f"{state['nonconverged']} value-function solve(s) hit maxit={params.maxit}",
            ConvergenceWarning, stacklevel=2)

    elapsed = time.time() - t0
    if verbose:
        print(f"  [Brent] alpha*={alpha_star:.10f}  |residual|={abs(alpha_next - alpha_star):.2e}"
              f"  evals={state['evals']}  ({elapsed:.2f}s)")

    return EquilibriumResult(
        alpha_star=float(alpha_star), residual=float(alpha_next - alpha_star),
        solution=sol, evaluations=state["evals"],
        converged=bool(info.converged and sol.converged), elapsed=elapsed)


# =============================================================================
# Diagnostics
# =============================================================================

def _phi_worker(args):
    alpha, params, model = args
    return law_of_motion(alpha, params, model)[0]


def fixed_point_map(params, alphas, model="baseline", processes=1):
    """Phi evaluated on a grid of shares, optionally across a process pool."""
    check_model(model)
    alphas = np.asarray(alphas, dtype=np.float64)
    tasks = [(float(a), params, model) for a in alphas]
    if processes > 1:
        # a forked child would inherit numba's running thread pool
        with mp.get_context("spawn").Pool(processes) as pool:
            out = pool.map(_phi_worker, tasks)
    else:
        out = [_phi_worker(t) for t in tasks]
    return np.array(out)


def expected_profits(alpha, params):
    """Expected per-period profit in each city at share alpha (i.i.d. shocks)."""
    xi, omega = gauss_hermite(params.n_q)
    z = scaled_nodes(xi, params.sigma_z)
    f = profit_function(params)
    return float(omega @ f(z, alpha)), float(omega @ f(-z, 1.0 - alpha))
