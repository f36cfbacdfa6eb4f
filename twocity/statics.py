"""
Comparative statics and relocation cutoffs.
"""

import time

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from twocity.bellman import move_probabilities, solve_bellman
from twocity.equilibrium import find_equilibrium
from twocity.parameters import profit_function

SWEEP_FACTORS = (0.5, 1.0, 1.5)
BETA_LIST = (0.20, 0.50, 0.80, 0.90, 0.95, 0.99)


# =============================================================================
# Equilibrium share across parameters
# =============================================================================

def comparative_statics(params, overrides, model="baseline", verbose=False):
    """
    Stationary share for each set of parameter overrides.

    A failed point (no bracketed root, singular spline, invalid
    parameters) is kept as a row with alpha_star = NaN and the error
    message; the remaining points are still solved.
    """
    rows = []
    for override in overrides:
        t0 = time.time()
        row = dict(override)
        try:
            res = find_equilibrium(params.replace(**override), model)
        except (ValueError, ArithmeticError) as e:
            row.update(alpha_star=np.nan, residual=np.nan, status="failed",
                       error=f"{type(e).__name__}: {e}")
        else:
            row.update(alpha_star=res.alpha_star, residual=res.residual,
                       status="ok" if res.converged else "not converged", error="")
        if verbose:
            print(f"  [Statics] {override} -> alpha*={row['alpha_star']:.6f} "
                  f"({row['status']}, {time.time() - t0:.2f}s)")
        rows.append(row)
    return pd.DataFrame(rows)


def parameter_sweep(params, name, factors=SWEEP_FACTORS, model="baseline", verbose=False):
    """Vary one parameter as multiples of its baseline value."""
    base = getattr(params, name)
    df = comparative_statics(params, [{name: base * f} for f in factors],
                             model=model, verbose=verbose)
    df.insert(0, "factor", list(factors))
    df.insert(0, "parameter", name)
    return df


# =============================================================================
# Cutoffs
# =============================================================================

def deterministic_surplus(z, alpha, params):
    """Myopic surplus of moving 1 -> 2: pi2(z) - pi1(z) - m."""
    f = profit_function(params)
    z = np.asarray(z, dtype=np.float64)
    return f(-z, 1.0 - alpha) - f(z, alpha) - params.move_cost


def _expand_bracket(h, lo, hi, max_expand=60):
    h_lo, h_hi = h(lo), h(hi)
    for _ in range(max_expand):
        if h_lo * h_hi < 0.0:
            return lo, hi
        lo, hi = 2.0 * lo, 2.0 * hi
        h_lo, h_hi = h(lo), h(hi)
    raise ValueError(f"surplus does not change sign on [{lo:.3g}, {hi:.3g}]")


def deterministic_cutoff(alpha, params):
    """
    Shock z* at which the myopic surplus vanishes; a firm in city 1
    moves iff z < z*. The bracket starts at +/- 2 sigma_z and is doubled
    until it contains a sign change.
    """
    def h(z):
        return float(deterministic_surplus(z, alpha, params))

    lo, hi = _expand_bracket(h, -2.0 * params.sigma_z, 2.0 * params.sigma_z)
    return brentq(h, lo, hi, xtol=1e-14)


def dynamic_cutoff(solution, params):
    """Root of the forward-looking surplus W2(z) - m - W1(z) between nodes."""
    dv1 = solution.surplus()[0]
    on_node = np.flatnonzero(dv1 == 0.0)
    if on_node.size:
        return float(solution.nodes[on_node[0]])
    change = np.flatnonzero(np.sign(dv1[:-1]) * np.sign(dv1[1:]) < 0)
    if change.size == 0:
        raise ValueError("forward-looking surplus has no sign change on the nodes")
    k = change[0]
    spl = solution.splines()

    def h(z):
        return spl["w2"](z) - solution.move_cost - spl["w1"](z)

    return brentq(h, solution.nodes[k], solution.nodes[k + 1], xtol=1e-14)


def relocation_curve(alpha, params, z):
    """Probability that a city-1 firm with shock z moves, at share alpha."""
    sol = solve_bellman(alpha, params)
    return move_probabilities(sol, params, np.asarray(z, dtype=np.float64))[0]


def relocation_by_beta(alpha, params, z, betas=BETA_LIST):
    """relocation_curve for each discount factor, as a DataFrame indexed by z."""
    curves = {beta: relocation_curve(alpha, params.replace(beta=beta), z) for beta in betas}
    return pd.DataFrame(curves, index=pd.Index(np.asarray(z), name="z"))
