"""
Value-function iteration for the baseline two-city relocation problem.

At a fixed aggregate share alpha (fraction of firms in city 1), a firm
with productivity shock z earns pi1 = f(z, alpha) in city 1 and
pi2 = f(-z, 1 - alpha) in city 2. Each period it either stays or pays the
moving cost m and relocates immediately:

    V1(z) = max( pi1 + beta EV1,  pi2 - m + beta EV2 )
    V2(z) = max( pi2 + beta EV2,  pi1 - m + beta EV1 )

Shocks are i.i.d. N(0, sigma_z^2), so EV_l = sum_i omega_i V_l(z_i) is a
scalar and the iteration runs directly on the Gauss-Hermite node samples.
"""

from dataclasses import dataclass

import numpy as np
from numba import njit
from scipy.special import expit

from twocity.parameters import profit_function
from twocity.quadrature import gauss_hermite, scaled_nodes
from twocity.spline import make_spline


# =============================================================================
# Bellman operator
# =============================================================================

@njit(cache=True)
def bellman_iteration(pi1, pi2, weights, beta, move_cost, tol, maxit, v1_init, v2_init):
    """
    Iterate the Bellman operator on the nodes until the sup-norm change
    of both value functions is below tol or maxit is reached.

    Returns v1, v2, iterations, final distance and the distance history.
    """
    n = len(pi1)
    v1 = v1_init.copy()
    v2 = v2_init.copy()
    v1_new = np.empty(n)
    v2_new = np.empty(n)
    history = np.zeros(maxit)

    it = 0
    dist = np.inf
    while it < maxit:
        ev1 = 0.0
        ev2 = 0.0
        for i in range(n):
            ev1 += weights[i] * v1[i]
            ev2 += weights[i] * v2[i]

        dist = 0.0
        for i in range(n):
            stay1 = pi1[i] + beta * ev1
            move1 = pi2[i] - move_cost + beta * ev2
            stay2 = pi2[i] + beta * ev2
            move2 = pi1[i] - move_cost + beta * ev1
            v1_new[i] = max(stay1, move1)
            v2_new[i] = max(stay2, move2)
            d = max(abs(v1_new[i] - v1[i]), abs(v2_new[i] - v2[i]))
            if d > dist:
                dist = d

        for i in range(n):
            v1[i] = v1_new[i]
            v2[i] = v2_new[i]
        history[it] = dist
        it += 1
        if dist < tol:
            break

    return v1, v2, it, dist, history[:it]


# =============================================================================
# Solution container
# =============================================================================

@dataclass(frozen=True)
class BellmanSolution:
    alpha: float
    nodes: np.ndarray
    weights: np.ndarray
    v1: np.ndarray
    v2: np.ndarray
    w1: np.ndarray       # stay value in city 1: pi1 + beta EV1
    w2: np.ndarray       # stay value in city 2: pi2 + beta EV2
    ev1: float
    ev2: float
    iterations: int
    distance: float
    converged: bool
    history: np.ndarray
    move_cost: float
    extrapolation: str = "flat"

    def splines(self):
        """Natural splines of V1, V2, W1, W2 over the shock nodes."""
        return {name: make_spline(self.nodes, getattr(self, name), self.extrapolation)
                for name in ("v1", "v2", "w1", "w2")}

    def surplus(self):
        """Surplus of moving 1 -> 2 and 2 -> 1 at the nodes."""
        return (self.w2 - self.move_cost - self.w1,
                self.w1 - self.move_cost - self.w2)


def node_profits(alpha, params, nodes):
    f = profit_function(params)
    return f(nodes, alpha), f(-nodes, 1.0 - alpha)


def solve_bellman(alpha, params, guess=None, verbose=False):
    """
    Solve the firm's dynamic program at share alpha.

    guess: optional (v1, v2) pair or BellmanSolution used as a warm start.
    Exhausting params.maxit is not an error: the last iterate is returned
    with converged=False.
    """
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must lie in (0, 1), got {alpha}")

    xi, omega = gauss_hermite(params.n_q)
    nodes = scaled_nodes(xi, params.sigma_z)
    pi1, pi2 = node_profits(alpha, params, nodes)

    if guess is None:
        v1_init = np.zeros(params.n_q)
        v2_init = np.zeros(params.n_q)
    elif isinstance(guess, BellmanSolution):
        v1_init, v2_init = guess.v1, guess.v2
    else:
        v1_init, v2_init = guess
    v1_init = np.ascontiguousarray(v1_init, dtype=np.float64)
    v2_init = np.ascontiguousarray(v2_init, dtype=np.float64)
    if v1_init.shape != (params.n_q,) or v2_init.shape != (params.n_q,):
        raise ValueError("warm start must have one value per quadrature node")

    v1, v2, it, dist, history = bellman_iteration(
        pi1, pi2, np.ascontiguousarray(omega), params.beta, params.move_cost,
        params.tol, params.maxit, v1_init, v2_init)

    ev1 = float(omega @ v1)
    ev2 = float(omega @ v2)
    converged = bool(dist < params.tol)
    if verbose:
        status = "CONVERGED" if converged else "NOT CONVERGED"
        print(f"      [VFI] alpha={alpha:.6f}  it={it}  |dV|={dist:.2e}  {status}")

    return BellmanSolution(
        alpha=float(alpha), nodes=nodes, weights=np.array(omega),
        v1=v1, v2=v2, w1=pi1 + params.beta * ev1, w2=pi2 + params.beta * ev2,
        ev1=ev1, ev2=ev2, iterations=int(it), distance=float(dist),
        converged=converged, history=history, move_cost=params.move_cost,
        extrapolation=params.extrapolation)


# =============================================================================
# Relocation choice
# =============================================================================

def choice_probability(dv, sigma_eta):
    """
    Probability of moving given the surplus dv.

    sigma_eta == 0 gives the hard threshold dv > 0; otherwise the logit
    1 / (1 + exp(-dv / sigma_eta)).
    """
    dv = np.asarray(dv, dtype=np.float64)
    if sigma_eta == 0:
        return (dv > 0).astype(np.float64)
    return expit(dv / sigma_eta)


def move_probabilities(solution, params, z, splines=None):
    """
    Move probabilities (city 1 -> 2, city 2 -> 1) for firms with shocks z,
    evaluated off the nodes through the stay-value splines.
    """
    if splines is None:
        splines = solution.splines()
    w1 = splines["w1"](z)
    w2 = splines["w2"](z)
    dv1 = w2 - solution.move_cost - w1
    dv2 = w1 - solution.move_cost - w2
    return choice_probability(dv1, params.sigma_eta), choice_probability(dv2, params.sigma_eta)
