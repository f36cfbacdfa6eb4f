"""
Extended model: persistent shocks and costly search.

Each firm carries a productivity pair (z1, z2), one per city, following

    z' = rho z + sigma_z eps,   eps ~ N(0, 1)

Value functions live on a rectangular grid over (z1, z2). A firm in
city 1 either decides on current information (stay, or move paying
c_move), or pays c_search to preview next period's shocks in both cities
and then picks the better location:

    no-search :  max( pi1 + beta E[V1'],  pi2 + beta E[V2'] - c_move )
    search    :  pi1 - c_search + beta E[ max(V1', V2' - c_move) ]
    V1        =  max( no-search, search )

and symmetrically for city 2. Expectations are tensor-product
Gauss-Hermite sums over next-period shocks evaluated off the grid with
natural cubic splines (flat beyond the grid).
"""

from dataclasses import dataclass

import numpy as np

from twocity.bellman import choice_probability
from twocity.parameters import profit_function
from twocity.quadrature import gauss_hermite, scaled_nodes, tensor_rule
from twocity.spline import basis_matrix, create_grid, make_spline2d


@dataclass(frozen=True)
class SearchSolution:
    alpha: float
    zgrid: np.ndarray
    v1: np.ndarray
    v2: np.ndarray
    iterations: int
    distance: float
    converged: bool
    history: np.ndarray

    def splines(self):
        return {"v1": make_spline2d(self.zgrid, self.zgrid, self.v1),
                "v2": make_spline2d(self.zgrid, self.zgrid, self.v2)}


def shock_grid(params):
    """Equally spaced grid over +/- 3 long-run standard deviations."""
    zmax = 3.0 * params.sigma_lr
    return create_grid(-zmax, zmax, params.n_grid)


def transition_operators(zgrid, z, params):
    """
    Spline weights for next-period shocks given current shocks z.

    Returns (L, Q): L has shape (len(z), n_q, len(zgrid)) and gives the
    spline weights at rho z + sqrt(2) sigma_z xi_k; Q = sum_k omega_k L[:, k]
    is the conditional expectation operator, E[v(z') | z] = Q @ v.
    """
    xi, omega = gauss_hermite(params.n_q_search)
    z = np.atleast_1d(np.asarray(z, dtype=np.float64))
    zp = scaled_nodes(xi[None, :], params.sigma_z, params.rho * z[:, None])
    zp = np.clip(zp, zgrid[0], zgrid[-1])
    L = basis_matrix(zgrid, zp.ravel(), "flat").reshape(len(z), len(xi), len(zgrid))
    Q = np.einsum('k,mkj->mj', omega, L)
    return L, Q


def solve_search_bellman(alpha, params, guess=None, verbose=False):
    """
    Value-function iteration for the search model at share alpha
    (alpha in city 1, 1 - alpha in city 2).
    """
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must lie in (0, 1), got {alpha}")

    beta, c_move, c_search = params.beta, params.move_cost, params.search_cost
    zgrid = shock_grid(params)
    nz = len(zgrid)
    _, omega = gauss_hermite(params.n_q_search)
    nq = len(omega)
    w2d = np.outer(omega, omega)

    f = profit_function(params)
    pi1 = f(zgrid, alpha)[:, None]           # depends on z1 (rows)
    pi2 = f(zgrid, 1.0 - alpha)[None, :]     # depends on z2 (columns)

    L3, Q = transition_operators(zgrid, zgrid, params)
    L = L3.reshape(nz * nq, nz)

    if guess is None:
        V1 = np.zeros((nz, nz))
        V2 = np.zeros((nz, nz))
    elif isinstance(guess, SearchSolution):
        V1, V2 = guess.v1.copy(), guess.v2.copy()
    else:
        V1, V2 = (np.array(v, dtype=np.float64) for v in guess)
    if V1.shape != (nz, nz) or V2.shape != (nz, nz):
        raise ValueError("warm start must match the shock grid")

    history = []
    dist = np.inf
    it = 0
    while it < params.maxit:
        it += 1
        # no-search: expected continuation values
        EV1 = Q @ V1 @ Q.T
        EV2 = Q @ V2 @ Q.T
        stay1 = pi1 + beta * EV1
        move1 = pi2 + beta * EV2 - c_move
        stay2 = pi2 + beta * EV2
        move2 = pi1 + beta * EV1 - c_move

        # search: next-period values at every (z1', z2') node pair
        P1 = (L @ V1 @ L.T).reshape(nz, nq, nz, nq)
        P2 = (L @ V2 @ L.T).reshape(nz, nq, nz, nq)
        ES1 = np.einsum('kl,ikjl->ij', w2d, np.maximum(P1, P2 - c_move))
        ES2 = np.einsum('kl,ikjl->ij', w2d, np.maximum(P2, P1 - c_move))
        vsearch1 = pi1 - c_search + beta * ES1
        vsearch2 = pi2 - c_search + beta * ES2

        V1_new = np.maximum(np.maximum(stay1, move1), vsearch1)
        V2_new = np.maximum(np.maximum(stay2, move2), vsearch2)

        dist = max(np.max(np.abs(V1_new - V1)), np.max(np.abs(V2_new - V2)))
        V1, V2 = V1_new, V2_new
        history.append(dist)
        if verbose and (it < 3 or it % 50 == 0):
            print(f"    [Search VFI] it={it}, |dV|={dist:.3e}")
        if dist < params.tol:
            break

    converged = bool(dist < params.tol)
    if verbose:
        status = "CONVERGED" if converged else "NOT CONVERGED"
        print(f"    [Search VFI] alpha={alpha:.6f}  it={it}  |dV|={dist:.2e}  {status}")

    return SearchSolution(alpha=float(alpha), zgrid=zgrid, v1=V1, v2=V2,
                          iterations=it, distance=float(dist),
                          converged=converged, history=np.array(history))


def search_move_probabilities(solution, params, z1, z2):
    """
    Logit (or threshold) probabilities of moving 1 -> 2 and 2 -> 1 for
    firms with current shocks (z1[k], z2[k]), comparing the no-search
    stay and move values.
    """
    z1 = np.atleast_1d(np.asarray(z1, dtype=np.float64))
    z2 = np.atleast_1d(np.asarray(z2, dtype=np.float64))
    if z1.shape != z2.shape:
        raise ValueError("z1 and z2 must have the same shape")
    alpha = solution.alpha
    _, Qa = transition_operators(solution.zgrid, z1, params)
    _, Qb = transition_operators(solution.zgrid, z2, params)
    EV1 = np.einsum('mi,ij,mj->m', Qa, solution.v1, Qb)
    EV2 = np.einsum('mi,ij,mj->m', Qa, solution.v2, Qb)

    f = profit_function(params)
    pi1 = f(z1, alpha)
    pi2 = f(z2, 1.0 - alpha)
    stay1 = pi1 + params.beta * EV1
    move1 = pi2 + params.beta * EV2 - params.move_cost
    stay2 = pi2 + params.beta * EV2
    move2 = pi1 + params.beta * EV1 - params.move_cost

    p_move1 = choice_probability(move1 - stay1, params.sigma_eta)
    p_move2 = choice_probability(move2 - stay2, params.sigma_eta)
    return p_move1, p_move2


def ergodic_nodes(params):
    """Product Gauss-Hermite nodes of the stationary (z1, z2) distribution."""
    xi1, xi2, weights = tensor_rule(params.n_q_search)
    return scaled_nodes(xi1, params.sigma_lr), scaled_nodes(xi2, params.sigma_lr), weights


def search_law_of_motion(alpha, params, guess=None, verbose=False):
    """Next-period share of city 1 integrated over the ergodic shocks."""
    sol = solve_search_bellman(alpha, params, guess=guess, verbose=verbose)
    z1, z2, weights = ergodic_nodes(params)
    p_move1, p_move2 = search_move_probabilities(sol, params, z1, z2)

    alpha1_new = weights @ (alpha * (1.0 - p_move1) + (1.0 - alpha) * p_move2)
    alpha2_new = weights @ ((1.0 - alpha) * (1.0 - p_move2) + alpha * p_move1)
    return float(alpha1_new / (alpha1_new + alpha2_new)), sol


def average_value(solution, params):
    """Share-weighted ergodic mean of the value functions (welfare)."""
    z1, z2, weights = ergodic_nodes(params)
    spl = solution.splines()
    alpha = solution.alpha
    return float(weights @ (alpha * spl["v1"](z1, z2) + (1.0 - alpha) * spl["v2"](z1, z2)))
