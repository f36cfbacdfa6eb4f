"""
Gauss-Hermite quadrature against the normal density.

Physicists' nodes xi and weights (weight function exp(-x^2)) rescaled by
1/sqrt(pi), so that

    sum_i omega_i * f(mu + sqrt(2) * sigma * xi_i)  ~  E[f(Z)],  Z ~ N(mu, sigma^2)

and omega can be used directly as a discrete probability measure.
"""

from functools import lru_cache

import numpy as np
from numpy.polynomial.hermite import hermgauss


@lru_cache(maxsize=None)
def gauss_hermite(n_q):
    """Nodes and normalised weights for n_q-point Gauss-Hermite quadrature."""
    if n_q < 1:
        raise ValueError("gauss_hermite: need at least one node")
    xi, omega = hermgauss(int(n_q))
    omega = omega / np.sqrt(np.pi)
    xi.flags.writeable = False
    omega.flags.writeable = False
    return xi, omega


def scaled_nodes(xi, sigma, mu=0.0):
    return mu + np.sqrt(2.0) * sigma * np.asarray(xi)


def expectation(f, sigma, n_q=31, mu=0.0):
    """E[f(Z)] for Z ~ N(mu, sigma^2); f must accept an array of nodes."""
    xi, omega = gauss_hermite(n_q)
    return float(omega @ np.asarray(f(scaled_nodes(xi, sigma, mu)), dtype=np.float64))


def tensor_rule(n_q):
    """
    Product rule for two independent standard shocks.

    Returns (xi1, xi2, weights) as flat arrays of length n_q**2, with the
    first coordinate varying slowest.
    """
    xi, omega = gauss_hermite(n_q)
    xi1, xi2 = np.meshgrid(xi, xi, indexing='ij')
    weights = np.outer(omega, omega)
    return xi1.ravel(), xi2.ravel(), weights.ravel()
