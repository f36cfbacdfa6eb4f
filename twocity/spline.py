"""
Natural cubic splines

Piecewise-cubic interpolation with zero second derivative at both ends.
Used to turn value functions known only at quadrature nodes (or on a
rectangular shock grid) into continuous functions of the shock.

- tridag: Thomas algorithm for the tridiagonal system of second derivatives
- make_spline / interp: construction and point evaluation
- basis_matrix: interpolation as a linear operator, L @ y == S_y(q)
- Spline2D: tensor-product natural spline on a rectangular grid
"""

import warnings
from dataclasses import dataclass

import numpy as np
from numba import njit, prange

PIVOT_TOL = 1.0e-12

# Extrapolation codes used inside the compiled kernels
EXTRAPOLATION_MODES = {"cubic": 0, "flat": 1, "linear": 2, "raise": 3}


class SplineSingularityError(ArithmeticError):
    """Pivot of the tridiagonal elimination fell below PIVOT_TOL."""


class ExtrapolationWarning(UserWarning):
    """Spline queried outside the range of its nodes."""


# =============================================================================
# Tridiagonal solver
# =============================================================================

@njit(cache=True)
def _tridag_kernel(a, b, c, r, toler):
    n = len(b)
    u = np.zeros(n)
    gam = np.zeros(n)

    bet = b[0]
    if abs(bet) <= toler:
        return u, 0
    u[0] = r[0] / bet
    for j in range(1, n):
        gam[j] = c[j - 1] / bet
        bet = b[j] - a[j] * gam[j]
        if abs(bet) <= toler:
            return u, j
        u[j] = (r[j] - a[j] * u[j - 1]) / bet
    for j in range(n - 2, -1, -1):
        u[j] -= gam[j + 1] * u[j + 1]
    return u, -1


def tridag(a, b, c, r, toler=PIVOT_TOL):
    """
    Solve a tridiagonal system by forward elimination / back substitution.

    a: sub-diagonal (a[0] unused), b: diagonal, c: super-diagonal
    (c[-1] unused), r: right-hand side. All of length n.

    Raises SplineSingularityError when a pivot has magnitude <= toler.
    """
    a = np.ascontiguousarray(a, dtype=np.float64)
    b = np.ascontiguousarray(b, dtype=np.float64)
    c = np.ascontiguousarray(c, dtype=np.float64)
    r = np.ascontiguousarray(r, dtype=np.float64)
    if not (len(a) == len(b) == len(c) == len(r)):
        raise ValueError("tridag: a, b, c and r must have the same length")
    u, failed = _tridag_kernel(a, b, c, r, toler)
    if failed >= 0:
        raise SplineSingularityError(
            f"Failure in tridag: pivot {failed} below {toler:.1e} "
            "(nodes too close or degenerate)")
    return u


# =============================================================================
# One-dimensional spline
# =============================================================================

@dataclass(frozen=True)
class Spline:
    n: int
    x: np.ndarray
    y: np.ndarray
    ydp: np.ndarray
    extrapolation: str = "flat"

    def __call__(self, q):
        """Spline value at q (scalar or array)."""
        if np.ndim(q) == 0:
            return interp(q, self)[0]
        return interp_many(q, self)[0]

    def derivative(self, q):
        return interp_many(np.atleast_1d(q), self, calcy=False, calcyp=True)[1]


def create_grid(xlow, xhigh, npts):
    """Equally spaced grid of npts points on [xlow, xhigh]."""
    return np.linspace(xlow, xhigh, npts)


def make_spline(fpts, flevel, extrapolation="flat"):
    """
    Natural cubic spline through (fpts[i], flevel[i]).

    Boundary rows enforce ydp[0] = ydp[-1] = 0; interior rows are the
    usual continuity conditions on the first derivative.
    """
    if extrapolation not in EXTRAPOLATION_MODES:
        raise ValueError(f"Unknown extrapolation mode '{extrapolation}'")
    x = np.array(fpts, dtype=np.float64)
    y = np.array(flevel, dtype=np.float64)
    npts = len(x)
    if x.ndim != 1 or y.shape != x.shape:
        raise ValueError("make_spline: x and y must be 1-D of equal length")
    if npts < 3:
        raise ValueError("make_spline: need at least 3 points")
    if np.any(np.diff(x) <= 0.0):
        raise ValueError("make_spline: abscissas must be strictly increasing")

    a = np.zeros(npts)
    b = np.zeros(npts)
    c = np.zeros(npts)
    r = np.zeros(npts)

    # Natural boundary conditions
    b[0] = 1.0
    b[-1] = 1.0

    dx = np.diff(x)
    slopes = np.diff(y) / dx
    a[1:-1] = dx[:-1] / 6.0
    b[1:-1] = (x[2:] - x[:-2]) / 3.0
    c[1:-1] = dx[1:] / 6.0
    r[1:-1] = slopes[1:] - slopes[:-1]

    ydp = tridag(a, b, c, r)

    x.flags.writeable = False
    y.flags.writeable = False
    ydp.flags.writeable = False
    return Spline(npts, x, y, ydp, extrapolation)


@njit(cache=True)
def _locate(x, q):
    klo = 0
    khi = len(x) - 1
    while khi - klo > 1:
        k = (khi + klo) // 2
        if x[k] > q:
            khi = k
        else:
            klo = k
    return klo, khi


@njit(cache=True)
def _eval_segment(x, y, ydp, q, klo, khi):
    h = x[khi] - x[klo]
    a = (x[khi] - q) / h
    b = (q - x[klo]) / h
    asq = a * a
    bsq = b * b
    val = a * y[klo] + b * y[khi] + \
        ((asq * a - a) * ydp[klo] + (bsq * b - b) * ydp[khi]) * (h * h) / 6.0
    slope = (y[khi] - y[klo]) / h - (3.0 * asq - 1.0) / 6.0 * h * ydp[klo] + \
        (3.0 * bsq - 1.0) / 6.0 * h * ydp[khi]
    curv = a * ydp[klo] + b * ydp[khi]
    return val, slope, curv


@njit(cache=True)
def _eval_point(x, y, ydp, q, mode):
    n = len(x)
    if mode == 1 or mode == 2:
        # flat / linear continuation beyond the end nodes
        if q < x[0] or q > x[n - 1]:
            if q < x[0]:
                edge = x[0]
                val, slope, _ = _eval_segment(x, y, ydp, edge, 0, 1)
            else:
                edge = x[n - 1]
                val, slope, _ = _eval_segment(x, y, ydp, edge, n - 2, n - 1)
            if mode == 1:
                return val, 0.0, 0.0
            return val + slope * (q - edge), slope, 0.0
    klo, khi = _locate(x, q)
    return _eval_segment(x, y, ydp, q, klo, khi)


@njit(cache=True, parallel=True)
def _eval_many(x, y, ydp, qs, mode):
    m = len(qs)
    vals = np.empty(m)
    slopes = np.empty(m)
    curvs = np.empty(m)
    for i in prange(m):
        val, slope, curv = _eval_point(x, y, ydp, qs[i], mode)
        vals[i] = val
        slopes[i] = slope
        curvs[i] = curv
    return vals, slopes, curvs


def _check_range(spline, lo, hi):
    if lo < spline.x[0] or hi > spline.x[-1]:
        if spline.extrapolation == "raise":
            raise ValueError(
                f"Spline query outside [{spline.x[0]:.4g}, {spline.x[-1]:.4g}]")
        return True
    return False


def interp(x, yspline, calcy=True, calcyp=False, calcydp=False):
    """
    Evaluate a spline at the scalar x.

    Returns (y, yp, ydp); entries that were not requested are 0.0.
    """
    x = float(x)
    if _check_range(yspline, x, x):
        warnings.warn(
            f"spline query {x:.4g} outside [{yspline.x[0]:.4g}, {yspline.x[-1]:.4g}] "
            f"({yspline.extrapolation} extrapolation)",
            ExtrapolationWarning, stacklevel=2)
    mode = EXTRAPOLATION_MODES[yspline.extrapolation]
    val, slope, curv = _eval_point(yspline.x, yspline.y, yspline.ydp, x, mode)
    return (val if calcy else 0.0,
            slope if calcyp else 0.0,
            curv if calcydp else 0.0)


def interp_many(q, yspline, calcy=True, calcyp=False, calcydp=False):
    """Vectorised interp; returns three arrays shaped like q."""
    q = np.asarray(q, dtype=np.float64)
    shape = q.shape
    flat = np.ascontiguousarray(q.ravel())
    if flat.size and _check_range(yspline, flat.min(), flat.max()):
        n_out = int(np.sum((flat < yspline.x[0]) | (flat > yspline.x[-1])))
        warnings.warn(
            f"{n_out} of {flat.size} spline queries outside "
            f"[{yspline.x[0]:.4g}, {yspline.x[-1]:.4g}] "
            f"({yspline.extrapolation} extrapolation)",
            ExtrapolationWarning, stacklevel=2)
    mode = EXTRAPOLATION_MODES[yspline.extrapolation]
    vals, slopes, curvs = _eval_many(yspline.x, yspline.y, yspline.ydp, flat, mode)
    return (vals.reshape(shape) if calcy else np.zeros(shape),
            slopes.reshape(shape) if calcyp else np.zeros(shape),
            curvs.reshape(shape) if calcydp else np.zeros(shape))


def basis_matrix(fpts, q, extrapolation="flat"):
    """
    Interpolation operator of the natural spline on fpts.

    Row k holds the weights such that S_y(q[k]) = L[k] @ y for any
    ordinates y: column j is the spline through the unit vector e_j.
    """
    fpts = np.asarray(fpts, dtype=np.float64)
    q = np.ascontiguousarray(np.asarray(q, dtype=np.float64).ravel())
    n = len(fpts)
    if extrapolation == "raise" and q.size and (q.min() < fpts[0] or q.max() > fpts[-1]):
        raise ValueError(f"Spline query outside [{fpts[0]:.4g}, {fpts[-1]:.4g}]")
    mode = EXTRAPOLATION_MODES[extrapolation]
    L = np.empty((len(q), n))
    eye = np.eye(n)
    for j in range(n):
        spl = make_spline(fpts, eye[j], extrapolation)
        L[:, j] = _eval_many(spl.x, spl.y, spl.ydp, q, mode)[0]
    return L


# =============================================================================
# Tensor-product spline
# =============================================================================

@dataclass(frozen=True)
class Spline2D:
    x1: np.ndarray
    x2: np.ndarray
    values: np.ndarray
    extrapolation: str = "flat"

    def grid(self, q1, q2):
        """Values on the outer product q1 x q2, shape (len(q1), len(q2))."""
        L1 = basis_matrix(self.x1, q1, self.extrapolation)
        L2 = basis_matrix(self.x2, q2, self.extrapolation)
        return L1 @ self.values @ L2.T

    def __call__(self, q1, q2):
        """Values at the paired points (q1[k], q2[k])."""
        q1 = np.atleast_1d(np.asarray(q1, dtype=np.float64))
        q2 = np.atleast_1d(np.asarray(q2, dtype=np.float64))
        L1 = basis_matrix(self.x1, q1, self.extrapolation)
        L2 = basis_matrix(self.x2, q2, self.extrapolation)
        return np.einsum('ki,ij,kj->k', L1, self.values, L2)


def make_spline2d(x1, x2, values, extrapolation="flat"):
    values = np.array(values, dtype=np.float64)
    x1 = np.asarray(x1, dtype=np.float64)
    x2 = np.asarray(x2, dtype=np.float64)
    if values.shape != (len(x1), len(x2)):
        raise ValueError("make_spline2d: values must have shape (len(x1), len(x2))")
    if extrapolation == "raise" or extrapolation not in EXTRAPOLATION_MODES:
        raise ValueError(f"Unsupported 2-D extrapolation mode '{extrapolation}'")
    values.flags.writeable = False
    return Spline2D(x1, x2, values, extrapolation)
