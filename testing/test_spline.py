"""
Tests for the natural cubic spline, the tridiagonal solver and the
tensor-product spline.
"""

import numpy as np
import pytest

from twocity.spline import (ExtrapolationWarning, SplineSingularityError, basis_matrix,
                            create_grid, interp, interp_many, make_spline, make_spline2d,
                            tridag)


def test_interpolates_nodes():
    x = np.array([-1.0, -0.3, 0.1, 0.8, 1.5, 2.0])
    y = np.exp(x) - x ** 2
    s = make_spline(x, y)
    assert np.allclose(s(x), y, atol=1e-13)
    for xi, yi in zip(x, y):
        assert abs(interp(xi, s)[0] - yi) < 1e-13


def test_natural_boundary():
    x = create_grid(0.0, 3.0, 9)
    s = make_spline(x, np.sin(x))
    assert interp(x[0], s, calcydp=True)[2] == pytest.approx(0.0, abs=1e-12)
    assert interp(x[-1], s, calcydp=True)[2] == pytest.approx(0.0, abs=1e-12)
    assert s.ydp[0] == 0.0 and s.ydp[-1] == 0.0


def test_linear_data_reproduced_exactly():
    x = np.array([0.0, 0.5, 1.7, 2.0, 3.1])
    s = make_spline(x, 2.0 - 3.0 * x)
    q = np.linspace(0.0, 3.1, 57)
    assert np.allclose(s(q), 2.0 - 3.0 * q, atol=1e-12)
    assert np.allclose(s.derivative(q), -3.0, atol=1e-12)
    assert np.allclose(s.ydp, 0.0, atol=1e-12)


def test_smooth_function_accuracy():
    x = create_grid(0.0, np.pi, 41)
    s = make_spline(x, np.sin(x))
    q = np.linspace(0.3, np.pi - 0.3, 200)
    assert np.max(np.abs(s(q) - np.sin(q))) < 1e-5
    assert np.max(np.abs(s.derivative(q) - np.cos(q))) < 1e-3


def test_unrequested_outputs_are_zero():
    x = create_grid(0.0, 1.0, 5)
    s = make_spline(x, x ** 3)
    y, yp, ydp = interp(0.4, s)
    assert yp == 0.0 and ydp == 0.0
    y, yp, ydp = interp(0.4, s, calcy=False, calcyp=True)
    assert y == 0.0 and yp != 0.0
    vals, slopes, curvs = interp_many([0.2, 0.4], s, calcydp=True)
    assert np.all(slopes == 0.0)
    assert curvs.shape == (2,)


def test_invalid_inputs():
    with pytest.raises(ValueError):
        make_spline([0.0, 1.0], [1.0, 2.0])
    with pytest.raises(ValueError):
        make_spline([0.0, 1.0, 1.0, 2.0], [0.0, 1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        make_spline([0.0, 2.0, 1.0], [0.0, 1.0, 2.0])
    with pytest.raises(ValueError):
        make_spline([0.0, 1.0, 2.0], [0.0, 1.0])
    with pytest.raises(ValueError):
        make_spline([0.0, 1.0, 2.0], [0.0, 1.0, 2.0], extrapolation="mirror")


def test_tridag_solves_system():
    n = 6
    a = np.r_[0.0, np.full(n - 1, 1.0)]
    b = np.full(n, 4.0)
    c = np.r_[np.full(n - 1, 1.0), 0.0]
    r = np.arange(1.0, n + 1)
    u = tridag(a, b, c, r)
    A = np.diag(b) + np.diag(a[1:], -1) + np.diag(c[:-1], 1)
    assert np.allclose(A @ u, r)


def test_tridag_singular_pivot():
    n = 4
    a = np.zeros(n)
    c = np.zeros(n)
    b = np.array([1.0, 1e-14, 1.0, 1.0])
    with pytest.raises(SplineSingularityError):
        tridag(a, b, c, np.ones(n))
    with pytest.raises(SplineSingularityError):
        tridag(a, np.zeros(n), c, np.ones(n))


def test_extrapolation_modes():
    x = create_grid(0.0, 1.0, 6)
    y = 1.0 + 2.0 * x
    q = np.array([-0.5, 1.5])

    flat = make_spline(x, y, "flat")
    with pytest.warns(ExtrapolationWarning):
        assert np.allclose(flat(q), [1.0, 3.0])

    linear = make_spline(x, y, "linear")
    with pytest.warns(ExtrapolationWarning):
        assert np.allclose(linear(q), [0.0, 4.0])

    cubic = make_spline(x, y ** 2, "cubic")
    with pytest.warns(ExtrapolationWarning):
        out = cubic(q)
    assert np.all(np.isfinite(out))

    strict = make_spline(x, y, "raise")
    with pytest.raises(ValueError):
        strict(q)
    with pytest.raises(ValueError):
        strict(-0.5)


def test_in_range_queries_do_not_warn(recwarn):
    x = create_grid(-1.0, 1.0, 7)
    s = make_spline(x, x ** 2)
    s(np.linspace(-1.0, 1.0, 11))
    assert not [w for w in recwarn if issubclass(w.category, ExtrapolationWarning)]


def test_spline_arrays_read_only():
    x = create_grid(0.0, 1.0, 5)
    y = x ** 2
    s = make_spline(x, y)
    y[0] = 100.0
    assert s.y[0] == 0.0
    with pytest.raises(ValueError):
        s.ydp[1] = 1.0


def test_basis_matrix_matches_spline():
    x = np.array([-2.0, -1.1, -0.2, 0.4, 1.3, 2.0])
    y = np.cos(x)
    q = np.linspace(-1.9, 1.9, 23)
    L = basis_matrix(x, q)
    assert L.shape == (23, 6)
    assert np.allclose(L @ y, make_spline(x, y)(q), atol=1e-12)
    # rows of an interpolation operator reproduce constants
    assert np.allclose(L.sum(axis=1), 1.0)


def test_spline2d_reproduces_bilinear():
    x1 = create_grid(-1.0, 1.0, 7)
    x2 = create_grid(0.0, 2.0, 5)
    X1, X2 = np.meshgrid(x1, x2, indexing='ij')
    f = lambda a, b: 1.0 + 0.5 * a - 2.0 * b + 0.7 * a * b
    s = make_spline2d(x1, x2, f(X1, X2))

    q1 = np.array([-0.9, 0.13, 0.77])
    q2 = np.array([0.4, 1.21, 1.9])
    assert np.allclose(s(q1, q2), f(q1, q2), atol=1e-12)
    assert np.allclose(s.grid(q1, q2), f(q1[:, None], q2[None, :]), atol=1e-12)


def test_spline2d_rejects_bad_input():
    x = create_grid(0.0, 1.0, 4)
    with pytest.raises(ValueError):
        make_spline2d(x, x, np.zeros((4, 3)))
    with pytest.raises(ValueError):
        make_spline2d(x, x, np.zeros((4, 4)), extrapolation="raise")


def test_scalar_query_outside_nodes_warns():
    x = create_grid(0.0, 1.0, 6)
    s = make_spline(x, 1.0 + 2.0 * x)
    with pytest.warns(ExtrapolationWarning):
        assert s(5.0) == pytest.approx(3.0)
    with pytest.warns(ExtrapolationWarning):
        interp(-1.0, make_spline(x, 1.0 + 2.0 * x, "linear"))
