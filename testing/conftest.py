import pytest

from twocity.parameters import ModelParams, search_params


@pytest.fixture
def params():
    return ModelParams()


@pytest.fixture
def small_search_params():
    """Coarse grid so the 2-D iteration runs in a fraction of a second."""
    return search_params(n_grid=15, n_q_search=5, tol=1e-5)
