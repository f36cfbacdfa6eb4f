import json

import numpy as np
import pytest

from twocity.parameters import (BETA, MOVE_COST, ModelParams, bounded_profit, load_params,
                                power_profit, profit_function, save_params, search_params)


def test_defaults(params):
    assert params.beta == BETA
    assert params.move_cost == MOVE_COST
    assert params.profit == "power"
    assert params.bracket == (0.05, 0.95)


@pytest.mark.parametrize("override", [
    {"beta": 1.0}, {"theta": 0.0}, {"move_cost": -0.1}, {"sigma_z": 0.0},
    {"sigma_eta": -1.0}, {"rho": 1.0}, {"profit": "cobb"}, {"n_q": 2},
    {"tol": 0.0}, {"bracket": (0.9, 0.1)}, {"extrapolation": "mirror"},
])
def test_invalid_values(override):
    with pytest.raises(ValueError):
        ModelParams(**override)


def test_replace_is_new_object(params):
    other = params.replace(theta=0.2)
    assert other.theta == 0.2
    assert params.theta == 0.4


def test_json_round_trip(tmp_path):
    p = search_params(n_grid=21)
    path = tmp_path / "params.json"
    save_params(p, path)
    assert load_params(path) == p
    assert load_params(path, sigma_eta=0.0).sigma_eta == 0.0


def test_unknown_key(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"beta": 0.9, "gamma": 2.0}))
    with pytest.raises(ValueError, match="gamma"):
        load_params(path)


def test_search_calibration():
    p = search_params()
    assert p.profit == "bounded"
    assert p.sigma_eta == 0.5
    assert p.sigma_lr == pytest.approx(0.1 / 0.6)


def test_profit_forms(params):
    z = np.array([-0.2, 0.0, 0.3])
    assert np.allclose(profit_function(params)(z, 0.5), power_profit(z, 0.5, 0.4))
    assert np.allclose(power_profit(0.0, 0.5, 0.4), 2 ** 0.4)
    bounded = profit_function(search_params(scale=2.0))
    assert np.allclose(bounded(z, 0.5), bounded_profit(z, 0.5, 0.4, 2.0))
    assert bounded_profit(0.0, 1.0, 0.4) == 0.0
