"""
Calibration and configuration for the two-city location model.

Module-level constants hold the baseline calibration; ModelParams bundles
them into one immutable object that every solver receives explicitly.
"""

import json
from dataclasses import asdict, dataclass, fields, replace

import numpy as np

# =============================================================================
# Model Parameters (baseline)
# =============================================================================
BETA = 0.95          # discount factor
THETA = 0.40         # congestion elasticity
MOVE_COST = 0.25     # fixed moving cost
SIGMA_Z = 0.10       # std-dev of productivity shock z
SIGMA_ETA = 0.60     # taste-shock scale (0 => deterministic decision)
N_Q = 31             # Gauss-Hermite nodes
N_MC = 10000         # cross-section size for simulation
SEED = 5555

# Extended (persistent shocks + search) calibration
RHO = 0.8            # AR(1) persistence of z
SEARCH_COST = 0.05
SCALE = 1.0          # production scale A in the bounded profit
N_GRID = 41          # grid points per shock dimension
N_Q_SEARCH = 7

# Numerical controls
TOL_VFI = 1e-8
MAXIT_VFI = 10000
ALPHA_BRACKET = (0.05, 0.95)
XTOL_ALPHA = 1e-10

PROFIT_FORMS = ("power", "bounded")


@dataclass(frozen=True)
class ModelParams:
    beta: float = BETA
    theta: float = THETA
    move_cost: float = MOVE_COST
    search_cost: float = SEARCH_COST
    sigma_z: float = SIGMA_Z
    sigma_eta: float = SIGMA_ETA
    rho: float = RHO
    scale: float = SCALE
    profit: str = "power"
    n_q: int = N_Q
    n_grid: int = N_GRID
    n_q_search: int = N_Q_SEARCH
    tol: float = TOL_VFI
    maxit: int = MAXIT_VFI
    seed: int = SEED
    n_mc: int = N_MC
    bracket: tuple = ALPHA_BRACKET
    xtol: float = XTOL_ALPHA
    extrapolation: str = "flat"

    def __post_init__(self):
        if not 0.0 < self.beta < 1.0:
            raise ValueError(f"beta must lie in (0, 1), got {self.beta}")
        if self.theta <= 0.0:
            raise ValueError(f"theta must be positive, got {self.theta}")
        if self.move_cost < 0.0 or self.search_cost < 0.0:
            raise ValueError("moving and search costs must be non-negative")
        if self.sigma_z <= 0.0:
            raise ValueError(f"sigma_z must be positive, got {self.sigma_z}")
        if self.sigma_eta < 0.0:
            raise ValueError(f"sigma_eta must be non-negative, got {self.sigma_eta}")
        if not 0.0 <= self.rho < 1.0:
            raise ValueError(f"rho must lie in [0, 1), got {self.rho}")
        if self.profit not in PROFIT_FORMS:
            raise ValueError(f"profit must be one of {PROFIT_FORMS}, got '{self.profit}'")
        if self.n_q < 3 or self.n_grid < 3 or self.n_q_search < 1:
            raise ValueError("n_q and n_grid need at least 3 points")
        if self.tol <= 0.0 or self.maxit < 1:
            raise ValueError("tol must be positive and maxit at least 1")
        lo, hi = self.bracket
        if not 0.0 < lo < hi < 1.0:
            raise ValueError(f"bracket must satisfy 0 < lo < hi < 1, got {self.bracket}")
        if self.extrapolation not in ("cubic", "flat", "linear", "raise"):
            raise ValueError(f"unknown extrapolation '{self.extrapolation}'")
        # JSON round trips hand back lists
        object.__setattr__(self, "bracket", (float(lo), float(hi)))

    def replace(self, **overrides):
        return replace(self, **overrides)

    @property
    def sigma_lr(self):
        """Long-run std-dev of the AR(1) shock."""
        return self.sigma_z / np.sqrt(1.0 - self.rho ** 2)


def search_params(**overrides):
    """Calibration of the persistent-shock model with costly search."""
    base = dict(profit="bounded", sigma_eta=0.5, tol=1e-6, n_grid=N_GRID,
                n_q_search=N_Q_SEARCH, rho=RHO, search_cost=SEARCH_COST)
    base.update(overrides)
    return ModelParams(**base)


def load_params(path, **overrides):
    """Read a ModelParams from a JSON file of field values."""
    with open(path, "r") as fh:
        raw = json.load(fh)
    known = {f.name for f in fields(ModelParams)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown parameter(s) in {path}: {', '.join(unknown)}")
    raw.update(overrides)
    return ModelParams(**raw)


def save_params(params, path):
    with open(path, "w") as fh:
        json.dump(asdict(params), fh, indent=2)


# =============================================================================
# Profit functionals
# =============================================================================

def power_profit(z, share, theta):
    """Unbounded form exp(z) * share^(-theta)."""
    return np.exp(z) * share ** (-theta)


def bounded_profit(z, share, theta, scale=1.0):
    """Bounded, non-negative form max(A exp(z) (1 - share^theta), 0)."""
    return np.maximum(scale * np.exp(z) * (1.0 - share ** theta), 0.0)


def profit_function(params):
    """Per-period profit f(z, share) selected by params.profit."""
    if params.profit == "power":
        return lambda z, share: power_profit(z, share, params.theta)
    return lambda z, share: bounded_profit(z, share, params.theta, params.scale)
