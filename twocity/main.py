"""
Command line driver: equilibrium, fixed-point map, transition,
comparative statics and figures for the two-city model.
"""

import argparse
import json
import os
import time
import warnings

import numpy as np
import pandas as pd

from twocity import plots
from twocity.equilibrium import (ConvergenceWarning, NoEquilibriumError, expected_profits,
                                 find_equilibrium, fixed_point_map)
from twocity.parameters import ModelParams, load_params, save_params, search_params
from twocity.search import average_value, search_move_probabilities
from twocity.statics import (deterministic_cutoff, dynamic_cutoff, parameter_sweep,
                             relocation_by_beta)
from twocity.transition import hitting_time, simulate_path

SWEEP_PARAMETERS = ("theta", "move_cost", "sigma_z")
HIT_BANDS = (0.05, 0.01)


def build_params(args):
    overrides = {"seed": args.seed}
    if args.sigma_eta is not None:
        overrides["sigma_eta"] = args.sigma_eta
    if args.N is not None:
        overrides["n_mc"] = args.N
    if args.params:
        return load_params(args.params, **overrides)
    if args.model == "search":
        return search_params(**overrides)
    return ModelParams(**overrides)


def deterministic_cutoffs(params, verbose=True):
    """Threshold-rule equilibrium and myopic cutoffs (baseline, 2m, theta/2)."""
    det = params.replace(sigma_eta=0.0)
    eq_det = find_equilibrium(det)
    alpha_det = eq_det.alpha_star
    out = {
        "alpha_star_det": alpha_det,
        "z_star_base": deterministic_cutoff(alpha_det, det),
        "z_star_2m": deterministic_cutoff(alpha_det, det.replace(move_cost=2.0 * det.move_cost)),
        "z_star_half_theta": deterministic_cutoff(alpha_det, det.replace(theta=det.theta / 2.0)),
    }
    try:
        out["z_star_dynamic"] = dynamic_cutoff(eq_det.solution, det)
    except ValueError as e:
        print(f"  [Cutoffs] dynamic cutoff unavailable: {e}")
        out["z_star_dynamic"] = float("nan")
    if verbose:
        print(f"\nDeterministic alpha* = {alpha_det:.6f}")
        print(f"Baseline threshold z* = {out['z_star_base']:.4f}  -> move if z < z*")
        print(f"With m = {2.0 * det.move_cost:.2f}, threshold z* = {out['z_star_2m']:.4f}")
        print(f"With theta = {det.theta / 2.0:.2f}, threshold z* = {out['z_star_half_theta']:.4f}")
        print(f"Forward-looking threshold z* = {out['z_star_dynamic']:.4f}")
    return out


def save_results(outdir, params, summary, arrays, tables):
    os.makedirs(outdir, exist_ok=True)
    path = os.path.join(outdir, "results.npz")
    np.savez_compressed(path, **arrays)
    with open(os.path.join(outdir, "summary.json"), "w") as fh:
        json.dump(summary, fh, indent=2)
    save_params(params, os.path.join(outdir, "params.json"))
    for name, df in tables.items():
        df.to_csv(os.path.join(outdir, f"{name}.csv"))
    print(f"Saved results to: {path}")
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Two-city firm location model")
    parser.add_argument("--model", type=str, default="baseline", choices=["baseline", "search"])
    parser.add_argument("--T", type=int, default=500, help="Transition horizon")
    parser.add_argument("--N", type=int, default=None, help="Firms per period in the simulation")
    parser.add_argument("--paths", type=int, default=1, help="Independent simulated paths")
    parser.add_argument("--alpha0", type=float, default=0.20, help="Initial share in city 1")
    parser.add_argument("--seed", type=int, default=5555)
    parser.add_argument("--sigma-eta", type=float, default=None, help="Taste-shock scale (0 = threshold rule)")
    parser.add_argument("--params", type=str, default=None, help="JSON file of parameter values")
    parser.add_argument("--map-points", type=int, default=19, help="Grid size of the fixed-point map")
    parser.add_argument("--processes", type=int, default=1, help="Worker processes for the fixed-point map")
    parser.add_argument("--out", type=str, default="outputs", help="Output directory")
    parser.add_argument("--no-plots", action="store_true", help="Skip figures")
    parser.add_argument("--no-statics", action="store_true", help="Skip comparative statics")
    parser.add_argument("--quiet", action="store_true", help="Reduce prints")
    args = parser.parse_args(argv)

    verbose = not args.quiet
    params = build_params(args)
    rng = np.random.default_rng(params.seed)
    t_start = time.time()

    print("=" * 70)
    print(f"TWO-CITY FIRM LOCATION MODEL - {args.model.upper()}")
    print("=" * 70)
    print(f"  beta={params.beta}, theta={params.theta}, m={params.move_cost}, "
          f"sigma_z={params.sigma_z}, sigma_eta={params.sigma_eta}")

    # ------------------------------------------------------------------
    print("\nSTEP 1: Stationary equilibrium")
    with warnings.catch_warnings():
        warnings.simplefilter("always", ConvergenceWarning)
        try:
            eq = find_equilibrium(params, args.model, verbose=verbose)
        except NoEquilibriumError as e:
            print(f"  [ERROR] {e}")
            return 1
    summary = {"model": args.model, "alpha_star": eq.alpha_star, "residual": eq.residual,
               "evaluations": eq.evaluations, "converged": eq.converged}
    print(f"  alpha* = {eq.alpha_star:.6f}   Phi(alpha*) - alpha* = {eq.residual:.2e}")
    if args.model == "baseline":
        e1, e2 = expected_profits(eq.alpha_star, params)
        summary.update(expected_profit_1=e1, expected_profit_2=e2)
        print(f"  E[pi | city 1] = {e1:.4f}")
        print(f"  E[pi | city 2] = {e2:.4f}")
    else:
        summary["welfare"] = average_value(eq.solution, params)
        print(f"  Average value (welfare) = {summary['welfare']:.4f}")

    # ------------------------------------------------------------------
    print("\nSTEP 2: Fixed-point map")
    alphas = np.linspace(params.bracket[0], params.bracket[1], args.map_points)
    phi = fixed_point_map(params, alphas, args.model, processes=args.processes)

    # ------------------------------------------------------------------
    print(f"\nSTEP 3: Transition from alpha0 = {args.alpha0:.2f} over {args.T} periods")
    sim = simulate_path(args.T, params, alpha0=args.alpha0, n_paths=args.paths, rng=rng,
                        model=args.model, verbose=verbose)
    for band in HIT_BANDS:
        hit = hitting_time(sim["alpha"], eq.alpha_star, band)
        summary[f"hit_{band:g}"] = hit
        if hit is None:
            print(f"  Never within {100 * band:g} p.p. of alpha* during the simulation")
        else:
            print(f"  Within {100 * band:g} p.p. of alpha* after {hit} periods")

    arrays = {"alphas": alphas, "phi": phi, "alpha_path": sim["alpha"],
              "move_path": sim["move"], "alpha_paths": sim["alpha_paths"]}
    tables = {}

    # ------------------------------------------------------------------
    if args.model == "baseline" and not args.no_statics:
        print("\nSTEP 4: Comparative statics")
        sweeps = pd.concat([parameter_sweep(params, name) for name in SWEEP_PARAMETERS],
                           ignore_index=True)
        print(sweeps[["parameter", "factor", "alpha_star", "status"]].to_string(index=False))
        tables["comparative_statics"] = sweeps
        summary.update(deterministic_cutoffs(params, verbose=verbose))
        z = np.linspace(-3.0 * params.sigma_z, 3.0 * params.sigma_z, 300)
        tables["relocation_by_beta"] = relocation_by_beta(eq.alpha_star, params, z)
    elif args.model == "search":
        zgrid = eq.solution.zgrid
        Z1, Z2 = np.meshgrid(zgrid, zgrid, indexing='ij')
        p_move1, _ = search_move_probabilities(eq.solution, params, Z1.ravel(), Z2.ravel())
        arrays.update(zgrid=zgrid, move_prob=p_move1.reshape(Z1.shape),
                      v1=eq.solution.v1, v2=eq.solution.v2)

    summary["elapsed"] = time.time() - t_start
    save_results(args.out, params, summary, arrays, tables)

    if not args.no_plots:
        plots.plot_fixed_point_map(alphas, phi, eq.alpha_star, args.out, verbose=verbose)
        plots.plot_transition(sim["alpha_paths"], eq.alpha_star, args.out, verbose=verbose)
        if "comparative_statics" in tables:
            plots.plot_comparative_statics(tables["comparative_statics"], args.out, verbose=verbose)
            plots.plot_relocation_by_beta(tables["relocation_by_beta"], args.out, verbose=verbose)
        if "move_prob" in arrays:
            plots.plot_move_heatmap(arrays["zgrid"], arrays["move_prob"], args.out, verbose=verbose)

    print(f"\nDone in {time.time() - t_start:.1f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
