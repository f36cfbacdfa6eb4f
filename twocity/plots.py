"""
Figures for the two-city model. Each function draws from precomputed
results, saves one file under outdir and returns its path.
"""

import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np

plt.rcParams.update({
    'font.family': 'serif',
    'font.serif': ['Times New Roman', 'DejaVu Serif'],
    'font.size': 12,
    'axes.labelsize': 13,
    'axes.titlesize': 13,
    'legend.fontsize': 10,
    'lines.linewidth': 2.0,
    'xtick.direction': 'in',
    'ytick.direction': 'in',
    'savefig.dpi': 200,
    'savefig.bbox': 'tight'
})

SWEEP_STYLES = {
    "theta": dict(ls='-', label=r"vary $\theta$"),
    "move_cost": dict(ls='--', label="vary m"),
    "sigma_z": dict(ls='-', marker='o', label=r"vary $\sigma_z$"),
}


def _save(fig, outdir, name, verbose):
    os.makedirs(outdir, exist_ok=True)
    save_path = os.path.join(outdir, name)
    fig.savefig(save_path)
    plt.close(fig)
    if verbose:
        print(f"Generated: {save_path}")
    return save_path


def plot_fixed_point_map(alphas, phi, alpha_star, outdir, verbose=True):
    fig, ax = plt.subplots(figsize=(6, 5))
    ax.plot(alphas, phi, color='navy', label=r"$\Phi(\alpha)$")
    ax.plot(alphas, alphas, color='gray', ls=':', lw=1.2, label="45-degree line")
    if alpha_star is not None and np.isfinite(alpha_star):
        ax.axvline(alpha_star, color='firebrick', ls='--', lw=1.0,
                   label=rf"$\alpha^*$ = {alpha_star:.4f}")
    ax.set_xlabel(r"$\alpha_t$ (share in city 1)")
    ax.set_ylabel(r"$\alpha_{t+1}$")
    ax.legend(frameon=False)
    return _save(fig, outdir, "fixed_point_map.png", verbose)


def plot_transition(alpha_paths, alpha_star, outdir, bands=(0.05, 0.01), verbose=True):
    alpha_paths = np.atleast_2d(alpha_paths)
    t = np.arange(alpha_paths.shape[1])
    fig, ax = plt.subplots(figsize=(7, 4))
    for k, path in enumerate(alpha_paths):
        ax.plot(t, path, color='navy', alpha=1.0 if k == 0 else 0.3,
                lw=2.0 if k == 0 else 1.0)
    if alpha_star is not None and np.isfinite(alpha_star):
        ax.axhline(alpha_star, color='firebrick', ls='--', lw=1.0, label=r"$\alpha^*$")
        for band in bands:
            ax.axhspan(alpha_star - band, alpha_star + band, color='firebrick', alpha=0.06)
        ax.legend(frameon=False, loc='lower right')
    ax.set_xlabel("t")
    ax.set_ylabel("share in city 1")
    ax.set_title("Transition path")
    return _save(fig, outdir, "transition_path.png", verbose)


def plot_comparative_statics(sweeps, outdir, verbose=True):
    """sweeps: DataFrame with columns parameter, factor, alpha_star."""
    fig, ax = plt.subplots(figsize=(6, 4.5))
    for name, grp in sweeps.groupby("parameter", sort=False):
        style = SWEEP_STYLES.get(name, dict(label=f"vary {name}"))
        ax.plot(grp["factor"], grp["alpha_star"], **style)
    ax.set_xlabel("parameter (x baseline)")
    ax.set_ylabel(r"$\alpha^*$ (city 1)")
    ax.legend(frameon=False)
    return _save(fig, outdir, "alpha_comparative.png", verbose)


def plot_relocation_by_beta(curves, outdir, verbose=True):
    """curves: DataFrame indexed by z with one column of move probabilities per beta."""
    fig, ax = plt.subplots(figsize=(7, 4.5))
    cmap = plt.get_cmap('viridis')
    n = max(len(curves.columns) - 1, 1)
    for k, beta in enumerate(curves.columns):
        ax.plot(curves.index, curves[beta], color=cmap(k / n), label=rf"$\beta$ = {beta:.2f}")
    ax.set_xlabel("Productivity shock z")
    ax.set_ylabel(r"$P_{move}(z, \alpha)$")
    ax.set_title(r"Relocation probability vs. z for different $\beta$")
    ax.legend(frameon=False, ncol=2)
    return _save(fig, outdir, "beta_comp.png", verbose)


def plot_move_heatmap(zgrid, prob, outdir, title="P(move 1 -> 2)", verbose=True):
    """prob: move probabilities on the (z1, z2) grid, rows indexed by z1."""
    fig, ax = plt.subplots(figsize=(6, 5))
    mesh = ax.pcolormesh(zgrid, zgrid, np.asarray(prob).T, cmap='magma',
                         vmin=0.0, vmax=1.0, shading='auto')
    fig.colorbar(mesh, ax=ax)
    ax.set_xlabel(r"$z_1$")
    ax.set_ylabel(r"$z_2$")
    ax.set_title(title)
    return _save(fig, outdir, "move_heatmap.png", verbose)
