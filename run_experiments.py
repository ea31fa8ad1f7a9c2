# run_experiments.py
import os, json, argparse, logging
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from colony_tsp import TSPInstance, ACOConfig, ACOEngine, nearest_neighbor_tour, tour_length
from colony_tsp.experiments import run_repeated_trials, run_parameter_sweep

OUTDIR = os.path.dirname(os.path.abspath(__file__))
PRESETS = ("balanced", "greedy", "explore")


def ensure(path: str) -> str:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    return path


def build_config(name, n_ants=20, n_iterations=150, q=100.0):
    if name == "balanced":
        return ACOConfig(alpha=1.0, beta=2.0, rho=0.1, q=q,
                         n_ants=n_ants, n_iterations=n_iterations)
    if name == "greedy":
        return ACOConfig(alpha=1.0, beta=5.0, rho=0.5, q=q,
                         n_ants=n_ants, n_iterations=n_iterations)
    if name == "explore":
        return ACOConfig(alpha=0.5, beta=1.0, rho=0.05, q=q, tau0=None,
                         n_ants=n_ants, n_iterations=n_iterations, random_start=True)
    raise ValueError(name)


def plot_scatter(details_by_preset, save_path, baseline=None):
    plt.figure()
    names = list(details_by_preset.keys())
    for i, name in enumerate(names, start=1):
        lengths = [L for (L, t, tour, hist) in details_by_preset[name]]
        x = np.random.normal(loc=i, scale=0.03, size=len(lengths))
        plt.plot(x, lengths, "o")
    if baseline is not None:
        plt.axhline(baseline, linestyle="--", color="gray", label="nearest neighbour")
        plt.legend()
    plt.xticks(range(1, len(names) + 1), names)
    plt.ylabel("Best tour length")
    plt.title("Best lengths across runs")
    ensure(save_path)
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_convergence(details_by_preset, save_path):
    plt.figure()
    for name, details in details_by_preset.items():
        hists = np.array([hist for (L, t, tour, hist) in details], dtype=float)
        plt.plot(hists.mean(axis=0), label=name)
    plt.xlabel("Iteration")
    plt.ylabel("Mean best-so-far tour length")
    plt.title("Convergence")
    plt.legend()
    ensure(save_path)
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_live_tuning(inst, cfg, save_path, switch_at=None):
    """One engine, beta dropped mid-run through set_parameters()."""
    engine = ACOEngine()
    engine.configure(inst.points, cfg)
    switch_at = switch_at or cfg.n_iterations // 2
    avg = []
    for it in range(cfg.n_iterations):
        if it == switch_at:
            engine.set_parameters(beta=0.5)
        avg.append(engine.run_iteration().average_length)
    plt.figure()
    plt.plot(engine.distance_history, label="best so far")
    plt.plot(avg, label="iteration mean")
    plt.axvline(switch_at, linestyle=":", color="gray")
    plt.xlabel("Iteration")
    plt.ylabel("Tour length")
    plt.title("Live parameter change (beta -> 0.5)")
    plt.legend()
    ensure(save_path)
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--n", type=int, default=30)
    ap.add_argument("--square", type=float, default=100.0)
    ap.add_argument("--runs", type=int, default=5)
    ap.add_argument("--iters", type=int, default=150)
    ap.add_argument("--ants", type=int, default=20)
    ap.add_argument("--outdir", default=OUTDIR)
    ap.add_argument("--no-sweep", action="store_true", help="skip the alpha/beta/rho grid")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    inst = TSPInstance.random_euclidean(n=args.n, seed=123, square_size=args.square, name=f"demo{args.n}")
    D = inst.distance_matrix()
    nn_len = tour_length(D, nearest_neighbor_tour(D))
    print(f"nearest neighbour baseline: {nn_len:.2f}")
    configs = [(name, build_config(name, n_ants=args.ants, n_iterations=args.iters)) for name in PRESETS]

    # repeated trials
    records = []
    details_by_preset = {}
    for name, cfg in configs:
        stats, details = run_repeated_trials(inst, cfg, n_runs=args.runs)
        print(name, json.dumps(stats, indent=2))
        records.append({"preset": name, **stats, "nn_length": nn_len})
        details_by_preset[name] = details

    # summary CSV + plots
    df_summary = pd.DataFrame.from_records(records)
    df_summary.to_csv(ensure(os.path.join(args.outdir, "results_summary.csv")), index=False)
    plot_scatter(details_by_preset, os.path.join(args.outdir, "results_distribution.png"), baseline=nn_len)
    plot_convergence(details_by_preset, os.path.join(args.outdir, "convergence.png"))
    plot_live_tuning(inst, configs[0][1], os.path.join(args.outdir, "live_tuning.png"))

    if not args.no_sweep:
        grid = {"alpha": [0.5, 1.0, 1.5], "beta": [1.0, 2.0, 4.0], "rho": [0.1, 0.3]}
        csv_path = os.path.join(args.outdir, "param_grid.csv")
        rows = run_parameter_sweep(inst, grid, base_cfg=configs[0][1], n_runs=3, base_seed=500,
                                   csv_path=csv_path)
        print("Grid search evaluated:", len(rows))
        best = pd.DataFrame.from_records(rows).sort_values("mean_length").head(5)
        print(best[["alpha", "beta", "rho", "mean_length", "std_length"]].to_string(index=False))


if __name__ == "__main__":
    main()
