import argparse, logging, random
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import imageio

from colony_tsp import (ACOConfig, ACOEngine, Point, TSPInstance, euclidean_distance_matrix,
                        haversine_distance_matrix)


def tour_to_xy(coords, tour):
    xs = [coords[i][0] for i in tour] + [coords[tour[0]][0]]
    ys = [coords[i][1] for i in tour] + [coords[tour[0]][1]]
    return xs, ys


def draw_frame(ax, coords, state, title):
    pher = np.array(state.pheromone_matrix, dtype=float)
    top = pher.max() if pher.size else 0.0
    n = len(coords)
    if top > 0:
        for i in range(n):
            for j in range(i + 1, n):
                w = pher[i, j] / top
                if w > 0.05:
                    ax.plot([coords[i][0], coords[j][0]], [coords[i][1], coords[j][1]],
                            "-", color="tab:orange", alpha=float(w), linewidth=0.5 + 3.0 * float(w))
    if state.best_tour and len(state.best_tour) > 1:
        xs, ys = tour_to_xy(coords, state.best_tour)
        ax.plot(xs, ys, "-", color="tab:blue", linewidth=1.5)  # best-so-far tour
    ax.plot([c[0] for c in coords], [c[1] for c in coords], "o", color="black", markersize=4)
    ax.set_title(title + f"\nbest length = {state.best_length:.2f}", pad=10)
    ax.set_aspect("equal", adjustable="box")
    ax.set_xticks([])
    ax.set_yticks([])


def render(fig):
    fig.canvas.draw()
    return np.asarray(fig.canvas.buffer_rgba())[..., :3].copy()


def drive(engine, iters, out_gif, step=1, insert_at=None, rng=None):
    """External driver loop: one run_iteration() per tick, one frame every `step` ticks."""
    Path(out_gif).parent.mkdir(parents=True, exist_ok=True)
    rng = rng or random.Random(0)
    with imageio.get_writer(out_gif, mode="I", duration=0.3) as writer:
        for it in range(iters):
            if insert_at is not None and it == insert_at:
                xs = [p.x for p in engine.points]
                ys = [p.y for p in engine.points]
                new = Point(f"p{engine.n_cities}", rng.uniform(min(xs), max(xs)), rng.uniform(min(ys), max(ys)))
                engine.add_point(new)
                print(f"[tick {it}] inserted point {new.id}; solver state reset")
            state = engine.run_iteration()
            if it % step and it != iters - 1:
                continue
            coords = [(p.x, p.y) for p in engine.points]
            fig = plt.figure(figsize=(5.8, 5.8))
            draw_frame(plt.gca(), coords, state, f"iter {state.iteration}")
            fig.tight_layout(rect=[0, 0, 1, 0.94])
            writer.append_data(render(fig))
            plt.close(fig)
    return engine.state()


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--n", type=int, default=25, help="number of cities")
    p.add_argument("--iters", type=int, default=80)
    p.add_argument("--ants", type=int, default=20)
    p.add_argument("--alpha", type=float, default=1.0)
    p.add_argument("--beta", type=float, default=2.0)
    p.add_argument("--rho", type=float, default=0.1)
    p.add_argument("--q", type=float, default=100.0)
    p.add_argument("--square", type=float, default=100.0)
    p.add_argument("--seed", type=int, default=321)
    p.add_argument("--geo", action="store_true", help="random lat/lng points with great-circle distances")
    p.add_argument("--insert-at", type=int, default=None, help="add a random point at this tick")
    p.add_argument("--outdir", default="viz")
    p.add_argument("--step", type=int, default=2, help="frame every k iterations")
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if args.geo:
        inst = TSPInstance.random_geographic(n=args.n, seed=args.seed)
        provider = haversine_distance_matrix
        # deposits scale with 1/length, so keep q in the same unit as the distances
        q = args.q * 1000.0
    else:
        inst = TSPInstance.random_euclidean(n=args.n, seed=args.seed, square_size=args.square)
        provider = euclidean_distance_matrix
        q = args.q

    cfg = ACOConfig(alpha=args.alpha, beta=args.beta, rho=args.rho, q=q,
                    n_ants=args.ants, seed=args.seed)
    engine = ACOEngine(distance_provider=provider)
    engine.configure(inst.points, cfg)

    out_gif = str(Path(args.outdir) / f"{inst.name}_{args.n}_convergence.gif")
    final = drive(engine, args.iters, out_gif, step=args.step, insert_at=args.insert_at,
                  rng=random.Random(args.seed))
    print("Saved:", out_gif)
    print(f"iterations={final.iteration} best_length={final.best_length:.2f}")


if __name__ == "__main__":
    main()
