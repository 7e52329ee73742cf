# speedup.py
#
# Strong scaling of matmul from the records time_operations.py appends to
# logs/matmul_times.json (run it once per process count first).

import json
import numpy as np
import matplotlib.pyplot as plt

from pathlib import Path
ROOT_DIR = Path(__file__).resolve().parent  # plots folder
LOG_PATH = ROOT_DIR.parent / "logs" / "matmul_times.json"
FIG_PATH = ROOT_DIR / "speedup.pdf"
save_fig = True
show_fig = False

import matplotlib as mpl
# Set font types for better compatibility with vector graphic formats
mpl.rcParams['pdf.fonttype'] = 42
mpl.rcParams['ps.fonttype'] = 42
mpl.rcParams['svg.fonttype'] = 'none'


plot_font = 22

# set global font sizes and grid style

mpl.rcParams.update({
    'font.size': plot_font,
    'axes.titlesize': plot_font,
    'axes.labelsize': plot_font,
    'xtick.labelsize': plot_font * 0.9,
    'ytick.labelsize': plot_font * 0.9,
    'legend.fontsize': plot_font * 0.9,
    'grid.alpha': 1.0,       # fully opaque
    'grid.linewidth': 0.2,   # line thickness
})


def load_speedups(records, op_name="matmul"):
    # {(n, k, m): (procs, speedup)} with speedup S(p) = T(1) / T(p)
    times = {}
    for record in records:
        key = (record["n"], record["k"], record["m"])
        # Later runs overwrite earlier ones for the same size and process count
        times.setdefault(key, {})[record["procs"]] = record["times"][op_name]

    speedups = {}
    for key, by_procs in times.items():
        if 1 not in by_procs:
            continue
        procs = np.array(sorted(by_procs))
        t = np.array([by_procs[p] for p in procs])
        speedups[key] = (procs, t[0] / t)
    return speedups


if __name__ == "__main__":
    with open(LOG_PATH) as f:
        records = json.load(f)

    speedups = load_speedups(records)
    if not speedups:
        raise SystemExit(f"No single-process baseline in {LOG_PATH}")

    all_procs = np.array(sorted({p for procs, _ in speedups.values() for p in procs}))

    plt.figure(figsize=(8, 8))

    markers = ['o', 's', '^', 'v', 'D']

    # Ideal speedup: S_ideal(p) = p
    plt.plot(all_procs, all_procs.astype(float), color='purple', marker='D', linestyle='--', label='Ideal')
    for i, ((n, k, m), (procs, speedup)) in enumerate(sorted(speedups.items())):
        plt.plot(procs, speedup, marker=markers[i % len(markers)], linestyle='-', label=rf'Actual ({n}$\times${k}$\times${m})')

    plt.xscale('log', base=2)
    plt.yscale('log', base=10)

    plt.xticks(all_procs, all_procs)
    plt.xlabel(r"Number of Processes ($p$)")
    plt.ylabel(r"Speedup $\mathcal{S}$(p) = T(1) / T($p$)")
    plt.title("Strong Scaling Speedup")
    plt.grid(True)

    plt.legend(loc='upper left', framealpha=0.5)

    plt.tight_layout()

    if save_fig:
        plt.savefig(FIG_PATH, dpi=150)  # Images should be 150dpi (no smaller or larger)
        print(f"Saved speedup plot to {FIG_PATH}")

    if show_fig:
        plt.show()
