#!/usr/bin/env python3
"""
NLMS SYSTEM IDENTIFICATION DEMO

- Generates a random 'unknown' FIR and seeded uniform input noise on [-1, 1]
- Drives the NLMS adaptive filter one sample at a time (run or run_error_in)
- Tracks misalignment and squared error (dB) per iteration
- Prints final metrics and PASS/FAIL against the dB thresholds
- Optional: convergence figure (PNG), weight animation (GIF), JSON sidecar

Dependencies:
  pip install numpy numba matplotlib pillow tqdm

Usage:
  python nlms_demo.py
  python nlms_demo.py --mode error_in --plot nlms.png --gif nlms.gif --json-out nlms.json
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

import numpy as np

import matplotlib
matplotlib.use("Agg")  # offscreen backend, no display needed
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter

from system_id import (
    MODES,
    ConvergenceResult,
    SystemIdConfig,
    run_system_identification,
)


# ----------------------------
# Plotting
# ----------------------------
def plot_convergence(result: ConvergenceResult, path: str) -> str:
    """Target vs adaptive weights, misalignment (dB) and squared error (dB) in three panels."""
    cfg = result.config
    taps = np.arange(cfg.num_taps)
    iters = np.arange(1, cfg.iterations + 1)

    fig, axes = plt.subplots(3, 1, figsize=(8, 9), dpi=100)

    ax = axes[0]
    ax.stem(taps, result.true_weights, linefmt="b-", markerfmt="bx", basefmt=" ", label="target")
    ax.stem(taps, result.weights, linefmt="r:", markerfmt="ro", basefmt=" ", label="adaptive")
    ax.set_title(
        f"Target and Adaptive Weights after {cfg.iterations} Iterations, StepSize = {cfg.step_size:g}"
    )
    ax.set_xlabel("Weight #")
    ax.set_ylabel("Weight Value")
    ax.legend(loc="best")
    ax.grid(True)

    ax = axes[1]
    ax.plot(iters, result.misalignment_db, linewidth=1.0)
    ax.set_title("|| W_target - W ||^2 / || W_target ||^2 vs Iteration #")
    ax.set_xlabel("Iteration #")
    ax.set_ylabel("dB")
    ax.grid(True)

    ax = axes[2]
    ax.plot(iters, result.squared_error_db, linewidth=1.0)
    ax.set_title("(desired - y)^2 vs Iteration #")
    ax.set_xlabel("Iteration #")
    ax.set_ylabel("dB")
    ax.grid(True)

    fig.tight_layout()
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    return path


def animate_weights(result: ConvergenceResult, path: str, frames: int = 50, fps: int = 10) -> str:
    """GIF of the weight estimate converging onto the target (no ffmpeg required)."""
    if frames < 1:
        raise ValueError("frames must be >= 1.")
    n_iter = result.weight_history.shape[0]
    frame_idx = np.unique(np.linspace(0, n_iter - 1, min(frames, n_iter)).astype(np.int64))

    taps = np.arange(result.true_weights.size)
    lim = 1.1 * max(
        float(np.max(np.abs(result.true_weights))),
        float(np.max(np.abs(result.weight_history))),
        1e-12,
    )

    fig, ax = plt.subplots(figsize=(7, 4), dpi=90)
    ax.plot(taps, result.true_weights, "bx", markersize=8, label="target")
    line_w, = ax.plot([], [], "ro", markersize=5, label="adaptive")
    ax.set_xlim([-1, taps.size])
    ax.set_ylim([-lim, lim])
    ax.set_xlabel("Weight #")
    ax.set_ylabel("Weight Value")
    ax.grid(True)
    ax.legend(loc="upper right")

    def init():
        line_w.set_data([], [])
        return (line_w,)

    def update(i):
        k = frame_idx[i]
        line_w.set_data(taps, result.weight_history[k])
        ax.set_title(
            f"Iteration {k + 1}/{n_iter}  misalignment {result.misalignment_db[k]:.1f} dB"
        )
        return (line_w,)

    anim = FuncAnimation(
        fig,
        update,
        frames=frame_idx.size,
        init_func=init,
        blit=True,
        interval=int(1000 / fps),
    )
    anim.save(path, writer=PillowWriter(fps=fps))
    plt.close(fig)
    return path


# ----------------------------
# Reporting
# ----------------------------
def print_iteration_status(result: ConvergenceResult) -> None:
    for n in range(result.config.iterations):
        print(f"Iteration: {n + 1}")
        print(f"Misalignment (dB): {result.misalignment_db[n]:f}")
        print(f"Squared error (dB): {result.squared_error_db[n]:f}")


def write_sidecar(result: ConvergenceResult, path: str) -> dict:
    sidecar = result.summary()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(sidecar, f, indent=2)
    return sidecar


def build_arg_parser() -> argparse.ArgumentParser:
    defaults = SystemIdConfig()
    p = argparse.ArgumentParser(description="NLMS adaptive FIR system identification demo.")
    p.add_argument("--taps", type=int, default=defaults.num_taps, help="Number of filter taps.")
    p.add_argument("--step-size", type=float, default=defaults.step_size, help="NLMS step size (mu).")
    p.add_argument("--regularization", type=float, default=defaults.regularization,
                   help="Regularization added to the window energy.")
    p.add_argument("--iterations", type=int, default=defaults.iterations, help="Number of samples.")
    p.add_argument("--seed", type=int, default=defaults.seed, help="Random seed.")
    p.add_argument("--mode", choices=MODES, default=defaults.mode,
                   help="'desired' drives run(), 'error_in' drives run_error_in().")
    p.add_argument("--misalignment-thresh", type=float, default=defaults.misalignment_threshold_db,
                   help="Pass threshold for final misalignment (dB).")
    p.add_argument("--squared-error-thresh", type=float, default=defaults.squared_error_threshold_db,
                   help="Pass threshold for final squared error (dB).")
    p.add_argument("--verbose", action="store_true", help="Print metrics for every iteration.")
    p.add_argument("--plot", default="", help="Save convergence figure to this PNG path.")
    p.add_argument("--gif", default="", help="Save weight animation to this GIF path.")
    p.add_argument("--gif-frames", type=int, default=50, help="Frames in the weight animation.")
    p.add_argument("--json-out", default="", help="Write final metrics to this JSON path.")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = SystemIdConfig(
            num_taps=args.taps,
            step_size=args.step_size,
            regularization=args.regularization,
            iterations=args.iterations,
            seed=args.seed,
            misalignment_threshold_db=args.misalignment_thresh,
            squared_error_threshold_db=args.squared_error_thresh,
            mode=args.mode,
        )
    except ValueError as exc:
        parser.error(str(exc))

    result = run_system_identification(config, progress=not args.no_progress)

    if args.verbose:
        print_iteration_status(result)

    print(f"Final Misalignment = {result.final_misalignment_db:.4f} dB")
    print(f"Final Squared Error = {result.final_squared_error_db:.4f} dB")
    for line in result.status_lines():
        print(line)

    if args.plot:
        print(f"Figure saved to: {plot_convergence(result, args.plot)}")
    if args.gif:
        print(f"GIF saved to: {animate_weights(result, args.gif, frames=args.gif_frames)}")
    if args.json_out:
        write_sidecar(result, args.json_out)
        print(f"Sidecar JSON: {os.path.abspath(args.json_out)}")

    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
