"""CLI entrypoint for wake-piv.

This file orchestrates the end-to-end wake pipeline:
- Read/validate a TOML config via :mod:`wake_piv.init_config` (aliased as `cfg`).
- Load the PIV sequence and bring it into canonical form (trimmed, y up,
  physical units, gradients and fluctuations).
- Estimate the shift of every frame pair of the wingbeat cycle. Pairs are
  independent and are correlated in parallel.
- Stitch the pairs into one wake, from the most recent frame backwards.
- Estimate drag over the cycle and circulation/lift with the configured policy.
- Write everything to a new run directory `<output_dir>/runs/<run_id>/`.

How to run
----------

`python -m wake_piv.run path/to/config.toml`

or, once installed, `wake-piv path/to/config.toml`. `run()` is also a
callable API returning the run directory.
"""

from __future__ import annotations

import sys
from dataclasses import asdict
from pathlib import Path

from wake_piv import init_config as cfg
from wake_piv.checkpoints import (
    init_run_dir,
    write_drag_csv,
    write_lift_csv,
    write_meta_json,
    write_shifts_csv,
    write_wake_npz,
)
from wake_piv.correlation import estimate_shifts, shift_bounds
from wake_piv.drag import drag_force
from wake_piv.io import load_dataset
from wake_piv.lift import ThresholdSettings, lift_force
from wake_piv.preprocessing import normalize
from wake_piv.stitching import stitch_wake
from wake_piv.utils import timestamp_str


def run(*, config_file: str | Path, run_id: str | None = None) -> Path:
    """Run the wake pipeline.

    Args:
        config_file: Path to a TOML config file.
        run_id: Name of the run folder. Defaults to the current timestamp.

    Returns:
        run_dir (Path): Path to the run directory where results are stored.
    """

    print("\n\nStarting wake analysis...")
    print("\nReading config...")
    cfg.read_file(config_file)
    params = cfg.PARAMETERS
    verbose = cfg.VERBOSE

    print("Config summary:")
    print(f"  dataset_file: {cfg.DATASET_FILE}")
    print(f"  output_dir: {cfg.OUTPUT_DIR}")
    print(f"  cycle frames: {params.cycle_start_frame}..{params.cycle_end_frame}")
    print(f"  cross_parameter: {cfg.CROSS_PARAMETER}")
    print(f"  lift policy: {cfg.LIFT_POLICY}")
    print(f"  Reynolds number: {params.reynolds_number:.0f}")

    paths = init_run_dir(Path(cfg.OUTPUT_DIR), run_id or timestamp_str())
    print(f"\nRun directory: {paths.run_dir}")

    dataset = load_dataset(cfg.DATASET_FILE, verbose=verbose)
    grid, fields = normalize(dataset, params, recompute_gradients=cfg.RECOMPUTE_GRADIENTS)
    if verbose:
        print(f"Canonical grid: {grid.shape[0]}x{grid.shape[1]} vectors, "
              f"dx={grid.dx:.4g} m, dy={grid.dy:.4g} m")

    advection_cells = params.advection_cells(grid.dx)
    bounds = shift_bounds(advection_cells, cfg.MIN_SHIFT_X,
                          cfg.MAX_SHIFT_X_FACTOR, cfg.SHIFT_Y_FACTOR)
    if verbose:
        print(f"Advection shift: {advection_cells} cells, "
              f"search x {bounds[0]}..{bounds[1]}, y {bounds[2]}..{bounds[3]}")

    estimates = estimate_shifts(
        fields, params.cycle_start_frame, params.cycle_end_frame, bounds,
        advection_cells, cross_parameter=cfg.CROSS_PARAMETER,
        n_jobs=cfg.N_JOBS, progress=verbose)
    write_shifts_csv(paths.shifts_csv, estimates)

    wake = stitch_wake(fields, grid, estimates, params.chord, progress=verbose)
    if verbose:
        print(f"Stitched wake: {wake.shape[0]}x{wake.shape[1]} vectors, "
              f"{len(wake.fallback_pairs)} fallback pair(s), "
              f"{len(wake.overflow_pairs)} clamped pair(s)")
    if cfg.SAVE_WAKE:
        write_wake_npz(paths.wake_npz, wake)

    print("Estimating drag...")
    drag = drag_force(fields, grid, params)
    write_drag_csv(paths.drag_csv, drag)

    print(f"Estimating circulation (policy {cfg.LIFT_POLICY})...")
    settings = ThresholdSettings(
        threshold=cfg.VORTICITY_THRESHOLD,
        offset=cfg.VORTICITY_OFFSET,
        mode=cfg.THRESHOLD_MODE,
        mask=cfg.MASK_ROI if any(cfg.MASK_ROI) else None,
    )
    lift = lift_force(cfg.LIFT_POLICY, params, wake=wake, fields=fields,
                      grid=grid, settings=settings)
    write_lift_csv(paths.lift_csv, lift)

    cfg.write_file(paths.config_toml)
    meta = {
        "dataset_file": cfg.DATASET_FILE,
        "parameters": asdict(params),
        "reynolds_number": params.reynolds_number,
        "advection_cells": advection_cells,
        "shift_bounds": list(bounds),
        "cross_parameter": cfg.CROSS_PARAMETER,
        "lift_policy": cfg.LIFT_POLICY,
        "n_pairs": len(estimates),
        "wake_shape": list(wake.shape),
        "fallback_pairs": list(wake.fallback_pairs),
        "overflow_pairs": list(wake.overflow_pairs),
        "files": {
            "shifts": paths.shifts_csv.name,
            "drag": paths.drag_csv.name,
            "lift": paths.lift_csv.name,
            "wake": paths.wake_npz.name if cfg.SAVE_WAKE else None,
            "config": paths.config_toml.name,
        },
    }
    write_meta_json(paths.meta_json, meta)

    print(f"Done. Run directory: {paths.run_dir}")
    return paths.run_dir


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or not argv[0]:
        print("Usage: wake-piv path/to/config.toml [run_id]")
        return 2

    run_id = argv[1] if len(argv) > 1 and argv[1] else None
    run(config_file=Path(argv[0]), run_id=run_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
