"""Result files of a wake-piv run.

Layout of a run directory (<output_dir>/runs/<run_id>/):
- shifts.csv: one row per frame pair, in stitching order.
- drag.csv, lift.csv: force series, one row per station.
- wake.npz: stitched wake arrays (optional).
- meta.json: parameters and run diagnostics.
- config_used.toml: effective configuration.

CSV conventions:
- Plain comma-separated numbers with a single header line.
- Shifts are stored as (shift_x, shift_y) in grid cells.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from .fields import DragSeries, LiftSeries, ShiftEstimate, StitchedWake

SHIFTS_HEADER = ("pair_index,n1,n2,shift_x,shift_y,score,valid,"
                 "opt_u_x,opt_u_y,opt_v_x,opt_v_y,opt_uv_x,opt_uv_y")


@dataclass(frozen=True)
class RunPaths:
    run_dir: Path
    shifts_csv: Path
    drag_csv: Path
    lift_csv: Path
    wake_npz: Path
    meta_json: Path
    config_toml: Path


def init_run_dir(output_dir: Path, run_id: str) -> RunPaths:
    run_dir = Path(output_dir) / "runs" / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return RunPaths(
        run_dir=run_dir,
        shifts_csv=run_dir / "shifts.csv",
        drag_csv=run_dir / "drag.csv",
        lift_csv=run_dir / "lift.csv",
        wake_npz=run_dir / "wake.npz",
        meta_json=run_dir / "meta.json",
        config_toml=run_dir / "config_used.toml",
    )


def _write_csv(path: Path, data: np.ndarray, header: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fp:
        np.savetxt(fp, data, delimiter=",", header=header, comments="")


def write_shifts_csv(path: Path, estimates: list[ShiftEstimate]) -> None:
    """Write the shift log, one row per frame pair."""

    rows = [
        [i, e.n1, e.n2, e.shift_x, e.shift_y, e.score, int(e.valid),
         *e.optimum_u, *e.optimum_v, *e.optimum_uv]
        for i, e in enumerate(estimates)
    ]
    data = np.array(rows, dtype=float).reshape(len(rows), 13)
    _write_csv(path, data, SHIFTS_HEADER)


def load_shifts_csv(path: Path) -> dict[str, np.ndarray]:
    """Load shifts.csv back as column arrays keyed by the header names."""

    data = np.loadtxt(path, delimiter=",", skiprows=1, ndmin=2)
    names = SHIFTS_HEADER.split(",")
    if data.shape[1] != len(names):
        raise ValueError(f"Unexpected shifts CSV shape {data.shape} in {path}")
    return {name: data[:, k] for k, name in enumerate(names)}


def write_drag_csv(path: Path, drag: DragSeries) -> None:
    data = np.column_stack([drag.x_c, drag.time, drag.drag_steady,
                            drag.drag_unsteady, drag.cd_steady, drag.cd_unsteady])
    _write_csv(path, data,
               "x_c,time_s,drag_steady_N_per_m,drag_unsteady_N_per_m,cd_steady,cd_unsteady")


def write_lift_csv(path: Path, lift: LiftSeries) -> None:
    data = np.column_stack([lift.x_c, lift.time, lift.circulation,
                            lift.circ_norm, lift.cl_circ])
    _write_csv(path, data, "x_c,time_s,circulation_m2_per_s,circ_norm,cl_circ")


def write_wake_npz(path: Path, wake: StitchedWake) -> None:
    np.savez(path, shift_x=wake.shift_x, shift_y=wake.shift_y, **wake.arrays())


def write_meta_json(path: Path, meta: dict[str, Any]) -> None:
    path.write_text(json.dumps(meta, indent=2, sort_keys=True),
                    encoding="utf-8")
