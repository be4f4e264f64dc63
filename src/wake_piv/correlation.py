"""
Cross-correlation shift estimation between consecutive velocity maps.

This module finds the integer (x, y) shift that lines a velocity map up
with the map recorded one frame later, by maximising a normalised
cross-correlation coefficient over a bounded search window. The u, v and
joint (u, v) coefficients are evaluated for every candidate shift; the
joint optimum is used for stitching, the per-component optima are kept
for diagnostics.
"""

import os
import warnings
from concurrent.futures import ThreadPoolExecutor
from functools import partial

import numpy as np
from tqdm import tqdm

from .errors import ConfigurationError, CorrelationFailureWarning, DimensionError
from .fields import FlowFields, ShiftEstimate
from .utils import round_half_away

CROSS_PARAMETERS = {
    "velocity": ("u", "v"),
    "velocity_fluctuations": ("uf", "vf"),
}


def shift_bounds(advection_cells: int, min_shift_x: int = 0,
                 max_shift_x_factor: float = 2.0,
                 shift_y_factor: float = 0.6) -> tuple[int, int, int, int]:
    """
    Derive the search window from the advection shift.

    Args:
        advection_cells (int): Shift expected from pure advection, in cells.
        min_shift_x (int): Smallest horizontal shift considered. An optimum on
            this value is treated as a failed search.
        max_shift_x_factor (float): Largest horizontal shift as a multiple
            of the advection shift.
        shift_y_factor (float): Largest vertical shift (either sign) as a
            multiple of the advection shift.

    Returns:
        tuple[int, int, int, int]: (min_shift_x, max_shift_x, min_shift_y, max_shift_y)
    """
    max_shift_x = int(round_half_away(max_shift_x_factor * advection_cells))
    max_shift_y = int(round_half_away(shift_y_factor * advection_cells))
    if min_shift_x < 0:
        raise ConfigurationError(f"min_shift_x must be >= 0, got {min_shift_x}")
    if max_shift_x <= min_shift_x:
        raise ConfigurationError(
            f"Shift search range is empty: max_shift_x={max_shift_x} "
            f"<= min_shift_x={min_shift_x} (advection shift {advection_cells} cells)")
    if max_shift_y < 0:
        raise ConfigurationError("shift_y_factor must be non-negative")
    return min_shift_x, max_shift_x, -max_shift_y, max_shift_y


def overlap_windows(f1: np.ndarray, f2: np.ndarray, shift_x: int, shift_y: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Extract the overlapping parts of two maps for one candidate shift.

    The trailing (right) part of f1 is paired with the leading (left) part
    of f2, rows offset by shift_y: f1[r, c + shift_x] <-> f2[r + shift_y, c].

    Args:
        f1 (np.ndarray): 2D map of the later frame.
        f2 (np.ndarray): 2D map of the earlier frame.
        shift_x (int): Horizontal shift in cells (>= 0).
        shift_y (int): Vertical shift in cells.

    Returns:
        tuple[np.ndarray, np.ndarray]: Windows of equal shape; empty if the
            maps do not overlap for this shift.
    """
    n_rows, n_cols = f1.shape
    r0 = max(0, -shift_y)
    r1 = min(n_rows, n_rows - shift_y)
    if shift_x >= n_cols or r1 <= r0:
        empty = np.empty((0, 0))
        return empty, empty

    win1 = f1[r0:r1, shift_x:]
    win2 = f2[r0 + shift_y:r1 + shift_y, :n_cols - shift_x]
    return win1, win2


def ncc(a: np.ndarray, b: np.ndarray) -> float:
    """
    Normalised cross-correlation (Pearson) coefficient of two windows.

    Returns NaN for empty windows or windows without variance.
    """
    a, b = np.ravel(a), np.ravel(b)
    if a.size == 0:
        return np.nan
    a = a - np.mean(a)
    b = b - np.mean(b)
    denom = np.sqrt(np.sum(a * a) * np.sum(b * b))
    if denom == 0 or not np.isfinite(denom):
        return np.nan
    return float(np.sum(a * b) / denom)


def calc_corr(u1: np.ndarray, v1: np.ndarray, u2: np.ndarray, v2: np.ndarray,
              shifts_x: np.ndarray, shifts_y: np.ndarray) -> dict[str, np.ndarray]:
    """
    Calculate correlation maps over all candidate shifts for one frame pair.

    Args:
        u1, v1 (np.ndarray): 2D velocity components of the later frame.
        u2, v2 (np.ndarray): 2D velocity components of the earlier frame.
        shifts_x (np.ndarray): Candidate horizontal shifts.
        shifts_y (np.ndarray): Candidate vertical shifts.

    Returns:
        dict: Correlation maps {'u', 'v', 'uv'}, each (len(shifts_y), len(shifts_x))
    """
    if not (u1.shape == v1.shape == u2.shape == v2.shape) or u1.ndim != 2:
        raise DimensionError(
            "Frame pair shapes mismatch: "
            f"{u1.shape}, {v1.shape}, {u2.shape}, {v2.shape}")

    maps = {key: np.full((len(shifts_y), len(shifts_x)), np.nan)
            for key in ("u", "v", "uv")}

    for j, sy in enumerate(shifts_y):
        for k, sx in enumerate(shifts_x):
            wu1, wu2 = overlap_windows(u1, u2, int(sx), int(sy))
            wv1, wv2 = overlap_windows(v1, v2, int(sx), int(sy))
            if wu1.size == 0:
                continue

            maps["u"][j, k] = ncc(wu1, wu2)
            maps["v"][j, k] = ncc(wv1, wv2)
            maps["uv"][j, k] = ncc(np.concatenate((wu1.ravel(), wv1.ravel())),
                                   np.concatenate((wu2.ravel(), wv2.ravel())))

    return maps


def find_shift(corr: np.ndarray, shifts_x: np.ndarray, shifts_y: np.ndarray) -> tuple[int, int, float]:
    """
    Find the shift maximising a correlation map.

    Ties are broken towards the smallest shift_x, then the smallest
    |shift_y|, then the smallest shift_y. A map without any finite value
    yields the smallest candidate shift_x (the degenerate result).

    Args:
        corr (np.ndarray): Correlation map (len(shifts_y), len(shifts_x)).
        shifts_x (np.ndarray): Candidate horizontal shifts.
        shifts_y (np.ndarray): Candidate vertical shifts.

    Returns:
        tuple[int, int, float]: (shift_x, shift_y, peak value)
    """
    finite = np.isfinite(corr)
    if not finite.any():
        j = int(np.argmin(np.abs(shifts_y)))
        return int(shifts_x[0]), int(shifts_y[j]), np.nan

    peak = np.max(corr[finite])
    candidates = np.argwhere(finite & np.isclose(corr, peak, rtol=0, atol=1e-12))
    best = min(candidates,
               key=lambda jk: (shifts_x[jk[1]], abs(shifts_y[jk[0]]), shifts_y[jk[0]]))
    j, k = int(best[0]), int(best[1])
    return int(shifts_x[k]), int(shifts_y[j]), float(corr[j, k])


def estimate_shift(u1: np.ndarray, v1: np.ndarray, u2: np.ndarray, v2: np.ndarray,
                   bounds: tuple[int, int, int, int], advection_cells: int,
                   n1: int = 1, n2: int = 0, warn: bool = True) -> ShiftEstimate:
    """
    Estimate the shift between a later frame (n1) and the frame before it (n2).

    If the joint optimum lies on the minimum horizontal shift the search is
    considered to have failed (no coherent wake in the maps): the advection
    shift with zero vertical shift is returned, valid=False, and a
    CorrelationFailureWarning is emitted when warn is True.

    Args:
        u1, v1 (np.ndarray): 2D maps of frame n1.
        u2, v2 (np.ndarray): 2D maps of frame n2.
        bounds (tuple[int, int, int, int]): (min_x, max_x, min_y, max_y), inclusive.
        advection_cells (int): Fallback horizontal shift.
        n1, n2 (int): Frame indices, recorded on the estimate.
        warn (bool): Emit a warning on failure.

    Returns:
        ShiftEstimate: Accepted shift and diagnostics.
    """
    min_x, max_x, min_y, max_y = bounds
    shifts_x = np.arange(min_x, max_x + 1)
    shifts_y = np.arange(min_y, max_y + 1)

    maps = calc_corr(u1, v1, u2, v2, shifts_x, shifts_y)
    sx_u, sy_u, _ = find_shift(maps["u"], shifts_x, shifts_y)
    sx_v, sy_v, _ = find_shift(maps["v"], shifts_x, shifts_y)
    sx_uv, sy_uv, score = find_shift(maps["uv"], shifts_x, shifts_y)

    valid = sx_uv != min_x
    if valid:
        shift_x, shift_y = sx_uv, sy_uv
    else:
        shift_x, shift_y = int(advection_cells), 0
        if warn:
            warn_correlation_failure(n1, n2, advection_cells)

    return ShiftEstimate(
        n1=n1, n2=n2, shift_x=shift_x, shift_y=shift_y, score=score, valid=valid,
        optimum_u=(sx_u, sy_u), optimum_v=(sx_v, sy_v), optimum_uv=(sx_uv, sy_uv),
        corr_maps=maps)


def warn_correlation_failure(n1: int, n2: int, advection_cells: int) -> None:
    warnings.warn(
        f"Cross-correlation failed for frames {n1}/{n2}: the shift is not "
        "physical, probably no wake in the maps. Using the advection shift "
        f"({advection_cells} cells) instead.",
        CorrelationFailureWarning, stacklevel=3)


def _estimate_pair(n1: int, fields: FlowFields, names: tuple[str, str],
                   bounds: tuple[int, int, int, int], advection_cells: int) -> ShiftEstimate:
    comp_u, comp_v = (getattr(fields, name) for name in names)
    return estimate_shift(comp_u[n1], comp_v[n1], comp_u[n1 - 1], comp_v[n1 - 1],
                          bounds, advection_cells, n1=n1, n2=n1 - 1, warn=False)


def estimate_shifts(fields: FlowFields, first_frame: int, last_frame: int,
                    bounds: tuple[int, int, int, int], advection_cells: int,
                    cross_parameter: str = "velocity", n_jobs: int = 0,
                    progress: bool = True) -> list[ShiftEstimate]:
    """
    Estimate the shift of every consecutive frame pair in a frame range.

    Pairs are independent, so they are processed in parallel. The result
    is ordered from the most recent pair (last_frame, last_frame - 1) down
    to the earliest (first_frame + 1, first_frame), the order in which
    the wake is stitched.

    Args:
        fields (FlowFields): Canonical fields of the sequence.
        first_frame (int): Earliest frame used.
        last_frame (int): Latest frame used.
        bounds (tuple[int, int, int, int]): Search window, see shift_bounds.
        advection_cells (int): Fallback horizontal shift.
        cross_parameter (str): 'velocity' or 'velocity_fluctuations'.
        n_jobs (int): Worker threads (0 = CPU count).
        progress (bool): Show a progress bar.

    Returns:
        list[ShiftEstimate]: last_frame - first_frame estimates.
    """
    key = str(cross_parameter).strip().lower()
    if key not in CROSS_PARAMETERS:
        raise ConfigurationError(
            f"cross_parameter must be one of {sorted(CROSS_PARAMETERS)}, got {cross_parameter!r}")
    if not 0 <= first_frame < last_frame < fields.n_frames:
        raise DimensionError(
            f"Frame range {first_frame}..{last_frame} outside the available "
            f"frames 0..{fields.n_frames - 1}")

    frames_n1 = list(range(last_frame, first_frame, -1))
    estimate_partial = partial(_estimate_pair, fields=fields, names=CROSS_PARAMETERS[key],
                               bounds=bounds, advection_cells=advection_cells)

    n_jobs = n_jobs or os.cpu_count() or 4
    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        estimates = list(tqdm(executor.map(estimate_partial, frames_n1),
                              total=len(frames_n1), desc='Correlating pairs   ',
                              disable=not progress))

    for est in estimates:
        if not est.valid:
            warn_correlation_failure(est.n1, est.n2, advection_cells)

    return estimates
