"""
Wake stitching functions.

The wake behind the wing is rebuilt from a sequence of velocity maps by
taking, from every frame pair, the window of columns the wake advected
through during one frame interval and concatenating these windows along x.
Pairs are processed from the most recent frame back to the earliest, so
the stitched wake starts at the wing and extends downstream.

Each window starts at the horizontal centre of the (trimmed) map and spans
shift_x + 1 columns, so its last column shows the same flow as the first
column of the window taken from the earlier frame. That seam column is
resampled by bilinear interpolation between the two frames, and the first
column of every following window is dropped.
"""

import warnings

import numpy as np
from tqdm import tqdm

from .errors import BoundaryOverflowWarning, DimensionError
from .fields import QUANTITIES, FlowFields, Grid, ShiftEstimate, StitchedWake
from .utils import round_half_away


def bilinear_interp(q11, q12, q21, q22, x1, x2, y1, y2, x, y):
    """
    Bilinear interpolation from four corner values.

    Corner q_ab sits at (x_a, y_b). All arguments may be scalars or arrays
    of matching shape.

    Returns:
        The interpolated value(s) at (x, y).
    """
    denom = (x2 - x1) * (y2 - y1)
    return (q11 * (x2 - x) * (y2 - y)
            + q21 * (x - x1) * (y2 - y)
            + q12 * (x2 - x) * (y - y1)
            + q22 * (x - x1) * (y - y1)) / denom


def overlap_bounds(n_cols: int, shift_x: int) -> tuple[int, int, bool]:
    """
    Column window taken from a frame for a given shift.

    Args:
        n_cols (int): Number of columns of the trimmed map.
        shift_x (int): Accepted horizontal shift in cells.

    Returns:
        tuple[int, int, bool]: (left, right, overflow), 0-based inclusive
            column bounds; overflow is True if right lies past the last column.
    """
    if shift_x < 1:
        raise DimensionError(f"shift_x must be at least 1, got {shift_x}")
    left = int(round_half_away(n_cols / 2)) - 1
    right = left + shift_x
    return left, right, right > n_cols - 1


def seam_rows(n_rows: int, shift_y: int) -> np.ndarray:
    """Rows of the seam column that can be interpolated for a vertical shift.

    Every row i needs rows i - 1 and i + 1 in the later frame and
    i - 1 + shift_y and i + 1 + shift_y in the earlier frame.
    """
    i0 = 1 + max(0, -shift_y)
    i1 = n_rows - 2 - max(0, shift_y)
    return np.arange(i0, i1 + 1)


def resample_seam(f1: np.ndarray, f2: np.ndarray, grid: Grid,
                  left: int, right: int, shift_y: int) -> np.ndarray:
    """
    Values of the seam column (right) of the later frame.

    The seam value at row i is interpolated between the later frame's
    column right - 1 (rows i - 1, i + 1) and the earlier frame's column
    left + 1 (rows i - 1 + shift_y, i + 1 + shift_y), which shows the flow
    one cell beyond the seam. Rows that cannot be interpolated keep their value.

    Args:
        f1 (np.ndarray): 2D field of the later frame.
        f2 (np.ndarray): 2D field of the earlier frame.
        grid (Grid): Canonical grid of the maps.
        left (int): First column of the window.
        right (int): Seam column (last column of the window).
        shift_y (int): Accepted vertical shift.

    Returns:
        np.ndarray: Seam column, shape (rows,).
    """
    n_rows, n_cols = f1.shape
    if not (1 <= right <= n_cols - 1 and left + 1 <= n_cols - 1):
        raise DimensionError(
            f"Seam column {right} (window start {left}) outside a map of {n_cols} columns")

    seam = f1[:, right].copy()
    rows = seam_rows(n_rows, shift_y)
    if rows.size == 0:
        return seam

    x, y = grid.x, grid.y
    x1 = x[rows + 1, right - 1]
    x2 = x[rows + 1, right] + grid.dx
    x3 = x[rows, right]
    y1 = y[rows + 1, right - 1]
    y2 = y[rows - 1, right - 1]
    y3 = y[rows, right]

    seam[rows] = bilinear_interp(
        f1[rows + 1, right - 1], f1[rows - 1, right - 1],
        f2[rows + 1 + shift_y, left + 1], f2[rows - 1 + shift_y, left + 1],
        x1, x2, y1, y2, x3, y3)
    return seam


def swirl_strength(dudx: np.ndarray, dudy: np.ndarray, dvdx: np.ndarray, dvdy: np.ndarray) -> np.ndarray:
    """
    Swirl strength: imaginary part of the complex eigenvalue of the velocity gradient tensor.

    Cells where the discriminant is non-negative (real eigenvalues) get 0.
    """
    disc = 0.25 * (dudx + dvdy) ** 2 + dudy * dvdx - dudx * dvdy
    return np.sqrt(disc.astype(complex)).imag


def stitch_pair(fields: FlowFields, grid: Grid, estimate: ShiftEstimate,
                pair_index: int = 0) -> tuple[dict[str, np.ndarray], bool]:
    """
    Overlap window of one frame pair, seam resampled.

    Args:
        fields (FlowFields): Canonical fields.
        grid (Grid): Canonical grid.
        estimate (ShiftEstimate): Accepted shift of the pair.
        pair_index (int): Position in the shift log, used in messages.

    Returns:
        tuple[dict[str, np.ndarray], bool]: Window of every quantity plus
            'x' and 'y', and whether the window had to be clamped.
    """
    n_rows, n_cols = grid.shape
    left, right, overflow = overlap_bounds(n_cols, estimate.shift_x)
    if overflow:
        warnings.warn(
            f"Overlap error for pair {pair_index} (frames {estimate.n1}/{estimate.n2}): "
            f"shift_x={estimate.shift_x} needs column {right}, but the map ends at "
            f"column {n_cols - 1}. Window clamped to the map.",
            BoundaryOverflowWarning, stacklevel=3)
        right = n_cols - 1

    frame1 = fields.frame(estimate.n1)
    frame2 = fields.frame(estimate.n2)
    width = right - left + 1

    segment = {}
    for name in QUANTITIES:
        window = frame1[name][:, left:right + 1].copy()
        window[:, -1] = resample_seam(frame1[name], frame2[name], grid,
                                      left, right, estimate.shift_y)
        segment[name] = window
    segment["x"] = grid.x[:, :width]
    segment["y"] = grid.y[:, :width] + abs(estimate.shift_y) * grid.dy
    return segment, overflow


def stitch_wake(fields: FlowFields, grid: Grid, estimates: list[ShiftEstimate],
                chord: float, progress: bool = True) -> StitchedWake:
    """
    Stitch the windows of all frame pairs into one wake.

    Windows are collected as an ordered sequence and concatenated once at
    the end. Every window after the first loses its first column (it
    coincides with the previous seam) and its x coordinates are offset by
    the last x of the wake so far, so x is non-decreasing along the wake.

    Vorticity is recomputed on the stitched gradients (dv/dx - du/dy) and
    the swirl strength is added.

    Args:
        fields (FlowFields): Canonical fields.
        grid (Grid): Canonical grid.
        estimates (list[ShiftEstimate]): Shifts ordered from the most recent
            pair to the earliest, as returned by estimate_shifts.
        chord (float): Reference chord used to normalise x and y.
        progress (bool): Show a progress bar.

    Returns:
        StitchedWake: The reconstructed wake.
    """
    if not estimates:
        raise DimensionError("At least one frame pair is needed to stitch a wake")
    if fields.shape[1:] != grid.shape:
        raise DimensionError(
            f"Field extent {fields.shape[1:]} does not match grid {grid.shape}")

    pieces: dict[str, list[np.ndarray]] = {name: [] for name in ("x", "y", *QUANTITIES)}
    overflow_pairs = []
    x_end = 0.0

    for i, est in enumerate(tqdm(estimates, desc='Stitching wake      ', disable=not progress)):
        segment, overflow = stitch_pair(fields, grid, est, pair_index=i)
        if overflow:
            overflow_pairs.append(i)

        if i == 0:
            for name, arr in segment.items():
                pieces[name].append(arr)
        else:
            for name, arr in segment.items():
                arr = arr[:, 1:]
                if name == "x":
                    arr = arr + x_end
                pieces[name].append(arr)
        x_end = pieces["x"][-1][0, -1] if pieces["x"][-1].size else x_end

    wake = {name: np.concatenate(parts, axis=1) for name, parts in pieces.items()}
    wake["vorticity"] = wake["dvdx"] - wake["dudy"]
    swirl = swirl_strength(wake["dudx"], wake["dudy"], wake["dvdx"], wake["dvdy"])

    return StitchedWake(
        x_c=wake["x"] / chord,
        y_c=wake["y"] / chord,
        swirl=swirl,
        dx=grid.dx,
        dy=grid.dy,
        estimates=tuple(estimates),
        overflow_pairs=tuple(overflow_pairs),
        **wake,
    )
