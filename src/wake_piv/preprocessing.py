"""
Field preprocessing functions for wake analysis.

This module converts raw PIV sequences into the canonical representation
used by the rest of the package: border trimming, the origin-convention
fix, conversion to physical units, velocity gradients and the fluctuation
decomposition about the time-mean field.
"""

import numpy as np

from .errors import DimensionError
from .fields import GRADIENT_NAMES, FlowFields, Grid, RawDataset
from .gradient import lsgradient
from .parameters import FlightParameters


def trim(fields: np.ndarray, h_cut: int, v_cut: int) -> np.ndarray:
    """
    Remove border vectors from a single field or a stack of fields.

    Args:
        fields (np.ndarray): 2D field (rows, cols) or 3D stack (frame, rows, cols).
        h_cut (int): Number of columns removed at the left and at the right.
        v_cut (int): Number of rows removed at the top and at the bottom.

    Returns:
        np.ndarray: Trimmed field(s), a view of the input.
    """
    if fields.ndim not in (2, 3):
        raise DimensionError(
            f"Input must be a 2D field or a 3D stack, got shape {fields.shape}")
    if h_cut < 0 or v_cut < 0:
        raise DimensionError("Cuts must be non-negative")

    n_rows, n_cols = fields.shape[-2:]
    if 2 * v_cut >= n_rows or 2 * h_cut >= n_cols:
        raise DimensionError(
            f"Cuts (h_cut={h_cut}, v_cut={v_cut}) leave nothing of a "
            f"{n_rows}x{n_cols} grid")

    return fields[..., v_cut:n_rows - v_cut, h_cut:n_cols - h_cut]


def fluctuations(u: np.ndarray, v: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Subtract the time-mean field from every frame.

    Args:
        u (np.ndarray): 3D stack of streamwise velocities (frame, rows, cols).
        v (np.ndarray): 3D stack of vertical velocities (frame, rows, cols).

    Returns:
        tuple[np.ndarray, np.ndarray]: (u', v') with the input shapes.
    """
    if u.ndim != 3 or u.shape != v.shape:
        raise DimensionError(
            f"u and v must be 3D stacks of equal shape, got {u.shape} and {v.shape}")
    if u.shape[0] == 0:
        raise DimensionError("Cannot compute fluctuations of an empty sequence")

    return u - np.mean(u, axis=0), v - np.mean(v, axis=0)


def velocity_gradients(u: np.ndarray, v: np.ndarray, dx: float, dy: float) -> dict[str, np.ndarray]:
    """
    Compute du/dx, du/dy, dv/dx and dv/dy for every frame.

    Args:
        u (np.ndarray): 3D stack (frame, rows, cols) in canonical orientation.
        v (np.ndarray): 3D stack (frame, rows, cols) in canonical orientation.
        dx (float): Column spacing (positive).
        dy (float): Row spacing; its magnitude is used, passed to the
            gradient operator as -|dy| because rows run top to bottom.

    Returns:
        dict[str, np.ndarray]: Gradient stacks keyed 'dudx', 'dudy', 'dvdx', 'dvdy'.
    """
    grads = {name: np.empty(u.shape) for name in GRADIENT_NAMES}
    for n in range(u.shape[0]):
        grads["dudx"][n], grads["dudy"][n] = lsgradient(u[n], abs(dx), -abs(dy))
        grads["dvdx"][n], grads["dvdy"][n] = lsgradient(v[n], abs(dx), -abs(dy))
    return grads


def normalize(dataset: RawDataset, params: FlightParameters,
              recompute_gradients: bool = True) -> tuple[Grid, FlowFields]:
    """
    Bring a raw PIV sequence into canonical form and physical units.

    Steps:
        1. Resolve the origin convention once: if the dataset's dy > 0
           (origin top-left, y down) the y coordinates are flipped and v,
           dv/dx and du/dy change sign. Afterwards the origin is at the
           bottom-left corner with y pointing up.
        2. Gradients are computed on the full (untrimmed) fields with the
           least-squares operator, unless the dataset supplies all four and
           recompute_gradients is False.
        3. Fluctuations about the time-mean of the whole sequence.
        4. Border trimming and conversion to m/s and 1/s.
        5. x starts at 0 on the first kept column; y is centred on zero.

    Args:
        dataset (RawDataset): Raw sequence in pixel units.
        params (FlightParameters): Experiment parameters (scale, laser dt, cuts).
        recompute_gradients (bool): Recompute gradients even if supplied.

    Returns:
        tuple[Grid, FlowFields]: Canonical grid and fields.
    """
    h_cut, v_cut = params.horizontal_cut, params.vertical_cut
    m_p = params.m_per_px

    # Fail on bad cuts before doing any work
    x_px = trim(np.asarray(dataset.x, dtype=float), h_cut, v_cut)
    y_px = np.asarray(dataset.y, dtype=float)

    u = np.asarray(dataset.u, dtype=float)
    v = np.asarray(dataset.v, dtype=float)
    grads = {name: np.asarray(arr, dtype=float) for name, arr in dataset.gradients.items()}

    if dataset.dy > 0:
        y_px = np.flip(y_px, axis=0)
        v = -v
        for name in ("dvdx", "dudy"):
            if name in grads:
                grads[name] = -grads[name]
    y_px = trim(y_px, h_cut, v_cut)

    if recompute_gradients or set(grads) != set(GRADIENT_NAMES):
        grads = velocity_gradients(u, v, dataset.dx, dataset.dy)

    uf, vf = fluctuations(u, v)

    vel_scale = m_p / params.laser_dt
    grad_scale = 1.0 / params.laser_dt
    trimmed = {
        "u": trim(u, h_cut, v_cut) * vel_scale,
        "v": trim(v, h_cut, v_cut) * vel_scale,
        "uf": trim(uf, h_cut, v_cut) * vel_scale,
        "vf": trim(vf, h_cut, v_cut) * vel_scale,
    }
    for name in GRADIENT_NAMES:
        trimmed[name] = trim(grads[name], h_cut, v_cut) * grad_scale
    trimmed["vorticity"] = trimmed["dvdx"] - trimmed["dudy"]

    x = (x_px - x_px[0, 0]) * m_p
    y = (y_px - y_px[-1, 0]) * m_p
    y = y - 0.5 * y[0, 0]

    grid = Grid(x=x, y=y, dx=abs(dataset.dx) * m_p, dy=abs(dataset.dy) * m_p)
    return grid, FlowFields(**trimmed)
