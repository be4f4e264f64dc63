"""
Drag estimation from the momentum deficit in the PIV frames.

The steady part integrates the momentum deficit (U_inf - u) u rho over the
height of every frame of the wingbeat cycle (per metre span); the unsteady
part integrates the streamwise acceleration, obtained by a centred
difference between the neighbouring frames, over the frame area.
"""

import numpy as np

from .errors import DimensionError
from .fields import DragSeries, FlowFields, Grid
from .parameters import FlightParameters
from .utils import get_time, get_x_c


def cycle_frames(params: FlightParameters, n_frames: int) -> np.ndarray:
    """
    Frame indices of the wingbeat cycle, checked against the sequence length.

    Every cycle frame needs a neighbour on both sides for the centred time
    difference.
    """
    n_i, n_f = params.cycle_start_frame, params.cycle_end_frame
    if n_i - 1 < 0 or n_f + 1 >= n_frames:
        raise DimensionError(
            f"Cycle frames {n_i}..{n_f} need neighbours {n_i - 1} and {n_f + 1}, "
            f"but the sequence has frames 0..{n_frames - 1}")
    return np.arange(n_i, n_f + 1)


def steady_drag(u: np.ndarray, freestream_velocity: float, air_density: float, dy: float) -> np.ndarray:
    """
    Momentum-deficit drag per frame [N/m].

    Args:
        u (np.ndarray): Streamwise velocity (frame, rows, cols) in m/s.
        freestream_velocity (float): U_inf in m/s.
        air_density (float): rho in kg/m^3.
        dy (float): Row spacing in m.

    Returns:
        np.ndarray: Drag per frame, integrated over rows and averaged over columns.
    """
    deficit = (freestream_velocity - u) * u * air_density
    return np.mean(np.sum(deficit, axis=1), axis=1) * dy


def unsteady_drag(u_prev: np.ndarray, u_next: np.ndarray, frame_dt: float,
                  air_density: float, dx: float, dy: float) -> np.ndarray:
    """Drag from the streamwise acceleration per frame [N/m].

    The acceleration of frame j is (u[j+1] - u[j-1]) / (2 dt); u_prev and
    u_next hold u[j-1] and u[j+1] for every frame j.
    """
    dudt = (u_next - u_prev) / (2 * frame_dt)
    return -np.sum(dudt, axis=(1, 2)) * dx * dy * air_density


def drag_force(fields: FlowFields, grid: Grid, params: FlightParameters) -> DragSeries:
    """
    Steady and unsteady drag over the wingbeat cycle.

    Args:
        fields (FlowFields): Canonical fields of the sequence.
        grid (Grid): Canonical grid.
        params (FlightParameters): Experiment parameters.

    Returns:
        DragSeries: Drag and drag coefficients per cycle frame. Time runs
            forward from the cycle start; x/c runs backward, so its last
            element (the latest frame) is at the wing.
    """
    frames = cycle_frames(params, fields.n_frames)
    u_inf, rho = params.freestream_velocity, params.air_density
    dt = params.frame_dt

    drag_st = steady_drag(fields.u[frames], u_inf, rho, grid.dy)
    drag_un = unsteady_drag(fields.u[frames - 1], fields.u[frames + 1], dt, rho, grid.dx, grid.dy)

    time = get_time(frames.size, dt)
    x_c = get_x_c(frames.size, dt * u_inf, params.chord)

    dyn = 0.5 * rho * params.chord * u_inf ** 2
    return DragSeries(
        x_c=x_c,
        time=time,
        drag_steady=drag_st,
        drag_unsteady=drag_un,
        cd_steady=drag_st / dyn,
        cd_unsteady=drag_un / dyn,
    )
