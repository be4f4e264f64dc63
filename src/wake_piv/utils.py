"""
Utility functions for wake analysis.

This module contains general-purpose numerical helpers used throughout
the wake reconstruction and force estimation workflow, including rounding,
time bases and the cumulative trapezoidal rule.
"""

from datetime import datetime

import numpy as np
from scipy.integrate import cumulative_trapezoid


def round_half_away(value: float | np.ndarray) -> float | np.ndarray:
    """
    Round to the nearest integer, with halves rounded away from zero.

    numpy rounds halves to even; shift bounds and window positions are
    defined with the away-from-zero convention (2.5 -> 3, -2.5 -> -3).

    Args:
        value (float | np.ndarray): Value(s) to round.

    Returns:
        float | np.ndarray: Rounded value(s), same type as the input.
    """
    return np.sign(value) * np.floor(np.abs(value) + 0.5)


def get_time(n_frames: int, dt: float) -> np.ndarray:
    """
    Calculate the time array of a wingbeat cycle.

    Args:
        n_frames (int): Number of frames in the cycle.
        dt (float): Time step between frames in seconds.

    Returns:
        np.ndarray: Time since cycle start, [0, dt, ..., (n_frames - 1) * dt]
    """
    return np.arange(n_frames) * dt


def get_x_c(n_stations: int, dx: float, chord: float) -> np.ndarray:
    """
    Calculate normalised streamwise positions, farthest station first.

    The last element is 0 (the station nearest the wing); element i lies
    (n_stations - 1 - i) * dx downstream of it.

    Args:
        n_stations (int): Number of streamwise stations.
        dx (float): Distance between consecutive stations in metres.
        chord (float): Reference chord in metres.

    Returns:
        np.ndarray: x/c array of length n_stations.
    """
    return np.flip(np.arange(n_stations) * dx / chord)


def cumtrapz(values: np.ndarray, step: float) -> np.ndarray:
    """
    Cumulative trapezoidal integral that starts at zero.

    Args:
        values (np.ndarray): 1D integrand sampled with uniform spacing.
        step (float): Sample spacing.

    Returns:
        np.ndarray: Running integral with the same length as values.
    """
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return values.copy()
    return cumulative_trapezoid(values, dx=step, initial=0)


def timestamp_str() -> str:
    """Local time as YYYYMMDD_HHMMSS, used to name run folders."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")
