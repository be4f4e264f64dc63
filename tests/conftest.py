"""
Shared fixtures: synthetic PIV sequences with a known advection shift.

With pixels_per_cm = 100 and laser_dt = 1e-4 s a displacement of one pixel
per laser interval is 1 m/s, and a vector spacing of 10 px is 1 mm. With
U_inf = 1.5 m/s and frame_dt = 2 ms the advection shift is 3 cells.
"""

import numpy as np
import pytest

from wake_piv.fields import FlowFields, Grid, RawDataset
from wake_piv.parameters import FlightParameters

DX_PX = 10.0
SHIFT = 3


def flight_parameters(**overrides) -> FlightParameters:
    values = dict(
        laser_dt=1e-4,
        pixels_per_cm=100.0,
        frame_dt=2e-3,
        chord=0.01,
        wingspan=0.2,
        body_length=0.1,
        body_width=0.03,
        weight=0.02,
        freestream_velocity=1.5,
        air_density=1.2,
        air_viscosity=1.8e-5,
        horizontal_cut=0,
        vertical_cut=0,
        cycle_start_frame=1,
        cycle_end_frame=3,
    )
    values.update(overrides)
    return FlightParameters(**values)


def pixel_coords(n_rows: int, n_cols: int, dy: float = -DX_PX):
    """Vector positions in pixels; dy < 0 puts the origin bottom-left."""
    x = np.tile((np.arange(n_cols) + 1) * DX_PX, (n_rows, 1))
    rows = np.arange(n_rows)[:, np.newaxis] * np.ones((1, n_cols))
    y = (n_rows - rows) * DX_PX if dy < 0 else (rows + 1) * DX_PX
    return x, y


def translated_stack(base: np.ndarray, n_frames: int, n_cols: int, shift: int = SHIFT) -> np.ndarray:
    """Frames cut from a wide base field, moving shift columns right per frame.

    Frame k satisfies frame_k[:, c + shift] == frame_(k-1)[:, c].
    """
    return np.stack([base[:, (n_frames - 1 - k) * shift:(n_frames - 1 - k) * shift + n_cols]
                     for k in range(n_frames)])


def make_grid(n_rows: int, n_cols: int, spacing: float = 1e-3) -> Grid:
    x = np.tile(np.arange(n_cols) * spacing, (n_rows, 1))
    y = np.tile(((n_rows - 1) / 2 - np.arange(n_rows))[:, np.newaxis] * spacing, (1, n_cols))
    return Grid(x=x, y=y, dx=spacing, dy=spacing)


def make_fields(shape: tuple[int, int, int], **arrays) -> FlowFields:
    """FlowFields with every quantity zero unless given."""
    names = ("u", "v", "uf", "vf", "dudx", "dudy", "dvdx", "dvdy", "vorticity")
    return FlowFields(**{name: np.asarray(arrays.get(name, np.zeros(shape)), dtype=float)
                         * np.ones(shape) for name in names})


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def params():
    return flight_parameters()


@pytest.fixture
def translated_dataset(rng):
    """Factory for a RawDataset whose frames translate SHIFT cells per frame."""

    def _make(n_frames: int = 5, n_rows: int = 10, n_cols: int = 10, dy: float = -DX_PX) -> RawDataset:
        width = n_cols + (n_frames - 1) * SHIFT
        u = translated_stack(rng.standard_normal((n_rows, width)) + 1.5, n_frames, n_cols)
        v = translated_stack(rng.standard_normal((n_rows, width)), n_frames, n_cols)
        x, y = pixel_coords(n_rows, n_cols, dy)
        return RawDataset(x=x, y=y, dx=DX_PX, dy=dy, u=u, v=v)

    return _make
