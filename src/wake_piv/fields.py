"""
Data containers for velocity fields, stitched wakes and force series.

All frame sequences use the axis order (frame, row, column). Rows run from
the top of the image to the bottom, so the canonical y coordinate decreases
with the row index; columns run left to right with x increasing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .errors import DimensionError

# Quantities carried through normalisation and stitching, in output order
QUANTITIES: tuple[str, ...] = (
    "u", "v", "uf", "vf", "dudx", "dudy", "dvdx", "dvdy", "vorticity")

GRADIENT_NAMES: tuple[str, ...] = ("dudx", "dudy", "dvdx", "dvdy")


def _check_same_shape(arrays: dict[str, np.ndarray | None], ndim: int) -> tuple[int, ...]:
    shape: tuple[int, ...] | None = None
    for name, arr in arrays.items():
        if arr is None:
            continue
        if arr.ndim != ndim:
            raise DimensionError(
                f"{name} must be {ndim}D, got shape {arr.shape}")
        if shape is None:
            shape = arr.shape
        elif arr.shape != shape:
            raise DimensionError(
                f"{name} has shape {arr.shape}, expected {shape}")
    if shape is None:
        raise DimensionError("No arrays provided")
    return shape


@dataclass(frozen=True)
class RawDataset:
    """A PIV sequence as delivered by the PIV software.

    Attributes:
        x, y: Pixel coordinates of the vectors, shape (rows, cols).
        dx, dy: Vector spacing in pixels. The sign of dy encodes the origin
            convention: dy < 0 means the origin is at the bottom-left corner
            with y pointing up, dy > 0 means the origin is at the top-left
            corner with y pointing down.
        u, v: Displacement per laser interval in pixels, (frames, rows, cols).
        gradients: Optional precomputed dudx, dudy, dvdx, dvdy in the
            dataset's own convention, (frames, rows, cols).
    """

    x: np.ndarray
    y: np.ndarray
    dx: float
    dy: float
    u: np.ndarray
    v: np.ndarray
    gradients: dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        coord_shape = _check_same_shape({"x": self.x, "y": self.y}, ndim=2)
        field_shape = _check_same_shape(
            {"u": self.u, "v": self.v, **self.gradients}, ndim=3)
        if field_shape[1:] != coord_shape:
            raise DimensionError(
                f"Velocity frames {field_shape[1:]} do not match coordinates {coord_shape}")
        if field_shape[0] < 1:
            raise DimensionError("Dataset contains no frames")
        unknown = set(self.gradients) - set(GRADIENT_NAMES)
        if unknown:
            raise DimensionError(f"Unknown gradient fields: {sorted(unknown)}")
        if self.dx == 0 or self.dy == 0:
            raise DimensionError("Vector spacing dx and dy must be non-zero")

    @property
    def n_frames(self) -> int:
        return self.u.shape[0]


@dataclass(frozen=True)
class Grid:
    """Canonical physical grid (origin bottom-left, y up, y centred on zero).

    Attributes:
        x, y: Coordinates in metres, shape (rows, cols).
        dx, dy: Positive cell spacing in metres.
    """

    x: np.ndarray
    y: np.ndarray
    dx: float
    dy: float

    def __post_init__(self) -> None:
        _check_same_shape({"x": self.x, "y": self.y}, ndim=2)
        if not (self.dx > 0 and self.dy > 0):
            raise DimensionError(
                f"Grid spacing must be positive, got dx={self.dx}, dy={self.dy}")

    @property
    def shape(self) -> tuple[int, int]:
        return self.x.shape


@dataclass(frozen=True)
class FlowFields:
    """Velocity, fluctuation and gradient fields of a sequence.

    Velocities in m/s, gradients and vorticity in 1/s, all arrays of shape
    (frames, rows, cols) sharing one extent.
    """

    u: np.ndarray
    v: np.ndarray
    uf: np.ndarray
    vf: np.ndarray
    dudx: np.ndarray
    dudy: np.ndarray
    dvdx: np.ndarray
    dvdy: np.ndarray
    vorticity: np.ndarray

    def __post_init__(self) -> None:
        _check_same_shape({name: getattr(self, name) for name in QUANTITIES}, ndim=3)

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.u.shape

    @property
    def n_frames(self) -> int:
        return self.u.shape[0]

    def frame(self, n: int) -> dict[str, np.ndarray]:
        """Return every quantity of frame n as a name -> 2D array mapping."""
        if not 0 <= n < self.n_frames:
            raise DimensionError(
                f"Frame {n} outside the available range 0..{self.n_frames - 1}")
        return {name: getattr(self, name)[n] for name in QUANTITIES}


@dataclass(frozen=True)
class ShiftEstimate:
    """Accepted shift between a later frame (n1) and the frame before it (n2).

    Frame n2, moved shift_x columns downstream and shift_y rows, lines up
    with frame n1: n1[row, col + shift_x] ~ n2[row + shift_y, col].

    Attributes:
        n1, n2: Frame indices of the pair (n2 = n1 - 1).
        shift_x, shift_y: Accepted integer shift in grid cells.
        score: Joint (u, v) correlation coefficient at the correlation optimum.
        valid: False when the correlation failed and the advection shift
            was substituted.
        optimum_u, optimum_v, optimum_uv: (shift_x, shift_y) maximising the
            u, v and joint correlation (diagnostic only).
        corr_maps: Correlation maps keyed 'u', 'v', 'uv', shaped
            (n_shift_y, n_shift_x) for the search ranges.
    """

    n1: int
    n2: int
    shift_x: int
    shift_y: int
    score: float
    valid: bool
    optimum_u: tuple[int, int]
    optimum_v: tuple[int, int]
    optimum_uv: tuple[int, int]
    corr_maps: dict[str, np.ndarray] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class StitchedWake:
    """Wake reconstructed by concatenating per-pair overlap windows.

    Every field array has shape (rows, total_columns). Column 0 is taken
    from the most recent frame (nearest the wing); columns further right
    come from earlier frames.
    """

    x: np.ndarray
    y: np.ndarray
    x_c: np.ndarray
    y_c: np.ndarray
    u: np.ndarray
    v: np.ndarray
    uf: np.ndarray
    vf: np.ndarray
    dudx: np.ndarray
    dudy: np.ndarray
    dvdx: np.ndarray
    dvdy: np.ndarray
    vorticity: np.ndarray
    swirl: np.ndarray
    dx: float
    dy: float
    estimates: tuple[ShiftEstimate, ...] = ()
    overflow_pairs: tuple[int, ...] = ()

    @property
    def shape(self) -> tuple[int, int]:
        return self.u.shape

    @property
    def shift_x(self) -> np.ndarray:
        return np.array([e.shift_x for e in self.estimates], dtype=int)

    @property
    def shift_y(self) -> np.ndarray:
        return np.array([e.shift_y for e in self.estimates], dtype=int)

    @property
    def fallback_pairs(self) -> tuple[int, ...]:
        """Indices (into the shift log) of pairs stitched with the advection shift."""
        return tuple(i for i, e in enumerate(self.estimates) if not e.valid)

    def arrays(self) -> dict[str, np.ndarray]:
        """All spatial arrays by name, e.g. for saving with np.savez."""
        names = ("x", "y", "x_c", "y_c", *QUANTITIES, "swirl")
        return {name: getattr(self, name) for name in names}


@dataclass(frozen=True)
class DragSeries:
    """Drag per frame of the wingbeat cycle.

    x_c runs from the farthest wake station to the wing (last element 0),
    time runs from the cycle start, both aligned with the coefficient arrays.
    Only x_c is reversed: index 0 is the first cycle frame at time 0, not
    the station nearest the wing.
    """

    x_c: np.ndarray
    time: np.ndarray
    drag_steady: np.ndarray
    drag_unsteady: np.ndarray
    cd_steady: np.ndarray
    cd_unsteady: np.ndarray


@dataclass(frozen=True)
class LiftSeries:
    """Circulation and circulatory lift along the wake (or over the cycle).

    Index 0 is the earliest-shed station: time 0, largest x_c and zero
    circulation. The last element is the station at the wing (x_c = 0), so
    the series is integrated from the far wake towards the wing.
    """

    policy: int
    x_c: np.ndarray
    time: np.ndarray
    circulation: np.ndarray
    circ_norm: np.ndarray
    cl_circ: np.ndarray
