"""
Experiment parameters for wake reconstruction and force estimation.

The parameters are exchanged as a flat vector of fifteen scalars in a fixed
order (see :data:`PARAMETER_NAMES`). :class:`FlightParameters` validates
such a vector once and exposes the derived quantities used throughout the
pipeline (metres per pixel, advection shift, Reynolds number, ...).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import astuple, dataclass, fields

import numpy as np

from .errors import ConfigurationError
from .utils import round_half_away

PARAMETER_NAMES: tuple[str, ...] = (
    "laser_dt",
    "pixels_per_cm",
    "frame_dt",
    "chord",
    "wingspan",
    "body_length",
    "body_width",
    "weight",
    "freestream_velocity",
    "air_density",
    "air_viscosity",
    "horizontal_cut",
    "vertical_cut",
    "cycle_start_frame",
    "cycle_end_frame",
)


@dataclass(frozen=True)
class FlightParameters:
    """Validated experiment parameters.

    Attributes:
        laser_dt: Time between the two laser pulses of one PIV map [s].
        pixels_per_cm: Image scale [px/cm].
        frame_dt: Time between consecutive velocity maps [s].
        chord: Reference (mean) chord of the wing [m].
        wingspan: Wingspan including the body width [m].
        body_length: Body length [m].
        body_width: Body width [m].
        weight: Body mass [kg].
        freestream_velocity: Free stream velocity U_inf [m/s].
        air_density: Air density rho [kg/m^3].
        air_viscosity: Dynamic viscosity mu [Pa s].
        horizontal_cut: Vectors trimmed from the left and right edges.
        vertical_cut: Vectors trimmed from the top and bottom edges.
        cycle_start_frame: First (0-based) frame of the wingbeat cycle.
        cycle_end_frame: Last (0-based) frame of the wingbeat cycle.
    """

    laser_dt: float
    pixels_per_cm: float
    frame_dt: float
    chord: float
    wingspan: float
    body_length: float
    body_width: float
    weight: float
    freestream_velocity: float
    air_density: float
    air_viscosity: float
    horizontal_cut: int
    vertical_cut: int
    cycle_start_frame: int
    cycle_end_frame: int

    def __post_init__(self) -> None:
        positive = ("laser_dt", "pixels_per_cm", "frame_dt", "chord",
                    "freestream_velocity", "air_density", "air_viscosity")
        for name in positive:
            if not getattr(self, name) > 0:
                raise ConfigurationError(
                    f"{name} must be positive, got {getattr(self, name)!r}")

        non_negative = ("wingspan", "body_length", "body_width", "weight",
                        "horizontal_cut", "vertical_cut",
                        "cycle_start_frame")
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"{name} must be non-negative, got {getattr(self, name)!r}")

        if self.cycle_end_frame <= self.cycle_start_frame:
            raise ConfigurationError(
                "cycle_end_frame must be larger than cycle_start_frame, got "
                f"{self.cycle_start_frame}..{self.cycle_end_frame}")

    @classmethod
    def from_vector(cls, values: Sequence[float] | np.ndarray) -> FlightParameters:
        """Build parameters from the flat fifteen-scalar vector.

        Args:
            values: [laser_dt, pixels_per_cm, frame_dt, chord, wingspan,
                body_length, body_width, weight, freestream_velocity,
                air_density, air_viscosity, horizontal_cut, vertical_cut,
                cycle_start_frame, cycle_end_frame]

        Returns:
            FlightParameters: Validated parameters.
        """
        values = np.asarray(values, dtype=float).ravel()
        if values.size != len(PARAMETER_NAMES):
            raise ConfigurationError(
                f"Expected {len(PARAMETER_NAMES)} parameters, got {values.size}")

        kwargs: dict[str, float | int] = {}
        for f, value in zip(fields(cls), values):
            if f.type == "int":
                if not float(value).is_integer():
                    raise ConfigurationError(
                        f"{f.name} must be an integer, got {value!r}")
                kwargs[f.name] = int(value)
            else:
                kwargs[f.name] = float(value)
        return cls(**kwargs)

    @classmethod
    def from_mapping(cls, table: dict) -> FlightParameters:
        """Build parameters from a name -> value mapping (e.g. a TOML table)."""
        missing = [name for name in PARAMETER_NAMES if name not in table]
        if missing:
            raise ConfigurationError(f"Missing parameters: {', '.join(missing)}")
        return cls.from_vector([table[name] for name in PARAMETER_NAMES])

    def to_vector(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)

    @property
    def m_per_px(self) -> float:
        """Image scale in metres per pixel."""
        return (1.0 / self.pixels_per_cm) / 100.0

    @property
    def kinematic_viscosity(self) -> float:
        return self.air_viscosity / self.air_density

    @property
    def reynolds_number(self) -> float:
        return self.freestream_velocity * self.air_density * self.chord / self.air_viscosity

    @property
    def n_cycle_frames(self) -> int:
        return self.cycle_end_frame - self.cycle_start_frame + 1

    def advection_cells(self, dx_m: float) -> int:
        """Expected shift in grid cells if the wake moves at U_inf for one frame.

        Args:
            dx_m (float): Grid spacing in metres.

        Returns:
            int: Advection shift rounded to whole cells.
        """
        if dx_m <= 0:
            raise ConfigurationError(f"Grid spacing must be positive, got {dx_m}")
        return int(round_half_away(self.freestream_velocity * self.frame_dt / dx_m))
