"""Flapping-wing wake reconstruction from PIV sequences.

Stitches a sequence of time-resolved PIV velocity maps into one continuous
wake by cross-correlating consecutive maps, and estimates the drag and
circulatory lift of the wing from that wake.

Usage:
    import wake_piv as wp

    # (The low-level functional API is exported here and in the submodules.
    # The supported end-to-end pipeline lives in `wake_piv.run`.)
"""

__version__ = "1.0.0"

from .errors import (
    WakeError, ConfigurationError, DimensionError,
    CorrelationFailureWarning, BoundaryOverflowWarning)
from .parameters import FlightParameters, PARAMETER_NAMES
from .fields import (
    RawDataset, Grid, FlowFields, ShiftEstimate, StitchedWake, DragSeries, LiftSeries)
from .gradient import lsgradient
from .preprocessing import trim, fluctuations, velocity_gradients, normalize
from .correlation import shift_bounds, calc_corr, find_shift, estimate_shift, estimate_shifts
from .stitching import bilinear_interp, overlap_bounds, stitch_wake, swirl_strength
from .masking import vorticity_threshold
from .drag import drag_force
from .lift import ThresholdSettings, lift_force
from .io import load_dataset, save_dataset

__all__ = [
    # Errors and warnings
    'WakeError', 'ConfigurationError', 'DimensionError',
    'CorrelationFailureWarning', 'BoundaryOverflowWarning',

    # Data containers
    'FlightParameters', 'PARAMETER_NAMES', 'RawDataset', 'Grid', 'FlowFields',
    'ShiftEstimate', 'StitchedWake', 'DragSeries', 'LiftSeries',

    # Preprocessing functions
    'lsgradient', 'trim', 'fluctuations', 'velocity_gradients', 'normalize',

    # Correlation functions
    'shift_bounds', 'calc_corr', 'find_shift', 'estimate_shift', 'estimate_shifts',

    # Stitching functions
    'bilinear_interp', 'overlap_bounds', 'stitch_wake', 'swirl_strength',

    # Force estimation
    'vorticity_threshold', 'drag_force', 'ThresholdSettings', 'lift_force',

    # Input/output
    'load_dataset', 'save_dataset',
]
