"""
Error and warning types for wake reconstruction.

Configuration and dimension errors are fatal and abort a run. Correlation
failures and stitch-window overflows are recoverable: they are reported
with :func:`warnings.warn` using the categories below and recorded on the
returned objects, and processing continues.
"""


class WakeError(Exception):
    """Base class for all errors raised by wake_piv."""


class ConfigurationError(WakeError, ValueError):
    """Malformed parameter vector or configuration value."""


class DimensionError(WakeError, ValueError):
    """Array extents that cannot be processed (cuts, shapes, frame ranges)."""


class CorrelationFailureWarning(UserWarning):
    """Cross-correlation returned the degenerate minimum shift.

    The advection-predicted shift was used instead.
    """


class BoundaryOverflowWarning(UserWarning):
    """Stitch window extended past the trimmed frame and was clamped."""
