"""
Vorticity thresholding and masking.
"""

import numpy as np

from .errors import ConfigurationError, DimensionError

THRESHOLD_MODES = ("vorticity", "positive", "negative")


def roi_mask(shape: tuple[int, int], roi: tuple[int, int, int, int]) -> np.ndarray:
    """
    Boolean mask of a rectangular region of interest.

    Args:
        shape (tuple[int, int]): Field shape (rows, cols).
        roi (tuple[int, int, int, int]): Region as (y_start, y_end, x_start, x_end).
            If y_end or x_end is negative, they are interpreted as an offset
            from the end of the field. If y_end or x_end is zero, it is
            interpreted as the full extent in that direction. All zeros
            means no region.

    Returns:
        np.ndarray: True inside the region.
    """
    if len(roi) != 4:
        raise ConfigurationError(
            "ROI must be a tuple of four integers (y_start, y_end, x_start, x_end).")

    mask = np.zeros(shape, dtype=bool)
    if not any(roi):
        return mask

    n_rows, n_cols = shape
    y_start, y_end, x_start, x_end = (int(r) for r in roi)

    # Zero end means full extent, negative end counts from the end
    if y_end <= 0:
        y_end = n_rows + y_end
    if x_end <= 0:
        x_end = n_cols + x_end

    if not (0 <= y_start < n_rows and 0 <= y_end <= n_rows and
            0 <= x_start < n_cols and 0 <= x_end <= n_cols):
        raise ConfigurationError(
            f"ROI {tuple(roi)} is out of bounds of a {n_rows}x{n_cols} field")

    mask[y_start:y_end, x_start:x_end] = True
    return mask


def vorticity_threshold(vorticity: np.ndarray, offset: float = 0.0, mode: str = "vorticity",
                        threshold: float = 0.0,
                        mask: np.ndarray | tuple[int, int, int, int] | None = None) -> np.ndarray:
    """
    Zero out weak vorticity and masked regions.

    Args:
        vorticity (np.ndarray): 2D vorticity field (rows, cols).
        offset (float): Background vorticity subtracted before thresholding.
        mode (str): 'vorticity' keeps |w - offset| >= threshold, 'positive'
            keeps w - offset >= threshold, 'negative' keeps w - offset <= -threshold.
        threshold (float): Threshold in 1/s (non-negative).
        mask (np.ndarray | tuple | None): Boolean array (True = discard) of
            the field shape, or an ROI tuple as in roi_mask, or None.

    Returns:
        np.ndarray: Thresholded vorticity (w - offset where kept, 0 elsewhere),
            same shape as the input.
    """
    vorticity = np.asarray(vorticity, dtype=float)
    if vorticity.ndim != 2:
        raise DimensionError(f"Vorticity must be a 2D field, got shape {vorticity.shape}")
    if threshold < 0:
        raise ConfigurationError(f"Vorticity threshold must be non-negative, got {threshold}")

    mode = str(mode).strip().lower()
    shifted = vorticity - offset
    if mode == "vorticity":
        keep = np.abs(shifted) >= threshold
    elif mode == "positive":
        keep = shifted >= threshold
    elif mode == "negative":
        keep = shifted <= -threshold
    else:
        raise ConfigurationError(
            f"Threshold mode must be one of {THRESHOLD_MODES}, got {mode!r}")

    if mask is not None:
        if isinstance(mask, np.ndarray) and mask.dtype == bool:
            if mask.shape != vorticity.shape:
                raise DimensionError(
                    f"Mask shape {mask.shape} does not match vorticity {vorticity.shape}")
            keep &= ~mask
        else:
            keep &= ~roi_mask(vorticity.shape, tuple(mask))

    return np.where(keep, shifted, 0.0)
