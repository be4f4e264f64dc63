"""
Input/output functions for wake analysis.

This module reads and writes PIV sequences as .npz datasets.
"""

import os

import numpy as np

from .errors import ConfigurationError, DimensionError
from .fields import GRADIENT_NAMES, RawDataset

DATASET_KEYS = ("x", "y", "dx", "dy", "u", "v")


def load_dataset(file_path: str, verbose: bool = True) -> RawDataset:
    """
    Load a PIV sequence from an .npz dataset.

    The archive holds x, y (rows, cols) pixel coordinates, the signed pixel
    spacing dx, dy and the displacement fields u, v as (rows, cols, frames),
    optionally with dudx, dudy, dvdx and dvdy in the same layout.

    Args:
        file_path (str): Path to the .npz file.
        verbose (bool): Print a message after loading.

    Returns:
        RawDataset: Dataset with the frame axis first (frame, rows, cols).
    """
    if not os.path.isfile(file_path):
        raise ConfigurationError(f"Dataset file not found: {file_path}")

    with np.load(file_path) as data:
        missing = [k for k in DATASET_KEYS if k not in data.files]
        if missing:
            raise ConfigurationError(
                f"Dataset {file_path} lacks required arrays: {', '.join(missing)}")

        stacks = {}
        for k in ("u", "v", *GRADIENT_NAMES):
            if k not in data.files:
                continue
            arr = np.asarray(data[k], dtype=float)
            if arr.ndim == 2:
                arr = arr[..., np.newaxis]
            if arr.ndim != 3:
                raise DimensionError(
                    f"{k} must be (rows, cols, frames), got shape {arr.shape}")
            stacks[k] = np.moveaxis(arr, -1, 0)

        dataset = RawDataset(
            x=np.asarray(data["x"], dtype=float),
            y=np.asarray(data["y"], dtype=float),
            dx=float(data["dx"]),
            dy=float(data["dy"]),
            u=stacks.pop("u"),
            v=stacks.pop("v"),
            gradients=stacks,
        )

    if verbose:
        print(f"Loaded {dataset.n_frames} frames of {dataset.x.shape[0]}x{dataset.x.shape[1]} "
              f"vectors from {file_path}")
    return dataset


def save_dataset(file_path: str, dataset: RawDataset) -> str:
    """Write a RawDataset in the layout read by load_dataset."""
    arrays = {k: np.moveaxis(v, 0, -1) for k, v in dataset.gradients.items()}
    np.savez(file_path, x=dataset.x, y=dataset.y, dx=dataset.dx, dy=dataset.dy,
             u=np.moveaxis(dataset.u, 0, -1), v=np.moveaxis(dataset.v, 0, -1), **arrays)
    return file_path if file_path.endswith('.npz') else file_path + '.npz'

