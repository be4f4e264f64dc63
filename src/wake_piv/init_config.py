"""Configuration loading for wake-piv.

This module provides :func:`read_file` which loads a TOML configuration,
applies packaged defaults, validates the settings, and exposes them as
module-level variables."""

from __future__ import annotations

import json
import tomllib
from copy import deepcopy
from importlib.resources import files
from pathlib import Path
from typing import Any

from .correlation import CROSS_PARAMETERS
from .errors import ConfigurationError
from .lift import FRAME_POLICIES, WAKE_POLICIES
from .masking import THRESHOLD_MODES
from .parameters import FlightParameters


# These variables are populated by read_file(). Defaults live in default_config.toml.
#
# Every key read below must exist in default_config.toml; the Python code
# does not hard-code fallbacks. Tables are one level deep, which is all
# _toml_dump() supports. An empty string means "not provided" for paths.

CONFIG: dict[str, Any]
CONFIG_PATH: Path

# [source]
DATASET_FILE: str
OUTPUT_DIR: str

# [parameters]
PARAMETERS: FlightParameters

# [preprocessing]
RECOMPUTE_GRADIENTS: bool

# [correlation]
CROSS_PARAMETER: str
MIN_SHIFT_X: int
MAX_SHIFT_X_FACTOR: float
SHIFT_Y_FACTOR: float
N_JOBS: int

# [lift]
LIFT_POLICY: int
VORTICITY_THRESHOLD: float
VORTICITY_OFFSET: float
THRESHOLD_MODE: str
MASK_ROI: tuple[int, int, int, int]  # (y_start, y_end, x_start, x_end)

# [output]
SAVE_WAKE: bool
VERBOSE: bool


def read_file(config_file: Path | str) -> None:
    """Load TOML config, apply defaults, validate settings, and set globals.

    Relative paths in the [source] table are resolved against the folder of
    the configuration file. An empty output_dir means the folder of the
    dataset file.
    """

    config_path = Path(config_file) if config_file else None
    if not config_path or not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_file}")

    print(f"Reading configuration from: {config_path}.")
    with config_path.open("rb") as fp:
        try:
            user_cfg = tomllib.load(fp)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc

    merged = _deep_merge(_read_packaged_default_config(), user_cfg)

    global CONFIG, CONFIG_PATH
    CONFIG = merged
    CONFIG_PATH = config_path.resolve()

    source = merged["source"]
    preprocessing = merged["preprocessing"]
    correlation = merged["correlation"]
    lift = merged["lift"]
    output = merged["output"]

    # [source]
    global DATASET_FILE, OUTPUT_DIR
    DATASET_FILE = str(source["dataset_file"])
    if not DATASET_FILE:
        raise ConfigurationError("source.dataset_file must be provided")
    DATASET_FILE = str(_resolve(DATASET_FILE, CONFIG_PATH.parent))
    OUTPUT_DIR = str(source["output_dir"])
    OUTPUT_DIR = (str(_resolve(OUTPUT_DIR, CONFIG_PATH.parent)) if OUTPUT_DIR
                  else str(Path(DATASET_FILE).parent))

    # [parameters]
    global PARAMETERS
    PARAMETERS = FlightParameters.from_mapping(merged["parameters"])

    # [preprocessing]
    global RECOMPUTE_GRADIENTS
    RECOMPUTE_GRADIENTS = _as_bool(preprocessing["recompute_gradients"],
                                   "preprocessing.recompute_gradients")

    # [correlation]
    global CROSS_PARAMETER, MIN_SHIFT_X, MAX_SHIFT_X_FACTOR, SHIFT_Y_FACTOR, N_JOBS
    CROSS_PARAMETER = str(correlation["cross_parameter"]).strip().lower()
    if CROSS_PARAMETER not in CROSS_PARAMETERS:
        raise ConfigurationError(
            f"correlation.cross_parameter must be one of {sorted(CROSS_PARAMETERS)}, "
            f"got {CROSS_PARAMETER!r}")
    MIN_SHIFT_X = _as_int(correlation["min_shift_x"], "correlation.min_shift_x")
    MAX_SHIFT_X_FACTOR = float(correlation["max_shift_x_factor"])
    SHIFT_Y_FACTOR = float(correlation["shift_y_factor"])
    N_JOBS = _as_int(correlation["n_jobs"], "correlation.n_jobs")
    if MIN_SHIFT_X < 0:
        raise ConfigurationError("correlation.min_shift_x must be >= 0")
    if MAX_SHIFT_X_FACTOR <= 0 or SHIFT_Y_FACTOR < 0:
        raise ConfigurationError(
            "correlation.max_shift_x_factor must be > 0 and shift_y_factor >= 0")
    if N_JOBS < 0:
        raise ConfigurationError("correlation.n_jobs must be >= 0 (0 = CPU count)")

    # [lift]
    global LIFT_POLICY, VORTICITY_THRESHOLD, VORTICITY_OFFSET, THRESHOLD_MODE, MASK_ROI
    LIFT_POLICY = _as_int(lift["policy"], "lift.policy")
    if LIFT_POLICY not in WAKE_POLICIES | FRAME_POLICIES:
        raise ConfigurationError(f"lift.policy must be 1, 2, 3 or 4, got {LIFT_POLICY}")
    VORTICITY_THRESHOLD = float(lift["vorticity_threshold"])
    if VORTICITY_THRESHOLD < 0:
        raise ConfigurationError("lift.vorticity_threshold must be >= 0")
    VORTICITY_OFFSET = float(lift["vorticity_offset"])
    THRESHOLD_MODE = str(lift["threshold_mode"]).strip().lower()
    if THRESHOLD_MODE not in THRESHOLD_MODES:
        raise ConfigurationError(
            f"lift.threshold_mode must be one of {THRESHOLD_MODES}, got {THRESHOLD_MODE!r}")
    MASK_ROI = _as_int_tuple(lift["mask_roi"], length=4)  # type: ignore[assignment]

    # [output]
    global SAVE_WAKE, VERBOSE
    SAVE_WAKE = _as_bool(output["save_wake"], "output.save_wake")
    VERBOSE = _as_bool(output["verbose"], "output.verbose")


def write_file(path: Path | str) -> Path:
    """Write the effective configuration of the last read_file() call."""
    path = Path(path)
    path.write_text(_toml_dump(CONFIG), encoding="utf-8")
    return path


def _resolve(value: str, base: Path) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else (base / p).resolve()


def _read_packaged_default_config() -> dict[str, Any]:
    """Load packaged defaults from default_config.toml."""
    default_path = files("wake_piv").joinpath("config/default_config.toml")
    with default_path.open("rb") as fp:
        return tomllib.load(fp)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base, returning a new dict."""
    out = deepcopy(base)
    for key, value in override.items():
        if key in out and isinstance(out[key], dict) and isinstance(value, dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = deepcopy(value)
    return out


def _toml_dump_value(value: Any) -> str:
    if value is None:
        return json.dumps("")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_dump_value(v) for v in value) + "]"
    raise TypeError(f"Unsupported TOML value type: {type(value)!r}")


def _toml_dump(config: dict[str, Any]) -> str:
    """Serialize the limited TOML subset used by this project."""
    lines: list[str] = []

    for key, value in config.items():
        if not isinstance(value, dict):
            lines.append(f"{key} = {_toml_dump_value(value)}")

    for section, table in config.items():
        if not isinstance(table, dict):
            continue
        lines.append("")
        lines.append(f"[{section}]")
        for key, value in table.items():
            if isinstance(value, dict):
                raise TypeError(
                    "Nested tables beyond 1 level are not supported")
            lines.append(f"{key} = {_toml_dump_value(value)}")

    return "\n".join(lines).strip() + "\n"


def _as_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")
    return value


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return int(value)


def _as_int_tuple(value: Any, *, length: int) -> tuple[int, ...]:
    if not isinstance(value, list) or len(value) != length:
        raise ConfigurationError(f"Expected an array of length {length}")
    try:
        return tuple(int(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Expected integer array of length {length}") from exc


if __name__ == "__main__":
    read_file(Path(__file__).resolve().parent / "config" / "config.toml")
