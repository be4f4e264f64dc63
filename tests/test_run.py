"""End-to-end test of the wake pipeline on a synthetic sequence."""

import json

import numpy as np
import pytest

from wake_piv.checkpoints import load_shifts_csv
from wake_piv.io import save_dataset
from wake_piv.run import main, run

from conftest import SHIFT

CONFIG = """
[source]
dataset_file = "sequence.npz"
output_dir = "out"

[parameters]
laser_dt = 1e-4
pixels_per_cm = 100.0
frame_dt = 2e-3
chord = 0.01
freestream_velocity = 1.5
air_density = 1.2
air_viscosity = 1.8e-5
horizontal_cut = 1
vertical_cut = 1
cycle_start_frame = 1
cycle_end_frame = 4

[correlation]
n_jobs = 2

[lift]
policy = {policy}
vorticity_threshold = 0.0

[output]
save_wake = true
verbose = false
"""


@pytest.fixture
def config_file(tmp_path, translated_dataset):
    def _make(policy=1):
        save_dataset(str(tmp_path / "sequence.npz"),
                     translated_dataset(n_frames=6, n_rows=12, n_cols=16))
        path = tmp_path / "config.toml"
        path.write_text(CONFIG.replace("{policy}", str(policy)), encoding="utf-8")
        return path

    return _make


class TestRun:

    def test_outputs(self, config_file, tmp_path):
        run_dir = run(config_file=config_file(), run_id="synthetic")

        assert run_dir == tmp_path / "out" / "runs" / "synthetic"
        for name in ("shifts.csv", "drag.csv", "lift.csv", "wake.npz",
                     "meta.json", "config_used.toml"):
            assert (run_dir / name).is_file()

        shifts = load_shifts_csv(run_dir / "shifts.csv")
        np.testing.assert_array_equal(shifts["n1"], [4, 3, 2])
        np.testing.assert_array_equal(shifts["shift_x"], SHIFT)
        np.testing.assert_array_equal(shifts["shift_y"], 0)
        np.testing.assert_array_equal(shifts["valid"], 1)

        meta = json.loads((run_dir / "meta.json").read_text(encoding="utf-8"))
        assert meta["advection_cells"] == SHIFT
        assert meta["wake_shape"] == [10, 3 * SHIFT + 1]
        assert meta["fallback_pairs"] == []
        assert meta["parameters"]["cycle_end_frame"] == 4

        with np.load(run_dir / "wake.npz") as wake:
            assert wake["u"].shape == (10, 3 * SHIFT + 1)
            np.testing.assert_array_equal(wake["vorticity"], wake["dvdx"] - wake["dudy"])

        drag = np.loadtxt(run_dir / "drag.csv", delimiter=",", skiprows=1)
        assert drag.shape == (4, 6)

    @pytest.mark.parametrize("policy, n_rows", [(1, 3 * SHIFT + 1), (3, 4), (4, 4)])
    def test_lift_policies(self, config_file, policy, n_rows):
        run_dir = run(config_file=config_file(policy), run_id=f"policy_{policy}")
        lift = np.loadtxt(run_dir / "lift.csv", delimiter=",", skiprows=1)
        assert lift.shape == (n_rows, 5)
        assert lift[0, 2] == 0.0
        assert lift[-1, 0] == 0.0

    def test_cli(self, config_file, tmp_path):
        assert main([str(config_file()), "cli"]) == 0
        assert (tmp_path / "out" / "runs" / "cli" / "shifts.csv").is_file()

    def test_cli_usage(self):
        assert main([]) == 2
