"""Tests for the cross-correlation shift estimator."""

import warnings

import numpy as np
import pytest

from wake_piv.correlation import (
    calc_corr, estimate_shift, estimate_shifts, find_shift, ncc, overlap_windows, shift_bounds)
from wake_piv.errors import ConfigurationError, CorrelationFailureWarning, DimensionError
from wake_piv.preprocessing import normalize

from conftest import SHIFT, make_fields

BOUNDS = (0, 6, -2, 2)


@pytest.fixture
def pair(rng):
    """Two 10x10 frames; the later one is the earlier one moved 3 cells in x."""
    u_base = rng.standard_normal((10, 13))
    v_base = rng.standard_normal((10, 13))
    u2, u1 = u_base[:, 3:13], u_base[:, 0:10]
    v2, v1 = v_base[:, 3:13], v_base[:, 0:10]
    return u1, v1, u2, v2


class TestShiftBounds:

    def test_defaults(self):
        assert shift_bounds(3) == (0, 6, -2, 2)

    def test_empty_range(self):
        with pytest.raises(ConfigurationError):
            shift_bounds(0)


class TestWindows:

    def test_overlap_pairs_shifted_cells(self):
        f1 = np.arange(20.0).reshape(4, 5)
        f2 = f1 + 100
        w1, w2 = overlap_windows(f1, f2, 2, 1)
        assert w1.shape == w2.shape == (3, 3)
        assert w1[0, 0] == f1[0, 2]
        assert w2[0, 0] == f2[1, 0]

    def test_no_overlap(self):
        w1, w2 = overlap_windows(np.zeros((4, 5)), np.zeros((4, 5)), 5, 0)
        assert w1.size == 0 and w2.size == 0

    def test_ncc_constant_window(self):
        assert np.isnan(ncc(np.ones((3, 3)), np.arange(9.0)))


class TestFindShift:

    def test_tie_break(self):
        shifts_x = np.array([2, 3, 4])
        shifts_y = np.array([-1, 0, 1])
        corr = np.zeros((3, 3))
        corr[0, 0] = corr[2, 0] = corr[1, 2] = 0.9
        sx, sy, peak = find_shift(corr, shifts_x, shifts_y)
        assert (sx, sy) == (2, -1)
        assert peak == pytest.approx(0.9)

    def test_all_nan_is_degenerate(self):
        sx, sy, peak = find_shift(np.full((3, 4), np.nan), np.arange(1, 5), np.arange(-1, 2))
        assert (sx, sy) == (1, 0)
        assert np.isnan(peak)


class TestEstimateShift:

    def test_three_cell_translation(self, pair):
        with warnings.catch_warnings():
            warnings.simplefilter("error", CorrelationFailureWarning)
            est = estimate_shift(*pair, BOUNDS, advection_cells=3)
        assert (est.shift_x, est.shift_y) == (3, 0)
        assert est.valid
        assert est.score == pytest.approx(1.0)
        assert est.optimum_u == est.optimum_v == est.optimum_uv == (3, 0)

    def test_vertical_shift(self, rng):
        base = rng.standard_normal((14, 14))
        u1 = base[0:10, 0:10]
        u2 = base[2:12, 4:14]
        v1, v2 = u1.copy(), u2.copy()
        est = estimate_shift(u1, v1, u2, v2, BOUNDS, advection_cells=3)
        assert (est.shift_x, est.shift_y) == (4, -2)

    def test_maps_cover_search_window(self, pair):
        est = estimate_shift(*pair, BOUNDS, advection_cells=3)
        for key in ("u", "v", "uv"):
            assert est.corr_maps[key].shape == (5, 7)

    def test_fallback_without_wake(self, rng):
        # Fields constant along x correlate equally well at every shift
        profile = rng.standard_normal((10, 1)) * np.ones((1, 10))
        with pytest.warns(CorrelationFailureWarning):
            est = estimate_shift(profile, profile, profile, profile, BOUNDS, advection_cells=3,
                                 n1=7, n2=6)
        assert not est.valid
        assert (est.shift_x, est.shift_y) == (3, 0)
        assert est.optimum_uv[0] == 0
        assert (est.n1, est.n2) == (7, 6)

    def test_shape_mismatch(self):
        with pytest.raises(DimensionError):
            calc_corr(np.zeros((4, 4)), np.zeros((4, 4)), np.zeros((4, 5)), np.zeros((4, 4)),
                      np.arange(1, 3), np.arange(-1, 2))


class TestEstimateShifts:

    def test_all_pairs_newest_first(self, translated_dataset, params):
        grid, fields = normalize(translated_dataset(n_frames=5), params)
        estimates = estimate_shifts(fields, 1, 4, BOUNDS, 3, n_jobs=2, progress=False)

        assert [(e.n1, e.n2) for e in estimates] == [(4, 3), (3, 2), (2, 1)]
        assert all(e.shift_x == SHIFT and e.shift_y == 0 and e.valid for e in estimates)

    def test_sequential_matches_parallel(self, translated_dataset, params):
        _, fields = normalize(translated_dataset(n_frames=4), params)
        one = estimate_shifts(fields, 0, 3, BOUNDS, 3, n_jobs=1, progress=False)
        many = estimate_shifts(fields, 0, 3, BOUNDS, 3, n_jobs=4, progress=False)
        assert [(e.shift_x, e.shift_y) for e in one] == [(e.shift_x, e.shift_y) for e in many]

    def test_fallback_warned_per_pair(self, params):
        profile = np.linspace(-1, 1, 8)[:, np.newaxis] * np.ones((3, 8, 10))
        fields = make_fields((3, 8, 10), u=profile, v=profile)
        with pytest.warns(CorrelationFailureWarning) as record:
            estimates = estimate_shifts(fields, 0, 2, BOUNDS, 3, progress=False)
        assert len([w for w in record if w.category is CorrelationFailureWarning]) == 2
        assert not any(e.valid for e in estimates)

    def test_unknown_selector(self, translated_dataset, params):
        _, fields = normalize(translated_dataset(), params)
        with pytest.raises(ConfigurationError):
            estimate_shifts(fields, 0, 2, BOUNDS, 3, cross_parameter="pressure", progress=False)

    @pytest.mark.parametrize("first, last", [(-1, 2), (2, 2), (0, 5)])
    def test_frame_range(self, translated_dataset, params, first, last):
        _, fields = normalize(translated_dataset(n_frames=5), params)
        with pytest.raises(DimensionError):
            estimate_shifts(fields, first, last, BOUNDS, 3, progress=False)
