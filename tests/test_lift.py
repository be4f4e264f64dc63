"""Tests for the circulation and lift estimators."""

import numpy as np
import pytest

from wake_piv.errors import ConfigurationError, DimensionError
from wake_piv.fields import StitchedWake
from wake_piv.lift import ThresholdSettings, integrate_circulation, lift_force

from conftest import flight_parameters, make_fields, make_grid

SHAPE = (6, 5, 8)


def uniform_wake(n_rows=5, n_cols=9, u=1.5, vorticity=4.0, spacing=1e-3, chord=0.01):
    grid = make_grid(n_rows, n_cols, spacing)
    full = np.ones((n_rows, n_cols))
    zero = np.zeros((n_rows, n_cols))
    return StitchedWake(
        x=grid.x, y=grid.y, x_c=grid.x / chord, y_c=grid.y / chord,
        u=u * full, v=zero, uf=zero, vf=zero,
        dudx=zero, dudy=zero, dvdx=vorticity * full, dvdy=zero,
        vorticity=vorticity * full, swirl=zero, dx=spacing, dy=spacing)


class TestIntegration:

    def test_with_diffusion(self):
        circ = integrate_circulation(np.ones(3), 0.5, np.full(3, 2.0))
        np.testing.assert_allclose(circ, [0.0, 1.5, 3.0])

    def test_without_diffusion(self):
        np.testing.assert_allclose(integrate_circulation(np.ones(3), 0.5), [0.0, 0.5, 1.0])


class TestWakePolicies:

    def test_policy_1(self, params):
        wake = uniform_wake()
        lift = lift_force(1, params, wake=wake)
        n_cols, u_inf = 9, params.freestream_velocity
        xi1 = 5 * 1.5 * 4.0 * wake.dy
        expected = np.arange(n_cols) * (wake.dx / u_inf) * xi1

        np.testing.assert_allclose(lift.circulation, expected)
        np.testing.assert_allclose(lift.time, np.arange(n_cols) * wake.dx / u_inf)
        assert lift.x_c[-1] == 0.0
        assert lift.x_c[0] == pytest.approx((n_cols - 1) * wake.dx / params.chord)
        assert lift.policy == 1

    def test_policy_2_threshold_removes_weak_vorticity(self, params):
        wake = uniform_wake(vorticity=4.0)
        weak = lift_force(2, params, wake=wake, settings=ThresholdSettings(threshold=10.0))
        np.testing.assert_allclose(weak.circulation, 0.0)
        strong = lift_force(2, params, wake=wake, settings=ThresholdSettings(threshold=1.0))
        np.testing.assert_allclose(strong.circulation, lift_force(1, params, wake=wake).circulation)

    def test_integration_starts_far_downstream(self, params):
        wake = uniform_wake()
        vort = wake.vorticity.copy()
        vort[:, 1:] = 0.0
        # Only the column nearest the wing carries vorticity
        near = StitchedWake(**{**wake.__dict__, "vorticity": vort})
        circ = lift_force(1, params, wake=near).circulation
        np.testing.assert_allclose(circ[:-1], 0.0)
        assert circ[-1] > 0

    def test_diffusion_term(self, params):
        n_rows, n_cols, spacing = 5, 9, 1e-3
        wake = uniform_wake(n_rows, n_cols, vorticity=0.0)
        # du/dx = a x gives d2u/dx2 = a
        a = 100.0
        dudx = a * wake.x
        curved = StitchedWake(**{**wake.__dict__, "dudx": dudx})
        lift = lift_force(1, params, wake=curved)
        xi2 = params.kinematic_viscosity * a * n_rows * spacing
        np.testing.assert_allclose(
            lift.circulation, np.arange(n_cols) * spacing / params.freestream_velocity * xi2,
            rtol=1e-9)

    def test_needs_wake(self, params):
        with pytest.raises(ConfigurationError):
            lift_force(1, params)


class TestFramePolicies:

    def test_policy_3(self, params):
        grid = make_grid(5, 8)
        fields = make_fields(SHAPE, u=2.0, vorticity=3.0)
        lift = lift_force(3, params, fields=fields, grid=grid)
        n = params.n_cycle_frames
        xi1 = 5 * 2.0 * 3.0 * grid.dy
        np.testing.assert_allclose(lift.circulation, np.arange(n) * params.frame_dt * xi1)
        np.testing.assert_allclose(lift.time, np.arange(n) * params.frame_dt)
        assert lift.x_c[-1] == 0.0

    def test_policy_4_sums_area(self, params):
        grid = make_grid(5, 8)
        fields = make_fields(SHAPE, vorticity=2.0)
        lift = lift_force(4, params, fields=fields, grid=grid)
        per_frame = 2.0 * 5 * 8 * grid.dx * grid.dy
        np.testing.assert_allclose(lift.circulation, np.arange(params.n_cycle_frames) * per_frame)

    @pytest.mark.parametrize("sign", [1.0, -1.0])
    def test_policy_4_monotone(self, rng, sign):
        p = flight_parameters(cycle_start_frame=0, cycle_end_frame=5)
        grid = make_grid(5, 8)
        vort = sign * np.abs(rng.standard_normal(SHAPE))
        lift = lift_force(4, p, fields=make_fields(SHAPE, vorticity=vort), grid=grid,
                          settings=ThresholdSettings(threshold=0.5))
        assert lift.circulation[0] == 0.0
        assert np.all(np.diff(np.abs(lift.circulation)) >= 0)

    def test_cycle_outside_sequence(self):
        p = flight_parameters(cycle_start_frame=2, cycle_end_frame=6)
        with pytest.raises(DimensionError):
            lift_force(4, p, fields=make_fields(SHAPE), grid=make_grid(5, 8))

    def test_needs_fields(self, params):
        with pytest.raises(ConfigurationError):
            lift_force(3, params, wake=uniform_wake())


class TestCoefficients:

    def test_normalisation(self, params):
        lift = lift_force(1, params, wake=uniform_wake())
        u_inf, chord = params.freestream_velocity, params.chord
        np.testing.assert_allclose(lift.circ_norm, lift.circulation / (u_inf * chord))
        np.testing.assert_allclose(lift.cl_circ, 2 * lift.circ_norm)

    @pytest.mark.parametrize("policy", [0, 5, "1"])
    def test_unknown_policy(self, params, policy):
        with pytest.raises(ConfigurationError):
            lift_force(policy, params, wake=uniform_wake())
