"""Tests for simulation.py: ODE right-hand side, integration, energy drift."""

import math

import numpy as np
import pytest

from mechanism.builders import double_pendulum
from mechanism.state import MechanismState
from mechanism.urdf import default_urdf_path, parse_urdf
from simulation import derivatives, simulate, total_energy_series


@pytest.fixture(scope="module")
def pendulum():
    return double_pendulum()


class TestDerivatives:
    """Test the derivatives function for known states."""

    def test_zero_state_zero_derivatives(self, pendulum):
        """At rest hanging straight down, accelerations should be zero."""
        state = MechanismState(pendulum)
        d = derivatives(0, np.zeros(4), state)
        np.testing.assert_allclose(d, np.zeros(4), atol=1e-10)

    def test_horizontal_initial_has_acceleration(self, pendulum):
        state = MechanismState(pendulum)
        d = derivatives(0, np.array([math.pi / 2, 0.0, 0.0, 0.0]), state)
        assert d[2] != 0 or d[3] != 0

    def test_position_rates_are_velocities(self, pendulum):
        state = MechanismState(pendulum)
        d = derivatives(0, np.array([0.5, 0.5, 1.0, -1.0]), state)
        assert len(d) == 4
        np.testing.assert_array_equal(d[:2], [1.0, -1.0])


class TestSimulate:
    """Test the simulate function."""

    def test_returns_correct_shapes(self, pendulum):
        t, qs, vs = simulate(pendulum, [1.0, 0.0], [0.0, 0.0], t_end=1.0, dt=0.05)
        assert t.ndim == 1
        assert qs.shape == (len(t), 2)
        assert vs.shape == (len(t), 2)

    def test_initial_conditions_preserved(self, pendulum):
        q0, v0 = [1.0, -0.5], [0.1, -0.2]
        t, qs, vs = simulate(pendulum, q0, v0, t_end=0.5, dt=0.05)
        np.testing.assert_allclose(qs[0], q0, atol=1e-10)
        np.testing.assert_allclose(vs[0], v0, atol=1e-10)

    def test_wrong_initial_size(self, pendulum):
        with pytest.raises(ValueError):
            simulate(pendulum, [1.0], [0.0, 0.0])


class TestEnergyConservation:
    """Passive dynamics conserve total energy."""

    def test_energy_drift_within_tolerance(self, pendulum):
        t, qs, vs = simulate(pendulum, [math.pi / 2, 0.0], [0.0, 0.0], t_end=2.0, dt=0.05)
        energies = total_energy_series(pendulum, qs, vs)
        drift = np.max(np.abs(energies - energies[0]))
        assert drift < 1e-6, f"Energy drift {drift} exceeds tolerance"

    def test_urdf_model_conserves_energy(self):
        mech = parse_urdf(default_urdf_path())
        t, qs, vs = simulate(mech, [0.4, 1.0], [0.5, -0.5], t_end=1.0, dt=0.05)
        energies = total_energy_series(mech, qs, vs)
        assert np.max(np.abs(energies - energies[0])) < 1e-6
