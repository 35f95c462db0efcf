"""Passive simulation of a mechanism.

Joint accelerations come from jaxsim's forward dynamics; SciPy's
solve_ivp (DOP853) integrates them.
"""

from __future__ import annotations

import numpy as np
from scipy.integrate import solve_ivp

from mechanism.algorithms import dynamics, total_energy
from mechanism.state import MechanismState
from mechanism.topology import Mechanism


def derivatives(t, y, state: MechanismState, torques=None):
    """First-order ODE right-hand side.

    State vector: [q, v]
    Returns: [dq/dt, dv/dt] = [v, vdot]
    """
    nq = state.mechanism.num_positions
    state.set_configuration(y[:nq])
    state.set_velocity(y[nq:])
    vdot = np.asarray(dynamics(state, torques))
    return np.concatenate([y[nq:], vdot])


def simulate(mechanism: Mechanism, q0, v0, t_end=5.0, dt=0.01, torques=None):
    """Integrate *mechanism* from (q0, v0) and sample it every *dt* seconds.

    One plain MechanismState is reused for every right-hand-side call.

    Returns:
        t: Sample times 0, dt, 2 dt, ... below t_end
        qs: Configurations, shape (len(t), nq)
        vs: Velocities, shape (len(t), nv)

    Raises:
        ValueError: q0 and v0 do not match the mechanism.
        RuntimeError: The integrator gave up.
    """
    nq = mechanism.num_positions
    state = MechanismState(mechanism)
    y0 = np.concatenate([
        np.asarray(q0, dtype=np.float64),
        np.asarray(v0, dtype=np.float64),
    ])
    if y0.shape != (nq + mechanism.num_velocities,):
        raise ValueError(
            f"Initial state must have {nq} positions and "
            f"{mechanism.num_velocities} velocities"
        )

    t_eval = np.arange(0, t_end, dt)
    sol = solve_ivp(
        fun=lambda t, y: derivatives(t, y, state, torques),
        t_span=(0, t_end),
        y0=y0,
        method="DOP853",
        t_eval=t_eval,
        rtol=1e-12,
        atol=1e-12,
    )
    if not sol.success:
        raise RuntimeError(f"Integration failed: {sol.message}")

    states = sol.y.T
    return sol.t, states[:, :nq], states[:, nq:]


def total_energy_series(mechanism: Mechanism, qs, vs) -> np.ndarray:
    """Total mechanical energy (T + V) at each sample."""
    state = MechanismState(mechanism)
    energies = np.empty(len(qs))
    for i, (q, v) in enumerate(zip(qs, vs)):
        state.set_configuration(q)
        state.set_velocity(v)
        energies[i] = float(total_energy(state))
    return energies
