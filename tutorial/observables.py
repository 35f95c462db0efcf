"""Differentiable observables built on a StateCache.

Each observable follows the same four steps: fetch the state for the
element type of its input, write the input into that state, read a
physical quantity back out, and return (or copy out) the result. Called
with float64 arrays they evaluate plainly; called by the forward-mode
machinery they receive dual numbers and propagate derivatives. A dual
state is only borrowed for one evaluation and is released afterwards.
"""

from __future__ import annotations

from contextlib import contextmanager

import jax
import numpy as np

from forward.dual import dual, evaluate
from forward.jacobian import gradient, jacobian
from mechanism.algorithms import joint_accelerations, momentum, total_energy
from tutorial.state_cache import StateCache


def _fixed_vector(values, size: int, what: str) -> np.ndarray:
    array = np.array(values, dtype=np.float64)
    if array.shape != (size,):
        raise ValueError(f"Expected {what} of shape ({size},), got {array.shape}")
    array.flags.writeable = False
    return array


@contextmanager
def _borrowed(cache: StateCache, q, v):
    """State for the first dual input (or the first input), loaded with q and v."""
    state = None
    for array in (q, v):
        if isinstance(array, jax.core.Tracer):
            state = cache.for_array(array)
            break
    if state is None:
        state = cache.for_array(q)
    try:
        state.set_configuration(q)
        state.set_velocity(v)
        yield state
    finally:
        state.release()


class MomentumObservable:
    """Momentum as a function of joint velocity at a fixed configuration.

    Args:
        cache: State cache for the mechanism.
        q: Configuration, copied and frozen at construction.
    """

    def __init__(self, cache: StateCache, q):
        self._cache = cache
        self._q = _fixed_vector(q, cache.mechanism.num_positions, "configuration")

    @property
    def q(self) -> np.ndarray:
        return self._q

    def __call__(self, v):
        state = self._cache.for_array(v)
        try:
            state.set_configuration(self._q)
            state.set_velocity(v)
            return momentum(state)
        finally:
            state.release()

    def into(self, out: np.ndarray, v) -> np.ndarray:
        """Evaluate at plain *v* and copy the momentum into *out*."""
        out[...] = np.asarray(self(v))
        return out


class ConfigurationMomentumObservable:
    """Momentum as a function of configuration at a fixed joint velocity."""

    def __init__(self, cache: StateCache, v):
        self._cache = cache
        self._v = _fixed_vector(v, cache.mechanism.num_velocities, "velocity")

    @property
    def v(self) -> np.ndarray:
        return self._v

    def __call__(self, q):
        state = self._cache.for_array(q)
        try:
            state.set_configuration(q)
            state.set_velocity(self._v)
            return momentum(state)
        finally:
            state.release()


class EnergyObservable:
    """Total mechanical energy as a function of (q, v)."""

    def __init__(self, cache: StateCache):
        self._cache = cache

    def __call__(self, q, v):
        with _borrowed(self._cache, q, v) as state:
            return total_energy(state)


def momentum_jacobian(cache: StateCache, q, v) -> np.ndarray:
    """(6, nv) Jacobian of momentum with respect to joint velocity."""
    return jacobian(MomentumObservable(cache, q), np.asarray(v, dtype=np.float64))


def energy_gradient(cache: StateCache, q, v) -> np.ndarray:
    """Gradient of total energy with respect to configuration."""
    energy = EnergyObservable(cache)
    v = _fixed_vector(v, cache.mechanism.num_velocities, "velocity")
    return gradient(lambda q_: energy(q_, v), np.asarray(q, dtype=np.float64))


def _accelerations(cache: StateCache, q, v, torques=None) -> np.ndarray:
    q = _fixed_vector(q, cache.mechanism.num_positions, "configuration")
    v = _fixed_vector(v, cache.mechanism.num_velocities, "velocity")
    return np.asarray(joint_accelerations(cache.mechanism, q, v, torques))


def energy_rate(cache: StateCache, q, v, torques=None) -> float:
    """Time derivative of total energy at (q, v).

    Seeds q with partials v and v with partials vdot (from the dynamics),
    so one forward pass yields dE/dt. Without torques this is zero up to
    rounding.
    """
    vdot = _accelerations(cache, q, v, torques)
    result = evaluate(EnergyObservable(cache), dual(q, v), dual(v, vdot))
    return float(result.partials[0])


def momentum_rate(cache: StateCache, q, v, torques=None) -> np.ndarray:
    """Time derivative of the (6,) momentum at (q, v)."""
    vdot = _accelerations(cache, q, v, torques)

    def total_momentum(q_, v_):
        with _borrowed(cache, q_, v_) as state:
            return momentum(state)

    result = evaluate(total_momentum, dual(q, v), dual(v, vdot))
    return result.partials[:, 0]
