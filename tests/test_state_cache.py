"""Tests for tutorial/state_cache.py: identity, isolation, lazy construction."""

import jax
import numpy as np
import pytest

from forward.jacobian import JacobianConfig, jacobian, jacobian_into
from mechanism.algorithms import momentum
from mechanism.builders import double_pendulum
from mechanism.state import MechanismState, is_dual_type
from tutorial.observables import MomentumObservable, momentum_jacobian
from tutorial.state_cache import StateCache


@pytest.fixture(scope="module")
def pendulum():
    return double_pendulum()


@pytest.fixture
def cache(pendulum):
    return StateCache(pendulum)


class TestLookup:
    """Lookup-or-create semantics."""

    def test_starts_empty(self, cache):
        assert len(cache) == 0
        assert cache.entry_count == 0
        assert np.float64 not in cache

    def test_same_type_same_instance(self, cache):
        first = cache[np.float64]
        second = cache[np.float64]
        assert first is second
        assert len(cache) == 1

    def test_get_and_getitem_agree(self, cache):
        assert cache.get(np.float64) is cache[np.float64]

    def test_equivalent_spellings_share_entry(self, cache):
        state = cache[np.float64]
        assert cache[float] is state
        assert cache[np.dtype("float64")] is state
        assert cache["float64"] is state
        assert len(cache) == 1

    def test_state_matches_type_and_mechanism(self, cache):
        state = cache[np.float32]
        assert isinstance(state, MechanismState)
        assert state.element_type is np.float32
        assert state.mechanism is cache.mechanism

    def test_for_array_uses_element_type(self, cache):
        state = cache.for_array(np.zeros(2, dtype=np.float32))
        assert state is cache[np.float32]

    def test_contains(self, cache):
        cache[np.float64]
        assert np.float64 in cache
        assert float in cache
        assert np.float32 not in cache
        assert int not in cache


class TestDistinctTypes:
    """Different element types get independent states."""

    def test_distinct_instances(self, cache):
        assert cache[np.float64] is not cache[np.float32]
        assert len(cache) == 2

    def test_mutation_isolated(self, cache):
        plain = cache[np.float64]
        other = cache[np.float32]
        plain.set_configuration([0.3, -0.2])
        plain.set_velocity([1.0, 2.0])
        np.testing.assert_array_equal(other.q, [0.0, 0.0])
        np.testing.assert_array_equal(other.v, [0.0, 0.0])

        other.set_configuration([1.5, 1.5])
        np.testing.assert_array_equal(plain.q, [0.3, -0.2])

    def test_differentiation_adds_one_dual_entry(self, cache):
        mom = MomentumObservable(cache, [0.1, 0.2])
        cache[np.float64]
        jacobian(mom, np.array([0.5, -0.5]))
        jacobian(mom, np.array([1.0, 2.0]))
        dual_types = [t for t in cache.element_types if is_dual_type(t)]
        assert len(dual_types) == 1
        assert len(cache) == 2

    def test_plain_state_unchanged_by_dual_sweep(self, cache):
        plain = cache[np.float64]
        plain.set_configuration([0.3, -0.2])
        plain.set_velocity([1.0, 2.0])
        momentum_jacobian(cache, [1.4, 0.7], [-0.5, 0.25])
        np.testing.assert_array_equal(plain.q, [0.3, -0.2])
        np.testing.assert_array_equal(plain.v, [1.0, 2.0])


class TestDualStateAfterDifferentiation:
    """Cached dual states hold no tracers once a transformation is over."""

    @staticmethod
    def _dual_state(cache):
        dual_types = [t for t in cache.element_types if is_dual_type(t)]
        assert len(dual_types) == 1
        return cache[dual_types[0]]

    def test_usable_after_jacobian(self, cache):
        jacobian(MomentumObservable(cache, [0.1, 0.2]), np.array([0.5, -0.5]))
        state = self._dual_state(cache)
        np.testing.assert_allclose(np.asarray(momentum(state)), np.zeros(6), atol=1e-15)

    def test_usable_after_compiled_jacobian(self, cache):
        mom = MomentumObservable(cache, [0.1, 0.2])
        v = np.array([0.5, -0.5])
        jacobian_into(np.zeros((6, 2)), mom, v, JacobianConfig(mom, v))
        state = self._dual_state(cache)
        np.testing.assert_allclose(np.asarray(momentum(state)), np.zeros(6), atol=1e-15)

    def test_no_tracers_left(self, cache):
        jacobian(MomentumObservable(cache, [0.1, 0.2]), np.array([0.5, -0.5]))
        state = self._dual_state(cache)
        assert not isinstance(state.q, jax.core.Tracer)
        assert not isinstance(state.v, jax.core.Tracer)
        np.testing.assert_array_equal(np.asarray(state.q), [0.0, 0.0])
        np.testing.assert_array_equal(np.asarray(state.v), [0.0, 0.0])


class TestFailures:
    """Errors from state construction propagate and leave no entry."""

    def test_integer_type_rejected(self, cache):
        with pytest.raises(TypeError):
            cache[np.int64]
        assert len(cache) == 0

    def test_object_type_rejected(self, cache):
        with pytest.raises(TypeError):
            cache[object]
        assert len(cache) == 0


class TestLifecycle:
    """Warm-up and clearing."""

    def test_warm_builds_states(self, cache):
        cache.warm(np.float64, np.float32)
        assert np.float64 in cache
        assert np.float32 in cache

    def test_warm_keeps_existing_instance(self, cache):
        state = cache[np.float64]
        cache.warm(np.float64)
        assert cache[np.float64] is state

    def test_clear(self, cache):
        state = cache[np.float64]
        cache.clear()
        assert len(cache) == 0
        assert cache[np.float64] is not state

    def test_repr_lists_types(self, cache):
        cache[np.float64]
        assert "float64" in repr(cache)
