"""Typed-state cache: one MechanismState per element type.

Building a state is the expensive step (buffer allocation, jaxsim data
and its compiled builder); overwriting its q and v is cheap. Differentiation evaluates
the same function many times with one dual element type per sweep, so
states are built once per element type and handed back by identity on
every later request.

Entries are created on first request and live as long as the cache;
there is no eviction. The cache is not thread-safe: two threads asking
for a not-yet-built type race on construction, and two threads sharing
one state race on its contents. Call warm() before sharing a cache, or
give each thread its own cache.
"""

from __future__ import annotations

import logging

from mechanism.state import MechanismState, element_type, normalize_element_type
from mechanism.topology import Mechanism

logger = logging.getLogger(__name__)


class StateCache:
    """Demand-populated map from element type to MechanismState.

    Features:
    - Identity-preserving lookup: cache[T] is cache[T]
    - Equivalent spellings of a type (float, np.float64, "float64")
      share one entry
    - Construction errors come from MechanismState and propagate as-is
    """

    def __init__(self, mechanism: Mechanism):
        self._mechanism = mechanism
        self._states: dict[type, MechanismState] = {}

    def __repr__(self) -> str:
        names = ", ".join(t.__name__ for t in self._states)
        return f"StateCache({self._mechanism.name!r}, [{names}])"

    @property
    def mechanism(self) -> Mechanism:
        return self._mechanism

    @property
    def entry_count(self) -> int:
        return len(self._states)

    @property
    def element_types(self) -> tuple:
        return tuple(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, elem_type) -> bool:
        try:
            key = normalize_element_type(elem_type)
        except TypeError:
            return False
        return key in self._states

    def __getitem__(self, elem_type) -> MechanismState:
        return self.get(elem_type)

    def get(self, elem_type) -> MechanismState:
        """Return the state for *elem_type*, building it on first use."""
        key = normalize_element_type(elem_type)
        state = self._states.get(key)
        if state is None:
            state = MechanismState(self._mechanism, key)
            self._states[key] = state
            logger.debug(
                "Built %s state for mechanism '%s' (%d cached)",
                key.__name__, self._mechanism.name, len(self._states),
            )
        return state

    def for_array(self, x) -> MechanismState:
        """Return the state whose element type matches the array *x*."""
        return self.get(element_type(x))

    def warm(self, *elem_types) -> None:
        """Build states ahead of time, e.g. before sharing across threads."""
        for elem_type in elem_types:
            self.get(elem_type)

    def clear(self) -> None:
        """Drop every cached state."""
        self._states.clear()
