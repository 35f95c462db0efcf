"""Wall-clock timing for the walkthrough's benchmark step."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import NamedTuple


class TimingResult(NamedTuple):
    """Best and mean seconds per call over *repeats* calls."""

    best: float
    mean: float
    repeats: int


def time_call(fn: Callable[[], object], repeats: int = 100, warmup: int = 1) -> TimingResult:
    """Time *fn* after *warmup* untimed calls (compilation, state building)."""
    if repeats < 1:
        raise ValueError(f"repeats must be >= 1, got {repeats}")
    for _ in range(warmup):
        fn()
    samples = []
    for _ in range(repeats):
        start = time.perf_counter()
        fn()
        samples.append(time.perf_counter() - start)
    return TimingResult(min(samples), sum(samples) / repeats, repeats)
