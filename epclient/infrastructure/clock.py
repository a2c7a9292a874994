"""Monotonic time source shared by the cache, rate limiter and pipeline."""

import time
from typing import Protocol


class Clock(Protocol):
    def monotonic_ms(self) -> float: ...


class MonotonicClock:
    """Wall-clock independent milliseconds backed by ``time.monotonic``."""

    def monotonic_ms(self) -> float:
        return time.monotonic() * 1000.0


DEFAULT_CLOCK = MonotonicClock()
