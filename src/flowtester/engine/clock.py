# src/flowtester/engine/clock.py
"""Clock abstraction for time-dependent action values.

The ``date`` source type of ``set`` and ``match`` stamps the current time in
epoch milliseconds. Production code uses SystemClock; tests inject MockClock
so timestamp assertions are exact.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Source of wall-clock time."""

    def now_ms(self) -> int:
        """Return the current time in milliseconds since the epoch."""
        ...


class SystemClock:
    """Clock backed by ``time.time()``."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class MockClock:
    """Controllable clock for deterministic tests.

    Example:
        clock = MockClock(start_ms=1_700_000_000_000)
        clock.advance(250)
        assert clock.now_ms() == 1_700_000_000_250
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._current = start_ms

    def now_ms(self) -> int:
        return self._current

    def advance(self, milliseconds: int) -> None:
        """Move time forward.

        Raises:
            ValueError: If milliseconds is negative.
        """
        if milliseconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {milliseconds}")
        self._current += milliseconds


DEFAULT_CLOCK: Clock = SystemClock()
