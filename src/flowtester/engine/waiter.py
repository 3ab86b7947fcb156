# src/flowtester/engine/waiter.py
"""Single-slot, early-signalable wait.

A run has one wait slot. ``wait()`` sleeps until its timeout elapses or
``signal()`` resolves it early. Starting a new wait while one is pending
supersedes the old one for signalling purposes: ``signal()`` only reaches
the most recent wait, while the superseded wait still ends on its own timer.
"""

from __future__ import annotations

import asyncio

from flowtester.contracts.enums import WaitOutcome
from flowtester.core.logging import get_logger

slog = get_logger(__name__)


class WaitScheduler:
    """Timer plus a signalable slot."""

    def __init__(self) -> None:
        self._pending: asyncio.Future[WaitOutcome] | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def wait(self, timeout_ms: int) -> WaitOutcome:
        """Sleep up to ``timeout_ms`` milliseconds.

        Returns:
            TIMEOUT if the timer fired, SIGNALLED if ``signal()`` won

        Raises:
            ValueError: If ``timeout_ms`` is negative
        """
        if timeout_ms < 0:
            raise ValueError(f"Wait timeout must be >= 0, got {timeout_ms}")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[WaitOutcome] = loop.create_future()
        timer = loop.call_later(timeout_ms / 1000, self._resolve, future, WaitOutcome.TIMEOUT)
        if self.pending:
            slog.debug("wait_superseded", timeout_ms=timeout_ms)
        self._pending = future
        try:
            return await future
        finally:
            timer.cancel()
            if self._pending is future:
                self._pending = None

    def signal(self) -> bool:
        """Resolve the current wait early.

        Returns:
            True if a pending wait was resolved
        """
        if not self.pending:
            return False
        assert self._pending is not None
        self._resolve(self._pending, WaitOutcome.SIGNALLED)
        return True

    @staticmethod
    def _resolve(future: asyncio.Future[WaitOutcome], outcome: WaitOutcome) -> None:
        if not future.done():
            future.set_result(outcome)
