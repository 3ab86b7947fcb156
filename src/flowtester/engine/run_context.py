# src/flowtester/engine/run_context.py
"""Per-run state.

Everything a run mutates lives on one ``RunContext``: the action map, the
check tally, the wait slot and the action counter. ``init`` replaces the
context wholesale, so a late callback from a previous run only ever sees
its own context.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from flowtester.contracts.errors import ActionLimitExceeded
from flowtester.core.events import EventBusProtocol
from flowtester.core.logging import get_logger
from flowtester.engine.action_map import ActionMap
from flowtester.engine.aggregator import ResultAggregator
from flowtester.engine.waiter import WaitScheduler
from flowtester.plugins.base import AddonAction

slog = get_logger(__name__)


class ActionCounter:
    """Monotonic count of dispatched actions with a ceiling."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"Action limit must be > 0, got {limit}")
        self.limit = limit
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def increment(self) -> None:
        """Count one more action.

        Raises:
            ActionLimitExceeded: If the ceiling is already reached
        """
        if self._count >= self.limit:
            raise ActionLimitExceeded(self._count, self.limit)
        self._count += 1


@dataclass
class RunContext:
    """State owned by a single run."""

    action_map: ActionMap
    aggregator: ResultAggregator
    waiter: WaitScheduler
    counter: ActionCounter
    suite_id: str = ""
    test_id: str = ""
    aborted: bool = False
    closed: bool = False
    log_lines: list[str] = field(default_factory=list)
    engaged_addons: list[AddonAction] = field(default_factory=list)
    background: set[asyncio.Task[Any]] = field(default_factory=set)

    @classmethod
    def create(cls, bus: EventBusProtocol, max_actions: int, suite_id: str = "", test_id: str = "") -> RunContext:
        """Fresh context whose tally completion signals its wait slot."""
        waiter = WaitScheduler()
        return cls(
            action_map=ActionMap(),
            aggregator=ResultAggregator(bus, on_complete=waiter.signal),
            waiter=waiter,
            counter=ActionCounter(max_actions),
            suite_id=suite_id,
            test_id=test_id,
        )

    def abort(self) -> None:
        """Mark the run aborted and wake the current wait."""
        self.aborted = True
        self.waiter.signal()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Run ``coro`` in the background, tracked until it finishes."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self.background.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self.background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            slog.error(
                "background_task_failed",
                task=task.get_name(),
                error_type=type(exc).__name__,
                error=str(exc),
            )
