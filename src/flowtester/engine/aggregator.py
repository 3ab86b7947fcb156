# src/flowtester/engine/aggregator.py
"""Collects check outcomes for a run and detects completion."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from flowtester.contracts.actions import Action
from flowtester.contracts.enums import RunStatus
from flowtester.contracts.events import CheckReported
from flowtester.contracts.results import CheckResult, RunResult
from flowtester.core.events import EventBusProtocol, NullEventBus
from flowtester.core.logging import get_logger

slog = get_logger(__name__)


def count_expected(actions: Iterable[Action]) -> int:
    """Number of check-performing actions."""
    return sum(1 for action in actions if action.perform_check)


class ResultAggregator:
    """Tally of check outcomes against the expected total.

    The completion callback fires once, on the report that brings the tally
    up to ``expected_checks``. Reports beyond the expected total are logged
    and dropped, so ``success + fail`` never exceeds ``expected_checks``.
    """

    def __init__(
        self,
        bus: EventBusProtocol | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._bus = bus or NullEventBus()
        self._on_complete = on_complete
        self._expected = 0
        self._armed = False
        self._success: list[CheckResult] = []
        self._fail: list[CheckResult] = []

    def reset(self, expected_checks: int) -> None:
        """Clear the tally and arm completion for ``expected_checks``."""
        if expected_checks < 0:
            raise ValueError(f"expected_checks must be >= 0, got {expected_checks}")
        self._expected = expected_checks
        self._armed = True
        self._success.clear()
        self._fail.clear()

    @property
    def expected_checks(self) -> int:
        return self._expected

    @property
    def successes(self) -> tuple[CheckResult, ...]:
        return tuple(self._success)

    @property
    def failures(self) -> tuple[CheckResult, ...]:
        return tuple(self._fail)

    @property
    def recorded(self) -> int:
        return len(self._success) + len(self._fail)

    @property
    def complete(self) -> bool:
        return self.recorded >= self._expected

    def report(self, outcome: bool, index: int, suite_id: str, test_id: str) -> CheckResult | None:
        """Record one check outcome.

        Returns:
            The recorded check, or None if it arrived after the tally was full
        """
        if self.recorded >= self._expected:
            slog.warning(
                "check_discarded",
                index=index,
                result=outcome,
                expected_checks=self._expected,
            )
            return None

        check = CheckResult(index=index, suite_id=suite_id, test_id=test_id, result=outcome)
        (self._success if outcome else self._fail).append(check)
        slog.debug("check_recorded", index=index, result=outcome, recorded=self.recorded)
        self._bus.emit(CheckReported(check=check))

        if self._armed and self.complete:
            self._armed = False
            if self._on_complete is not None:
                self._on_complete()
        return check

    def build_result(self, status: RunStatus, error: str | None = None) -> RunResult:
        return RunResult(
            expected_checks=self._expected,
            success_details=tuple(self._success),
            fail_details=tuple(self._fail),
            status=status,
            error=error,
        )
