"""Check outcomes and the run result document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flowtester.contracts.enums import RunStatus


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check-performing action.

    Never mutated after creation.
    """

    index: int
    suite_id: str
    test_id: str
    result: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "suiteID": self.suite_id,
            "testID": self.test_id,
            "result": self.result,
        }


@dataclass(frozen=True)
class RunResult:
    """Tally of a finished test-case run.

    ``all`` in the wire document is the number of checks actually performed
    when the run was reported. ``expected_checks`` is the pre-run estimate and
    only equals ``all`` when the run completed.

    Attributes:
        expected_checks: Check-performing actions registered for the run
        success_details: Passed checks in arrival order
        fail_details: Failed checks in arrival order
        status: How the run ended
        error: Description of the run-level failure, if any
    """

    expected_checks: int
    success_details: tuple[CheckResult, ...] = ()
    fail_details: tuple[CheckResult, ...] = ()
    status: RunStatus = RunStatus.COMPLETED
    error: str | None = None

    @property
    def success_count(self) -> int:
        return len(self.success_details)

    @property
    def fail_count(self) -> int:
        return len(self.fail_details)

    @property
    def performed_checks(self) -> int:
        return self.success_count + self.fail_count

    @property
    def passed(self) -> bool:
        """True when the run completed and no check failed."""
        return self.status == RunStatus.COMPLETED and self.fail_count == 0

    def to_dict(self) -> dict[str, Any]:
        """Build the result document returned by ``runTestCase``."""
        info: dict[str, Any] = {
            "success": [check.to_dict() for check in self.success_details],
            "fail": [check.to_dict() for check in self.fail_details],
            "expected": self.expected_checks,
            "status": str(self.status),
        }
        if self.error is not None:
            info["error"] = self.error
        return {
            "result": {
                "all": self.performed_checks,
                "success": self.success_count,
                "fail": self.fail_count,
            },
            "info": info,
        }
