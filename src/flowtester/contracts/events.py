"""Real-time notification events.

The orchestrator and executor emit these on the ``EventBus``. The control
server forwards them to websocket subscribers; the CLI and tests subscribe
directly. Each event knows its wire topic.
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from flowtester.contracts.results import CheckResult, RunResult

TOPIC_PREFIX = "flow-tester"


@dataclass(frozen=True)
class LogEmitted:
    """A ``log`` action (or the engine) wrote a line to the run log."""

    topic: ClassVar[str] = f"{TOPIC_PREFIX}:log"

    message: str
    node_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "node": self.node_id}


@dataclass(frozen=True)
class CheckReported:
    """A single check outcome was recorded."""

    topic: ClassVar[str] = f"{TOPIC_PREFIX}:check"

    check: CheckResult

    def to_dict(self) -> dict[str, Any]:
        return self.check.to_dict()


@dataclass(frozen=True)
class ActionOverflow:
    """The action ceiling was reached and the run was aborted."""

    topic: ClassVar[str] = f"{TOPIC_PREFIX}:overflow"

    count: int
    limit: int
    suite_id: str = ""
    test_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "limit": self.limit, "suiteID": self.suite_id, "testID": self.test_id}


@dataclass(frozen=True)
class NodeClicked:
    """A ``click`` action activated a node's interactive control."""

    topic: ClassVar[str] = f"{TOPIC_PREFIX}:click"

    node_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"node": self.node_id}


@dataclass(frozen=True)
class RunCompleted:
    """A full test-case run reached the reported state."""

    topic: ClassVar[str] = f"{TOPIC_PREFIX}:result"

    suite_id: str
    test_id: str
    result: RunResult

    def to_dict(self) -> dict[str, Any]:
        return {"suiteID": self.suite_id, "testID": self.test_id, **self.result.to_dict()}


NOTIFICATION_EVENTS: tuple[type, ...] = (LogEmitted, CheckReported, ActionOverflow, NodeClicked, RunCompleted)
