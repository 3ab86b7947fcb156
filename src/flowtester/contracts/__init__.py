"""Shared contracts for flowtester.

Data records, enums, errors and protocols that cross module boundaries.
Nothing in this package depends on the engine.
"""

from flowtester.contracts.actions import GLOBAL_NODE_KEY, Action, default_perform_check
from flowtester.contracts.enums import (
    ActionKind,
    DestinationType,
    EventCategory,
    RunState,
    RunStatus,
    SourceType,
    WaitOutcome,
)
from flowtester.contracts.errors import (
    ActionError,
    ActionLimitExceeded,
    ConfigurationError,
    EvaluationError,
    FlowTesterError,
    RunInProgressError,
    TestCaseNotFoundError,
    UnexpectedValueTypeError,
    UnknownActionKindError,
    UnknownEventCategoryError,
)
from flowtester.contracts.events import (
    ActionOverflow,
    CheckReported,
    LogEmitted,
    NodeClicked,
    RunCompleted,
)
from flowtester.contracts.results import CheckResult, RunResult
from flowtester.contracts.runtime import (
    ContextStore,
    HostRuntime,
    Message,
    ReceiveEvent,
    RouteEvent,
    RuntimeHooks,
    RuntimeNode,
    SendEvent,
)

__all__ = [
    "GLOBAL_NODE_KEY",
    "Action",
    "ActionError",
    "ActionKind",
    "ActionLimitExceeded",
    "ActionOverflow",
    "CheckReported",
    "CheckResult",
    "ConfigurationError",
    "ContextStore",
    "DestinationType",
    "EvaluationError",
    "EventCategory",
    "FlowTesterError",
    "HostRuntime",
    "LogEmitted",
    "Message",
    "NodeClicked",
    "ReceiveEvent",
    "RouteEvent",
    "RunCompleted",
    "RunInProgressError",
    "RunResult",
    "RunState",
    "RunStatus",
    "RuntimeHooks",
    "RuntimeNode",
    "SendEvent",
    "SourceType",
    "TestCaseNotFoundError",
    "UnexpectedValueTypeError",
    "UnknownActionKindError",
    "UnknownEventCategoryError",
    "WaitOutcome",
    "default_perform_check",
]
