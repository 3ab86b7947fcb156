"""Status codes, categories and kinds shared across engine boundaries.

Every value here crosses a boundary: the control surface wire format, the
test-case configuration, or the notification channel. Keep the string values
stable.
"""

from enum import StrEnum


class EventCategory(StrEnum):
    """Lifecycle point an action group is registered under.

    Values:
        SETUP: Run once before the test waits for checks
        CLEANUP: Run once after the wait resolves
        RECV: Run when a message is delivered to the node
        STUB: Run instead of the node's default routing
        SEND: Run when the node emits a message
    """

    SETUP = "setup"
    CLEANUP = "cleanup"
    RECV = "recv"
    STUB = "stub"
    SEND = "send"


class ActionKind(StrEnum):
    """Built-in action kinds.

    Anything not listed here is resolved through the addon registry.
    """

    SEND = "send"
    CLICK = "click"
    LOG = "log"
    SET = "set"
    MATCH = "match"
    WAIT = "wait"
    FUNCTION = "function"


class SourceType(StrEnum):
    """Typed source values accepted by ``set`` and ``match``."""

    STR = "str"
    NUM = "num"
    BOOL = "bool"
    JSON = "json"
    BIN = "bin"
    RE = "re"
    DATE = "date"
    JSONATA = "jsonata"
    ENV = "env"


class DestinationType(StrEnum):
    """Where a ``set`` action writes its value."""

    MSG = "msg"
    FLOW = "flow"
    GLOBAL = "global"


class RunState(StrEnum):
    """Orchestrator state machine for a single test-case run."""

    IDLE = "idle"
    INITIALIZED = "initialized"
    REGISTERED = "registered"
    SETUP_RUNNING = "setup_running"
    WAITING = "waiting"
    CLEANUP_RUNNING = "cleanup_running"
    REPORTED = "reported"


class RunStatus(StrEnum):
    """Final status carried by a run result.

    Values:
        COMPLETED: Every expected check was recorded before the timeout
        INCOMPLETE: The timeout fired before every expected check arrived
        ABORTED: The action ceiling was reached
        ERROR: An unhandled error ended the run
    """

    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    ABORTED = "aborted"
    ERROR = "error"


class WaitOutcome(StrEnum):
    """How a wait resolved."""

    TIMEOUT = "timeout"
    SIGNALLED = "signalled"
