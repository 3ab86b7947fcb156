"""Exception hierarchy for the flowtester engine.

Errors fall into three groups:

- Action errors are local to one action. The executor logs them, records a
  failed check when the action performs one, and moves on to the next action.
- Overflow (``ActionLimitExceeded``) is fatal to the run and short-circuits
  every remaining action.
- Configuration and control-surface errors are raised to the caller before
  any run state is touched.
"""


class FlowTesterError(Exception):
    """Base class for every error raised by flowtester."""


# =============================================================================
# Action errors (recovered locally)
# =============================================================================


class ActionError(FlowTesterError):
    """Raised when a single action cannot be executed."""


class UnknownActionKindError(ActionError):
    """Raised when an action kind is neither built-in nor provided by an addon."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"unknown action kind: {kind}")
        self.kind = kind


class UnexpectedValueTypeError(ActionError):
    """Raised when a ``set`` destination or source type is not supported."""

    def __init__(self, value_type: str) -> None:
        super().__init__(f"unexpected value type: {value_type}")
        self.value_type = value_type


class EvaluationError(ActionError):
    """Raised when externally supplied code cannot be compiled."""


# =============================================================================
# Overflow (fatal to the run)
# =============================================================================


class ActionLimitExceeded(FlowTesterError):
    """Raised when the run's action counter reaches its ceiling.

    Attributes:
        count: Number of actions dispatched before the ceiling was hit
        limit: Configured ceiling
    """

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"action limit exceeded: {count} actions dispatched, limit is {limit}")
        self.count = count
        self.limit = limit


# =============================================================================
# Configuration and control-surface errors
# =============================================================================


class ConfigurationError(FlowTesterError):
    """Raised when test-case configuration is malformed."""


class UnknownEventCategoryError(ConfigurationError):
    """Raised when actions are registered under an unknown event category."""

    def __init__(self, event: str) -> None:
        super().__init__(f"unknown event category: {event}")
        self.event = event


class TestCaseNotFoundError(FlowTesterError):
    """Raised when a suite/test id pair does not name a loaded test case."""

    __test__ = False  # not a pytest test class

    def __init__(self, suite_id: str, test_id: str) -> None:
        super().__init__(f"test case not found: {suite_id}/{test_id}")
        self.suite_id = suite_id
        self.test_id = test_id


class RunInProgressError(FlowTesterError):
    """Raised when a test-case run is requested while another is running."""
