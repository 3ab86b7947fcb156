# src/flowtester/server/commands.py
"""Control-surface commands.

Each command name maps to one orchestrator call. Payloads are validated
with pydantic before anything touches run state; failures become
``CommandError`` with an HTTP status code.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from flowtester.contracts.enums import ActionKind
from flowtester.contracts.errors import (
    ActionError,
    ActionLimitExceeded,
    ConfigurationError,
    FlowTesterError,
    RunInProgressError,
    TestCaseNotFoundError,
)
from flowtester.core.logging import get_logger
from flowtester.engine.orchestrator import TestOrchestrator

slog = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class CommandError(FlowTesterError):
    """A command was rejected.

    Attributes:
        status_code: HTTP status for the control surface
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


# === Payload models ===


class _Payload(BaseModel):
    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}


class RegisterActionsRequest(_Payload):
    event: str = Field(min_length=1)
    actions: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    suite_id: str | None = Field(default=None, alias="suiteID")
    test_id: str | None = Field(default=None, alias="testID")
    start_index: int = Field(default=0, ge=0, alias="startIndex")


class InitRequest(_Payload):
    suite_id: str = Field(default="", alias="suiteID")
    test_id: str = Field(default="", alias="testID")


class SetupRequest(_Payload):
    max_actions: int | None = Field(default=None, gt=0, alias="maxActions")


class WaitRequest(_Payload):
    value: int = Field(ge=0, description="Milliseconds")


class RunTestCaseRequest(_Payload):
    suite_id: str = Field(min_length=1, alias="suiteID")
    test_id: str = Field(min_length=1, alias="testID")


class TargetRequest(_Payload):
    target: str = Field(min_length=1)
    value: Any = None
    vt: str | None = None


class LogRequest(_Payload):
    value: Any = ""


class TypedValue(_Payload):
    type: str = Field(min_length=1)
    value: Any = None


class SetRequest(_Payload):
    dst: TypedValue
    src: TypedValue


class FunctionRequest(_Payload):
    code: str


_ADHOC_MODELS: dict[ActionKind, type[_Payload]] = {
    ActionKind.SEND: TargetRequest,
    ActionKind.CLICK: TargetRequest,
    ActionKind.LOG: LogRequest,
    ActionKind.SET: SetRequest,
    ActionKind.WAIT: WaitRequest,
    ActionKind.FUNCTION: FunctionRequest,
}


def _validate(model: type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        raise CommandError(f"invalid payload: {e.error_count()} validation error(s): {e.errors(include_url=False)}") from e


class CommandDispatcher:
    """Maps command names to orchestrator calls.

    Usage:
        dispatcher = CommandDispatcher(orchestrator)
        await dispatcher.dispatch("init", None)
        await dispatcher.dispatch("registerActions", {"event": "setup", "actions": {...}})
    """

    def __init__(self, orchestrator: TestOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._commands: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "init": self._init,
            "registerActions": self._register_actions,
            "setup": self._setup,
            "cleanup": self._cleanup,
            "listTestCases": self._list_test_cases,
            "runTestCase": self._run_test_case,
        }
        for kind in _ADHOC_MODELS:
            self._commands[kind.value] = self._adhoc_command(kind)

    @property
    def commands(self) -> list[str]:
        return sorted(self._commands)

    async def dispatch(self, command: str, payload: Any = None) -> Any:
        """Run ``command`` and return its JSON-compatible result.

        Raises:
            CommandError: If the command is unknown, the payload is invalid
                or the orchestrator rejects it
        """
        handler = self._commands.get(command)
        if handler is None:
            raise CommandError(f"unknown command: {command}")
        if payload is not None and not isinstance(payload, dict):
            raise CommandError(f"payload for {command} must be a JSON object")

        try:
            return await handler(payload)
        except TestCaseNotFoundError as e:
            raise CommandError(str(e), status_code=404) from e
        except RunInProgressError as e:
            raise CommandError(str(e), status_code=409) from e
        except (ActionError, ActionLimitExceeded, ConfigurationError) as e:
            slog.info("command_rejected", command=command, error_type=type(e).__name__, error=str(e))
            raise CommandError(str(e)) from e

    async def _init(self, payload: Any) -> bool:
        request = _validate(InitRequest, payload)
        self._guard_idle()
        self._orchestrator.init(request.suite_id, request.test_id)
        return True

    async def _register_actions(self, payload: Any) -> dict[str, int]:
        request = _validate(RegisterActionsRequest, payload)
        self._guard_idle()
        next_index = self._orchestrator.register_actions(
            request.event,
            request.actions,
            suite_id=request.suite_id,
            test_id=request.test_id,
            start_index=request.start_index,
        )
        return {"nextIndex": next_index}

    async def _setup(self, payload: Any) -> dict[str, int]:
        request = _validate(SetupRequest, payload)
        self._guard_idle()
        expected = await self._orchestrator.setup(request.max_actions)
        return {"expected": expected}

    async def _cleanup(self, payload: Any) -> dict[str, Any]:
        _validate(_Payload, payload)
        self._guard_idle()
        result = await self._orchestrator.cleanup()
        return result.to_dict()

    async def _list_test_cases(self, payload: Any) -> list[dict[str, Any]]:
        _validate(_Payload, payload)
        return self._orchestrator.list_test_cases()

    async def _run_test_case(self, payload: Any) -> dict[str, Any]:
        request = _validate(RunTestCaseRequest, payload)
        result = await self._orchestrator.run_test_case(request.suite_id, request.test_id)
        return result.to_dict()

    def _adhoc_command(self, kind: ActionKind) -> Callable[[Any], Awaitable[bool]]:
        model = _ADHOC_MODELS[kind]

        async def handler(payload: Any) -> bool:
            request = _validate(model, payload)
            self._guard_idle()
            await self._orchestrator.execute_adhoc(kind.value, request.model_dump(exclude_none=True))
            return True

        return handler

    def _guard_idle(self) -> None:
        # Step-wise commands would corrupt a full run's context.
        if self._orchestrator.running:
            raise RunInProgressError("a test case is running")
