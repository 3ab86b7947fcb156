# src/flowtester/engine/executor.py
"""Action executor: dispatches one scripted action at a time.

Built-in kinds are handled here; any other kind is looked up in the addon
registry. Every dispatch first passes the run's action counter. Reaching
the ceiling aborts the run and raises ``ActionLimitExceeded``, which
``execute_all`` lets through while isolating every other failure to the
action that raised it.
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from flowtester.contracts.actions import Action
from flowtester.contracts.enums import ActionKind, DestinationType, SourceType
from flowtester.contracts.errors import (
    ActionError,
    ActionLimitExceeded,
    EvaluationError,
    UnexpectedValueTypeError,
    UnknownActionKindError,
)
from flowtester.contracts.events import ActionOverflow, LogEmitted, NodeClicked
from flowtester.contracts.runtime import ContextScope, HostRuntime, Message
from flowtester.core.events import EventBusProtocol, NullEventBus
from flowtester.core.logging import get_logger
from flowtester.engine.clock import DEFAULT_CLOCK, Clock
from flowtester.engine.evaluator import FunctionEvaluator, PythonEvaluator
from flowtester.engine.properties import (
    has_nested_reference,
    normalise_property_expression,
    parse_context_store,
    set_message_property,
)
from flowtester.engine.run_context import RunContext
from flowtester.engine.values import coerce_value, payload_matches
from flowtester.plugins.base import AddonAction, AddonContext
from flowtester.plugins.manager import AddonRegistry

slog = get_logger(__name__)


class CheckReporter:
    """Reports at most one outcome for one action."""

    def __init__(self, ctx: RunContext, action: Action) -> None:
        self._ctx = ctx
        self._action = action
        self.reported = False

    def __call__(self, outcome: Any) -> None:
        if self.reported:
            slog.warning("check_already_reported", index=self._action.index, kind=self._action.kind)
            return
        self.reported = True
        self._ctx.aggregator.report(
            bool(outcome),
            self._action.index,
            self._action.suite_id,
            self._action.test_id,
        )


def _milliseconds(value: Any) -> int:
    if isinstance(value, bool):
        raise ActionError(f"Invalid wait duration: {value!r}")
    try:
        ms = int(float(value))
    except (TypeError, ValueError) as e:
        raise ActionError(f"Invalid wait duration: {value!r}") from e
    if ms < 0:
        raise ActionError(f"Wait duration must be >= 0, got {ms}")
    return ms


def _typed_field(action: Action, name: str) -> tuple[str, Any]:
    """Read a ``{type, value}`` field of a ``set`` action."""
    spec = action.get(name)
    if not isinstance(spec, Mapping) or "type" not in spec:
        raise ActionError(f"set: '{name}' must be an object with 'type' and 'value'")
    return str(spec["type"]), spec.get("value")


class ActionExecutor:
    """Executes actions against a host runtime on behalf of a run.

    Args:
        host: Runtime the actions act on
        registry: Addon actions available to scripts
        bus: Receives log, click and overflow notifications
        evaluator: Runs ``function`` action code
        clock: Time source for ``date`` values
    """

    def __init__(
        self,
        host: HostRuntime,
        registry: AddonRegistry,
        bus: EventBusProtocol | None = None,
        evaluator: FunctionEvaluator | None = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self._host = host
        self._registry = registry
        self._bus = bus or NullEventBus()
        self._evaluator = evaluator or PythonEvaluator()
        self._clock = clock

    async def execute_all(
        self,
        ctx: RunContext,
        actions: Sequence[Action],
        node_id: str | None = None,
        msg: Message | None = None,
    ) -> None:
        """Execute ``actions`` strictly in order.

        A failing action is logged and the list continues.

        Raises:
            ActionLimitExceeded: If the ceiling is reached; the rest of the
                list is skipped
        """
        for action in actions:
            try:
                await self.execute(ctx, action, node_id, msg)
            except ActionLimitExceeded:
                raise
            except Exception as e:
                slog.warning(
                    "action_failed",
                    kind=action.kind,
                    index=action.index,
                    node_id=node_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    async def execute(
        self,
        ctx: RunContext,
        action: Action,
        node_id: str | None = None,
        msg: Message | None = None,
    ) -> None:
        """Execute a single action.

        A check-performing action that raises before reporting is recorded
        as a failed check, then the error propagates.

        Raises:
            ActionLimitExceeded: If the run's ceiling is reached
            ActionError: If the action cannot be executed
        """
        self._acquire(ctx, action)
        check = CheckReporter(ctx, action)
        try:
            await self._dispatch(ctx, action, node_id, msg, check)
        except ActionLimitExceeded:
            raise
        except Exception:
            if action.perform_check and not check.reported:
                check(False)
            raise

    def _acquire(self, ctx: RunContext, action: Action) -> None:
        if ctx.closed:
            raise ActionError(f"run {ctx.suite_id}/{ctx.test_id} is closed")
        if ctx.aborted:
            raise ActionLimitExceeded(ctx.counter.count, ctx.counter.limit)
        try:
            ctx.counter.increment()
        except ActionLimitExceeded as e:
            ctx.abort()
            slog.error("action_limit_exceeded", count=e.count, limit=e.limit, kind=action.kind, index=action.index)
            self._bus.emit(ActionOverflow(count=e.count, limit=e.limit, suite_id=ctx.suite_id, test_id=ctx.test_id))
            raise

    async def _dispatch(
        self,
        ctx: RunContext,
        action: Action,
        node_id: str | None,
        msg: Message | None,
        check: CheckReporter,
    ) -> None:
        kind = action.builtin_kind
        slog.debug("action_dispatch", kind=action.kind, index=action.index, node_id=node_id)

        if kind is None:
            await self._addon(ctx, action, node_id, msg, check)
        elif kind == ActionKind.SEND:
            self._send(action, msg)
        elif kind == ActionKind.CLICK:
            self._click(action)
        elif kind == ActionKind.LOG:
            value = action.get("value", "")
            self.write_log(ctx, value if isinstance(value, str) else repr(value), node_id)
        elif kind == ActionKind.SET:
            self._set(action, node_id, msg)
        elif kind == ActionKind.MATCH:
            self._match(ctx, action, node_id, msg, check)
        elif kind == ActionKind.WAIT:
            await ctx.waiter.wait(_milliseconds(action.get("value", 0)))
        elif kind == ActionKind.FUNCTION:
            await self._function(ctx, action, node_id, msg, check)

    def write_log(self, ctx: RunContext, text: str, node_id: str | None = None) -> None:
        """Append a line to the run log and publish it."""
        ctx.log_lines.append(text)
        slog.info("run_log", message=text, node_id=node_id)
        self._bus.emit(LogEmitted(message=text, node_id=node_id))

    def _target(self, action: Action) -> Any:
        target = action.get("target")
        if not target:
            raise ActionError(f"{action.kind}: 'target' is required")
        node = self._host.get_node(str(target))
        if node is None:
            raise ActionError(f"{action.kind}: node not found: {target}")
        return node

    def _send(self, action: Action, msg: Message | None) -> None:
        node = self._target(action)
        value = action.get("value")
        value_type = action.get("vt")
        if value_type:
            value = coerce_value(str(value_type), value, msg, self._clock)
        node.receive({"_msgid": uuid.uuid4().hex, "payload": value})

    def _click(self, action: Action) -> None:
        node = self._target(action)
        click = getattr(node, "click", None)
        if callable(click):
            click()
        self._bus.emit(NodeClicked(node_id=node.id))

    def _set(self, action: Action, node_id: str | None, msg: Message | None) -> None:
        dst_type, dst_value = _typed_field(action, "dst")
        src_type, src_value = _typed_field(action, "src")
        value = coerce_value(src_type, src_value, msg, self._clock)
        if not dst_value:
            raise ActionError("set: destination property is required")
        expression = str(dst_value)

        if dst_type == DestinationType.MSG:
            if msg is None:
                raise ActionError(f"set: no message in scope for msg.{expression}")
            set_message_property(msg, expression, value)
            return

        if dst_type not in (DestinationType.FLOW, DestinationType.GLOBAL):
            raise UnexpectedValueTypeError(dst_type)

        key = parse_context_store(expression)
        context_key = key.key
        if has_nested_reference(context_key):
            context_key = normalise_property_expression(context_key, msg)
        scope: ContextScope = "flow" if dst_type == DestinationType.FLOW else "global"
        store = self._host.context_store(scope, node_id)
        store.set(context_key, value, key.store)

    def _match(
        self,
        ctx: RunContext,
        action: Action,
        node_id: str | None,
        msg: Message | None,
        check: CheckReporter,
    ) -> None:
        expected = coerce_value(str(action.get("vt", SourceType.STR)), action.get("value"), msg, self._clock)
        outcome = payload_matches(expected, msg)
        slog.debug("match_evaluated", index=action.index, node_id=node_id, result=outcome)
        if action.perform_check:
            check(outcome)

    async def _function(
        self,
        ctx: RunContext,
        action: Action,
        node_id: str | None,
        msg: Message | None,
        check: CheckReporter,
    ) -> None:
        bindings: dict[str, Any] = {
            "log": lambda text: self.write_log(ctx, str(text), node_id),
            "node": self._host.get_node(node_id) if node_id else None,
            "msg": msg,
        }
        if action.perform_check:
            bindings["check"] = check
        result = await self._evaluator.evaluate(str(action.get("code", "")), bindings)
        if not result.ok:
            raise EvaluationError(f"function failed: {result.error}")

    async def _addon(
        self,
        ctx: RunContext,
        action: Action,
        node_id: str | None,
        msg: Message | None,
        check: CheckReporter,
    ) -> None:
        addon = self._registry.get_action(action.kind)
        if addon is None:
            raise UnknownActionKindError(action.kind)
        addon_ctx = AddonContext(
            host=self._host,
            action=action,
            node_id=node_id,
            msg=msg,
            log=lambda text: self.write_log(ctx, str(text), node_id),
        )
        outcome = await self.run_addon_hook(addon, "execute", addon_ctx)
        if action.perform_check:
            check(outcome is not False)

    async def run_addon_hook(self, addon: AddonAction, hook: str, addon_ctx: AddonContext) -> Any:
        """Call one addon method, awaiting it if needed.

        Addon failures are logged and reported as False; they never reach
        the engine.
        """
        try:
            result = getattr(addon, hook)(addon_ctx)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            slog.warning(
                "addon_failed",
                addon=addon.name,
                hook=hook,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return result
