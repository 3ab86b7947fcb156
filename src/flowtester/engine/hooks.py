# src/flowtester/engine/hooks.py
"""Runtime interception: maps host lifecycle callbacks to scripted actions.

    on_receive    ``recv`` actions for the receiving node, awaited before the
                  node handles the message.
    on_pre_route  ``stub`` actions for the emitting node. When a stub group
                  exists the runtime's own routing is suppressed.
    on_send       ``send`` actions for each emitting node, scheduled in the
                  background so the runtime's send path never blocks.
"""

from __future__ import annotations

from collections.abc import Sequence

from flowtester.contracts.actions import Action
from flowtester.contracts.enums import EventCategory
from flowtester.contracts.errors import ActionLimitExceeded
from flowtester.contracts.runtime import HostRuntime, Message, ReceiveEvent, RouteEvent, RuntimeHooks, SendEvent
from flowtester.core.logging import get_logger
from flowtester.engine.executor import ActionExecutor
from flowtester.engine.run_context import RunContext

slog = get_logger(__name__)

# Name the hook bundle is registered under with the host runtime.
HOOK_NAME = "flowtester"


class HookInterceptor:
    """Installs one hook bundle bound to the current run."""

    def __init__(self, host: HostRuntime, executor: ActionExecutor) -> None:
        self._host = host
        self._executor = executor
        self._ctx: RunContext | None = None

    @property
    def installed(self) -> bool:
        return self._ctx is not None

    def install(self, ctx: RunContext) -> None:
        """Bind to ``ctx`` and (re)register the hook bundle."""
        self._ctx = ctx
        self._host.register_hooks(
            HOOK_NAME,
            RuntimeHooks(
                on_receive=self._on_receive,
                on_pre_route=self._on_pre_route,
                on_send=self._on_send,
            ),
        )
        slog.debug("hooks_installed", suite_id=ctx.suite_id, test_id=ctx.test_id)

    def uninstall(self) -> None:
        self._host.unregister_hooks(HOOK_NAME)
        self._ctx = None
        slog.debug("hooks_uninstalled")

    async def _run(self, ctx: RunContext, actions: Sequence[Action], node_id: str, msg: Message) -> None:
        try:
            await self._executor.execute_all(ctx, actions, node_id, msg)
        except ActionLimitExceeded as e:
            slog.warning("hook_actions_aborted", node_id=node_id, count=e.count, limit=e.limit)

    async def _on_receive(self, event: ReceiveEvent) -> None:
        ctx = self._ctx
        if ctx is None:
            return
        actions = ctx.action_map.lookup(EventCategory.RECV, event.node_id)
        if actions:
            await self._run(ctx, actions, event.node_id, event.msg)

    async def _on_pre_route(self, event: RouteEvent) -> bool:
        ctx = self._ctx
        if ctx is None:
            return True
        actions = ctx.action_map.lookup(EventCategory.STUB, event.source_id)
        if not actions:
            return True
        await self._run(ctx, actions, event.source_id, event.msg)
        return False

    async def _on_send(self, events: Sequence[SendEvent]) -> None:
        ctx = self._ctx
        if ctx is None:
            return
        chains: list[tuple[str, Message, tuple[Action, ...]]] = []
        # One emission fanned out to several wires runs its actions once.
        seen: set[tuple[str, int]] = set()
        for event in events:
            key = (event.source_id, id(event.msg))
            if key in seen:
                continue
            seen.add(key)
            actions = ctx.action_map.lookup(EventCategory.SEND, event.source_id)
            if actions:
                chains.append((event.source_id, event.msg, actions))
        if chains:
            ctx.spawn(self._run_chains(ctx, chains), name="flowtester-send-actions")

    async def _run_chains(self, ctx: RunContext, chains: list[tuple[str, Message, tuple[Action, ...]]]) -> None:
        for node_id, msg, actions in chains:
            if ctx.aborted:
                return
            await self._run(ctx, actions, node_id, msg)
