# src/flowtester/engine/orchestrator.py
"""Orchestrator: test-case run lifecycle.

Coordinates:
- Run initialization (fresh run context, hook installation)
- Action registration
- Setup actions and addon start hooks
- The bounded wait for expected checks
- Cleanup actions, addon end hooks and result assembly

A full ``run_test_case`` drives every phase in order. The same phases are
also exposed one by one for the control surface's step-wise commands.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from flowtester.contracts.actions import GLOBAL_NODE_KEY, Action
from flowtester.contracts.enums import EventCategory, RunState, RunStatus, WaitOutcome
from flowtester.contracts.errors import ActionLimitExceeded, RunInProgressError, UnknownActionKindError
from flowtester.contracts.events import RunCompleted
from flowtester.contracts.results import RunResult
from flowtester.contracts.runtime import HostRuntime
from flowtester.core.config import EngineSettings, TestCaseSettings, TestSuiteSettings, find_test_case
from flowtester.core.events import EventBusProtocol, NullEventBus
from flowtester.core.logging import bound_run, get_logger
from flowtester.engine.action_map import ActionSource
from flowtester.engine.aggregator import count_expected
from flowtester.engine.clock import DEFAULT_CLOCK, Clock
from flowtester.engine.evaluator import FunctionEvaluator
from flowtester.engine.executor import ActionExecutor
from flowtester.engine.hooks import HookInterceptor
from flowtester.engine.run_context import ActionCounter, RunContext
from flowtester.plugins.base import AddonAction, AddonContext
from flowtester.plugins.manager import AddonRegistry

slog = get_logger(__name__)


class TestOrchestrator:
    """Drives test-case runs against a host runtime.

    Usage:
        orchestrator = TestOrchestrator(graph, registry, suites=settings.suites)
        result = await orchestrator.run_test_case("s1", "t1")

    Args:
        host: Runtime under test
        registry: Addon actions available to scripts
        suites: Loaded test suites
        engine: Engine-wide defaults
        bus: Receives run notifications
        evaluator: Runs ``function`` action code
        clock: Time source for ``date`` values
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        host: HostRuntime,
        registry: AddonRegistry,
        *,
        suites: Sequence[TestSuiteSettings] = (),
        engine: EngineSettings | None = None,
        bus: EventBusProtocol | None = None,
        evaluator: FunctionEvaluator | None = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self._host = host
        self._registry = registry
        self._suites = list(suites)
        self._engine = engine or EngineSettings()
        self._bus = bus or NullEventBus()
        self._executor = ActionExecutor(host, registry, self._bus, evaluator, clock)
        self._hooks = HookInterceptor(host, self._executor)
        self._lock = asyncio.Lock()
        self._state = RunState.IDLE
        self._context = RunContext.create(self._bus, self._engine.max_actions)

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def context(self) -> RunContext:
        return self._context

    @property
    def running(self) -> bool:
        """True while a full test-case run holds the lock."""
        return self._lock.locked()

    # === Step-wise phases ===

    def init(self, suite_id: str = "", test_id: str = "") -> None:
        """Start a fresh run: new context, hooks reinstalled."""
        self._context.closed = True
        self._context = RunContext.create(self._bus, self._engine.max_actions, suite_id, test_id)
        self._hooks.install(self._context)
        self._state = RunState.INITIALIZED
        slog.debug("run_initialized", suite_id=suite_id, test_id=test_id)

    def register_actions(
        self,
        event: str | EventCategory,
        actions: Mapping[str, Sequence[ActionSource]],
        suite_id: str | None = None,
        test_id: str | None = None,
        start_index: int = 0,
    ) -> int:
        """Register one batch of actions for the current run.

        Returns:
            The index following the batch

        Raises:
            UnknownEventCategoryError: If ``event`` names no category
            ConfigurationError: If an action spec is malformed
        """
        ctx = self._context
        next_index = ctx.action_map.register(
            event,
            actions,
            suite_id=ctx.suite_id if suite_id is None else suite_id,
            test_id=ctx.test_id if test_id is None else test_id,
            start_index=start_index,
        )
        self._state = RunState.REGISTERED
        return next_index

    async def setup(self, max_actions: int | None = None) -> int:
        """Arm the tally, start engaged addons and run setup actions.

        An action-ceiling overflow aborts the run; it is not raised.

        Returns:
            The number of expected checks
        """
        ctx = self._context
        ctx.counter = ActionCounter(max_actions or self._engine.max_actions)
        expected = count_expected(ctx.action_map)
        ctx.aggregator.reset(expected)
        ctx.engaged_addons = self._engaged_addons(ctx.action_map)
        self._state = RunState.SETUP_RUNNING
        slog.info("run_setup", expected_checks=expected, max_actions=ctx.counter.limit)

        await self._lifecycle(ctx, "on_test_start")
        await self._run_phase(ctx, EventCategory.SETUP)
        return expected

    async def wait(self, timeout_ms: int | None = None) -> WaitOutcome:
        """Wait for the expected checks, at most ``timeout_ms``.

        Returns at once when the run was aborted or the tally is already
        complete.
        """
        ctx = self._context
        self._state = RunState.WAITING
        if ctx.aborted:
            return WaitOutcome.SIGNALLED
        aggregator = ctx.aggregator
        if aggregator.expected_checks > 0 and aggregator.complete:
            return WaitOutcome.SIGNALLED
        outcome = await ctx.waiter.wait(timeout_ms or self._engine.default_timeout_ms)
        slog.info("run_wait_finished", outcome=str(outcome), recorded=aggregator.recorded)
        return outcome

    async def cleanup(self, error: str | None = None) -> RunResult:
        """Run cleanup actions, end addons, remove hooks and report.

        Hooks are removed even when cleanup fails.
        """
        ctx = self._context
        self._state = RunState.CLEANUP_RUNNING
        try:
            await self._run_phase(ctx, EventCategory.CLEANUP)
            await self._lifecycle(ctx, "on_test_end")
        finally:
            self._hooks.uninstall()
            ctx.closed = True
            ctx.action_map.clear()

        if ctx.aborted:
            status = RunStatus.ABORTED
        elif error is not None:
            status = RunStatus.ERROR
        elif ctx.aggregator.complete:
            status = RunStatus.COMPLETED
        else:
            status = RunStatus.INCOMPLETE

        result = ctx.aggregator.build_result(status, error)
        self._state = RunState.REPORTED
        slog.info(
            "run_reported",
            status=str(status),
            expected=result.expected_checks,
            success=result.success_count,
            fail=result.fail_count,
        )
        return result

    # === Full runs ===

    def list_test_cases(self) -> list[dict[str, Any]]:
        return [
            {
                "id": suite.id,
                "name": suite.name,
                "tests": [{"id": test.id, "name": test.name} for test in suite.tests],
            }
            for suite in self._suites
        ]

    async def run_test_case(self, suite_id: str, test_id: str) -> RunResult:
        """Run one test case end to end.

        Errors in any phase are reported in the result with status
        ``error``.

        Raises:
            TestCaseNotFoundError: If the ids name no loaded test case
            RunInProgressError: If another run is in progress
        """
        suite, test = find_test_case(self._suites, suite_id, test_id)
        if self._lock.locked():
            raise RunInProgressError(f"cannot run {suite_id}/{test_id}: another test case is running")

        async with self._lock:
            with bound_run(suite_id, test_id):
                result = await self._run(suite, test)

        self._bus.emit(RunCompleted(suite_id=suite_id, test_id=test_id, result=result))
        return result

    async def _run(self, suite: TestSuiteSettings, test: TestCaseSettings) -> RunResult:
        slog.info("run_started", name=test.name, timeout_ms=test.timeout)
        self.init(suite.id, test.id)
        error: str | None = None
        try:
            next_index = 0
            for event, groups in test.actions.items():
                next_index = self.register_actions(event, groups, suite.id, test.id, start_index=next_index)
            await self.setup(test.max_actions)
            await self.wait(test.timeout)
        except Exception as e:
            slog.exception("run_failed", error_type=type(e).__name__)
            error = f"{type(e).__name__}: {e}"

        try:
            return await self.cleanup(error)
        except Exception as e:
            slog.exception("cleanup_failed", error_type=type(e).__name__)
            return self._context.aggregator.build_result(RunStatus.ERROR, f"{type(e).__name__}: {e}")

    # === Ad hoc actions ===

    async def execute_adhoc(self, kind: str, fields: Mapping[str, Any]) -> None:
        """Run one built-in action outside any test case.

        Raises:
            UnknownActionKindError: If ``kind`` is not a built-in kind
            RunInProgressError: If a full test-case run holds the context
            ActionError: If the action fails
            ActionLimitExceeded: If the current run's ceiling is reached
        """
        if self.running:
            raise RunInProgressError("a test case is running")
        action = Action(kind=kind, fields=fields)
        if action.builtin_kind is None:
            raise UnknownActionKindError(kind)
        ctx = self._context
        if ctx.closed:
            # Ad hoc commands after cleanup act on a fresh, hookless context.
            ctx = self._context = RunContext.create(self._bus, self._engine.max_actions)
        await self._executor.execute(ctx, action)

    # === Internals ===

    async def _run_phase(self, ctx: RunContext, event: EventCategory) -> None:
        try:
            for node_key, actions in ctx.action_map.ordered_groups(event):
                node_id = None if node_key == GLOBAL_NODE_KEY else node_key
                await self._executor.execute_all(ctx, actions, node_id)
        except ActionLimitExceeded as e:
            slog.warning("phase_aborted", phase=str(event), count=e.count, limit=e.limit)

    def _engaged_addons(self, actions: Iterable[Action]) -> list[AddonAction]:
        engaged: dict[str, AddonAction] = {}
        for action in actions:
            if action.builtin_kind is not None or action.kind in engaged:
                continue
            addon = self._registry.get_action(action.kind)
            if addon is not None:
                engaged[action.kind] = addon
        return list(engaged.values())

    async def _lifecycle(self, ctx: RunContext, hook: str) -> None:
        for addon in ctx.engaged_addons:
            if not hasattr(addon, hook):
                continue
            addon_ctx = AddonContext(host=self._host, log=lambda text: self._executor.write_log(ctx, str(text)))
            await self._executor.run_addon_hook(addon, hook, addon_ctx)
