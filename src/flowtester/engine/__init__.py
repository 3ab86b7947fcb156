# src/flowtester/engine/__init__.py
"""Test engine: action dispatch and run lifecycle.

This module provides the execution engine for flowtester runs:
- TestOrchestrator: Full run lifecycle management
- ActionExecutor: Built-in and addon action dispatch
- HookInterceptor: Host runtime lifecycle interception
- WaitScheduler / ResultAggregator: Bounded wait and check tally

Example:
    from flowtester.engine import TestOrchestrator
    from flowtester.plugins import AddonRegistry
    from flowtester.testing.graph import InMemoryGraph

    graph = InMemoryGraph()
    registry = AddonRegistry()
    registry.register_builtin_addons()

    orchestrator = TestOrchestrator(graph, registry, suites=settings.suites)
    result = await orchestrator.run_test_case("s1", "t1")
"""

from flowtester.engine.action_map import ActionMap
from flowtester.engine.aggregator import ResultAggregator, count_expected
from flowtester.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from flowtester.engine.evaluator import EvaluationResult, FunctionEvaluator, PythonEvaluator
from flowtester.engine.executor import ActionExecutor
from flowtester.engine.expression_parser import (
    ExpressionEvaluationError,
    ExpressionParser,
    ExpressionSecurityError,
    ExpressionSyntaxError,
)
from flowtester.engine.hooks import HOOK_NAME, HookInterceptor
from flowtester.engine.orchestrator import TestOrchestrator
from flowtester.engine.run_context import ActionCounter, RunContext
from flowtester.engine.waiter import WaitScheduler

__all__ = [
    "DEFAULT_CLOCK",
    "HOOK_NAME",
    "ActionCounter",
    "ActionExecutor",
    "ActionMap",
    "Clock",
    "EvaluationResult",
    "ExpressionEvaluationError",
    "ExpressionParser",
    "ExpressionSecurityError",
    "ExpressionSyntaxError",
    "FunctionEvaluator",
    "HookInterceptor",
    "MockClock",
    "PythonEvaluator",
    "ResultAggregator",
    "RunContext",
    "SystemClock",
    "TestOrchestrator",
    "WaitScheduler",
    "count_expected",
]
