# tests/conftest.py
"""Shared test fixtures and helpers.

Fixtures build the pieces a run needs: an in-memory graph, an addon
registry with the built-in addons, an event bus with a recorder attached,
a mock clock, and an orchestrator wired to all of them.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from flowtester.contracts.events import NOTIFICATION_EVENTS
from flowtester.core.config import EngineSettings, TestSuiteSettings
from flowtester.core.events import EventBus
from flowtester.engine.clock import MockClock
from flowtester.engine.orchestrator import TestOrchestrator
from flowtester.plugins.manager import AddonRegistry
from flowtester.testing.graph import InMemoryGraph

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Helpers
# =============================================================================


class EventRecorder:
    """Collects every notification emitted on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Any] = []
        for event_type in NOTIFICATION_EVENTS:
            bus.subscribe(event_type, self.events.append)

    def of(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    return EventRecorder(bus)


@pytest.fixture
def clock() -> MockClock:
    return MockClock(start_ms=1_700_000_000_000)


@pytest.fixture
def graph() -> InMemoryGraph:
    """upstream -> node, plus a standalone sink."""
    graph = InMemoryGraph()
    graph.add_node("upstream", wires=["node"])
    graph.add_node("node")
    graph.add_node("sink", handler=lambda msg: None)
    return graph


@pytest.fixture
def registry() -> AddonRegistry:
    registry = AddonRegistry()
    registry.register_builtin_addons()
    return registry


@pytest.fixture
def make_orchestrator(
    graph: InMemoryGraph,
    registry: AddonRegistry,
    bus: EventBus,
    clock: MockClock,
) -> Callable[..., TestOrchestrator]:
    """Factory for orchestrators over the shared graph, registry and bus."""

    def factory(suites: list[TestSuiteSettings] | None = None, **engine: Any) -> TestOrchestrator:
        return TestOrchestrator(
            graph,
            registry,
            suites=suites or [],
            engine=EngineSettings(**engine),
            bus=bus,
            clock=clock,
        )

    return factory


@pytest.fixture
def orchestrator(make_orchestrator: Callable[..., TestOrchestrator]) -> TestOrchestrator:
    return make_orchestrator()
