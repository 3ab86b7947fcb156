# tests/integration/test_served_scenarios.py
"""End-to-end runs over the HTTP surface, wired the way ``flowtester serve`` wires it.

Settings come from a YAML file; the graph, registry, orchestrator and app
are built from them and exercised through Starlette's TestClient.
"""

from collections.abc import Iterator
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from flowtester.core.config import load_settings
from flowtester.core.events import EventBus
from flowtester.engine.orchestrator import TestOrchestrator
from flowtester.plugins.manager import AddonRegistry
from flowtester.server.app import create_app
from flowtester.testing.graph import InMemoryGraph

SETTINGS_YAML = """
engine:
  max_actions: 50
graph:
  nodes:
    - id: in
      wires: [mid]
    - id: mid
      wires: [out]
    - id: out
      handler: sink
suites:
  - id: pipeline
    name: Pipeline
    tests:
      - id: forwards
        timeout: 2000
        actions:
          setup:
            global:
              - kind: send
                target: in
                value: hello
          recv:
            out:
              - kind: match
                value: hello
      - id: stubbed
        timeout: 300
        actions:
          setup:
            global:
              - kind: send
                target: in
                value: hello
          stub:
            mid:
              - kind: match
                value: hello
          recv:
            out:
              - kind: match
                value: hello
      - id: mismatch
        timeout: 2000
        actions:
          setup:
            global:
              - kind: send
                target: in
                value: hello
          recv:
            out:
              - kind: match
                value: goodbye
      - id: addon
        timeout: 2000
        actions:
          setup:
            global:
              - kind: send
                target: in
                value: hello world
          recv:
            out:
              - kind: addon:match-regex
                value: "^hello"
                check: true
"""


@pytest.fixture
def served(tmp_path: Path) -> Iterator[tuple[TestClient, InMemoryGraph]]:
    config = tmp_path / "settings.yaml"
    config.write_text(SETTINGS_YAML)
    settings = load_settings(config)

    graph = InMemoryGraph.from_settings(settings.graph)
    registry = AddonRegistry()
    registry.register_builtin_addons()
    registry.attach(graph)
    bus = EventBus()
    orchestrator = TestOrchestrator(graph, registry, suites=settings.suites, engine=settings.engine, bus=bus)

    with TestClient(create_app(orchestrator, bus)) as client:
        yield client, graph


class TestServedScenarios:
    def test_listing_matches_config(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, _ = served

        (suite,) = client.get("/flow-tester/testCase").json()

        assert [test["id"] for test in suite["tests"]] == ["forwards", "stubbed", "mismatch", "addon"]

    def test_message_reaches_sink(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, graph = served

        document = client.get("/flow-tester/runTestCase/pipeline/forwards").json()

        assert document["result"] == {"all": 1, "success": 1, "fail": 0}
        assert document["info"]["status"] == "completed"
        assert [node_id for node_id, _ in graph.delivered] == ["in", "mid", "out"]

    def test_stub_holds_message_back(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, graph = served

        document = client.get("/flow-tester/runTestCase/pipeline/stubbed").json()

        # The stubbed node swallows the message, so the sink's check never arrives.
        assert document["result"] == {"all": 1, "success": 1, "fail": 0}
        assert document["info"]["expected"] == 2
        assert document["info"]["status"] == "incomplete"
        assert "out" not in [node_id for node_id, _ in graph.delivered]

    def test_mismatch_reported_as_failure(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, _ = served

        document = client.get("/flow-tester/runTestCase/pipeline/mismatch").json()

        assert document["result"] == {"all": 1, "success": 0, "fail": 1}
        assert document["info"]["status"] == "completed"

    def test_addon_check(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, _ = served

        document = client.get("/flow-tester/runTestCase/pipeline/addon").json()

        assert document["result"] == {"all": 1, "success": 1, "fail": 0}

    def test_runs_back_to_back(self, served: tuple[TestClient, InMemoryGraph]) -> None:
        client, _ = served

        first = client.get("/flow-tester/runTestCase/pipeline/forwards").json()
        second = client.get("/flow-tester/runTestCase/pipeline/mismatch").json()

        assert first["result"]["success"] == 1
        assert second["result"] == {"all": 1, "success": 0, "fail": 1}
