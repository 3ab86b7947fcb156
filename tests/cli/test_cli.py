"""Tests for the flowtester CLI."""

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from flowtester import __version__
from flowtester.cli import app

runner = CliRunner()

SUITES = [
    {"id": "s1", "name": "Basics", "tests": [{"id": "t1", "name": "passes"}, {"id": "t2", "name": ""}]},
    {"id": "s2", "name": "", "tests": [{"id": "t9", "name": "fails"}]},
]


def _result(status: str = "completed", fail: int = 0) -> dict[str, Any]:
    return {
        "result": {"all": 1 + fail, "success": 1, "fail": fail},
        "info": {"expected": 1 + fail, "status": status, "success": [], "fail": []},
    }


@pytest.fixture
def served_paths(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Route CLI HTTP calls to a fake control server and record the paths."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/flow-tester/testCase":
            return httpx.Response(200, json=SUITES)
        if request.url.path == "/flow-tester/runTestCase/s1/t1":
            return httpx.Response(200, json=_result())
        if request.url.path == "/flow-tester/runTestCase/s2/t9":
            return httpx.Response(200, json=_result(fail=1))
        return httpx.Response(404, json={"error": "test case not found"})

    def fake_client(target: str) -> httpx.Client:
        return httpx.Client(base_url=target, transport=httpx.MockTransport(handler))

    monkeypatch.setattr("flowtester.cli._client", fake_client)
    return seen


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"flowtester version {__version__}" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "list", "run"):
            assert command in result.output

    def test_invalid_log_level(self) -> None:
        result = runner.invoke(app, ["--no-dotenv", "--log-level", "LOUD", "list"])

        assert result.exit_code == 2
        assert "invalid log level" in result.output

    def test_missing_env_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "missing.env"), "list"])

        assert result.exit_code == 1
        assert ".env file not found" in result.output


class TestListCommand:
    def test_flat_numbering(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "list"])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["Basics", "  0: passes", "  1: t2", "s2", "  2: fails"]
        assert served_paths == ["/flow-tester/testCase"]

    def test_json_output(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "list", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == SUITES

    def test_unreachable_server(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setattr(
            "flowtester.cli._client",
            lambda target: httpx.Client(base_url=target, transport=httpx.MockTransport(refuse)),
        )

        result = runner.invoke(app, ["--no-dotenv", "list", "--target", "http://127.0.0.1:9"])

        assert result.exit_code == 1
        assert "cannot reach" in result.output


class TestRunCommand:
    def test_passing_run(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "0"])

        assert result.exit_code == 0
        assert json.loads(result.output) == _result()
        assert served_paths[-1] == "/flow-tester/runTestCase/s1/t1"

    def test_failing_run_exits_nonzero(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "2"])

        assert result.exit_code == 1
        assert served_paths[-1] == "/flow-tester/runTestCase/s2/t9"

    def test_server_error(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "1"])

        assert result.exit_code == 1
        assert "404 test case not found" in result.output

    def test_number_out_of_range(self, served_paths: list[str]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "3"])

        assert result.exit_code == 1
        assert "no test number 3 (found 3)" in result.output


class TestServeCommand:
    def test_builds_app_and_runs_uvicorn(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("server:\n  port: 1999\ngraph:\n  nodes:\n    - id: a\n      wires: [b]\n    - id: b\n")
        calls: list[dict[str, Any]] = []
        monkeypatch.setattr("uvicorn.run", lambda asgi_app, **kwargs: calls.append({"app": asgi_app, **kwargs}))

        result = runner.invoke(app, ["--no-dotenv", "serve", "--config", str(config), "--host", "0.0.0.0"])

        assert result.exit_code == 0, result.output
        (call,) = calls
        assert (call["host"], call["port"], call["log_config"]) == ("0.0.0.0", 1999, None)
        server = call["app"].state.server
        assert server.hub.subscriber_count == 0

    def test_missing_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "serve", "--config", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "Settings file not found" in result.output

    def test_invalid_config(self, tmp_path: Path) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("graph:\n  nodes:\n    - id: a\n      wires: [ghost]\n")

        result = runner.invoke(app, ["--no-dotenv", "serve", "--config", str(config)])

        assert result.exit_code == 1
        assert "Configuration errors" in result.output
