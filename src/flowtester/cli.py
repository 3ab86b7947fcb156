# src/flowtester/cli.py
"""flowtester Command Line Interface.

Usage:
    # Serve the control surface over an in-memory graph
    flowtester serve --config settings.yaml

    # List test cases on a running server (flat numbering)
    flowtester list --target http://localhost:1880

    # Run the third test case and print the result document
    flowtester run 3
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

import httpx
import typer
from pydantic import ValidationError

from flowtester import __version__
from flowtester.core.config import FlowTesterSettings, load_settings

__all__ = ["app"]

DEFAULT_TARGET = "http://localhost:1880"

app = typer.Typer(
    name="flowtester",
    help="flowtester: Scripted integration tests for message-flow graphs.",
    no_args_is_help=True,
)


@dataclass
class _CliState:
    log_level: str | None = None
    json_logs: bool = False


_state = _CliState()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"flowtester version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to a .env file. If None, searches the
                 current directory and its parents.

    Returns:
        True if a .env file was found and loaded.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True, help="Show version and exit."),
    ] = None,
    no_dotenv: Annotated[bool, typer.Option("--no-dotenv", help="Skip loading .env file.")] = False,
    env_file: Annotated[
        Path | None,
        typer.Option("--env-file", help="Path to .env file (skips automatic search)."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR). Overrides config."),
    ] = None,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Output structured JSON logs.")] = False,
) -> None:
    """flowtester: Scripted integration tests for message-flow graphs."""
    from flowtester.core.logging import configure_logging

    if log_level is not None and log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        typer.secho(f"Error: invalid log level: {log_level}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    _state.log_level = log_level.upper() if log_level else None
    _state.json_logs = json_logs
    configure_logging(json_output=json_logs, level=_state.log_level or "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _load_settings_or_exit(config: Path) -> FlowTesterSettings:
    try:
        return load_settings(config)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {config}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


@app.command()
def serve(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to settings YAML."),
    ],
    host: Annotated[str | None, typer.Option("--host", "-h", help="Host to bind to (overrides config).")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port to listen on (overrides config).", min=1, max=65535)] = None,
) -> None:
    """Serve the control surface over an in-memory graph built from config."""
    import uvicorn

    from flowtester.core.events import EventBus
    from flowtester.core.logging import configure_logging, get_logger
    from flowtester.engine.orchestrator import TestOrchestrator
    from flowtester.plugins.manager import AddonRegistry
    from flowtester.server.app import create_app
    from flowtester.testing.graph import InMemoryGraph

    settings = _load_settings_or_exit(config)
    configure_logging(
        json_output=_state.json_logs or settings.logging.json_output,
        level=_state.log_level or settings.logging.level,
    )

    graph = InMemoryGraph.from_settings(settings.graph)
    registry = AddonRegistry()
    registry.register_builtin_addons()
    registry.load_entrypoint_addons()
    registry.attach(graph)

    bus = EventBus()
    orchestrator = TestOrchestrator(graph, registry, suites=settings.suites, engine=settings.engine, bus=bus)
    asgi_app = create_app(orchestrator, bus)

    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    get_logger(__name__).info(
        "serving",
        host=bind_host,
        port=bind_port,
        nodes=len(graph.node_ids),
        suites=len(settings.suites),
        addons=registry.names(),
    )
    uvicorn.run(asgi_app, host=bind_host, port=bind_port, log_config=None)


def _client(target: str) -> httpx.Client:
    # Runs last as long as their wait bound; only connecting is time-limited.
    return httpx.Client(base_url=target, timeout=httpx.Timeout(10.0, read=None))


def _get_json(client: httpx.Client, path: str) -> Any:
    try:
        response = client.get(path)
    except httpx.HTTPError as e:
        typer.echo(f"Error: cannot reach {client.base_url}: {e}", err=True)
        raise typer.Exit(1) from None
    if response.is_error:
        try:
            message = response.json().get("error", response.text)
        except ValueError:
            message = response.text
        typer.echo(f"Error: {response.status_code} {message}", err=True)
        raise typer.Exit(1)
    return response.json()


def _flatten(suites: list[dict[str, Any]]) -> list[tuple[dict[str, Any], dict[str, Any]]]:
    return [(suite, test) for suite in suites for test in suite["tests"]]


@app.command("list")
def list_tests(
    target: Annotated[str, typer.Option("--target", "-t", help="Control server URL.")] = DEFAULT_TARGET,
    json_output: Annotated[bool, typer.Option("--json", help="Print the raw test-case list as JSON.")] = False,
) -> None:
    """List test cases with the numbers ``run`` accepts."""
    with _client(target) as client:
        suites = _get_json(client, "/flow-tester/testCase")

    if json_output:
        typer.echo(json.dumps(suites, indent=2))
        return

    number = 0
    for suite in suites:
        typer.echo(f"{suite['name'] or suite['id']}")
        for test in suite["tests"]:
            typer.echo(f"  {number}: {test['name'] or test['id']}")
            number += 1
    if number == 0:
        typer.echo("No test cases.")


@app.command()
def run(
    no: Annotated[int, typer.Argument(help="Test number as printed by 'flowtester list' (counted from 0).", min=0)],
    target: Annotated[str, typer.Option("--target", "-t", help="Control server URL.")] = DEFAULT_TARGET,
) -> None:
    """Run one test case and print its result document.

    Exits 1 unless the run completed with no failed check.
    """
    with _client(target) as client:
        tests = _flatten(_get_json(client, "/flow-tester/testCase"))
        if no >= len(tests):
            typer.echo(f"Error: no test number {no} (found {len(tests)})", err=True)
            raise typer.Exit(1)
        suite, test = tests[no]
        result = _get_json(client, f"/flow-tester/runTestCase/{suite['id']}/{test['id']}")

    typer.echo(json.dumps(result, indent=2))
    if result["info"]["status"] != "completed" or result["result"]["fail"] > 0:
        raise typer.Exit(1)
