# src/flowtester/core/config.py
"""Configuration schema and loading for flowtester.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Every model is frozen: a test case is immutable once loaded for a run.

Example settings.yaml:

    server:
      port: 1880
    engine:
      default_timeout_ms: 5000
      max_actions: 1000
    graph:
      nodes:
        - id: inject
          wires: [double]
        - id: double
    suites:
      - id: s1
        name: Arithmetic
        tests:
          - id: t1
            name: doubles payload
            timeout: 2000
            actions:
              setup:
                global:
                  - kind: send
                    target: inject
                    value: "ok"
              recv:
                double:
                  - kind: match
                    value: "ok"
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from flowtester.contracts.actions import default_perform_check
from flowtester.contracts.enums import EventCategory
from flowtester.contracts.errors import TestCaseNotFoundError

# Wait bound for a test case that does not declare its own timeout.
DEFAULT_TIMEOUT_MS = 5000

# Action ceiling for a run that does not declare its own.
DEFAULT_MAX_ACTIONS = 1000


class ServerSettings(BaseModel):
    """Control-plane HTTP server binding."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(default="127.0.0.1", description="Address to bind")
    port: int = Field(default=1880, ge=1, le=65535, description="Port to listen on")


class EngineSettings(BaseModel):
    """Engine-wide defaults applied when a test case is silent."""

    model_config = {"frozen": True, "extra": "forbid"}

    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    max_actions: int = Field(default=DEFAULT_MAX_ACTIONS, gt=0)


class LoggingSettings(BaseModel):
    """Log rendering options (CLI flags take precedence)."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False


class GraphNodeSettings(BaseModel):
    """One node of the in-memory graph served by ``flowtester serve``.

    ``passthrough`` nodes forward every message to their wires; ``sink``
    nodes consume messages without emitting.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(min_length=1)
    wires: list[str] = Field(default_factory=list)
    handler: Literal["passthrough", "sink"] = "passthrough"


class GraphSettings(BaseModel):
    """Topology of the in-memory graph."""

    model_config = {"frozen": True, "extra": "forbid"}

    nodes: list[GraphNodeSettings] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_wires(self) -> "GraphSettings":
        """Node ids are unique and every wire names a known node."""
        ids = [node.id for node in self.nodes]
        duplicates = sorted({node_id for node_id in ids if ids.count(node_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate graph node ids: {duplicates}")
        known = set(ids)
        for node in self.nodes:
            unknown = [wire for wire in node.wires if wire not in known]
            if unknown:
                raise ValueError(f"Node '{node.id}' is wired to unknown nodes: {unknown}")
        return self


class ActionSpec(BaseModel):
    """A scripted step as written in configuration.

    ``kind`` selects the action; every other key is kind-specific payload and
    is kept verbatim. ``check`` overrides whether the action's outcome counts
    toward the expected-checks total.
    """

    model_config = {"frozen": True, "extra": "allow"}

    kind: str = Field(min_length=1)
    check: bool | None = None

    @property
    def perform_check(self) -> bool:
        if self.check is not None:
            return self.check
        return default_perform_check(self.kind)

    def payload(self) -> dict[str, Any]:
        """Kind-specific fields, without ``kind`` and ``check``."""
        return dict(self.model_extra or {})


ActionGroups = dict[EventCategory, dict[str, list[ActionSpec]]]


class TestCaseSettings(BaseModel):
    """A single test case: timeout, ceiling and per-event action groups."""

    __test__ = False  # not a pytest test class

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(min_length=1)
    name: str = ""
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Wait bound in milliseconds")
    max_actions: int | None = Field(default=None, gt=0, description="Action ceiling for this test case")
    actions: ActionGroups = Field(default_factory=dict)


class TestSuiteSettings(BaseModel):
    """An ordered collection of test cases."""

    __test__ = False  # not a pytest test class

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(min_length=1)
    name: str = ""
    tests: list[TestCaseSettings] = Field(default_factory=list)

    @field_validator("tests")
    @classmethod
    def validate_unique_test_ids(cls, v: list[TestCaseSettings]) -> list[TestCaseSettings]:
        ids = [test.id for test in v]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate test ids in suite: {ids}")
        return v


class FlowTesterSettings(BaseModel):
    """Top-level flowtester configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    server: ServerSettings = Field(default_factory=ServerSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    suites: list[TestSuiteSettings] = Field(default_factory=list)

    @field_validator("suites")
    @classmethod
    def validate_unique_suite_ids(cls, v: list[TestSuiteSettings]) -> list[TestSuiteSettings]:
        ids = [suite.id for suite in v]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate suite ids: {ids}")
        return v


def find_test_case(
    suites: list[TestSuiteSettings],
    suite_id: str,
    test_id: str,
) -> tuple[TestSuiteSettings, TestCaseSettings]:
    """Look up a test case by suite and test id.

    Raises:
        TestCaseNotFoundError: If either id is unknown
    """
    for suite in suites:
        if suite.id != suite_id:
            continue
        for test in suite.tests:
            if test.id == test_id:
                return suite, test
    raise TestCaseNotFoundError(suite_id, test_id)


# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values.

    Unset variables without a default are left untouched.
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            return default if default is not None else match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def load_settings(config_path: Path) -> FlowTesterSettings:
    """Load settings from a YAML file with environment overrides.

    Precedence, highest first:
    1. Environment variables (FLOWTESTER_*, nested keys with ``__``,
       e.g. FLOWTESTER_SERVER__PORT=9000)
    2. The config file
    3. Pydantic defaults

    Raises:
        FileNotFoundError: If the config file does not exist
        ValidationError: If the merged configuration is invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="FLOWTESTER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf upper-cases top-level keys and mixes in its own settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return FlowTesterSettings(**_expand_env_vars(raw_config))
