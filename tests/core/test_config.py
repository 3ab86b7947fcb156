"""Tests for configuration models and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from flowtester.contracts import EventCategory, TestCaseNotFoundError
from flowtester.core.config import (
    DEFAULT_MAX_ACTIONS,
    DEFAULT_TIMEOUT_MS,
    ActionSpec,
    FlowTesterSettings,
    GraphSettings,
    TestCaseSettings,
    TestSuiteSettings,
    _expand_env_vars,
    find_test_case,
    load_settings,
)

SETTINGS_YAML = """\
server:
  port: 1999
graph:
  nodes:
    - id: inject
      wires: [check]
    - id: check
suites:
  - id: s1
    name: Basics
    tests:
      - id: t1
        name: passes ok through
        timeout: 250
        actions:
          setup:
            global:
              - kind: send
                target: inject
                value: ok
          recv:
            check:
              - kind: match
                value: ok
"""


class TestActionSpec:
    """Tests for scripted action specs."""

    def test_extra_fields_kept_as_payload(self) -> None:
        spec = ActionSpec.model_validate({"kind": "send", "target": "n1", "value": 5})

        assert spec.payload() == {"target": "n1", "value": 5}

    def test_check_defaults_by_kind(self) -> None:
        assert ActionSpec(kind="match").perform_check is True
        assert ActionSpec(kind="log").perform_check is False

    def test_check_override(self) -> None:
        assert ActionSpec(kind="match", check=False).perform_check is False
        assert ActionSpec.model_validate({"kind": "function", "check": True}).perform_check is True

    def test_kind_required(self) -> None:
        with pytest.raises(ValidationError):
            ActionSpec.model_validate({"value": 1})

    def test_frozen(self) -> None:
        spec = ActionSpec(kind="log")
        with pytest.raises(ValidationError):
            spec.kind = "send"  # type: ignore[misc]


class TestTestCaseSettings:
    """Tests for test case and suite models."""

    def test_defaults(self) -> None:
        test = TestCaseSettings(id="t1")

        assert test.timeout == DEFAULT_TIMEOUT_MS
        assert test.max_actions is None
        assert test.actions == {}

    def test_actions_keyed_by_event_category(self) -> None:
        test = TestCaseSettings.model_validate({"id": "t1", "actions": {"recv": {"n1": [{"kind": "match", "value": 1}]}}})

        assert list(test.actions) == [EventCategory.RECV]
        assert test.actions[EventCategory.RECV]["n1"][0].kind == "match"

    def test_unknown_event_category_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TestCaseSettings.model_validate({"id": "t1", "actions": {"onclick": {}}})

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TestCaseSettings(id="t1", timeout=0)

    def test_duplicate_test_ids_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate test ids"):
            TestSuiteSettings(id="s1", tests=[TestCaseSettings(id="t1"), TestCaseSettings(id="t1")])

    def test_duplicate_suite_ids_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate suite ids"):
            FlowTesterSettings(suites=[TestSuiteSettings(id="s1"), TestSuiteSettings(id="s1")])


class TestGraphSettings:
    """Tests for graph topology validation."""

    def test_unknown_wire_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown nodes"):
            GraphSettings.model_validate({"nodes": [{"id": "a", "wires": ["b"]}]})

    def test_duplicate_node_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate graph node ids"):
            GraphSettings.model_validate({"nodes": [{"id": "a"}, {"id": "a"}]})


class TestFindTestCase:
    """Tests for test case lookup."""

    def test_found(self) -> None:
        suites = [TestSuiteSettings(id="s1", tests=[TestCaseSettings(id="t1")])]

        suite, test = find_test_case(suites, "s1", "t1")

        assert (suite.id, test.id) == ("s1", "t1")

    @pytest.mark.parametrize(("suite_id", "test_id"), [("s1", "nope"), ("nope", "t1")])
    def test_not_found(self, suite_id: str, test_id: str) -> None:
        suites = [TestSuiteSettings(id="s1", tests=[TestCaseSettings(id="t1")])]

        with pytest.raises(TestCaseNotFoundError):
            find_test_case(suites, suite_id, test_id)


class TestExpandEnvVars:
    """Tests for ${VAR} expansion."""

    def test_expands_set_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FT_TARGET", "inject")
        assert _expand_env_vars({"a": ["${FT_TARGET}"]}) == {"a": ["inject"]}

    def test_default_used_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FT_MISSING", raising=False)
        assert _expand_env_vars("${FT_MISSING:-fallback}") == "fallback"

    def test_unset_without_default_left_alone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FT_MISSING", raising=False)
        assert _expand_env_vars("${FT_MISSING}") == "${FT_MISSING}"


class TestLoadSettings:
    """Tests for YAML + environment loading."""

    def test_load_from_yaml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML)

        settings = load_settings(config_file)

        assert settings.server.port == 1999
        assert settings.engine.max_actions == DEFAULT_MAX_ACTIONS
        assert [node.id for node in settings.graph.nodes] == ["inject", "check"]
        test = settings.suites[0].tests[0]
        assert test.timeout == 250
        assert test.actions[EventCategory.SETUP]["global"][0].payload() == {"target": "inject", "value": "ok"}

    def test_load_with_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML)
        monkeypatch.setenv("FLOWTESTER_SERVER__PORT", "9000")

        settings = load_settings(config_file)

        assert settings.server.port == 9000

    def test_load_validates_schema(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("engine:\n  max_actions: 0\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_load_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nonexistent.yaml")
