"""Tests for typed value coercion and payload matching."""

import re

import pytest

from flowtester.contracts import ActionError, UnexpectedValueTypeError
from flowtester.engine.clock import MockClock
from flowtester.engine.values import coerce_value, deep_equal, payload_matches


class TestCoerceValue:
    """One test per source type, plus failure modes."""

    @pytest.mark.parametrize(
        ("source_type", "raw", "expected"),
        [
            ("str", 5, "5"),
            ("str", None, ""),
            ("num", "42", 42),
            ("num", "-1.5", -1.5),
            ("num", 7, 7),
            ("bool", "true", True),
            ("bool", " TRUE ", True),
            ("bool", "yes", False),
            ("bool", True, True),
            ("json", '{"a": [1, 2]}', {"a": [1, 2]}),
            ("json", {"already": "parsed"}, {"already": "parsed"}),
            ("bin", "[104, 105]", b"hi"),
            ("bin", "hello", b"hello"),
            ("bin", [0, 255], b"\x00\xff"),
        ],
    )
    def test_conversions(self, source_type: str, raw: object, expected: object) -> None:
        result = coerce_value(source_type, raw)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(("source_type", "raw"), [("num", "abc"), ("num", True), ("json", "{bad"), ("bin", [300]), ("re", "(")])
    def test_invalid_values(self, source_type: str, raw: object) -> None:
        with pytest.raises(ActionError):
            coerce_value(source_type, raw)

    def test_regex(self) -> None:
        pattern = coerce_value("re", "^ab+$")
        assert isinstance(pattern, re.Pattern)
        assert pattern.pattern == "^ab+$"

    def test_date_uses_clock(self) -> None:
        assert coerce_value("date", "", clock=MockClock(start_ms=123)) == 123

    def test_expression_reads_message(self) -> None:
        assert coerce_value("jsonata", "msg.payload * 2", msg={"payload": 21}) == 42

    def test_expression_failure_is_action_error(self) -> None:
        with pytest.raises(ActionError, match="failed"):
            coerce_value("jsonata", "msg.missing", msg={"payload": 1})

    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FT_VALUE", "from-env")
        monkeypatch.delenv("FT_UNSET", raising=False)

        assert coerce_value("env", "FT_VALUE") == "from-env"
        assert coerce_value("env", "FT_UNSET") == ""

    def test_unknown_type(self) -> None:
        with pytest.raises(UnexpectedValueTypeError, match="xml"):
            coerce_value("xml", "<a/>")


class TestDeepEqual:
    def test_nested_structures(self) -> None:
        assert deep_equal({"a": [1, {"b": "c"}]}, {"a": [1, {"b": "c"}]}) is True
        assert deep_equal({"a": [1, 2]}, {"a": [1, 3]}) is False
        assert deep_equal({"a": 1}, {"a": 1, "b": 2}) is False

    def test_booleans_never_equal_numbers(self) -> None:
        assert deep_equal(True, 1) is False
        assert deep_equal(0, False) is False
        assert deep_equal(True, True) is True

    def test_int_and_float(self) -> None:
        assert deep_equal(1, 1.0) is True

    def test_string_never_equals_number(self) -> None:
        assert deep_equal("1", 1) is False

    def test_list_and_tuple(self) -> None:
        assert deep_equal([1, 2], (1, 2)) is True


class TestPayloadMatches:
    def test_equal_payload(self) -> None:
        assert payload_matches("ok", {"payload": "ok"}) is True
        assert payload_matches("ok", {"payload": "no"}) is False

    def test_missing_message_or_payload(self) -> None:
        assert payload_matches("ok", None) is False
        assert payload_matches(None, {"topic": "x"}) is False

    def test_pattern_searches_string_payload(self) -> None:
        assert payload_matches(re.compile(r"\d+"), {"payload": "order 66"}) is True
        assert payload_matches(re.compile(r"^\d+$"), {"payload": "order 66"}) is False

    def test_pattern_against_non_string(self) -> None:
        assert payload_matches(re.compile("1"), {"payload": 1}) is False
