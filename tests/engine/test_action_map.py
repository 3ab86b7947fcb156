"""Tests for action registration and lookup."""

import pytest

from flowtester.contracts import ConfigurationError, EventCategory, UnknownEventCategoryError
from flowtester.core.config import ActionSpec
from flowtester.engine.action_map import ActionMap, parse_event_category


class TestParseEventCategory:
    def test_wire_names(self) -> None:
        assert parse_event_category("recv") == EventCategory.RECV
        assert parse_event_category(EventCategory.STUB) == EventCategory.STUB

    def test_unknown(self) -> None:
        with pytest.raises(UnknownEventCategoryError, match="onclick"):
            parse_event_category("onclick")


class TestActionMapRegister:
    def test_stamps_sequential_indices(self) -> None:
        action_map = ActionMap()

        next_index = action_map.register(
            "recv",
            {"a": [{"kind": "match", "value": 1}, {"kind": "log"}], "b": [{"kind": "match", "value": 2}]},
            suite_id="s1",
            test_id="t1",
            start_index=5,
        )

        assert next_index == 8
        first, second = action_map.lookup(EventCategory.RECV, "a")
        (third,) = action_map.lookup(EventCategory.RECV, "b")
        assert [first.index, second.index, third.index] == [5, 6, 7]
        assert (first.suite_id, first.test_id) == ("s1", "t1")
        assert first.perform_check is True
        assert second.perform_check is False
        assert dict(first.fields) == {"value": 1}

    def test_accepts_action_specs(self) -> None:
        action_map = ActionMap()

        action_map.register(EventCategory.SETUP, {"global": [ActionSpec(kind="send", target="n1")]})

        (action,) = action_map.lookup(EventCategory.SETUP, "global")
        assert action.get("target") == "n1"

    def test_repeated_registration_appends(self) -> None:
        action_map = ActionMap()

        next_index = action_map.register("recv", {"a": [{"kind": "log"}]})
        action_map.register("recv", {"a": [{"kind": "match"}]}, start_index=next_index)

        assert [action.kind for action in action_map.lookup(EventCategory.RECV, "a")] == ["log", "match"]
        assert [action.index for action in action_map] == [0, 1]

    def test_malformed_batch_stores_nothing(self) -> None:
        action_map = ActionMap()

        with pytest.raises(ConfigurationError):
            action_map.register("recv", {"a": [{"kind": "log"}], "b": [{"value": 1}]})

        assert len(action_map) == 0

    def test_non_mapping_action_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="mapping"):
            ActionMap().register("recv", {"a": [42]})  # type: ignore[list-item]

    def test_unknown_event_rejected(self) -> None:
        with pytest.raises(UnknownEventCategoryError):
            ActionMap().register("bogus", {})


class TestActionMapLookup:
    def test_missing_group_is_empty(self) -> None:
        assert ActionMap().lookup(EventCategory.SEND, "nope") == ()

    def test_global_group_first(self) -> None:
        action_map = ActionMap()
        action_map.register("setup", {"n1": [{"kind": "log"}], "global": [{"kind": "log"}], "n2": [{"kind": "log"}]})

        assert [node_id for node_id, _ in action_map.ordered_groups(EventCategory.SETUP)] == ["global", "n1", "n2"]

    def test_clear(self) -> None:
        action_map = ActionMap()
        action_map.register("setup", {"global": [{"kind": "log"}]})

        action_map.clear()

        assert len(action_map) == 0
        assert list(action_map.ordered_groups(EventCategory.SETUP)) == []
