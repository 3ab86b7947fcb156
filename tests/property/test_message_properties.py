# tests/property/test_message_properties.py
"""Property-based tests for message property paths and value comparison.

Property Path Properties:
- render then parse returns the original parts
- A value written with set_message_property reads back unchanged

deep_equal Properties:
- Reflexive on JSON-like values
- Symmetric
- Booleans never equal numbers
"""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from flowtester.engine.properties import (
    get_message_property,
    parse_property_path,
    render_property_path,
    set_message_property,
)
from flowtester.engine.values import deep_equal

# =============================================================================
# Strategies
# =============================================================================

identifiers = st.from_regex(r"[A-Za-z_][A-Za-z0-9_]{0,7}", fullmatch=True)

# Keys that need the quoted bracket form
spaced_keys = st.text(alphabet="abc XYZ-", min_size=1, max_size=8).filter(lambda s: s.strip() == s and " " in s)

path_parts = st.one_of(identifiers, spaced_keys, st.integers(min_value=0, max_value=50))

paths = st.tuples(identifiers, st.lists(path_parts, max_size=5)).map(lambda t: [t[0], *t[1]])

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.floats(allow_nan=False) | st.text(max_size=10),
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(max_size=5), children, max_size=4),
    max_leaves=20,
)


class TestPropertyPathProperties:
    @given(parts=paths)
    def test_render_parse_round_trip(self, parts: list[str | int]) -> None:
        """Property: parse(render(parts)) == parts."""
        assert parse_property_path(render_property_path(parts)) == parts

    @given(parts=paths, value=json_values)
    def test_set_then_get(self, parts: list[str | int], value: Any) -> None:
        """Property: a written value reads back at the same path."""
        target: dict[str, Any] = {}
        expression = render_property_path(parts)

        set_message_property(target, expression, value)

        assert deep_equal(get_message_property(target, expression), value)


class TestDeepEqualProperties:
    @given(value=json_values)
    def test_reflexive(self, value: Any) -> None:
        assert deep_equal(value, value)

    @given(left=json_values, right=json_values)
    def test_symmetric(self, left: Any, right: Any) -> None:
        assert deep_equal(left, right) == deep_equal(right, left)

    @given(flag=st.booleans(), number=st.integers(min_value=0, max_value=1) | st.sampled_from([0.0, 1.0]))
    def test_booleans_never_equal_numbers(self, flag: bool, number: int | float) -> None:
        assert not deep_equal(flag, number)
        assert not deep_equal([flag], [number])
