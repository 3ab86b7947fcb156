# src/flowtester/engine/values.py
"""Typed value coercion and payload comparison for ``send``/``set``/``match``.

Action payloads carry a raw value plus a type tag (``vt`` on ``send`` and
``match``, ``src.type`` on ``set``). ``coerce_value`` turns the pair into the
Python value the action uses.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any

from flowtester.contracts.enums import SourceType
from flowtester.contracts.errors import ActionError, UnexpectedValueTypeError
from flowtester.contracts.runtime import Message
from flowtester.engine.clock import DEFAULT_CLOCK, Clock
from flowtester.engine.expression_parser import (
    ExpressionEvaluationError,
    ExpressionParser,
    ExpressionSecurityError,
    ExpressionSyntaxError,
)

_INTEGER = re.compile(r"[+-]?\d+")


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise ActionError(f"Invalid number: {value!r}")
    if isinstance(value, int | float):
        return value
    text = str(value).strip()
    try:
        return int(text) if _INTEGER.fullmatch(text) else float(text)
    except ValueError as e:
        raise ActionError(f"Invalid number: {value!r}") from e


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return value.encode("utf-8")
        value = decoded
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise ActionError(f"Invalid byte list: {value!r}") from e
    if isinstance(value, str):
        return value.encode("utf-8")
    raise ActionError(f"Cannot convert {type(value).__name__} to bytes")


def coerce_value(
    source_type: str,
    value: Any,
    msg: Message | None = None,
    clock: Clock = DEFAULT_CLOCK,
) -> Any:
    """Convert ``value`` according to ``source_type``.

    Args:
        source_type: One of the ``SourceType`` wire names
        value: Raw value from the action payload
        msg: Message in scope, used by expression values
        clock: Time source for ``date`` values

    Returns:
        The coerced value

    Raises:
        UnexpectedValueTypeError: If ``source_type`` is unknown
        ActionError: If ``value`` cannot be converted
    """
    try:
        kind = SourceType(source_type)
    except ValueError:
        raise UnexpectedValueTypeError(str(source_type)) from None

    if kind == SourceType.STR:
        return "" if value is None else str(value)
    if kind == SourceType.NUM:
        return _to_number(value)
    if kind == SourceType.BOOL:
        return value is True or (isinstance(value, str) and value.strip().lower() == "true")
    if kind == SourceType.JSON:
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ActionError(f"Invalid JSON value: {e}") from e
    if kind == SourceType.BIN:
        return _to_bytes(value)
    if kind == SourceType.RE:
        try:
            return re.compile(str(value))
        except re.error as e:
            raise ActionError(f"Invalid regular expression {value!r}: {e}") from e
    if kind == SourceType.DATE:
        return clock.now_ms()
    if kind == SourceType.JSONATA:
        try:
            return ExpressionParser(str(value)).evaluate(msg if msg is not None else {})
        except (ExpressionSyntaxError, ExpressionSecurityError, ExpressionEvaluationError) as e:
            raise ActionError(f"Expression {value!r} failed: {e}") from e
    # SourceType.ENV
    return os.environ.get(str(value), "")


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality that never equates booleans with numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, int | float) and isinstance(right, int | float):
        return left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[key], right[key]) for key in left)
    if isinstance(left, list | tuple) and isinstance(right, list | tuple):
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right, strict=True))
    if isinstance(left, re.Pattern) and isinstance(right, re.Pattern):
        return left.pattern == right.pattern and left.flags == right.flags
    return type(left) is type(right) and left == right


def payload_matches(expected: Any, msg: Message | None) -> bool:
    """Compare ``expected`` with ``msg["payload"]``.

    A compiled pattern matches when it is found in a string payload. A
    missing message never matches.
    """
    if msg is None or "payload" not in msg:
        return False
    actual = msg["payload"]
    if isinstance(expected, re.Pattern) and isinstance(actual, str):
        return expected.search(actual) is not None
    return deep_equal(expected, actual)
