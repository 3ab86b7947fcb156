# src/flowtester/engine/properties.py
"""Message property paths and context-store keys.

Property expressions address a value inside a message or a context store:

    payload
    payload.items[0].name
    payload["key with spaces"]
    counts[msg.topic]          nested reference, resolved against a message

Context keys may carry a store prefix, ``#:(file)::counter``, selecting a
named context store.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from flowtester.contracts.errors import ActionError

PathPart = str | int

_IDENTIFIER = re.compile(r"[^.\[\]]+")
_PLAIN_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_INDEX = re.compile(r"\d+")
_STORE_PREFIX = re.compile(r"^#:\((\S+?)\)::(.*)$")

# Largest number of None slots one write may add to pad a list.
MAX_LIST_PADDING = 10_000


@dataclass(frozen=True)
class ContextKey:
    """A context key split from its optional store name."""

    key: str
    store: str | None = None


def parse_context_store(key: str) -> ContextKey:
    """Split ``#:(store)::key`` into its parts.

    Keys without a prefix use the default store (``store=None``).
    """
    match = _STORE_PREFIX.match(key)
    if match:
        return ContextKey(key=match.group(2), store=match.group(1))
    return ContextKey(key=key)


def has_nested_reference(expression: str) -> bool:
    """True when ``expression`` contains a ``[msg...]`` reference."""
    return "[msg" in expression


def _read_bracket(text: str, start: int, msg: dict[str, Any] | None) -> tuple[PathPart, int]:
    """Read one ``[...]`` segment beginning at ``text[start] == '['``.

    Returns:
        The segment value and the index just past the closing bracket
    """
    pos = start + 1
    if pos >= len(text):
        raise ActionError(f"Unterminated '[' in property expression: {text!r}")

    quote = text[pos]
    if quote in ("'", '"'):
        end = pos + 1
        chars: list[str] = []
        while end < len(text) and text[end] != quote:
            if text[end] == "\\" and end + 1 < len(text):
                end += 1
            chars.append(text[end])
            end += 1
        if end + 1 >= len(text) or text[end + 1] != "]":
            raise ActionError(f"Unterminated quoted key in property expression: {text!r}")
        return "".join(chars), end + 2

    index = _INDEX.match(text, pos)
    if index:
        if index.end() >= len(text) or text[index.end()] != "]":
            raise ActionError(f"Invalid array index in property expression: {text!r}")
        return int(index.group(0)), index.end() + 1

    if text.startswith("msg", pos):
        depth = 1
        end = pos
        while end < len(text) and depth:
            if text[end] == "[":
                depth += 1
            elif text[end] == "]":
                depth -= 1
            end += 1
        if depth:
            raise ActionError(f"Unterminated nested reference in property expression: {text!r}")
        inner = text[pos : end - 1]
        if msg is None:
            raise ActionError(f"Nested reference {inner!r} needs a message in scope")
        inner_path = inner[len("msg") :].lstrip(".")
        if not inner_path:
            raise ActionError(f"Empty nested reference in property expression: {text!r}")
        value = get_message_property(msg, inner_path)
        if isinstance(value, bool) or not isinstance(value, str | int):
            raise ActionError(f"Nested reference {inner!r} resolved to {value!r}, expected a string or integer")
        return value, end

    raise ActionError(f"Invalid '[' segment in property expression: {text!r}")


def parse_property_path(expression: str, msg: dict[str, Any] | None = None) -> list[PathPart]:
    """Split a property expression into path parts.

    Args:
        expression: Property expression, e.g. ``payload.items[0]``
        msg: Message used to resolve nested ``[msg...]`` references

    Raises:
        ActionError: If the expression is malformed or a nested reference
            cannot be resolved
    """
    text = expression.strip()
    if not text:
        raise ActionError("Empty property expression")

    parts: list[PathPart] = []
    pos = 0
    expect_name = True
    after_dot = False
    while pos < len(text):
        char = text[pos]
        if char == "[":
            if after_dot or not parts:
                raise ActionError(f"Unexpected '[' in property expression: {text!r}")
            part, pos = _read_bracket(text, pos, msg)
            parts.append(part)
            expect_name = False
            continue
        if char == ".":
            if expect_name:
                raise ActionError(f"Unexpected '.' in property expression: {text!r}")
            expect_name = True
            after_dot = True
            pos += 1
            continue
        if not expect_name:
            raise ActionError(f"Missing '.' in property expression: {text!r}")
        match = _IDENTIFIER.match(text, pos)
        if match is None:
            raise ActionError(f"Invalid property expression: {text!r}")
        parts.append(match.group(0))
        pos = match.end()
        expect_name = False
        after_dot = False

    if expect_name:
        raise ActionError(f"Property expression ends with '.': {text!r}")
    return parts


def render_property_path(parts: list[PathPart]) -> str:
    """Inverse of ``parse_property_path`` for already-resolved parts."""
    if not parts:
        raise ValueError("Cannot render an empty property path")
    rendered: list[str] = []
    for position, part in enumerate(parts):
        if isinstance(part, int):
            rendered.append(f"[{part}]")
        elif _PLAIN_IDENTIFIER.fullmatch(part):
            rendered.append(part if position == 0 else f".{part}")
        else:
            rendered.append(f"[{json.dumps(part)}]")
    return "".join(rendered)


def normalise_property_expression(expression: str, msg: dict[str, Any] | None) -> str:
    """Resolve nested ``[msg...]`` references and return the flat expression."""
    return render_property_path(parse_property_path(expression, msg))


def get_message_property(target: dict[str, Any], expression: str) -> Any:
    """Read a property, returning None when any segment is missing."""
    current: Any = target
    for part in parse_property_path(expression, target):
        if isinstance(part, int) and isinstance(current, list):
            if part >= len(current):
                return None
            current = current[part]
        elif isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


def set_message_property(target: dict[str, Any], expression: str, value: Any, msg: dict[str, Any] | None = None) -> None:
    """Write a property, creating missing containers along the way.

    An integer segment creates a list, any other segment creates a dict.

    Args:
        target: Message or store dict to write into
        expression: Property expression
        value: Value to write
        msg: Message for nested references (defaults to ``target``)

    Raises:
        ActionError: If an intermediate value is neither a dict nor a list
    """
    parts = parse_property_path(expression, target if msg is None else msg)
    current: Any = target
    for position, part in enumerate(parts):
        last = position == len(parts) - 1
        if isinstance(current, list):
            if not isinstance(part, int):
                raise ActionError(f"Cannot use key {part!r} on a list in {expression!r}")
            if part - len(current) > MAX_LIST_PADDING:
                raise ActionError(f"Index {part} in {expression!r} is too far past the end of a list of length {len(current)}")
            while len(current) <= part:
                current.append(None)
        elif isinstance(current, dict):
            pass
        else:
            raise ActionError(f"Cannot set {expression!r}: {type(current).__name__} is not a container")

        if last:
            current[part] = value
            return
        child = current[part] if not isinstance(current, dict) else current.get(part)
        if child is None:
            child = [] if isinstance(parts[position + 1], int) else {}
            current[part] = child
        current = child
