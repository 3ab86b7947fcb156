# src/flowtester/engine/evaluator.py
"""Evaluation of user-supplied ``function`` action code.

The engine depends only on ``FunctionEvaluator``. ``PythonEvaluator`` compiles
the code as the body of an ``async def`` so it may ``return`` a value and
``await`` coroutines, then runs it in a fresh namespace per call: nothing one
action defines is visible to the next.

Failures, compile errors included, come back as an unsuccessful
``EvaluationResult`` rather than an exception.
"""

from __future__ import annotations

import textwrap
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from flowtester.core.logging import get_logger

slog = get_logger(__name__)

_ENTRYPOINT = "__flowtester_function__"


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one evaluation."""

    ok: bool
    value: Any = None
    error: str | None = None


class FunctionEvaluator(Protocol):
    """Runs code with a set of named bindings."""

    async def evaluate(self, code: str, bindings: Mapping[str, Any]) -> EvaluationResult: ...


class PythonEvaluator:
    """Evaluates Python source with the bindings as globals.

    Example:
        result = await PythonEvaluator().evaluate(
            "return msg['payload'] * 2",
            {"msg": {"payload": 21}},
        )
        assert result.value == 42
    """

    def __init__(self, filename: str = "<function action>") -> None:
        self._filename = filename

    def _compile(self, code: str) -> Any:
        body = textwrap.indent(textwrap.dedent(code).strip() or "pass", "    ")
        return compile(f"async def {_ENTRYPOINT}():\n{body}\n", self._filename, "exec")

    async def evaluate(self, code: str, bindings: Mapping[str, Any]) -> EvaluationResult:
        try:
            compiled = self._compile(code)
        except SyntaxError as e:
            return EvaluationResult(ok=False, error=f"syntax error on line {e.lineno}: {e.msg}")

        namespace: dict[str, Any] = dict(bindings)
        exec(compiled, namespace)
        try:
            value = await namespace[_ENTRYPOINT]()
        except Exception as e:
            slog.debug("function_action_raised", error_type=type(e).__name__, error=str(e))
            return EvaluationResult(ok=False, error=f"{type(e).__name__}: {e}")
        return EvaluationResult(ok=True, value=value)
