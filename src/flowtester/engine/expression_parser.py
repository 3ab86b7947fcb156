# src/flowtester/engine/expression_parser.py
"""Safe expression evaluation for expression-typed action values.

``set`` and ``match`` accept an ``expression`` source (wire name
``jsonata``) whose value is computed from the current message, e.g.
``msg.payload * 2`` or ``len(msg.payload.items) > 0``.

Expressions are parsed with ``ast`` and checked against a whitelist before
evaluation. This is not ``eval()``:

1. Parse time: reject every construct outside the whitelist.
2. Evaluation: walk the validated tree against the message dict.

Dotted access on message data is a dict lookup, so ``msg.payload.a`` reads
``msg["payload"]["a"]``.
"""

from __future__ import annotations

import ast
import operator
from collections.abc import Callable
from typing import Any

from flowtester.contracts.runtime import Message


class ExpressionSecurityError(Exception):
    """Raised when an expression contains forbidden constructs."""


class ExpressionSyntaxError(Exception):
    """Raised when an expression is not valid Python syntax."""


class ExpressionEvaluationError(Exception):
    """Raised when a valid expression fails against the message.

    The underlying KeyError/TypeError/ZeroDivisionError is chained via
    ``__cause__``.
    """


_COMPARISON_OPS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

# Pure builtins callable by name.
_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
}

_CONSTANT_NAMES: dict[str, Any] = {"True": True, "False": False, "None": None}


class _ExpressionValidator(ast.NodeVisitor):
    """Collects every forbidden construct instead of stopping at the first."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def visit_Name(self, node: ast.Name) -> None:
        if node.id != "msg" and node.id not in _CONSTANT_NAMES:
            self.errors.append(f"Forbidden name: {node.id!r}")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self.errors.append(f"Forbidden attribute: {node.attr!r}")
        self.visit(node.value)

    def visit_Call(self, node: ast.Call) -> None:
        if not (isinstance(node.func, ast.Name) and node.func.id in _FUNCTIONS):
            self.errors.append(f"Forbidden function call: {ast.unparse(node.func)}")
        if node.keywords:
            self.errors.append("Keyword arguments are forbidden")
        for arg in node.args:
            self.visit(arg)

    def visit_Compare(self, node: ast.Compare) -> None:
        for op in node.ops:
            if type(op) not in _COMPARISON_OPS:
                self.errors.append(f"Forbidden comparison operator: {type(op).__name__}")
        self.generic_visit(node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if type(node.op) not in _BINARY_OPS:
            self.errors.append(f"Forbidden binary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if type(node.op) not in _UNARY_OPS:
            self.errors.append(f"Forbidden unary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_Slice(self, node: ast.Slice) -> None:
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if node.value is not None and not isinstance(node.value, str | int | float | bool):
            self.errors.append(f"Forbidden constant type: {type(node.value).__name__}")

    def visit_Dict(self, node: ast.Dict) -> None:
        if any(key is None for key in node.keys):
            self.errors.append("Dict spread (**) is forbidden")
        self.generic_visit(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.errors.append("Lambda expressions are forbidden")

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self.errors.append("Comprehensions are forbidden")

    visit_SetComp = visit_ListComp
    visit_DictComp = visit_ListComp
    visit_GeneratorExp = visit_ListComp

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.errors.append("Assignment expressions (:=) are forbidden")

    def visit_Await(self, node: ast.Await) -> None:
        self.errors.append("Await expressions are forbidden")

    def visit_JoinedStr(self, node: ast.JoinedStr) -> None:
        self.errors.append("F-strings are forbidden")

    def visit_Starred(self, node: ast.Starred) -> None:
        self.errors.append("Starred expressions (*) are forbidden")


class _ExpressionEvaluator(ast.NodeVisitor):
    """Evaluates a validated tree against one message."""

    def __init__(self, msg: Message) -> None:
        self._msg = msg

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id == "msg":
            return self._msg
        return _CONSTANT_NAMES[node.id]

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        if not isinstance(value, dict):
            raise ExpressionEvaluationError(f"Cannot read property '{node.attr}' of {type(value).__name__}")
        if node.attr not in value:
            raise ExpressionEvaluationError(f"Property '{node.attr}' not found. Available: {sorted(value)}")
        return value[node.attr]

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        key = self.visit(node.slice)
        try:
            return value[key]
        except (KeyError, IndexError, TypeError) as e:
            raise ExpressionEvaluationError(f"Cannot access {key!r} on {type(value).__name__}: {e}") from e

    def visit_Slice(self, node: ast.Slice) -> slice:
        lower = self.visit(node.lower) if node.lower else None
        upper = self.visit(node.upper) if node.upper else None
        step = self.visit(node.step) if node.step else None
        return slice(lower, upper, step)

    def visit_Call(self, node: ast.Call) -> Any:
        assert isinstance(node.func, ast.Name)  # guaranteed by validation
        func = _FUNCTIONS[node.func.id]
        args = [self.visit(arg) for arg in node.args]
        try:
            return func(*args)
        except (TypeError, ValueError) as e:
            raise ExpressionEvaluationError(f"{node.func.id}() failed: {e}") from e

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            try:
                if not _COMPARISON_OPS[type(op)](left, right):
                    return False
            except TypeError as e:
                raise ExpressionEvaluationError(
                    f"cannot compare {type(left).__name__} and {type(right).__name__} with {type(op).__name__}"
                ) from e
            left = right
        return True

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value in node.values:
            result = self.visit(value)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        left = self.visit(node.left)
        right = self.visit(node.right)
        try:
            return _BINARY_OPS[type(node.op)](left, right)
        except (TypeError, ZeroDivisionError) as e:
            raise ExpressionEvaluationError(f"{type(node.op).__name__} failed: {e}") from e

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        try:
            return _UNARY_OPS[type(node.op)](operand)
        except TypeError as e:
            raise ExpressionEvaluationError(f"unary {type(node.op).__name__} failed: {e}") from e

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_List(self, node: ast.List) -> list[Any]:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Set(self, node: ast.Set) -> set[Any]:
        try:
            return {self.visit(elt) for elt in node.elts}
        except TypeError as e:
            raise ExpressionEvaluationError(f"cannot create set literal: {e}") from e

    def visit_Dict(self, node: ast.Dict) -> dict[Any, Any]:
        try:
            return {self.visit(k): self.visit(v) for k, v in zip(node.keys, node.values, strict=True) if k is not None}
        except TypeError as e:
            raise ExpressionEvaluationError(f"cannot create dict literal: {e}") from e

    def generic_visit(self, node: ast.AST) -> Any:
        raise ExpressionSecurityError(f"Unsupported construct: {type(node).__name__}")


class ExpressionParser:
    """Parse once, evaluate against many messages.

    Allowed:
    - ``msg`` and dotted/subscript access into it
    - Literals, list/tuple/set/dict displays, slices
    - Arithmetic (+ - * / // %), comparisons, and/or/not, ternaries
    - Calls to len, str, int, float, bool, abs, round, min, max, sum, sorted

    Example:
        parser = ExpressionParser("msg.payload * 2")
        parser.evaluate({"payload": 21})  # 42
    """

    def __init__(self, expression: str) -> None:
        """Parse and validate.

        Raises:
            ExpressionSyntaxError: If the text is not a Python expression
            ExpressionSecurityError: If it uses forbidden constructs
        """
        self._expression = expression
        try:
            self._ast = ast.parse(expression.strip(), mode="eval")
        except SyntaxError as e:
            raise ExpressionSyntaxError(f"Invalid syntax: {e.msg}") from e

        validator = _ExpressionValidator()
        validator.visit(self._ast)
        if validator.errors:
            raise ExpressionSecurityError("; ".join(validator.errors))

    @property
    def expression(self) -> str:
        return self._expression

    def evaluate(self, msg: Message) -> Any:
        """Evaluate against ``msg``.

        Raises:
            ExpressionEvaluationError: If the message lacks a referenced
                property or an operation fails
        """
        return _ExpressionEvaluator(msg).visit(self._ast)

    def __repr__(self) -> str:
        return f"ExpressionParser({self._expression!r})"
