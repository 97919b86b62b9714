"""
Evaluation of render-engine filter expressions against feature properties.

Supports the subset of the Mapbox GL expression language used by legend
and search configurations:

    ["==", ["get", "csduid"], "2410"]
    ["all", [">=", ["get", "income"], 50000], ["<", ["get", "income"], 75000]]
    ["in", ["get", "province"], ["literal", ["QC", "ON"]]]
"""

import operator
from collections.abc import Callable, Mapping
from typing import Any

from lode.core.exceptions import ExpressionError

Properties = Mapping[str, Any]

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def evaluate(expression: Any, properties: Properties) -> Any:
    """Evaluate ``expression`` for a feature with the given ``properties``."""
    if not isinstance(expression, list | tuple):
        return expression
    if not expression:
        raise ExpressionError("Empty expression")

    op, *args = expression

    if op == "literal":
        _expect_args(op, args, 1)
        return args[0]
    if op == "get":
        _expect_args(op, args, 1)
        return properties.get(args[0])
    if op == "has":
        _expect_args(op, args, 1)
        return args[0] in properties
    if op in _COMPARISONS:
        _expect_args(op, args, 2)
        left, right = (evaluate(a, properties) for a in args)
        return _compare(op, left, right)
    if op == "!":
        _expect_args(op, args, 1)
        return not evaluate(args[0], properties)
    if op == "all":
        return all(evaluate(a, properties) for a in args)
    if op == "any":
        return any(evaluate(a, properties) for a in args)
    if op == "in":
        _expect_args(op, args, 2)
        needle, haystack = (evaluate(a, properties) for a in args)
        if haystack is None:
            return False
        return needle in haystack
    if op == "match":
        return _match(args, properties)
    if op == "case":
        return _case(args, properties)
    if op == "to-string":
        _expect_args(op, args, 1)
        value = evaluate(args[0], properties)
        return "" if value is None else str(value)
    if op == "to-number":
        _expect_args(op, args, 1)
        return _to_number(evaluate(args[0], properties))

    raise ExpressionError(f"Unsupported expression operator: {op!r}")


def matches(expression: Any, properties: Properties) -> bool:
    """True when a filter expression selects the feature. ``None`` selects everything."""
    if expression is None:
        return True
    return bool(evaluate(expression, properties))


def _expect_args(op: str, args: list[Any], count: int) -> None:
    if len(args) != count:
        raise ExpressionError(f"'{op}' expects {count} argument(s), got {len(args)}")


def _compare(op: str, left: Any, right: Any) -> bool:
    if op in ("==", "!="):
        return _COMPARISONS[op](left, right)
    # Ordering against a missing value is false, as in the render engine
    if left is None or right is None:
        return False
    try:
        return _COMPARISONS[op](left, right)
    except TypeError:
        return False


def _match(args: list[Any], properties: Properties) -> Any:
    if len(args) < 2 or len(args) % 2 != 0:
        raise ExpressionError("'match' expects an input, label/output pairs and a fallback")
    value = evaluate(args[0], properties)
    *pairs, fallback = args[1:]
    for label, output in zip(pairs[::2], pairs[1::2]):
        labels = label if isinstance(label, list | tuple) else [label]
        if value in labels:
            return evaluate(output, properties)
    return evaluate(fallback, properties)


def _case(args: list[Any], properties: Properties) -> Any:
    if len(args) < 1 or len(args) % 2 != 1:
        raise ExpressionError("'case' expects condition/output pairs and a fallback")
    *pairs, fallback = args
    for condition, output in zip(pairs[::2], pairs[1::2]):
        if evaluate(condition, properties):
            return evaluate(output, properties)
    return evaluate(fallback, properties)


def _to_number(value: Any) -> float | int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ExpressionError(f"Cannot convert {value!r} to a number") from e
