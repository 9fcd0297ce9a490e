from __future__ import annotations

import math
from typing import Any, Awaitable, Callable, Mapping

from ..types import EvaluationError, EvaluatorState

EvalFunc = Callable[[Any, EvaluatorState], Awaitable[Any]]

def is_truthy(value: Any) -> bool:
    if value is None or value is False:
        return False

    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))

    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) > 0

    return True

def category(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__

def parse_number(text: str) -> int | float | None:
    """Numeric value of a string, or None when it does not spell a number."""
    stripped = text.strip()
    if not stripped:
        return 0

    try:
        number = float(stripped)
    except ValueError:
        return None

    if number.is_integer() and not any(ch in stripped for ch in ".eE"):
        return int(number)
    return number

def to_number(value: Any, operator: str) -> int | float:
    if isinstance(value, bool):
        return int(value)

    if isinstance(value, (int, float)):
        return value

    if isinstance(value, str):
        number = parse_number(value)
        if number is not None:
            return number

    raise EvaluationError(f"Operator '{operator}' expects numbers, got {category(value)}")

def strict_equals(left: Any, right: Any) -> bool:
    if category(left) != category(right):
        return False
    return left == right

def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool):
        left = int(left)
    if isinstance(right, bool):
        right = int(right)

    if isinstance(left, (int, float)) and isinstance(right, str):
        return left == parse_number(right)
    if isinstance(left, str) and isinstance(right, (int, float)):
        return parse_number(left) == right

    return left == right
