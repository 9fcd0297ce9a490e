from __future__ import annotations

import math
from typing import Any

from ..escape import stringify
from ..nodes import Binary, Comparison, Logical, Ternary, Unary
from ..types import EvaluationError, EvaluatorState
from .common import EvalFunc, category, is_truthy, loose_equals, parse_number, strict_equals, to_number

async def eval_unary(node: Unary, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    value = await eval_func(node.right, state)

    if node.operator == '!':
        return not is_truthy(value)

    return -to_number(value, '-')

def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float))

def _normalize(value: int | float) -> int | float:
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value

def apply_binary(op: str, left: Any, right: Any) -> Any:
    if op == '+' and (isinstance(left, str) or isinstance(right, str)):
        return stringify(left) + stringify(right)

    lhs = to_number(left, op)
    rhs = to_number(right, op)

    match op:
        case '+':
            return lhs + rhs
        case '-':
            return lhs - rhs
        case '*':
            return lhs * rhs
        case '/':
            if rhs == 0:
                raise EvaluationError("Division by zero")
            return _normalize(lhs / rhs)
        case '%':
            if rhs == 0:
                raise EvaluationError("Modulo by zero")
            # remainder takes the sign of the dividend
            result = math.fmod(lhs, rhs)
            return int(result) if isinstance(lhs, int) and isinstance(rhs, int) else result
        case '**':
            try:
                return lhs ** rhs
            except (OverflowError, ZeroDivisionError) as exc:
                raise EvaluationError(f"Invalid exponentiation: {exc}", cause=exc) from exc
        case _:
            raise EvaluationError(f"Unknown binary operator: {op}")

async def eval_binary(node: Binary, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    left = await eval_func(node.left, state)
    right = await eval_func(node.right, state)
    return apply_binary(node.operator, left, right)

async def eval_logical(node: Logical, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    """Short-circuit; the deciding operand is the result"""
    left = await eval_func(node.left, state)

    if node.operator == '&&':
        if not is_truthy(left):
            return left
    elif is_truthy(left):
        return left

    return await eval_func(node.right, state)

def _ordering_operands(op: str, left: Any, right: Any) -> tuple[Any, Any]:
    if isinstance(left, bool):
        left = int(left)
    if isinstance(right, bool):
        right = int(right)

    if _is_numeric(left) and _is_numeric(right):
        return left, right

    if isinstance(left, str) and isinstance(right, str):
        return left, right

    if _is_numeric(left) and isinstance(right, str) and parse_number(right) is not None:
        return left, parse_number(right)

    if isinstance(left, str) and _is_numeric(right) and parse_number(left) is not None:
        return parse_number(left), right

    raise EvaluationError(f"Cannot compare {category(left)} and {category(right)} with '{op}'")

def compare(op: str, left: Any, right: Any) -> bool:
    match op:
        case '==':
            return loose_equals(left, right)
        case '!=':
            return not loose_equals(left, right)
        case '===':
            return strict_equals(left, right)
        case '!==':
            return not strict_equals(left, right)

    lhs, rhs = _ordering_operands(op, left, right)

    match op:
        case '<':
            return lhs < rhs
        case '<=':
            return lhs <= rhs
        case '>':
            return lhs > rhs
        case '>=':
            return lhs >= rhs
        case _:
            raise EvaluationError(f"Unknown comparison operator: {op}")

async def eval_comparison(node: Comparison, state: EvaluatorState, eval_func: EvalFunc) -> bool:
    left = await eval_func(node.left, state)
    right = await eval_func(node.right, state)
    return compare(node.operator, left, right)

async def eval_ternary(node: Ternary, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    if is_truthy(await eval_func(node.condition, state)):
        return await eval_func(node.true_expr, state)
    return await eval_func(node.false_expr, state)
