from __future__ import annotations

from typing import Any, Mapping

from ..nodes import ComputedProperty, Property, RawHtml, Variable
from ..types import EvaluationError, EvaluatorState
from .common import EvalFunc, parse_number

_MISSING = object()

def lookup_name(name: str, state: EvaluatorState) -> Any:
    """Loop item first, then global data; _MISSING when neither has it."""
    context = state.current_context

    if state.in_loop and isinstance(context, Mapping) and name in context:
        return context[name]

    if name in state.global_data:
        return state.global_data[name]

    return _MISSING

def eval_variable(node: Variable, state: EvaluatorState) -> Any:
    value = lookup_name(node.name, state)
    return "" if value is _MISSING else value

def _sequence_index(key: Any) -> int | None:
    if isinstance(key, bool):
        return None

    if isinstance(key, float) and key.is_integer():
        key = int(key)

    if isinstance(key, str):
        number = parse_number(key) if key.strip() else None
        key = number if isinstance(number, int) else None

    return key if isinstance(key, int) else None

def get_member(obj: Any, key: Any) -> Any:
    """`obj.key` / `obj[key]`; None when the receiver has no such member"""
    if isinstance(obj, Mapping):
        if not isinstance(key, (str, int, float)):
            return None
        if key in obj:
            return obj[key]
        # numeric keys written as obj["1"] or obj[1]
        alt = str(key) if not isinstance(key, str) else _sequence_index(key)
        if alt is not None and alt in obj:
            return obj[alt]
        return None

    if isinstance(obj, (list, tuple, str)):
        if key == 'length':
            return len(obj)

        index = _sequence_index(key)
        if index is not None and 0 <= index < len(obj):
            return obj[index]

    return None

async def eval_property(node: Property, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    obj = await eval_func(node.object, state)
    return get_member(obj, node.property)

async def eval_computed_property(node: ComputedProperty, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    obj = await eval_func(node.object, state)
    key = await eval_func(node.property, state)
    return get_member(obj, key)

def eval_raw_html(node: RawHtml, state: EvaluatorState) -> Any:
    """Trusted value of an html_ name read inside an expression"""
    value = lookup_name(node.name, state)

    if value is _MISSING:
        raise EvaluationError(f"Undefined raw HTML variable: {node.name}")

    if state.raw_html.is_marker(value):
        return state.raw_html.value_of(value)

    return value

def output_raw_html(node: RawHtml, state: EvaluatorState) -> str:
    """Marker standing in for a trusted HTML value until the final pass"""
    value = lookup_name(node.name, state)

    if value is _MISSING:
        raise EvaluationError(f"Undefined raw HTML variable: {node.name}")

    if state.raw_html.is_marker(value):
        return value

    return state.raw_html.mint(value)

def eval_this(state: EvaluatorState) -> Any:
    return state.current_context

def eval_index(state: EvaluatorState) -> Any:
    return state.current_index

def eval_key(state: EvaluatorState) -> Any:
    return state.current_key
