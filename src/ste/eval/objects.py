from __future__ import annotations

from typing import Any, Dict, List

from ..nodes import ArrayLiteral, ObjectLiteral
from ..types import EvaluatorState
from .common import EvalFunc

async def eval_array(node: ArrayLiteral, state: EvaluatorState, eval_func: EvalFunc) -> List[Any]:
    """Elements in source order, one at a time."""
    items: List[Any] = []

    for element in node.elements:
        items.append(await eval_func(element, state))

    return items

async def eval_object(node: ObjectLiteral, state: EvaluatorState, eval_func: EvalFunc) -> Dict[str, Any]:
    slots: Dict[str, Any] = {}

    for key, expr in node.properties:
        slots[key] = await eval_func(expr, state)

    return slots
