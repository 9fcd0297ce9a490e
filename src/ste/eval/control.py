from __future__ import annotations

import logging
from typing import Any

from ..nodes import Conditional, Expr
from ..types import EvaluatorState
from .blocks import eval_body
from .common import EvalFunc, is_truthy

logger = logging.getLogger(__name__)

async def condition_holds(condition: Expr, state: EvaluatorState, eval_func: EvalFunc) -> bool:
    """Truthiness of a branch condition; any failure counts as false."""
    try:
        value: Any = await eval_func(condition, state)
    except Exception as exc:
        logger.warning("Condition evaluation failed, treating as false: %s", exc)
        return False

    return is_truthy(value)

async def eval_conditional(node: Conditional, state: EvaluatorState, eval_func: EvalFunc) -> str:
    if node.condition_type == 'not':
        if await condition_holds(node.condition, state, eval_func):
            return ""
        return await eval_body(node.body, state, eval_func)

    if await condition_holds(node.condition, state, eval_func):
        return await eval_body(node.body, state, eval_func)

    for branch in node.alternates:
        if branch.condition_type == 'else':
            return await eval_body(branch.body, state, eval_func)

        if await condition_holds(branch.condition, state, eval_func):
            return await eval_body(branch.body, state, eval_func)

    return ""
