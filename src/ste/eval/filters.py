from __future__ import annotations

from typing import Any, List

from ..nodes import Filter
from ..types import EvaluationError, EvaluatorState, TemplateError
from .common import EvalFunc

async def eval_filter(node: Filter, state: EvaluatorState, eval_func: EvalFunc) -> Any:
    value = await eval_func(node.expression, state)

    entry = state.filters.get(node.filter)
    if entry is None:
        raise EvaluationError(f"Unknown filter: {node.filter}", filter_name=node.filter)

    try:
        args: List[Any] = []
        for arg in node.arguments:
            args.append(await eval_func(arg, state))

        if entry.stateful:
            return entry.fn(state.cycles, value, *args)
        return entry.fn(value, *args)
    except EvaluationError as exc:
        # nested filters in the arguments keep their own name
        if exc.filter_name is None:
            exc.filter_name = node.filter
        raise
    except TemplateError:
        raise
    except Exception as exc:
        raise EvaluationError(
            f"Error applying filter '{node.filter}': {exc}",
            filter_name=node.filter,
            cause=exc,
        ) from exc
