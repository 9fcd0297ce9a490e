from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..nodes import Include
from ..types import EvaluationError, EvaluatorState, TemplateError
from .common import EvalFunc, category

logger = logging.getLogger(__name__)

def include_data(state: EvaluatorState) -> Dict[str, Any]:
    """Global data overlaid with the current loop item (loop item wins)."""
    data = dict(state.global_data)
    context = state.current_context

    if state.in_loop and isinstance(context, Mapping):
        data.update(context)

    return data

async def eval_include(node: Include, state: EvaluatorState, eval_func: EvalFunc) -> str:
    path = await eval_func(node.path, state)

    if not isinstance(path, str) or not path:
        raise EvaluationError(f"Include path must be a non-empty string, got {category(path)}")

    if state.include is None:
        raise EvaluationError(f"Cannot include {path}: no template loader is attached")

    logger.debug("Including %s", path)

    try:
        return await state.include(path, include_data(state), state)
    except TemplateError as exc:
        exc.add_include(path)
        raise
    except Exception as exc:
        err = TemplateError(f"Error rendering include {path}: {exc}", cause=exc)
        err.add_include(path)
        raise err from exc
