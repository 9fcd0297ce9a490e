from __future__ import annotations

from typing import Any, Iterator, Mapping, Tuple

from ..nodes import Each
from ..types import EvaluationError, EvaluatorState
from .blocks import eval_body
from .common import EvalFunc, category

def iterate_items(value: Any, tag: str) -> Iterator[Tuple[Any, int, str]]:
    """(item, index, key) triples for a sequence or a mapping"""
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield item, index, str(index)
        return

    if isinstance(value, Mapping):
        for index, (key, item) in enumerate(value.items()):
            yield item, index, str(key)
        return

    raise EvaluationError(f"Cannot iterate over {category(value)} in #{tag}")

async def eval_each(node: Each, state: EvaluatorState, eval_func: EvalFunc) -> str:
    iterable = await eval_func(node.iterable, state)

    # snapshot so #set inside the body cannot disturb iteration
    if isinstance(iterable, Mapping):
        iterable = dict(iterable)
    elif isinstance(iterable, list):
        iterable = list(iterable)

    parts = []

    for item, index, key in iterate_items(iterable, node.tag):
        with state.loop_frame(item, index, key):
            parts.append(await eval_body(node.body, state, eval_func))

    return "".join(parts)
