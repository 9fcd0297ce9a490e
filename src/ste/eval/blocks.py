from __future__ import annotations

from typing import Iterable, List

from ..nodes import Node, RawHtml
from ..types import EvaluatorState
from .access import output_raw_html
from .common import EvalFunc

async def eval_body(body: Iterable[Node], state: EvaluatorState, eval_func: EvalFunc) -> str:
    """Render statements in document order and join their text."""
    parts: List[str] = []

    for node in body:
        # {{html_x}} as a statement emits a marker; inside expressions it is a value
        if isinstance(node, RawHtml):
            parts.append(output_raw_html(node, state))
        else:
            parts.append(await eval_func(node, state))

    return "".join(parts)
