from __future__ import annotations

from typing import Any, Optional
from typing_extensions import assert_never

from .escape import escape_html
from .nodes import (
    ArrayLiteral,
    Binary,
    Comparison,
    ComputedProperty,
    Conditional,
    Each,
    Filter,
    Include,
    IndexRef,
    KeyRef,
    Literal,
    Logical,
    Node,
    ObjectLiteral,
    Output,
    Property,
    RawHtml,
    Set,
    Template,
    Ternary,
    Text,
    ThisRef,
    Unary,
    Variable,
)
from .runtime import builtin_filters
from .types import EvaluatorState

from .eval.access import (
    eval_computed_property,
    eval_index,
    eval_key,
    eval_property,
    eval_raw_html,
    eval_this,
    eval_variable,
)
from .eval.blocks import eval_body
from .eval.control import eval_conditional
from .eval.expr import eval_binary, eval_comparison, eval_logical, eval_ternary, eval_unary
from .eval.filters import eval_filter
from .eval.include import eval_include
from .eval.loops import eval_each
from .eval.mutation import eval_set
from .eval.objects import eval_array, eval_object

# ---------------- Public API ----------------

async def evaluate(ast: Template, state: Optional[EvaluatorState] = None) -> str:
    """Render a parsed template. Raw-HTML markers are left in place."""
    if state is None:
        state = EvaluatorState(filters=builtin_filters())

    return await eval_node(ast, state)

# ---------------- Core evaluator ----------------

async def eval_node(n: Node, state: EvaluatorState) -> Any:
    match n:
        # statements render to text
        case Template(body=body):
            return await eval_body(body, state, eval_node)
        case Text(value=value):
            return value
        case Output(expression=expr):
            return escape_html(await eval_node(expr, state))
        case Set():
            return await eval_set(n, state, eval_node)
        case Conditional():
            return await eval_conditional(n, state, eval_node)
        case Each():
            return await eval_each(n, state, eval_node)
        case Include():
            return await eval_include(n, state, eval_node)

        # expressions produce values
        case Literal(value=value):
            return value
        case Variable():
            return eval_variable(n, state)
        case Property():
            return await eval_property(n, state, eval_node)
        case ComputedProperty():
            return await eval_computed_property(n, state, eval_node)
        case Unary():
            return await eval_unary(n, state, eval_node)
        case Binary():
            return await eval_binary(n, state, eval_node)
        case Logical():
            return await eval_logical(n, state, eval_node)
        case Comparison():
            return await eval_comparison(n, state, eval_node)
        case Ternary():
            return await eval_ternary(n, state, eval_node)
        case ArrayLiteral():
            return await eval_array(n, state, eval_node)
        case ObjectLiteral():
            return await eval_object(n, state, eval_node)
        case Filter():
            return await eval_filter(n, state, eval_node)
        case RawHtml():
            return eval_raw_html(n, state)
        case ThisRef():
            return eval_this(state)
        case IndexRef():
            return eval_index(state)
        case KeyRef():
            return eval_key(state)
        case _:
            assert_never(n)
