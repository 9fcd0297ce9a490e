"""
AST node types produced by the parser.

Every node is a frozen dataclass; `Node` is the closed union the evaluator
matches over. Child sequences are tuples so a parsed template can be cached
and shared between renders.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union
from typing_extensions import TypeAlias

# ---------- Expressions ----------

@dataclass(frozen=True)
class Literal:
    value: Any

@dataclass(frozen=True)
class Variable:
    name: str

@dataclass(frozen=True)
class Property:
    object: Expr
    property: str

@dataclass(frozen=True)
class ComputedProperty:
    object: Expr
    property: Expr

@dataclass(frozen=True)
class Unary:
    operator: str
    right: Expr

@dataclass(frozen=True)
class Binary:
    operator: str
    left: Expr
    right: Expr

@dataclass(frozen=True)
class Logical:
    operator: str
    left: Expr
    right: Expr

@dataclass(frozen=True)
class Comparison:
    operator: str
    left: Expr
    right: Expr

@dataclass(frozen=True)
class Ternary:
    condition: Expr
    true_expr: Expr
    false_expr: Expr

@dataclass(frozen=True)
class ArrayLiteral:
    elements: Tuple[Expr, ...]

@dataclass(frozen=True)
class ObjectLiteral:
    # ordered (key, value) pairs; later duplicates win at evaluation time
    properties: Tuple[Tuple[str, Expr], ...]

@dataclass(frozen=True)
class Filter:
    expression: Expr
    filter: str
    arguments: Tuple[Expr, ...] = ()

@dataclass(frozen=True)
class RawHtml:
    name: str

@dataclass(frozen=True)
class IndexRef:
    pass

@dataclass(frozen=True)
class KeyRef:
    pass

@dataclass(frozen=True)
class ThisRef:
    pass

# ---------- Statements ----------

@dataclass(frozen=True)
class PropertyAccessor:
    name: str

@dataclass(frozen=True)
class ComputedAccessor:
    expression: Expr

Accessor: TypeAlias = Union[PropertyAccessor, ComputedAccessor]

@dataclass(frozen=True)
class Set:
    name: str
    property_chain: Optional[Tuple[Accessor, ...]]
    value: Expr

@dataclass(frozen=True)
class Conditional:
    """`if`/`elseif`/`else`/`not` branch.

    `condition` is None only for `else`. Alternates of an `if` are the
    following `elseif`/`else` branches in source order; they never carry
    alternates themselves.
    """
    condition_type: str
    condition: Optional[Expr]
    body: Tuple[Node, ...]
    alternates: Tuple[Conditional, ...] = ()

@dataclass(frozen=True)
class Each:
    tag: str
    iterable: Expr
    body: Tuple[Node, ...]

@dataclass(frozen=True)
class Include:
    path: Expr

@dataclass(frozen=True)
class Text:
    value: str

@dataclass(frozen=True)
class Output:
    expression: Expr

@dataclass(frozen=True)
class Template:
    body: Tuple[Node, ...]

Expr: TypeAlias = Union[
    Literal,
    Variable,
    Property,
    ComputedProperty,
    Unary,
    Binary,
    Logical,
    Comparison,
    Ternary,
    ArrayLiteral,
    ObjectLiteral,
    Filter,
    RawHtml,
    IndexRef,
    KeyRef,
    ThisRef,
]

Stmt: TypeAlias = Union[Text, Output, Set, Conditional, Each, Include, RawHtml]

Node: TypeAlias = Union[Expr, Stmt, Template]
