"""Render STE AST nodes as lark Trees for `pretty()` debugging output."""

from __future__ import annotations

import re
from dataclasses import fields, is_dataclass
from typing import Any, List, Union

from lark import Token, Tree

from .nodes import Node

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

def node_label(node: Any) -> str:
    """Template -> template, ComputedProperty -> computed_property"""
    return _CAMEL_RE.sub("_", type(node).__name__).lower()

def _value_token(name: str, value: Any) -> Token:
    return Token(name.upper(), repr(value))

def _convert_field(name: str, value: Any) -> List[Union[Tree, Token]]:
    if value is None:
        return []

    if is_dataclass(value):
        return [to_tree(value)]

    if isinstance(value, tuple):
        if name == "properties":
            return [Tree("pair", [Token("KEY", key), to_tree(expr)]) for key, expr in value]
        return [Tree(name, [to_tree(child) for child in value])] if value else [Tree(name, [])]

    return [_value_token(name, value)]

def to_tree(node: Node) -> Tree:
    children: List[Union[Tree, Token]] = []

    for f in fields(node):
        children.extend(_convert_field(f.name, getattr(node, f.name)))

    return Tree(node_label(node), children)

def dump(node: Node) -> str:
    return to_tree(node).pretty()
