"""HTML escaping and value stringification for template output."""

from __future__ import annotations

import html
import json
from typing import Any


class SafeString(str):
    """String that is already valid HTML and must not be escaped again."""

    __slots__ = ()

    def __html__(self) -> str:
        return self

    def __repr__(self) -> str:
        return f"SafeString({str.__repr__(self)})"


def is_safe(value: Any) -> bool:
    return hasattr(value, "__html__")


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)

    if hasattr(value, "isoformat"):
        return value.isoformat()

    return str(value)


def to_json(value: Any, indent: int | None = None) -> str:
    if indent is None:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)

    return json.dumps(value, indent=indent, ensure_ascii=False, default=_json_default)


def format_number(value: int | float) -> str:
    if isinstance(value, float):
        if value != value:
            return "NaN"
        if value in (float("inf"), float("-inf")):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def stringify(value: Any) -> str:
    """Render a template value as text, without escaping."""
    if value is None:
        return ""

    if isinstance(value, str):
        return str(value)

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, (int, float)):
        return format_number(value)

    if isinstance(value, (dict, list, tuple)):
        return to_json(value)

    return str(value)


def escape_html(value: Any) -> str:
    """Stringify and escape `value` unless it is marked safe."""
    if is_safe(value):
        return value.__html__()

    return html.escape(stringify(value), quote=True)
