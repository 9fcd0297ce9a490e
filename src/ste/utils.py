from __future__ import annotations

import os

DEBUG_PY_TRACE_ENV = "STE_DEBUG_PY_TRACE"

def debug_py_trace_enabled() -> bool:
    """True when STE_DEBUG_PY_TRACE asks for Python tracebacks on template errors."""
    value = os.environ.get(DEBUG_PY_TRACE_ENV, "")
    return value.strip().lower() not in ("", "0", "false", "no", "off")

def source_excerpt(source: str, line: int, column: int) -> str:
    """The offending source line with a caret under `column`"""
    lines = source.splitlines()
    if not 1 <= line <= len(lines):
        return ""

    text = lines[line - 1]
    return f"{text}\n{' ' * max(column - 1, 0)}^"
