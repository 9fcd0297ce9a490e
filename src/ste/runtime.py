from __future__ import annotations

import importlib
from typing import Dict, Optional

from .types import CycleRegistry, FilterFn, FilterFunction, FilterTable

__all__ = [
    "Builtins",
    "CycleRegistry",
    "builtin_filters",
    "init_filters",
    "make_filter_table",
    "register_filter",
]

_FILTERS_INITIALIZED = False

class Builtins:
    filters: Dict[str, FilterFunction] = {}

def init_filters() -> None:
    """Load the filter library (idempotent) so register_filter hooks run."""
    global _FILTERS_INITIALIZED

    if _FILTERS_INITIALIZED:
        return

    importlib.import_module("ste.filters")
    _FILTERS_INITIALIZED = True

def register_filter(name: str, *, stateful: bool = False):
    def dec(fn: FilterFn):
        Builtins.filters[name] = FilterFunction(fn=fn, stateful=stateful)
        return fn

    return dec

def builtin_filters() -> FilterTable:
    init_filters()
    return Builtins.filters

def make_filter_table(extra: Optional[Dict[str, FilterFunction]] = None) -> Dict[str, FilterFunction]:
    """Copy of the built-in table with per-engine additions layered on top."""
    table = dict(builtin_filters())
    if extra:
        table.update(extra)
    return table
