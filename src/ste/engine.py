"""
TemplateEngine facade

Ties the loader, parser and evaluator together for one render tree:
- resolves the entry template and every `#include` beneath it
- owns the include stack used for `./` and `../` resolution
- runs the final raw-HTML marker substitution
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from .config import EngineConfig
from .evaluator import evaluate
from .loader import TemplateLoader
from .nodes import Template
from .parser import parse_source
from .runtime import make_filter_table
from .types import (
    CycleRegistry,
    EvaluationError,
    EvaluatorState,
    FilterFn,
    FilterFunction,
    FilterTable,
    RawHtmlTable,
    TemplateError,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

def _run_asyncio(coro: Awaitable[_T]) -> _T:
    try:
        asyncio.get_running_loop()
    except RuntimeError: # no active event loop, ok to run
        return asyncio.run(coro)  # type: ignore[arg-type]

    close = getattr(coro, "close", None)
    if close is not None:
        close()
    raise TemplateError("render_sync cannot run inside an active event loop; await render() instead")

class RenderTree:
    """Per-call state shared by a template and everything it includes."""

    def __init__(self, engine: "TemplateEngine", base: Path, stack: List[Path]):
        self.engine = engine
        self.base = base
        self.stack = stack
        self.raw_html = RawHtmlTable()
        self.filters = engine.filters

    def make_state(self, data: Any, depth: int, source: Optional[str] = None) -> EvaluatorState:
        async def include(path: str, include_data: Dict[str, Any], _parent: EvaluatorState) -> str:
            return await self.include(path, include_data, depth)

        return EvaluatorState(
            data,
            filters=self.filters,
            cycles=self.engine.cycles,
            raw_html=self.raw_html,
            include=include,
            source=source,
        )

    async def include(self, path: str, data: Dict[str, Any], depth: int) -> str:
        limit = self.engine.config.max_include_depth
        if depth >= limit:
            raise EvaluationError(f"Maximum include depth ({limit}) exceeded while including {path}")

        loader = self.engine.loader
        including = self.stack[-1] if self.stack else None
        resolved = loader.resolve_include(path, including, self.base)
        ast = await loader.load(resolved)

        self.stack.append(resolved)
        try:
            return await evaluate(ast, self.make_state(data, depth + 1))
        finally:
            self.stack.pop()

    async def run(self, ast: Template, state: EvaluatorState) -> str:
        text = await evaluate(ast, state)
        return self.raw_html.substitute(text)

class TemplateEngine:
    """Renders template files and strings.

    One engine can serve many concurrent renders; each render call gets its
    own EvaluatorState and raw-HTML table. The `cycle`/`next` registry and the
    parsed-template cache are shared by every render of the engine.
    """

    def __init__(self, config: Optional[EngineConfig] = None, **overrides: Any):
        config = config if config is not None else EngineConfig()
        if overrides:
            config = config.with_overrides(**overrides)

        self.config = config
        self.loader = TemplateLoader(config)
        self.cycles = CycleRegistry()
        self._extra_filters: Dict[str, FilterFunction] = {}

    # ---------- Filters ----------

    @property
    def filters(self) -> FilterTable:
        return make_filter_table(self._extra_filters)

    def add_filter(self, name: str, fn: FilterFn, *, stateful: bool = False) -> None:
        """Register a filter for this engine only; shadows a built-in of the same name."""
        self._extra_filters[name] = FilterFunction(fn=fn, stateful=stateful)

    def reset_cycles(self) -> None:
        self.cycles.clear()

    # ---------- Cache ----------

    def clear_cache(self) -> None:
        self.loader.clear_cache()

    def remove_from_cache(self, path: str | os.PathLike[str]) -> bool:
        return self.loader.remove_from_cache(path)

    # ---------- Rendering ----------

    async def render(self, path: str | os.PathLike[str], data: Any = None) -> str:
        """Render the template file at `path` with `data` as global data."""
        try:
            resolved, base = self.loader.resolve_entry(path)
            logger.debug("Rendering %s (base %s)", resolved, base)
            ast = await self.loader.load(resolved)
            tree = RenderTree(self, base, [resolved])
            return await tree.run(ast, tree.make_state(data, 0))
        except TemplateError:
            raise
        except Exception as exc:
            raise TemplateError(f"Error rendering {path}: {exc}", cause=exc) from exc

    def string_tree(self) -> RenderTree:
        """Render tree for template source that has no file of its own"""
        base = Path(os.path.normpath(self.config.base_dir.absolute()))
        return RenderTree(self, base, [])

    async def render_string(self, source: str, data: Any = None) -> str:
        """Render template source; includes resolve against `config.base_dir`."""
        try:
            ast = parse_source(source)
            tree = self.string_tree()
            return await tree.run(ast, tree.make_state(data, 0, source))
        except TemplateError:
            raise
        except Exception as exc:
            raise TemplateError(f"Error rendering template string: {exc}", cause=exc) from exc

    def render_sync(self, path: str | os.PathLike[str], data: Any = None) -> str:
        return _run_asyncio(self.render(path, data))

    def render_string_sync(self, source: str, data: Any = None) -> str:
        return _run_asyncio(self.render_string(source, data))
