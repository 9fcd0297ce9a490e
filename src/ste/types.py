from __future__ import annotations

import re
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Protocol
from typing_extensions import TypeAlias

from .escape import stringify

# ---------- Exceptions ----------

class TemplateError(Exception):
    """Base error for everything a render call can fail with."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.include_trail: List[str] = []

    def add_include(self, path: str) -> None:
        self.include_trail.append(path)

    def __str__(self) -> str:
        if not self.include_trail:
            return self.message

        return f"{self.message} (included via {' <- '.join(self.include_trail)})"

class TemplateSyntaxError(TemplateError):
    def __init__(self, message: str, position: Optional[int] = None, line: Optional[int] = None, column: Optional[int] = None):
        if line is not None and column is not None:
            text = f"{message} at line {line}, col {column}"
        elif position is not None:
            text = f"{message} at position {position}"
        else:
            text = message

        super().__init__(text)
        self.position = position
        self.line = line
        self.column = column

class EvaluationError(TemplateError):
    def __init__(self, message: str, filter_name: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.filter_name = filter_name

class FileError(TemplateError):
    def __init__(self, message: str, path: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.path = path

class PathSecurityError(TemplateError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

# ---------- Filters ----------

FilterFn = Callable[..., Any]

@dataclass(frozen=True)
class FilterFunction:
    fn: FilterFn
    # stateful filters receive the engine's CycleRegistry as first argument
    stateful: bool = False

FilterTable: TypeAlias = Mapping[str, FilterFunction]

class CycleRegistry:
    """Round-robin generators created by `cycle` and advanced by `next`.

    Shared by every render of one engine. Nothing is evicted; call `clear()`
    (or `TemplateEngine.reset_cycles()`) in long-lived processes.
    """

    def __init__(self) -> None:
        self._cycles: Dict[str, List[Any]] = {}
        self._positions: Dict[str, int] = {}
        self._counter = 0

    def create(self, values: List[Any]) -> str:
        cycle_id = f"cycle_{self._counter}"
        self._counter += 1
        self._cycles[cycle_id] = list(values)
        self._positions[cycle_id] = -1
        return cycle_id

    def advance(self, cycle_id: str) -> Any:
        if cycle_id not in self._cycles:
            raise KeyError(f"No cycle found for ID: {cycle_id}")

        values = self._cycles[cycle_id]
        pos = (self._positions[cycle_id] + 1) % len(values)
        self._positions[cycle_id] = pos
        return values[pos]

    def clear(self) -> None:
        self._cycles.clear()
        self._positions.clear()

    def __len__(self) -> int:
        return len(self._cycles)

# ---------- Raw HTML side channel ----------

_MARKER_RE = re.compile(r"__HTML_[0-9a-f]{16}__")

class RawHtmlTable:
    """Trusted HTML values parked behind opaque markers until the final pass."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}

    @staticmethod
    def _new_marker() -> str:
        return f"__HTML_{secrets.token_hex(8)}__"

    def mint(self, value: Any) -> str:
        marker = self._new_marker()
        self._values[marker] = value
        return marker

    def is_marker(self, value: Any) -> bool:
        return isinstance(value, str) and value in self._values

    def value_of(self, marker: str) -> Any:
        return self._values[marker]

    def substitute(self, text: str) -> str:
        if not self._values:
            return text

        def _replace(match: re.Match[str]) -> str:
            marker = match.group(0)
            if marker not in self._values:
                return marker
            return stringify(self._values[marker])

        return _MARKER_RE.sub(_replace, text)

# ---------- Evaluator state ----------

class IncludeHandler(Protocol):
    def __call__(self, path: str, data: Dict[str, Any], state: 'EvaluatorState') -> Awaitable[str]: ...

def normalize_data(data: Any) -> Dict[str, Any]:
    if not isinstance(data, Mapping):
        return {}

    return dict(data)

class EvaluatorState:
    """Mutable state owned by exactly one render call.

    The context stack bottom is the global data; each `#each` iteration pushes
    one frame onto all three stacks and pops it again before the next one.
    """

    def __init__(
        self,
        data: Any = None,
        *,
        filters: Optional[FilterTable] = None,
        cycles: Optional[CycleRegistry] = None,
        raw_html: Optional[RawHtmlTable] = None,
        include: Optional[IncludeHandler] = None,
        source: Optional[str] = None,
    ):
        self.global_data: Dict[str, Any] = normalize_data(data)
        self.context_stack: List[Any] = [self.global_data]
        self.index_stack: List[int] = []
        self.key_stack: List[str] = []
        self.filters: FilterTable = filters if filters is not None else {}
        self.cycles = cycles if cycles is not None else CycleRegistry()
        self.raw_html = raw_html if raw_html is not None else RawHtmlTable()
        self.include = include
        self.source = source

    @property
    def current_context(self) -> Any:
        return self.context_stack[-1]

    @property
    def current_index(self) -> Optional[int]:
        return self.index_stack[-1] if self.index_stack else None

    @property
    def current_key(self) -> Optional[str]:
        return self.key_stack[-1] if self.key_stack else None

    @property
    def in_loop(self) -> bool:
        return len(self.context_stack) > 1

    @contextmanager
    def loop_frame(self, item: Any, index: int, key: str) -> Iterator[None]:
        self.context_stack.append(item)
        self.index_stack.append(index)
        self.key_stack.append(key)

        try:
            yield
        finally:
            self.context_stack.pop()
            self.index_stack.pop()
            self.key_stack.pop()
