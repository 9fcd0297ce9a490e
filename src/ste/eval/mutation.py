from __future__ import annotations

from typing import Any, List, MutableMapping, MutableSequence, Union

from ..escape import stringify
from ..nodes import ComputedAccessor, PropertyAccessor, Set
from ..types import EvaluationError, EvaluatorState
from .access import _sequence_index
from .common import EvalFunc, category

RAW_HTML_PREFIX = "html_"

Container = Union[MutableMapping[str, Any], MutableSequence[Any]]

async def _chain_keys(node: Set, state: EvaluatorState, eval_func: EvalFunc) -> List[Any]:
    keys: List[Any] = []

    for accessor in node.property_chain or ():
        match accessor:
            case PropertyAccessor(name=name):
                keys.append(name)
            case ComputedAccessor(expression=expr):
                keys.append(await eval_func(expr, state))

    return keys

def _is_container(value: Any) -> bool:
    return isinstance(value, (MutableMapping, MutableSequence))

def _slot(container: Container, key: Any, path: str) -> Any:
    """Mapping key or list index that `key` addresses in `container`."""
    if isinstance(container, MutableMapping):
        return key if isinstance(key, str) else stringify(key)

    index = _sequence_index(key)
    # one past the end appends
    if index is None or not 0 <= index <= len(container):
        raise EvaluationError(f"Invalid array index {stringify(key)!r} for {path}")
    return index

def _label(container: Container, path: str, slot: Any) -> str:
    return f"{path}[{slot}]" if isinstance(container, MutableSequence) else f"{path}.{slot}"

def _get(container: Container, slot: Any) -> Any:
    if isinstance(container, MutableMapping):
        return container.get(slot)
    return container[slot] if slot < len(container) else None

def _put(container: Container, slot: Any, value: Any) -> None:
    if isinstance(container, MutableSequence) and slot == len(container):
        container.append(value)
    else:
        container[slot] = value

def set_path(target: Container, root: str, keys: List[Any], value: Any) -> None:
    """Assign through `keys`, creating missing intermediate objects."""
    current: Any = target
    path = root

    for key in keys[:-1]:
        slot = _slot(current, key, path)
        label = _label(current, path, slot)
        nxt = _get(current, slot)
        if nxt is None:
            nxt = {}
            _put(current, slot, nxt)
        elif not _is_container(nxt):
            raise EvaluationError(f"Cannot set property '{slot}' of {path}: {label} is a {category(nxt)}, not an object")
        current = nxt
        path = label

    _put(current, _slot(current, keys[-1], path), value)

async def eval_set(node: Set, state: EvaluatorState, eval_func: EvalFunc) -> str:
    """#set: assignment into global data; renders nothing"""
    value = await eval_func(node.value, state)

    if node.property_chain is None:
        if node.name.startswith(RAW_HTML_PREFIX):
            value = state.raw_html.mint(value)
        state.global_data[node.name] = value
        return ""

    target = state.global_data.get(node.name)
    if not _is_container(target):
        raise EvaluationError(f"Cannot set property on non-object variable '{node.name}'")

    keys = await _chain_keys(node, state, eval_func)
    set_path(target, node.name, keys, value)
    return ""
