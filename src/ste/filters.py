"""Built-in filters registered via ste.runtime."""

from __future__ import annotations

import html
import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional

from .escape import SafeString, stringify, to_json
from .eval.common import category, is_truthy, strict_equals
from .runtime import register_filter
from .types import CycleRegistry

logger = logging.getLogger(__name__)

# ---------- Argument helpers ----------

def _expect_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} filter expects a string, but got {category(value)}")
    return value

def _expect_list(name: str, value: Any) -> List[Any]:
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} filter expects an array, but got {category(value)}")
    return list(value)

def _number(name: str, value: Any) -> float | int:
    if isinstance(value, bool):
        return int(value)

    if isinstance(value, (int, float)):
        return value

    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            pass
        else:
            return int(number) if number.is_integer() and "." not in value else number

    raise TypeError(f"{name} filter expects a number, but got {category(value)}")

def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)

def _to_datetime(name: str, value: Any) -> datetime:
    """Accept datetime/date objects, ISO-8601 strings and epoch milliseconds."""
    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass

    raise ValueError(f"{name} filter expects a valid date, but got {value!r}")

# ---------- Stateful ----------

@register_filter("cycle", stateful=True)
def f_cycle(cycles: CycleRegistry, _value: Any, *values: Any) -> str:
    if not values:
        raise ValueError("cycle filter requires at least one value")
    return cycles.create(list(values))

@register_filter("next", stateful=True)
def f_next(cycles: CycleRegistry, cycle_id: Any) -> Any:
    try:
        return cycles.advance(str(cycle_id))
    except KeyError as exc:
        raise ValueError(exc.args[0]) from exc

# ---------- Numbers ----------

@register_filter("abs")
def f_abs(value: Any) -> float | int:
    return abs(_number("abs", value))

@register_filter("currency")
def f_currency(value: Any, symbol: str = "$") -> str:
    return f"{_number('currency', value):.2f} {symbol}"

@register_filter("int")
def f_int(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"int filter expects a number, but got {value}")
        return int(value)

    if isinstance(value, str):
        m = re.match(r"\s*([+-]?\d+)", value)
        if m:
            return int(m.group(1))

    raise TypeError(f"int filter expects a number, but got {category(value)}")

@register_filter("round")
def f_round(value: Any, precision: Any = 0) -> str:
    number = _number("round", value)
    return f"{number:.{int(precision)}f}"

@register_filter("numberFormat")
def f_number_format(value: Any, decimals: Any = 0) -> str:
    """Abbreviate large numbers: 1500 -> 2K, 1500 with 1 decimal -> 1.5K."""
    number = float(_number("numberFormat", value))
    suffixes = ["", "K", "M", "B", "T"]
    idx = 0

    while abs(number) >= 1000 and idx < len(suffixes) - 1:
        number /= 1000
        idx += 1

    short = round(number, int(decimals))
    text = str(int(short)) if short.is_integer() else f"{short:.{int(decimals)}f}"
    return text + suffixes[idx]

@register_filter("fileSize")
def f_file_size(value: Any) -> str:
    size = _number("fileSize", value)
    units = ["Bytes", "KB", "MB", "GB", "TB"]

    if size == 0:
        return "0 Byte"

    if size < 0:
        raise ValueError("fileSize filter expects a non-negative number")

    i = min(int(math.floor(math.log(size) / math.log(1024))), len(units) - 1)
    i = max(i, 0)
    return f"{_round_half_up(size / 1024 ** i)} {units[i]}"

@register_filter("range")
def f_range(value: Any, lower: Any, upper: Any, inclusive: Any = False) -> bool:
    number = _number("range", value)

    if lower > upper:
        raise ValueError(f"Invalid range: lower bound ({lower}) cannot be greater than upper bound ({upper})")

    if inclusive:
        return lower <= number <= upper
    return lower < number < upper

# ---------- Strings ----------

@register_filter("capitalize")
def f_capitalize(value: Any) -> str:
    text = _expect_str("capitalize", value)
    return text[:1].upper() + text[1:]

@register_filter("uppercase")
def f_uppercase(value: Any) -> str:
    return _expect_str("uppercase", value).upper()

@register_filter("lowercase")
def f_lowercase(value: Any) -> str:
    return _expect_str("lowercase", value).lower()

@register_filter("trim")
def f_trim(value: Any) -> str:
    return _expect_str("trim", value).strip()

@register_filter("truncate")
def f_truncate(value: Any, length: Any = 50) -> str:
    text = _expect_str("truncate", value)
    limit = int(length)
    return text[:limit] + "..." if len(text) > limit else text

@register_filter("truncateWords")
def f_truncate_words(value: Any, count: Any = 10, suffix: str = "...") -> str:
    text = _expect_str("truncateWords", value)
    words = text.split()
    if len(words) <= int(count):
        return text
    return " ".join(words[:int(count)]) + suffix

@register_filter("wordCount")
def f_word_count(value: Any) -> int:
    return len(_expect_str("wordCount", value).split())

@register_filter("removeSpaces")
def f_remove_spaces(value: Any) -> str:
    return re.sub(r"\s+", "", _expect_str("removeSpaces", value))

@register_filter("replace")
def f_replace(value: Any, search: Any, replacement: Any) -> str:
    """Regex replace of every match; the replacement is inserted literally."""
    text = _expect_str("replace", value)
    repl = stringify(replacement)
    return re.sub(str(search), lambda _m: repl, text)

@register_filter("slugify")
def f_slugify(value: Any) -> str:
    text = _expect_str("slugify", value).lower()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^\w\-]+", "", text, flags=re.ASCII)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")

@register_filter("escape")
def f_escape(value: Any) -> SafeString:
    return SafeString(html.escape(_expect_str("escape", value), quote=True))

@register_filter("preserveSpaces")
def f_preserve_spaces(value: Any) -> SafeString:
    if value is None:
        return SafeString("")
    return SafeString(re.sub(r"\s", "&nbsp;", html.escape(stringify(value), quote=True)))

@register_filter("toLink")
def f_to_link(value: Any, text: Any, external: Any = False, safe: Any = False) -> SafeString:
    if not isinstance(value, str) or not isinstance(text, str):
        raise TypeError("toLink expects two string arguments: URL and display text")

    attrs = ""
    if external:
        attrs = ' target="_blank"'
        if safe:
            attrs += ' rel="external noopener noreferrer"'

    url = html.escape(value, quote=True)
    return SafeString(f'<a href="{url}"{attrs}>{html.escape(text, quote=True)}</a>')

# ---------- Collections ----------

@register_filter("first")
def f_first(value: Any) -> Any:
    if isinstance(value, str):
        return value[:1]
    items = _expect_list("first", value)
    return items[0] if items else None

@register_filter("last")
def f_last(value: Any) -> Any:
    if isinstance(value, str):
        return value[-1:]
    items = _expect_list("last", value)
    return items[-1] if items else None

@register_filter("length")
def f_length(value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    raise TypeError(f"length filter expects an array, object, or string, but got {category(value)}")

@register_filter("reverse")
def f_reverse(value: Any) -> Any:
    if isinstance(value, str):
        return value[::-1]
    return list(reversed(_expect_list("reverse", value)))

@register_filter("join")
def f_join(value: Any, separator: str = ", ", final_separator: Optional[str] = None) -> str:
    items = [stringify(item) for item in _expect_list("join", value)]

    if len(items) <= 1:
        return "".join(items)

    if final_separator is None:
        return separator.join(items)

    return separator.join(items[:-1]) + final_separator + items[-1]

@register_filter("groupBy")
def f_group_by(value: Any, key: Any) -> dict:
    groups: dict = {}
    for item in _expect_list("groupBy", value):
        group_key = stringify(item.get(key) if isinstance(item, Mapping) else None)
        groups.setdefault(group_key, []).append(item)
    return groups

@register_filter("sortBy")
def f_sort_by(value: Any, key: Any) -> List[Any]:
    items = _expect_list("sortBy", value)

    def _key(item: Any):
        field = item.get(key) if isinstance(item, Mapping) else None
        return (field is None, field if field is not None else 0)

    return sorted(items, key=_key)

@register_filter("where")
def f_where(value: Any, key: Any, expected: Any) -> List[Any]:
    return [
        item for item in _expect_list("where", value)
        if isinstance(item, Mapping) and key in item and strict_equals(item[key], expected)
    ]

def _has_key_deep(obj: Any, key: Any) -> bool:
    if isinstance(obj, Mapping):
        if key in obj:
            return True
        return any(_has_key_deep(v, key) for v in obj.values())

    if isinstance(obj, (list, tuple)):
        return any(_has_key_deep(v, key) for v in obj)

    return False

@register_filter("has")
def f_has(value: Any, search: Any) -> bool:
    """Key, dotted path, element or substring lookup, searching nested data."""
    if value is None:
        return False

    if isinstance(value, str):
        return isinstance(search, str) and search in value

    if isinstance(value, Mapping):
        if search in value:
            return True

        if isinstance(search, str) and "." in search:
            current: Any = value
            for part in search.split("."):
                if not isinstance(current, Mapping) or part not in current:
                    break
                current = current[part]
            else:
                return True

        return _has_key_deep(value, search)

    if isinstance(value, (list, tuple)):
        if any(strict_equals(item, search) for item in value):
            return True
        return any(_has_key_deep(item, search) for item in value if isinstance(item, (Mapping, list, tuple)))

    return False

# ---------- Misc ----------

@register_filter("defaults")
def f_defaults(value: Any, *fallbacks: Any) -> Any:
    if is_truthy(value):
        return value

    for fallback in fallbacks:
        if is_truthy(fallback):
            return fallback

    return ""

@register_filter("type")
def f_type(value: Any) -> str:
    return category(value)

@register_filter("dump")
def f_dump(value: Any) -> SafeString:
    return SafeString(f"<pre>{html.escape(to_json(value, indent=2), quote=False)}</pre>")

@register_filter("safeStringify")
def f_safe_stringify(value: Any, indent: Any = 2) -> str:
    """JSON with cyclic references replaced by "[Circular]"."""
    active: set = set()

    def _strip(obj: Any) -> Any:
        if isinstance(obj, (Mapping, list, tuple)):
            if id(obj) in active:
                return "[Circular]"
            active.add(id(obj))
            try:
                if isinstance(obj, Mapping):
                    return {str(k): _strip(v) for k, v in obj.items()}
                return [_strip(v) for v in obj]
            finally:
                active.discard(id(obj))
        return obj

    return to_json(_strip(value), indent=int(indent))

@register_filter("log")
def f_log(value: Any, label: str = "Template Debug") -> Any:
    logger.info("%s: %r", label, value)
    return value

# ---------- Dates ----------

_DATE_TOKENS = re.compile(r"YYYY|MM|DD|HH|mm|ss")

@register_filter("dateFormat")
def f_date_format(value: Any, fmt: str = "YYYY-MM-DD") -> str:
    when = _to_datetime("dateFormat", value)
    parts = {
        "YYYY": f"{when.year:04d}",
        "MM": f"{when.month:02d}",
        "DD": f"{when.day:02d}",
        "HH": f"{when.hour:02d}",
        "mm": f"{when.minute:02d}",
        "ss": f"{when.second:02d}",
    }
    return _DATE_TOKENS.sub(lambda m: parts[m.group(0)], fmt)

_INTERVALS = (
    ("year", 31536000),
    ("month", 2592000),
    ("week", 604800),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)

@register_filter("timeAgo")
def f_time_ago(value: Any) -> str:
    when = _to_datetime("timeAgo", value)
    now = datetime.now(timezone.utc) if when.tzinfo is not None else datetime.now()
    seconds = int((now - when).total_seconds())

    for unit, size in _INTERVALS:
        count = seconds // size
        if count >= 1:
            return f"{count} {unit}{'' if count == 1 else 's'} ago"

    return "just now"
