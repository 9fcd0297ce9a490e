from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

from .ast_dump import dump
from .config import EngineConfig
from .engine import TemplateEngine, _run_asyncio
from .lexer import tokenize
from .parser import parse_source
from .types import TemplateError, TemplateSyntaxError
from .utils import debug_py_trace_enabled, source_excerpt

USAGE = "usage: ste <template> [--data FILE.json | --data-json JSON] [--base DIR] [--root DIR] [--tokens] [--ast] [--verbose]"

_VALUE_FLAGS = ("--data", "--data-json", "--base", "--root")

def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level_name = os.environ.get("STE_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, level_name, logging.WARNING)

    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

def _load_data(opts: Dict[str, str]) -> Any:
    if "--data" in opts and "--data-json" in opts:
        raise SystemExit("--data and --data-json are mutually exclusive")

    try:
        if "--data" in opts:
            return json.loads(Path(opts["--data"]).read_text(encoding="utf-8"))
        if "--data-json" in opts:
            return json.loads(opts["--data-json"])
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"Cannot load template data: {exc}") from None

    return {}

def _parse_args(argv: List[str]) -> tuple[Optional[str], Dict[str, str], set[str]]:
    template = None
    opts: Dict[str, str] = {}
    flags: set[str] = set()
    it = iter(argv)

    for token in it:
        if token in ("-h", "--help"):
            print(USAGE)
            raise SystemExit(0)

        if token in ("--tokens", "--ast", "--verbose"):
            flags.add(token)
            continue

        name, eq, value = token.partition("=")
        if name in _VALUE_FLAGS:
            if not eq:
                try:
                    value = next(it)
                except StopIteration:
                    raise SystemExit(f"{name} flag requires a value") from None
            opts[name] = value
            continue

        if token.startswith("--"):
            raise SystemExit(f"Unknown option: {token}\n{USAGE}")

        if template is None:
            template = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    return template, opts, flags

def _entry_source(entry: Path, encoding: str) -> Optional[str]:
    """Entry template text for an error excerpt; None when unreadable"""
    try:
        return entry.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError):
        return None

def _report(exc: TemplateError, source: Optional[str]) -> None:
    if debug_py_trace_enabled():
        traceback.print_exc()

    print(f"error: {exc}", file=sys.stderr)

    if source is not None and isinstance(exc, TemplateSyntaxError) and exc.line is not None:
        excerpt = source_excerpt(source, exc.line, exc.column or 1)
        if excerpt:
            print(excerpt, file=sys.stderr)

def main(argv: Optional[List[str]] = None) -> None:
    template, opts, flags = _parse_args(sys.argv[1:] if argv is None else argv)

    if template is None:
        raise SystemExit(USAGE)

    _configure_logging("--verbose" in flags)

    overrides: Dict[str, Any] = {}
    if "--base" in opts:
        overrides["base_dir"] = Path(opts["--base"])
    if "--root" in opts:
        overrides["root_dir"] = Path(opts["--root"])

    engine = TemplateEngine(EngineConfig.from_env(**overrides))
    entry, _ = engine.loader.resolve_entry(template)
    source: Optional[str] = None

    try:
        if "--tokens" in flags or "--ast" in flags:
            engine.loader.check_path(entry)
            source = _run_asyncio(engine.loader.read(entry))

            if "--tokens" in flags:
                for tok in tokenize(source):
                    print(tok)

            if "--ast" in flags:
                print(dump(parse_source(source)), end="")
            return

        sys.stdout.write(engine.render_sync(template, _load_data(opts)))
    except TemplateError as exc:
        if source is None and isinstance(exc, TemplateSyntaxError) and not exc.include_trail:
            source = _entry_source(entry, engine.config.encoding)
        _report(exc, source)
        raise SystemExit(1) from None
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from None

if __name__ == "__main__":
    main()
