"""Interactive REPL for STE templates, powered by prompt_toolkit."""

from __future__ import annotations

import json
import os
import re
import sys
import traceback
from pathlib import Path
from typing import Any, Dict

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.shortcuts import clear

from .ast_dump import dump
from .config import EngineConfig
from .engine import TemplateEngine, _run_asyncio
from .lexer import tokenize
from .parser import parse_source
from .repl_highlight import TemplateHighlighter
from .types import TemplateError
from .utils import DEBUG_PY_TRACE_ENV, debug_py_trace_enabled

# Characters pasted terminals tend to smuggle into template input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# command -> (help text, argument hint)
_SLASH_CMDS = {
    "/ast": ("Show the parse tree of a template", "<template>"),
    "/clear": ("Clear the terminal screen", ""),
    "/data": ("Replace the session data with a JSON object", "<json>"),
    "/load": ("Load session data from a JSON file", "<file.json>"),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset session data and cycle state", ""),
    "/tokens": ("Show the token stream of a template", "<template>"),
}

_ON_WORDS = ("on", "1", "true", "yes")
_OFF_WORDS = ("off", "0", "false", "no")

class ReplSession:
    """Template data that persists across REPL inputs, including #set results."""

    def __init__(self, engine: TemplateEngine | None = None):
        self.engine = engine if engine is not None else TemplateEngine(EngineConfig.from_env())
        self.data: Dict[str, Any] = {}

    def render(self, source: str) -> str:
        async def _render() -> str:
            tree = self.engine.string_tree()
            state = tree.make_state(self.data, 0, source)
            text = await tree.run(parse_source(source), state)
            # markers are only valid within one render
            self.data = {
                key: state.raw_html.value_of(value) if state.raw_html.is_marker(value) else value
                for key, value in state.global_data.items()
            }
            return text

        return _run_asyncio(_render())

    def set_data(self, value: Any) -> None:
        if not isinstance(value, dict):
            raise ValueError("session data must be a JSON object")
        self.data = value

    def reset(self) -> None:
        self.data = {}
        self.engine.reset_cycles()
        self.engine.clear_cache()

class _SlashCompleter(Completer):
    """Complete command names once the input starts with a slash."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=f"{desc} {hint}".strip(),
                )

def _toggle_py_trace(arg: str) -> None:
    choice = arg.lower()
    if choice == "":
        enable = not debug_py_trace_enabled()
    elif choice in _ON_WORDS or choice in _OFF_WORDS:
        enable = choice in _ON_WORDS
    else:
        print("Usage: /py-traceback [on|off]", file=sys.stderr)
        return

    if enable:
        os.environ[DEBUG_PY_TRACE_ENV] = "1"
    else:
        os.environ.pop(DEBUG_PY_TRACE_ENV, None)
    print(f"Python traceback: {'on' if enable else 'off'}")

def handle_slash(line: str, session: ReplSession) -> bool:
    """Run a REPL command. Returns False when `line` is template input."""
    command = line.strip()
    if not command.startswith("/"):
        return False

    cmd, _, arg = command.partition(" ")
    arg = arg.strip()

    try:
        if cmd == "/clear":
            clear()
        elif cmd == "/py-traceback":
            _toggle_py_trace(arg)
        elif cmd == "/reset":
            session.reset()
            print("Session reset.")
        elif cmd == "/data":
            if arg:
                session.set_data(json.loads(arg))
            print(json.dumps(session.data, indent=2, default=str))
        elif cmd == "/load":
            session.set_data(json.loads(Path(arg).read_text(encoding="utf-8")))
            print(f"Loaded {len(session.data)} key(s) from {arg}")
        elif cmd == "/tokens":
            for tok in tokenize(arg):
                print(tok)
        elif cmd == "/ast":
            print(dump(parse_source(arg)), end="")
        else:
            print(f"Unknown command: {cmd}", file=sys.stderr)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
    except TemplateError as exc:
        _print_error(exc)

    return True

def _print_error(exc: TemplateError) -> None:
    print(f"Error: {exc}", file=sys.stderr)
    if debug_py_trace_enabled():
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_exception(exc)), file=sys.stderr, end="")

def _normalize(text: str) -> str:
    """Drop invisible characters from a pasted template line."""
    return _INVISIBLE_RE.sub("", text)

def repl() -> None:
    """Interactive read-render-print loop with prompt_toolkit."""
    session = ReplSession()

    prompt: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        lexer=TemplateHighlighter(),
        completer=_SlashCompleter(),
        complete_while_typing=True,
    )

    print("ste repl - Ctrl-D to exit, / for commands")

    while True:
        try:
            text = prompt.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if handle_slash(text, session):
            continue

        try:
            output = session.render(text)
        except TemplateError as exc:
            _print_error(exc)
            continue

        if output:
            print(output)

def main() -> None:
    repl()

if __name__ == "__main__":
    main()
