"""prompt_toolkit lexer for live template highlighting in the REPL."""

from __future__ import annotations

from typing import Callable

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer import Lexer as TemplateLexer, LexError
from .token_types import TT

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "text": "",
    "delimiter": "bold ansiblue",
    "tag": "bold ansicyan",
    "loopvar": "ansicyan",
    "raw": "bold ansiyellow",
    "boolean": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "identifier": "",
    "operator": "",
    "filter": "bold ansiyellow",
    "punctuation": "",
    "error": "bold ansired",
}

_TT_GROUP = {
    TT.TEXT: "text",
    TT.DOUBLE_BRACE_OPEN: "delimiter",
    TT.DOUBLE_BRACE_CLOSE: "delimiter",
    TT.TAG_SET: "tag",
    TT.TAG_CONDITIONAL: "tag",
    TT.TAG_EACH: "tag",
    TT.TAG_INCLUDE: "tag",
    TT.TAG_CONDITIONAL_CLOSE: "tag",
    TT.TAG_EACH_CLOSE: "tag",
    TT.AT_INDEX: "loopvar",
    TT.AT_KEY: "loopvar",
    TT.THIS: "loopvar",
    TT.RAW_HTML: "raw",
    TT.TRUE: "boolean",
    TT.FALSE: "boolean",
    TT.NUMBER: "number",
    TT.STRING: "string",
    TT.IDENT: "identifier",
    TT.PIPE: "filter",
    TT.AMP: "error",
}

def _group_for(tt: TT) -> str:
    return _TT_GROUP.get(tt, "punctuation" if tt in (TT.LPAR, TT.RPAR, TT.LSQB, TT.RSQB, TT.LBRACE, TT.RBRACE, TT.DOT, TT.COMMA, TT.COLON) else "operator")

def highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    try:
        tokens = TemplateLexer(text).tokenize()
    except LexError:
        return [(GROUP_STYLE["error"], text)]

    result: StyleAndTextTuples = []
    pos = 0
    after_pipe = False

    for tok in tokens:
        if tok.type == TT.EOF or not tok.lexeme:
            continue

        start = tok.position
        end = start + len(tok.lexeme)

        # unstyled whitespace between tokens
        if start > pos:
            result.append(("", text[pos:start]))

        group = _group_for(tok.type)
        if after_pipe and tok.type == TT.IDENT:
            group = "filter"
        after_pipe = tok.type == TT.PIPE

        result.append((GROUP_STYLE[group], text[start:end]))
        pos = end

    if pos < len(text):
        result.append(("", text[pos:]))

    return result

class TemplateHighlighter(Lexer):
    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno < len(lines):
                return highlight_line(lines[lineno])
            return []

        return get_line
