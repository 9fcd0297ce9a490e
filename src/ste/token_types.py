"""
Token Types for the STE tokenizer

Shared between lexer and parser to avoid circular dependencies.
"""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types - one per terminal of the template grammar"""

    # Text mode
    TEXT = auto()

    # Delimiters
    DOUBLE_BRACE_OPEN = auto()  # {{
    DOUBLE_BRACE_CLOSE = auto()  # }}

    # Literals
    STRING = auto()
    NUMBER = auto()
    IDENT = auto()
    TRUE = auto()
    FALSE = auto()
    THIS = auto()

    # Tags
    TAG_SET = auto()
    TAG_CONDITIONAL = auto()  # if / elseif / else / not
    TAG_EACH = auto()  # each, each1, each2, ...
    TAG_INCLUDE = auto()
    TAG_CONDITIONAL_CLOSE = auto()  # /if, /not
    TAG_EACH_CLOSE = auto()  # /each, /each1, ...
    RAW_HTML = auto()  # html_name, #html_name
    AT_INDEX = auto()  # @index
    AT_KEY = auto()  # @key

    # Arithmetic
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    MOD = auto()
    POW = auto()

    # Comparison
    EQ = auto()  # ==
    NEQ = auto()  # !=
    STRICT_EQ = auto()  # ===
    STRICT_NEQ = auto()  # !==
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Logical
    AND = auto()  # &&
    OR = auto()  # ||
    NEG = auto()  # !

    # Misc operators
    ASSIGN = auto()  # =
    PIPE = auto()  # |
    AMP = auto()  # &

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    COMMA = auto()
    COLON = auto()
    QMARK = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Tok:
    """Token with position info"""

    type: TT
    lexeme: str
    literal: Any = None
    position: int = 0
    line: int = 1
    column: int = 1

    def __repr__(self):
        return f"Tok({self.type.name}, {self.lexeme!r}, {self.line}:{self.column})"
