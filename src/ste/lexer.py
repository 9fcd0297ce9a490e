"""
Lexer for STE templates

Splits template source into a flat token stream.

Features:
- Two modes: text mode (raw template text) and expression mode (inside {{ }})
- Single pass, one character of lookahead
- Brace-depth tracking so object literals can nest inside {{ }}
- Position tracking (offset, line, column)
"""

from typing import List, Optional
import re

from .token_types import TT, Tok
from .types import TemplateSyntaxError

_EACH_RE = re.compile(r"each\d*\Z")

# ============================================================================
# Lexer
# ============================================================================

class Lexer:
    """
    Template lexer.

    Text mode accumulates characters into one TEXT token until it sees `{{`.
    Expression mode tokenizes a small expression language until the matching
    `}}`; single braces inside it are counted so `{ key: value }` never closes
    the expression early.
    """

    KEYWORDS = {
        'true': TT.TRUE,
        'false': TT.FALSE,
        'this': TT.THIS,
    }

    CONDITIONAL_TAGS = ('if', 'elseif', 'else', 'not')
    CLOSABLE_CONDITIONALS = ('if', 'not')

    # Ordered so that multi-character operators win over their prefixes
    OPERATORS = [
        # Three-character operators
        ('===', TT.STRICT_EQ),
        ('!==', TT.STRICT_NEQ),

        # Two-character operators
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('&&', TT.AND),
        ('||', TT.OR),
        ('**', TT.POW),

        # Single-character operators
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('%', TT.MOD),
        ('<', TT.LT),
        ('>', TT.GT),
        ('!', TT.NEG),
        ('=', TT.ASSIGN),
        ('|', TT.PIPE),
        ('&', TT.AMP),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (':', TT.COLON),
        ('?', TT.QMARK),
    ]

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []

        # Start of the token being scanned
        self.start = 0
        self.start_line = 1
        self.start_column = 1

        self.in_expression = False
        self.brace_depth = 0

    # ========================================================================
    # Driver
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize the whole template; the list always ends with EOF"""
        while self.pos < len(self.source):
            self.mark_start()
            if self.in_expression:
                self.scan_token()
            else:
                self.scan_text()

        self.mark_start()
        self.emit(TT.EOF, '')
        return self.tokens

    def scan_text(self):
        """Accumulate raw text up to the next `{{`"""
        end = self.source.find('{{', self.pos)
        if end == -1:
            end = len(self.source)

        if end > self.pos:
            text = self.advance(end - self.pos)
            self.emit(TT.TEXT, text, text)

        if self.pos < len(self.source):
            self.mark_start()
            self.advance(2)
            self.emit(TT.DOUBLE_BRACE_OPEN, '{{')
            self.in_expression = True
            self.brace_depth = 0

    def scan_token(self):
        """Scan next token inside an expression region"""
        ch = self.peek()

        if ch in (' ', '\t', '\r', '\n'):
            self.advance()
            return

        if ch == '}':
            self.scan_closing_brace()
            return

        if ch == '{':
            self.advance()
            self.brace_depth += 1
            self.emit(TT.LBRACE, '{')
            return

        if ch == '#':
            self.scan_tag()
            return

        if ch == '/':
            self.scan_slash()
            return

        if ch == '@':
            self.scan_at()
            return

        if ch in ('"', "'", '`'):
            self.scan_string()
            return

        if ch.isdigit():
            self.scan_number()
            return

        if ch.isalpha() or ch == '_':
            self.scan_identifier()
            return

        self.scan_operator()

    # ========================================================================
    # Scanners
    # ========================================================================

    def scan_closing_brace(self):
        if self.brace_depth > 0:
            self.advance()
            self.brace_depth -= 1
            self.emit(TT.RBRACE, '}')
            return

        if self.peek(1) == '}':
            self.advance(2)
            self.emit(TT.DOUBLE_BRACE_CLOSE, '}}')
            self.in_expression = False
            return

        raise UnexpectedCharacter("Unexpected character '}'", self.pos, self.line, self.column)

    def scan_tag(self):
        """Scan `#name`: set, if/elseif/else/not, eachN, include, html_*"""
        self.advance()  # '#'
        name = self.read_word()

        if name == 'set':
            self.emit(TT.TAG_SET, '#set', name)
        elif name in self.CONDITIONAL_TAGS:
            self.emit(TT.TAG_CONDITIONAL, f'#{name}', name)
        elif _EACH_RE.match(name):
            self.emit(TT.TAG_EACH, f'#{name}', name)
        elif name == 'include':
            self.emit(TT.TAG_INCLUDE, '#include', name)
        elif name.startswith('html_'):
            self.emit(TT.RAW_HTML, f'#{name}', name)
        else:
            raise UnexpectedCharacter(f"Unexpected tag: #{name}", self.start, self.start_line, self.start_column)

    def scan_slash(self):
        """Closing tag right after `{{`, otherwise division"""
        self.advance()  # '/'
        after_open = bool(self.tokens) and self.tokens[-1].type == TT.DOUBLE_BRACE_OPEN

        if not (after_open and self.peek().isalpha()):
            self.emit(TT.SLASH, '/')
            return

        name = self.read_word()

        if name in self.CLOSABLE_CONDITIONALS:
            self.emit(TT.TAG_CONDITIONAL_CLOSE, f'/{name}', name)
        elif _EACH_RE.match(name):
            self.emit(TT.TAG_EACH_CLOSE, f'/{name}', name)
        else:
            raise UnexpectedCharacter(f"Unexpected closing tag: /{name}", self.start, self.start_line, self.start_column)

    def scan_at(self):
        self.advance()  # '@'
        name = self.read_word()

        if name == 'index':
            self.emit(TT.AT_INDEX, '@index')
        elif name == 'key':
            self.emit(TT.AT_KEY, '@key')
        else:
            raise UnexpectedCharacter(f"Unexpected @ syntax: @{name}", self.start, self.start_line, self.start_column)

    def scan_string(self):
        """Scan quoted string; the closing quote is the only special character"""
        quote = self.advance()
        end = self.source.find(quote, self.pos)

        if end == -1:
            raise UnterminatedString("Unterminated string", self.start, self.start_line, self.start_column)

        value = self.advance(end - self.pos)
        self.advance()  # Closing quote
        self.emit(TT.STRING, f'{quote}{value}{quote}', value)

    def scan_number(self):
        """Integer or decimal literal"""
        value = ''

        # Integer part
        while self.peek().isdigit():
            value += self.advance()

        # Decimal part
        if self.peek() == '.' and self.peek(1).isdigit():
            value += self.advance()  # .
            while self.peek().isdigit():
                value += self.advance()
            self.emit(TT.NUMBER, value, float(value))
            return

        self.emit(TT.NUMBER, value, int(value))

    def scan_identifier(self):
        """Scan identifier, keyword or raw-html name"""
        value = self.read_word()

        if value.startswith('html_'):
            self.emit(TT.RAW_HTML, value, value)
            return

        token_type = self.KEYWORDS.get(value, TT.IDENT)
        self.emit(token_type, value)

    def scan_operator(self):
        """Longest operator match at the cursor"""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.emit(op_type, op_str)
                return

        ch = self.peek()
        raise UnexpectedCharacter(f"Unexpected character '{ch}'", self.pos, self.line, self.column)

    # ========================================================================
    # Utilities
    # ========================================================================

    def read_word(self) -> str:
        value = ''
        while self.peek().isalnum() or self.peek() == '_':
            value += self.advance()
        return value

    def peek(self, offset: int = 0) -> str:
        """Character at pos + offset, NUL past the end"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Move past n characters, tracking line and column, and return them"""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")

        chunk = self.source[self.pos:self.pos + n]
        newlines = chunk.count('\n')

        if newlines:
            self.line += newlines
            self.column = len(chunk) - chunk.rfind('\n')
        else:
            self.column += len(chunk)

        self.pos += len(chunk)
        return chunk

    def mark_start(self):
        self.start = self.pos
        self.start_line = self.line
        self.start_column = self.column

    def emit(self, token_type: TT, lexeme: str, literal: Optional[object] = None):
        """Emit a token starting at the marked position"""
        tok = Tok(
            type=token_type,
            lexeme=lexeme,
            literal=literal,
            position=self.start,
            line=self.start_line,
            column=self.start_column,
        )
        self.tokens.append(tok)
        self.mark_start()

class LexError(TemplateSyntaxError):
    """Lexical analysis error"""
    pass

class UnexpectedCharacter(LexError):
    pass

class UnterminatedString(LexError):
    pass

def tokenize(source: str) -> List[Tok]:
    """Tokenize a template in one call"""
    lexer = Lexer(source)
    return lexer.tokenize()
