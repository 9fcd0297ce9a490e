"""
Recursive Descent Parser for STE templates

Structure:
- Lexer: Token stream from source
- Parser: statement parsers for tags, recursive descent for expressions
- AST: frozen dataclasses from `ste.nodes`

Bodies of `#if`, `#not` and `#each` are parsed recursively, so a nested
block is complete before the outer body resumes scanning for its own closer.
"""

from typing import List, Optional, Tuple

from .lexer import tokenize
from .nodes import (
    Accessor,
    ArrayLiteral,
    Comparison,
    ComputedAccessor,
    ComputedProperty,
    Conditional,
    Each,
    Expr,
    Filter,
    Include,
    IndexRef,
    KeyRef,
    Literal,
    Logical,
    Node,
    ObjectLiteral,
    Output,
    Property,
    PropertyAccessor,
    RawHtml,
    Set,
    Template,
    Text,
    ThisRef,
    Ternary,
    Unary,
    Binary,
    Variable,
)
from .token_types import TT, Tok
from .types import TemplateSyntaxError

# ============================================================================
# Parser
# ============================================================================

class ParseError(TemplateSyntaxError):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.token = token
        if token is None:
            super().__init__(message)
        else:
            super().__init__(message, token.position, token.line, token.column)

# (token type, tag literal) pairs that end a body
Stop = Tuple[TT, str]

class Parser:
    """
    Recursive descent parser for templates.

    Expression precedence (lowest to highest):
    1. ternary (? :)
    2. logical (&&, ||) - one level, left-associative
    3. comparison (==, !=, ===, !==, <, <=, >, >=)
    4. additive (+, -)
    5. multiplicative (*, /, %, **)
    6. unary (!, -)
    7. postfix (.prop, [expr], | filter(args))
    8. primary (literals, identifiers, parens, arrays, objects)
    """

    COMPARISON_OPS = {
        TT.EQ: '==',
        TT.NEQ: '!=',
        TT.STRICT_EQ: '===',
        TT.STRICT_NEQ: '!==',
        TT.LT: '<',
        TT.LTE: '<=',
        TT.GT: '>',
        TT.GTE: '>=',
    }

    ADDITIVE_OPS = {
        TT.PLUS: '+',
        TT.MINUS: '-',
    }

    MULTIPLICATIVE_OPS = {
        TT.STAR: '*',
        TT.SLASH: '/',
        TT.MOD: '%',
        TT.POW: '**',
    }

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else Tok(TT.EOF, '')

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1] if self.tokens else Tok(TT.EOF, '')

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        self.current = self.peek()
        return prev

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: Optional[str] = None) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            msg = message or f"Expected {token_type.name}, got {self.describe(self.current)}"
            raise ParseError(msg, self.current)
        return self.advance()

    @staticmethod
    def describe(tok: Tok) -> str:
        if tok.type == TT.EOF:
            return "end of input"
        if tok.type == TT.TEXT:
            return "template text"
        return f"'{tok.lexeme}'"

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Template:
        """Parse entire template"""
        body = self.parse_body()
        return Template(body)

    def parse_body(self, opener: Optional[Tok] = None, stops: Tuple[Stop, ...] = ()) -> Tuple[Node, ...]:
        """
        Parse text and `{{ }}` statements until one of `stops` follows `{{`.

        On return the `{{` of the stop tag is consumed and `current` is the
        stop tag itself, so the caller decides what the closer means.
        """
        body: List[Node] = []

        while True:
            if self.check(TT.EOF):
                if opener is not None:
                    closer = stops[-1][1] if stops else opener.literal
                    raise ParseError(f"Unclosed {opener.lexeme} block, expected {{{{/{closer}}}}}", opener)
                return tuple(body)

            if self.check(TT.TEXT):
                body.append(Text(self.advance().literal))
                continue

            self.expect(TT.DOUBLE_BRACE_OPEN)
            head = self.current

            if (head.type, head.literal) in stops:
                return tuple(body)

            body.append(self.parse_statement())

    def parse_statement(self) -> Node:
        """Dispatch on the token right after `{{`"""
        head = self.current

        if head.type == TT.TAG_SET:
            return self.parse_set()

        if head.type == TT.TAG_CONDITIONAL:
            if head.literal in ('if', 'not'):
                return self.parse_conditional()
            raise ParseError(f"Unexpected {head.lexeme} outside of an #if block", head)

        if head.type == TT.TAG_EACH:
            return self.parse_each()

        if head.type == TT.TAG_INCLUDE:
            return self.parse_include()

        if head.type in (TT.TAG_CONDITIONAL_CLOSE, TT.TAG_EACH_CLOSE):
            raise ParseError(f"Unexpected closing tag {head.lexeme}", head)

        if head.type == TT.RAW_HTML and self.peek(1).type == TT.DOUBLE_BRACE_CLOSE:
            self.advance()
            self.advance()
            return RawHtml(head.literal)

        expr = self.parse_expr()
        self.expect_close("expression")
        return Output(expr)

    def expect_close(self, what: str) -> Tok:
        return self.expect(TT.DOUBLE_BRACE_CLOSE, f"Expected '}}}}' after {what}, got {self.describe(self.current)}")

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_set(self) -> Set:
        """#set name[.prop | [expr]]* = expr"""
        self.expect(TT.TAG_SET)

        if self.check(TT.RAW_HTML):
            name = self.advance().literal
        else:
            name = self.expect(TT.IDENT, f"Expected variable name after #set, got {self.describe(self.current)}").lexeme

        chain: List[Accessor] = []
        while self.check(TT.DOT, TT.LSQB):
            if self.match(TT.DOT):
                chain.append(PropertyAccessor(self.parse_property_name()))
            else:
                self.advance()
                chain.append(ComputedAccessor(self.parse_expr()))
                self.expect(TT.RSQB, "Expected ']' after property access")

        self.expect(TT.ASSIGN, f"Expected '=' after variable name in #set, got {self.describe(self.current)}")
        value = self.parse_expr()
        self.expect_close("#set expression")

        return Set(name, tuple(chain) if chain else None, value)

    def parse_conditional(self) -> Conditional:
        """#if cond}} ... [#elseif cond}} ...]* [#else}} ...] /if, or #not cond}} ... /not"""
        opener = self.advance()
        kind = opener.literal
        condition = self.parse_expr()
        self.expect_close(f"#{kind} condition")

        if kind == 'not':
            body = self.parse_body(opener, ((TT.TAG_CONDITIONAL_CLOSE, 'not'),))
            self.advance()
            self.expect_close("closing /not tag")
            return Conditional('not', condition, body)

        if_stops = (
            (TT.TAG_CONDITIONAL, 'elseif'),
            (TT.TAG_CONDITIONAL, 'else'),
            (TT.TAG_CONDITIONAL_CLOSE, 'if'),
        )

        body = self.parse_body(opener, if_stops)
        alternates: List[Conditional] = []

        while True:
            tag = self.advance()

            if tag.type == TT.TAG_CONDITIONAL_CLOSE:
                self.expect_close("closing /if tag")
                break

            if tag.literal == 'elseif':
                branch_cond = self.parse_expr()
                self.expect_close("#elseif condition")
                branch_body = self.parse_body(opener, if_stops)
                alternates.append(Conditional('elseif', branch_cond, branch_body))
                continue

            # else: only the closing tag may follow
            self.expect_close("#else")
            branch_body = self.parse_body(opener, ((TT.TAG_CONDITIONAL_CLOSE, 'if'),))
            alternates.append(Conditional('else', None, branch_body))

        return Conditional('if', condition, body, tuple(alternates))

    def parse_each(self) -> Each:
        """#eachN expr}} ... /eachN"""
        opener = self.advance()
        tag = opener.literal
        iterable = self.parse_expr()
        self.expect_close(f"#{tag} expression")

        body = self.parse_body(opener, ((TT.TAG_EACH_CLOSE, tag),))
        self.advance()
        self.expect_close(f"closing /{tag} tag")

        return Each(tag, iterable, body)

    def parse_include(self) -> Include:
        """#include(expr)"""
        self.expect(TT.TAG_INCLUDE)
        self.expect(TT.LPAR, "Expected '(' after #include")
        path = self.parse_expr()
        self.expect(TT.RPAR, "Expected ')' after include path")
        self.expect_close("#include")
        return Include(path)

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expr(self) -> Expr:
        return self.parse_ternary_expr()

    def parse_ternary_expr(self) -> Expr:
        """cond ? a : b, right-associative in the false branch"""
        expr = self.parse_logical_expr()

        if self.match(TT.QMARK):
            true_expr = self.parse_expr()
            self.expect(TT.COLON, "Expected ':' after true branch of ternary")
            false_expr = self.parse_ternary_expr()
            return Ternary(expr, true_expr, false_expr)

        return expr

    def parse_logical_expr(self) -> Expr:
        """&& and || share one precedence level"""
        expr = self.parse_compare_expr()

        while self.check(TT.AND, TT.OR):
            op = self.advance().lexeme
            right = self.parse_compare_expr()
            expr = Logical(op, expr, right)

        return expr

    def parse_compare_expr(self) -> Expr:
        expr = self.parse_add_expr()

        while self.current.type in self.COMPARISON_OPS:
            op = self.COMPARISON_OPS[self.advance().type]
            right = self.parse_add_expr()
            expr = Comparison(op, expr, right)

        return expr

    def parse_add_expr(self) -> Expr:
        expr = self.parse_mul_expr()

        while self.current.type in self.ADDITIVE_OPS:
            op = self.ADDITIVE_OPS[self.advance().type]
            right = self.parse_mul_expr()
            expr = Binary(op, expr, right)

        return expr

    def parse_mul_expr(self) -> Expr:
        """*, /, % and ** (left-associative, same level)"""
        expr = self.parse_unary_expr()

        while self.current.type in self.MULTIPLICATIVE_OPS:
            op = self.MULTIPLICATIVE_OPS[self.advance().type]
            right = self.parse_unary_expr()
            expr = Binary(op, expr, right)

        return expr

    def parse_unary_expr(self) -> Expr:
        if self.check(TT.NEG, TT.MINUS):
            op = self.advance().lexeme
            return Unary(op, self.parse_unary_expr())

        return self.parse_postfix_expr()

    def parse_postfix_expr(self) -> Expr:
        """Member access chain followed by an optional filter chain"""
        expr = self.parse_primary_expr()

        while self.check(TT.DOT, TT.LSQB):
            if self.match(TT.DOT):
                expr = Property(expr, self.parse_property_name())
            else:
                self.advance()
                index = self.parse_expr()
                self.expect(TT.RSQB, "Expected ']' after property access")
                expr = ComputedProperty(expr, index)

        while self.match(TT.PIPE):
            expr = self.parse_filter(expr)

        return expr

    def parse_filter(self, expr: Expr) -> Filter:
        """name or name(arg, ...) after '|'"""
        name = self.expect(TT.IDENT, f"Expected filter name after '|', got {self.describe(self.current)}").lexeme
        args: List[Expr] = []

        if self.match(TT.LPAR):
            if not self.check(TT.RPAR):
                args.append(self.parse_expr())
                while self.match(TT.COMMA):
                    args.append(self.parse_expr())
            self.expect(TT.RPAR, "Expected ')' after filter arguments")

        return Filter(expr, name, tuple(args))

    def parse_property_name(self) -> str:
        # keywords are valid property names: item.this, obj.true
        if self.check(TT.IDENT, TT.TRUE, TT.FALSE, TT.THIS, TT.RAW_HTML):
            return self.advance().lexeme
        raise ParseError(f"Expected property name after '.', got {self.describe(self.current)}", self.current)

    def parse_primary_expr(self) -> Expr:
        tok = self.current

        match tok.type:
            case TT.STRING | TT.NUMBER:
                self.advance()
                return Literal(tok.literal)
            case TT.TRUE:
                self.advance()
                return Literal(True)
            case TT.FALSE:
                self.advance()
                return Literal(False)
            case TT.IDENT:
                self.advance()
                return Variable(tok.lexeme)
            case TT.RAW_HTML:
                self.advance()
                return RawHtml(tok.literal)
            case TT.THIS:
                self.advance()
                return ThisRef()
            case TT.AT_INDEX:
                self.advance()
                return IndexRef()
            case TT.AT_KEY:
                self.advance()
                return KeyRef()
            case TT.LPAR:
                self.advance()
                expr = self.parse_expr()
                self.expect(TT.RPAR, "Expected ')' after expression")
                return expr
            case TT.LSQB:
                return self.parse_array()
            case TT.LBRACE:
                return self.parse_object()
            case _:
                raise ParseError(f"Unexpected token {self.describe(tok)}", tok)

    def parse_array(self) -> ArrayLiteral:
        self.expect(TT.LSQB)
        elements: List[Expr] = []

        if not self.check(TT.RSQB):
            elements.append(self.parse_expr())
            while self.match(TT.COMMA):
                if self.check(TT.RSQB):
                    break
                elements.append(self.parse_expr())

        self.expect(TT.RSQB, "Expected ']' after array elements")
        return ArrayLiteral(tuple(elements))

    def parse_object(self) -> ObjectLiteral:
        self.expect(TT.LBRACE)
        properties: List[Tuple[str, Expr]] = []

        if not self.check(TT.RBRACE):
            properties.append(self.parse_object_item())
            while self.match(TT.COMMA):
                if self.check(TT.RBRACE):
                    break
                properties.append(self.parse_object_item())

        self.expect(TT.RBRACE, "Expected '}' after object literal")
        return ObjectLiteral(tuple(properties))

    def parse_object_item(self) -> Tuple[str, Expr]:
        if self.check(TT.STRING):
            key = self.advance().literal
        elif self.check(TT.NUMBER):
            key = self.advance().lexeme
        else:
            key = self.parse_property_name()

        self.expect(TT.COLON, "Expected ':' after property name")
        return key, self.parse_expr()

def parse(tokens: List[Tok]) -> Template:
    """Parse a token list into a Template node"""
    return Parser(tokens).parse()

def parse_source(source: str) -> Template:
    """Tokenize and parse template source"""
    return parse(tokenize(source))
