from __future__ import annotations

import pytest

from ste.nodes import (
    ArrayLiteral,
    Binary,
    Comparison,
    ComputedAccessor,
    ComputedProperty,
    Conditional,
    Each,
    Filter,
    Include,
    IndexRef,
    KeyRef,
    Literal,
    Logical,
    ObjectLiteral,
    Output,
    Property,
    PropertyAccessor,
    RawHtml,
    Set,
    Template,
    Ternary,
    Text,
    ThisRef,
    Unary,
    Variable,
)
from ste.parser import ParseError, parse_source
from tests.support.harness import TemplateSyntaxError


def _expr(source: str):
    """Expression node of a single `{{ source }}` statement."""
    tree = parse_source(f"{{{{ {source} }}}}")
    (stmt,) = tree.body
    assert isinstance(stmt, Output)
    return stmt.expression


EXPRESSION_CASES = [
    pytest.param("42", Literal(42), id="number"),
    pytest.param("'s'", Literal("s"), id="string"),
    pytest.param("true", Literal(True), id="true"),
    pytest.param("name", Variable("name"), id="variable"),
    pytest.param("this", ThisRef(), id="this"),
    pytest.param("@index", IndexRef(), id="index"),
    pytest.param("@key", KeyRef(), id="key"),
    pytest.param("html_nav | trim", Filter(RawHtml("html_nav"), "trim"), id="raw-html-in-expression"),
    pytest.param("user.name", Property(Variable("user"), "name"), id="dot-property"),
    pytest.param("item.this", Property(Variable("item"), "this"), id="keyword-property"),
    pytest.param(
        "rows[i + 1]",
        ComputedProperty(Variable("rows"), Binary("+", Variable("i"), Literal(1))),
        id="computed-property",
    ),
    pytest.param(
        "a.b[0].c",
        Property(ComputedProperty(Property(Variable("a"), "b"), Literal(0)), "c"),
        id="mixed-chain",
    ),
    pytest.param(
        "1 + 2 * 3",
        Binary("+", Literal(1), Binary("*", Literal(2), Literal(3))),
        id="mul-binds-tighter",
    ),
    pytest.param(
        "10 - 4 - 3",
        Binary("-", Binary("-", Literal(10), Literal(4)), Literal(3)),
        id="sub-left-assoc",
    ),
    pytest.param(
        "2 ** 3 ** 2",
        Binary("**", Binary("**", Literal(2), Literal(3)), Literal(2)),
        id="pow-left-assoc",
    ),
    pytest.param(
        "(1 + 2) * 3",
        Binary("*", Binary("+", Literal(1), Literal(2)), Literal(3)),
        id="parens",
    ),
    pytest.param("-x", Unary("-", Variable("x")), id="negate"),
    pytest.param("!!x", Unary("!", Unary("!", Variable("x"))), id="double-not"),
    pytest.param(
        "a > 1 && b",
        Logical("&&", Comparison(">", Variable("a"), Literal(1)), Variable("b")),
        id="compare-inside-logical",
    ),
    pytest.param(
        "a || b && c",
        Logical("&&", Logical("||", Variable("a"), Variable("b")), Variable("c")),
        id="logical-single-level",
    ),
    pytest.param(
        "a === b",
        Comparison("===", Variable("a"), Variable("b")),
        id="strict-eq",
    ),
    pytest.param(
        "a ? 1 : b ? 2 : 3",
        Ternary(Variable("a"), Literal(1), Ternary(Variable("b"), Literal(2), Literal(3))),
        id="nested-ternary",
    ),
    pytest.param("[1, 'a',]", ArrayLiteral((Literal(1), Literal("a"))), id="array-trailing-comma"),
    pytest.param("[]", ArrayLiteral(()), id="array-empty"),
    pytest.param(
        "{a: 1, 'b c': x, 2: true}",
        ObjectLiteral((("a", Literal(1)), ("b c", Variable("x")), ("2", Literal(True)))),
        id="object-keys",
    ),
    pytest.param(
        "name | uppercase",
        Filter(Variable("name"), "uppercase"),
        id="filter",
    ),
    pytest.param(
        "name | truncate(3, 'x') | lowercase",
        Filter(Filter(Variable("name"), "truncate", (Literal(3), Literal("x"))), "lowercase"),
        id="filter-chain",
    ),
    pytest.param(
        "user.tags | join",
        Filter(Property(Variable("user"), "tags"), "join"),
        id="filter-after-accessors",
    ),
    pytest.param(
        "a + b | length",
        Binary("+", Variable("a"), Filter(Variable("b"), "length")),
        id="filter-binds-to-operand",
    ),
    pytest.param(
        "items | first | defaults('none')",
        Filter(Filter(Variable("items"), "first"), "defaults", (Literal("none"),)),
        id="filter-with-args-after-plain",
    ),
]


@pytest.mark.parametrize("source,expected", EXPRESSION_CASES)
def test_expression_shapes(source: str, expected) -> None:
    assert _expr(source) == expected


def test_text_and_output() -> None:
    tree = parse_source("Hi {{ name }}!")
    assert tree == Template((Text("Hi "), Output(Variable("name")), Text("!")))


def test_raw_html_statement() -> None:
    assert parse_source("{{#html_nav}}").body == (RawHtml("html_nav"),)
    assert parse_source("{{ html_nav }}").body == (RawHtml("html_nav"),)


def test_set_plain() -> None:
    (stmt,) = parse_source("{{#set total = a + 1}}").body
    assert stmt == Set("total", None, Binary("+", Variable("a"), Literal(1)))


def test_set_property_chain() -> None:
    (stmt,) = parse_source("{{#set user.address['zip code'].city = 'X'}}").body
    assert stmt == Set(
        "user",
        (
            PropertyAccessor("address"),
            ComputedAccessor(Literal("zip code")),
            PropertyAccessor("city"),
        ),
        Literal("X"),
    )


def test_set_raw_html_name() -> None:
    (stmt,) = parse_source("{{#set html_box = '<b>x</b>'}}").body
    assert stmt == Set("html_box", None, Literal("<b>x</b>"))


def test_if_elseif_else() -> None:
    (stmt,) = parse_source("{{#if a}}A{{#elseif b}}B{{#else}}C{{/if}}").body
    assert stmt == Conditional(
        "if",
        Variable("a"),
        (Text("A"),),
        (
            Conditional("elseif", Variable("b"), (Text("B"),)),
            Conditional("else", None, (Text("C"),)),
        ),
    )


def test_not_block() -> None:
    (stmt,) = parse_source("{{#not a}}x{{/not}}").body
    assert stmt == Conditional("not", Variable("a"), (Text("x"),))


def test_nested_blocks() -> None:
    (outer,) = parse_source("{{#each rows}}{{#if this}}{{#each1 this}}{{@index}}{{/each1}}{{/if}}{{/each}}").body

    assert isinstance(outer, Each)
    assert outer.tag == "each"
    (cond,) = outer.body
    assert isinstance(cond, Conditional)
    (inner,) = cond.body
    assert inner == Each("each1", ThisRef(), (Output(IndexRef()),))


def test_include() -> None:
    (stmt,) = parse_source("{{#include('./part.html')}}").body
    assert stmt == Include(Literal("./part.html"))


def test_include_expression_path() -> None:
    (stmt,) = parse_source("{{#include(dir + '/x.html')}}").body
    assert stmt == Include(Binary("+", Variable("dir"), Literal("/x.html")))


PARSE_ERROR_CASES = [
    pytest.param("{{#if a}}x", "Unclosed #if block, expected {{/if}}", id="unclosed-if"),
    pytest.param("{{#if a}}x{{#else}}y", "Unclosed #if block, expected {{/if}}", id="unclosed-else"),
    pytest.param("{{#not a}}x", "Unclosed #not block, expected {{/not}}", id="unclosed-not"),
    pytest.param("{{#each2 a}}x{{/each}}", "Unexpected closing tag /each", id="mismatched-each"),
    pytest.param("{{#each a}}x", "Unclosed #each block, expected {{/each}}", id="unclosed-each"),
    pytest.param("x{{/if}}", "Unexpected closing tag /if", id="stray-closer"),
    pytest.param("{{#else}}", "Unexpected #else outside of an #if block", id="stray-else"),
    pytest.param("{{#elseif a}}", "Unexpected #elseif outside of an #if block", id="stray-elseif"),
    pytest.param("{{#not a}}x{{#else}}y{{/not}}", "Unexpected #else outside of an #if block", id="else-in-not"),
    pytest.param("{{ a + }}", "Unexpected token '}}'", id="missing-operand"),
    pytest.param("{{ a b }}", "Expected '}}' after expression", id="two-expressions"),
    pytest.param("{{ a & b }}", "Expected '}}' after expression", id="single-amp"),
    pytest.param("{{#set = 1}}", "Expected variable name after #set", id="set-without-name"),
    pytest.param("{{#set a 1}}", "Expected '=' after variable name in #set", id="set-without-assign"),
    pytest.param("{{#include 'a.html'}}", "Expected '(' after #include", id="include-without-parens"),
    pytest.param("{{ x | }}", "Expected filter name after '|'", id="filter-without-name"),
    pytest.param("{{ x | f(1 }}", "Expected ')' after filter arguments", id="filter-unclosed-args"),
    pytest.param("{{ a ? b }}", "Expected ':' after true branch of ternary", id="ternary-without-colon"),
    pytest.param("{{ [1, 2 }}", "Expected ']' after array elements", id="unclosed-array"),
    pytest.param("{{ {a 1} }}", "Expected ':' after property name", id="object-without-colon"),
    pytest.param("{{ a.1 }}", "Expected property name after '.'", id="numeric-dot-property"),
    pytest.param("{{ a", "Expected '}}' after expression", id="unclosed-expression"),
]


@pytest.mark.parametrize("source,message", PARSE_ERROR_CASES)
def test_parse_errors(source: str, message: str) -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_source(source)

    assert message in str(exc_info.value)


def test_parse_error_position() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_source("ok\n{{ a b }}")

    err = exc_info.value
    assert isinstance(err, TemplateSyntaxError)
    assert (err.line, err.column) == (2, 6)
    assert str(err).endswith("at line 2, col 6")
    assert err.token is not None and err.token.lexeme == "b"


def test_unclosed_block_points_at_opener() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_source("a\n  {{#each items}}x")

    assert (exc_info.value.line, exc_info.value.column) == (2, 5)
