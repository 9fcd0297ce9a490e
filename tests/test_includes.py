from __future__ import annotations

from pathlib import Path

import pytest

from ste.engine import TemplateEngine
from tests.support.harness import (
    EvaluationError,
    FileError,
    PathSecurityError,
    TemplateError,
    render,
    render_file,
)


def test_include_bare_path(template_dir: Path, write_template) -> None:
    write_template("page.html", "<h1>{{#include('partials/title.html')}}</h1>")
    write_template("partials/title.html", "{{ title }}")

    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, "page.html", {"title": "Hi"}) == "<h1>Hi</h1>"


def test_dot_slash_is_relative_to_including_file(template_dir: Path, write_template) -> None:
    write_template("page.html", "{{#include('partials/a.html')}}")
    write_template("partials/a.html", "a>{{#include('./b.html')}}")
    write_template("partials/b.html", "b>{{#include('../c.html')}}")
    write_template("c.html", "c")

    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, "page.html") == "a>b>c"


def test_slash_prefix_is_relative_to_base(template_dir: Path, write_template) -> None:
    write_template("deep/page.html", "{{#include('/shared.html')}}|{{#include('shared.html')}}")
    write_template("shared.html", "root")
    write_template("deep/shared.html", "deep")

    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, "deep/page.html") == "root|root"


def test_absolute_entry_sets_base(template_dir: Path, write_template) -> None:
    page = write_template("site/page.html", "{{#include('part.html')}}")
    write_template("site/part.html", "site part")
    write_template("part.html", "top part")

    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, page) == "site part"


def test_render_string_includes_resolve_against_base_dir(template_dir: Path, write_template) -> None:
    write_template("part.html", "[{{ v }}]")

    assert render("{{#include('part.html')}}{{#include('./part.html')}}", {"v": 1}, base_dir=template_dir) == "[1][1]"


def test_include_path_from_expression(template_dir: Path, write_template) -> None:
    write_template("icons/star.html", "*")

    out = render("{{#include('icons/' + name + '.html')}}", {"name": "star"}, base_dir=template_dir)
    assert out == "*"


def test_include_sees_loop_item_over_global_data(template_dir: Path, write_template) -> None:
    write_template("card.html", "{{ name }}@{{ site }};")

    source = "{{#each users}}{{#include('card.html')}}{{/each}}"
    data = {"users": [{"name": "Ada", "site": "x"}, {"name": "Bob"}], "site": "main"}
    assert render(source, data, base_dir=template_dir) == "Ada@x;Bob@main;"


def test_include_sees_parent_set_but_does_not_leak_back(template_dir: Path, write_template) -> None:
    write_template("child.html", "{{ greeting }}{{#set greeting = 'changed'}}{{#set local = 1}}")

    source = "{{#set greeting = 'hi'}}{{#include('child.html')}}|{{ greeting }}|{{ local }}"
    assert render(source, base_dir=template_dir) == "hi|hi|"


def test_include_starts_outside_loop(template_dir: Path, write_template) -> None:
    write_template("idx.html", "[{{@index}}]")

    assert render("{{#each [1, 2]}}{{@index}}{{#include('idx.html')}}{{/each}}", base_dir=template_dir) == "0[]1[]"


def test_raw_html_through_include(template_dir: Path, write_template) -> None:
    write_template("box.html", "{{#set html_inner = '<i>' + label + '</i>'}}<div>{{html_inner}}</div>{{html_outer}}")

    out = render("{{#include('box.html')}}", {"label": "x", "html_outer": "<hr>"}, base_dir=template_dir)
    assert out == "<div><i>x</i></div><hr>"


def test_recursion_driven_by_data(template_dir: Path, write_template) -> None:
    write_template("tree.html", "{{ name }}{{#each children}}({{#include('tree.html')}}){{/each}}")

    tree = {
        "name": "root",
        "children": [
            {"name": "a", "children": [{"name": "a1", "children": []}]},
            {"name": "b", "children": []},
        ],
    }
    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, "tree.html", tree) == "root(a(a1))(b)"


def test_missing_include_reports_trail(template_dir: Path, write_template) -> None:
    write_template("page.html", "{{#include('a.html')}}")
    write_template("a.html", "{{#include('missing.html')}}")

    engine = TemplateEngine(base_dir=template_dir)
    with pytest.raises(FileError) as exc_info:
        render_file(engine, "page.html")

    err = exc_info.value
    assert err.include_trail == ["missing.html", "a.html"]
    assert "Template file not found" in str(err)
    assert str(err).endswith("(included via missing.html <- a.html)")
    assert err.path == str(template_dir / "missing.html")


def test_missing_entry_template(template_dir: Path) -> None:
    engine = TemplateEngine(base_dir=template_dir)
    with pytest.raises(FileError) as exc_info:
        render_file(engine, "nope.html")

    assert exc_info.value.include_trail == []


def test_non_html_suffix_rejected(template_dir: Path, write_template) -> None:
    write_template("notes.txt", "text")

    with pytest.raises(FileError) as exc_info:
        render("{{#include('notes.txt')}}", base_dir=template_dir)

    assert "is not an HTML file" in str(exc_info.value)


def test_allowed_suffixes_configurable(template_dir: Path, write_template) -> None:
    write_template("mail.txt", "plain {{ n }}")

    engine = TemplateEngine(base_dir=template_dir, allowed_suffixes=(".html", ".TXT"))
    assert render_file(engine, "mail.txt", {"n": 1}) == "plain 1"


@pytest.mark.parametrize(
    "path",
    [
        pytest.param("1", id="number"),
        pytest.param("''", id="empty-string"),
        pytest.param("missing", id="unresolved"),
    ],
)
def test_include_path_must_be_string(template_dir: Path, path: str) -> None:
    with pytest.raises(EvaluationError) as exc_info:
        render(f"{{{{#include({path})}}}}", base_dir=template_dir)

    assert "Include path must be a non-empty string" in str(exc_info.value)


def test_self_include_hits_depth_limit(template_dir: Path, write_template) -> None:
    write_template("loop.html", "x{{#include('loop.html')}}")

    engine = TemplateEngine(base_dir=template_dir, max_include_depth=3)
    with pytest.raises(EvaluationError) as exc_info:
        render_file(engine, "loop.html")

    err = exc_info.value
    assert "Maximum include depth (3) exceeded" in err.message
    assert err.include_trail == ["loop.html"] * 4


def test_zero_depth_forbids_includes(template_dir: Path, write_template) -> None:
    write_template("part.html", "p")

    with pytest.raises(EvaluationError):
        render("{{#include('part.html')}}", base_dir=template_dir, max_include_depth=0)


def test_syntax_error_in_include_keeps_class(template_dir: Path, write_template) -> None:
    write_template("bad.html", "{{#if x}}never closed")

    with pytest.raises(TemplateError) as exc_info:
        render("{{#include('bad.html')}}", base_dir=template_dir)

    assert type(exc_info.value).__name__ == "ParseError"
    assert exc_info.value.include_trail == ["bad.html"]


# ---------- Root mode ----------

def test_root_mode_blocks_escape(tmp_path: Path, template_dir: Path, write_template) -> None:
    (tmp_path / "secret.html").write_text("secret", encoding="utf-8")
    write_template("page.html", "{{#include('../secret.html')}}")

    engine = TemplateEngine(base_dir=template_dir, root_dir=template_dir)
    with pytest.raises(PathSecurityError) as exc_info:
        render_file(engine, "page.html")

    assert exc_info.value.include_trail == ["../secret.html"]


def test_root_mode_blocks_entry_outside_root(tmp_path: Path, template_dir: Path) -> None:
    outside = tmp_path / "outside.html"
    outside.write_text("x", encoding="utf-8")

    engine = TemplateEngine(base_dir=template_dir, root_dir=template_dir)
    with pytest.raises(PathSecurityError):
        render_file(engine, outside)


def test_root_mode_allows_paths_inside(template_dir: Path, write_template) -> None:
    write_template("a/page.html", "{{#include('../b/part.html')}}")
    write_template("b/part.html", "ok")

    engine = TemplateEngine(base_dir=template_dir, root_dir=template_dir)
    assert render_file(engine, "a/page.html") == "ok"


def test_without_root_mode_parent_paths_are_allowed(tmp_path: Path, template_dir: Path, write_template) -> None:
    (tmp_path / "shared.html").write_text("shared", encoding="utf-8")
    write_template("page.html", "{{#include('../shared.html')}}")

    engine = TemplateEngine(base_dir=template_dir)
    assert render_file(engine, "page.html") == "shared"
