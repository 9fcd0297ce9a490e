from __future__ import annotations

import json
from pathlib import Path

import pytest

from ste.runner import USAGE, _parse_args, main
from ste.utils import debug_py_trace_enabled, source_excerpt


def test_renders_template_to_stdout(template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]) -> None:
    write_template("page.html", "Hi {{ name }}{{#include('./part.html')}}")
    write_template("part.html", "!")

    main(["page.html", "--base", str(template_dir), "--data-json", '{"name": "Ada"}'])

    assert capsys.readouterr().out == "Hi Ada!"


def test_data_file_and_equals_form(
    tmp_path: Path, template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]
) -> None:
    write_template("page.html", "{{ n * 2 }}")
    data = tmp_path / "data.json"
    data.write_text(json.dumps({"n": 21}), encoding="utf-8")

    main(["page.html", f"--base={template_dir}", f"--data={data}"])

    assert capsys.readouterr().out == "42"


def test_base_dir_from_environment(
    monkeypatch: pytest.MonkeyPatch, template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]
) -> None:
    write_template("page.html", "env")
    monkeypatch.setenv("STE_BASE_DIR", str(template_dir))

    main(["page.html"])

    assert capsys.readouterr().out == "env"


def test_tokens_dump(template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]) -> None:
    write_template("page.html", "a{{x}}")

    main(["page.html", "--base", str(template_dir), "--tokens"])

    assert capsys.readouterr().out.splitlines() == [
        "Tok(TEXT, 'a', 1:1)",
        "Tok(DOUBLE_BRACE_OPEN, '{{', 1:2)",
        "Tok(IDENT, 'x', 1:4)",
        "Tok(DOUBLE_BRACE_CLOSE, '}}', 1:5)",
        "Tok(EOF, '', 1:7)",
    ]


def test_ast_dump(template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]) -> None:
    write_template("page.html", "{{x}}")

    main(["page.html", "--base", str(template_dir), "--ast"])

    assert capsys.readouterr().out == "template\n  body\n    output\n      variable\t'x'\n"


def test_syntax_error_shows_excerpt(template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]) -> None:
    write_template("page.html", "ok\n{{ a b }}")

    with pytest.raises(SystemExit) as exc_info:
        main(["page.html", "--base", str(template_dir), "--ast"])

    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "error: Expected '}}' after expression, got 'b' at line 2, col 6" in err
    assert "{{ a b }}\n     ^" in err


def test_render_syntax_error_shows_excerpt(
    template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]
) -> None:
    write_template("page.html", "ok\n{{ a b }}")

    with pytest.raises(SystemExit):
        main(["page.html", "--base", str(template_dir)])

    assert "{{ a b }}\n     ^" in capsys.readouterr().err


def test_included_syntax_error_has_no_entry_excerpt(
    template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]
) -> None:
    write_template("page.html", "{{#include('part.html')}}")
    write_template("part.html", "{{ a b }}")

    with pytest.raises(SystemExit):
        main(["page.html", "--base", str(template_dir)])

    err = capsys.readouterr().err
    assert "(included via part.html)" in err
    assert "^" not in err


@pytest.mark.parametrize("flag", ["--tokens", "--ast"])
def test_dumps_apply_root_mode(
    flag: str, tmp_path: Path, template_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "secret.html").write_text("s", encoding="utf-8")

    with pytest.raises(SystemExit):
        main(["../secret.html", "--base", str(template_dir), "--root", str(template_dir), flag])

    assert "outside the template root" in capsys.readouterr().err


def test_dumps_apply_suffix_check(template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]) -> None:
    write_template("notes.txt", "{{x}}")

    with pytest.raises(SystemExit):
        main(["notes.txt", "--base", str(template_dir), "--tokens"])

    assert "is not an HTML file" in capsys.readouterr().err


def test_render_error_exits_nonzero(template_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["missing.html", "--base", str(template_dir)])

    assert exc_info.value.code == 1
    assert "error: Template file not found" in capsys.readouterr().err


def test_root_option_enables_root_mode(
    tmp_path: Path, template_dir: Path, write_template, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "secret.html").write_text("s", encoding="utf-8")
    write_template("page.html", "{{#include('../secret.html')}}")

    with pytest.raises(SystemExit):
        main(["page.html", "--base", str(template_dir), "--root", str(template_dir)])

    assert "outside the template root" in capsys.readouterr().err


@pytest.mark.parametrize(
    "argv,message",
    [
        pytest.param([], USAGE, id="no-template"),
        pytest.param(["a.html", "--bogus"], "Unknown option: --bogus", id="unknown-option"),
        pytest.param(["a.html", "b.html"], "Unexpected argument: b.html", id="two-templates"),
        pytest.param(["a.html", "--data"], "--data flag requires a value", id="missing-value"),
        pytest.param(
            ["a.html", "--data", "x.json", "--data-json", "{}"],
            "--data and --data-json are mutually exclusive",
            id="exclusive-data",
        ),
        pytest.param(["a.html", "--data-json", "{nope"], "Cannot load template data", id="bad-json"),
    ],
)
def test_usage_errors(argv, message: str, template_dir: Path, write_template) -> None:
    write_template("a.html", "")
    with pytest.raises(SystemExit) as exc_info:
        main(["--base", str(template_dir)] + argv)

    assert message in str(exc_info.value.code)


def test_parse_args_collects_flags() -> None:
    template, opts, flags = _parse_args(["t.html", "--verbose", "--root=/srv", "--tokens"])

    assert template == "t.html"
    assert opts == {"--root": "/srv"}
    assert flags == {"--verbose", "--tokens"}


def test_help_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out.strip() == USAGE


def test_source_excerpt() -> None:
    assert source_excerpt("one\ntwo", 2, 3) == "two\n  ^"
    assert source_excerpt("one", 5, 1) == ""


@pytest.mark.parametrize(
    "value,enabled",
    [
        pytest.param("1", True, id="one"),
        pytest.param("yes", True, id="yes"),
        pytest.param("0", False, id="zero"),
        pytest.param("off", False, id="off"),
        pytest.param("", False, id="empty"),
    ],
)
def test_debug_py_trace_flag(monkeypatch: pytest.MonkeyPatch, value: str, enabled: bool) -> None:
    monkeypatch.setenv("STE_DEBUG_PY_TRACE", value)
    assert debug_py_trace_enabled() is enabled
