"""Tests for HTML / markdown / text conversion."""

from notes_export.core.render import (
    html_to_markdown,
    markdown_to_html,
    note_to_markdown,
    text_to_html,
    truncate_title,
)


def test_html_to_markdown_converts_basic_markup() -> None:
    result = html_to_markdown("<h1>Title</h1><p>Some <b>bold</b> text</p><ul><li>one</li></ul>")

    assert "# Title" in result
    assert "**bold**" in result
    assert "- one" in result


def test_html_to_markdown_empty() -> None:
    assert html_to_markdown("") == ""


def test_html_to_markdown_collapses_blank_lines() -> None:
    result = html_to_markdown("<p>a</p><p></p><p></p><p>b</p>")

    assert "\n\n\n" not in result


def test_html_to_markdown_drops_scripts() -> None:
    assert "alert" not in html_to_markdown("<p>x</p><script>alert(1)</script>")


def test_note_to_markdown_adds_title_heading() -> None:
    assert note_to_markdown("Title", "\nbody\n\n") == "# Title\n\nbody"


def test_note_to_markdown_empty_body() -> None:
    assert note_to_markdown("Title", "") == "# Title\n\n"


def test_markdown_to_html_wraps_in_div() -> None:
    result = markdown_to_html("**hi**")

    assert result.startswith("<div>")
    assert result.endswith("</div>")
    assert "<strong>hi</strong>" in result


def test_text_to_html_escapes_each_line() -> None:
    assert text_to_html("a < b\nline 2") == "<div>a &lt; b</div>\n<div>line 2</div>\n"


def test_text_to_html_empty() -> None:
    assert text_to_html("") == "<div></div>\n"


def test_truncate_title() -> None:
    assert truncate_title("  short  ") == "short"
    assert truncate_title("x" * 70) == "x" * 60 + "…"
    assert truncate_title("abcdef", max_chars=3) == "abc…"
