"""Convert between note HTML, markdown and plain text."""

import html
import re

import markdown as mdlib
from markdownify import markdownify

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)


def html_to_markdown(body_html: str) -> str:
    """Convert note body HTML to markdown."""
    if not body_html:
        return ""
    body_html = _SCRIPT_STYLE_RE.sub("", body_html)
    result = markdownify(body_html, heading_style="ATX", bullets="-")
    # markdownify leaves runs of blank lines around block elements
    return re.sub(r"\n{3,}", "\n\n", result)


def note_to_markdown(title: str, body_md: str) -> str:
    """Render an exported note: a title heading, a blank line, then the body."""
    return f"# {title}\n\n{body_md.strip()}"


def markdown_to_html(markdown_text: str) -> str:
    return f"<div>{mdlib.markdown(markdown_text)}</div>"


def text_to_html(text: str) -> str:
    """Wrap each line of plain text in an escaped <div>, the way Notes stores bodies."""
    lines = [f"<div>{html.escape(line)}</div>\n" for line in text.splitlines()]
    return "".join(lines) or "<div></div>\n"


def truncate_title(title: str, max_chars: int = 60) -> str:
    """Shorten a title for progress messages."""
    t = title.strip()
    if len(t) <= max_chars:
        return t
    return t[:max_chars] + "…"
