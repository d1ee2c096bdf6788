"""On-disk layout: <root>/<folder>/.../<title>-<id suffix>/{metadata.json,contents.md}."""

import re
from pathlib import Path

from notes_export.core.ids import short_id

METADATA_FILE = "metadata.json"
MARKDOWN_FILE = "contents.md"
HTML_FILE = "contents.html"

MAX_TITLE_CHARS = 80
MAX_NAME_BYTES = 255

_ILLEGAL_RE = re.compile(r'[/?<>\\:*|"\x00-\x1f\x80-\x9f]')
_RESERVED_RE = re.compile(r"^\.+$")
_WINDOWS_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING_RE = re.compile(r"[. ]+$")


def sanitize_filename(name: str) -> str:
    """Make `name` safe as a single path component. May return an empty string."""
    name = _ILLEGAL_RE.sub("", name)
    name = _RESERVED_RE.sub("", name)
    name = _WINDOWS_RESERVED_RE.sub("", name)
    name = _WINDOWS_TRAILING_RE.sub("", name)
    encoded = name.encode("utf-8")
    if len(encoded) > MAX_NAME_BYTES:
        name = encoded[:MAX_NAME_BYTES].decode("utf-8", errors="ignore")
    return name


def note_dir_name(title: str, note_id: str) -> str:
    """Directory name for a note, e.g. "Hello/World" + ".../p123" -> "HelloWorld-p123"."""
    base = title.strip() or "Untitled"
    base = sanitize_filename(base[:MAX_TITLE_CHARS]) or "Untitled"
    return f"{base}-{short_id(note_id)}"


def export_path(root: Path, folder_path: tuple[str, ...], title: str, note_id: str) -> Path:
    """Directory that holds one exported note."""
    note_dir = root
    for part in folder_path:
        note_dir = note_dir / (sanitize_filename(part) or "_")
    return note_dir / note_dir_name(title, note_id)
