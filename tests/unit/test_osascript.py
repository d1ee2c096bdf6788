"""Tests for the osascript automation bridge, using a stub osascript executable."""

import shutil
import stat
from pathlib import Path

import pytest

from notes_export.backends.osascript import (
    OsascriptBackend,
    applescript_str,
    build_jxa,
    extract_log_payload,
    parse_note_summaries_tsv,
)
from notes_export.errors import BackendError, FolderLookupError
from notes_export.models.note import NoteSummary

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="needs bash")

STUB = r"""#!/usr/bin/env bash
script=$(cat)
printf '%s' "$script" > "$(dirname "$0")/last_script"
if [ "$1" = "-l" ]; then
  case "$script" in
    *'switch ("accounts.list")'*)
      echo '[{"name":"iCloud"},{"name":"On My Mac"}]' ;;
    *'switch ("folders.list")'*)
      echo '[{"id":"f1","name":"Personal","account":"iCloud","path":["Personal"]}]' ;;
    *'switch ("folders.resolve")'*)
      if [[ "$script" == *'"Missing"'* ]]; then
        echo '{"matches":[]}'
      elif [[ "$script" == *'"Twice"'* ]]; then
        echo '{"matches":["f1","f2"]}'
      else
        echo '{"matches":["f1"]}'
      fi ;;
    *'switch ("notes.get")'*)
      echo '{"id":"n1","title":"First","folder_id":"f1","created_at":"2025-01-01T00:00:00.000Z","modified_at":"2025-01-02T00:00:00.000Z","body_html":"<div>hi</div>"}' ;;
    *)
      echo 'not json' ;;
  esac
  exit 0
fi
case "$script" in
  *"make new note"*)
    echo 'x-coredata://S/ICNote/p77' ;;
  *"log (id of n"*)
    printf 'n1\tFirst\tf1\n' >&2
    printf 'n1\tFirst\tf1\n' >&2
    printf 'no tabs here\n' >&2
    printf 'log: n2\tSecond\tf1\n' >&2
    echo OK ;;
  *"FAIL"*)
    echo 'execution error: Notes got an error (-1728)' >&2
    exit 1 ;;
  *)
    echo OK ;;
esac
"""


@pytest.fixture
def stub_bin(tmp_path: Path) -> Path:
    path = tmp_path / "osascript"
    path.write_text(STUB)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


@pytest.fixture
def bridge(stub_bin: Path) -> OsascriptBackend:
    return OsascriptBackend(osascript_bin=str(stub_bin))


def _last_script(stub_bin: Path) -> str:
    return (stub_bin.parent / "last_script").read_text()


def test_list_accounts(bridge: OsascriptBackend) -> None:
    assert [a.name for a in bridge.list_accounts()] == ["iCloud", "On My Mac"]


def test_list_folders(bridge: OsascriptBackend) -> None:
    folders = bridge.list_folders("iCloud")

    assert folders[0].id == "f1"
    assert folders[0].path == ("Personal",)


def test_get_note(bridge: OsascriptBackend) -> None:
    note = bridge.get_note("n1")

    assert note.title == "First"
    assert note.body_html == "<div>hi</div>"
    assert note.modified_at.day == 2


def test_stream_note_summaries_dedupes_and_skips_noise(bridge: OsascriptBackend) -> None:
    seen: list[NoteSummary] = []

    bridge.stream_note_summaries("iCloud", None, seen.append)

    assert seen == [
        NoteSummary(id="n1", title="First", folder_id="f1"),
        NoteSummary(id="n2", title="Second", folder_id="f1"),
    ]


def test_list_notes_in_folder_resolves_folder_first(
    bridge: OsascriptBackend, stub_bin: Path
) -> None:
    notes = bridge.list_notes_in_folder("iCloud", ["Personal"])

    assert [n.id for n in notes] == ["n1", "n2"]
    assert 'folder id "f1"' in _last_script(stub_bin)


def test_resolve_missing_folder(bridge: OsascriptBackend) -> None:
    with pytest.raises(FolderLookupError, match="folder not found: Missing"):
        bridge.resolve_folder_id("iCloud", ["Missing"])


def test_resolve_ambiguous_folder(bridge: OsascriptBackend) -> None:
    with pytest.raises(FolderLookupError, match="ambiguous"):
        bridge.resolve_folder_id("iCloud", ["Twice"])


def test_create_note_returns_new_id(bridge: OsascriptBackend, stub_bin: Path) -> None:
    new_id = bridge.create_note_html("iCloud", ["Personal"], 'Say "hi"', "<div>x</div>")

    assert new_id == "x-coredata://S/ICNote/p77"
    assert 'name:"Say \\"hi\\""' in _last_script(stub_bin)


def test_script_failure_is_backend_error(bridge: OsascriptBackend) -> None:
    with pytest.raises(BackendError, match="-1728"):
        bridge.set_note_title("n1", "FAIL")


def test_non_json_output_is_backend_error(stub_bin: Path) -> None:
    bridge = OsascriptBackend(osascript_bin=str(stub_bin))

    with pytest.raises(BackendError, match="parse osascript JSON"):
        bridge._jxa_json("unknown.action", {})


def test_missing_binary_is_backend_error(tmp_path: Path) -> None:
    bridge = OsascriptBackend(osascript_bin=str(tmp_path / "nope"))

    with pytest.raises(BackendError, match="spawn"):
        bridge.list_accounts()


def test_applescript_str_escapes_quotes_and_backslashes() -> None:
    assert applescript_str('a "b" \\ c') == '"a \\"b\\" \\\\ c"'


def test_build_jxa_embeds_payload_and_action() -> None:
    script = build_jxa("notes.get", {"id": 'x"y'})

    assert 'const input = {"id": "x\\"y"};' in script
    assert 'switch ("notes.get")' in script


def test_extract_log_payload() -> None:
    assert extract_log_payload("log: a\tb\tc") == "a\tb\tc"
    assert extract_log_payload("  a\tb\tc  ") == "a\tb\tc"


def test_parse_note_summaries_tsv() -> None:
    rows = parse_note_summaries_tsv("n1\tTitle\tf1\n\nn2\tTab\tin title\tf2\n")

    assert rows[0] == NoteSummary(id="n1", title="Title", folder_id="f1")
    assert rows[1].title == "Tab"
    assert rows[1].folder_id == "in title\tf2"


def test_parse_note_summaries_tsv_missing_fields() -> None:
    with pytest.raises(ValueError, match="missing folder id"):
        parse_note_summaries_tsv("n1\tTitle\n")
