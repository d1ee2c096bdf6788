"""Tests for the direct-store export flavor."""

import json
import sqlite3
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from notes_export.backends.direct import DirectStoreBackend
from notes_export.backends.osascript import OsascriptBackend
from notes_export.backends.store import NotesDb
from notes_export.config import ExportConfig, UnresolvedFolderPolicy
from notes_export.errors import (
    BackendError,
    ExportAbortedError,
    ExportWriteError,
    FolderLookupError,
)
from notes_export.exporter import StoreExportCoordinator, make_coordinator
from notes_export.models.note import Note
from tests.unit.fakes import PERSONAL, FakeNoteStore, FakeWriter, make_note


@pytest.fixture
def store_backend(notes_db: NotesDb, tmp_path: Path) -> DirectStoreBackend:
    # The bridge must not be needed unless HTML is requested.
    bridge = OsascriptBackend(osascript_bin=str(tmp_path / "no-osascript"))
    return DirectStoreBackend(notes_db, bridge)


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def test_make_coordinator_picks_store_flavor(store_backend: DirectStoreBackend) -> None:
    coordinator = make_coordinator(store_backend, ExportConfig())

    assert isinstance(coordinator, StoreExportCoordinator)
    assert coordinator.store is store_backend.store


def test_store_export_decodes_bodies(store_backend: DirectStoreBackend, tmp_path: Path) -> None:
    out = tmp_path / "out"

    stats = make_coordinator(store_backend, ExportConfig(jobs=2)).export("iCloud", out)

    assert stats.exported == 3
    assert stats.decode_failures == 0
    hello = out / "Personal" / "HelloWorld-p123"
    md = _read(hello / "contents.md")
    assert md.startswith("# Hello/World\n\n")
    assert "Hello from Notes!" in md
    assert "Second line." in md
    assert _read(out / "Personal" / "Archive" / "Shopping-p124" / "contents.md") == (
        "# Shopping\n\nMilk\nBread"
    )
    assert _read(out / "Personal" / "Untitled-p126" / "contents.md") == "# Untitled\n\n"
    assert not (out / "Personal" / "Old-p125").exists()


def test_store_export_metadata_uses_db_dates(
    store_backend: DirectStoreBackend, tmp_path: Path
) -> None:
    out = tmp_path / "out"

    make_coordinator(store_backend, ExportConfig()).export("iCloud", out)

    metadata = json.loads(_read(out / "Personal" / "HelloWorld-p123" / "metadata.json"))
    assert metadata["created_at"] == "2001-01-01T00:01:40Z"
    assert metadata["modified_at"] == "2001-01-01T00:03:20Z"
    assert metadata["folder_path"] == ["Personal"]
    assert metadata["id"] == "x-coredata://STORE-UUID/ICNote/p123"


def test_undecodable_note_is_exported_without_body(
    note_store: FakeNoteStore, tmp_path: Path
) -> None:
    note_store.add_note(130, "Broken", folder_pk=10, data=b"\x1f\x8bnot gzip at all")
    backend = DirectStoreBackend(NotesDb(note_store.path), OsascriptBackend())
    out = tmp_path / "out"

    stats = make_coordinator(backend, ExportConfig()).export("iCloud", out)

    assert stats.exported == 4
    assert stats.decode_failures == 1
    assert _read(out / "Personal" / "Broken-p130" / "contents.md") == "# Broken\n\n"


def test_unknown_folder_uses_sentinel(store_backend: DirectStoreBackend, tmp_path: Path) -> None:
    out = tmp_path / "out"

    with patch.object(store_backend, "list_folders", return_value=[]):
        stats = make_coordinator(store_backend, ExportConfig()).export("iCloud", out)

    assert stats.unknown_folders == 3
    assert (out / "Unknown" / "HelloWorld-p123" / "contents.md").exists()


def test_unknown_folder_can_be_fatal(store_backend: DirectStoreBackend, tmp_path: Path) -> None:
    config = ExportConfig(store_unresolved_folder=UnresolvedFolderPolicy.FAIL)

    with (
        patch.object(store_backend, "list_folders", return_value=[]),
        pytest.raises(ExportAbortedError) as exc_info,
    ):
        make_coordinator(store_backend, config).export("iCloud", tmp_path / "out")

    assert isinstance(exc_info.value.__cause__, FolderLookupError)


def test_each_worker_opens_its_own_handle(
    store_backend: DirectStoreBackend, tmp_path: Path
) -> None:
    original = NotesDb.connect
    opened_by: list[str] = []

    def tracking_connect(self: NotesDb) -> sqlite3.Connection:
        opened_by.append(threading.current_thread().name)
        return original(self)

    with patch.object(NotesDb, "connect", tracking_connect):
        make_coordinator(store_backend, ExportConfig(jobs=3)).export("iCloud", tmp_path / "out")

    worker_opens = [name for name in opened_by if name.startswith("export-worker-")]
    assert sorted(worker_opens) == ["export-worker-0", "export-worker-1", "export-worker-2"]


def test_store_output_does_not_depend_on_job_count(
    store_backend: DirectStoreBackend, tmp_path: Path
) -> None:
    make_coordinator(store_backend, ExportConfig(jobs=1)).export("iCloud", tmp_path / "a")
    make_coordinator(store_backend, ExportConfig(jobs=4)).export("iCloud", tmp_path / "b")

    def files(root: Path) -> dict[str, str]:
        return {str(p.relative_to(root)): _read(p) for p in root.rglob("*") if p.is_file()}

    assert files(tmp_path / "a") == files(tmp_path / "b")


def test_html_is_fetched_through_bridge(store_backend: DirectStoreBackend, tmp_path: Path) -> None:
    out = tmp_path / "out"

    def fake_get_note(note_id: str) -> Note:
        return make_note(0, "ignored", PERSONAL, body_html=f"<div>{note_id}</div>")

    with patch.object(store_backend.bridge, "get_note", side_effect=fake_get_note):
        make_coordinator(store_backend, ExportConfig(include_html=True)).export("iCloud", out)

    html = _read(out / "Personal" / "Archive" / "Shopping-p124" / "contents.html")
    assert html == "<div>x-coredata://STORE-UUID/ICNote/p124</div>"


def test_store_write_failure_aborts_parallel_export(
    note_store: FakeNoteStore, tmp_path: Path
) -> None:
    for pk in range(200, 230):
        note_store.add_note(pk, f"Note {pk}", folder_pk=10, text=f"body {pk}")
    backend = DirectStoreBackend(NotesDb(note_store.path), OsascriptBackend())
    writer = FakeWriter(fail_at=4)

    with pytest.raises(ExportAbortedError) as exc_info:
        make_coordinator(backend, ExportConfig(jobs=3), writer=writer).export(
            "iCloud", tmp_path / "out"
        )

    err = exc_info.value
    assert isinstance(err.__cause__, ExportWriteError)
    assert err.completed == len(writer.units)
    assert err.completed < err.attempted <= 33
    assert writer.finalized is False


def test_worker_connect_failure_aborts_export(
    store_backend: DirectStoreBackend, tmp_path: Path
) -> None:
    original = NotesDb.connect

    def failing_connect(self: NotesDb) -> sqlite3.Connection:
        if threading.current_thread().name == "export-worker-1":
            msg = "database is locked"
            raise BackendError(msg)
        return original(self)

    with (
        patch.object(NotesDb, "connect", failing_connect),
        pytest.raises(ExportAbortedError) as exc_info,
    ):
        make_coordinator(store_backend, ExportConfig(jobs=2)).export("iCloud", tmp_path / "out")

    err = exc_info.value
    assert isinstance(err.__cause__, BackendError)
    assert "database is locked" in str(err)
    assert err.completed <= err.attempted
