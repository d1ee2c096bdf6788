"""Shared test fixtures."""

import gzip
from pathlib import Path

import pytest

from notes_export.backends.store import NotesDb
from tests.unit.fakes import ARCHIVE, PERSONAL, FakeBackend, FakeNoteStore, make_note

FIXTURES_DIR = Path(__file__).resolve().parent.parent / "fixtures"


@pytest.fixture
def basic_fixture_path() -> Path:
    return FIXTURES_DIR / "basic.json"


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Three notes in two folders."""
    notes = [
        make_note(123, "Hello/World", PERSONAL, "<div>Hello <b>there</b></div>"),
        make_note(124, "Shopping", ARCHIVE, "<div>Milk</div><div>Bread</div>"),
        make_note(125, "Recipes", PERSONAL),
    ]
    return FakeBackend([PERSONAL, ARCHIVE], notes)


@pytest.fixture
def note_store(tmp_path: Path) -> FakeNoteStore:
    """A NoteStore.sqlite with one account, two nested folders and four notes (one deleted)."""
    store = FakeNoteStore(tmp_path / "NoteStore.sqlite")
    store.add_account(1, "iCloud")
    store.add_folder(10, "Personal", account_pk=1)
    store.add_folder(11, "Archive", account_pk=1, parent_pk=10)
    store.add_note(
        123,
        "Hello/World",
        folder_pk=10,
        data=gzip.compress(b"\0\0Title\0\0Hello from Notes!\nSecond line.\0\0"),
        created=100.0,
        modified=200.0,
    )
    store.add_note(124, "Shopping", folder_pk=11, data=b"Milk\r\nBread", created=50.5)
    store.add_note(125, "Old", folder_pk=10, text="gone", deleted=True)
    store.add_note(126, None, folder_pk=10)
    return store


@pytest.fixture
def notes_db(note_store: FakeNoteStore) -> NotesDb:
    return NotesDb(note_store.path)
