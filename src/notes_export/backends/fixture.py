"""Offline backend that serves notes from a JSON fixture file (tests and development)."""

import itertools
import json
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from notes_export.errors import BackendError, FolderLookupError
from notes_export.models.note import Account, Folder, Note, NoteSummary


class FixtureBackend:
    """NotesBackend over an in-memory fixture.

    The fixture format is::

        {"accounts": [...], "folders_by_account": {...},
         "note_summaries_by_account": {...}, "notes_by_id": {...}}

    Mutations are accepted and ignored; creations return synthetic ids.
    """

    def __init__(self, data: dict[str, Any]) -> None:
        try:
            self._accounts = [Account.from_dict(a) for a in data["accounts"]]
            self._folders = {
                acct: [Folder.from_dict(f) for f in folders]
                for acct, folders in data["folders_by_account"].items()
            }
            self._summaries = {
                acct: [NoteSummary.from_dict(n) for n in notes]
                for acct, notes in data["note_summaries_by_account"].items()
            }
            self._notes = {nid: Note.from_dict(n) for nid, n in data["notes_by_id"].items()}
        except (KeyError, TypeError, ValueError) as e:
            msg = "invalid fixture JSON"
            raise BackendError(msg) from e
        self._next_id = itertools.count(1)
        self._id_lock = threading.Lock()

    @classmethod
    def from_path(cls, path: Path) -> "FixtureBackend":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            msg = f"read fixture file {path}"
            raise BackendError(msg) from e
        return cls(data)

    def _new_id(self, kind: str) -> str:
        with self._id_lock:
            return f"fixture://{kind}/{next(self._next_id)}"

    def list_accounts(self) -> list[Account]:
        return list(self._accounts)

    def list_folders(self, account: str) -> list[Folder]:
        if account not in self._folders:
            msg = f"fixture missing folders for account {account!r}"
            raise BackendError(msg)
        return list(self._folders[account])

    def list_notes(self, account: str) -> list[NoteSummary]:
        if account not in self._summaries:
            msg = f"fixture missing notes for account {account!r}"
            raise BackendError(msg)
        return list(self._summaries[account])

    def list_notes_in_folder(self, account: str, folder_path: Sequence[str]) -> list[NoteSummary]:
        want = tuple(folder_path)
        for folder in self.list_folders(account):
            if folder.path == want:
                break
        else:
            msg = f"fixture missing folder {' > '.join(want)!r}"
            raise FolderLookupError(msg)
        return [n for n in self.list_notes(account) if n.folder_id == folder.id]

    def stream_note_summaries(
        self,
        account: str,
        folder_path: Sequence[str] | None,
        on_note: Callable[[NoteSummary], None],
    ) -> None:
        if folder_path is not None:
            notes = self.list_notes_in_folder(account, folder_path)
        else:
            notes = self.list_notes(account)
        # Deterministic order for tests.
        for n in sorted(notes, key=lambda n: n.id):
            on_note(n)

    def get_note(self, note_id: str) -> Note:
        try:
            return self._notes[note_id]
        except KeyError:
            msg = f"fixture missing note id {note_id!r}"
            raise BackendError(msg) from None

    def create_note_html(
        self, account: str, folder_path: Sequence[str], title: str, body_html: str
    ) -> str:
        return self._new_id("note")

    def set_note_title(self, note_id: str, title: str) -> None:
        pass

    def set_note_body_html(self, note_id: str, body_html: str) -> None:
        pass

    def append_note_body_html(self, note_id: str, body_html: str) -> None:
        pass

    def delete_note(self, note_id: str) -> None:
        pass

    def move_note(self, note_id: str, account: str, folder_path: Sequence[str]) -> None:
        pass

    def create_folder(self, account: str, parent_path: Sequence[str], name: str) -> str:
        return self._new_id("folder")

    def rename_folder(self, account: str, folder_path: Sequence[str], name: str) -> None:
        pass

    def delete_folder(self, account: str, folder_path: Sequence[str]) -> None:
        pass
