"""Direct-store backend: reads from the Notes database, fetches and writes via osascript."""

from collections.abc import Callable, Sequence

from notes_export.backends.osascript import OsascriptBackend
from notes_export.backends.store import NotesDb
from notes_export.models.note import Account, Folder, Note, NoteSummary


class DirectStoreBackend:
    """NotesBackend that lists from NoteStore.sqlite.

    Full notes and every mutation still go through the automation bridge;
    `store` is what the direct-store export flavor reads note bodies from.
    """

    def __init__(self, store: NotesDb, bridge: OsascriptBackend) -> None:
        self.store = store
        self.bridge = bridge

    def list_accounts(self) -> list[Account]:
        return self.store.list_accounts()

    def list_folders(self, account: str) -> list[Folder]:
        return self.store.list_folders(account)

    def list_notes(self, account: str) -> list[NoteSummary]:
        return self.store.list_notes(account)

    def list_notes_in_folder(self, account: str, folder_path: Sequence[str]) -> list[NoteSummary]:
        return self.store.list_notes_in_folder(account, folder_path)

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
        for n in notes:
            on_note(n)

    def get_note(self, note_id: str) -> Note:
        return self.bridge.get_note(note_id)

    def create_note_html(
        self, account: str, folder_path: Sequence[str], title: str, body_html: str
    ) -> str:
        return self.bridge.create_note_html(account, folder_path, title, body_html)

    def set_note_title(self, note_id: str, title: str) -> None:
        self.bridge.set_note_title(note_id, title)

    def set_note_body_html(self, note_id: str, body_html: str) -> None:
        self.bridge.set_note_body_html(note_id, body_html)

    def append_note_body_html(self, note_id: str, body_html: str) -> None:
        self.bridge.append_note_body_html(note_id, body_html)

    def delete_note(self, note_id: str) -> None:
        self.bridge.delete_note(note_id)

    def move_note(self, note_id: str, account: str, folder_path: Sequence[str]) -> None:
        self.bridge.move_note(note_id, account, folder_path)

    def create_folder(self, account: str, parent_path: Sequence[str], name: str) -> str:
        return self.bridge.create_folder(account, parent_path, name)

    def rename_folder(self, account: str, folder_path: Sequence[str], name: str) -> None:
        self.bridge.rename_folder(account, folder_path, name)

    def delete_folder(self, account: str, folder_path: Sequence[str]) -> None:
        self.bridge.delete_folder(account, folder_path)
