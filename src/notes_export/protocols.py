"""Protocols for dependency injection in the exporter."""

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from notes_export.models.note import Account, ExportUnit, Folder, Note, NoteSummary


@runtime_checkable
class NotesBackend(Protocol):
    """A source of accounts, folders and notes, with write access."""

    def list_accounts(self) -> list[Account]: ...

    def list_folders(self, account: str) -> list[Folder]: ...

    def list_notes(self, account: str) -> list[NoteSummary]: ...

    def list_notes_in_folder(self, account: str, folder_path: Sequence[str]) -> list[NoteSummary]:
        ...

    def stream_note_summaries(
        self,
        account: str,
        folder_path: Sequence[str] | None,
        on_note: Callable[[NoteSummary], None],
    ) -> None:
        """Invoke `on_note` for each note as it is found (for progress counters)."""
        ...

    def get_note(self, note_id: str) -> Note: ...

    def create_note_html(
        self, account: str, folder_path: Sequence[str], title: str, body_html: str
    ) -> str:
        """Create a note and return its id."""
        ...

    def set_note_title(self, note_id: str, title: str) -> None: ...

    def set_note_body_html(self, note_id: str, body_html: str) -> None: ...

    def append_note_body_html(self, note_id: str, body_html: str) -> None: ...

    def delete_note(self, note_id: str) -> None: ...

    def move_note(self, note_id: str, account: str, folder_path: Sequence[str]) -> None: ...

    def create_folder(self, account: str, parent_path: Sequence[str], name: str) -> str:
        """Create a folder and return its id."""
        ...

    def rename_folder(self, account: str, folder_path: Sequence[str], name: str) -> None: ...

    def delete_folder(self, account: str, folder_path: Sequence[str]) -> None: ...


@runtime_checkable
class WriterProtocol(Protocol):
    """Protocol for writers used by the export coordinator."""

    def write_unit(self, unit: ExportUnit) -> None:
        """Write all files of one exported note."""
        ...

    def finalize(self) -> None: ...
