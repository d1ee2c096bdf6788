"""Folder hierarchy: path resolution over parent pointers, and the id -> path index."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from notes_export.errors import DuplicateFolderError, FolderCycleError, FolderLookupError
from notes_export.models.note import Folder


@dataclass(frozen=True)
class FolderRow:
    """A folder as stored in the database: name plus parent pointer."""

    pk: int
    name: str
    parent_pk: int | None


def resolve_folder_path(rows_by_pk: dict[int, FolderRow], pk: int) -> tuple[str, ...]:
    """Walk parent pointers from `pk` to the root and return the path root-first.

    A parent pointer to a pk missing from the table ends the walk; the folder
    reached last is treated as a root.

    Raises:
        FolderLookupError: `pk` itself is not in the table.
        FolderCycleError: A pointer is visited twice.
    """
    if pk not in rows_by_pk:
        msg = f"unknown folder pk {pk}"
        raise FolderLookupError(msg)

    parts: list[str] = []
    seen: set[int] = set()
    current = pk
    while True:
        if current in seen:
            raise FolderCycleError(current)
        seen.add(current)
        row = rows_by_pk[current]
        parts.append(row.name)
        if row.parent_pk is None:
            break
        if row.parent_pk not in rows_by_pk:
            logger.debug("Folder pk {} points at missing parent {}", current, row.parent_pk)
            break
        current = row.parent_pk

    parts.reverse()
    return tuple(parts)


def build_folders(
    rows: Iterable[FolderRow],
    *,
    account: str,
    folder_id: Callable[[int], str],
) -> list[Folder]:
    """Turn a flat folder table into Folder objects sorted by path."""
    by_pk = {r.pk: r for r in rows}
    folders = [
        Folder(
            id=folder_id(r.pk),
            name=r.name,
            account=account,
            path=resolve_folder_path(by_pk, r.pk),
        )
        for r in by_pk.values()
    ]
    folders.sort(key=lambda f: f.path)
    return folders


class FolderIndex:
    """Immutable folder id -> Folder lookup. Safe to share between threads."""

    def __init__(self, folders: Iterable[Folder]) -> None:
        by_id: dict[str, Folder] = {}
        for f in folders:
            if f.id in by_id:
                raise DuplicateFolderError(f.id)
            by_id[f.id] = f
        self._by_id = by_id

    @classmethod
    def build(cls, folders: Iterable[Folder]) -> "FolderIndex":
        return cls(folders)

    def __len__(self) -> int:
        return len(self._by_id)

    def path_of(self, folder_id: str) -> tuple[str, ...] | None:
        folder = self._by_id.get(folder_id)
        return folder.path if folder is not None else None

    def path_string_of(self, folder_id: str) -> str | None:
        folder = self._by_id.get(folder_id)
        return folder.path_string() if folder is not None else None
