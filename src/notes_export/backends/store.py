"""Read-only access to the Notes Core Data store (NoteStore.sqlite)."""

import sqlite3
from collections.abc import Sequence
from contextlib import closing
from datetime import datetime
from pathlib import Path

from loguru import logger

from notes_export.core import ids
from notes_export.core.folders import FolderRow, build_folders
from notes_export.core.timestamps import resolve_note_dates
from notes_export.errors import BackendError, FolderLookupError
from notes_export.models.note import Account, Folder, NoteSummary

# Z_ENT values of ZICCLOUDSYNCINGOBJECT rows.
ENT_NOTE = 12
ENT_ACCOUNT = 14
ENT_FOLDER = 15

_NOTE_SUMMARY_SQL = """\
SELECT n.Z_PK, n.ZTITLE1, n.ZFOLDER
FROM ZICCLOUDSYNCINGOBJECT n
JOIN ZICCLOUDSYNCINGOBJECT f ON f.Z_PK = n.ZFOLDER
WHERE n.Z_ENT = 12
  AND IFNULL(n.ZMARKEDFORDELETION, 0) = 0
  AND f.Z_ENT = 15
  AND f.ZACCOUNT8 = ?
"""

_FOLDER_NOTES_SQL = """\
SELECT Z_PK, ZTITLE1, ZFOLDER
FROM ZICCLOUDSYNCINGOBJECT
WHERE Z_ENT = 12
  AND IFNULL(ZMARKEDFORDELETION, 0) = 0
  AND ZFOLDER = ?
"""

_FOLDER_ROWS_SQL = """\
SELECT Z_PK, COALESCE(ZNAME, ZTITLE2, 'Untitled'), ZPARENT
FROM ZICCLOUDSYNCINGOBJECT
WHERE Z_ENT = 15
  AND ZACCOUNT8 = ?
"""

_NOTE_DATES_SQL = """\
SELECT ZCREATIONDATE3, ZCREATIONDATE2, ZCREATIONDATE1,
       ZMODIFICATIONDATE1, ZMODIFICATIONDATEATIMPORT
FROM ZICCLOUDSYNCINGOBJECT
WHERE Z_ENT = 12 AND Z_PK = ?
"""


def open_readonly(path: Path) -> sqlite3.Connection:
    """Open an independent read-only handle. Handles must not cross threads."""
    uri = path.resolve().as_uri() + "?mode=ro"
    try:
        return sqlite3.connect(uri, uri=True)
    except sqlite3.Error as e:
        msg = f"open notes db {path}"
        raise BackendError(msg) from e


class NotesDb:
    """The Notes database, identified by its store uuid."""

    def __init__(self, path: Path) -> None:
        self.path = path
        with closing(self.connect()) as conn:
            try:
                row = conn.execute("SELECT Z_UUID FROM Z_METADATA WHERE Z_VERSION = 1").fetchone()
            except sqlite3.Error as e:
                msg = f"read Z_METADATA from {path}"
                raise BackendError(msg) from e
        if row is None:
            msg = f"no store uuid in Z_METADATA of {path}"
            raise BackendError(msg)
        self.store_uuid: str = row[0]
        logger.debug("Notes DB ready: {!r}, store {}", str(path), self.store_uuid)

    def connect(self) -> sqlite3.Connection:
        return open_readonly(self.path)

    def note_id(self, pk: int) -> str:
        return ids.note_id(self.store_uuid, pk)

    def folder_id(self, pk: int) -> str:
        return ids.folder_id(self.store_uuid, pk)

    def list_accounts(self) -> list[Account]:
        with closing(self.connect()) as conn:
            rows = conn.execute(
                "SELECT ZNAME FROM ZICCLOUDSYNCINGOBJECT WHERE Z_ENT = ? ORDER BY ZNAME",
                (ENT_ACCOUNT,),
            ).fetchall()
        return [Account(name=r[0]) for r in rows]

    def list_folders(self, account: str) -> list[Folder]:
        with closing(self.connect()) as conn:
            account_pk = _account_pk(conn, account)
            rows = [
                FolderRow(pk=r[0], name=r[1], parent_pk=r[2])
                for r in conn.execute(_FOLDER_ROWS_SQL, (account_pk,)).fetchall()
            ]
        return build_folders(rows, account=account, folder_id=self.folder_id)

    def list_notes(self, account: str) -> list[NoteSummary]:
        with closing(self.connect()) as conn:
            account_pk = _account_pk(conn, account)
            rows = conn.execute(_NOTE_SUMMARY_SQL, (account_pk,)).fetchall()
        return [self._summary(r) for r in rows]

    def list_notes_in_folder(self, account: str, folder_path: Sequence[str]) -> list[NoteSummary]:
        want = " > ".join(folder_path)
        for folder in self.list_folders(account):
            if folder.path_string() == want:
                break
        else:
            msg = f"folder not found: {want}"
            raise FolderLookupError(msg)

        folder_pk = ids.parse_pk(folder.id)
        with closing(self.connect()) as conn:
            rows = conn.execute(_FOLDER_NOTES_SQL, (folder_pk,)).fetchall()
        return [self._summary(r) for r in rows]

    def _summary(self, row: tuple[int, str | None, int]) -> NoteSummary:
        pk, title, folder_pk = row
        return NoteSummary(
            id=self.note_id(pk),
            title=title if title is not None else "Untitled",
            folder_id=self.folder_id(folder_pk),
        )


def _account_pk(conn: sqlite3.Connection, account: str) -> int:
    row = conn.execute(
        "SELECT Z_PK FROM ZICCLOUDSYNCINGOBJECT WHERE Z_ENT = ? AND ZNAME = ?",
        (ENT_ACCOUNT, account),
    ).fetchone()
    if row is None:
        msg = f"account not found: {account}"
        raise BackendError(msg)
    return int(row[0])


def load_note_data(conn: sqlite3.Connection, note_pk: int) -> bytes:
    """Return the raw ZDATA blob of a note; empty if the note has none."""
    try:
        row = conn.execute(
            "SELECT ZDATA FROM ZICNOTEDATA WHERE ZNOTE = ? LIMIT 1", (note_pk,)
        ).fetchone()
    except sqlite3.Error as e:
        msg = f"read ZICNOTEDATA.ZDATA for note pk {note_pk}"
        raise BackendError(msg) from e
    if row is None or row[0] is None:
        return b""
    return bytes(row[0])


def select_note_dates(conn: sqlite3.Connection, note_pk: int) -> tuple[datetime, datetime]:
    """Return (created, modified) for a note, falling back across date columns."""
    try:
        row = conn.execute(_NOTE_DATES_SQL, (note_pk,)).fetchone()
    except sqlite3.Error as e:
        msg = f"read note dates for pk {note_pk}"
        raise BackendError(msg) from e
    if row is None:
        msg = f"read note dates for pk {note_pk}: no such note"
        raise BackendError(msg)
    c3, c2, c1, m1, m2 = row
    return resolve_note_dates((c3, c2, c1), (m1, m2))
