"""Export every note of an account into one directory per note.

Pipeline per note: fetch -> build (decode/render, compute target directory)
-> write. With jobs == 1 notes go through one at a time. With more jobs a
bounded queue feeds a fixed pool of worker threads; the first failure sets a
shared stop flag, remaining queued work is skipped, and the producer still
collects a completion report for every task it handed out before raising.

Two flavors differ in what runs where:

- Bridge flavor: the automation bridge is one shared channel, so notes are
  fetched serially by the producer; workers only write.
- Store flavor: each worker opens its own read-only database handle and does
  fetch, decode, render and write for the notes it takes.
"""

import json
import queue
import sqlite3
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import AbstractContextManager, closing, contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from notes_export.backends.direct import DirectStoreBackend
from notes_export.backends.store import NotesDb, load_note_data, select_note_dates
from notes_export.config import UNKNOWN_FOLDER, ExportConfig, UnresolvedFolderPolicy
from notes_export.core import ids
from notes_export.core.decoder import decode_note_text
from notes_export.core.folders import FolderIndex
from notes_export.core.layout import export_path
from notes_export.core.render import html_to_markdown, note_to_markdown, truncate_title
from notes_export.errors import (
    DecodeError,
    ExportAbortedError,
    ExportWriteError,
    FolderLookupError,
)
from notes_export.models.note import BackupMetadata, ExportStats, ExportUnit, NoteSummary
from notes_export.protocols import NotesBackend, WriterProtocol
from notes_export.writer import FileWriter

ProgressCallback = Callable[[int, int, str], None]

# Sent once per worker to tell it to exit.
_STOP = object()


class NoteState(Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    BUILT = "built"
    WRITTEN = "written"
    FAILED = "failed"


class _Outcome(Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class _StoreTask:
    """A note queued for a store-flavor worker."""

    summary: NoteSummary
    body_html: str | None


def _transition(note_id: str, state: NoteState) -> None:
    logger.trace("note {} -> {}", note_id, state.value)


class _FirstError:
    """Remembers the first error reported by any thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.error: BaseException | None = None

    def record(self, err: BaseException) -> None:
        with self._lock:
            if self.error is None:
                self.error = err


class ExportCoordinator:
    """Shared pipeline machinery. Use make_coordinator() to pick a flavor."""

    #: Policy for notes whose folder id is not in the folder index.
    unresolved_folder: UnresolvedFolderPolicy = UnresolvedFolderPolicy.FAIL

    def __init__(
        self,
        backend: NotesBackend,
        config: ExportConfig,
        *,
        writer: WriterProtocol | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self._writer = writer
        self._on_progress = on_progress
        self._counter_lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._out_dir = Path()

    # --- flavor hooks ---

    def _produce(self, account: str, index: FolderIndex, summary: NoteSummary) -> Any:
        """Runs on the producer thread, serially. Returns the task handed to a worker."""
        raise NotImplementedError

    def _worker_context(
        self, account: str, index: FolderIndex, writer: WriterProtocol
    ) -> AbstractContextManager[Callable[[Any], None]]:
        """Per-worker setup; yields the function that finishes one task."""
        raise NotImplementedError

    # --- shared pieces ---

    def _count(self, name: str) -> None:
        with self._counter_lock:
            self._counters[name] = self._counters.get(name, 0) + 1

    def _folder_path(self, index: FolderIndex, note_id: str, folder_id: str) -> tuple[str, ...]:
        path = index.path_of(folder_id)
        if path is not None:
            return path
        if self.unresolved_folder is UnresolvedFolderPolicy.FAIL:
            msg = f"note {note_id} references unknown folder id {folder_id}"
            raise FolderLookupError(msg)
        logger.warning("Note {} references unknown folder id {}, using {!r}",
                       note_id, folder_id, UNKNOWN_FOLDER)
        self._count("unknown_folders")
        return (UNKNOWN_FOLDER,)

    def _build_unit(
        self,
        *,
        out_dir: Path,
        account: str,
        note_id: str,
        title: str,
        folder_path: tuple[str, ...],
        created_at: datetime,
        modified_at: datetime,
        contents_md: str,
        contents_html: str | None,
    ) -> ExportUnit:
        metadata = BackupMetadata(
            id=note_id,
            title=title,
            account=account,
            folder_path=folder_path,
            created_at=created_at,
            modified_at=modified_at,
        )
        return ExportUnit(
            note_id=note_id,
            note_dir=export_path(out_dir, folder_path, title, note_id),
            metadata_json=json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False) + "\n",
            contents_md=contents_md,
            contents_html=contents_html,
        )

    def export(self, account: str, out_dir: str | Path) -> ExportStats:
        """Export all notes of `account` below `out_dir`.

        Raises:
            ConfigurationError: jobs < 1; nothing is read or written.
            FolderIndexError: The folder table is inconsistent; no note is fetched.
            ExportAbortedError: A note failed; the original error is chained.
        """
        jobs = self.config.effective_jobs()
        out_dir = Path(out_dir).resolve()
        self._counters = {}
        self._out_dir = out_dir

        if not self.config.dry_run:
            try:
                out_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ExportWriteError(str(out_dir), f"create directory: {e}") from e
        writer = self._writer or FileWriter(out_dir, dry_run=self.config.dry_run)

        logger.info("Loading folders of account {!r}", account)
        index = FolderIndex.build(self.backend.list_folders(account))

        logger.info("Indexing notes")
        notes = self.backend.list_notes(account)
        total = len(notes)
        logger.info("Exporting {} notes ({} folders) with {} job(s)", total, len(index), jobs)

        if jobs == 1:
            exported = self._run_serial(account, index, writer, notes)
        else:
            exported = self._run_parallel(account, index, writer, notes, jobs)

        writer.finalize()
        stats = ExportStats(
            exported=exported,
            total=total,
            decode_failures=self._counters.get("decode_failures", 0),
            unknown_folders=self._counters.get("unknown_folders", 0),
        )
        logger.info("Exported {}/{} notes to {}", stats.exported, stats.total, out_dir)
        if stats.decode_failures:
            logger.warning("{} note(s) exported without body text (undecodable)",
                           stats.decode_failures)
        return stats

    def _progress(self, done: int, total: int, title: str) -> None:
        if self._on_progress is not None:
            self._on_progress(done, total, truncate_title(title))

    def _run_serial(
        self,
        account: str,
        index: FolderIndex,
        writer: WriterProtocol,
        notes: Sequence[NoteSummary],
    ) -> int:
        completed = 0
        attempted = 0
        try:
            with self._worker_context(account, index, writer) as finish:
                for summary in notes:
                    attempted += 1
                    try:
                        finish(self._produce(account, index, summary))
                    except Exception:
                        _transition(summary.id, NoteState.FAILED)
                        raise
                    completed += 1
                    self._progress(completed, len(notes), summary.title)
        except Exception as e:
            raise ExportAbortedError(str(e), completed=completed, attempted=attempted) from e
        return completed

    def _run_parallel(
        self,
        account: str,
        index: FolderIndex,
        writer: WriterProtocol,
        notes: Sequence[NoteSummary],
        jobs: int,
    ) -> int:
        tasks: queue.Queue[Any] = queue.Queue(maxsize=jobs * 2)
        done: queue.Queue[tuple[_Outcome, NoteSummary]] = queue.Queue()
        stop = threading.Event()
        first_error = _FirstError()

        workers = [
            threading.Thread(
                target=self._worker,
                args=(account, index, writer, tasks, done, stop, first_error),
                name=f"export-worker-{i}",
                daemon=True,
            )
            for i in range(jobs)
        ]
        for t in workers:
            t.start()

        sent = 0
        attempted = 0
        completed = 0
        received = 0

        def handle(report: tuple[_Outcome, NoteSummary]) -> None:
            nonlocal completed, received
            outcome, summary = report
            received += 1
            if outcome is _Outcome.OK:
                completed += 1
                self._progress(completed, len(notes), summary.title)

        try:
            for summary in notes:
                if stop.is_set():
                    break
                attempted += 1
                try:
                    task = self._produce(account, index, summary)
                except Exception as e:
                    _transition(summary.id, NoteState.FAILED)
                    first_error.record(e)
                    stop.set()
                    break
                tasks.put((summary, task))
                sent += 1
                while True:
                    try:
                        handle(done.get_nowait())
                    except queue.Empty:
                        break
        finally:
            for _ in workers:
                tasks.put(_STOP)

        while received < sent:
            handle(done.get())
        for t in workers:
            t.join()

        if first_error.error is not None:
            err = first_error.error
            raise ExportAbortedError(str(err), completed=completed, attempted=attempted) from err
        return completed

    def _worker(
        self,
        account: str,
        index: FolderIndex,
        writer: WriterProtocol,
        tasks: "queue.Queue[Any]",
        done: "queue.Queue[tuple[_Outcome, NoteSummary]]",
        stop: threading.Event,
        first_error: _FirstError,
    ) -> None:
        drained = False
        try:
            with self._worker_context(account, index, writer) as finish:
                self._work_loop(finish, tasks, done, stop, first_error)
                drained = True
        except Exception as e:
            logger.debug("Export worker failed outside a task: {}", e)
            first_error.record(e)
            stop.set()
        if not drained:
            # Keep consuming so the producer never blocks on a full queue.
            self._work_loop(None, tasks, done, stop, first_error)

    @staticmethod
    def _work_loop(
        finish: Callable[[Any], None] | None,
        tasks: "queue.Queue[Any]",
        done: "queue.Queue[tuple[_Outcome, NoteSummary]]",
        stop: threading.Event,
        first_error: _FirstError,
    ) -> None:
        """Finish queued (summary, task) pairs until _STOP; report each one on `done`."""
        while True:
            item = tasks.get()
            if item is _STOP:
                return
            summary, task = item
            if finish is None or stop.is_set():
                done.put((_Outcome.SKIPPED, summary))
                continue
            try:
                finish(task)
            except Exception as e:
                _transition(summary.id, NoteState.FAILED)
                first_error.record(e)
                stop.set()
                done.put((_Outcome.FAILED, summary))
                continue
            done.put((_Outcome.OK, summary))


class BridgeExportCoordinator(ExportCoordinator):
    """Fetch serially through the backend, write in parallel."""

    def __init__(self, backend: NotesBackend, config: ExportConfig, **kwargs: Any) -> None:
        super().__init__(backend, config, **kwargs)
        self.unresolved_folder = config.bridge_unresolved_folder

    def _produce(self, account: str, index: FolderIndex, summary: NoteSummary) -> ExportUnit:
        _transition(summary.id, NoteState.PENDING)
        logger.debug("Fetching {}", truncate_title(summary.title))
        note = self.backend.get_note(summary.id)
        _transition(note.id, NoteState.FETCHED)

        folder_path = self._folder_path(index, note.id, note.folder_id)
        unit = self._build_unit(
            out_dir=self._out_dir,
            account=account,
            note_id=note.id,
            title=note.title,
            folder_path=folder_path,
            created_at=note.created_at,
            modified_at=note.modified_at,
            contents_md=note_to_markdown(note.title, html_to_markdown(note.body_html)),
            contents_html=note.body_html if self.config.include_html else None,
        )
        _transition(note.id, NoteState.BUILT)
        return unit

    def _worker_context(
        self, account: str, index: FolderIndex, writer: WriterProtocol
    ) -> AbstractContextManager[Callable[[ExportUnit], None]]:
        def finish(unit: ExportUnit) -> None:
            writer.write_unit(unit)
            _transition(unit.note_id, NoteState.WRITTEN)

        return nullcontext(finish)


class StoreExportCoordinator(ExportCoordinator):
    """Each worker reads, decodes, renders and writes notes with its own DB handle."""

    def __init__(
        self, backend: NotesBackend, config: ExportConfig, store: NotesDb, **kwargs: Any
    ) -> None:
        super().__init__(backend, config, **kwargs)
        self.store = store
        self.unresolved_folder = config.store_unresolved_folder

    def _produce(self, account: str, index: FolderIndex, summary: NoteSummary) -> _StoreTask:
        _transition(summary.id, NoteState.PENDING)
        body_html = None
        if self.config.include_html:
            # Raw HTML only comes from the automation bridge, which is not thread-safe.
            body_html = self.backend.get_note(summary.id).body_html
        return _StoreTask(summary=summary, body_html=body_html)

    @contextmanager
    def _worker_context(
        self, account: str, index: FolderIndex, writer: WriterProtocol
    ) -> Iterator[Callable[[_StoreTask], None]]:
        with closing(self.store.connect()) as conn:
            yield lambda task: self._export_one(conn, account, index, writer, task)

    def _export_one(
        self,
        conn: sqlite3.Connection,
        account: str,
        index: FolderIndex,
        writer: WriterProtocol,
        task: _StoreTask,
    ) -> None:
        summary = task.summary
        note_id = summary.id
        pk = ids.parse_pk(note_id)
        created_at, modified_at = select_note_dates(conn, pk)
        data = load_note_data(conn, pk)
        _transition(note_id, NoteState.FETCHED)

        body = ""
        if data:
            try:
                body = decode_note_text(data)
            except DecodeError as e:
                logger.warning("Could not decode note {} ({}): {}; exported without body",
                               note_id, truncate_title(summary.title), e)
                self._count("decode_failures")

        unit = self._build_unit(
            out_dir=self._out_dir,
            account=account,
            note_id=note_id,
            title=summary.title,
            folder_path=self._folder_path(index, note_id, summary.folder_id),
            created_at=created_at,
            modified_at=modified_at,
            contents_md=note_to_markdown(summary.title, body),
            contents_html=task.body_html,
        )
        _transition(note_id, NoteState.BUILT)
        writer.write_unit(unit)
        _transition(note_id, NoteState.WRITTEN)


def make_coordinator(
    backend: NotesBackend,
    config: ExportConfig,
    *,
    writer: WriterProtocol | None = None,
    on_progress: ProgressCallback | None = None,
) -> ExportCoordinator:
    """Pick the export flavor that matches the backend."""
    if isinstance(backend, DirectStoreBackend):
        return StoreExportCoordinator(
            backend, config, backend.store, writer=writer, on_progress=on_progress
        )
    return BridgeExportCoordinator(backend, config, writer=writer, on_progress=on_progress)
