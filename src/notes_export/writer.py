"""File writer for exported note directories."""

import threading
from pathlib import Path

from loguru import logger

from notes_export.core.layout import HTML_FILE, MARKDOWN_FILE, METADATA_FILE
from notes_export.errors import ExportWriteError
from notes_export.models.note import ExportUnit


class FileWriter:
    """Write export units below an output directory.

    - Directories are created as needed.
    - Files are overwritten unconditionally; nothing from earlier runs is merged.
    - Counts created vs. updated files for the final summary.

    Safe to call from several worker threads at once, as long as no two units
    share a directory.
    """

    def __init__(self, datadir: str | Path, *, dry_run: bool = False) -> None:
        self.datadir = Path(datadir).resolve()
        self.dry_run = dry_run

        if not dry_run and not self.datadir.is_dir():
            msg = f"Output directory {str(self.datadir)!r} not found"
            raise ValueError(msg)

        logger.debug("Writer ready, datadir {!r}, dry_run {!r}", str(datadir), dry_run)
        self._lock = threading.Lock()
        self._dirs_made: set[Path] = set()
        self._num_created = 0
        self._num_updated = 0
        self._finalized = False

    def is_possible_output(self, fname: str) -> bool:
        """Check if a file name is something this writer may produce."""
        return fname.endswith((".json", ".md", ".html"))

    def write_unit(self, unit: ExportUnit) -> None:
        """Write metadata.json, contents.md and, if present, contents.html for one note.

        Raises:
            ExportWriteError: A directory or file could not be written.
            ValueError: The unit's directory is outside the output directory.
        """
        note_dir = Path(unit.note_dir)
        if not note_dir.is_absolute():
            note_dir = self.datadir / note_dir
        if not note_dir.resolve().is_relative_to(self.datadir):
            msg = f"Path escapes datadir: {str(note_dir)!r}"
            raise ValueError(msg)

        files = [(METADATA_FILE, unit.metadata_json), (MARKDOWN_FILE, unit.contents_md)]
        if unit.contents_html is not None:
            files.append((HTML_FILE, unit.contents_html))

        if self.dry_run:
            for fname, _contents in files:
                logger.info("dry-run: would write {!r}", str(note_dir / fname))
            return

        try:
            note_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportWriteError(str(note_dir), f"create directory: {e}") from e

        for fname, contents in files:
            self._write_file(note_dir / fname, contents)

        with self._lock:
            self._dirs_made.add(note_dir)

    def _write_file(self, path: Path, contents: str) -> None:
        if not self.is_possible_output(path.name):
            msg = f"Wanted to write {str(path)!r} but is_possible_output() returns False"
            raise ValueError(msg)
        existed = path.exists()
        logger.trace("Writing ({}) {!r}", "update" if existed else "create", str(path))
        try:
            path.write_text(contents, encoding="utf-8")
        except OSError as e:
            raise ExportWriteError(str(path), str(e)) from e
        with self._lock:
            if existed:
                self._num_updated += 1
            else:
                self._num_created += 1

    @property
    def files_written(self) -> int:
        with self._lock:
            return self._num_created + self._num_updated

    def finalize(self) -> None:
        """Log update statistics."""
        if self._finalized:
            msg = "finalize() called twice"
            raise RuntimeError(msg)
        self._finalized = True
        with self._lock:
            logger.info(
                "Outputs: {} new, {} overwritten (in {} note folders)",
                self._num_created,
                self._num_updated,
                len(self._dirs_made),
            )
