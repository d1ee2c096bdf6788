"""Data sources for notes-export, chosen once at startup."""

from loguru import logger

from notes_export.backends.direct import DirectStoreBackend
from notes_export.backends.fixture import FixtureBackend
from notes_export.backends.osascript import OsascriptBackend
from notes_export.backends.store import NotesDb
from notes_export.config import BackendMode, ExportConfig, resolve_notes_db_path
from notes_export.errors import BackendError
from notes_export.protocols import NotesBackend

__all__ = [
    "DirectStoreBackend",
    "FixtureBackend",
    "NotesDb",
    "OsascriptBackend",
    "make_backend",
]


def _open_store(config: ExportConfig) -> NotesDb:
    path = resolve_notes_db_path(config.db_path)
    if path is None:
        msg = "Notes database not found (use --db-path or --backend osascript)"
        raise BackendError(msg)
    return NotesDb(path)


def make_backend(config: ExportConfig) -> NotesBackend:
    """Build the backend selected by `config`."""
    if config.fixture is not None:
        return FixtureBackend.from_path(config.fixture)

    bridge = OsascriptBackend(
        osascript_bin=config.osascript_bin, debug_scripts=config.debug_scripts
    )
    if config.backend is BackendMode.OSASCRIPT:
        return bridge
    if config.backend is BackendMode.DB:
        return DirectStoreBackend(_open_store(config), bridge)

    try:
        store = _open_store(config)
    except BackendError as e:
        logger.debug("Notes database unavailable, using osascript: {}", e)
        return bridge
    return DirectStoreBackend(store, bridge)
