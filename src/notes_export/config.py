"""Configuration constants and run settings for notes-export."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from notes_export.errors import ConfigurationError

DEFAULT_ACCOUNT: str = "iCloud"

DEFAULT_JOBS: int = 4

# Upper bound for worker threads, regardless of what was requested.
MAX_JOBS: int = 16

# Folder path used when a note's folder cannot be resolved.
UNKNOWN_FOLDER: str = "Unknown"

OSASCRIPT_BIN: str = "osascript"

# Notes database location. First file found is used.
NOTES_DB_CANDIDATES: list[Path] = [
    Path("~/Library/Group Containers/group.com.apple.notes/NoteStore.sqlite").expanduser(),
]


class BackendMode(str, Enum):
    """Which data source serves reads."""

    AUTO = "auto"
    OSASCRIPT = "osascript"
    DB = "db"


class UnresolvedFolderPolicy(str, Enum):
    """What to do with a note whose folder id is not in the folder index."""

    FAIL = "fail"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class ExportConfig:
    """Settings built once at startup and passed down explicitly."""

    jobs: int = DEFAULT_JOBS
    include_html: bool = False
    backend: BackendMode = BackendMode.AUTO
    fixture: Path | None = None
    db_path: Path | None = None
    osascript_bin: str = OSASCRIPT_BIN
    debug_scripts: bool = False
    dry_run: bool = False
    progress: bool = False
    bridge_unresolved_folder: UnresolvedFolderPolicy = UnresolvedFolderPolicy.FAIL
    store_unresolved_folder: UnresolvedFolderPolicy = UnresolvedFolderPolicy.SENTINEL

    def effective_jobs(self) -> int:
        """Return the worker count to use, capped at MAX_JOBS.

        Raises:
            ConfigurationError: jobs is below 1.
        """
        if self.jobs < 1:
            msg = f"--jobs must be >= 1, got {self.jobs}"
            raise ConfigurationError(msg)
        return min(self.jobs, MAX_JOBS)


def resolve_notes_db_path(override: Path | None = None) -> Path | None:
    """Return the Notes database to read, or None if none exists."""
    if override is not None:
        return override.expanduser()
    for candidate in NOTES_DB_CANDIDATES:
        if candidate.is_file():
            return candidate
    return None
