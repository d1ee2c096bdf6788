"""Exception types raised by the exporter and its backends."""


class NotesExportError(Exception):
    """Base class for all notes-export failures."""


class ConfigurationError(NotesExportError, ValueError):
    """Invalid settings, rejected before any I/O happens."""


class FolderIndexError(NotesExportError):
    """The folder table cannot be turned into an index."""


class DuplicateFolderError(FolderIndexError):
    """Two folders share one id."""

    def __init__(self, folder_id: str) -> None:
        super().__init__(f"duplicate folder id: {folder_id}")
        self.folder_id = folder_id


class FolderCycleError(FolderIndexError):
    """A chain of parent pointers loops back on itself."""

    def __init__(self, pk: int) -> None:
        super().__init__(f"folder parent cycle detected at pk {pk}")
        self.pk = pk


class FolderLookupError(NotesExportError, LookupError):
    """A folder id or path does not resolve."""


class InvalidIdError(NotesExportError, ValueError):
    """An opaque record id is malformed."""


class DecodeError(NotesExportError):
    """A note blob yielded no readable text."""


class ExportWriteError(NotesExportError):
    """Writing an output file or directory failed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"write {path!r}: {reason}")
        self.path = path


class BackendError(NotesExportError, RuntimeError):
    """The data source failed to answer a request."""


class ExportAbortedError(NotesExportError):
    """An export stopped early. The first failure is chained as __cause__."""

    def __init__(self, message: str, *, completed: int, attempted: int) -> None:
        super().__init__(f"{message} (completed {completed} of {attempted} attempted notes)")
        self.completed = completed
        self.attempted = attempted


def format_error_chain(err: BaseException) -> str:
    """Join an exception and its causes into one line, outermost first."""
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current) or type(current).__name__)
        current = current.__cause__ or current.__context__
    return ": ".join(parts)
