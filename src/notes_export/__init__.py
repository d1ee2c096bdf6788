"""Apple Notes export tools."""

from notes_export.exporter import ExportCoordinator, make_coordinator
from notes_export.protocols import NotesBackend
from notes_export.writer import FileWriter

__all__ = ["ExportCoordinator", "FileWriter", "NotesBackend", "make_coordinator"]
