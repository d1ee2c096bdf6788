"""Domain models for exported notes."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from notes_export.core.timestamps import format_timestamp, parse_timestamp


@dataclass(frozen=True)
class Account:
    """A Notes account (iCloud, On My Mac, ...)."""

    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        return cls(name=data["name"])


@dataclass(frozen=True)
class Folder:
    """A folder with its full path from the account root, inclusive."""

    id: str
    name: str
    account: str
    path: tuple[str, ...]

    def path_string(self) -> str:
        return " > ".join(self.path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Folder":
        return cls(
            id=data["id"],
            name=data["name"],
            account=data["account"],
            path=tuple(data["path"]),
        )


@dataclass(frozen=True)
class NoteSummary:
    """Listing record for a note."""

    id: str
    title: str
    folder_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteSummary":
        return cls(id=data["id"], title=data["title"], folder_id=data["folder_id"])


@dataclass(frozen=True)
class Note:
    """A fully fetched note."""

    id: str
    title: str
    folder_id: str
    created_at: datetime
    modified_at: datetime
    body_html: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            title=data["title"],
            folder_id=data["folder_id"],
            created_at=parse_timestamp(data["created_at"]),
            modified_at=parse_timestamp(data["modified_at"]),
            body_html=data["body_html"],
        )


@dataclass(frozen=True)
class BackupMetadata:
    """Sidecar written next to each exported note as metadata.json."""

    id: str
    title: str
    account: str
    folder_path: tuple[str, ...]
    created_at: datetime
    modified_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "account": self.account,
            "folder_path": list(self.folder_path),
            "created_at": format_timestamp(self.created_at),
            "modified_at": format_timestamp(self.modified_at),
        }


@dataclass(frozen=True)
class ExportUnit:
    """Everything needed to write one note directory."""

    note_id: str
    note_dir: Path
    metadata_json: str
    contents_md: str
    contents_html: str | None = None


@dataclass(frozen=True)
class ExportStats:
    """Summary of a finished export."""

    exported: int
    total: int
    decode_failures: int = 0
    unknown_folders: int = 0
