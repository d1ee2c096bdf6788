"""Core Data object ids: x-coredata://<store uuid>/<Entity>/p<pk>."""

from notes_export.errors import InvalidIdError

SCHEME = "x-coredata"
NOTE_ENTITY = "ICNote"
FOLDER_ENTITY = "ICFolder"


def format_id(store_uuid: str, entity: str, pk: int) -> str:
    return f"{SCHEME}://{store_uuid}/{entity}/p{pk}"


def note_id(store_uuid: str, pk: int) -> str:
    return format_id(store_uuid, NOTE_ENTITY, pk)


def folder_id(store_uuid: str, pk: int) -> str:
    return format_id(store_uuid, FOLDER_ENTITY, pk)


def parse_pk(opaque_id: str) -> int:
    """Extract the numeric primary key from an opaque id.

    Raises:
        InvalidIdError: No path separator, no "p" prefix, or a non-numeric key.
    """
    if "/" not in opaque_id:
        msg = f"invalid coredata id: {opaque_id}"
        raise InvalidIdError(msg)
    last = opaque_id.rsplit("/", 1)[1]
    if not last.startswith("p"):
        msg = f"invalid coredata id: {opaque_id}"
        raise InvalidIdError(msg)
    digits = last[1:]
    if not digits.isascii() or not digits.isdigit():
        msg = f"invalid coredata pk in id: {opaque_id}"
        raise InvalidIdError(msg)
    return int(digits)


def short_id(opaque_id: str) -> str:
    """Return the trailing path segment of an id (the whole id if it has none)."""
    return opaque_id.rsplit("/", 1)[-1]
