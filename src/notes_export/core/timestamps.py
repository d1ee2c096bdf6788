"""Convert Core Data timestamps (seconds since 2001-01-01 UTC) to datetimes."""

from datetime import UTC, datetime, timedelta

# 2001-01-01T00:00:00Z
REFERENCE_EPOCH = datetime(2001, 1, 1, tzinfo=UTC)


def from_reference_seconds(seconds: float) -> datetime:
    """Return the instant `seconds` after the reference epoch, at millisecond precision."""
    return REFERENCE_EPOCH + timedelta(milliseconds=int(seconds * 1000))


def first_present(*candidates: float | None) -> float | None:
    """Return the first candidate that is not None."""
    for value in candidates:
        if value is not None:
            return value
    return None


def resolve_note_dates(
    creation: tuple[float | None, ...],
    modification: tuple[float | None, ...],
) -> tuple[datetime, datetime]:
    """Pick creation and modification instants from candidate columns.

    Candidates are given in priority order. A missing creation date becomes the
    reference epoch; a missing modification date falls back to the creation date.
    """
    created = first_present(*creation)
    if created is None:
        created = 0.0
    modified = first_present(*modification)
    if modified is None:
        modified = created
    return from_reference_seconds(created), from_reference_seconds(modified)


def format_timestamp(value: datetime) -> str:
    """Format as RFC 3339 in UTC, e.g. 2025-12-20T00:00:00Z."""
    text = value.astimezone(UTC).isoformat()
    return text.removesuffix("+00:00") + "Z"


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a trailing Z."""
    value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value
