"""Tests for Core Data id formatting and parsing."""

import pytest

from notes_export.core.ids import folder_id, note_id, parse_pk, short_id
from notes_export.errors import InvalidIdError


def test_note_and_folder_ids_use_coredata_scheme() -> None:
    assert note_id("UUID", 7) == "x-coredata://UUID/ICNote/p7"
    assert folder_id("UUID", 8) == "x-coredata://UUID/ICFolder/p8"


def test_parse_pk_reads_trailing_key() -> None:
    assert parse_pk("x-coredata://UUID/ICNote/p123") == 123


def test_parse_pk_round_trips_generated_id() -> None:
    assert parse_pk(note_id("ABC-DEF", 42)) == 42


@pytest.mark.parametrize(
    "bad",
    [
        "no-separator",
        "x-coredata://UUID/ICNote/123",
        "x-coredata://UUID/ICNote/pabc",
        "x-coredata://UUID/ICNote/p",
        "x-coredata://UUID/ICNote/p-1",
    ],
)
def test_parse_pk_rejects_malformed_ids(bad: str) -> None:
    with pytest.raises(InvalidIdError):
        parse_pk(bad)


def test_invalid_id_error_is_a_value_error() -> None:
    with pytest.raises(ValueError, match="invalid coredata"):
        parse_pk("garbage")


def test_short_id_returns_last_segment() -> None:
    assert short_id("x-coredata://UUID/ICNote/p123") == "p123"
    assert short_id("plain") == "plain"
