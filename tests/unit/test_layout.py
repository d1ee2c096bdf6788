"""Tests for the on-disk export layout."""

from pathlib import Path

from notes_export.core.layout import export_path, note_dir_name, sanitize_filename


def test_note_dir_name_strips_slashes_and_appends_pk() -> None:
    assert note_dir_name("Hello/World", "x-coredata://UUID/ICNote/p123") == "HelloWorld-p123"


def test_note_dir_name_blank_title_is_untitled() -> None:
    assert note_dir_name("   ", "x-coredata://UUID/ICNote/p1") == "Untitled-p1"


def test_note_dir_name_title_of_only_illegal_chars_is_untitled() -> None:
    assert note_dir_name("///", "x-coredata://UUID/ICNote/p2") == "Untitled-p2"


def test_note_dir_name_truncates_long_titles() -> None:
    name = note_dir_name("x" * 200, "x-coredata://UUID/ICNote/p3")

    assert name == "x" * 80 + "-p3"


def test_sanitize_filename_removes_illegal_characters() -> None:
    assert sanitize_filename('a/b?c<d>e\\f:g*h|i"j') == "abcdefghij"
    assert sanitize_filename("tab\there") == "tabhere"


def test_sanitize_filename_reserved_names() -> None:
    assert sanitize_filename("..") == ""
    assert sanitize_filename("CON") == ""
    assert sanitize_filename("lpt1.txt") == ""
    assert sanitize_filename("name. ") == "name"


def test_sanitize_filename_caps_utf8_bytes() -> None:
    result = sanitize_filename("ü" * 200)

    assert len(result.encode("utf-8")) <= 255
    assert result == "ü" * 127


def test_export_path_nests_folders() -> None:
    path = export_path(Path("/out"), ("Personal", "Archive"), "Shopping", "x://s/ICNote/p9")

    assert path == Path("/out/Personal/Archive/Shopping-p9")


def test_export_path_replaces_empty_folder_segment() -> None:
    path = export_path(Path("/out"), ("..", "ok"), "T", "x://s/ICNote/p1")

    assert path == Path("/out/_/ok/T-p1")


def test_same_title_different_ids_do_not_collide() -> None:
    a = export_path(Path("/out"), ("F",), "Same", "x://s/ICNote/p1")
    b = export_path(Path("/out"), ("F",), "Same", "x://s/ICNote/p2")

    assert a != b
