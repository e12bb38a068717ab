from __future__ import annotations

from hushline.backspace import handle_backspaces, visible_length


def test_backspace_removes_previous_character() -> None:
    assert handle_backspaces("Banana\x08") == "Banan"
    assert handle_backspaces(b"Banana\x08") == b"Banan"


def test_delete_is_treated_like_backspace() -> None:
    assert handle_backspaces("abc\x7f") == "ab"
    assert handle_backspaces(b"abc\x7f") == b"ab"


def test_leading_backspace_is_dropped() -> None:
    assert handle_backspaces("\x08abc") == "abc"
    assert handle_backspaces(b"\x08\x7fabc") == b"abc"


def test_runs_of_backspaces_erase_one_character_each() -> None:
    assert handle_backspaces("abcd\x08\x08\x08") == "a"
    assert handle_backspaces(b"ab\x08\x08\x08c") == b"c"


def test_backspace_in_the_middle_keeps_following_input() -> None:
    assert handle_backspaces("abX\x08cd") == "abcd"


def test_multibyte_utf8_sequence_is_erased_as_one_character() -> None:
    assert handle_backspaces("Bän".encode() + b"\x08\x08") == b"B"
    assert handle_backspaces("a€".encode() + b"\x08") == b"a"
    assert handle_backspaces("🍌".encode() + b"\x08") == b""


def test_text_backspace_erases_one_code_point() -> None:
    assert handle_backspaces("a🍌\x08") == "a"


def test_buffer_without_markers_is_unchanged() -> None:
    assert handle_backspaces("plain") == "plain"
    assert handle_backspaces(b"") == b""


def test_visible_length_counts_code_points() -> None:
    assert visible_length("Bän") == 3
    assert visible_length("Bän".encode()) == 3
    assert visible_length(b"") == 0
