"""Collapse backspace/delete control characters against preceding input."""

from __future__ import annotations

from typing import TypeVar

Buffer = TypeVar("Buffer", bytes, str)

BACKSPACE_MARKERS = ("\x08", "\x7f")
_BYTE_MARKERS = tuple(marker.encode("ascii") for marker in BACKSPACE_MARKERS)
# Longest span a legacy UTF-8 sequence can occupy.
_MAX_SEQUENCE_BYTES = 6


def _first_marker(buffer: bytes | str) -> int:
    markers = _BYTE_MARKERS if isinstance(buffer, bytes) else BACKSPACE_MARKERS
    found = [index for index in (buffer.find(marker) for marker in markers) if index != -1]
    return min(found) if found else -1


def is_continuation_byte(value: int) -> bool:
    return 0x80 <= value < 0xC0


def _sequence_start(buffer: bytes, marker_index: int) -> int:
    start = marker_index - 1
    while (
        start > 0
        and marker_index - start < _MAX_SEQUENCE_BYTES
        and is_continuation_byte(buffer[start])
    ):
        start -= 1
    return start


def handle_backspaces(buffer: Buffer) -> Buffer:
    """Return ``buffer`` with every backspace applied to the character before it.

    A marker at the start of the buffer erases nothing and is dropped. In
    ``str`` buffers one code point is erased; in ``bytes`` buffers the whole
    UTF-8 sequence preceding the marker is erased.
    """
    index = _first_marker(buffer)
    while index != -1:
        if index == 0:
            buffer = buffer[1:]
        elif isinstance(buffer, bytes):
            buffer = buffer[: _sequence_start(buffer, index)] + buffer[index + 1 :]
        else:
            buffer = buffer[: index - 1] + buffer[index + 1 :]
        index = _first_marker(buffer)
    return buffer


def visible_length(buffer: bytes | str) -> int:
    """Number of user-visible characters, counting UTF-8 sequences once."""
    if isinstance(buffer, bytes):
        return sum(1 for value in buffer if not is_continuation_byte(value))
    return len(buffer)
