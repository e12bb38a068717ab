"""Accumulate raw input chunks into a single delimited line."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hushline.backspace import handle_backspaces, visible_length

TERMINATORS = ("\r", "\n")
CANCEL_MARKERS = ("\x03", "\x04")


class StopKind(str, Enum):
    TERMINATOR = "terminator"
    CANCEL = "cancel"


@dataclass(frozen=True)
class FeedResult:
    """Outcome of feeding one chunk.

    ``stop`` is ``None`` while the line is incomplete. ``delta`` is the change
    in visible characters up to the stop marker, for echo purposes.
    """

    delta: int
    stop: StopKind | None = None
    content: bytes | str | None = None
    remainder: bytes | str | None = None

    @property
    def complete(self) -> bool:
        return self.stop is not None


def stop_markers(*, cancellable: bool) -> list[tuple[str, StopKind]]:
    # Scan order decides nothing in practice: two single-character markers
    # never share an index. It is fixed so the scan is deterministic.
    markers = [(marker, StopKind.TERMINATOR) for marker in TERMINATORS]
    if cancellable:
        markers.extend((marker, StopKind.CANCEL) for marker in CANCEL_MARKERS)
    return markers


def find_stop(buffer: bytes | str, *, cancellable: bool) -> tuple[int, StopKind | None]:
    stop_index = len(buffer)
    stop_kind: StopKind | None = None
    for marker, kind in stop_markers(cancellable=cancellable):
        needle: bytes | str = marker.encode("ascii") if isinstance(buffer, bytes) else marker
        index = buffer.find(needle)
        if index != -1 and index < stop_index:
            stop_index = index
            stop_kind = kind
    return stop_index, stop_kind


class LineAccumulator:
    def __init__(self, *, cancellable: bool = False) -> None:
        self.cancellable = cancellable
        self._buffer: bytes | str | None = None

    @property
    def buffer(self) -> bytes | str | None:
        return self._buffer

    def feed(self, chunk: bytes | str) -> FeedResult:
        if self._buffer is None:
            self._buffer = chunk[:0]
        if type(chunk) is not type(self._buffer):
            raise TypeError(
                f"Chunk type changed mid-line: {type(self._buffer).__name__} -> {type(chunk).__name__}"
            )
        previous_length = visible_length(self._buffer)
        self._buffer = handle_backspaces(self._buffer + chunk)

        stop_index, stop_kind = find_stop(self._buffer, cancellable=self.cancellable)
        delta = visible_length(self._buffer[:stop_index]) - previous_length
        if stop_kind is None:
            return FeedResult(delta=delta)

        content = self._buffer[:stop_index]
        self._buffer = self._buffer[stop_index + 1 :]
        return FeedResult(delta=delta, stop=stop_kind, content=content, remainder=self._buffer)
