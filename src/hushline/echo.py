"""Placeholder echo for masked input."""

from __future__ import annotations

from typing import Protocol

ERASE_SEQUENCE = "\b \b"


class OutputSink(Protocol):
    def write(self, payload: str, /) -> object: ...


class EchoPolicy:
    """Writes placeholders for typed characters; never the characters themselves."""

    def __init__(self, output: OutputSink | None = None, replacement_character: str | None = None) -> None:
        self.output = output
        self.replacement_character = replacement_character

    @property
    def enabled(self) -> bool:
        return self.output is not None and bool(self.replacement_character)

    def on_length_delta(self, delta: int) -> None:
        output = self.output
        placeholder = self.replacement_character
        if output is None or not placeholder or delta == 0:
            return
        if delta > 0:
            output.write(placeholder * delta)
        else:
            output.write(ERASE_SEQUENCE * -delta)
        flush = getattr(output, "flush", None)
        if callable(flush):
            flush()
