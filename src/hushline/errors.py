"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    CANCELLED = 5
    SOURCE_CLOSED = 6
    VALIDATION_ERROR = 7
    UNSUPPORTED_PLATFORM = 8


@dataclass
class HushlineError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class CancelError(HushlineError):
    """The user aborted input with Ctrl+C or Ctrl+D on a terminal."""

    errno_code = "ECANCELED"

    def __init__(self) -> None:
        super().__init__("The request was aborted by the user", code=ExitCode.CANCELLED)


class SourceClosedError(HushlineError):
    def __init__(self) -> None:
        super().__init__(
            "Stream closed before password could be read",
            code=ExitCode.SOURCE_CLOSED,
        )


class ProtocolViolation(RuntimeError):
    """Internal capture/restore contract was broken; never a caller condition."""


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
