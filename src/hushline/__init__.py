"""Borrow a live input stream to read one masked line, then hand it back."""

from .backspace import handle_backspaces
from .capture import StreamCapture
from .echo import EchoPolicy
from .errors import CancelError, ExitCode, HushlineError, ProtocolViolation, SourceClosedError
from .line import FeedResult, LineAccumulator, StopKind
from .session import (
    CaptureOptions,
    CaptureOutcome,
    CaptureResult,
    CaptureSession,
    capture_line,
    read_password,
)
from .stream import FlowState, InputStream

__all__ = [
    "CancelError",
    "capture_line",
    "CaptureOptions",
    "CaptureOutcome",
    "CaptureResult",
    "CaptureSession",
    "EchoPolicy",
    "ExitCode",
    "FeedResult",
    "FlowState",
    "handle_backspaces",
    "HushlineError",
    "InputStream",
    "LineAccumulator",
    "ProtocolViolation",
    "read_password",
    "SourceClosedError",
    "StopKind",
    "StreamCapture",
]
