"""Single-line capture sessions over a borrowed input stream."""

from __future__ import annotations

import asyncio
import logging as py_logging
from dataclasses import dataclass
from enum import Enum

from hushline.capture import CaptureState, StreamCapture
from hushline.echo import EchoPolicy, OutputSink
from hushline.errors import (
    CancelError,
    ExitCode,
    HushlineError,
    ProtocolViolation,
    SourceClosedError,
)
from hushline.line import LineAccumulator, StopKind
from hushline.stream import InputStream

logger = py_logging.getLogger(__name__)


class CaptureOutcome(str, Enum):
    LINE = "line"
    CANCELLED = "cancelled"
    SOURCE_ENDED = "source-ended"
    FAILED = "failed"


class SessionState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptureResult:
    outcome: CaptureOutcome
    content: bytes | str | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (CaptureOutcome.LINE, CaptureOutcome.SOURCE_ENDED)

    def unwrap(self) -> bytes | str:
        if self.ok and self.content is not None:
            return self.content
        if self.outcome == CaptureOutcome.CANCELLED:
            raise CancelError()
        if self.error is not None:
            raise self.error
        raise ProtocolViolation(f"Capture result has no content: {self.outcome.value}")


@dataclass(frozen=True)
class CaptureOptions:
    input: InputStream | None = None
    output: OutputSink | None = None
    replacement_character: str | None = None


def validate_replacement_character(value: str | None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or len(value) != 1:
        raise HushlineError(
            f"Invalid replacement character: {value!r}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Use exactly one character, or none to disable echo.",
        )
    return value


class CaptureSession:
    """Reads one line from ``source`` and hands the stream back untouched.

    ``start()`` acquires the stream synchronously and returns a future that is
    settled exactly once, after the stream has been released.
    """

    def __init__(
        self,
        source: InputStream,
        *,
        output: OutputSink | None = None,
        replacement_character: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.source = source
        self.state = SessionState.IDLE
        self._loop = loop
        self._accumulator = LineAccumulator(cancellable=bool(source.is_tty))
        self._echo = EchoPolicy(output, validate_replacement_character(replacement_character))
        self._capture = StreamCapture(
            source,
            on_data=self._on_data,
            on_end=self._on_end,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        self._future: asyncio.Future[CaptureResult] | None = None

    def start(self) -> asyncio.Future[CaptureResult]:
        if self.state is not SessionState.IDLE:
            raise ProtocolViolation(f"Session cannot start from state {self.state.value}.")
        loop = self._loop or asyncio.get_running_loop()
        future: asyncio.Future[CaptureResult] = loop.create_future()
        future.add_done_callback(self._on_future_done)
        self._future = future
        self.state = SessionState.CAPTURING
        try:
            self._capture.acquire()
        except Exception:
            self.state = SessionState.FAILED
            future.cancel()
            raise
        logger.debug("capture-event step=start tty=%s echo=%s", self.source.is_tty, self._echo.enabled)
        return future

    def _on_data(self, chunk: bytes | str) -> None:
        try:
            result = self._accumulator.feed(chunk)
        except TypeError as exc:
            # Representation changed mid-line, e.g. set_encoding() during capture.
            self._on_error(exc)
            return
        self._echo.on_length_delta(result.delta)
        if not result.complete:
            return
        self._release(result.remainder)
        if result.stop is StopKind.TERMINATOR:
            self._settle(CaptureResult(CaptureOutcome.LINE, content=result.content))
        else:
            self._settle(CaptureResult(CaptureOutcome.CANCELLED))

    def _on_end(self) -> None:
        self._release()
        content = self._accumulator.buffer
        if content is None:
            content = "" if self.source.encoding else b""
        self._settle(CaptureResult(CaptureOutcome.SOURCE_ENDED, content=content))

    def _on_error(self, error: BaseException) -> None:
        self._release()
        self._settle(CaptureResult(CaptureOutcome.FAILED, error=error))

    def _on_close(self) -> None:
        self._release()
        self._settle(CaptureResult(CaptureOutcome.FAILED, error=SourceClosedError()))

    def _release(self, leftover: bytes | str | None = None) -> None:
        try:
            self._capture.release(leftover)
        except ProtocolViolation as exc:
            # Surface on the waiter too; the loop's exception handler only logs it.
            self._abort(exc)
            raise

    def _abort(self, error: ProtocolViolation) -> None:
        self.state = SessionState.FAILED
        future = self._future
        if future is not None and not future.done():
            future.set_exception(error)

    def _settle(self, result: CaptureResult) -> None:
        future = self._future
        if future is None:
            raise ProtocolViolation("Session settled before it started.")
        if future.cancelled():
            return
        if future.done():
            raise ProtocolViolation("Session settled twice.")
        if result.outcome == CaptureOutcome.FAILED:
            self.state = SessionState.FAILED
        else:
            self.state = SessionState.COMPLETED
        logger.debug("capture-event step=settle outcome=%s", result.outcome.value)
        future.set_result(result)

    def _on_future_done(self, future: asyncio.Future[CaptureResult]) -> None:
        # A cancelled waiter must not leave the stream hijacked.
        if future.cancelled() and self._capture.state is CaptureState.ACTIVE:
            logger.debug("capture-event step=waiter-cancelled")
            self._capture.release()
            self.state = SessionState.FAILED


def capture_line(
    source: InputStream,
    *,
    output: OutputSink | None = None,
    replacement_character: str | None = None,
) -> asyncio.Future[CaptureResult]:
    return CaptureSession(
        source,
        output=output,
        replacement_character=replacement_character,
    ).start()


async def read_password(
    source_or_options: InputStream | CaptureOptions,
    *,
    output: OutputSink | None = None,
    replacement_character: str | None = None,
) -> bytes | str:
    """Read one line of masked input from a stream that may already be in use.

    Accepts either the stream itself or ``CaptureOptions``. Returns the line in
    the stream's representation (``bytes``, or ``str`` after
    ``set_encoding()``). Raises ``CancelError`` on Ctrl+C/Ctrl+D at a terminal,
    ``SourceClosedError`` if the stream is destroyed first, and re-raises any
    error the stream reports.
    """
    if isinstance(source_or_options, CaptureOptions):
        source = source_or_options.input
        output = source_or_options.output if output is None else output
        if replacement_character is None:
            replacement_character = source_or_options.replacement_character
    else:
        source = source_or_options
    if source is None:
        raise HushlineError(
            "Input stream is required.",
            code=ExitCode.VALIDATION_ERROR,
            hint="Pass an InputStream or CaptureOptions(input=...).",
        )
    result = await capture_line(source, output=output, replacement_character=replacement_character)
    return result.unwrap()
