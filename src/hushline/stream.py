"""Event-emitting readable input stream.

``InputStream`` is the source abstraction the capture protocol borrows. It
delivers chunks either by pushing them to ``data`` listeners (flowing mode) or
by announcing them to ``readable`` listeners which pull with ``read()``.

Deferred work (draining the buffer, ``readable``/``end`` notifications and
destroy notifications) is scheduled on the asyncio loop with ``call_soon`` so
that listeners registered in the same synchronous block are in place before
anything is delivered.
"""

from __future__ import annotations

import asyncio
import codecs
import logging as py_logging
from collections import deque
from collections.abc import Callable
from enum import Enum

logger = py_logging.getLogger(__name__)

Listener = Callable[..., object]
Chunk = bytes | str

DATA = "data"
READABLE = "readable"
END = "end"
ERROR = "error"
CLOSE = "close"
KEYPRESS = "keypress"
NEW_LISTENER = "new_listener"


class FlowState(str, Enum):
    FLOWING = "flowing"
    PAUSED = "paused"
    UNSET = "unset"

    @classmethod
    def from_flag(cls, flowing: bool | None) -> FlowState:
        if flowing is None:
            return cls.UNSET
        return cls.FLOWING if flowing else cls.PAUSED


class InputStream:
    is_tty = False

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        is_tty: bool | None = None,
    ) -> None:
        self._loop = loop
        if is_tty is not None:
            self.is_tty = is_tty
        self._listeners: dict[str, list[Listener]] = {}
        self._buffer: deque[Chunk] = deque()
        self._flowing: bool | None = None
        self._encoding: str | None = None
        self._decoder: codecs.IncrementalDecoder | None = None
        self._ended = False
        self._end_emitted = False
        self._destroyed = False
        self._raw = False
        self._flow_scheduled = False
        self._readable_scheduled = False

    # -- state -------------------------------------------------------------

    @property
    def readable_flowing(self) -> bool | None:
        """``True`` flowing, ``False`` paused, ``None`` not yet determined."""
        return self._flowing

    @property
    def encoding(self) -> str | None:
        return self._encoding

    @property
    def ended(self) -> bool:
        """End of input was pushed; buffered data may still be pending."""
        return self._ended

    @property
    def end_emitted(self) -> bool:
        return self._end_emitted

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def is_raw(self) -> bool:
        return self._raw

    def set_raw_mode(self, mode: bool) -> InputStream:
        self._raw = bool(mode)
        return self

    def set_encoding(self, encoding: str) -> InputStream:
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)()
        if self._buffer:
            pending = [self._decode(chunk) for chunk in self._buffer]
            self._buffer.clear()
            self._buffer.append("".join(pending))
        return self

    # -- listener registry -------------------------------------------------

    def listeners(self, event: str) -> list[Listener]:
        return list(self._listeners.get(event, ()))

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def on(self, event: str, listener: Listener) -> InputStream:
        return self._register(event, listener, prepend=False)

    add_listener = on

    def prepend_listener(self, event: str, listener: Listener) -> InputStream:
        return self._register(event, listener, prepend=True)

    def remove_listener(self, event: str, listener: Listener) -> InputStream:
        bucket = self._listeners.get(event)
        if not bucket:
            return self
        for index in range(len(bucket) - 1, -1, -1):
            if bucket[index] == listener:
                del bucket[index]
                break
        if not bucket:
            del self._listeners[event]
        self._sync_reading()
        return self

    def remove_all_listeners(self, event: str) -> InputStream:
        self._listeners.pop(event, None)
        self._sync_reading()
        return self

    def detach_listeners(self, event: str) -> tuple[Listener, ...]:
        """Remove and return every listener for ``event`` without side effects."""
        detached = tuple(self._listeners.pop(event, ()))
        self._sync_reading()
        return detached

    def attach_listeners(self, event: str, listeners: tuple[Listener, ...] | list[Listener]) -> None:
        """Append ``listeners`` in order without notifications or flow changes."""
        if not listeners:
            return
        self._listeners.setdefault(event, []).extend(listeners)
        self._sync_reading()

    def emit(self, event: str, *args: object) -> bool:
        current = self.listeners(event)
        if event == ERROR and not current:
            error = args[0] if args else None
            if isinstance(error, BaseException):
                raise error
        for listener in current:
            # Listeners removed by an earlier listener of this round are skipped.
            if listener in self._listeners.get(event, ()):
                listener(*args)
        return bool(current)

    def _register(self, event: str, listener: Listener, *, prepend: bool) -> InputStream:
        bucket = self._listeners.setdefault(event, [])
        if prepend:
            bucket.insert(0, listener)
        else:
            bucket.append(listener)
        if event != NEW_LISTENER:
            # Emitted after registration; a watcher may veto by removing it.
            self.emit(NEW_LISTENER, event, listener)
            if listener not in self._listeners.get(event, ()):
                return self

        if event == DATA:
            if self._flowing is not False:
                self.resume()
        elif event == READABLE:
            self._flowing = False
            if self._buffer or self._ended:
                self._schedule_readable()
        self._sync_reading()
        return self

    # -- flow control ------------------------------------------------------

    def pause(self) -> InputStream:
        if self._flowing is not False:
            self._flowing = False
            self._sync_reading()
        return self

    def resume(self) -> InputStream:
        if not self._flowing:
            self._flowing = True
            self._sync_reading()
        self._schedule_flow()
        return self

    def is_paused(self) -> bool:
        return self._flowing is False

    # -- data path ---------------------------------------------------------

    def push(self, chunk: bytes | bytearray | str | None) -> bool:
        """Feed data from the underlying resource; ``None`` signals end of input."""
        if self._destroyed or self._ended:
            return False
        if chunk is None:
            self._ended = True
            if self._decoder is not None:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self._buffer.append(tail)
            self._sync_reading()
            self._after_add()
            return False

        data = self._decode(chunk)
        if not data:
            return True
        if self._flowing and not self._buffer and self.listener_count(DATA):
            self.emit(DATA, data)
        else:
            self._buffer.append(data)
            self._after_add()
        return True

    def unshift(self, chunk: bytes | bytearray | str) -> None:
        """Put ``chunk`` back in front of pending data, in the stream's representation."""
        if self._destroyed or not chunk:
            return
        if self._encoding is not None and not isinstance(chunk, str):
            data: Chunk = bytes(chunk).decode(self._encoding)
        elif self._encoding is None and isinstance(chunk, str):
            data = chunk.encode("utf-8")
        else:
            data = bytes(chunk) if isinstance(chunk, bytearray) else chunk
        self._buffer.appendleft(data)
        self._after_add()

    def read(self) -> Chunk | None:
        """Pull everything buffered, or ``None`` when nothing is pending."""
        if not self._buffer:
            if self._ended:
                self._call_soon(self._maybe_end)
            return None
        chunks = list(self._buffer)
        self._buffer.clear()
        if self._ended:
            self._call_soon(self._maybe_end)
        return chunks[0][:0].join(chunks)

    def destroy(self, error: BaseException | None = None) -> InputStream:
        if self._destroyed:
            return self
        self._destroyed = True
        self._buffer.clear()
        self._sync_reading()
        logger.debug("stream destroyed error=%r", error)

        def notify() -> None:
            if error is not None:
                self.emit(ERROR, error)
            self.emit(CLOSE)

        self._call_soon(notify)
        return self

    # -- internals ---------------------------------------------------------

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _call_soon(self, callback: Callable[[], object]) -> None:
        self._get_loop().call_soon(callback)

    def _sync_reading(self) -> None:
        """Hook for sources that must start/stop reading their resource."""

    def _decode(self, chunk: bytes | bytearray | str) -> Chunk:
        if self._decoder is not None:
            if isinstance(chunk, str):
                return chunk
            return self._decoder.decode(bytes(chunk))
        if isinstance(chunk, str):
            return chunk.encode("utf-8")
        return bytes(chunk)

    def _after_add(self) -> None:
        if self._flowing:
            self._schedule_flow()
        elif self.listener_count(READABLE):
            self._schedule_readable()

    def _schedule_flow(self) -> None:
        if self._flow_scheduled:
            return
        self._flow_scheduled = True
        self._call_soon(self._flow)

    def _flow(self) -> None:
        self._flow_scheduled = False
        while self._flowing and self._buffer and self.listener_count(DATA) and not self._destroyed:
            self.emit(DATA, self._buffer.popleft())
        if self._flowing:
            self._maybe_end()
        elif self.listener_count(READABLE):
            # Paused between scheduling and now; pull consumers still get told.
            self._emit_readable()

    def _schedule_readable(self) -> None:
        if self._readable_scheduled:
            return
        self._readable_scheduled = True
        self._call_soon(self._emit_readable)

    def _emit_readable(self) -> None:
        self._readable_scheduled = False
        if self._destroyed:
            return
        if self._buffer or (self._ended and not self._end_emitted):
            self.emit(READABLE)

    def _maybe_end(self) -> None:
        if self._ended and not self._buffer and not self._end_emitted and not self._destroyed:
            self._end_emitted = True
            self.emit(END)
