"""Standard input as an ``InputStream`` driven by the asyncio loop."""

from __future__ import annotations

import asyncio
import logging as py_logging
import os
import sys
from typing import BinaryIO

from hushline.errors import ExitCode, HushlineError
from hushline.stream import READABLE, InputStream

try:
    import termios
    import tty
except ImportError:  # pragma: no cover - Windows
    termios = None  # type: ignore[assignment]
    tty = None  # type: ignore[assignment]

logger = py_logging.getLogger(__name__)


class TerminalInputStream(InputStream):
    """Reads a file descriptor (stdin by default) only while somebody consumes it."""

    def __init__(
        self,
        fp: BinaryIO | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        read_size: int = 4096,
    ) -> None:
        self.fp = fp if fp is not None else sys.stdin.buffer
        self.fd = self.fp.fileno()
        super().__init__(loop=loop, is_tty=os.isatty(self.fd))
        self.read_size = read_size
        self._reading = False
        self._saved_attrs: list | None = None
        self._pollable = True
        self._direct_read: asyncio.Handle | None = None

    def set_raw_mode(self, mode: bool) -> TerminalInputStream:
        if not self.is_tty:
            raise HushlineError(
                "Raw mode requires an interactive terminal.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Only call set_raw_mode on a TTY input.",
            )
        if termios is None or tty is None:
            raise HushlineError(
                "Terminal raw mode is not supported on this platform.",
                code=ExitCode.UNSUPPORTED_PLATFORM,
            )
        if mode and self._saved_attrs is None:
            self._saved_attrs = termios.tcgetattr(self.fd)
            tty.setraw(self.fd, termios.TCSANOW)
        elif not mode and self._saved_attrs is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
        super().set_raw_mode(mode)
        return self

    def close(self) -> None:
        """Stop reading and hand the terminal back in cooked mode."""
        self._stop_reading()
        if self._saved_attrs is not None:
            self.set_raw_mode(False)

    def _sync_reading(self) -> None:
        wants_data = not self.destroyed and not self.ended and (
            bool(self.readable_flowing) or self.listener_count(READABLE) > 0
        )
        if wants_data and not self._reading:
            self._start_reading()
        elif not wants_data:
            self._stop_reading()

    def _start_reading(self) -> None:
        loop = self._get_loop()
        if self._pollable:
            try:
                loop.add_reader(self.fd, self._on_readable)
            except PermissionError:
                # epoll refuses regular files; read those once per loop iteration.
                self._pollable = False
            else:
                self._reading = True
                logger.debug("terminal reader attached fd=%s", self.fd)
                return
        self._reading = True
        self._direct_read = loop.call_soon(self._read_directly)
        logger.debug("terminal reader attached fd=%s mode=direct", self.fd)

    def _stop_reading(self) -> None:
        if not self._reading:
            return
        self._reading = False
        if self._direct_read is not None:
            self._direct_read.cancel()
            self._direct_read = None
        elif self._pollable:
            self._get_loop().remove_reader(self.fd)
        logger.debug("terminal reader detached fd=%s", self.fd)

    def _read_directly(self) -> None:
        self._direct_read = None
        if not self._reading:
            return
        self._on_readable()
        if self._reading and self._direct_read is None:
            self._direct_read = self._get_loop().call_soon(self._read_directly)

    def _on_readable(self) -> None:
        try:
            data = os.read(self.fd, self.read_size)
        except BlockingIOError:
            return
        except OSError as exc:
            self.destroy(exc)
            return
        if data:
            self.push(data)
        else:
            self.push(None)
