"""Hijack/restore protocol for borrowing a live input stream.

A capture detaches every existing consumer of the source, installs its own
consumers in front of the dispatch order, forces the source into flowing (and,
on terminals, raw) mode, and on release puts everything back: consumers in
their original order, unconsumed input in front of the pending data, raw mode
and flow mode as they were.
"""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable
from enum import Enum

from hushline.errors import ProtocolViolation
from hushline.stream import (
    CLOSE,
    DATA,
    END,
    ERROR,
    KEYPRESS,
    NEW_LISTENER,
    READABLE,
    FlowState,
    InputStream,
    Listener,
)

logger = py_logging.getLogger(__name__)

INTERCEPTED_EVENTS = (DATA, READABLE, KEYPRESS)
_CONSUMER_EVENTS = (DATA, READABLE)


class CaptureState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    RELEASED = "released"


class ResumeOnNextConsumer:
    """One-shot watch that resumes the source when a consumer shows up.

    Left on a source whose flow mode was undetermined before a capture, since
    that mode cannot be re-entered once anything has pulled from the stream.
    """

    def __init__(self, source: InputStream) -> None:
        self.source = source

    def __call__(self, event: str, listener: Listener) -> None:
        if event not in _CONSUMER_EVENTS:
            return
        self.source.remove_listener(NEW_LISTENER, self)
        self.source.resume()


class StreamCapture:
    def __init__(
        self,
        source: InputStream,
        *,
        on_data: Callable[[bytes | str], None],
        on_end: Callable[[], None],
        on_error: Callable[[BaseException], None],
        on_close: Callable[[], None],
    ) -> None:
        self.source = source
        self.state = CaptureState.IDLE
        self.flow_state = FlowState.UNSET
        self._handlers: tuple[tuple[str, Listener], ...] = (
            (DATA, on_data),
            (END, on_end),
            (ERROR, on_error),
            (CLOSE, on_close),
        )
        self._snapshot: dict[str, tuple[Listener, ...]] = {}
        self._deferred: list[tuple[str, Listener]] = []
        self._raw_before: bool | None = None
        self._owns_raw_mode = False
        self._trap_installed = False
        self._had_instance_setter = False
        self._real_set_raw_mode: Callable[[bool], object] | None = None

    @property
    def owns_raw_mode(self) -> bool:
        return self._owns_raw_mode

    def acquire(self) -> None:
        if self.state is not CaptureState.IDLE:
            raise ProtocolViolation(f"Capture cannot be acquired from state {self.state.value}.")
        source = self.source
        self.state = CaptureState.ACTIVE

        self.flow_state = FlowState.from_flag(source.readable_flowing)
        for watch in source.listeners(NEW_LISTENER):
            if isinstance(watch, ResumeOnNextConsumer):
                source.remove_listener(NEW_LISTENER, watch)
                self.flow_state = FlowState.UNSET

        self._snapshot = {event: source.detach_listeners(event) for event in INTERCEPTED_EVENTS}
        try:
            for event, handler in self._handlers:
                source.prepend_listener(event, handler)
            source.on(NEW_LISTENER, self._defer_consumer)

            if source.is_tty:
                self._raw_before = source.is_raw
                self._real_set_raw_mode = source.set_raw_mode
                self._had_instance_setter = "set_raw_mode" in vars(source)
                self._real_set_raw_mode(True)
                self._owns_raw_mode = True
                source.set_raw_mode = self._trap_set_raw_mode  # type: ignore[method-assign]
                self._trap_installed = True

            if self.flow_state is not FlowState.FLOWING:
                source.resume()
        except Exception:
            logger.debug("capture-event step=acquire-rollback flow=%s", self.flow_state.value, exc_info=True)
            self._rollback()
            raise
        logger.debug(
            "capture-event step=acquire flow=%s tty=%s detached=%s",
            self.flow_state.value,
            source.is_tty,
            {event: len(listeners) for event, listeners in self._snapshot.items()},
        )

    def release(self, leftover: bytes | str | None = None) -> None:
        if self.state is CaptureState.RELEASED:
            raise ProtocolViolation("Capture released twice.")
        if self.state is CaptureState.IDLE:
            raise ProtocolViolation("Capture released before it was acquired.")
        source = self.source
        self.state = CaptureState.RELEASED

        self._remove_own_handlers()
        self._reattach_snapshot()

        # A pending end still lets data in front of it; an emitted one does not.
        if leftover and not source.end_emitted:
            source.unshift(leftover)

        self._restore_raw_mode()
        self._restore_flow()

        # Consumers that arrived mid-capture register now, against the restored state.
        deferred, self._deferred = self._deferred, []
        for event, listener in deferred:
            source.on(event, listener)
        logger.debug(
            "capture-event step=release flow=%s leftover=%s deferred=%s",
            self.flow_state.value,
            len(leftover) if leftover else 0,
            len(deferred),
        )

    def _rollback(self) -> None:
        # Pause first so that removing our consumers does not ask the
        # source to start reading again.
        self._restore_flow()
        self._remove_own_handlers()
        self._reattach_snapshot()
        self._restore_raw_mode()
        self._snapshot = {}
        self._deferred = []
        self.state = CaptureState.IDLE

    def _remove_own_handlers(self) -> None:
        self.source.remove_listener(NEW_LISTENER, self._defer_consumer)
        for event, handler in self._handlers:
            self.source.remove_listener(event, handler)

    def _reattach_snapshot(self) -> None:
        for event in INTERCEPTED_EVENTS:
            self.source.attach_listeners(event, self._snapshot.get(event, ()))

    def _restore_raw_mode(self) -> None:
        if not self.source.is_tty:
            return
        self._uninstall_trap()
        if self._owns_raw_mode and self._real_set_raw_mode is not None:
            self._real_set_raw_mode(bool(self._raw_before))
        self._owns_raw_mode = False

    def _restore_flow(self) -> None:
        if self.flow_state is FlowState.PAUSED:
            self.source.pause()
        elif self.flow_state is FlowState.UNSET:
            self.source.pause()
            self.source.on(NEW_LISTENER, ResumeOnNextConsumer(self.source))

    def _defer_consumer(self, event: str, listener: Listener) -> None:
        if event not in INTERCEPTED_EVENTS:
            return
        if any(event == own_event and listener == handler for own_event, handler in self._handlers):
            return
        self.source.remove_listener(event, listener)
        self._deferred.append((event, listener))

    def _trap_set_raw_mode(self, mode: bool) -> object:
        # Someone else took over the raw-mode flag; it is theirs from now on.
        logger.debug("capture-event step=raw-mode-handoff mode=%s", mode)
        self._owns_raw_mode = False
        setter = self._real_set_raw_mode
        self._uninstall_trap()
        return setter(mode) if setter is not None else None

    def _uninstall_trap(self) -> None:
        if not self._trap_installed:
            return
        self._trap_installed = False
        if self._had_instance_setter:
            self.source.set_raw_mode = self._real_set_raw_mode  # type: ignore[method-assign,assignment]
        else:
            del self.source.set_raw_mode
