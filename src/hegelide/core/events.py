"""
UI-facing session events.

Every event is a discrete, self-contained message tagged with the session it
belongs to, so one sink can multiplex all sessions plus the control plane
without any partial-message interleaving.

Transport names mirror the channel names the UI listens on::

    terminal-output          raw PTY bytes for one session
    terminal-process-change  foreground process name changed (or went idle)
    terminal-exit            the session's shell process terminated
    open-review-tabs         the control plane accepted a review request
"""

from __future__ import annotations

import asyncio
import base64
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class TerminalOutput:
    session_id: str
    data: bytes
    channel: str = field(default="terminal-output", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "terminalId": self.session_id,
            "data": base64.b64encode(self.data).decode("ascii"),
        }


@dataclass(frozen=True)
class ProcessChanged:
    session_id: str
    process_name: str | None
    channel: str = field(default="terminal-process-change", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "terminalId": self.session_id,
            "processName": self.process_name,
        }


@dataclass(frozen=True)
class SessionExited:
    session_id: str
    exit_code: int | None = None
    channel: str = field(default="terminal-exit", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "terminalId": self.session_id,
            "exitCode": self.exit_code,
        }


@dataclass(frozen=True)
class ReviewRequested:
    files: tuple[str, ...]
    channel: str = field(default="open-review-tabs", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"channel": self.channel, "files": list(self.files)}


SessionEvent = TerminalOutput | ProcessChanged | SessionExited | ReviewRequested


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


@runtime_checkable
class EventSink(Protocol):
    """Anything that can receive session events. ``emit`` must not block."""

    def emit(self, event: SessionEvent) -> None: ...


class QueueEventSink:
    """
    Deliver events through an :class:`asyncio.Queue` owned by one event loop.

    ``emit`` may be called from any thread.  Calls made off the owning loop
    are marshalled with ``call_soon_threadsafe`` so per-session ordering is
    preserved.  After :meth:`close` events are dropped, as they would be for
    a destroyed window.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._closed = False

    @property
    def queue(self) -> asyncio.Queue[SessionEvent]:
        return self._queue

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: SessionEvent) -> None:
        if self._closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(event)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> SessionEvent:
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True


class CallbackEventSink:
    """Forward every event to a plain callable, serialised by a lock."""

    def __init__(self, callback: Callable[[SessionEvent], None]) -> None:
        self._callback = callback
        self._lock = threading.Lock()

    def emit(self, event: SessionEvent) -> None:
        with self._lock:
            try:
                self._callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("event_callback_failed", channel=event.channel)


class ListEventSink:
    """Collect events in memory. Handy for headless runs and tests."""

    def __init__(self) -> None:
        self.events: list[SessionEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: SessionEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, kind: type) -> list[Any]:
        with self._lock:
            return [e for e in self.events if isinstance(e, kind)]
