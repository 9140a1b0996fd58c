"""
Terminal session domain model.

A TerminalSession is one live interactive shell: a caller-chosen id, the PTY
handle that owns the shell process, its current geometry, and the last
foreground process name reported to the UI.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

from hegelide.core.constants import DEFAULT_COLS, DEFAULT_ROWS
from hegelide.os.tty.base import BaseTTY


@dataclass
class TerminalSession:
    """One PTY-backed shell managed by Hegel IDE."""

    session_id: str
    tty: BaseTTY
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    last_process: str | None = None
    flow_control: bool = True
    paused: bool = False
    exited: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    # Background tasks owned by the session manager
    reader_task: asyncio.Task[None] | None = field(default=None, repr=False)
    probe_task: asyncio.Task[None] | None = field(default=None, repr=False)
    output_seen: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def pid(self) -> int:
        return self.tty.pid()

    def resize(self, cols: int, rows: int) -> None:
        self.tty.resize(cols, rows)
        self.cols = cols
        self.rows = rows
