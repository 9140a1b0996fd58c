"""
Session registry.

The single source of truth for which sessions exist.  Lifecycle commands
mutate it; output forwarding and input routing only look things up.  Every
operation takes one lock, so an insert or removal is atomic with respect to
concurrent lookups from any thread.

Invariants:
  - A session id maps to at most one live session.
  - An entry whose shell has exited stays until explicitly removed;
    the registry never polls liveness.
"""

from __future__ import annotations

import threading

from hegelide.core.exceptions import DuplicateSessionError
from hegelide.core.session.models import TerminalSession


class SessionRegistry:
    """Lock-protected mapping of session id → TerminalSession."""

    def __init__(self) -> None:
        self._sessions: dict[str, TerminalSession] = {}
        self._lock = threading.Lock()

    def insert(self, session: TerminalSession) -> None:
        """Add *session*; raise DuplicateSessionError if the id is taken."""
        with self._lock:
            if session.session_id in self._sessions:
                raise DuplicateSessionError(f"Session {session.session_id!r} already exists")
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> TerminalSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def pop(self, session_id: str) -> TerminalSession | None:
        """Remove and return the session. The caller terminates it."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def drain(self) -> list[TerminalSession]:
        """Remove and return every session, in creation order."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            return sessions

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
