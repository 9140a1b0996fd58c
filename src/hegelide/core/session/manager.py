"""
Session lifecycle manager.

Creates, routes to, and destroys PTY-backed shell sessions.  The manager owns
the registry and is the only component that writes to or resizes a PTY.

Per session, two tasks run for the life of the shell:

    pty reader   PTY bytes → TerminalOutput event (never waits on anything else)
                 → sets the session's output-seen flag
    probe task   waits for the flag → foreground probe in a worker thread
                 → ProcessChanged event if the name differs from last time

The probe therefore only ever runs because real output arrived, and a slow
probe delays nothing but the next probe of the same session.

Unknown session ids are not errors: writes, resizes, and destroys aimed at a
session that has just been closed are expected races with the UI and are
silently ignored.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import struct
from collections.abc import Callable, Mapping

import structlog

from hegelide.core.config import HegelIDEConfig
from hegelide.core.constants import XOFF, XON
from hegelide.core.env import build_terminal_env
from hegelide.core.events import EventSink, ProcessChanged, SessionExited, TerminalOutput
from hegelide.core.exceptions import DuplicateSessionError, SpawnError
from hegelide.core.session.models import TerminalSession
from hegelide.core.session.registry import SessionRegistry
from hegelide.os.process import ProcessProbe, default_probe
from hegelide.os.tty import get_tty_class
from hegelide.os.tty.base import BaseTTY, PTYConfig

logger = structlog.get_logger()

TTYFactory = Callable[[PTYConfig, str], BaseTTY]


class SessionManager:
    """
    Owns every terminal session for one application run.

    All coroutine methods must be awaited on the event loop that runs the
    PTY readers.  ``write`` and ``resize`` are synchronous and preserve the
    caller's order for a given session.
    """

    def __init__(
        self,
        sink: EventSink,
        config: HegelIDEConfig | None = None,
        *,
        registry: SessionRegistry | None = None,
        probe: ProcessProbe | None = None,
        tty_factory: TTYFactory | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self._sink = sink
        self._config = config or HegelIDEConfig()
        self._registry = registry if registry is not None else SessionRegistry()
        self._probe = probe or default_probe()
        self._tty_factory = tty_factory
        self._base_env = base_env
        # Resolved once; every session shares them
        self._shell = self._config.resolve_shell()
        self._cwd = self._config.resolve_cwd()

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def shell(self) -> str:
        return self._shell

    def get(self, session_id: str) -> TerminalSession | None:
        return self._registry.get(session_id)

    # ------------------------------------------------------------------
    # Create / destroy
    # ------------------------------------------------------------------

    async def create(self, session_id: str, port: int) -> TerminalSession:
        """
        Spawn a shell for *session_id* with the control-plane *port* in its env.

        Raises DuplicateSessionError if the id is live, SpawnError if the
        shell cannot be found or the PTY cannot be created.  On failure the
        registry is left unchanged.
        """
        log = logger.bind(session_id=session_id)
        if session_id in self._registry:
            raise DuplicateSessionError(f"Session {session_id!r} already exists")

        env = build_terminal_env(
            self._base_env if self._base_env is not None else os.environ, port
        )
        if shutil.which(self._shell, path=env.get("PATH")) is None:
            log.error("session_spawn_failed", shell=self._shell, error="shell not found")
            raise SpawnError(f"Shell not found: {self._shell!r}")

        term = self._config.terminal
        pty_config = PTYConfig(
            command=[self._shell],
            env=env,
            cwd=self._cwd,
            cols=term.cols,
            rows=term.rows,
        )
        factory = self._tty_factory or get_tty_class()
        tty = factory(pty_config, session_id)
        try:
            await tty.start()
        except Exception as exc:
            log.error("session_spawn_failed", shell=self._shell, error=str(exc))
            raise SpawnError(f"Failed to spawn {self._shell!r}: {exc}") from exc

        session = TerminalSession(
            session_id=session_id,
            tty=tty,
            cols=term.cols,
            rows=term.rows,
            flow_control=term.flow_control,
        )
        try:
            self._registry.insert(session)
        except DuplicateSessionError:
            # Lost a race with a concurrent create for the same id
            await tty.stop()
            raise

        session.reader_task = asyncio.create_task(
            self._pump_output(session), name=f"pty-reader:{session_id}"
        )
        session.probe_task = asyncio.create_task(
            self._probe_loop(session), name=f"pty-probe:{session_id}"
        )
        log.info(
            "session_created",
            pid=session.pid,
            shell=self._shell,
            cwd=self._cwd,
            cols=session.cols,
            rows=session.rows,
        )
        return session

    async def destroy(self, session_id: str) -> None:
        """Terminate and forget *session_id*. Unknown ids are a no-op."""
        session = self._registry.pop(session_id)
        if session is None:
            logger.debug("destroy_unknown_session", session_id=session_id)
            return
        await self._terminate(session)
        logger.info("session_destroyed", session_id=session_id)

    async def shutdown(self) -> int:
        """
        Terminate every session and empty the registry.

        Returns the number of sessions terminated.  A second call finds the
        registry empty and terminates nothing.
        """
        sessions = self._registry.drain()
        if sessions:
            await asyncio.gather(*(self._terminate(s) for s in sessions))
        logger.info("sessions_shutdown", count=len(sessions))
        return len(sessions)

    async def _terminate(self, session: TerminalSession) -> None:
        try:
            await session.tty.stop()
        except Exception:  # noqa: BLE001
            logger.exception("session_terminate_failed", session_id=session.session_id)
        tasks = [t for t in (session.reader_task, session.probe_task) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def write(self, session_id: str, data: bytes | str) -> None:
        """Forward input to the session's PTY. Unknown ids are dropped."""
        session = self._registry.get(session_id)
        if session is None:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        if session.flow_control and data in (XOFF, XON):
            self._set_paused(session, data == XOFF)
            return
        try:
            session.tty.write(data)
        except OSError as exc:
            # Shell exited between lookup and write
            logger.debug("session_write_failed", session_id=session_id, error=str(exc))

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        """Apply a geometry change. Unknown ids are ignored."""
        session = self._registry.get(session_id)
        if session is None:
            return
        try:
            session.resize(cols, rows)
        except (OSError, struct.error) as exc:
            logger.debug("session_resize_failed", session_id=session_id, error=str(exc))

    def _set_paused(self, session: TerminalSession, paused: bool) -> None:
        if session.paused == paused:
            return
        session.paused = paused
        if paused:
            session.tty.pause_reading()
        else:
            session.tty.resume_reading()
        logger.debug("session_flow_control", session_id=session.session_id, paused=paused)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def forward_output(self, session: TerminalSession, chunk: bytes) -> None:
        """Deliver *chunk* unmodified and flag the session for a probe."""
        self._sink.emit(TerminalOutput(session.session_id, chunk))
        session.output_seen.set()

    def note_foreground(self, session: TerminalSession, name: str | None) -> bool:
        """
        Record the probed foreground *name*.

        Emits ProcessChanged and returns True only when it differs from the
        last name seen for this session.
        """
        if name == session.last_process:
            return False
        session.last_process = name
        self._sink.emit(ProcessChanged(session.session_id, name))
        return True

    def probe_foreground(self, session: TerminalSession) -> str | None:
        """Run the probe for *session*; any failure reads as idle."""
        try:
            return self._probe.foreground_process(session.pid)
        except Exception as exc:  # noqa: BLE001
            logger.debug("foreground_probe_failed", session_id=session.session_id, error=str(exc))
            return None

    async def _pump_output(self, session: TerminalSession) -> None:
        log = logger.bind(session_id=session.session_id)
        try:
            async for chunk in session.tty.read_output():
                self.forward_output(session, chunk)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            log.exception("pty_read_failed")
        session.exited = True
        session.output_seen.set()
        # Still registered means the shell ended by itself, not via destroy
        if self._registry.get(session.session_id) is not session:
            return
        try:
            exit_code = await session.tty.wait_exit()
        except Exception:  # noqa: BLE001
            log.exception("session_exit_status_failed")
            exit_code = None
        # destroy() may have run while the child was being reaped
        if self._registry.get(session.session_id) is not session:
            return
        log.info("session_exited", exit_code=exit_code)
        self._sink.emit(SessionExited(session.session_id, exit_code))

    async def _probe_loop(self, session: TerminalSession) -> None:
        while True:
            await session.output_seen.wait()
            session.output_seen.clear()
            if session.exited:
                return
            name = await asyncio.to_thread(self.probe_foreground, session)
            self.note_foreground(session, name)
