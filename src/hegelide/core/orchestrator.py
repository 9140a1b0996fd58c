"""
Orchestrator.

Wires the control plane and the session manager together for one
application run.  Startup order matters:

  1. bind the control plane (sessions need its port in their environment)
  2. spawn the primary terminal session
  3. accept create / destroy / input / resize commands from the UI
  4. on close: terminate every session, then close the control plane

Lifecycle::

    orchestrator = Orchestrator(config, sink)
    await orchestrator.start()
    await orchestrator.wait_closed()   # until stop() or SIGTERM/SIGINT
    await orchestrator.stop()
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Mapping

import structlog

from hegelide.controlplane.app import create_app
from hegelide.controlplane.server import ControlPlaneServer
from hegelide.core.config import HegelIDEConfig
from hegelide.core.events import EventSink
from hegelide.core.exceptions import HegelIDEError, SpawnError
from hegelide.core.session.manager import SessionManager, TTYFactory
from hegelide.os.process import ProcessProbe

logger = structlog.get_logger()


class Orchestrator:
    """Top-level owner of the control plane and the session manager."""

    def __init__(
        self,
        config: HegelIDEConfig,
        sink: EventSink,
        *,
        tty_factory: TTYFactory | None = None,
        probe: ProcessProbe | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._server = ControlPlaneServer(create_app(sink), host=config.control_plane.host)
        self._manager = SessionManager(
            sink,
            config,
            tty_factory=tty_factory,
            probe=probe,
            base_env=base_env,
        )
        self._started = False
        self._stopped = False
        self._closed = asyncio.Event()

    @property
    def manager(self) -> SessionManager:
        return self._manager

    @property
    def server(self) -> ControlPlaneServer:
        return self._server

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind the control plane, then spawn the primary session."""
        if self._started:
            raise HegelIDEError("Orchestrator already started")
        self._started = True
        logger.info("hegel_ide_starting", cwd=self._manager.cwd, shell=self._manager.shell)

        port = await self._server.bind()

        primary = self._config.terminal.primary_session_id
        try:
            await self._manager.create(primary, port)
        except SpawnError as exc:
            # The UI can still retry with create-terminal
            logger.error("primary_session_failed", session_id=primary, error=str(exc))

        logger.info("hegel_ide_ready", port=port)

    async def stop(self) -> None:
        """Terminate all sessions, then close the control plane. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        try:
            await self._manager.shutdown()
        finally:
            await self._server.close()
            self._closed.set()
            logger.info("hegel_ide_stopped")

    async def wait_closed(self) -> None:
        """Block until :meth:`stop` completes, stopping on SIGTERM/SIGINT."""
        self._setup_signal_handlers()
        await self._closed.wait()

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.create_task(self.stop()))
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                break

    # ------------------------------------------------------------------
    # Commands from the UI layer
    # ------------------------------------------------------------------

    async def create_session(self, session_id: str) -> None:
        await self._manager.create(session_id, self.get_control_plane_port())

    async def destroy_session(self, session_id: str) -> None:
        await self._manager.destroy(session_id)

    def write_input(self, session_id: str, data: bytes | str) -> None:
        self._manager.write(session_id, data)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        self._manager.resize(session_id, cols, rows)

    def get_control_plane_port(self) -> int:
        return self._server.port

    def get_terminal_cwd(self) -> str:
        return self._manager.cwd
