"""
Control-plane server lifecycle.

States::

    UNBOUND ──bind()──▶ LISTENING ──close()──▶ CLOSED

``bind()`` asks the OS for any free loopback port, then serves the FastAPI
app on that socket with uvicorn inside the running event loop.  The port is
readable from LISTENING onwards and never changes; there is no way back to
UNBOUND, and a closed server cannot be rebound.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from enum import StrEnum

import structlog
import uvicorn
from fastapi import FastAPI

from hegelide.controlplane.sanitize import is_loopback
from hegelide.core.constants import LOOPBACK_HOST
from hegelide.core.env import control_plane_url
from hegelide.core.exceptions import ControlPlaneError

logger = structlog.get_logger()


class ServerState(StrEnum):
    UNBOUND = "unbound"
    LISTENING = "listening"
    CLOSED = "closed"


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signals to the application."""

    def install_signal_handlers(self) -> None:  # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):  # uvicorn >= 0.29
        yield


class ControlPlaneServer:
    """
    Serve the control-plane app on an OS-assigned loopback port.

    Lifecycle::

        server = ControlPlaneServer(create_app(sink))
        port = await server.bind()
        ...
        await server.close()
    """

    def __init__(self, app: FastAPI, host: str = LOOPBACK_HOST) -> None:
        if not is_loopback(host):
            raise ValueError(
                f"Control plane must bind to a loopback address for safety. "
                f"Got: {host!r}. Use 127.0.0.1, ::1, or localhost."
            )
        self._app = app
        self._host = host
        self._state = ServerState.UNBOUND
        self._port: int | None = None
        self._socket: socket.socket | None = None
        self._server: _EmbeddedServer | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def port(self) -> int:
        """The bound port. Raises ControlPlaneError before bind()."""
        if self._port is None:
            raise ControlPlaneError("Control plane is not bound yet")
        return self._port

    @property
    def url(self) -> str:
        return control_plane_url(self.port)

    async def bind(self) -> int:
        """Bind to a free loopback port, start serving, and return the port."""
        if self._state is not ServerState.UNBOUND:
            raise ControlPlaneError(f"Cannot bind control plane in state {self._state.value!r}")

        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, 0))
            sock.listen(128)
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise ControlPlaneError(f"Cannot bind control plane on {self._host}: {exc}") from exc

        self._socket = sock
        self._port = sock.getsockname()[1]

        config = uvicorn.Config(
            self._app,
            log_level="warning",
            lifespan="off",
            access_log=False,
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(
            self._server.serve(sockets=[sock]), name="control-plane"
        )
        while not self._server.started:
            if self._task.done():
                # serve() failed before startup completed
                self._task.result()
                raise ControlPlaneError("Control plane stopped during startup")
            await asyncio.sleep(0.01)

        self._state = ServerState.LISTENING
        logger.info("control_plane_listening", host=self._host, port=self._port)
        return self._port

    async def close(self) -> None:
        """Stop serving. Idempotent; the port stays readable."""
        if self._state is ServerState.CLOSED:
            return
        self._state = ServerState.CLOSED
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._socket is not None:
            self._socket.close()
        logger.info("control_plane_closed", port=self._port)
