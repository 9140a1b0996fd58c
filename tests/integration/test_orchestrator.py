"""
Integration tests for the Orchestrator with a real control plane and fake PTYs.

Validates:
  1. the control plane is bound before the primary session spawns
  2. every session's environment carries the control-plane URL
  3. shutdown terminates sessions before the control plane closes
  4. UI commands reach the session manager
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from hegelide.controlplane.server import ServerState
from hegelide.core.config import HegelIDEConfig, TerminalConfig
from hegelide.core.events import ReviewRequested, TerminalOutput
from hegelide.core.exceptions import DuplicateSessionError, HegelIDEError
from hegelide.core.orchestrator import Orchestrator


@pytest.fixture()
def make_orchestrator(config, sink, tty_factory, base_env, probe_factory):
    def _make(cfg: HegelIDEConfig | None = None) -> Orchestrator:
        return Orchestrator(
            cfg or config,
            sink,
            tty_factory=tty_factory,
            probe=probe_factory(),
            base_env=base_env,
        )

    return _make


@pytest.fixture()
def review_file(tmp_path) -> str:
    p = tmp_path / "review.md"
    p.write_text("# Review\n")
    return str(p)


class TestStartup:
    @pytest.mark.asyncio
    async def test_primary_session_gets_bound_port(self, make_orchestrator, tty_factory) -> None:
        orch = make_orchestrator()
        await orch.start()
        try:
            port = orch.get_control_plane_port()
            assert port > 0
            primary = tty_factory.last("term-1")
            assert primary.config.env["HEGEL_IDE_URL"] == f"http://localhost:{port}"
            assert orch.manager.registry.ids() == ["term-1"]
        finally:
            await orch.stop()

    @pytest.mark.asyncio
    async def test_bind_happens_before_spawn(self, make_orchestrator, tty_factory) -> None:
        orch = make_orchestrator()
        states: list[ServerState] = []
        original = tty_factory.__call__

        def recording_factory(cfg, session_id):
            states.append(orch.server.state)
            return original(cfg, session_id)

        orch.manager._tty_factory = recording_factory
        await orch.start()
        await orch.stop()
        assert states == [ServerState.LISTENING]

    @pytest.mark.asyncio
    async def test_custom_primary_id(self, make_orchestrator, config, tty_factory) -> None:
        cfg = HegelIDEConfig(
            terminal=TerminalConfig(shell=config.terminal.shell, cwd=config.terminal.cwd, primary_session_id="main")
        )
        orch = make_orchestrator(cfg)
        await orch.start()
        try:
            assert orch.manager.registry.ids() == ["main"]
        finally:
            await orch.stop()

    @pytest.mark.asyncio
    async def test_primary_spawn_failure_is_not_fatal(self, make_orchestrator, tty_factory) -> None:
        tty_factory.fail = OSError("no pty")
        orch = make_orchestrator()
        await orch.start()
        try:
            assert len(orch.manager.registry) == 0
            assert orch.server.state is ServerState.LISTENING
        finally:
            await orch.stop()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, make_orchestrator) -> None:
        orch = make_orchestrator()
        await orch.start()
        try:
            with pytest.raises(HegelIDEError):
                await orch.start()
        finally:
            await orch.stop()


class TestShutdown:
    @pytest.mark.asyncio
    async def test_sessions_terminated_before_server_closes(self, make_orchestrator, tty_factory) -> None:
        orch = make_orchestrator()
        await orch.start()
        await orch.create_session("term-2")

        order: list[str] = []
        shutdown = orch.manager.shutdown
        close = orch.server.close

        async def recording_shutdown() -> int:
            order.append("sessions")
            return await shutdown()

        async def recording_close() -> None:
            order.append("control_plane")
            await close()

        orch.manager.shutdown = recording_shutdown
        orch.server.close = recording_close

        await orch.stop()
        assert order == ["sessions", "control_plane"]
        assert all(t.stop_calls == 1 for t in tty_factory.created)
        assert orch.server.state is ServerState.CLOSED

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, make_orchestrator, tty_factory) -> None:
        orch = make_orchestrator()
        await orch.start()
        await orch.stop()
        await orch.stop()
        assert tty_factory.last("term-1").stop_calls == 1

    @pytest.mark.asyncio
    async def test_wait_closed_returns_after_stop(self, make_orchestrator) -> None:
        orch = make_orchestrator()
        await orch.start()
        waiter = asyncio.create_task(orch.wait_closed())
        await asyncio.sleep(0)
        await orch.stop()
        await asyncio.wait_for(waiter, 1)


class TestCommands:
    @pytest.mark.asyncio
    async def test_create_write_resize_destroy(self, make_orchestrator, tty_factory) -> None:
        orch = make_orchestrator()
        await orch.start()
        try:
            await orch.create_session("term-2")
            orch.write_input("term-2", "pwd\r")
            orch.resize("term-2", 100, 30)
            tty = tty_factory.last("term-2")
            assert tty.written == [b"pwd\r"]
            assert tty.resizes == [(100, 30)]
            assert tty.config.env["HEGEL_IDE_URL"] == f"http://localhost:{orch.get_control_plane_port()}"

            await orch.destroy_session("term-2")
            assert orch.manager.registry.ids() == ["term-1"]
        finally:
            await orch.stop()

    @pytest.mark.asyncio
    async def test_duplicate_session(self, make_orchestrator) -> None:
        orch = make_orchestrator()
        await orch.start()
        try:
            with pytest.raises(DuplicateSessionError):
                await orch.create_session("term-1")
        finally:
            await orch.stop()

    def test_terminal_cwd(self, make_orchestrator, config) -> None:
        orch = make_orchestrator()
        assert orch.get_terminal_cwd() == config.terminal.cwd

    @pytest.mark.asyncio
    async def test_review_and_output_share_the_sink(
        self, make_orchestrator, tty_factory, sink, review_file, wait_until
    ) -> None:
        orch = make_orchestrator()
        await orch.start()
        try:
            tty_factory.last("term-1").feed(b"$ ")
            async with httpx.AsyncClient() as http:
                response = await http.post(
                    f"http://127.0.0.1:{orch.get_control_plane_port()}/review",
                    json={"files": [review_file]},
                )
            assert response.status_code == 200
            await wait_until(lambda: sink.of_type(TerminalOutput))
            assert sink.of_type(ReviewRequested)[0].files == (review_file,)
        finally:
            await orch.stop()

