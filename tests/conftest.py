"""Shared fixtures: fake PTY handles, a scripted probe, and a test config."""

from __future__ import annotations

import asyncio
import os
import sys
import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from hegelide.core.config import HegelIDEConfig, TerminalConfig
from hegelide.core.events import ListEventSink
from hegelide.os.tty.base import BaseTTY, PTYConfig


class FakeTTY(BaseTTY):
    """In-memory PTY handle. Tests push output with feed() and end it with exit()."""

    def __init__(
        self,
        config: PTYConfig,
        session_id: str,
        *,
        pid: int = 4242,
        fail: BaseException | None = None,
    ) -> None:
        super().__init__(config, session_id)
        self._pid = pid
        self._fail = fail
        self._chunks: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._exit_code: int | None = None
        self.started = False
        self.stop_calls = 0
        self.written: list[bytes] = []
        self.resizes: list[tuple[int, int]] = []
        self.paused = False

    async def start(self) -> None:
        if self._fail is not None:
            raise self._fail
        self.started = True

    async def stop(self) -> None:
        self.stop_calls += 1
        self._chunks.put_nowait(None)

    def is_alive(self) -> bool:
        return self.started and self.stop_calls == 0 and self._exit_code is None

    def pid(self) -> int:
        return self._pid

    def exit_code(self) -> int | None:
        return self._exit_code

    async def read_output(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._chunks.get()
            if chunk is None:
                return
            yield chunk

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def resize(self, cols: int, rows: int) -> None:
        self.resizes.append((cols, rows))

    def pause_reading(self) -> None:
        self.paused = True

    def resume_reading(self) -> None:
        self.paused = False

    # -- test helpers --

    def feed(self, data: bytes) -> None:
        self._chunks.put_nowait(data)

    def eof(self) -> None:
        """End the output stream while the child still looks alive."""
        self._chunks.put_nowait(None)

    def exit(self, code: int = 0) -> None:
        self._exit_code = code
        self._chunks.put_nowait(None)


class FakeTTYFactory:
    """Callable TTY factory that records every handle it builds."""

    def __init__(self) -> None:
        self.created: list[FakeTTY] = []
        self.fail: BaseException | None = None
        self._next_pid = 4242

    def __call__(self, config: PTYConfig, session_id: str) -> FakeTTY:
        tty = FakeTTY(config, session_id, pid=self._next_pid, fail=self.fail)
        self._next_pid += 1
        self.created.append(tty)
        return tty

    def last(self, session_id: str) -> FakeTTY:
        return [t for t in self.created if t.session_id == session_id][-1]


class ScriptedProbe:
    """Probe that returns queued names per call; the last name repeats."""

    def __init__(self, *names: str | None) -> None:
        self.names = list(names) or [None]
        self.calls: list[int] = []

    def foreground_process(self, pid: int) -> str | None:
        self.calls.append(pid)
        if len(self.names) > 1:
            return self.names.pop(0)
        return self.names[0]


@pytest.fixture()
def tty_factory() -> FakeTTYFactory:
    return FakeTTYFactory()


@pytest.fixture()
def sink() -> ListEventSink:
    return ListEventSink()


@pytest.fixture()
def base_env() -> dict[str, str]:
    return {"PATH": os.environ.get("PATH", ""), "HOME": "/home/tester", "LANG": "C.UTF-8"}


@pytest.fixture()
def config(tmp_path: Path) -> HegelIDEConfig:
    # sys.executable is an absolute path to a real binary on every platform
    return HegelIDEConfig(terminal=TerminalConfig(shell=sys.executable, cwd=str(tmp_path)))


@pytest.fixture()
def probe_factory() -> Callable[..., ScriptedProbe]:
    return ScriptedProbe


@pytest.fixture()
def wait_until() -> Callable[..., object]:
    """Return an async helper that polls *predicate* until true or timeout."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait
