"""
POSIX PTY handle using ptyprocess.

ptyprocess allocates the PTY pair, forks, and execs the shell on the slave
end.  The master fd is registered with the event loop via ``add_reader`` so
output is delivered when the kernel has bytes, never by polling.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator

import structlog

from hegelide.os.tty.base import BaseTTY, PTYConfig

logger = structlog.get_logger()


class PosixTTY(BaseTTY):
    """PTY handle for macOS and Linux."""

    def __init__(self, config: PTYConfig, session_id: str) -> None:
        super().__init__(config, session_id)
        self._proc = None  # ptyprocess.PtyProcess
        self._loop: asyncio.AbstractEventLoop | None = None
        self._chunks: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._reading = False
        self._paused = False
        self._eof = False

    async def start(self) -> None:
        try:
            import ptyprocess
        except ImportError as exc:
            raise RuntimeError(
                "ptyprocess is required for POSIX PTY support. Install with: pip install ptyprocess"
            ) from exc

        env = {**self.config.env, "TERM": self.config.term_name}
        self._proc = ptyprocess.PtyProcess.spawn(
            self.config.command,
            dimensions=(self.config.rows, self.config.cols),
            env=env,
            cwd=self.config.cwd or None,
        )
        self._loop = asyncio.get_running_loop()
        self._attach_reader()

    async def stop(self) -> None:
        if self._proc is None:
            return
        self._detach_reader()
        self._finish()
        await asyncio.to_thread(self._terminate)

    def _terminate(self) -> None:
        import ptyprocess

        proc = self._proc
        try:
            if proc.isalive() and not proc.terminate(force=False):
                proc.terminate(force=True)
            proc.close(force=True)
        except (OSError, ptyprocess.PtyProcessError) as exc:
            logger.warning("pty_terminate_failed", session_id=self.session_id, error=str(exc))

    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.isalive()

    def pid(self) -> int:
        if self._proc is None:
            return -1
        return self._proc.pid

    def exit_code(self) -> int | None:
        if self._proc is None or self._proc.isalive():
            return None
        return self._proc.exitstatus

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    async def read_output(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._chunks.get()
            if chunk is None:
                return
            yield chunk

    def _on_readable(self) -> None:
        try:
            data = os.read(self._proc.fd, self.config.read_chunk_bytes)
        except OSError:
            # Linux reports EIO on the master once the slave side is closed
            data = b""
        if not data:
            self._detach_reader()
            self._finish()
            return
        self._chunks.put_nowait(data)

    def _finish(self) -> None:
        if not self._eof:
            self._eof = True
            self._chunks.put_nowait(None)

    def _attach_reader(self) -> None:
        if self._reading or self._eof or self._paused or self._loop is None:
            return
        self._loop.add_reader(self._proc.fd, self._on_readable)
        self._reading = True

    def _detach_reader(self) -> None:
        if not self._reading or self._loop is None:
            return
        self._loop.remove_reader(self._proc.fd)
        self._reading = False

    def pause_reading(self) -> None:
        self._paused = True
        self._detach_reader()

    def resume_reading(self) -> None:
        self._paused = False
        self._attach_reader()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> None:
        if self._proc is None or self._eof:
            return
        self._proc.write(data)

    def resize(self, cols: int, rows: int) -> None:
        if self._proc is None or self._eof:
            return
        self._proc.setwinsize(rows, cols)
