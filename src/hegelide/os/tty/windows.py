"""
Windows ConPTY handle using pywinpty.

Requires Windows 10 1809+ (build 17763), where ConPTY was introduced.

Key differences from the POSIX handle:
  - winpty's PtyProcess reads and writes ``str``; bytes are encoded as
    UTF-8 on the way out and decoded on the way in.
  - There is no pollable master fd, so reads block in the default executor.
"""

from __future__ import annotations

import asyncio
import subprocess
import sys
from collections.abc import AsyncIterator
from typing import Any

import structlog

from hegelide.os.tty.base import BaseTTY, PTYConfig

logger = structlog.get_logger()

_MIN_WINDOWS_BUILD = 17763


class WindowsTTY(BaseTTY):
    """ConPTY handle for Windows. Requires ``pywinpty``."""

    _proc: Any  # winpty.PtyProcess instance or None

    def __init__(self, config: PTYConfig, session_id: str) -> None:
        if sys.platform != "win32":
            raise NotImplementedError(
                "WindowsTTY is only valid on Windows (win32). Use PosixTTY on POSIX platforms."
            )
        super().__init__(config, session_id)
        self._proc = None
        self._stopped = False
        self._resume = asyncio.Event()
        self._resume.set()

    async def start(self) -> None:
        try:
            import winpty
        except ImportError as exc:
            raise RuntimeError(
                "pywinpty is required for Windows ConPTY support. Install with: pip install pywinpty"
            ) from exc

        build = _get_windows_build()
        if build < _MIN_WINDOWS_BUILD:
            raise OSError(
                f"Windows ConPTY requires build {_MIN_WINDOWS_BUILD}+ "
                f"(Windows 10 1809). Current build: {build}"
            )

        self._proc = winpty.PtyProcess.spawn(
            subprocess.list2cmdline(self.config.command),
            cwd=self.config.cwd or None,
            env=dict(self.config.env),
            dimensions=(self.config.rows, self.config.cols),
        )

    async def stop(self) -> None:
        if self._proc is None or self._stopped:
            return
        self._stopped = True
        self._resume.set()
        try:
            await asyncio.to_thread(self._proc.terminate, True)
        except OSError as exc:
            logger.warning("pty_terminate_failed", session_id=self.session_id, error=str(exc))

    def is_alive(self) -> bool:
        return self._proc is not None and not self._stopped and self._proc.isalive()

    def pid(self) -> int:
        if self._proc is None:
            return -1
        return self._proc.pid

    def exit_code(self) -> int | None:
        if self._proc is None or self._proc.isalive():
            return None
        return self._proc.exitstatus

    async def read_output(self) -> AsyncIterator[bytes]:
        if self._proc is None:
            return
        loop = asyncio.get_running_loop()
        while not self._stopped:
            await self._resume.wait()
            try:
                chunk = await loop.run_in_executor(None, self._read_chunk)
            except EOFError:
                break
            if chunk:
                yield chunk

    def _read_chunk(self) -> bytes:
        """Blocking read, run in the executor."""
        try:
            data = self._proc.read(self.config.read_chunk_bytes)
        except Exception as exc:  # noqa: BLE001
            raise EOFError from exc
        if not data and not self._proc.isalive():
            raise EOFError
        return data.encode("utf-8", errors="replace")

    def write(self, data: bytes) -> None:
        if self._proc is None or self._stopped:
            return
        self._proc.write(data.decode("utf-8", errors="replace"))

    def resize(self, cols: int, rows: int) -> None:
        if self._proc is None or self._stopped:
            return
        self._proc.setwinsize(rows, cols)

    def pause_reading(self) -> None:
        self._resume.clear()

    def resume_reading(self) -> None:
        self._resume.set()


def _get_windows_build() -> int:
    """Return the Windows build number, or 0 if not determinable."""
    try:
        ver = sys.getwindowsversion()  # type: ignore[attr-defined]
        return ver.build
    except AttributeError:
        return 0
