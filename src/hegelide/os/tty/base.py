"""
Abstract pseudo-terminal handle.

Concrete implementations:
  PosixTTY     ptyprocess (macOS, Linux); master fd watched with add_reader
  WindowsTTY   pywinpty ConPTY; blocking reads in the default executor

A handle owns exactly one child process.  The session manager drives it:

  start()        spawn the child with the configured geometry and environment
  read_output()  async iterator of raw byte chunks, ends at EOF
  write()        raw bytes to the child's stdin, in call order
  resize()       propagate a geometry change (SIGWINCH on POSIX)
  stop()         terminate gracefully, then forcibly

Payloads are uninterpreted bytes; nothing here decodes terminal output.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from hegelide.core.constants import DEFAULT_COLS, DEFAULT_ROWS, READ_CHUNK_BYTES, TERM_NAME


@dataclass
class PTYConfig:
    """Configuration for one PTY child."""

    command: list[str]  # argv to exec
    env: dict[str, str] = field(default_factory=dict)  # complete child environment
    cwd: str = ""
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    term_name: str = TERM_NAME
    read_chunk_bytes: int = READ_CHUNK_BYTES


class BaseTTY(ABC):
    """
    Abstract PTY handle.

    Subclasses wrap a concrete PTY implementation and expose a uniform
    interface to the session manager.
    """

    def __init__(self, config: PTYConfig, session_id: str) -> None:
        self.config = config
        self.session_id = session_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def start(self) -> None:
        """Spawn the child process. Raise OSError/FileNotFoundError on failure."""

    @abstractmethod
    async def stop(self) -> None:
        """Terminate the child process gracefully, then forcibly. Idempotent."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Return True if the child process is still running."""

    @abstractmethod
    def pid(self) -> int:
        """Return the PID of the child process, or -1 before start."""

    def exit_code(self) -> int | None:
        """Return the child's exit status once it has exited."""
        return None

    async def wait_exit(self, timeout: float = 2.0) -> int | None:
        """
        Wait for the child to be reaped after EOF and return its exit status.

        EOF on the master usually arrives before the child is reaped, so
        ``exit_code()`` read straight away is often None.  Returns None if
        the child is still alive after *timeout* seconds.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.is_alive() and loop.time() < deadline:
            await asyncio.sleep(0.02)
        return self.exit_code()

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    @abstractmethod
    def read_output(self) -> AsyncIterator[bytes]:
        """
        Yield raw byte chunks from the PTY in the order produced.

        The iterator exits when the child closes the terminal (EOF) or the
        handle is stopped.
        """
        ...

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write *data* to the child's stdin."""

    @abstractmethod
    def resize(self, cols: int, rows: int) -> None:
        """Change the terminal geometry."""

    # ------------------------------------------------------------------
    # Flow control
    # ------------------------------------------------------------------

    def pause_reading(self) -> None:
        """Stop reading from the PTY until :meth:`resume_reading`."""

    def resume_reading(self) -> None:
        """Resume reading after :meth:`pause_reading`."""
