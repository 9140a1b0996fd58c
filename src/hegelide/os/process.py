"""
Foreground process probe.

Answers "what is running in this terminal right now?" for tab labels.  The
shell's first child is taken to be the foreground job; an idle shell has no
children.  Any failure (process gone, access denied, unsupported platform)
means "nothing", because labels are advisory and must never break a session.

Probes are synchronous and may block on the process table, so callers run
them off the event loop (see ``SessionManager``).
"""

from __future__ import annotations

import ntpath
import posixpath
from typing import Protocol

import psutil
import structlog

logger = structlog.get_logger()


class ProcessProbe(Protocol):
    def foreground_process(self, pid: int) -> str | None:
        """Return the display name of *pid*'s foreground child, or None."""
        ...


def display_name(name: str) -> str:
    """Strip directory components: ``/bin/zsh`` → ``zsh``."""
    return ntpath.basename(posixpath.basename(name))


class PsutilProcessProbe:
    """Probe backed by psutil's process table (macOS, Linux, Windows)."""

    def foreground_process(self, pid: int) -> str | None:
        if pid <= 0:
            return None
        try:
            children = psutil.Process(pid).children(recursive=False)
            if not children:
                return None
            # Lowest pid first, the same pick `pgrep -P` gives
            child = min(children, key=lambda p: p.pid)
            name = child.name()
        except Exception as exc:  # noqa: BLE001
            logger.debug("foreground_probe_failed", pid=pid, error=str(exc))
            return None
        return display_name(name) if name else None


class NullProcessProbe:
    """Always idle. Selected by default_probe() when psutil cannot list children."""

    def foreground_process(self, pid: int) -> str | None:
        return None


def default_probe() -> ProcessProbe:
    """
    Return the psutil probe, or the null probe where the process table is
    closed to us (sandboxes, restricted containers).
    """
    try:
        psutil.Process().children(recursive=False)
    except (psutil.Error, NotImplementedError, OSError) as exc:
        logger.warning("process_table_unavailable", error=str(exc))
        return NullProcessProbe()
    return PsutilProcessProbe()
