"""PTY handle dispatch per platform."""

from __future__ import annotations

import sys


def get_tty_class() -> type:
    """Return the appropriate TTY class for the current platform."""
    if sys.platform == "darwin" or sys.platform.startswith("linux"):
        from hegelide.os.tty.posix import PosixTTY

        return PosixTTY
    elif sys.platform == "win32":
        from hegelide.os.tty.windows import WindowsTTY

        return WindowsTTY
    else:
        raise RuntimeError(f"Unsupported platform: {sys.platform}")
