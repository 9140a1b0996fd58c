"""Hegel IDE constants: environment variable names, defaults, and limits."""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Environment contract
# ---------------------------------------------------------------------------

URL_ENV_VAR = "HEGEL_IDE_URL"  # injected into every session's environment
CWD_ENV_VAR = "HEGEL_IDE_CWD"  # overrides the shared terminal working directory
SHELL_ENV_VAR = "HEGEL_IDE_SHELL"
CONFIG_ENV_VAR = "HEGEL_IDE_CONFIG"
LOG_LEVEL_ENV_VAR = "HEGEL_IDE_LOG_LEVEL"
TESTING_ENV_VAR = "TESTING"

# ---------------------------------------------------------------------------
# Terminal defaults
# ---------------------------------------------------------------------------

PRIMARY_SESSION_ID = "term-1"
DEFAULT_COLS = 80
DEFAULT_ROWS = 24
TERM_NAME = "xterm-color"
FALLBACK_SHELL = "bash"
WINDOWS_SHELL = "powershell.exe"
READ_CHUNK_BYTES = 4096
MAX_WINSIZE = 65535  # rows and cols are unsigned shorts in struct winsize

# Flow control bytes intercepted on input when flow control is enabled
XOFF = b"\x13"
XON = b"\x11"

# ---------------------------------------------------------------------------
# Control plane
# ---------------------------------------------------------------------------

LOOPBACK_HOST = "127.0.0.1"
URL_HOST = "localhost"
REVIEW_PATH = "/review"

# ---------------------------------------------------------------------------
# Filesystem layout
# ---------------------------------------------------------------------------

CONFIG_FILENAME = "config.toml"


def _default_data_dir() -> Path:
    """
    Return the platform-appropriate Hegel IDE data directory.

    macOS : ~/Library/Application Support/hegel-ide
    Linux : ~/.config/hegel-ide
    Other : ~/.hegel-ide
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "hegel-ide"
    if sys.platform.startswith("linux"):
        xdg = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        return xdg / "hegel-ide"
    return Path.home() / ".hegel-ide"
