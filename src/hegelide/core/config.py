"""Hegel IDE configuration: Pydantic model, TOML load, and environment overlays."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from hegelide.core.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    CWD_ENV_VAR,
    DEFAULT_COLS,
    DEFAULT_ROWS,
    FALLBACK_SHELL,
    LOG_LEVEL_ENV_VAR,
    LOOPBACK_HOST,
    PRIMARY_SESSION_ID,
    SHELL_ENV_VAR,
    TESTING_ENV_VAR,
    WINDOWS_SHELL,
    _default_data_dir,
)
from hegelide.core.exceptions import ConfigError, ConfigNotFoundError


def hegelide_dir() -> Path:
    """Return the Hegel IDE data directory (not created)."""
    return _default_data_dir()


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class TerminalConfig(BaseModel):
    """Settings shared by every terminal session."""

    shell: str = ""  # empty → platform default
    cwd: str = ""  # empty → process cwd at startup
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    flow_control: bool = True
    primary_session_id: str = PRIMARY_SESSION_ID

    @field_validator("cols", "rows")
    @classmethod
    def validate_geometry(cls, v: int) -> int:
        if not (1 <= v <= 1000):
            raise ValueError("terminal geometry must be between 1 and 1000")
        return v

    @field_validator("primary_session_id")
    @classmethod
    def validate_primary_id(cls, v: str) -> str:
        if not v:
            raise ValueError("primary_session_id cannot be empty")
        return v


class ControlPlaneConfig(BaseModel):
    host: str = LOOPBACK_HOST

    @field_validator("host")
    @classmethod
    def require_loopback(cls, v: str) -> str:
        from hegelide.controlplane.sanitize import is_loopback

        if not is_loopback(v):
            raise ValueError(
                f"control plane must bind to a loopback address, got {v!r}. "
                "Use 127.0.0.1, ::1, or localhost."
            )
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class HegelIDEConfig(BaseModel):
    """Root Hegel IDE configuration model."""

    model_config = {"extra": "forbid"}

    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    control_plane: ControlPlaneConfig = Field(default_factory=ControlPlaneConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resolve_shell(self) -> str:
        """
        Return the shell binary for new sessions.

        Windows always gets PowerShell.  Elsewhere the configured shell wins,
        then ``$SHELL``, then ``bash``.
        """
        if sys.platform == "win32":
            return WINDOWS_SHELL
        return self.terminal.shell or os.environ.get("SHELL") or FALLBACK_SHELL

    def resolve_cwd(self) -> str:
        """Return the working directory shared by all sessions."""
        return self.terminal.cwd or os.getcwd()


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path)
    return hegelide_dir() / CONFIG_FILENAME


def load_config(path: Path | str | None = None) -> HegelIDEConfig:
    """
    Load HegelIDEConfig from TOML, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (HEGEL_IDE_*, TESTING)
      2. Config file (*path*, $HEGEL_IDE_CONFIG, or data dir / config.toml)
      3. Built-in defaults

    A missing file at the default location is not an error; an explicit
    *path* that does not exist raises :class:`ConfigNotFoundError`.
    """
    import tomllib

    explicit = path is not None or bool(os.environ.get(CONFIG_ENV_VAR))
    cfg_path = Path(path) if path is not None else _config_file_path()

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except Exception as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif explicit:
        raise ConfigNotFoundError(f"Config file not found: {cfg_path}")

    _apply_env_overrides(data)

    try:
        return HegelIDEConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid config at {cfg_path}: {exc}") from exc


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay HEGEL_IDE_* environment variables onto parsed TOML."""
    if cwd := os.environ.get(CWD_ENV_VAR, ""):
        data.setdefault("terminal", {})["cwd"] = cwd
    if shell := os.environ.get(SHELL_ENV_VAR, ""):
        data.setdefault("terminal", {})["shell"] = shell
    # TESTING turns flow control off
    if os.environ.get(TESTING_ENV_VAR, ""):
        data.setdefault("terminal", {})["flow_control"] = False
    if level := os.environ.get(LOG_LEVEL_ENV_VAR, ""):
        data.setdefault("logging", {})["level"] = level
