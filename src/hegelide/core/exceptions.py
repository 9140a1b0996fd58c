"""Hegel IDE exception hierarchy."""

from __future__ import annotations


class HegelIDEError(Exception):
    """Base exception for all Hegel IDE errors."""


class ConfigError(HegelIDEError):
    """Raised when the configuration is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when an explicitly requested configuration file does not exist."""


class SessionError(HegelIDEError):
    """Raised when session management fails."""


class SpawnError(SessionError):
    """Raised when a pseudo-terminal or its shell cannot be created."""


class DuplicateSessionError(SessionError):
    """Raised when a session id already maps to a live terminal."""


class ControlPlaneError(HegelIDEError):
    """Raised when the control-plane server is driven through an invalid transition."""


class ReviewRequestError(ValueError):
    """A POST /review body failed validation. The message is returned to the caller."""


class HegelCommandError(HegelIDEError):
    """Raised when the external ``hegel`` CLI fails or emits unusable output."""
