"""Session environment construction."""

from __future__ import annotations

from collections.abc import Mapping

from hegelide.core.constants import URL_ENV_VAR, URL_HOST


def control_plane_url(port: int) -> str:
    return f"http://{URL_HOST}:{port}"


def build_terminal_env(base_env: Mapping[str, str] | None, port: int) -> dict[str, str]:
    """
    Return a copy of *base_env* with the control-plane URL added.

    Tools started inside a session read ``HEGEL_IDE_URL`` to find the
    ``/review`` endpoint.  *base_env* is never mutated; ``None`` is treated
    as an empty environment.
    """
    env = dict(base_env or {})
    env[URL_ENV_VAR] = control_plane_url(port)
    return env
