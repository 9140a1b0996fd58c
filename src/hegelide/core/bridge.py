"""
Command bridge between the UI layer and the orchestrator.

The UI talks in named channels with small JSON payloads; this module maps
each channel to an orchestrator call and returns the reply shape the UI
expects.  Input and resize are fire-and-forget and reply ``None``.

    create-terminal   {terminalId}               → {"success": bool, "error"?: str}
    close-terminal    {terminalId}               → {"success": bool, "error"?: str}
    terminal-input    {terminalId, data}         → None
    terminal-resize   {terminalId, cols, rows}   → None
    get-http-port     {}                         → int
    get-terminal-cwd  {}                         → {"cwd": str}

Events travel the other way through :func:`encode_event`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from hegelide.core.constants import MAX_WINSIZE
from hegelide.core.events import ReviewRequested, SessionEvent
from hegelide.core.exceptions import HegelIDEError
from hegelide.core.orchestrator import Orchestrator
from hegelide.core.projects import group_review_files

logger = structlog.get_logger()


class CommandBridge:
    """Dispatch UI commands to an :class:`Orchestrator`."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        projects: Sequence[dict[str, Any]] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._projects = list(projects or [])
        self._handlers = {
            "create-terminal": self._create_terminal,
            "close-terminal": self._close_terminal,
            "terminal-input": self._terminal_input,
            "terminal-resize": self._terminal_resize,
            "get-http-port": self._get_http_port,
            "get-terminal-cwd": self._get_terminal_cwd,
        }

    @property
    def channels(self) -> list[str]:
        return list(self._handlers)

    def set_projects(self, projects: Sequence[dict[str, Any]]) -> None:
        self._projects = list(projects)

    async def dispatch(self, channel: str, payload: dict[str, Any] | None = None) -> Any:
        handler = self._handlers.get(channel)
        if handler is None:
            return {"success": False, "error": f"Unknown command: {channel}"}
        return await handler(payload or {})

    def encode_event(self, event: SessionEvent) -> dict[str, Any]:
        """Serialise *event* for the UI, attaching project ownership to reviews."""
        message = event.to_dict()
        if isinstance(event, ReviewRequested):
            message["projects"] = [
                {"projectPath": path, "files": files}
                for path, files in group_review_files(event.files, self._projects).items()
            ]
        return message

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _create_terminal(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            await self._orchestrator.create_session(str(payload["terminalId"]))
            return {"success": True}
        except (KeyError, HegelIDEError) as exc:
            return {"success": False, "error": _message(exc)}

    async def _close_terminal(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            await self._orchestrator.destroy_session(str(payload["terminalId"]))
            return {"success": True}
        except (KeyError, HegelIDEError) as exc:
            return {"success": False, "error": _message(exc)}

    async def _terminal_input(self, payload: dict[str, Any]) -> None:
        terminal_id = payload.get("terminalId")
        data = payload.get("data")
        if terminal_id is None or not isinstance(data, str | bytes):
            logger.debug("terminal_input_ignored", terminal_id=terminal_id)
            return None
        self._orchestrator.write_input(str(terminal_id), data)
        return None

    async def _terminal_resize(self, payload: dict[str, Any]) -> None:
        try:
            cols = int(payload["cols"])
            rows = int(payload["rows"])
            terminal_id = str(payload["terminalId"])
        except (KeyError, TypeError, ValueError, OverflowError):
            logger.debug("terminal_resize_ignored", payload_keys=sorted(payload))
            return None
        if not (0 < cols <= MAX_WINSIZE and 0 < rows <= MAX_WINSIZE):
            logger.debug(
                "terminal_resize_out_of_range", terminal_id=terminal_id, cols=cols, rows=rows
            )
            return None
        self._orchestrator.resize(terminal_id, cols, rows)
        return None

    async def _get_http_port(self, payload: dict[str, Any]) -> int:
        return self._orchestrator.get_control_plane_port()

    async def _get_terminal_cwd(self, payload: dict[str, Any]) -> dict[str, str]:
        return {"cwd": self._orchestrator.get_terminal_cwd()}


def _message(exc: BaseException) -> str:
    if isinstance(exc, KeyError):
        return f"Missing required field: {exc.args[0]}"
    return str(exc)
