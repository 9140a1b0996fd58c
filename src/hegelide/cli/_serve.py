"""
hegel-ide serve: run the orchestrator headless over JSON lines.

stdout carries one JSON object per event (see ``CommandBridge.encode_event``)
and one per command reply.  stdin carries commands::

    {"id": 1, "channel": "create-terminal", "payload": {"terminalId": "term-2"}}
    → {"id": 1, "reply": {"success": true}}

Closing stdin shuts the application down, as closing the window would.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import IO, Any

import structlog

from hegelide.core.bridge import CommandBridge
from hegelide.core.config import HegelIDEConfig
from hegelide.core.events import QueueEventSink
from hegelide.core.exceptions import HegelCommandError
from hegelide.core.orchestrator import Orchestrator
from hegelide.core.projects import discover_projects

logger = structlog.get_logger()


async def handle_command_line(bridge: CommandBridge, line: str) -> dict[str, Any] | None:
    """Decode one command line, dispatch it, and build the reply message."""
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError as exc:
        return {"error": f"Invalid JSON: {exc}"}
    if not isinstance(message, dict) or not isinstance(message.get("channel"), str):
        return {"error": "Command must be an object with a 'channel' string"}
    payload = message.get("payload")
    if payload is not None and not isinstance(payload, dict):
        return {"id": message.get("id"), "error": "payload must be an object"}
    try:
        reply = await bridge.dispatch(message["channel"], payload)
    except Exception as exc:  # noqa: BLE001
        # One bad command must not stop the reader loop
        logger.exception("serve_command_failed", channel=message["channel"])
        return {"id": message.get("id"), "error": f"{type(exc).__name__}: {exc}"}
    return {"id": message.get("id"), "reply": reply}


class _LineWriter:
    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    def write(self, message: dict[str, Any]) -> None:
        self._stream.write(json.dumps(message, separators=(",", ":")) + "\n")
        self._stream.flush()


async def run_serve(config: HegelIDEConfig, stdin: IO[str] = sys.stdin, stdout: IO[str] = sys.stdout) -> None:
    loop = asyncio.get_running_loop()
    sink = QueueEventSink(loop)
    orchestrator = Orchestrator(config, sink)
    bridge = CommandBridge(orchestrator)
    out = _LineWriter(stdout)

    async def _pump_events() -> None:
        while True:
            event = await sink.get()
            out.write(bridge.encode_event(event))

    async def _read_commands() -> None:
        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), stdin)
        while True:
            raw = await reader.readline()
            if not raw:
                logger.info("serve_stdin_closed")
                await orchestrator.stop()
                return
            reply = await handle_command_line(bridge, raw.decode("utf-8", errors="replace"))
            if reply is not None:
                out.write(reply)

    async def _load_projects() -> None:
        try:
            bridge.set_projects(await discover_projects())
        except HegelCommandError as exc:
            logger.warning("projects_unavailable", error=str(exc))

    tasks = [asyncio.create_task(_pump_events(), name="event_pump")]
    try:
        await orchestrator.start()
        tasks.append(asyncio.create_task(_read_commands(), name="command_reader"))
        tasks.append(asyncio.create_task(_load_projects(), name="project_loader"))
        await orchestrator.wait_closed()
    finally:
        await orchestrator.stop()
        # Flush whatever the sessions emitted before they were terminated
        while not sink.queue.empty():
            out.write(bridge.encode_event(sink.queue.get_nowait()))
        sink.close()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
