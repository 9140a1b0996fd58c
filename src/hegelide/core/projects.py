"""
External ``hegel`` CLI integration.

Project metadata comes from the ``hegel`` command as JSON; its schema is
treated as opaque apart from each project's ``name`` and ``project_path``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from hegelide.core.exceptions import HegelCommandError

logger = structlog.get_logger()

HEGEL_BINARY = "hegel"


async def run_hegel_command(
    args: Sequence[str],
    *,
    parse_json: bool = False,
    stdin: str | None = None,
    cwd: str | None = None,
    error_prefix: str = "hegel command failed",
) -> Any:
    """
    Run ``hegel <args>`` and return its result.

    Returns the parsed stdout when *parse_json* is set, otherwise
    ``{"success": True}``.  Raises HegelCommandError on spawn failure,
    non-zero exit, or unparsable JSON.

    Example::

        listing = await run_hegel_command(["pm", "discover", "list", "--json"], parse_json=True)
        await run_hegel_command(["pm", "remove", "my-project"], error_prefix="Failed to remove project")
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            HEGEL_BINARY,
            *args,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as exc:
        raise HegelCommandError(f"Failed to spawn hegel: {exc}") from exc

    stdout, stderr = await proc.communicate(stdin.encode("utf-8") if stdin is not None else None)
    if proc.returncode != 0:
        raise HegelCommandError(f"{error_prefix}: {stderr.decode('utf-8', errors='replace')}")

    if not parse_json:
        return {"success": True}
    try:
        return json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise HegelCommandError(f"Failed to parse hegel output: {exc}") from exc


async def discover_projects() -> list[dict[str, Any]]:
    """Return the projects known to ``hegel pm discover list``."""
    output = await run_hegel_command(["pm", "discover", "list", "--json"], parse_json=True)
    projects = output.get("projects", []) if isinstance(output, dict) else []
    logger.debug("projects_discovered", count=len(projects))
    return projects


def find_project_for_file(
    file_path: str, projects: Iterable[Mapping[str, Any]]
) -> str | None:
    """Return the first project whose directory contains *file_path*."""
    for project in projects:
        root = project.get("project_path")
        if root and file_path.startswith(root.rstrip("/") + "/"):
            return root
    return None


def group_review_files(
    files: Iterable[str], projects: Sequence[Mapping[str, Any]]
) -> dict[str | None, list[str]]:
    """Group *files* by owning project path, keeping first-seen order. None = no project."""
    groups: dict[str | None, list[str]] = {}
    for path in files:
        groups.setdefault(find_project_for_file(path, projects), []).append(path)
    return groups
