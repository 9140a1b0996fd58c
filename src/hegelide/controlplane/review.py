"""
POST /review request handling: body validation and the file-existence gate.

Both steps are free of HTTP concerns so they can be tested directly.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Sequence
from dataclasses import dataclass, field

from hegelide.core.exceptions import ReviewRequestError


@dataclass(frozen=True)
class ReviewRequest:
    files: tuple[str, ...]


@dataclass(frozen=True)
class FileCheck:
    missing: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.missing


def parse_review_request(body: str | bytes) -> ReviewRequest:
    """
    Parse and validate a review request body.

    The body must be a JSON object whose ``files`` field is a non-empty array
    of strings.  Raises ReviewRequestError naming the first violation.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ReviewRequestError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ReviewRequestError("Request body must be a JSON object")

    files = data.get("files")
    # Absent, null and falsy scalars count as missing; [] and {} are handled below
    if files is None or files in ("", 0, False):
        raise ReviewRequestError("Missing required field: files")

    if not isinstance(files, list):
        raise ReviewRequestError("files must be an array")

    if not files:
        raise ReviewRequestError("files array cannot be empty")

    for i, path in enumerate(files):
        if not isinstance(path, str):
            raise ReviewRequestError(f"files[{i}] must be a string")

    return ReviewRequest(files=tuple(files))


async def check_files_exist(paths: Sequence[str]) -> FileCheck:
    """
    Check every path concurrently.

    Returns the missing paths in request order.  All-or-nothing: callers
    treat any missing path as a failure of the whole request.
    """
    results = await asyncio.gather(*(asyncio.to_thread(os.path.exists, p) for p in paths))
    return FileCheck(missing=[p for p, exists in zip(paths, results, strict=True) if not exists])
