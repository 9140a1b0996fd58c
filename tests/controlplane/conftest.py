"""Shared fixtures for control-plane tests."""

from __future__ import annotations

from pathlib import Path

import pytest

fastapi = pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from hegelide.controlplane.app import create_app  # noqa: E402


@pytest.fixture()
def review_files(tmp_path: Path) -> list[str]:
    paths = []
    for name in ("design.md", "notes.md", "plan.md"):
        p = tmp_path / name
        p.write_text(f"# {name}\n")
        paths.append(str(p))
    return paths


@pytest.fixture()
def app(sink):
    return create_app(sink)


@pytest.fixture()
def client(app):
    return TestClient(app)
