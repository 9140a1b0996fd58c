"""hegel-ide review: ask the running IDE to open review tabs."""

from __future__ import annotations

import os
from typing import Any

import click
import httpx
from rich.console import Console

from hegelide.core.constants import REVIEW_PATH, URL_ENV_VAR

console = Console()
err_console = Console(stderr=True)


def send_review(url: str, files: list[str], timeout: float = 10.0) -> tuple[int, dict[str, Any]]:
    """POST *files* to the control plane at *url*; return (status, body)."""
    response = httpx.post(f"{url.rstrip('/')}{REVIEW_PATH}", json={"files": files}, timeout=timeout)
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text}
    return response.status_code, body


@click.command("review")
@click.argument("files", nargs=-1, required=True)
@click.option(
    "--url",
    envvar=URL_ENV_VAR,
    default=None,
    help=f"Control-plane URL (defaults to ${URL_ENV_VAR}).",
)
def review_cmd(files: tuple[str, ...], url: str | None) -> None:
    """Open FILES as review tabs in the running Hegel IDE."""
    if not url:
        err_console.print(
            f"[red]Error:[/red] {URL_ENV_VAR} is not set. "
            "Run this from a Hegel IDE terminal or pass --url."
        )
        raise SystemExit(1)

    paths = [os.path.abspath(os.path.expanduser(f)) for f in files]
    try:
        status, body = send_review(url, paths)
    except httpx.HTTPError as exc:
        err_console.print(f"[red]Error:[/red] cannot reach Hegel IDE at {url}: {exc}")
        raise SystemExit(1) from None

    if status == 200:
        console.print(f"Opened {len(paths)} file(s) for review.")
        return
    if "missing" in body:
        err_console.print("[red]Error:[/red] file(s) not found:")
        for path in body["missing"]:
            err_console.print(f"  {path}")
    else:
        err_console.print(f"[red]Error:[/red] {body.get('error', f'HTTP {status}')}")
    raise SystemExit(1)
