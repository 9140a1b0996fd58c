"""hegel-ide projects: list projects known to the hegel CLI."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from hegelide.core.exceptions import HegelCommandError
from hegelide.core.projects import discover_projects

console = Console()
err_console = Console(stderr=True)


@click.command("projects")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
def projects_cmd(as_json: bool) -> None:
    """List discovered projects."""
    try:
        projects = asyncio.run(discover_projects())
    except HegelCommandError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from None

    if as_json:
        click.echo(json.dumps(projects, indent=2))
        return

    if not projects:
        console.print("[dim]No projects discovered.[/dim]")
        return

    table = Table(title="Projects")
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    for project in projects:
        table.add_row(str(project.get("name", "")), str(project.get("project_path", "")))
    console.print(table)
