"""
Hegel IDE CLI entry point.

Commands:
  hegel-ide serve              run the session manager and control plane headless
  hegel-ide review FILE...     open files as review tabs in the running IDE
  hegel-ide projects [--json]  list projects known to the hegel CLI
  hegel-ide version            show version
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.console import Console

from hegelide import __version__

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="hegel-ide %(version)s")
@click.option("--log-level", default="WARNING", hidden=True, help="Log level for structured logging.")
@click.option("--log-json", is_flag=True, default=False, hidden=True, help="Emit JSON log lines.")
def cli(log_level: str, log_json: bool) -> None:
    """Hegel IDE: terminal sessions with a local review control plane."""
    from hegelide.core.logging import configure_logging

    configure_logging(level=log_level, json_output=log_json)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config.toml (defaults to the platform data dir).",
)
def serve(config_path: Path | None) -> None:
    """Run terminal sessions headless, speaking JSON lines on stdin/stdout."""
    from hegelide.cli._serve import run_serve
    from hegelide.core.config import load_config
    from hegelide.core.exceptions import ConfigError
    from hegelide.core.logging import configure_from_config

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(2) from None

    configure_from_config(config.logging)
    asyncio.run(run_serve(config))


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command("version")
def version_cmd() -> None:
    """Show version information."""
    console.print(f"hegel-ide {__version__}")


# ---------------------------------------------------------------------------
# Subcommand modules
# ---------------------------------------------------------------------------

from hegelide.cli._projects import projects_cmd  # noqa: E402
from hegelide.cli._review import review_cmd  # noqa: E402

cli.add_command(review_cmd)
cli.add_command(projects_cmd)


def main() -> None:
    cli()
