"""envtree command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from envtree import __version__
from envtree.cli.commands import register_commands
from envtree.cli.helpers import CliState

app = typer.Typer(
    name="envtree",
    help="Resolve workspaces and cascade settings across ecosystem/domain/app/workspace",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"envtree {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", help="Hierarchy database path", envvar="ENVTREE_DB"),
    config: Optional[Path] = typer.Option(None, "--config", help="Global config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Resolve workspaces and cascade settings across the hierarchy."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CliState(db_path=db, config_path=config)


register_commands(app)


def main() -> None:
    app()


__all__ = ["app", "main"]
