"""CLI command modules for envtree."""

from __future__ import annotations

import typer

from envtree.cli.commands import credential, hierarchy, select, theme


def register_commands(app: typer.Typer) -> None:
    """Attach every command group to the root application."""
    app.add_typer(hierarchy.create_app, name="create")
    app.add_typer(hierarchy.get_app, name="get")
    app.command(name="resolve")(select.resolve)
    app.command(name="use")(select.use)
    app.command(name="context")(select.context)
    app.add_typer(theme.app, name="theme")
    app.add_typer(credential.app, name="credential")


__all__ = ["register_commands"]
