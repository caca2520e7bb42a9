"""Workspace resolution and active-context commands."""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from envtree.cli.helpers import (
    app_option,
    build_filter,
    console,
    domain_option,
    ecosystem_option,
    err_console,
    get_engine,
    json_option,
    print_json,
    run_or_exit,
    workspace_option,
)
from envtree.hierarchy.models import ResolvedPath


def _path_table(path: ResolvedPath) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Level", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("ID", style="dim", justify="right")
    for entity in (path.ecosystem, path.domain, path.app, path.workspace):
        if entity is not None:
            table.add_row(entity.level.value, escape(entity.name), str(entity.id))
    if path.app is not None:
        table.add_row("path", escape(path.app.path), "")
    return table


def resolve(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    as_json: bool = json_option(),
) -> None:
    """Resolve the filters to exactly one workspace without changing the active context."""

    def _run() -> None:
        path = get_engine(ctx).resolve(build_filter(ecosystem, domain, app, workspace))
        if as_json:
            print_json(path.to_dict())
            return
        console.print(Panel(_path_table(path), title=escape(path.full_path()), expand=False))

    run_or_exit(_run)


def use(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    clear: bool = typer.Option(False, "--clear", help="Forget the active selection"),
) -> None:
    """Resolve a workspace and make it the active context."""

    def _run() -> None:
        engine = get_engine(ctx)
        if clear:
            if engine.writer.clear():
                console.print("[green]✓[/green] Active context cleared")
            else:
                err_console.print("[yellow]Warning:[/yellow] could not clear the active context")
            return

        selection = engine.select(build_filter(ecosystem, domain, app, workspace))
        console.print(f"[green]✓[/green] Using [bold]{escape(selection.path.full_path())}[/bold]")
        if not selection.persisted:
            err_console.print(
                "[yellow]Warning:[/yellow] the active context could not be saved; "
                "later commands will not remember this selection"
            )

    run_or_exit(_run)


def context(
    ctx: typer.Context,
    as_json: bool = json_option(),
) -> None:
    """Show the active selection."""

    def _run() -> None:
        engine = get_engine(ctx)
        selection = engine.current_selection()
        if selection.is_empty():
            if as_json:
                print_json({"selection": selection.to_dict(), "path": None})
            else:
                console.print("[dim]No active context. Run 'envtree use' to select a workspace.[/dim]")
            return

        path = engine.resolver.resolve_selection(selection)
        if as_json:
            print_json({"selection": selection.to_dict(), "path": path.to_dict()})
            return
        console.print(Panel(_path_table(path), title=f"Active: {escape(path.full_path())}", expand=False))

    run_or_exit(_run)
