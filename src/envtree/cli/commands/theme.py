"""Theme commands: set, clear and inspect cascading theme overrides."""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape

from envtree.cli.helpers import (
    app_option,
    build_filter,
    console,
    domain_option,
    ecosystem_option,
    get_engine,
    json_option,
    print_json,
    run_or_exit,
    trace_table,
    workspace_option,
)

app = typer.Typer(help="Theme overrides across the hierarchy")


@app.command("set")
def set_theme(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Theme name"),
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
) -> None:
    """Set the theme on the deepest level named by the flags (or the active context)."""

    def _run() -> None:
        engine = get_engine(ctx)
        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        previous = engine.themes.set_theme(target.level, target.target.id, name)
        console.print(
            f"[green]✓[/green] Theme for {target.level.value} [bold]{escape(target.full_path())}[/bold] set to "
            f"[cyan]{escape(name.strip())}[/cyan]"
        )
        if previous and previous != name.strip():
            console.print(f"[dim]Previously: {escape(previous)}[/dim]")

    run_or_exit(_run)


@app.command("clear")
def clear_theme(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
) -> None:
    """Remove a theme override so the level inherits from its parent."""

    def _run() -> None:
        engine = get_engine(ctx)
        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        if engine.themes.clear_theme(target.level, target.target.id):
            console.print(
                f"[green]✓[/green] Theme override removed from {target.level.value} "
                f"[bold]{escape(target.full_path())}[/bold]"
            )
        else:
            console.print(f"[dim]No theme override on {target.level.value} {escape(target.full_path())}[/dim]")

    run_or_exit(_run)


@app.command("show")
def show_theme(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    as_json: bool = json_option(),
) -> None:
    """Show the effective theme and where it came from."""

    def _run() -> None:
        engine = get_engine(ctx)
        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        result = engine.resolve_theme(target.level, target.target.id)
        if as_json:
            payload = result.to_dict()
            payload["target"] = target.to_dict()
            print_json(payload)
            return

        console.print(
            f"Theme for [bold]{escape(target.full_path())}[/bold]: [cyan]{escape(result.value or '')}[/cyan] "
            f"(from {escape(result.describe_source())})"
        )
        console.print(trace_table(result))

    run_or_exit(_run)
