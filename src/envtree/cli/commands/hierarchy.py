"""Commands that create and list hierarchy entities."""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

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
    workspace_option,
)
from envtree.engine import ResolutionEngine
from envtree.hierarchy.models import HierarchyLevel, ResolutionFilter, ResolvedPath
from envtree.hierarchy.store import DuplicateEntityError

create_app = typer.Typer(help="Create ecosystems, domains, apps and workspaces")
get_app = typer.Typer(help="List hierarchy entities")


def _parent_path(engine: ResolutionEngine, filter: ResolutionFilter, level: HierarchyLevel) -> ResolvedPath:
    """Resolve the parent entity at ``level`` from flags, else the active selection."""
    if not filter.is_empty():
        return engine.resolve_scope(filter, level)

    selection = engine.current_selection()
    if not selection.is_empty():
        path = engine.resolver.resolve_selection(selection)
        if path.entity_at(level) is not None:
            return ResolvedPath(
                ecosystem=path.ecosystem,
                domain=path.domain if level is not HierarchyLevel.ECOSYSTEM else None,
                app=path.app if level is HierarchyLevel.APP else None,
            )
    raise ValueError(f"No parent {level.value} given; pass --{level.value} or run 'envtree use' first")


def _created(level: HierarchyLevel, full_path: str) -> None:
    console.print(f"[green]✓[/green] Created {level.value} [bold]{escape(full_path)}[/bold]")


def _duplicate(level: HierarchyLevel, name: str, parent: str | None) -> ValueError:
    where = f" in {parent}" if parent else ""
    return ValueError(f"{level.value} '{name}' already exists{where}")


@create_app.command("ecosystem")
def create_ecosystem(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Ecosystem name"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
) -> None:
    """Create a top-level ecosystem."""

    def _run() -> None:
        engine = get_engine(ctx)
        try:
            ecosystem = engine.store.create_ecosystem(name, description)
        except DuplicateEntityError as exc:
            raise _duplicate(HierarchyLevel.ECOSYSTEM, name, None) from exc
        _created(HierarchyLevel.ECOSYSTEM, ecosystem.name)

    run_or_exit(_run)


@create_app.command("domain")
def create_domain(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Domain name"),
    ecosystem: Optional[str] = ecosystem_option("Parent ecosystem"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
) -> None:
    """Create a domain inside an ecosystem."""

    def _run() -> None:
        engine = get_engine(ctx)
        parent = _parent_path(engine, build_filter(ecosystem), HierarchyLevel.ECOSYSTEM)
        try:
            engine.store.create_domain(parent.ecosystem.id, name, description)
        except DuplicateEntityError as exc:
            raise _duplicate(HierarchyLevel.DOMAIN, name, parent.full_path()) from exc
        _created(HierarchyLevel.DOMAIN, f"{parent.full_path()}/{name}")

    run_or_exit(_run)


@create_app.command("app")
def create_app_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="App name"),
    path: str = typer.Option(..., "--path", help="Path to the app's source tree"),
    language: Optional[str] = typer.Option(None, "--language", help="Primary language"),
    ecosystem: Optional[str] = ecosystem_option("Parent ecosystem"),
    domain: Optional[str] = domain_option("Parent domain"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
) -> None:
    """Create an app inside a domain."""

    def _run() -> None:
        engine = get_engine(ctx)
        parent = _parent_path(engine, build_filter(ecosystem, domain), HierarchyLevel.DOMAIN)
        assert parent.domain is not None
        try:
            engine.store.create_app(
                parent.domain.id, name, path, language=language, description=description
            )
        except DuplicateEntityError as exc:
            raise _duplicate(HierarchyLevel.APP, name, parent.full_path()) from exc
        _created(HierarchyLevel.APP, f"{parent.full_path()}/{name}")

    run_or_exit(_run)


@create_app.command("workspace")
def create_workspace(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
    ecosystem: Optional[str] = ecosystem_option("Parent ecosystem"),
    domain: Optional[str] = domain_option("Parent domain"),
    app: Optional[str] = app_option("Parent app"),
    image: str = typer.Option("", "--image", help="Container image name"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
) -> None:
    """Create a workspace for an app."""

    def _run() -> None:
        engine = get_engine(ctx)
        parent = _parent_path(engine, build_filter(ecosystem, domain, app), HierarchyLevel.APP)
        assert parent.app is not None
        try:
            engine.store.create_workspace(
                parent.app.id, name, image_name=image, description=description
            )
        except DuplicateEntityError as exc:
            raise _duplicate(HierarchyLevel.WORKSPACE, name, parent.full_path()) from exc
        _created(HierarchyLevel.WORKSPACE, f"{parent.full_path()}/{name}")

    run_or_exit(_run)


def _render_paths(title: str, paths: list[ResolvedPath], level: HierarchyLevel) -> None:
    table = Table(title=title)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Path", style="cyan")
    if level is HierarchyLevel.APP:
        table.add_column("Language")
    if level is HierarchyLevel.WORKSPACE:
        table.add_column("Status")

    for path in paths:
        target = path.target
        row = [str(target.id), escape(target.name), escape(path.full_path())]
        if path.app is not None and level is HierarchyLevel.APP:
            row.append(escape(path.app.language or "-"))
        if path.workspace is not None and level is HierarchyLevel.WORKSPACE:
            row.append(escape(path.workspace.status))
        table.add_row(*row)
    console.print(table)


def _list_level(
    ctx: typer.Context,
    level: HierarchyLevel,
    filter: ResolutionFilter,
    as_json: bool,
) -> None:
    def _run() -> None:
        engine = get_engine(ctx)
        if level is HierarchyLevel.WORKSPACE:
            paths = engine.resolve_all(filter)
        else:
            paths = engine.resolver.candidates(filter, level)

        if as_json:
            print_json({"filter": filter.to_dict(), "count": len(paths), "items": [p.to_dict() for p in paths]})
            return
        if not paths:
            console.print(f"[dim]No {level.value}s found matching {escape(filter.describe())}[/dim]")
            return
        _render_paths(f"{level.value.capitalize()}s", paths, level)

    run_or_exit(_run)


@get_app.command("ecosystems")
def get_ecosystems(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    as_json: bool = json_option(),
) -> None:
    """List ecosystems."""
    _list_level(ctx, HierarchyLevel.ECOSYSTEM, build_filter(ecosystem), as_json)


@get_app.command("domains")
def get_domains(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    as_json: bool = json_option(),
) -> None:
    """List domains, optionally narrowed by ecosystem."""
    _list_level(ctx, HierarchyLevel.DOMAIN, build_filter(ecosystem, domain), as_json)


@get_app.command("apps")
def get_apps(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app: Optional[str] = app_option(),
    as_json: bool = json_option(),
) -> None:
    """List apps, optionally narrowed by ecosystem and domain."""
    _list_level(ctx, HierarchyLevel.APP, build_filter(ecosystem, domain, app), as_json)


@get_app.command("workspaces")
def get_workspaces(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    as_json: bool = json_option(),
) -> None:
    """List every workspace matching the filters (several matches are fine)."""
    _list_level(ctx, HierarchyLevel.WORKSPACE, build_filter(ecosystem, domain, app, workspace), as_json)
