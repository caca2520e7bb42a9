"""Shared helpers for envtree CLI commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from envtree.config import ConfigError
from envtree.engine import ResolutionEngine
from envtree.hierarchy.models import ResolutionFilter
from envtree.hierarchy.store import StoreError
from envtree.resolution.cascade import CascadeResult
from envtree.resolution.errors import AmbiguousError, NotFoundError
from envtree.settings.credentials import CredentialError

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


@dataclass
class CliState:
    """Per-invocation options shared by every command."""

    db_path: Path | None = None
    config_path: Path | None = None
    _engine: ResolutionEngine | None = None

    def engine(self) -> ResolutionEngine:
        if self._engine is None:
            self._engine = ResolutionEngine.open(self.db_path, self.config_path)
        return self._engine


def get_state(ctx: typer.Context | None) -> CliState:
    state = ctx.find_object(CliState) if ctx is not None else None
    return state if state is not None else CliState()


def get_engine(ctx: typer.Context | None) -> ResolutionEngine:
    return get_state(ctx).engine()


def ecosystem_option(help: str = "Filter by ecosystem name") -> Any:
    return typer.Option(None, "--ecosystem", "-e", help=help)


def domain_option(help: str = "Filter by domain name") -> Any:
    return typer.Option(None, "--domain", "-d", help=help)


def app_option(help: str = "Filter by app name") -> Any:
    return typer.Option(None, "--app", "-a", help=help)


def workspace_option(help: str = "Filter by workspace name") -> Any:
    return typer.Option(None, "--workspace", "-w", help=help)


def json_option() -> Any:
    return typer.Option(False, "--json", help="Render output as JSON")


def build_filter(
    ecosystem: str | None = None,
    domain: str | None = None,
    app: str | None = None,
    workspace: str | None = None,
) -> ResolutionFilter:
    return ResolutionFilter(
        ecosystem_name=(ecosystem or "").strip() or None,
        domain_name=(domain or "").strip() or None,
        app_name=(app or "").strip() or None,
        workspace_name=(workspace or "").strip() or None,
    )


def print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


def run_or_exit(fn: Callable[[], T]) -> T:
    """Run a command body, turning expected failures into guidance and exit 1."""
    try:
        return fn()
    except AmbiguousError as exc:
        err_console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        err_console.print(exc.format_disambiguation(), markup=False, highlight=False)
        raise typer.Exit(1) from exc
    except NotFoundError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        err_console.print(f"[dim]{escape(exc.hint())}[/dim]")
        raise typer.Exit(1) from exc
    except (StoreError, ConfigError, CredentialError, ValueError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def trace_table(result: CascadeResult, *, reveal: bool = True) -> Table:
    """Render a cascade trace, most specific level first."""
    table = Table(title=f"Resolution of {escape(result.key)}")
    table.add_column("Level", style="cyan")
    table.add_column("Entity", style="bold")
    table.add_column("Value")
    table.add_column("Note")

    for step in result.trace:
        if step.value is None:
            value = "-"
        else:
            value = escape(step.value) if reveal else "********"
        if step.error:
            note = f"[red]{escape(step.error)}[/red]"
        elif step.found and step.level is result.source:
            note = "[green]effective[/green]"
        elif step.found:
            note = "[dim]overridden[/dim]"
        else:
            note = ""
        table.add_row(step.level.value, escape(step.entity_name or "?"), value, note)
    return table
