"""Credential commands: manage definitions and inspect their cascade."""

from __future__ import annotations

from typing import Any, Optional

import typer
from rich.markup import escape
from rich.table import Table

from envtree.cli.helpers import (
    app_option,
    build_filter,
    console,
    domain_option,
    ecosystem_option,
    err_console,
    get_engine,
    get_state,
    json_option,
    print_json,
    run_or_exit,
    trace_table,
    workspace_option,
)
from envtree.config import CredentialConfig, CredentialSource, save_global_config

app = typer.Typer(help="Build credentials scoped to the hierarchy")


def _global_option() -> Any:
    return typer.Option(False, "--global", help="Act on the global config instead of a hierarchy level")


def _build_credential(
    source: CredentialSource,
    value: str | None,
    env_var: str | None,
    service: str | None,
    description: str | None,
) -> CredentialConfig:
    if source is CredentialSource.VALUE and not value:
        raise ValueError("--value is required with --source value")
    if source is CredentialSource.ENV and not env_var:
        raise ValueError("--env is required with --source env")
    if source is CredentialSource.KEYCHAIN and not service:
        raise ValueError("--service is required with --source keychain")
    return CredentialConfig(
        source=source,
        value=value if source is CredentialSource.VALUE else None,
        env_var=env_var if source is CredentialSource.ENV else None,
        service=service if source is CredentialSource.KEYCHAIN else None,
        description=description,
    )


@app.command("set")
def set_credential(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Credential name (also the env var that overrides it)"),
    source: CredentialSource = typer.Option(..., "--source", case_sensitive=False, help="value, env or keychain"),
    value: Optional[str] = typer.Option(None, "--value", help="Literal value (source=value)"),
    env_var: Optional[str] = typer.Option(None, "--env", help="Environment variable to read (source=env)"),
    service: Optional[str] = typer.Option(None, "--service", help="Keychain service name (source=keychain)"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    is_global: bool = _global_option(),
) -> None:
    """Define a credential at a hierarchy level or globally."""

    def _run() -> None:
        credential = _build_credential(source, value, env_var, service, description)
        engine = get_engine(ctx)
        if is_global:
            config = engine.config.model_copy(deep=True)
            config.credentials[name] = credential
            save_global_config(config, get_state(ctx).config_path)
            console.print(f"[green]✓[/green] Global credential [bold]{escape(name)}[/bold] set ({escape(credential.describe())})")
            return

        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        engine.store.set_credential(target.level, target.target.id, name, credential)
        console.print(
            f"[green]✓[/green] Credential [bold]{escape(name)}[/bold] set on {target.level.value} "
            f"[bold]{escape(target.full_path())}[/bold] ({escape(credential.describe())})"
        )

    run_or_exit(_run)


@app.command("delete")
def delete_credential(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Credential name"),
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    is_global: bool = _global_option(),
) -> None:
    """Remove a credential definition from one level."""

    def _run() -> None:
        engine = get_engine(ctx)
        if is_global:
            config = engine.config.model_copy(deep=True)
            if config.credentials.pop(name, None) is None:
                console.print(f"[dim]No global credential named {escape(name)}[/dim]")
                return
            save_global_config(config, get_state(ctx).config_path)
            console.print(f"[green]✓[/green] Global credential [bold]{escape(name)}[/bold] removed")
            return

        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        if engine.store.delete_credential(target.level, target.target.id, name):
            console.print(
                f"[green]✓[/green] Credential [bold]{escape(name)}[/bold] removed from {target.level.value} "
                f"[bold]{escape(target.full_path())}[/bold]"
            )
        else:
            console.print(f"[dim]No credential {escape(name)} on {target.level.value} {escape(target.full_path())}[/dim]")

    run_or_exit(_run)


@app.command("list")
def list_credentials(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    is_global: bool = _global_option(),
    as_json: bool = json_option(),
) -> None:
    """List credential definitions stored directly on one level (no inheritance)."""

    def _run() -> None:
        engine = get_engine(ctx)
        if is_global:
            scope = "global config"
            credentials = dict(sorted(engine.config.credentials.items()))
        else:
            target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
            scope = f"{target.level.value} {target.full_path()}"
            credentials = engine.store.list_credentials(target.level, target.target.id)

        if as_json:
            print_json({"scope": scope, "credentials": {n: c.describe() for n, c in credentials.items()}})
            return
        if not credentials:
            console.print(f"[dim]No credentials defined on {escape(scope)}[/dim]")
            return

        table = Table(title=f"Credentials on {escape(scope)}")
        table.add_column("Name", style="bold")
        table.add_column("Source", style="cyan")
        table.add_column("Description", style="dim")
        for name, credential in credentials.items():
            table.add_row(escape(name), escape(credential.describe()), escape(credential.description or ""))
        console.print(table)

    run_or_exit(_run)


@app.command("show")
def show_credential(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Credential name"),
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    reveal: bool = typer.Option(False, "--reveal", help="Print secret values"),
    as_json: bool = json_option(),
) -> None:
    """Show where a credential resolves from, level by level."""

    def _run() -> None:
        engine = get_engine(ctx)
        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        result = engine.resolve_credential(target.level, target.target.id, name)
        if as_json:
            payload = result.to_dict(reveal=reveal)
            payload["target"] = target.to_dict()
            print_json(payload)
            return

        if result.found:
            console.print(f"[bold]{escape(name)}[/bold] resolves from {escape(result.describe_source())}")
        else:
            console.print(f"[yellow]{escape(name)} is not set for {escape(target.full_path())}[/yellow]")
        console.print(trace_table(result, reveal=reveal))

    run_or_exit(_run)


@app.command("resolve")
def resolve_credentials(
    ctx: typer.Context,
    ecosystem: Optional[str] = ecosystem_option(),
    domain: Optional[str] = domain_option(),
    app_name: Optional[str] = app_option(),
    workspace: Optional[str] = workspace_option(),
    reveal: bool = typer.Option(False, "--reveal", help="Print secret values"),
    as_json: bool = json_option(),
) -> None:
    """Resolve the merged credential map for the target."""

    def _run() -> None:
        engine = get_engine(ctx)
        target = engine.resolve_target(build_filter(ecosystem, domain, app_name, workspace))
        resolution = engine.resolve_credentials(target.level, target.target.id)
        if as_json:
            payload = resolution.to_dict(reveal=reveal)
            payload["target"] = target.to_dict()
            print_json(payload)
            return

        if not resolution.results:
            console.print(f"[dim]No credentials apply to {escape(target.full_path())}[/dim]")
        else:
            table = Table(title=f"Credentials for {escape(target.full_path())}")
            table.add_column("Name", style="bold")
            table.add_column("Source", style="cyan")
            table.add_column("Value")
            for name, result in sorted(resolution.results.items()):
                if result.value is None:
                    shown = "[yellow]unset[/yellow]"
                else:
                    shown = escape(result.value) if reveal else "********"
                table.add_row(escape(name), escape(result.describe_source()), shown)
            console.print(table)

        for name, error in sorted(resolution.errors.items()):
            err_console.print(f"[yellow]Warning:[/yellow] {escape(name)}: {escape(error)}")
        for scope, error in sorted(resolution.scope_errors.items()):
            err_console.print(f"[yellow]Warning:[/yellow] {escape(scope)}: {escape(error)}")

    run_or_exit(_run)
