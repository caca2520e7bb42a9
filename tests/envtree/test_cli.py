"""CLI tests for envtree commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from envtree.cli import app
from envtree.config import load_global_config

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _ok(*args: str):
    result = _invoke(*args)
    assert result.exit_code == 0, result.output
    return result


@pytest.fixture()
def populated(envtree_home):
    _ok("create", "ecosystem", "healthcare")
    _ok("create", "domain", "backend", "-e", "healthcare")
    _ok("create", "domain", "frontend", "-e", "healthcare")
    _ok("create", "app", "portal", "--path", "/src/backend/portal", "-d", "backend")
    _ok("create", "app", "portal", "--path", "/src/frontend/portal", "-d", "frontend")
    _ok("create", "workspace", "main", "-d", "backend", "-a", "portal")
    _ok("create", "workspace", "main", "-d", "frontend", "-a", "portal")
    return envtree_home


def test_version(envtree_home) -> None:
    result = _ok("--version")
    assert result.output.startswith("envtree ")


def test_create_reports_duplicates(populated) -> None:
    result = _invoke("create", "domain", "backend", "-e", "healthcare")
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_create_requires_parent(envtree_home) -> None:
    _ok("create", "ecosystem", "healthcare")
    result = _invoke("create", "domain", "backend")
    assert result.exit_code == 1
    assert "No parent ecosystem" in result.output


def test_get_workspaces_json(populated) -> None:
    result = _ok("get", "workspaces", "-a", "portal", "--json")
    payload = json.loads(result.output)
    assert payload["count"] == 2
    assert [item["full_path"] for item in payload["items"]] == [
        "healthcare/backend/portal/main",
        "healthcare/frontend/portal/main",
    ]


def test_get_domains_json(populated) -> None:
    payload = json.loads(_ok("get", "domains", "-e", "healthcare", "--json").output)
    assert [item["domain"]["name"] for item in payload["items"]] == ["backend", "frontend"]


def test_get_workspaces_not_found_shows_hint(populated) -> None:
    result = _invoke("get", "workspaces", "-a", "nonexistent")
    assert result.exit_code == 1
    assert "No workspaces found" in result.output
    assert "envtree get workspaces" in result.output


def test_resolve_ambiguous_prints_disambiguation(populated) -> None:
    result = _invoke("resolve", "-a", "portal", "-w", "main")
    assert result.exit_code == 1
    assert "Multiple workspaces (2) match your criteria:" in result.output
    assert "1. healthcare/backend/portal/main" in result.output
    assert "2. healthcare/frontend/portal/main" in result.output


def test_resolve_json(populated) -> None:
    payload = json.loads(_ok("resolve", "-d", "frontend", "--json").output)
    assert payload["full_path"] == "healthcare/frontend/portal/main"
    assert payload["level"] == "workspace"


def test_use_and_context(populated) -> None:
    empty = json.loads(_ok("context", "--json").output)
    assert empty["path"] is None

    _ok("use", "-d", "backend")
    payload = json.loads(_ok("context", "--json").output)
    assert payload["path"]["full_path"] == "healthcare/backend/portal/main"

    _ok("use", "--clear")
    assert json.loads(_ok("context", "--json").output)["path"] is None


def test_create_workspace_under_active_app(populated) -> None:
    _ok("use", "-d", "frontend")
    _ok("create", "workspace", "feature-x")

    payload = json.loads(_ok("get", "workspaces", "-w", "feature-x", "--json").output)
    assert payload["items"][0]["full_path"] == "healthcare/frontend/portal/feature-x"


def test_theme_cascade(populated) -> None:
    _ok("theme", "set", "dark", "-d", "backend")

    payload = json.loads(_ok("theme", "show", "-d", "backend", "-a", "portal", "-w", "main", "--json").output)
    assert payload["value"] == "dark"
    assert payload["source"] == "domain"
    assert [step["level"] for step in payload["trace"]] == ["workspace", "app", "domain"]

    frontend = json.loads(_ok("theme", "show", "-d", "frontend", "-w", "main", "--json").output)
    assert frontend["value"] == "coolnight-ocean"
    assert frontend["source"] == "global"

    _ok("theme", "clear", "-d", "backend")
    cleared = json.loads(_ok("theme", "show", "-d", "backend", "-w", "main", "--json").output)
    assert cleared["value"] == "coolnight-ocean"


def test_theme_show_uses_active_context(populated) -> None:
    _ok("theme", "set", "light", "-d", "frontend", "-a", "portal")
    _ok("use", "-d", "frontend")
    payload = json.loads(_ok("theme", "show", "--json").output)
    assert payload["value"] == "light"
    assert payload["target"]["full_path"] == "healthcare/frontend/portal/main"


def test_credential_environment_override(populated, monkeypatch) -> None:
    _ok("credential", "set", "API_KEY", "--source", "value", "--value", "app-val", "-d", "backend", "-a", "portal")
    monkeypatch.delenv("API_KEY", raising=False)

    hidden = json.loads(_ok("credential", "resolve", "-d", "backend", "-w", "main", "--json").output)
    assert hidden["credentials"]["API_KEY"]["value"] == "********"
    assert hidden["credentials"]["API_KEY"]["source"] == "app"

    monkeypatch.setenv("API_KEY", "env-val")
    revealed = json.loads(
        _ok("credential", "resolve", "-d", "backend", "-w", "main", "--reveal", "--json").output
    )
    assert revealed["credentials"]["API_KEY"]["value"] == "env-val"
    assert revealed["credentials"]["API_KEY"]["source"] == "environment"


def test_credential_list_show_delete(populated) -> None:
    _ok("credential", "set", "NPM_TOKEN", "--source", "env", "--env", "MY_NPM", "-d", "frontend")

    listed = json.loads(_ok("credential", "list", "-d", "frontend", "--json").output)
    assert listed["credentials"] == {"NPM_TOKEN": "env:MY_NPM"}
    assert listed["scope"] == "domain healthcare/frontend"

    shown = json.loads(_ok("credential", "show", "NPM_TOKEN", "-d", "frontend", "-w", "main", "--json").output)
    assert [step["level"] for step in shown["trace"]][:3] == ["workspace", "app", "domain"]

    _ok("credential", "delete", "NPM_TOKEN", "-d", "frontend")
    assert json.loads(_ok("credential", "list", "-d", "frontend", "--json").output)["credentials"] == {}


def test_credential_set_validates_source_options(populated) -> None:
    result = _invoke("credential", "set", "API_KEY", "--source", "env", "-d", "backend")
    assert result.exit_code == 1
    assert "--env is required" in result.output


def test_global_credential_written_to_config(populated) -> None:
    _ok("credential", "set", "GLOBAL_KEY", "--source", "value", "--value", "g", "--global")

    config = load_global_config(populated / "config.yaml")
    assert config.credentials["GLOBAL_KEY"].value == "g"

    payload = json.loads(_ok("credential", "resolve", "-d", "backend", "-w", "main", "--reveal", "--json").output)
    assert payload["credentials"]["GLOBAL_KEY"]["value"] == "g"
    assert payload["credentials"]["GLOBAL_KEY"]["source"] == "global"


def test_invalid_config_exits_cleanly(envtree_home) -> None:
    envtree_home.mkdir(parents=True)
    (envtree_home / "config.yaml").write_text("- not a mapping\n", encoding="utf-8")
    result = _invoke("context")
    assert result.exit_code == 1
    assert "Expected a mapping" in result.output


def test_bracketed_names_print_literally(envtree_home) -> None:
    created = _ok("create", "ecosystem", "[/x]")
    assert "[/x]" in created.output
    _ok("create", "domain", "[bold]core", "-e", "[/x]")
    _ok("create", "app", "api", "--path", "/src/[api]", "-d", "[bold]core")
    _ok("create", "workspace", "dev", "-a", "api")

    listed = _ok("get", "workspaces")
    assert "[/x]/[bold]core/api/dev" in listed.output

    resolved = _ok("resolve", "-w", "dev")
    assert "[bold]core" in resolved.output
    assert "/src/[api]" in resolved.output

    _ok("theme", "set", "[red]", "-d", "[bold]core")
    shown = _ok("theme", "show", "-w", "dev")
    assert "[red]" in shown.output

    _ok("credential", "set", "[/TOKEN]", "--source", "value", "--value", "v", "-a", "api")
    assert "[/TOKEN]" in _ok("credential", "list", "-a", "api").output
    assert "[/TOKEN]" in _ok("credential", "resolve", "-w", "dev").output
