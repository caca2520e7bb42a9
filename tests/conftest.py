from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from envtree.hierarchy.store import HierarchyStore


@pytest.fixture()
def store(tmp_path: Path) -> HierarchyStore:
    return HierarchyStore(tmp_path / "envtree.db")


@pytest.fixture()
def healthcare(store: HierarchyStore) -> SimpleNamespace:
    """healthcare/backend/portal/staging"""
    ecosystem = store.create_ecosystem("healthcare")
    domain = store.create_domain(ecosystem.id, "backend")
    app = store.create_app(domain.id, "portal", "/src/portal", language="python")
    workspace = store.create_workspace(app.id, "staging")
    return SimpleNamespace(
        store=store,
        ecosystem=ecosystem,
        domain=domain,
        app=app,
        workspace=workspace,
    )


@pytest.fixture()
def twin_portals(store: HierarchyStore) -> SimpleNamespace:
    """Two 'portal' apps in different domains, each with a 'main' workspace."""
    ecosystem = store.create_ecosystem("healthcare")
    backend = store.create_domain(ecosystem.id, "backend")
    frontend = store.create_domain(ecosystem.id, "frontend")
    backend_portal = store.create_app(backend.id, "portal", "/src/backend/portal")
    frontend_portal = store.create_app(frontend.id, "portal", "/src/frontend/portal")
    backend_main = store.create_workspace(backend_portal.id, "main")
    frontend_main = store.create_workspace(frontend_portal.id, "main")
    return SimpleNamespace(
        store=store,
        ecosystem=ecosystem,
        backend=backend,
        frontend=frontend,
        backend_portal=backend_portal,
        frontend_portal=frontend_portal,
        backend_main=backend_main,
        frontend_main=frontend_main,
    )


@pytest.fixture()
def envtree_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ENVTREE_HOME at a throwaway directory."""
    home = tmp_path / "envtree-home"
    monkeypatch.setenv("ENVTREE_HOME", str(home))
    monkeypatch.delenv("ENVTREE_DB", raising=False)
    return home
