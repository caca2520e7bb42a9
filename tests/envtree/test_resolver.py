"""Tests for entity resolution from partial name filters."""

from __future__ import annotations

import sqlite3

import pytest

from envtree.hierarchy.models import HierarchyLevel, ResolutionFilter, SelectionContext
from envtree.hierarchy.store import StoreError
from envtree.resolution import errors
from envtree.resolution import resolver as resolver_module
from envtree.resolution.errors import AmbiguousError, NotFoundError
from envtree.resolution.resolver import Ambiguous, EntityResolver, Found, NotFound


def test_unique_app_resolves_full_path(healthcare) -> None:
    resolver = EntityResolver(healthcare.store)

    path = resolver.resolve(ResolutionFilter(app_name="portal"))

    assert path.full_path() == "healthcare/backend/portal/staging"
    assert path.workspace.id == healthcare.workspace.id
    assert path.app.id == healthcare.app.id
    assert path.domain.id == healthcare.domain.id
    assert path.ecosystem.id == healthcare.ecosystem.id
    assert path.short_path() == "portal/staging"


def test_empty_filter_resolves_single_workspace(healthcare) -> None:
    path = EntityResolver(healthcare.store).resolve(ResolutionFilter())
    assert path.full_path() == "healthcare/backend/portal/staging"


def test_same_names_in_different_domains_are_ambiguous(twin_portals) -> None:
    resolver = EntityResolver(twin_portals.store)

    with pytest.raises(AmbiguousError) as exc_info:
        resolver.resolve(ResolutionFilter(app_name="portal", workspace_name="main"))

    err = exc_info.value
    assert len(err.matches) == 2
    assert err.candidates == [
        "healthcare/backend/portal/main",
        "healthcare/frontend/portal/main",
    ]
    assert errors.is_ambiguous_error(err)
    assert not errors.is_not_found_error(err)


def test_narrowing_by_domain_disambiguates(twin_portals) -> None:
    path = EntityResolver(twin_portals.store).resolve(
        ResolutionFilter(domain_name="frontend", app_name="portal", workspace_name="main")
    )
    assert path.workspace.id == twin_portals.frontend_main.id


def test_unknown_app_is_not_found(healthcare) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        EntityResolver(healthcare.store).resolve(ResolutionFilter(app_name="nonexistent"))

    assert exc_info.value.filter == ResolutionFilter(app_name="nonexistent")
    assert "app=nonexistent" in str(exc_info.value)
    assert errors.is_not_found_error(exc_info.value)


def test_empty_filter_against_empty_store_is_not_found(store) -> None:
    resolver = EntityResolver(store)
    with pytest.raises(NotFoundError):
        resolver.resolve(ResolutionFilter())
    with pytest.raises(NotFoundError):
        resolver.resolve_all(ResolutionFilter())


def test_matching_is_exact_and_case_sensitive(healthcare) -> None:
    resolver = EntityResolver(healthcare.store)
    for filter in (
        ResolutionFilter(app_name="Portal"),
        ResolutionFilter(app_name="port"),
        ResolutionFilter(ecosystem_name="healthcare", domain_name="frontend"),
    ):
        with pytest.raises(NotFoundError):
            resolver.resolve(filter)


def test_resolve_all_returns_every_match_sorted(twin_portals) -> None:
    resolver = EntityResolver(twin_portals.store)

    paths = resolver.resolve_all(ResolutionFilter(workspace_name="main"))

    assert [p.full_path() for p in paths] == [
        "healthcare/backend/portal/main",
        "healthcare/frontend/portal/main",
    ]
    assert len(resolver.resolve_all(ResolutionFilter(domain_name="backend"))) == 1


def test_match_returns_tagged_outcomes(twin_portals) -> None:
    resolver = EntityResolver(twin_portals.store)

    match resolver.match(ResolutionFilter(domain_name="backend")):
        case Found(path=path):
            assert path.domain.name == "backend"
        case other:
            pytest.fail(f"unexpected outcome {other!r}")

    outcome = resolver.match(ResolutionFilter(app_name="portal"))
    assert isinstance(outcome, Ambiguous)
    assert len(outcome.candidates) == 2

    assert isinstance(resolver.match(ResolutionFilter(app_name="nope")), NotFound)


def test_resolve_is_idempotent(twin_portals) -> None:
    resolver = EntityResolver(twin_portals.store)
    filter = ResolutionFilter(domain_name="frontend")

    first = resolver.resolve(filter)
    second = resolver.resolve(filter)

    assert first == second
    assert resolver.resolve_all(ResolutionFilter()) == resolver.resolve_all(ResolutionFilter())


class TestScopeResolution:
    def test_domain_scope_yields_partial_path(self, twin_portals) -> None:
        path = EntityResolver(twin_portals.store).resolve_scope(
            ResolutionFilter(domain_name="backend"), HierarchyLevel.DOMAIN
        )
        assert path.level is HierarchyLevel.DOMAIN
        assert path.full_path() == "healthcare/backend"
        assert path.app is None
        assert path.workspace is None
        assert path.target.id == twin_portals.backend.id

    def test_lower_filter_fields_are_ignored(self, twin_portals) -> None:
        path = EntityResolver(twin_portals.store).resolve_scope(
            ResolutionFilter(ecosystem_name="healthcare", workspace_name="missing"),
            HierarchyLevel.ECOSYSTEM,
        )
        assert path.full_path() == "healthcare"

    def test_ambiguous_scope_reports_level(self, twin_portals) -> None:
        with pytest.raises(AmbiguousError) as exc_info:
            EntityResolver(twin_portals.store).resolve_scope(
                ResolutionFilter(app_name="portal"), HierarchyLevel.APP
            )
        assert exc_info.value.level is HierarchyLevel.APP
        assert exc_info.value.candidates == ["healthcare/backend/portal", "healthcare/frontend/portal"]
        assert "Multiple apps (2)" in exc_info.value.format_disambiguation()

    def test_workspace_scope_equals_resolve(self, healthcare) -> None:
        resolver = EntityResolver(healthcare.store)
        filter = ResolutionFilter(app_name="portal")
        assert resolver.resolve_scope(filter, HierarchyLevel.WORKSPACE) == resolver.resolve(filter)

    def test_pseudo_levels_are_rejected(self, healthcare) -> None:
        with pytest.raises(ValueError):
            EntityResolver(healthcare.store).resolve_scope(ResolutionFilter(), HierarchyLevel.GLOBAL)


class TestSelectionResolution:
    def test_deepest_selected_id_wins(self, healthcare) -> None:
        resolver = EntityResolver(healthcare.store)
        path = resolver.resolve_selection(
            SelectionContext(ecosystem_id=healthcare.ecosystem.id, app_id=healthcare.app.id)
        )
        assert path.level is HierarchyLevel.APP
        assert path.full_path() == "healthcare/backend/portal"

    def test_empty_selection_is_not_found(self, healthcare) -> None:
        with pytest.raises(NotFoundError, match="No active selection"):
            EntityResolver(healthcare.store).resolve_selection(SelectionContext())

    def test_deleted_entity_is_not_found(self, healthcare) -> None:
        with pytest.raises(NotFoundError, match="no longer exists"):
            EntityResolver(healthcare.store).resolve_selection(SelectionContext(workspace_id=999))

    def test_unmaterialized_selection_raises_store_error(self, healthcare, monkeypatch) -> None:
        monkeypatch.setattr(resolver_module, "_materialize", lambda *args: None)
        with pytest.raises(StoreError, match="Cannot load the ancestors of app"):
            EntityResolver(healthcare.store).resolve_selection(SelectionContext(app_id=healthcare.app.id))


class TestStoreFailures:
    def test_store_failure_propagates(self, healthcare, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise StoreError("disk I/O error")

        monkeypatch.setattr(healthcare.store, "list_entities", boom)
        with pytest.raises(StoreError, match="disk I/O error"):
            EntityResolver(healthcare.store).resolve(ResolutionFilter(app_name="portal"))

    def test_dangling_parent_is_store_error(self, healthcare) -> None:
        conn = sqlite3.connect(healthcare.store.db_path)
        try:
            conn.execute("PRAGMA foreign_keys = OFF")
            conn.execute("DELETE FROM apps WHERE id = ?", (healthcare.app.id,))
            conn.commit()
        finally:
            conn.close()

        with pytest.raises(StoreError, match="references missing app"):
            EntityResolver(healthcare.store).resolve(ResolutionFilter())
