"""Caller-facing resolution engine.

Wires the hierarchy store, global config, entity resolver, setting cascades
and the active-context writer behind one object used by the CLI.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from envtree.config import GlobalConfig, load_global_config
from envtree.context import ActiveContextWriter, load_selection
from envtree.hierarchy.models import HierarchyLevel, ResolutionFilter, ResolvedPath, SelectionContext
from envtree.hierarchy.store import HierarchyStore
from envtree.home import default_database_path
from envtree.resolution.cascade import CascadeResolver, CascadeResult
from envtree.resolution.resolver import EntityResolver, ResolutionOutcome
from envtree.settings.credentials import CredentialResolution, CredentialResolver
from envtree.settings.theme import ThemeResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """Outcome of :meth:`ResolutionEngine.select`."""

    path: ResolvedPath
    persisted: bool


class ResolutionEngine:
    """Entity resolution, setting cascades and active-context persistence."""

    def __init__(
        self,
        store: HierarchyStore,
        config: GlobalConfig | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        writer: ActiveContextWriter | None = None,
    ) -> None:
        self.store = store
        self.config = config or GlobalConfig()
        self.resolver = EntityResolver(store)
        self.themes = ThemeResolver(store, self.config.theme)
        self.credentials = CredentialResolver(store, self.config.credentials, environ=environ)
        self.writer = writer or ActiveContextWriter(store)
        self._settings = CascadeResolver(
            store,
            store.get_override,
            global_lookup=self.config.global_setting,
        )

    @classmethod
    def open(cls, db_path: Path | None = None, config_path: Path | None = None) -> ResolutionEngine:
        """Build an engine from the global config and the configured database."""
        config = load_global_config(config_path)
        if db_path is None:
            db_path = Path(config.database).expanduser() if config.database else default_database_path()
        logger.debug("Opening hierarchy database %s", db_path)
        return cls(HierarchyStore(db_path), config)

    # ------------------------------------------------------------------
    # Entity resolution
    # ------------------------------------------------------------------

    def match(self, filter: ResolutionFilter) -> ResolutionOutcome:
        return self.resolver.match(filter)

    def resolve(self, filter: ResolutionFilter) -> ResolvedPath:
        return self.resolver.resolve(filter)

    def resolve_all(self, filter: ResolutionFilter) -> list[ResolvedPath]:
        return self.resolver.resolve_all(filter)

    def resolve_scope(self, filter: ResolutionFilter, level: HierarchyLevel) -> ResolvedPath:
        return self.resolver.resolve_scope(filter, level)

    def current_selection(self) -> SelectionContext:
        return load_selection(self.store)

    def resolve_target(
        self,
        filter: ResolutionFilter,
        selection: SelectionContext | None = None,
    ) -> ResolvedPath:
        """Pick the entity a level-scoped command acts on.

        A non-empty filter resolves at its deepest constrained level. An empty
        filter falls back to ``selection`` (the persisted selection when not
        given), and finally to resolving the empty filter, which succeeds
        only when exactly one workspace exists.
        """
        level = filter.deepest_level()
        if level is not None:
            return self.resolver.resolve_scope(filter, level)

        if selection is None:
            selection = self.current_selection()
        if not selection.is_empty():
            return self.resolver.resolve_selection(selection)
        return self.resolver.resolve(filter)

    def select(self, filter: ResolutionFilter, *, persist: bool = True) -> Selection:
        """Resolve a workspace and, optionally, remember it as the active context."""
        path = self.resolver.resolve(filter)
        persisted = self.writer.apply(path) if persist else False
        return Selection(path=path, persisted=persisted)

    # ------------------------------------------------------------------
    # Setting cascades
    # ------------------------------------------------------------------

    def resolve_setting(self, level: HierarchyLevel, entity_id: int, key: str) -> CascadeResult:
        """Effective value of any scalar override ``key`` plus its trace."""
        return self._settings.resolve(level, entity_id, key)

    def resolve_theme(self, level: HierarchyLevel, entity_id: int) -> CascadeResult:
        return self.themes.resolve(level, entity_id)

    def resolve_credential(self, level: HierarchyLevel, entity_id: int, name: str) -> CascadeResult:
        return self.credentials.resolve(level, entity_id, name)

    def resolve_credentials(self, level: HierarchyLevel, entity_id: int) -> CredentialResolution:
        return self.credentials.resolve_all(level, entity_id)
