"""Theme resolution: the ``theme`` override cascaded up to the global default."""

from __future__ import annotations

import logging

from envtree.config import DEFAULT_THEME
from envtree.hierarchy.models import HierarchyLevel
from envtree.hierarchy.store import HierarchyStore
from envtree.resolution.cascade import CascadeResolver, CascadeResult

logger = logging.getLogger(__name__)

THEME_KEY = "theme"


class ThemeResolver:
    """Resolve and edit theme overrides across the hierarchy."""

    def __init__(self, store: HierarchyStore, default_theme: str = DEFAULT_THEME) -> None:
        self.store = store
        self.default_theme = default_theme or DEFAULT_THEME
        self._walker = CascadeResolver(
            store,
            store.get_override,
            global_lookup=lambda _key: self.default_theme,
        )

    def resolve(self, level: HierarchyLevel, entity_id: int) -> CascadeResult:
        return self._walker.resolve(level, entity_id, THEME_KEY)

    def effective_theme(self, level: HierarchyLevel, entity_id: int) -> str:
        return self.resolve(level, entity_id).value or self.default_theme

    def set_theme(self, level: HierarchyLevel, entity_id: int, theme: str) -> str | None:
        """Store ``theme`` on an entity and return the previous override, if any."""
        theme = theme.strip()
        if not theme:
            raise ValueError("Theme name must not be empty; use clear_theme to inherit")
        previous = self.store.get_override(level, entity_id, THEME_KEY)
        self.store.set_override(level, entity_id, THEME_KEY, theme)
        logger.debug("Theme on %s %s: %r -> %r", level.value, entity_id, previous, theme)
        return previous

    def clear_theme(self, level: HierarchyLevel, entity_id: int) -> bool:
        """Remove the override so the entity inherits from its parent."""
        return self.store.clear_override(level, entity_id, THEME_KEY)
