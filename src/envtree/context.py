"""Active-context persistence.

The "current selection" is an explicit :class:`SelectionContext` value passed
by callers. Persisting it is a convenience: a failed write is logged and
never fails the resolution that triggered it.
"""

from __future__ import annotations

import logging

from envtree.hierarchy.models import ResolvedPath, SelectionContext
from envtree.hierarchy.store import HierarchyStore, StoreError

logger = logging.getLogger(__name__)


def load_selection(store: HierarchyStore) -> SelectionContext:
    """Read the persisted selection (empty when nothing is selected)."""
    return store.get_active_selection()


class ActiveContextWriter:
    """Persist resolved paths as the active selection."""

    def __init__(self, store: HierarchyStore) -> None:
        self.store = store

    def apply(self, path: ResolvedPath) -> bool:
        """Remember ``path`` for later filterless invocations.

        Returns:
            True when the selection was written, False when the write failed.
        """
        selection = path.selection()
        try:
            self.store.set_active_selection(
                ecosystem_id=selection.ecosystem_id,
                domain_id=selection.domain_id,
                app_id=selection.app_id,
                workspace_id=selection.workspace_id,
            )
        except StoreError as exc:
            logger.warning("Could not save active context %s: %s", path.full_path(), exc)
            return False
        logger.debug("Active context set to %s", path.full_path())
        return True

    def clear(self) -> bool:
        try:
            self.store.clear_active_selection()
        except StoreError as exc:
            logger.warning("Could not clear active context: %s", exc)
            return False
        return True
