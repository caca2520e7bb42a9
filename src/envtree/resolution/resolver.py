"""Entity resolution: partial name filters to a concrete hierarchy target.

Candidates are enumerated at the target level (workspaces, unless a scope
level is requested), their ancestor chains are materialized with id lookups
against the store, and candidates whose ancestors do not match every
specified filter field exactly are discarded. One survivor is the answer;
several survivors are reported as ambiguous and never auto-picked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from envtree.hierarchy.models import (
    Entity,
    HierarchyLevel,
    ResolutionFilter,
    ResolvedPath,
    SelectionContext,
)
from envtree.hierarchy.store import HierarchyStore, StoreError
from envtree.resolution.errors import AmbiguousError, NotFoundError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcome types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Found:
    path: ResolvedPath


@dataclass(frozen=True)
class NotFound:
    filter: ResolutionFilter
    level: HierarchyLevel = HierarchyLevel.WORKSPACE


@dataclass(frozen=True)
class Ambiguous:
    filter: ResolutionFilter
    candidates: tuple[ResolvedPath, ...]
    level: HierarchyLevel = HierarchyLevel.WORKSPACE


ResolutionOutcome = Union[Found, NotFound, Ambiguous]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

class _AncestorCache:
    """Per-call memo of id lookups so shared ancestors are read once."""

    def __init__(self, store: HierarchyStore) -> None:
        self._store = store
        self._entities: dict[tuple[HierarchyLevel, int], Entity] = {}

    def parent_of(self, child: Entity) -> Entity:
        level = child.level.parent
        parent_id = child.parent_id
        key = (level, parent_id)
        if key not in self._entities:
            parent = self._store.get_entity(level, parent_id)
            if parent is None:
                raise StoreError(
                    f"{child.level.value} '{child.name}' ({child.id}) references missing "
                    f"{level.value} {parent_id}"
                )
            self._entities[key] = parent
        return self._entities[key]


def _name_matches(filter: ResolutionFilter, entity: Entity) -> bool:
    wanted = filter.name_for(entity.level)
    return wanted is None or entity.name == wanted


def _materialize(
    candidate: Entity,
    filter: ResolutionFilter,
    cache: _AncestorCache,
) -> ResolvedPath | None:
    """Walk from ``candidate`` to its ecosystem; ``None`` on any name mismatch."""
    chain: dict[HierarchyLevel, Entity] = {}
    entity = candidate
    while True:
        if not _name_matches(filter, entity):
            return None
        chain[entity.level] = entity
        if entity.level is HierarchyLevel.ECOSYSTEM:
            break
        entity = cache.parent_of(entity)

    return ResolvedPath(
        ecosystem=chain[HierarchyLevel.ECOSYSTEM],  # type: ignore[arg-type]
        domain=chain.get(HierarchyLevel.DOMAIN),  # type: ignore[arg-type]
        app=chain.get(HierarchyLevel.APP),  # type: ignore[arg-type]
        workspace=chain.get(HierarchyLevel.WORKSPACE),  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class EntityResolver:
    """Resolve hierarchy targets from partial name filters.

    Store failures propagate as :class:`StoreError`; this resolver never
    treats an unreadable store as "no match".
    """

    def __init__(self, store: HierarchyStore) -> None:
        self.store = store

    def candidates(
        self,
        filter: ResolutionFilter,
        level: HierarchyLevel = HierarchyLevel.WORKSPACE,
    ) -> list[ResolvedPath]:
        """Return every path at ``level`` matching ``filter``, sorted by full path."""
        if not level.is_entity_level:
            raise ValueError(f"Cannot resolve entities at the {level.value} level")

        entities = self.store.list_entities(level, name=filter.name_for(level))
        cache = _AncestorCache(self.store)
        matches = [
            path
            for entity in entities
            if (path := _materialize(entity, filter, cache)) is not None
        ]
        matches.sort(key=lambda path: path.full_path())
        logger.debug(
            "Filter %s matched %d of %d %s candidate(s)",
            filter.describe(),
            len(matches),
            len(entities),
            level.value,
        )
        return matches

    def match(
        self,
        filter: ResolutionFilter,
        level: HierarchyLevel = HierarchyLevel.WORKSPACE,
    ) -> ResolutionOutcome:
        """Resolve ``filter`` to a tagged outcome instead of raising."""
        matches = self.candidates(filter, level)
        if not matches:
            return NotFound(filter=filter, level=level)
        if len(matches) == 1:
            return Found(path=matches[0])
        return Ambiguous(filter=filter, candidates=tuple(matches), level=level)

    def resolve_scope(self, filter: ResolutionFilter, level: HierarchyLevel) -> ResolvedPath:
        """Resolve exactly one entity at ``level``; lower filter fields are ignored.

        Raises:
            NotFoundError: No entity matches.
            AmbiguousError: Several entities match.
        """
        match self.match(filter, level):
            case Found(path=path):
                return path
            case Ambiguous(candidates=candidates):
                raise AmbiguousError(filter, list(candidates), level=level)
            case _:
                raise NotFoundError(filter, level=level)

    def resolve(self, filter: ResolutionFilter) -> ResolvedPath:
        """Resolve exactly one workspace with its ancestors."""
        match self.match(filter):
            case Found(path=path):
                return path
            case Ambiguous(candidates=candidates):
                raise AmbiguousError(filter, list(candidates))
            case _:
                raise NotFoundError(filter)

    def resolve_all(self, filter: ResolutionFilter) -> list[ResolvedPath]:
        """Return every matching workspace; several matches are not an error.

        Raises:
            NotFoundError: Nothing matches, including an empty filter against
                an empty store.
        """
        matches = self.candidates(filter)
        if not matches:
            raise NotFoundError(filter)
        return matches

    def resolve_selection(self, selection: SelectionContext) -> ResolvedPath:
        """Materialize the deepest selected id into a (possibly partial) path."""
        deepest = selection.deepest()
        if deepest is None:
            raise NotFoundError(
                ResolutionFilter(),
                message="No active selection. Run 'envtree use' with -e/-d/-a/-w first.",
            )

        level, entity_id = deepest
        entity = self.store.get_entity(level, entity_id)
        if entity is None:
            raise NotFoundError(
                ResolutionFilter(),
                level=level,
                message=f"The active {level.value} ({entity_id}) no longer exists. Run 'envtree use' again.",
            )
        path = _materialize(entity, ResolutionFilter(), _AncestorCache(self.store))
        if path is None:
            raise StoreError(f"Cannot load the ancestors of {level.value} {entity_id}")
        return path
