"""Hierarchy entities and their SQLite store."""

from envtree.hierarchy.models import (
    ENTITY_LEVELS,
    App,
    Domain,
    Ecosystem,
    Entity,
    HierarchyLevel,
    ResolutionFilter,
    ResolvedPath,
    SelectionContext,
    Workspace,
)
from envtree.hierarchy.store import DuplicateEntityError, HierarchyStore, StoreError

__all__ = [
    "ENTITY_LEVELS",
    "App",
    "Domain",
    "DuplicateEntityError",
    "Ecosystem",
    "Entity",
    "HierarchyLevel",
    "HierarchyStore",
    "ResolutionFilter",
    "ResolvedPath",
    "SelectionContext",
    "StoreError",
    "Workspace",
]
