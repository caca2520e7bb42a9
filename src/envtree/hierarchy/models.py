"""Hierarchy entity models and resolution value objects.

Defines the four-level containment tree (Ecosystem -> Domain -> App ->
Workspace), the HierarchyLevel enum used by resolvers and traces, the
ResolutionFilter used to select targets by name, the ResolvedPath produced by
entity resolution, and the SelectionContext carried between invocations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Union


class HierarchyLevel(StrEnum):
    """Hierarchy levels, most specific first.

    ``GLOBAL`` and ``ENVIRONMENT`` are pseudo-levels that only appear in
    cascade traces; they have no stored entities.
    """

    WORKSPACE = "workspace"
    APP = "app"
    DOMAIN = "domain"
    ECOSYSTEM = "ecosystem"
    GLOBAL = "global"
    ENVIRONMENT = "environment"

    @property
    def is_entity_level(self) -> bool:
        return self in ENTITY_LEVELS

    @property
    def parent(self) -> HierarchyLevel:
        """Return the next level toward the root."""
        try:
            return _PARENT_LEVEL[self]
        except KeyError:
            raise ValueError(f"{self.value} has no parent level") from None


# Entity levels, most specific first
ENTITY_LEVELS: tuple[HierarchyLevel, ...] = (
    HierarchyLevel.WORKSPACE,
    HierarchyLevel.APP,
    HierarchyLevel.DOMAIN,
    HierarchyLevel.ECOSYSTEM,
)

_PARENT_LEVEL = {
    HierarchyLevel.WORKSPACE: HierarchyLevel.APP,
    HierarchyLevel.APP: HierarchyLevel.DOMAIN,
    HierarchyLevel.DOMAIN: HierarchyLevel.ECOSYSTEM,
    HierarchyLevel.ECOSYSTEM: HierarchyLevel.GLOBAL,
}


@dataclass(frozen=True)
class Ecosystem:
    """Root grouping of domains."""

    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    level = HierarchyLevel.ECOSYSTEM

    @property
    def parent_id(self) -> None:
        return None


@dataclass(frozen=True)
class Domain:
    """Bounded context inside an ecosystem."""

    id: int
    ecosystem_id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    level = HierarchyLevel.DOMAIN

    @property
    def parent_id(self) -> int:
        return self.ecosystem_id


@dataclass(frozen=True)
class App:
    """A codebase inside a domain."""

    id: int
    domain_id: int
    name: str
    path: str
    language: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    level = HierarchyLevel.APP

    @property
    def parent_id(self) -> int:
        return self.domain_id


@dataclass(frozen=True)
class Workspace:
    """A development environment for an app."""

    id: int
    app_id: int
    name: str
    image_name: str = ""
    status: str = "stopped"
    container_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    level = HierarchyLevel.WORKSPACE

    @property
    def parent_id(self) -> int:
        return self.app_id


Entity = Union[Ecosystem, Domain, App, Workspace]


@dataclass(frozen=True)
class ResolutionFilter:
    """Partial specification of names across the hierarchy.

    Empty or ``None`` fields leave that level unconstrained.
    """

    ecosystem_name: str | None = None
    domain_name: str | None = None
    app_name: str | None = None
    workspace_name: str | None = None

    def name_for(self, level: HierarchyLevel) -> str | None:
        """Return the constraint at ``level`` (``None`` when unconstrained)."""
        value = {
            HierarchyLevel.ECOSYSTEM: self.ecosystem_name,
            HierarchyLevel.DOMAIN: self.domain_name,
            HierarchyLevel.APP: self.app_name,
            HierarchyLevel.WORKSPACE: self.workspace_name,
        }.get(level)
        return value or None

    def is_empty(self) -> bool:
        return not any(self.name_for(level) for level in ENTITY_LEVELS)

    def deepest_level(self) -> HierarchyLevel | None:
        """Return the most specific constrained level, if any."""
        for level in ENTITY_LEVELS:
            if self.name_for(level):
                return level
        return None

    def describe(self) -> str:
        parts = [
            f"{level.value}={self.name_for(level)}"
            for level in reversed(ENTITY_LEVELS)
            if self.name_for(level)
        ]
        return ", ".join(parts) if parts else "(no filters)"

    def to_dict(self) -> dict[str, str]:
        return {
            level.value: name
            for level in reversed(ENTITY_LEVELS)
            if (name := self.name_for(level))
        }


@dataclass(frozen=True)
class ResolvedPath:
    """A resolved entity together with its ancestors.

    Scope resolution may produce partial paths, where components below the
    resolved level are ``None``.
    """

    ecosystem: Ecosystem
    domain: Domain | None = None
    app: App | None = None
    workspace: Workspace | None = None

    @property
    def level(self) -> HierarchyLevel:
        """The deepest populated level."""
        for entity in (self.workspace, self.app, self.domain):
            if entity is not None:
                return entity.level
        return HierarchyLevel.ECOSYSTEM

    @property
    def target(self) -> Entity:
        """The deepest populated entity."""
        return self.entity_at(self.level)  # type: ignore[return-value]

    def entity_at(self, level: HierarchyLevel) -> Entity | None:
        return {
            HierarchyLevel.ECOSYSTEM: self.ecosystem,
            HierarchyLevel.DOMAIN: self.domain,
            HierarchyLevel.APP: self.app,
            HierarchyLevel.WORKSPACE: self.workspace,
        }.get(level)

    def names(self) -> list[str]:
        return [
            entity.name
            for entity in (self.ecosystem, self.domain, self.app, self.workspace)
            if entity is not None
        ]

    def full_path(self) -> str:
        """Slash-joined names from ecosystem down, e.g. ``eco/dom/app/ws``."""
        return "/".join(self.names())

    def short_path(self) -> str:
        """``app/workspace`` form, or the full path for partial paths."""
        if self.app is not None and self.workspace is not None:
            return f"{self.app.name}/{self.workspace.name}"
        return self.full_path()

    def selection(self) -> SelectionContext:
        return SelectionContext(
            ecosystem_id=self.ecosystem.id,
            domain_id=self.domain.id if self.domain else None,
            app_id=self.app.id if self.app else None,
            workspace_id=self.workspace.id if self.workspace else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"full_path": self.full_path(), "level": self.level.value}
        for entity in (self.ecosystem, self.domain, self.app, self.workspace):
            if entity is not None:
                payload[entity.level.value] = {"id": entity.id, "name": entity.name}
        return payload


@dataclass(frozen=True)
class SelectionContext:
    """The currently selected entity chain, as ids."""

    ecosystem_id: int | None = None
    domain_id: int | None = None
    app_id: int | None = None
    workspace_id: int | None = None

    def is_empty(self) -> bool:
        return self.deepest() is None

    def deepest(self) -> tuple[HierarchyLevel, int] | None:
        """Return ``(level, id)`` of the most specific selected entity."""
        for level, entity_id in (
            (HierarchyLevel.WORKSPACE, self.workspace_id),
            (HierarchyLevel.APP, self.app_id),
            (HierarchyLevel.DOMAIN, self.domain_id),
            (HierarchyLevel.ECOSYSTEM, self.ecosystem_id),
        ):
            if entity_id is not None:
                return level, entity_id
        return None

    def to_dict(self) -> dict[str, int | None]:
        return {
            "ecosystem_id": self.ecosystem_id,
            "domain_id": self.domain_id,
            "app_id": self.app_id,
            "workspace_id": self.workspace_id,
        }
