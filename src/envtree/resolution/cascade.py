"""Generic cascading-override walk: workspace > app > domain > ecosystem > global.

Resolution order (checked in order, first explicit value wins):
1. WORKSPACE  -- override stored on the starting workspace
2. APP        -- override stored on its app
3. DOMAIN     -- override stored on its domain
4. ECOSYSTEM  -- override stored on its ecosystem
5. GLOBAL     -- global config / built-in default
6. ENVIRONMENT (optional) -- applied after the walk and wins whenever set

The walker is configured per setting kind with a per-level lookup function,
an optional global fallback and an optional final override. Lookup failures
are recorded on the trace and treated as "absent at this level" so a broken
level never blocks inheritance from its ancestors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from envtree.hierarchy.models import ENTITY_LEVELS, Entity, HierarchyLevel
from envtree.hierarchy.store import HierarchyStore, StoreError

logger = logging.getLogger(__name__)

LevelLookup = Callable[[HierarchyLevel, int, str], str | None]
KeyLookup = Callable[[str], str | None]

_REDACTED = "********"


# ---------------------------------------------------------------------------
# Public data types
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class TraceStep:
    """One level examined during a cascade walk."""

    level: HierarchyLevel
    entity_name: str
    entity_id: int | None = None
    found: bool = False
    value: str | None = None
    error: str | None = None

    def to_dict(self, *, reveal: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "level": self.level.value,
            "name": self.entity_name,
            "found": self.found,
        }
        if self.entity_id is not None:
            payload["id"] = self.entity_id
        if self.value is not None:
            payload["value"] = self.value if reveal else _REDACTED
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class ResolutionTrace:
    """Ordered steps of a cascade walk, most specific first."""

    steps: list[TraceStep] = field(default_factory=list)

    def append(self, step: TraceStep) -> None:
        self.steps.append(step)

    def __iter__(self) -> Iterator[TraceStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def first_found(self) -> TraceStep | None:
        return next((step for step in self.steps if step.found), None)

    def levels(self) -> list[HierarchyLevel]:
        return [step.level for step in self.steps]

    def errors(self) -> list[TraceStep]:
        return [step for step in self.steps if step.error is not None]

    def to_list(self, *, reveal: bool = True) -> list[dict[str, Any]]:
        return [step.to_dict(reveal=reveal) for step in self.steps]


@dataclass(frozen=True)
class CascadeResult:
    """Effective value of a setting plus the trace that produced it."""

    key: str
    value: str | None
    source: HierarchyLevel | None
    source_name: str | None
    trace: ResolutionTrace

    @property
    def found(self) -> bool:
        return self.value is not None

    def describe_source(self) -> str:
        if self.source is None:
            return "not set"
        if self.source in (HierarchyLevel.GLOBAL, HierarchyLevel.ENVIRONMENT):
            return self.source_name or self.source.value
        return f"{self.source.value} '{self.source_name}'"

    def to_dict(self, *, reveal: bool = True) -> dict[str, Any]:
        value = self.value
        if value is not None and not reveal:
            value = _REDACTED
        return {
            "key": self.key,
            "value": value,
            "source": self.source.value if self.source is not None else None,
            "source_name": self.source_name,
            "trace": self.trace.to_list(reveal=reveal),
        }


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------

class CascadeResolver:
    """Walk from a starting entity toward the root looking for ``key``.

    Args:
        store: Hierarchy store used to follow parent references.
        lookup: ``(level, entity_id, key) -> value | None`` for explicit
            overrides stored on an entity.
        levels: Entity levels whose overrides are examined. Levels left out
            are still traversed to reach their parents.
        global_lookup: Fallback after the ecosystem, ``(key) -> value | None``.
        global_label: Name recorded on the global trace step.
        final_override: Applied after the walk; a non-empty value replaces
            whatever the hierarchy produced.
        final_label: Name recorded on the final-override trace step.
        lookup_errors: Exception types raised by lookups that mean "absent
            at this level" rather than a fatal error.
    """

    def __init__(
        self,
        store: HierarchyStore,
        lookup: LevelLookup,
        *,
        levels: Sequence[HierarchyLevel] = ENTITY_LEVELS,
        global_lookup: KeyLookup | None = None,
        global_label: str = "global default",
        final_override: KeyLookup | None = None,
        final_label: str = "process environment",
        lookup_errors: tuple[type[Exception], ...] = (StoreError,),
    ) -> None:
        unknown = [level for level in levels if not level.is_entity_level]
        if unknown:
            raise ValueError(f"Not hierarchy entity levels: {', '.join(level.value for level in unknown)}")
        self.store = store
        self.lookup = lookup
        self.levels = tuple(levels)
        self.global_lookup = global_lookup
        self.global_label = global_label
        self.final_override = final_override
        self.final_label = final_label
        self.lookup_errors = lookup_errors

    def resolve(self, start_level: HierarchyLevel, start_id: int, key: str) -> CascadeResult:
        """Return the effective value of ``key`` starting at ``start_level``/``start_id``."""
        if not start_level.is_entity_level:
            raise ValueError(f"Cascade must start at a hierarchy entity, not {start_level.value}")

        trace = ResolutionTrace()
        level, entity_id = start_level, start_id

        while True:
            entity = self._load(level, entity_id, trace)
            if entity is None:
                break

            if level in self.levels:
                step = self._lookup_step(entity, key)
                trace.append(step)
                if step.found:
                    return self._finish(key, step, trace)

            if level is HierarchyLevel.ECOSYSTEM:
                break
            level, entity_id = level.parent, entity.parent_id

        return self._finish(key, self._global_step(key, trace), trace)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _load(self, level: HierarchyLevel, entity_id: int, trace: ResolutionTrace) -> Entity | None:
        """Load the entity at this level; a failure ends the hierarchy walk."""
        try:
            entity = self.store.get_entity(level, entity_id)
        except StoreError as exc:
            logger.warning("Cannot load %s %s during cascade: %s", level.value, entity_id, exc)
            trace.append(
                TraceStep(level=level, entity_name="", entity_id=entity_id, error=str(exc))
            )
            return None

        if entity is None:
            trace.append(
                TraceStep(
                    level=level,
                    entity_name="",
                    entity_id=entity_id,
                    error=f"{level.value} {entity_id} not found",
                )
            )
        return entity

    def _lookup_step(self, entity: Entity, key: str) -> TraceStep:
        step = TraceStep(level=entity.level, entity_name=entity.name, entity_id=entity.id)
        try:
            value = self.lookup(entity.level, entity.id, key)
        except self.lookup_errors as exc:
            logger.warning(
                "Lookup of %r at %s '%s' failed, inheriting from parent: %s",
                key,
                entity.level.value,
                entity.name,
                exc,
            )
            step.error = str(exc)
            return step

        if value:
            step.found = True
            step.value = value
        return step

    def _global_step(self, key: str, trace: ResolutionTrace) -> TraceStep | None:
        if self.global_lookup is None:
            return None

        step = TraceStep(level=HierarchyLevel.GLOBAL, entity_name=self.global_label)
        try:
            value = self.global_lookup(key)
        except self.lookup_errors as exc:
            logger.warning("Global lookup of %r failed: %s", key, exc)
            step.error = str(exc)
            value = None

        if value:
            step.found = True
            step.value = value
        trace.append(step)
        return step if step.found else None

    def _finish(self, key: str, winner: TraceStep | None, trace: ResolutionTrace) -> CascadeResult:
        if self.final_override is not None:
            override = self.final_override(key)
            step = TraceStep(level=HierarchyLevel.ENVIRONMENT, entity_name=self.final_label)
            if override:
                step.found = True
                step.value = override
                winner = step
            trace.append(step)

        if winner is None:
            return CascadeResult(key=key, value=None, source=None, source_name=None, trace=trace)
        return CascadeResult(
            key=key,
            value=winner.value,
            source=winner.level,
            source_name=winner.entity_name,
            trace=trace,
        )
