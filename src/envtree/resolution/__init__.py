"""Entity resolution and cascading override resolution."""

from envtree.resolution.cascade import (
    CascadeResolver,
    CascadeResult,
    ResolutionTrace,
    TraceStep,
)
from envtree.resolution.errors import (
    AmbiguousError,
    NotFoundError,
    ResolutionError,
    is_ambiguous_error,
    is_not_found_error,
)
from envtree.resolution.resolver import (
    Ambiguous,
    EntityResolver,
    Found,
    NotFound,
    ResolutionOutcome,
)

__all__ = [
    "Ambiguous",
    "AmbiguousError",
    "CascadeResolver",
    "CascadeResult",
    "EntityResolver",
    "Found",
    "NotFound",
    "NotFoundError",
    "ResolutionError",
    "ResolutionOutcome",
    "ResolutionTrace",
    "TraceStep",
    "is_ambiguous_error",
    "is_not_found_error",
]
