"""Exception hierarchy for entity resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from envtree.hierarchy.models import HierarchyLevel, ResolutionFilter, ResolvedPath


class ResolutionError(Exception):
    """Base exception for resolution errors."""
    pass


class NotFoundError(ResolutionError):
    """No entity matches the given filter."""

    def __init__(
        self,
        filter: "ResolutionFilter",
        level: "HierarchyLevel | None" = None,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            filter: The filter that matched nothing
            level: Level that was being resolved (defaults to workspace)
            message: Optional custom message
        """
        self.filter = filter
        self.level = level
        noun = f"{level.value}s" if level is not None else "workspaces"
        super().__init__(message or f"No {noun} found matching {filter.describe()}")

    def hint(self) -> str:
        """Operator guidance for recovering from the miss."""
        return "Run 'envtree get workspaces' to list what exists, then narrow with -e/-d/-a/-w."


class AmbiguousError(ResolutionError):
    """More than one entity matches; the caller must narrow the filter.

    Candidates are kept sorted by full path so the disambiguation list is
    stable between invocations.
    """

    def __init__(
        self,
        filter: "ResolutionFilter",
        matches: "list[ResolvedPath]",
        level: "HierarchyLevel | None" = None,
    ):
        self.filter = filter
        self.matches = sorted(matches, key=lambda match: match.full_path())
        self.level = level
        noun = f"{level.value}s" if level is not None else "workspaces"
        super().__init__(f"ambiguous: {len(self.matches)} {noun} match {filter.describe()}")

    @property
    def candidates(self) -> list[str]:
        """Full paths of every matching entity, sorted."""
        return [match.full_path() for match in self.matches]

    def format_disambiguation(self) -> str:
        """Return a numbered list of matches with narrowing hints."""
        noun = f"{self.level.value}s" if self.level is not None else "workspaces"
        lines = [f"Multiple {noun} ({len(self.matches)}) match your criteria:", ""]
        for index, match in enumerate(self.matches, start=1):
            lines.append(f"  {index}. {match.full_path()}")
        lines.extend(
            [
                "",
                "Use additional flags to narrow your selection:",
                "  -e <ecosystem>  Filter by ecosystem",
                "  -d <domain>     Filter by domain",
                "  -a <app>        Filter by app",
                "  -w <workspace>  Filter by workspace name",
            ]
        )
        return "\n".join(lines) + "\n"


def is_ambiguous_error(err: BaseException | None) -> bool:
    return isinstance(err, AmbiguousError)


def is_not_found_error(err: BaseException | None) -> bool:
    return isinstance(err, NotFoundError)
