"""Exceptions raised while building or navigating a screen graph."""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .nodes import DeclarationSite


class ScreenGraphError(Exception):
    """Base class for every screengraph failure."""


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════════════

class ConstructionConflict(ScreenGraphError):
    """A declaration clashed with an earlier one.

    Conflicts are collected on the graph rather than raised, so every problem
    in a graph definition surfaces in one go.

    Attributes:
        name: Node name the conflict is about
        sites: Declaration sites involved (existing first, offending last)
    """

    def __init__(self, name: str, message: str, sites: Iterable[DeclarationSite] = ()):
        self.name = name
        self.message = message
        self.sites = tuple(sites)
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.sites:
            return self.message
        where = ", ".join(str(site) for site in self.sites)
        return f"{self.message} (declared at {where})"


class GraphConstructionError(ScreenGraphError):
    """Raised by ``ScreenGraph.check()`` when conflicts were recorded."""

    def __init__(self, conflicts: Iterable[ConstructionConflict]):
        self.conflicts = tuple(conflicts)
        lines = [f"{len(self.conflicts)} construction conflict(s):"]
        lines.extend(f"  - {c}" for c in self.conflicts)
        super().__init__("\n".join(lines))


class GraphFinalizedError(ScreenGraphError):
    """Raised when declaring nodes on a graph that has already been finalized."""


# ═══════════════════════════════════════════════════════════════════════════════
# NAVIGATION
# ═══════════════════════════════════════════════════════════════════════════════

class NavigationError(ScreenGraphError):
    """Base class for per-call navigation failures. The session stays usable."""


class UnreachableTarget(NavigationError):
    def __init__(self, source: str, target: str, reason: str | None = None):
        self.source = source
        self.target = target
        message = f"No route from {source} to {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnknownAction(NavigationError):
    def __init__(self, name: str, current: str, reason: str | None = None):
        self.name = name
        self.current = current
        message = f"Action {name} cannot be performed from {current}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class EmptyHistory(NavigationError):
    def __init__(self, current: str):
        self.current = current
        super().__init__(f"Cannot go back from {current}: history is empty")


class ActionFailed(NavigationError):
    """User code raised while planning or replaying a route.

    Covers interactions, side-effects, on-enter effects and edge predicates.
    The navigator cursor stays at ``last_screen``, the last screen state that
    was entered successfully.
    """

    def __init__(self, step: str, last_screen: str, cause: BaseException):
        self.step = step
        self.last_screen = last_screen
        self.cause = cause
        super().__init__(f"{step} failed while at {last_screen}: {cause!r}")


class InitializationFailure(ScreenGraphError):
    """No resolvable initial screen state; the navigator cannot start."""
