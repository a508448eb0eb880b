"""Graph nodes and edges.

A graph holds two kinds of node:

- ``ScreenStateNode``: a stable, observable state of the app under test. It
  owns the outgoing edges declared by its builder.
- ``ScreenActionNode``: a transient gesture. It mutates user state and may
  lead on to a destination node.

Nodes never hold a reference to the graph. Actions declared from inside a
screen-state builder are queued on the node and registered by the graph when
it finalizes.
"""
from __future__ import annotations

import inspect
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Union

if TYPE_CHECKING:
    from .navigator import Navigator
    from .state import UserState

Predicate = Callable[["UserState"], bool]
SideEffect = Callable[["UserState"], Any]
Interaction = Callable[[], Any]
NavigatorCallback = Callable[["Navigator"], Any]
ScreenStateBuilder = Callable[["ScreenStateNode"], Any]

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class NodeKind(str, Enum):
    SCREEN_STATE = "screen_state"
    SCREEN_ACTION = "screen_action"


@dataclass(frozen=True)
class DeclarationSite:
    """Where in user code a node was declared."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"

    @classmethod
    def capture(cls) -> DeclarationSite:
        """Return the first caller frame that lives outside this package."""
        frame = inspect.currentframe()
        try:
            while frame is not None:
                filename = os.path.abspath(frame.f_code.co_filename)
                if not filename.startswith(_PACKAGE_DIR + os.sep):
                    return cls(frame.f_code.co_filename, frame.f_lineno)
                frame = frame.f_back
        finally:
            del frame
        return cls("<unknown>", 0)


@dataclass(frozen=True)
class Edge:
    """Directed connection out of a screen state.

    Attributes:
        destination: Name of the node this edge leads to
        predicate: Gate evaluated against the live user state; None means
            always traversable
        label: Human readable description of the predicate (for rendering)
        interaction: Opaque UI call performed when the edge is traversed
    """

    destination: str
    predicate: Predicate | None = None
    label: str | None = None
    interaction: Interaction | None = None

    @property
    def is_conditional(self) -> bool:
        return self.predicate is not None

    def is_open(self, user_state: UserState) -> bool:
        return self.predicate is None or bool(self.predicate(user_state))


@dataclass(frozen=True)
class ConditionalEdge:
    """Flattened view of a predicated edge, computed once at finalize."""

    source: str
    destination: str
    predicate: Predicate
    label: str | None = None


@dataclass(frozen=True)
class PendingAction:
    """An action declared inside a builder, waiting to be registered."""

    name: str
    transition_to: str | None
    side_effect: SideEffect | None
    site: DeclarationSite


def _describe(predicate: Predicate | None, label: str | None) -> str | None:
    if label or predicate is None:
        return label
    name = getattr(predicate, "__name__", None)
    if name and name != "<lambda>":
        return name
    return None


@dataclass(eq=False)
class ScreenStateNode:
    """A stable screen. Builders use the methods below to declare its exits."""

    name: str
    site: DeclarationSite
    builder: ScreenStateBuilder | None = None
    dismiss_on_use: bool = False
    back_action: Interaction | None = None
    on_enter_effects: list[SideEffect] = field(default_factory=list)
    edges: dict[str, Edge] = field(default_factory=dict)
    pending_actions: list[PendingAction] = field(default_factory=list)

    kind = NodeKind.SCREEN_STATE

    @property
    def has_back(self) -> bool:
        return self.back_action is not None

    def gesture(
        self,
        to: str,
        interaction: Interaction | None = None,
        when: Predicate | None = None,
        label: str | None = None,
    ) -> None:
        """Declare an edge to another node.

        Declaring a second edge to the same destination replaces the first
        but keeps its position in declaration order.

        Args:
            to: Destination node name
            interaction: UI call to perform when travelling this edge
            when: Predicate over user state gating the edge
            label: Description of the predicate for rendering
        """
        self.edges[to] = Edge(
            destination=to,
            predicate=when,
            label=_describe(when, label),
            interaction=interaction,
        )

    def noop(self, to: str, when: Predicate | None = None, label: str | None = None) -> None:
        """Declare an edge that needs no interaction (the app moves by itself)."""
        self.gesture(to, interaction=None, when=when, label=label)

    def action(
        self,
        name: str,
        transition_to: str | None = None,
        side_effect: SideEffect | None = None,
        interaction: Interaction | None = None,
        when: Predicate | None = None,
        label: str | None = None,
    ) -> None:
        """Declare a named action reachable from this screen.

        The action node is registered (or merged with an existing declaration)
        when the graph finalizes.

        Args:
            name: Action name, used with ``Navigator.perform_action``
            transition_to: Node the action leads to; None keeps the navigator
                where it is
            side_effect: Mutation applied to the user state when performed
            interaction: UI call to perform the gesture
            when: Predicate gating the action from this screen
            label: Description of the predicate for rendering
        """
        self.pending_actions.append(
            PendingAction(name, transition_to, side_effect, DeclarationSite.capture())
        )
        self.gesture(name, interaction=interaction, when=when, label=label)

    def on_enter(self, side_effect: SideEffect) -> SideEffect:
        """Add a side-effect fired every time the navigator enters this screen.

        Returns the callable so it can be used as a decorator.
        """
        self.on_enter_effects.append(side_effect)
        return side_effect


@dataclass(frozen=True, eq=False)
class ScreenActionNode:
    """A transient gesture. Immutable; merging produces a new node."""

    name: str
    site: DeclarationSite
    destination: str | None = None
    side_effects: tuple[SideEffect, ...] = ()
    navigator_callbacks: tuple[NavigatorCallback, ...] = ()

    kind = NodeKind.SCREEN_ACTION

    def merged_with(self, other: ScreenActionNode) -> ScreenActionNode:
        """Combine two compatible declarations; ours fire first."""
        return replace(
            self,
            destination=self.destination or other.destination,
            side_effects=self.side_effects + other.side_effects,
            navigator_callbacks=self.navigator_callbacks + other.navigator_callbacks,
        )


GraphNode = Union[ScreenStateNode, ScreenActionNode]
