"""Screen graph construction.

Graphs are built in two phases. A ``ScreenGraph`` accumulates declarations;
``finalize()`` runs every screen-state builder exactly once and produces a
``FinalizedGraph``, an immutable value that navigators share read-only.

Usage:
    graph = ScreenGraph(ShopState)

    @graph.screen_state("Home")
    def home(screen):
        screen.gesture(to="Cart", interaction=lambda: app.tap("cart"))
        screen.action("addItem", transition_to="Home",
                      side_effect=lambda s: s.remember(cart_items=s.cart_items + 1))

    nav = graph.navigator()
    nav.goto("Cart")
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Mapping

from .errors import ConstructionConflict, GraphConstructionError, GraphFinalizedError, ScreenGraphError
from .nodes import (
    ConditionalEdge,
    DeclarationSite,
    Edge,
    GraphNode,
    NavigatorCallback,
    NodeKind,
    ScreenActionNode,
    ScreenStateBuilder,
    ScreenStateNode,
    SideEffect,
)
from .settings import Settings, load_settings
from .state import UserState

if TYPE_CHECKING:
    from .navigator import Navigator

logger = logging.getLogger(__name__)

UserStateFactory = Callable[[], UserState]


@dataclass(frozen=True)
class NodeView:
    """Read-only description of a node, for renderers."""

    name: str
    kind: NodeKind
    dismiss_on_use: bool = False


@dataclass(frozen=True)
class EdgeView:
    """Read-only description of an edge, for renderers."""

    source: str
    destination: str
    destination_kind: NodeKind
    label: str | None = None
    is_conditional: bool = False
    is_backable: bool = False


class FinalizedGraph:
    """Immutable graph produced by ``ScreenGraph.finalize()``.

    Holds the node registry, the adjacency (outgoing edges per node, in
    declaration order, with edges to unknown nodes dropped), the flattened
    list of conditional edges, and the screens that can be left with a
    dynamic "back" transition.
    """

    def __init__(
        self,
        nodes: Mapping[str, GraphNode],
        shortcuts: Iterable[str],
        diagnostics: Iterable[ConstructionConflict],
        user_state_factory: UserStateFactory,
    ):
        self._nodes: Mapping[str, GraphNode] = MappingProxyType(dict(nodes))
        self._shortcuts = tuple(shortcuts)
        self._diagnostics = tuple(diagnostics)
        self.user_state_factory = user_state_factory

        adjacency: dict[str, tuple[Edge, ...]] = {}
        conditional: list[ConditionalEdge] = []
        for name, node in self._nodes.items():
            if node.kind is NodeKind.SCREEN_STATE:
                edges = []
                for edge in node.edges.values():
                    if edge.destination not in self._nodes:
                        logger.debug("Dropping edge %s -> %s: unknown destination", name, edge.destination)
                        continue
                    edges.append(edge)
                    if edge.predicate is not None:
                        conditional.append(
                            ConditionalEdge(name, edge.destination, edge.predicate, edge.label)
                        )
                adjacency[name] = tuple(edges)
            elif node.kind is NodeKind.SCREEN_ACTION:
                if node.destination is None:
                    adjacency[name] = ()
                elif node.destination not in self._nodes:
                    logger.debug("Dropping edge %s -> %s: unknown destination", name, node.destination)
                    adjacency[name] = ()
                else:
                    adjacency[name] = (Edge(destination=node.destination),)
            else:  # pragma: no cover
                raise ScreenGraphError(f"Unknown node kind for {name}: {node.kind!r}")

        self._adjacency: Mapping[str, tuple[Edge, ...]] = MappingProxyType(adjacency)
        self._conditional_edges = tuple(conditional)
        self._backable = frozenset(
            name
            for name, node in self._nodes.items()
            if node.kind is NodeKind.SCREEN_STATE and node.has_back
        )

    # ─── registry ────────────────────────────────────────────────────────────

    @property
    def nodes(self) -> Mapping[str, GraphNode]:
        return self._nodes

    @property
    def conditional_edges(self) -> tuple[ConditionalEdge, ...]:
        return self._conditional_edges

    @property
    def backable_screens(self) -> frozenset[str]:
        return self._backable

    @property
    def shortcuts(self) -> tuple[str, ...]:
        """Names registered with ``add_navigator_action``."""
        return self._shortcuts

    @property
    def diagnostics(self) -> tuple[ConstructionConflict, ...]:
        return self._diagnostics

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def node(self, name: str) -> GraphNode | None:
        return self._nodes.get(name)

    def is_screen_state(self, name: str) -> bool:
        node = self._nodes.get(name)
        return node is not None and node.kind is NodeKind.SCREEN_STATE

    def is_screen_action(self, name: str) -> bool:
        node = self._nodes.get(name)
        return node is not None and node.kind is NodeKind.SCREEN_ACTION

    def screen_states(self) -> list[str]:
        return [name for name, node in self._nodes.items() if node.kind is NodeKind.SCREEN_STATE]

    def edges_from(self, name: str) -> tuple[Edge, ...]:
        return self._adjacency.get(name, ())

    # ─── rendering surface ───────────────────────────────────────────────────

    def iter_nodes(self) -> Iterator[NodeView]:
        for name, node in self._nodes.items():
            if node.kind is NodeKind.SCREEN_STATE:
                yield NodeView(name, node.kind, node.dismiss_on_use)
            else:
                yield NodeView(name, node.kind)

    def iter_edges(self) -> Iterator[EdgeView]:
        for source in self._nodes:
            for edge in self._adjacency[source]:
                dest = self._nodes[edge.destination]
                yield EdgeView(
                    source=source,
                    destination=edge.destination,
                    destination_kind=dest.kind,
                    label=edge.label,
                    is_conditional=edge.is_conditional,
                    is_backable=edge.destination in self._backable,
                )

    # ─── sessions ────────────────────────────────────────────────────────────

    def navigator(self, starting_at: str | None = None) -> Navigator:
        """Start a navigation session with a fresh user state."""
        from .navigator import Navigator

        return Navigator(self, self.user_state_factory(), starting_at=starting_at)


class ScreenGraph:
    """Builder for a graph of screen states and screen actions.

    Construction problems do not raise. They are recorded as
    ``ConstructionConflict`` diagnostics, the offending declaration is
    rejected, and construction carries on so all problems surface together.
    """

    def __init__(
        self,
        user_state_factory: UserStateFactory = UserState,
        settings: Settings | None = None,
    ):
        self.user_state_factory = user_state_factory
        self.settings = settings or load_settings()

        self._nodes: dict[str, GraphNode] = {}
        self._shortcuts: dict[str, None] = {}
        self._diagnostics: list[ConstructionConflict] = []

        self._lock = threading.RLock()
        self._building = False
        self._finalized: FinalizedGraph | None = None
        self._failure: BaseException | None = None

    @property
    def diagnostics(self) -> tuple[ConstructionConflict, ...]:
        return tuple(self._diagnostics)

    @property
    def is_finalized(self) -> bool:
        return self._finalized is not None

    # ═══════════════════════════════════════════════════════════════════════════
    # DECLARATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    def add_screen_state(self, name: str, builder: ScreenStateBuilder | None = None) -> None:
        """Declare a screen state.

        The builder runs once, when the graph is finalized, and receives the
        ``ScreenStateNode`` to declare its exits on.

        Args:
            name: Unique screen name
            builder: Callable declaring the screen's edges
        """
        self._ensure_open()
        site = DeclarationSite.capture()
        existing = self._nodes.get(name)
        if existing is not None:
            if existing.kind is NodeKind.SCREEN_STATE:
                message = f"Screen state {name} is declared more than once"
            else:
                message = f"Screen state {name} conflicts with an identically named action"
            self._record(ConstructionConflict(name, message, (existing.site, site)))
            return
        self._nodes[name] = ScreenStateNode(name=name, site=site, builder=builder)

    def screen_state(self, name: str) -> Callable[[ScreenStateBuilder], ScreenStateBuilder]:
        """Decorator form of ``add_screen_state``.

        Usage:
            @graph.screen_state("Settings")
            def settings(screen):
                screen.back_action = press_back
        """
        def decorator(builder: ScreenStateBuilder) -> ScreenStateBuilder:
            self.add_screen_state(name, builder)
            return builder
        return decorator

    def add_screen_action(
        self,
        name: str,
        transition_to: str | None = None,
        side_effect: SideEffect | None = None,
    ) -> None:
        """Declare (or re-declare) a screen action.

        Re-declaring is allowed when both declarations lead to the same node
        or one of them leads nowhere. Side-effects of all declarations fire,
        oldest first.
        """
        self._ensure_open()
        self._add_or_merge_action(name, transition_to, side_effect, DeclarationSite.capture())

    def add_action_chain(
        self,
        names: list[str],
        final_state: str | None = None,
        side_effect: SideEffect | None = None,
    ) -> None:
        """Declare actions that lead one into the next.

        ``names[i]`` transitions to ``names[i + 1]``; the last one transitions
        to ``final_state``. Only the first action carries the side-effect.
        The chain is rejected when the first name is already taken or
        ``final_state`` is not an already declared screen state.
        """
        self._ensure_open()
        if not names:
            return
        site = DeclarationSite.capture()

        first = names[0]
        existing = self._nodes.get(first)
        if existing is not None:
            self._record(ConstructionConflict(
                first,
                f"Action {first} is defined elsewhere, but should be unique",
                (existing.site, site),
            ))
            return

        if final_state is not None:
            target = self._nodes.get(final_state)
            if target is None or target.kind is not NodeKind.SCREEN_STATE:
                sites = (site,) if target is None else (target.site, site)
                self._record(ConstructionConflict(
                    final_state, f"Expected {final_state} to be a screen state", sites
                ))
                return

        for i, name in enumerate(names):
            next_name = names[i + 1] if i + 1 < len(names) else final_state
            self._add_or_merge_action(name, next_name, side_effect if i == 0 else None, site)

    def add_navigator_action(self, name: str, callback: NavigatorCallback) -> None:
        """Register a shortcut performable from anywhere.

        The callback receives the navigator and usually drives it further,
        e.g. ``nav.perform_action("deleteAll"); nav.perform_action("addItem")``.
        The name also becomes a destination-less action node, so other actions
        may transition into it.
        """
        self._ensure_open()
        site = DeclarationSite.capture()
        if self._add_or_merge_action(name, None, None, site, callback):
            self._shortcuts[name] = None

    # ═══════════════════════════════════════════════════════════════════════════
    # FINALIZE
    # ═══════════════════════════════════════════════════════════════════════════

    def finalize(self) -> FinalizedGraph:
        """Run the builders and freeze the graph. Idempotent and thread-safe.

        Builders run at most once. If one of them raises, the graph is broken
        and every later call raises ``ScreenGraphError`` chained to that failure.
        """
        if self._finalized is None:
            with self._lock:
                if self._finalized is None:
                    if self._building:
                        raise ScreenGraphError("finalize() was called from inside a screen-state builder")
                    if self._failure is not None:
                        raise ScreenGraphError(
                            f"The screen graph failed to finalize earlier: {self._failure!r}"
                        ) from self._failure
                    self._building = True
                    try:
                        self._finalized = self._build()
                    except Exception as exc:
                        self._failure = exc
                        logger.error("Finalizing the screen graph failed: %s", exc)
                        raise
                    finally:
                        self._building = False
        if self.settings.SCREENGRAPH_STRICT:
            self.check()
        return self._finalized

    def check(self) -> None:
        """Raise ``GraphConstructionError`` if any conflict was recorded."""
        if self._diagnostics:
            raise GraphConstructionError(self._diagnostics)

    def navigator(self, starting_at: str | None = None) -> Navigator:
        """Finalize (once) and start a navigation session."""
        return self.finalize().navigator(starting_at=starting_at)

    # ═══════════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════════

    def _build(self) -> FinalizedGraph:
        # Builders may declare further screen states, so keep going until
        # every screen state has had its builder run.
        built: set[str] = set()
        while True:
            todo = [
                node
                for node in self._nodes.values()
                if node.kind is NodeKind.SCREEN_STATE and node.name not in built
            ]
            if not todo:
                break
            for node in todo:
                built.add(node.name)
                if node.builder is not None:
                    node.builder(node)
                for pending in node.pending_actions:
                    self._add_or_merge_action(
                        pending.name, pending.transition_to, pending.side_effect, pending.site
                    )
                node.pending_actions.clear()

        graph = FinalizedGraph(
            nodes=self._nodes,
            shortcuts=self._shortcuts,
            diagnostics=self._diagnostics,
            user_state_factory=self.user_state_factory,
        )
        logger.info(
            "Finalized screen graph (screens=%d, actions=%d, conditional_edges=%d, conflicts=%d)",
            len(graph.screen_states()),
            len(graph.nodes) - len(graph.screen_states()),
            len(graph.conditional_edges),
            len(self._diagnostics),
        )
        return graph

    def _add_or_merge_action(
        self,
        name: str,
        transition_to: str | None,
        side_effect: SideEffect | None,
        site: DeclarationSite,
        callback: NavigatorCallback | None = None,
    ) -> bool:
        node = ScreenActionNode(
            name=name,
            site=site,
            destination=transition_to,
            side_effects=(side_effect,) if side_effect is not None else (),
            navigator_callbacks=(callback,) if callback is not None else (),
        )
        existing = self._nodes.get(name)
        if existing is None:
            self._nodes[name] = node
            return True

        if existing.kind is NodeKind.SCREEN_STATE:
            self._record(ConstructionConflict(
                name,
                f"Action {name} conflicts with an identically named screen state",
                (existing.site, site),
            ))
            return False

        if (
            existing.destination is not None
            and transition_to is not None
            and existing.destination != transition_to
        ):
            self._record(ConstructionConflict(
                name,
                f"Action {name} points to {existing.destination} and to {transition_to}",
                (existing.site, site),
            ))
            return False

        self._nodes[name] = existing.merged_with(node)
        return True

    def _record(self, conflict: ConstructionConflict) -> None:
        logger.warning("%s", conflict)
        self._diagnostics.append(conflict)

    def _ensure_open(self) -> None:
        if self._failure is not None:
            raise GraphFinalizedError("The screen graph failed to finalize and cannot be extended")
        if self._finalized is not None:
            raise GraphFinalizedError("The screen graph has already been finalized")
