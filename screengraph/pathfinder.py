"""Shortest-route search over a finalized screen graph."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Sequence

from .errors import ActionFailed, UnreachableTarget
from .nodes import Edge, NodeKind

if TYPE_CHECKING:
    from .graph import FinalizedGraph
    from .state import UserState

logger = logging.getLogger(__name__)

# (node, last screen state entered, history entries still reachable)
_State = tuple[str, str, int | None]


@dataclass(frozen=True)
class Hop:
    """One step of a route.

    ``edge`` is the declared edge being travelled; it is None for a dynamic
    back hop, whose destination comes from the back-stack.
    """

    source: str
    destination: str
    edge: Edge | None = None
    is_back: bool = False


@dataclass(frozen=True)
class Route:
    source: str
    hops: tuple[Hop, ...] = ()

    def __iter__(self) -> Iterator[Hop]:
        return iter(self.hops)

    def __len__(self) -> int:
        return len(self.hops)

    @property
    def target(self) -> str:
        return self.hops[-1].destination if self.hops else self.source

    @property
    def nodes(self) -> list[str]:
        return [self.source, *(hop.destination for hop in self.hops)]


class PathFinder:
    """Breadth-first search over the edges open under the current user state.

    All edges weigh the same, so BFS finds a shortest route. Neighbours are
    explored in declaration order, then the back hop, so among equally short
    routes the one declared first at each decision point wins.

    Where a back hop leads depends on the back-stack, so the search runs over
    states rather than nodes. A state is ``(node, anchor, depth)``: the node,
    the last screen state entered, and how many entries of the navigator's
    history are still on top of the simulated stack. ``depth`` becomes None
    once the route itself pushes a screen. Popping a screen the route pushed
    only returns to a state the route already passed through, so such hops
    are never part of a shortest route and are not explored; the older
    history underneath is then out of reach too.

    Predicates are evaluated afresh on every call; nothing is cached between
    calls because the user state may have changed.
    """

    def __init__(self, graph: FinalizedGraph):
        self.graph = graph

    def route(
        self,
        source: str,
        target: str,
        user_state: UserState,
        history: Sequence[str] = (),
    ) -> Route:
        """Find the shortest route from ``source`` to ``target``.

        Args:
            source: Node to start from (normally the navigator's screen)
            target: Node to reach
            user_state: State the edge predicates are evaluated against
            history: Navigator back-stack, oldest first

        Returns:
            The route; empty when source and target are the same

        Raises:
            UnreachableTarget: If either node is unknown or no open route exists
            ActionFailed: If an edge predicate raised
        """
        if source not in self.graph:
            raise UnreachableTarget(source, target, f"{source} is not in the graph")
        if target not in self.graph:
            raise UnreachableTarget(source, target, f"{target} is not in the graph")
        if source == target:
            return Route(source)

        history = tuple(history)
        closed = self._closed_edges(source, user_state)

        # BFS initialization
        start: _State = (source, source, len(history))
        queue = deque([start])
        visited = {start}
        parent: dict[_State, tuple[_State, Hop]] = {}

        while queue:
            state = queue.popleft()

            for hop, next_state in self._hops(state, history, closed):
                if next_state in visited:
                    continue

                visited.add(next_state)
                parent[next_state] = (state, hop)

                if hop.destination == target:
                    route = self._reconstruct(parent, start, next_state)
                    logger.debug("Route %s -> %s: %s", source, target, " > ".join(route.nodes))
                    return route

                queue.append(next_state)

        raise UnreachableTarget(source, target)

    def can_reach(
        self,
        source: str,
        target: str,
        user_state: UserState,
        history: Sequence[str] = (),
    ) -> bool:
        try:
            self.route(source, target, user_state, history)
        except UnreachableTarget:
            return False
        return True

    def _closed_edges(self, source: str, user_state: UserState) -> set[tuple[str, str]]:
        closed = set()
        for edge in self.graph.conditional_edges:
            try:
                is_open = edge.predicate(user_state)
            except Exception as exc:
                step = f"condition on {edge.source} -> {edge.destination}"
                if edge.label:
                    step += f" ({edge.label})"
                logger.error("%s failed at %s: %s", step, source, exc)
                raise ActionFailed(step, source, exc) from exc
            if not is_open:
                closed.add((edge.source, edge.destination))
        return closed

    def _hops(
        self,
        state: _State,
        history: tuple[str, ...],
        closed: set[tuple[str, str]],
    ) -> Iterator[tuple[Hop, _State]]:
        current, anchor, depth = state
        for edge in self.graph.edges_from(current):
            if (current, edge.destination) in closed:
                continue
            yield Hop(current, edge.destination, edge), self._advance(anchor, depth, edge.destination)

        if current in self.graph.backable_screens and depth:
            previous = history[depth - 1]
            yield Hop(current, previous, is_back=True), (previous, previous, depth - 1)

    def _advance(self, anchor: str, depth: int | None, destination: str) -> _State:
        """Simulate the back-stack the navigator would have after a forward hop."""
        node = self.graph.node(destination)
        if node.kind is not NodeKind.SCREEN_STATE:
            return destination, anchor, depth
        if destination != anchor and self.graph.is_screen_state(anchor) and not self.graph.node(anchor).dismiss_on_use:
            depth = None
        return destination, destination, depth

    @staticmethod
    def _reconstruct(parent: dict[_State, tuple[_State, Hop]], start: _State, end: _State) -> Route:
        hops = []
        state = end

        # Walk backwards from the target state to the start
        while state != start:
            state, hop = parent[state]
            hops.append(hop)

        hops.reverse()
        return Route(start[0], tuple(hops))
