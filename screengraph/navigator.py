"""Navigation cursor that replays routes through the app under test."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from .errors import (
    ActionFailed,
    EmptyHistory,
    InitializationFailure,
    NavigationError,
    UnknownAction,
    UnreachableTarget,
)
from .nodes import NodeKind, ScreenActionNode, ScreenStateNode
from .pathfinder import Hop, PathFinder, Route

if TYPE_CHECKING:
    from .graph import FinalizedGraph
    from .state import UserState

logger = logging.getLogger(__name__)


class Navigator:
    """Stack-based navigation over a finalized screen graph.

    The navigator is always at a screen state. It follows the back-stack
    model of a mobile app:
    - Moving forward pushes the screen being left (unless it is
      dismiss-on-use)
    - ``back()`` pops to the previous screen
    - Actions without a destination leave the cursor where it is

    Each navigator owns its user state; several navigators may share one
    graph.
    """

    def __init__(self, graph: FinalizedGraph, user_state: UserState, starting_at: str | None = None):
        """Start a session.

        Args:
            graph: Finalized graph to navigate
            user_state: Fresh user state owned by this session
            starting_at: Screen to start at; defaults to
                ``user_state.initial_screen_state``

        Raises:
            InitializationFailure: If no valid starting screen can be resolved
        """
        self.graph = graph
        self.user_state = user_state
        self.pathfinder = PathFinder(graph)
        self._history: list[str] = []

        name = starting_at or user_state.initial_screen_state
        if not name or not graph.is_screen_state(name):
            raise InitializationFailure(
                f"The app's initial state couldn't be established (start={name!r})"
            )

        user_state.initial_screen_state = name
        self._current = name
        try:
            self._fire_on_enter(name)
        except ActionFailed as exc:
            raise InitializationFailure(str(exc)) from exc
        logger.info("Navigator started at %s", name)

    def __repr__(self) -> str:
        return f"<Navigator at {self._current} history={self._history!r}>"

    # ═══════════════════════════════════════════════════════════════════════════
    # STATE
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def current_screen(self) -> str:
        return self._current

    @property
    def screen_state(self) -> ScreenStateNode:
        return self.graph.node(self._current)

    @property
    def history(self) -> tuple[str, ...]:
        """Back-stack, oldest first."""
        return tuple(self._history)

    # ═══════════════════════════════════════════════════════════════════════════
    # NAVIGATION
    # ═══════════════════════════════════════════════════════════════════════════

    def goto(self, target: str) -> None:
        """Travel to ``target`` along the shortest open route.

        Does nothing if already there.

        Raises:
            UnreachableTarget: If no route is open under the current user state
            ActionFailed: If an edge predicate, interaction or side-effect raised on the way
        """
        if target == self._current:
            return
        self._replay(self.plan(target))

    def perform_action(self, name: str) -> None:
        """Perform a named action.

        An action reachable from the current screen through the graph is
        travelled to. Otherwise, if the name is a navigator shortcut, it is
        performed directly from where the navigator is.

        Raises:
            UnknownAction: If ``name`` is not an action, or cannot be reached
            ActionFailed: If an interaction or side-effect raised
        """
        node = self.graph.node(name)
        if node is None or node.kind is not NodeKind.SCREEN_ACTION:
            raise UnknownAction(name, self._current, "not an action")

        try:
            route = self.plan(name)
        except UnreachableTarget:
            if name not in self.graph.shortcuts:
                raise UnknownAction(name, self._current, "not reachable from here") from None
            logger.debug("Performing shortcut %s from %s", name, self._current)
            here = self._current
            self._perform(node)
            if self._current == here:
                self._settle(node)
            return

        self._replay(route)

    def back(self) -> None:
        """Return to the previous screen on the back-stack.

        Raises:
            EmptyHistory: If there is nowhere to go back to
            ActionFailed: If the screen's back action raised
        """
        if not self._history:
            raise EmptyHistory(self._current)

        node = self.screen_state
        if node.back_action is not None:
            self._call(f"back from {self._current}", node.back_action)

        previous = self._history[-1]
        self._fire_on_enter(previous)
        self._history.pop()
        logger.debug("Back %s -> %s", self._current, previous)
        self._current = previous

    def now_at(self, screen: str) -> None:
        """Tell the navigator the app is now at ``screen``.

        Use after driving the app by hand. The move is recorded like any
        forward move.
        """
        if not self.graph.is_screen_state(screen):
            raise NavigationError(f"{screen} is not a screen state")
        self._move_to(screen)

    def plan(self, target: str) -> Route:
        """Compute the route ``goto(target)`` would take, without travelling."""
        return self.pathfinder.route(self._current, target, self.user_state, self._history)

    def can_navigate(self, target: str) -> bool:
        return self.pathfinder.can_reach(self._current, target, self.user_state, self._history)

    def visit_all(self, callback: Callable[[str], Any]) -> list[str]:
        """Visit every reachable screen state, in declaration order.

        Args:
            callback: Called with the screen name once the navigator is there

        Returns:
            Names of the screens visited
        """
        visited = []
        for name in self.graph.screen_states():
            if not self.can_navigate(name):
                logger.info("visit_all: skipping unreachable screen %s", name)
                continue
            self.goto(name)
            callback(name)
            visited.append(name)
        return visited

    # ═══════════════════════════════════════════════════════════════════════════
    # REPLAY
    # ═══════════════════════════════════════════════════════════════════════════

    def _replay(self, route: Route) -> None:
        expected = self._current
        for hop in route:
            if self._current != expected:
                break
            if hop.is_back:
                self.back()
            else:
                self._travel(hop)
            if self.graph.is_screen_state(hop.destination):
                expected = hop.destination

        if self._current != expected:
            # A navigator callback moved us; it owns the rest of the journey.
            logger.debug("Route %s -> %s abandoned at %s", route.source, route.target, self._current)
            return

        end = self.graph.node(route.target)
        if end is not None and end.kind is NodeKind.SCREEN_ACTION:
            self._settle(end)

    def _travel(self, hop: Hop) -> None:
        edge = hop.edge
        if edge is not None and edge.interaction is not None:
            self._call(f"{hop.source} -> {hop.destination}", edge.interaction)

        node = self.graph.node(hop.destination)
        if node.kind is NodeKind.SCREEN_ACTION:
            self._perform(node)
        else:
            self._move_to(node.name)

    def _settle(self, action: ScreenActionNode) -> None:
        """Follow an action's destinations until a screen state is reached."""
        seen = {action.name}
        node = action
        while node.destination is not None and node.destination in self.graph:
            dest = self.graph.node(node.destination)
            if dest.kind is NodeKind.SCREEN_STATE:
                self._move_to(dest.name)
                return
            if dest.name in seen:
                logger.warning("Action cycle through %s; staying at %s", dest.name, self._current)
                return
            seen.add(dest.name)
            self._perform(dest)
            node = dest

    def _perform(self, action: ScreenActionNode) -> None:
        logger.debug("Performing %s at %s", action.name, self._current)
        for effect in action.side_effects:
            self._call(action.name, effect, self.user_state)
        for callback in action.navigator_callbacks:
            self._call(action.name, callback, self)

    def _move_to(self, name: str) -> None:
        # The cursor only moves once the screen has been entered successfully.
        self._fire_on_enter(name)
        if name != self._current and not self.screen_state.dismiss_on_use:
            self._history.append(self._current)
        logger.debug("Now at %s", name)
        self._current = name

    def _fire_on_enter(self, name: str) -> None:
        node = self.graph.node(name)
        for effect in node.on_enter_effects:
            self._call(f"entering {name}", effect, self.user_state)

    def _call(self, step: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except NavigationError:
            raise
        except Exception as exc:
            logger.error("%s failed at %s: %s", step, self._current, exc)
            raise ActionFailed(step, self._current, exc) from exc
