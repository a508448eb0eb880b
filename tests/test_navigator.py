"""Unit tests for Navigator."""
from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from screengraph.errors import (
    ActionFailed,
    EmptyHistory,
    InitializationFailure,
    NavigationError,
    UnknownAction,
    UnreachableTarget,
)
from screengraph.graph import ScreenGraph
from screengraph.state import UserState


@dataclass
class ShopState(UserState):
    initial_screen_state: str | None = "Home"
    logged_in: bool = False
    cart_items: int = 0
    entered: list = field(default_factory=list)


def logged_in(state: ShopState) -> bool:
    return state.logged_in


@pytest.fixture
def taps():
    return []


@pytest.fixture
def shop(taps):
    """Home, a login-gated Account, a Cart reached through a dismissable sheet."""
    graph = ScreenGraph(ShopState)

    def tap(element):
        return lambda: taps.append(element)

    @graph.screen_state("Home")
    def home(screen):
        screen.action("login", side_effect=lambda s: setattr(s, "logged_in", True),
                      interaction=tap("login"))
        screen.action("addToCart", transition_to="Home",
                      side_effect=lambda s: setattr(s, "cart_items", s.cart_items + 1),
                      interaction=tap("add"))
        screen.gesture(to="Account", interaction=tap("account"), when=logged_in)
        screen.gesture(to="Menu", interaction=tap("menu"))
        screen.on_enter(lambda s: s.entered.append("Home"))

    @graph.screen_state("Account")
    def account(screen):
        screen.back_action = tap("accountBack")
        screen.on_enter(lambda s: s.entered.append("Account"))

    @graph.screen_state("Menu")
    def menu(screen):
        screen.dismiss_on_use = True
        screen.gesture(to="Cart", interaction=tap("cart"))

    @graph.screen_state("Cart")
    def cart(screen):
        screen.back_action = tap("cartBack")
        screen.action("checkout", transition_to="Receipt", interaction=tap("checkout"),
                      when=lambda s: s.cart_items > 0, label="cart_items > 0")

    graph.add_screen_state("Receipt")

    def empty_cart(nav):
        nav.user_state.cart_items = 0

    graph.add_navigator_action("emptyCart", empty_cart)
    return graph


# ═══════════════════════════════════════════════════════════════════════════════
# STARTING
# ═══════════════════════════════════════════════════════════════════════════════

def test_navigator_starts_at_initial_screen(shop):
    nav = shop.navigator()

    assert nav.current_screen == "Home"
    assert nav.screen_state.name == "Home"
    assert nav.history == ()
    assert nav.user_state.entered == ["Home"]


def test_navigator_starts_where_asked(shop):
    nav = shop.navigator(starting_at="Cart")

    assert nav.current_screen == "Cart"
    assert nav.user_state.initial_screen_state == "Cart"


@pytest.mark.parametrize("start", ["Nowhere", "login"])
def test_navigator_rejects_invalid_start(shop, start):
    with pytest.raises(InitializationFailure):
        shop.navigator(starting_at=start)


def test_navigator_without_initial_screen_fails():
    graph = ScreenGraph()
    graph.add_screen_state("Home")

    with pytest.raises(InitializationFailure):
        graph.navigator()


def test_failing_on_enter_at_start_is_an_initialization_failure():
    graph = ScreenGraph()

    def boom(state):
        raise RuntimeError("app did not launch")

    graph.add_screen_state("Home", lambda s: s.on_enter(boom))

    with pytest.raises(InitializationFailure, match="app did not launch"):
        graph.navigator("Home")


def test_navigators_own_their_user_state(shop):
    a = shop.navigator()
    b = shop.navigator()
    a.perform_action("addToCart")

    assert a.user_state.cart_items == 1
    assert b.user_state.cart_items == 0
    assert a.graph is b.graph


# ═══════════════════════════════════════════════════════════════════════════════
# GOTO
# ═══════════════════════════════════════════════════════════════════════════════

def test_goto_replays_interactions(shop, taps):
    nav = shop.navigator()
    nav.goto("Cart")

    assert nav.current_screen == "Cart"
    assert taps == ["menu", "cart"]
    # Menu is dismissed on use, so it is not on the back-stack.
    assert nav.history == ("Home",)


def test_goto_current_screen_does_nothing(shop, taps):
    nav = shop.navigator()
    nav.goto("Home")

    assert taps == []
    assert nav.history == ()
    assert nav.user_state.entered == ["Home"]


def test_goto_respects_predicates_at_call_time(shop, taps):
    nav = shop.navigator()

    with pytest.raises(UnreachableTarget):
        nav.goto("Account")
    assert nav.current_screen == "Home"
    assert taps == []

    nav.perform_action("login")
    nav.goto("Account")
    assert nav.current_screen == "Account"
    assert taps == ["login", "account"]


def test_goto_fires_on_enter(shop):
    nav = shop.navigator()
    nav.perform_action("login")
    nav.goto("Account")
    nav.back()

    assert nav.user_state.entered == ["Home", "Account", "Home"]


def test_goto_uses_back_hops(shop, taps):
    nav = shop.navigator()
    nav.goto("Cart")
    nav.perform_action("login")  # only reachable via back to Home

    assert nav.current_screen == "Home"
    assert taps == ["menu", "cart", "cartBack", "login"]
    assert nav.user_state.logged_in


def test_plan_and_can_navigate_do_not_move(shop, taps):
    nav = shop.navigator()

    route = nav.plan("Cart")
    assert route.nodes == ["Home", "Menu", "Cart"]
    assert nav.can_navigate("Cart")
    assert not nav.can_navigate("Account")
    assert nav.current_screen == "Home"
    assert taps == []


# ═══════════════════════════════════════════════════════════════════════════════
# ACTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def test_perform_action_applies_side_effect_once(shop, taps):
    nav = shop.navigator()
    nav.perform_action("addToCart")
    nav.perform_action("addToCart")

    assert nav.user_state.cart_items == 2
    assert taps == ["add", "add"]
    assert nav.current_screen == "Home"
    assert nav.history == ()


def test_action_without_destination_stays_put(shop):
    nav = shop.navigator()
    nav.perform_action("login")

    assert nav.current_screen == "Home"
    assert nav.history == ()


def test_perform_action_travels_to_the_action(shop, taps):
    nav = shop.navigator()
    nav.perform_action("addToCart")
    nav.perform_action("checkout")

    assert nav.current_screen == "Receipt"
    assert taps == ["add", "menu", "cart", "checkout"]
    assert nav.history == ("Home", "Cart")


@pytest.mark.parametrize("name", ["Cart", "nonsense"])
def test_perform_action_rejects_non_actions(shop, name):
    nav = shop.navigator()

    with pytest.raises(UnknownAction):
        nav.perform_action(name)


def test_perform_action_rejects_closed_actions(shop, taps):
    nav = shop.navigator()

    with pytest.raises(UnknownAction, match="not reachable"):
        nav.perform_action("checkout")
    assert nav.current_screen == "Home"
    assert taps == []


def test_navigator_action_runs_from_anywhere(shop):
    nav = shop.navigator()
    nav.perform_action("addToCart")
    nav.goto("Cart")
    nav.perform_action("emptyCart")

    assert nav.user_state.cart_items == 0
    assert nav.current_screen == "Cart"


def test_reachable_action_wins_over_shortcut(taps):
    graph = ScreenGraph()
    calls = []

    graph.add_screen_state("Home", lambda s: s.action("reset", interaction=lambda: taps.append("reset")))
    graph.add_screen_state("Other")
    graph.add_navigator_action("reset", lambda nav: calls.append(nav.current_screen))

    nav = graph.navigator("Home")
    nav.perform_action("reset")
    assert taps == ["reset"]
    assert calls == ["Home"]

    other = graph.navigator("Other")
    other.perform_action("reset")
    assert taps == ["reset"]
    assert calls == ["Home", "Other"]


def test_merged_side_effects_fire_in_registration_order():
    order = []
    graph = ScreenGraph()
    graph.add_screen_state("Home", lambda s: s.action("sync", side_effect=lambda st: order.append("builder")))
    graph.add_screen_action("sync", side_effect=lambda st: order.append("top-level"))

    graph.navigator("Home").perform_action("sync")
    assert order == ["top-level", "builder"]


# ═══════════════════════════════════════════════════════════════════════════════
# BACK
# ═══════════════════════════════════════════════════════════════════════════════

def test_back_pops_and_calls_back_action(shop, taps):
    nav = shop.navigator()
    nav.goto("Cart")
    nav.back()

    assert nav.current_screen == "Home"
    assert nav.history == ()
    assert taps == ["menu", "cart", "cartBack"]


def test_back_with_empty_history_raises(shop):
    nav = shop.navigator()

    with pytest.raises(EmptyHistory):
        nav.back()
    assert nav.current_screen == "Home"


def test_back_skips_dismissed_screen():
    graph = ScreenGraph()
    graph.add_screen_state("A", lambda s: s.gesture(to="B"))

    @graph.screen_state("B")
    def b(screen):
        screen.dismiss_on_use = True
        screen.gesture(to="C")

    graph.add_screen_state("C")

    nav = graph.navigator("A")
    nav.goto("C")
    nav.back()
    assert nav.current_screen == "A"


def test_now_at_records_a_manual_move(shop):
    nav = shop.navigator()
    nav.now_at("Account")

    assert nav.current_screen == "Account"
    assert nav.history == ("Home",)
    assert nav.user_state.entered == ["Home", "Account"]

    with pytest.raises(NavigationError):
        nav.now_at("login")


# ═══════════════════════════════════════════════════════════════════════════════
# FAILURES
# ═══════════════════════════════════════════════════════════════════════════════

def test_failed_interaction_leaves_cursor_at_last_screen():
    graph = ScreenGraph()
    fired = []

    def broken():
        raise RuntimeError("element not found")

    graph.add_screen_state("A", lambda s: s.gesture(to="B"))
    graph.add_screen_state("B", lambda s: s.gesture(to="C", interaction=broken))
    graph.add_screen_state("C", lambda s: s.on_enter(lambda st: fired.append("C")))

    nav = graph.navigator("A")
    with pytest.raises(ActionFailed) as exc_info:
        nav.goto("C")

    assert nav.current_screen == "B"
    assert nav.history == ("A",)
    assert exc_info.value.last_screen == "B"
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert fired == []

    # The session stays usable.
    nav.back()
    assert nav.current_screen == "A"


def test_failed_on_enter_leaves_cursor_on_previous_screen():
    graph = ScreenGraph()
    graph.add_screen_state("A", lambda s: s.gesture(to="B"))

    @graph.screen_state("B")
    def b(screen):
        screen.back_action = lambda: None
        screen.on_enter(lambda state: 1 / 0)

    nav = graph.navigator("A")
    with pytest.raises(ActionFailed) as exc_info:
        nav.goto("B")

    assert nav.current_screen == "A"
    assert nav.history == ()
    assert exc_info.value.last_screen == "A"
    assert isinstance(exc_info.value.cause, ZeroDivisionError)


def test_failed_on_enter_when_going_back_keeps_history():
    graph = ScreenGraph()
    entered = []

    def enter_home(state):
        if entered:
            raise RuntimeError("home did not load")
        entered.append("Home")

    graph.add_screen_state("Home", lambda s: (s.gesture(to="Detail"), s.on_enter(enter_home)))
    graph.add_screen_state("Detail")

    nav = graph.navigator("Home")
    nav.goto("Detail")
    with pytest.raises(ActionFailed):
        nav.back()

    assert nav.current_screen == "Detail"
    assert nav.history == ("Home",)


def test_failing_predicate_leaves_cursor_in_place():
    def broken(state):
        raise RuntimeError("stale state")

    graph = ScreenGraph()
    graph.add_screen_state("A", lambda s: (s.gesture(to="B"), s.gesture(to="C", when=broken)))
    graph.add_screen_state("B")
    graph.add_screen_state("C")

    nav = graph.navigator("A")
    with pytest.raises(ActionFailed):
        nav.goto("B")
    assert nav.current_screen == "A"


def test_failed_side_effect_is_reported():
    graph = ScreenGraph()

    def explode(state):
        raise ValueError("bad state")

    graph.add_screen_state("A", lambda s: s.action("boom", side_effect=explode))
    nav = graph.navigator("A")

    with pytest.raises(ActionFailed, match="boom"):
        nav.perform_action("boom")
    assert nav.current_screen == "A"


def test_navigation_error_inside_callback_propagates_unwrapped():
    graph = ScreenGraph()
    graph.add_screen_state("A")
    graph.add_navigator_action("lost", lambda nav: nav.goto("Nowhere"))

    with pytest.raises(UnreachableTarget):
        graph.navigator("A").perform_action("lost")


def test_callback_moving_the_cursor_takes_over_the_route():
    graph = ScreenGraph()
    graph.add_screen_state("A", lambda s: s.action("jump", transition_to="B"))
    graph.add_screen_state("B", lambda s: s.gesture(to="C"))
    graph.add_screen_state("C")
    graph.add_screen_state("Side")
    graph.add_navigator_action("jump", lambda nav: nav.now_at("Side"))

    nav = graph.navigator("A")
    nav.goto("C")
    assert nav.current_screen == "Side"


# ═══════════════════════════════════════════════════════════════════════════════
# VISIT ALL
# ═══════════════════════════════════════════════════════════════════════════════

def test_visit_all_visits_reachable_screens(shop):
    nav = shop.navigator()
    seen = []

    visited = nav.visit_all(seen.append)

    # Account needs a login; Receipt needs items in the cart.
    assert visited == ["Home", "Menu", "Cart"]
    assert seen == visited


def test_noop_edge_moves_without_interaction():
    graph = ScreenGraph()
    graph.add_screen_state("Splash", lambda s: s.noop(to="Home"))
    graph.add_screen_state("Home")

    nav = graph.navigator("Splash")
    nav.goto("Home")

    assert nav.current_screen == "Home"
    assert nav.history == ("Splash",)
    assert graph.finalize().edges_from("Splash")[0].interaction is None
