"""A small example graph: a list of items with a detail and an edit mode.

Used by the CLI as the default graph and by the tests as a realistic fixture.
The ``RecordingApp`` stands in for a UI driver; it just remembers what was
tapped.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from .graph import ScreenGraph
from .navigator import Navigator
from .settings import Settings
from .state import UserState


class Screens:
    item_list = "ItemList"
    item_list_editing = "EditingItemList"
    item_detail = "ItemDetail"
    share_sheet = "ShareSheet"
    share_done = "ShareDone"


class Actions:
    add_item = "addItem"
    edit_items = "editItems"
    delete_item = "deleteItem"
    delete_all_items = "deleteAllItems"
    initial_with_exactly_one = "initialWithExactlyOne"


@dataclass
class DemoAppUserState(UserState):
    initial_screen_state: str | None = Screens.item_list
    num_items: int = 0


@dataclass
class RecordingApp:
    taps: list[str] = field(default_factory=list)

    def tap(self, element: str):
        return lambda: self.taps.append(element)


def has_items(state: DemoAppUserState) -> bool:
    return state.num_items > 0


def build_demo_graph(app: RecordingApp | None = None, settings: Settings | None = None) -> ScreenGraph:
    app = app or RecordingApp()
    graph = ScreenGraph(DemoAppUserState, settings=settings)

    @graph.screen_state(Screens.item_list)
    def item_list(screen):
        def add_one(state: DemoAppUserState):
            state.num_items += 1

        screen.action(Actions.add_item, transition_to=Screens.item_list,
                      side_effect=add_one, interaction=app.tap("addButton"))
        screen.action(Actions.edit_items, transition_to=Screens.item_list_editing,
                      interaction=app.tap("editButton"))
        # Only possible once there is something in the list.
        screen.gesture(to=Screens.item_detail, interaction=app.tap("firstCell"),
                       when=has_items, label="num_items > 0")

    @graph.screen_state(Screens.item_detail)
    def item_detail(screen):
        screen.back_action = app.tap("navBack")
        screen.gesture(to=Screens.share_sheet, interaction=app.tap("shareButton"))

    @graph.screen_state(Screens.share_sheet)
    def share_sheet(screen):
        screen.dismiss_on_use = True
        screen.gesture(to=Screens.share_done, interaction=app.tap("sendButton"))

    @graph.screen_state(Screens.share_done)
    def share_done(screen):
        screen.back_action = app.tap("doneButton")

    @graph.screen_state(Screens.item_list_editing)
    def item_list_editing(screen):
        def delete_first(state: DemoAppUserState):
            state.num_items -= 1

        def delete_all(state: DemoAppUserState):
            state.num_items = 0

        screen.action(Actions.delete_item, side_effect=delete_first,
                      interaction=app.tap("deleteFirst"), when=has_items, label="num_items > 0")
        screen.action(Actions.delete_all_items, side_effect=delete_all,
                      interaction=app.tap("deleteAll"))
        screen.back_action = app.tap("doneEditing")

    def exactly_one(nav: Navigator):
        nav.perform_action(Actions.delete_all_items)
        nav.perform_action(Actions.add_item)

    graph.add_navigator_action(Actions.initial_with_exactly_one, exactly_one)

    return graph
