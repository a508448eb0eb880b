"""Render a finalized graph for humans.

Renderers are read-only visitors: ``render()`` feeds them every node, then
every edge, and asks for the resulting text.
"""
from __future__ import annotations

import io
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from .nodes import NodeKind

if TYPE_CHECKING:
    from .graph import FinalizedGraph


class GraphRenderer(ABC):
    file_extension: str = "txt"

    @abstractmethod
    def begin(self) -> None: ...

    @abstractmethod
    def render_screen_state_node(self, name: str, dismiss_on_use: bool) -> None: ...

    @abstractmethod
    def render_screen_action_node(self, name: str) -> None: ...

    @abstractmethod
    def render_edge_to_screen_state(self, src: str, dest: str, label: str | None, is_backable: bool) -> None: ...

    @abstractmethod
    def render_edge_to_screen_action(self, src: str, dest: str, label: str | None) -> None: ...

    @abstractmethod
    def end(self) -> None: ...

    @abstractmethod
    def string_value(self) -> str: ...


def render(graph: FinalizedGraph, renderer: GraphRenderer | None = None) -> str:
    """Drive ``renderer`` over ``graph`` and return its output.

    Args:
        graph: Finalized graph
        renderer: Defaults to a ``DotRenderer``

    Returns:
        Rendered text
    """
    renderer = renderer or DotRenderer()
    renderer.begin()

    for node in graph.iter_nodes():
        if node.kind is NodeKind.SCREEN_STATE:
            renderer.render_screen_state_node(node.name, node.dismiss_on_use)
        elif node.kind is NodeKind.SCREEN_ACTION:
            renderer.render_screen_action_node(node.name)

    for edge in graph.iter_edges():
        label = edge.label or ("conditional" if edge.is_conditional else None)
        if edge.destination_kind is NodeKind.SCREEN_STATE:
            renderer.render_edge_to_screen_state(edge.source, edge.destination, label, edge.is_backable)
        elif edge.destination_kind is NodeKind.SCREEN_ACTION:
            renderer.render_edge_to_screen_action(edge.source, edge.destination, label)

    renderer.end()
    return renderer.string_value()


# ═══════════════════════════════════════════════════════════════════════════════
# GRAPHVIZ
# ═══════════════════════════════════════════════════════════════════════════════

class DotRenderer(GraphRenderer):
    """Graphviz DOT output, with a legend explaining the notation."""

    file_extension = "dot"

    ACTION_COLOR = "lightblue"
    ACTION_FONT_COLOR = "white"

    def __init__(self, legend: bool = True):
        self.legend = legend
        self.lines: list[str] = []
        self._ids: dict[str, str] = {}
        self._next_id = 0
        self._prefix = "_"

    def begin(self) -> None:
        self.lines = []
        self._ids = {}
        self._next_id = 0
        self._append(
            "digraph G {",
            "fontsize=15;",
            "fontname=Helvetica;",
            "labelloc=t;",
            'label="";',
            "splines=true;",
            "overlap=false;",
            "rankdir=LR;",
            "ratio=auto;",
            "node [ shape=box ];",
        )
        if self.legend:
            self._render_legend()

    def end(self) -> None:
        self._append("}")

    def string_value(self) -> str:
        return "\n".join(self.lines)

    def render_screen_state_node(self, name: str, dismiss_on_use: bool) -> None:
        style = f'label="{_escape(name)}"; '
        if dismiss_on_use:
            style += "fillcolor=lightgray; color=gray; style=filled"
        else:
            style += "color=black"
        self._append(f"{self._id(name)} [ {style} ];")

    def render_screen_action_node(self, name: str) -> None:
        self._append(
            f'{self._id(name)} [ label="{_escape(name)}"; shape=egg; style=filled; '
            f"color={self.ACTION_COLOR}; fillcolor={self.ACTION_COLOR}; "
            f"fontcolor={self.ACTION_FONT_COLOR}; fontsize=10 ];"
        )

    def render_edge_to_screen_state(self, src: str, dest: str, label: str | None, is_backable: bool) -> None:
        if label is not None:
            style = f'label="{_escape(label)}"; style=dashed'
        else:
            style = "style=solid"
        if is_backable:
            style += "; dir=both; arrowtail=obox; arrowhead=normal"
        self._append(f"{self._id(src)} -> {self._id(dest)} [ {style} ];")

    def render_edge_to_screen_action(self, src: str, dest: str, label: str | None) -> None:
        if label is not None:
            style = f'label="{_escape(label)}"; style=dashed; color={self.ACTION_COLOR}'
        else:
            style = f"color={self.ACTION_COLOR}"
        self._append(f"{self._id(src)} -> {self._id(dest)} [ {style} ];")

    def _append(self, *lines: str) -> None:
        self.lines.extend(lines)

    def _id(self, name: str) -> str:
        if name not in self._ids:
            self._ids[name] = f"{self._prefix}{self._next_id}"
            self._next_id += 1
        return self._ids[name]

    def _render_legend(self) -> None:
        # Legend entries get their own id namespace so they never collide
        # with real screen names.
        graph_ids, graph_next = self._ids, self._next_id
        labels: list[str] = []

        def entry(text: str) -> None:
            labels.append(f'k{len(labels) + 1} [ label="{text}\\r" ];')

        def fresh() -> None:
            self._ids = {}
            self._next_id = 0
            self._prefix = f"legend{len(labels) + 1}_"

        self._append("subgraph cluster_legend {", "fontsize=15;", 'label="Legend";')

        fresh()
        self.render_screen_state_node("Screen1", False)
        self.render_screen_state_node("Screen2", False)
        self.render_edge_to_screen_state("Screen1", "Screen2", None, False)
        entry("Transition between two screens")

        fresh()
        self.render_screen_state_node("Screen1", False)
        self.render_screen_state_node("Screen2", False)
        self.render_edge_to_screen_state("Screen1", "Screen2", "num_items > 0", False)
        entry("Transition between two screens\\rconditional on user state")

        fresh()
        self.render_screen_state_node("Screen1", False)
        self.render_screen_state_node("Screen2", False)
        self.render_screen_state_node("Screen3", False)
        self.render_edge_to_screen_state("Screen1", "Screen3", None, True)
        self.render_edge_to_screen_state("Screen2", "Screen3", None, True)
        entry("Screen3 has a back action\\rto get back to where it came from")

        fresh()
        self.render_screen_state_node("Screen1", False)
        self.render_screen_state_node("Screen2", True)
        self.render_screen_state_node("Screen3", False)
        self.render_edge_to_screen_state("Screen1", "Screen2", None, True)
        self.render_edge_to_screen_state("Screen2", "Screen3", None, True)
        entry("Screen2 is not added to the back stack.\\rGoing back from Screen3 goes to Screen1")

        fresh()
        self.render_screen_state_node("Screen", False)
        self.render_screen_action_node("Named Action")
        self.render_edge_to_screen_action("Screen", "Named Action", None)
        entry("Named Action can be performed from Screen")

        self._append("{", "rank=source;", "node [ shape=plaintext, style=solid, width=3.5 ];")
        self.lines.extend(labels)
        self._append("}", "}")

        self._ids, self._next_id, self._prefix = graph_ids, graph_next, "_"


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


# ═══════════════════════════════════════════════════════════════════════════════
# TERMINAL
# ═══════════════════════════════════════════════════════════════════════════════

class RichTreeRenderer(GraphRenderer):
    """A rich ``Tree`` listing each node and its exits.

    ``tree`` holds the renderable after ``end()``, for printing to a live
    console with colours; ``string_value()`` gives plain text.
    """

    file_extension = "txt"

    def __init__(self, title: str = "Screen graph", width: int = 100):
        self.title = title
        self.width = width
        self.tree = Tree(f"[bold]{title}[/bold]")
        self._branches: dict[str, Tree] = {}

    def begin(self) -> None:
        self.tree = Tree(f"[bold]{self.title}[/bold]")
        self._branches = {}

    def render_screen_state_node(self, name: str, dismiss_on_use: bool) -> None:
        text = Text(name, style="bold")
        if dismiss_on_use:
            text.append("  (dismissed on use)", style="dim")
        self._branches[name] = self.tree.add(text)

    def render_screen_action_node(self, name: str) -> None:
        self._branches[name] = self.tree.add(Text(f"⚡ {name}", style="cyan"))

    def render_edge_to_screen_state(self, src: str, dest: str, label: str | None, is_backable: bool) -> None:
        text = Text(f"→ {dest}")
        if label:
            text.append(f"  if {label}", style="yellow")
        if is_backable:
            text.append("  ⟲ back", style="dim")
        self._branch(src).add(text)

    def render_edge_to_screen_action(self, src: str, dest: str, label: str | None) -> None:
        text = Text(f"→ ⚡ {dest}", style="cyan")
        if label:
            text.append(f"  if {label}", style="yellow")
        self._branch(src).add(text)

    def end(self) -> None:
        pass

    def string_value(self) -> str:
        buffer = io.StringIO()
        console = Console(file=buffer, width=self.width, color_system=None, highlight=False)
        console.print(self.tree)
        return buffer.getvalue()

    def _branch(self, name: str) -> Tree:
        if name not in self._branches:
            self._branches[name] = self.tree.add(Text(name))
        return self._branches[name]
