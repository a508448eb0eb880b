from __future__ import annotations

import importlib
from pathlib import Path
from typing import Optional

import questionary
import typer
from questionary import Choice, Separator
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import NavigationError, ScreenGraphError
from .graph import ScreenGraph
from .logging import setup_logging
from .navigator import Navigator
from .render import DotRenderer, GraphRenderer, RichTreeRenderer, render
from .settings import load_settings

app = typer.Typer(
    add_completion=False,
    help="screengraph: model an app as screens + actions and navigate it",
    rich_markup_mode="rich",
)
console = Console()

BRAND_STYLE = questionary.Style([
    ("qmark", "fg:#00b4d8 bold"),
    ("question", "bold"),
    ("answer", "fg:#90e0ef bold"),
    ("highlighted", "fg:#00b4d8 bold"),
    ("pointer", "fg:#00b4d8 bold"),
    ("selected", "fg:#90e0ef"),
])

RENDERERS: dict[str, type[GraphRenderer]] = {
    "dot": DotRenderer,
    "tree": RichTreeRenderer,
}


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def load_graph(spec: str) -> ScreenGraph:
    """Import a graph from ``module:attribute``.

    The attribute may be a ``ScreenGraph`` or a callable returning one.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"expected module:attribute, got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import {module_name}: {e}") from e

    obj = getattr(module, attr, None)
    if obj is None:
        raise typer.BadParameter(f"{module_name} has no attribute {attr!r}")
    graph = obj() if callable(obj) and not isinstance(obj, ScreenGraph) else obj
    if not isinstance(graph, ScreenGraph):
        raise typer.BadParameter(f"{spec} did not produce a ScreenGraph")
    return graph


def _render_error(title: str, cause: str, action: str | None = None) -> None:
    content = f"[bold red]✗ {title}[/bold red]\n\n"
    content += f"[yellow]Cause:[/yellow] {cause}\n"
    if action:
        content += f"\n[dim]→ {action}[/dim]"
    console.print(Panel.fit(content, border_style="red", title="Error"))


def _start(graph_spec: Optional[str], start: Optional[str]) -> Navigator:
    spec = graph_spec or load_settings().SCREENGRAPH_GRAPH
    graph = load_graph(spec)
    try:
        return graph.navigator(starting_at=start)
    except ScreenGraphError as e:
        _render_error("Could not start navigator", str(e), "Pass --from with a declared screen state")
        raise typer.Exit(code=1)


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN CALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

@app.callback()
def _root(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override SCREENGRAPH_LOG_LEVEL"),
):
    """
    [bold]screengraph[/bold]: shortest-route navigation for UI tests.

    [bold]Examples:[/bold]
      python -m screengraph render --format tree
      python -m screengraph route ItemDetail
      python -m screengraph explore -g myapp.graph:build
    """
    s = load_settings()
    if log_level:
        s.SCREENGRAPH_LOG_LEVEL = log_level
    setup_logging(s)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command("render", help="Render the graph as Graphviz DOT or a tree")
def render_cmd(
    graph_spec: Optional[str] = typer.Option(None, "--graph", "-g", help="module:factory returning a ScreenGraph"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="dot or tree"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write to a file instead of stdout"),
    legend: bool = typer.Option(True, "--legend/--no-legend", help="Include the DOT legend"),
):
    s = load_settings()
    fmt = (fmt or s.SCREENGRAPH_RENDER_FORMAT).lower()
    if fmt not in RENDERERS:
        _render_error("Unknown format", fmt, f"Use one of: {', '.join(RENDERERS)}")
        raise typer.Exit(code=2)

    graph = load_graph(graph_spec or s.SCREENGRAPH_GRAPH).finalize()
    renderer = DotRenderer(legend=legend) if fmt == "dot" else RichTreeRenderer()
    text = render(graph, renderer)

    if out is not None:
        out.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {out}")
    elif isinstance(renderer, RichTreeRenderer):
        console.print(renderer.tree)
    else:
        typer.echo(text)


@app.command("check", help="List construction conflicts in the graph")
def check_cmd(
    graph_spec: Optional[str] = typer.Option(None, "--graph", "-g", help="module:factory returning a ScreenGraph"),
):
    graph = load_graph(graph_spec or load_settings().SCREENGRAPH_GRAPH)
    finalized = graph.finalize()
    conflicts = graph.diagnostics

    if not conflicts:
        console.print(
            f"[bold green]✓ No conflicts[/bold green] "
            f"({len(finalized.screen_states())} screens, {len(finalized.nodes)} nodes)"
        )
        return

    t = Table(title=f"[bold]{len(conflicts)} conflict(s)[/bold]")
    t.add_column("Name", style="bold")
    t.add_column("Problem")
    t.add_column("Declared at", style="dim")
    for c in conflicts:
        t.add_row(c.name, c.message, "\n".join(str(site) for site in c.sites))
    console.print(t)
    raise typer.Exit(code=1)


@app.command("route", help="Show the shortest route to a screen")
def route_cmd(
    target: str = typer.Argument(..., help="Screen or action to reach"),
    graph_spec: Optional[str] = typer.Option(None, "--graph", "-g", help="module:factory returning a ScreenGraph"),
    start: Optional[str] = typer.Option(None, "--from", help="Starting screen (defaults to the initial screen)"),
):
    nav = _start(graph_spec, start)
    try:
        route = nav.plan(target)
    except NavigationError as e:
        _render_error("No route", str(e))
        raise typer.Exit(code=1)

    if not route:
        console.print(f"[dim]Already at {target}[/dim]")
        return

    t = Table(title=f"[bold]{route.source} → {route.target}[/bold]")
    t.add_column("#", justify="right", style="dim")
    t.add_column("From", style="bold")
    t.add_column("To", style="cyan")
    t.add_column("Condition", style="yellow")
    for i, hop in enumerate(route, 1):
        to = f"{hop.destination} [dim](back)[/dim]" if hop.is_back else hop.destination
        label = hop.edge.label if hop.edge is not None and hop.edge.label else ""
        t.add_row(str(i), hop.source, to, label)
    console.print(t)


@app.command("explore", help="Drive a navigator interactively")
def explore_cmd(
    graph_spec: Optional[str] = typer.Option(None, "--graph", "-g", help="module:factory returning a ScreenGraph"),
    start: Optional[str] = typer.Option(None, "--from", help="Starting screen (defaults to the initial screen)"),
):
    nav = _start(graph_spec, start)
    while True:
        console.print(f"\n[bold]At[/bold] [cyan]{nav.current_screen}[/cyan]  [dim]{' > '.join(nav.history)}[/dim]")
        choice = questionary.select(
            "What next?",
            choices=[
                Choice(title="Go to screen…", value="goto"),
                Choice(title="Perform action…", value="action"),
                Choice(title="← Back", value="back"),
                Choice(title="Show user state", value="state"),
                Separator(),
                Choice(title="Quit", value="quit"),
            ],
            style=BRAND_STYLE,
        ).ask()

        if choice in (None, "quit"):
            break
        try:
            if choice == "goto":
                screens = [n for n in nav.graph.screen_states() if n != nav.current_screen and nav.can_navigate(n)]
                if not screens:
                    console.print("[yellow]No other screen is reachable right now.[/yellow]")
                    continue
                target = questionary.select("Screen:", choices=screens, style=BRAND_STYLE).ask()
                if target:
                    nav.goto(target)
            elif choice == "action":
                actions = [
                    name
                    for name in nav.graph.nodes
                    if nav.graph.is_screen_action(name)
                    and (name in nav.graph.shortcuts or nav.can_navigate(name))
                ]
                if not actions:
                    console.print("[yellow]No action can be performed right now.[/yellow]")
                    continue
                name = questionary.select("Action:", choices=actions, style=BRAND_STYLE).ask()
                if name:
                    nav.perform_action(name)
            elif choice == "back":
                nav.back()
            elif choice == "state":
                console.print(Panel.fit(repr(nav.user_state), title="User state"))
        except NavigationError as e:
            _render_error("Navigation failed", str(e))

    console.print("\n[dim]👋 Goodbye![/]")
