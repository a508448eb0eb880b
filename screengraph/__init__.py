"""Model an app under test as screens and actions, and navigate it by shortest route."""
from .errors import (
    ActionFailed,
    ConstructionConflict,
    EmptyHistory,
    GraphConstructionError,
    GraphFinalizedError,
    InitializationFailure,
    NavigationError,
    ScreenGraphError,
    UnknownAction,
    UnreachableTarget,
)
from .graph import EdgeView, FinalizedGraph, NodeView, ScreenGraph
from .navigator import Navigator
from .nodes import ConditionalEdge, DeclarationSite, Edge, NodeKind, ScreenActionNode, ScreenStateNode
from .pathfinder import Hop, PathFinder, Route
from .render import DotRenderer, GraphRenderer, RichTreeRenderer, render
from .state import UserState

__all__ = [
    "ActionFailed",
    "ConditionalEdge",
    "ConstructionConflict",
    "DeclarationSite",
    "DotRenderer",
    "Edge",
    "EdgeView",
    "EmptyHistory",
    "FinalizedGraph",
    "GraphConstructionError",
    "GraphFinalizedError",
    "GraphRenderer",
    "Hop",
    "InitializationFailure",
    "NavigationError",
    "Navigator",
    "NodeKind",
    "NodeView",
    "PathFinder",
    "RichTreeRenderer",
    "Route",
    "ScreenActionNode",
    "ScreenGraph",
    "ScreenGraphError",
    "ScreenStateNode",
    "UnknownAction",
    "UnreachableTarget",
    "UserState",
    "render",
]
