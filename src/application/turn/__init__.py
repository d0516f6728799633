"""Turn processing: context, state, routing and the turn processor."""

from application.turn.context import ActivitySender, TurnContext
from application.turn.processor import TurnProcessor
from application.turn.routing import Route, RouteHandler, RouteSelector, RouteTable
from application.turn.state import StateScope, TurnState

__all__ = [
    "ActivitySender",
    "TurnContext",
    "TurnState",
    "StateScope",
    "Route",
    "RouteHandler",
    "RouteSelector",
    "RouteTable",
    "TurnProcessor",
]
