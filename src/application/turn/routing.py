"""Route table for turn processing.

A route pairs an async selector with an async handler. The first route whose
selector matches handles the turn; invoke routes are tried before the rest.
"""

from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field

from application.turn.context import TurnContext
from application.turn.state import TurnState
from domain.models import ActivityTypes

RouteSelector = Callable[[TurnContext], Awaitable[bool]]
RouteHandler = Callable[[TurnContext, TurnState], Awaitable[None]]


@dataclass
class Route:
    """A selector/handler pair.

    Attributes:
        selector: Decides whether the route handles the current activity
        handler: Business logic for the activity
        auto_sign_in_handlers: Authorization handlers that must be signed in
            before ``handler`` runs
        is_invoke: Invoke routes are evaluated first
    """

    selector: RouteSelector
    handler: RouteHandler
    auto_sign_in_handlers: tuple[str, ...] = field(default_factory=tuple)
    is_invoke: bool = False


class RouteTable:
    """Ordered collection of routes."""

    def __init__(self) -> None:
        self._routes: list[Route] = []

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[Route]:
        return self.enumerate()

    def add_route(
        self,
        selector: RouteSelector,
        handler: RouteHandler,
        auto_sign_in_handlers: Sequence[str] = (),
        is_invoke: bool = False,
    ) -> Route:
        route = Route(selector=selector, handler=handler, auto_sign_in_handlers=tuple(auto_sign_in_handlers), is_invoke=is_invoke)
        self._routes.append(route)
        return route

    def on_activity(self, activity_type: str, handler: RouteHandler, auto_sign_in_handlers: Sequence[str] = ()) -> Route:
        """Route every activity of the given type."""

        async def selector(turn_context: TurnContext) -> bool:
            return turn_context.activity.is_type(activity_type)

        return self.add_route(selector, handler, auto_sign_in_handlers, is_invoke=activity_type == ActivityTypes.INVOKE)

    def on_message(self, handler: RouteHandler, text: str | None = None, auto_sign_in_handlers: Sequence[str] = ()) -> Route:
        """Route message activities, optionally only those whose text matches exactly (case-insensitive)."""

        async def selector(turn_context: TurnContext) -> bool:
            activity = turn_context.activity
            if not activity.is_type(ActivityTypes.MESSAGE):
                return False
            return text is None or (activity.text or "").strip().lower() == text.lower()

        return self.add_route(selector, handler, auto_sign_in_handlers)

    def on_event(self, name: str, handler: RouteHandler, auto_sign_in_handlers: Sequence[str] = ()) -> Route:
        """Route event activities with the given name."""

        async def selector(turn_context: TurnContext) -> bool:
            activity = turn_context.activity
            return activity.is_type(ActivityTypes.EVENT) and activity.name == name

        return self.add_route(selector, handler, auto_sign_in_handlers)

    def enumerate(self) -> Iterator[Route]:
        """Invoke routes first, then the rest, each in registration order."""
        yield from (route for route in self._routes if route.is_invoke)
        yield from (route for route in self._routes if not route.is_invoke)

    async def find(self, turn_context: TurnContext) -> Route | None:
        for route in self.enumerate():
            if await route.selector(turn_context):
                return route
        return None
