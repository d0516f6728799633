"""Turn processor - runs one activity through sign-in gating and routing.

Flow for each turn:
    load TurnState
        → AuthorizationOrchestrator.start_or_continue (if configured)
        → first matching route (after its auto sign-in handlers complete)
        → save TurnState

Continuation delivery calls ``process`` with a brand-new TurnContext, so a
redelivered activity goes through exactly the same pipeline.
"""

import logging
from typing import TYPE_CHECKING

from application.turn.context import TurnContext
from application.turn.routing import Route, RouteTable
from application.turn.state import TurnState

if TYPE_CHECKING:
    from application.authorization.orchestrator import AuthorizationOrchestrator
    from infrastructure.turn_state_store import TurnStateStore

log = logging.getLogger(__name__)


class TurnProcessor:
    """Processes turns against a route table.

    Usage:
        processor = TurnProcessor(state_store, routes, authorization=orchestrator)
        handled = await processor.process(TurnContext(activity))
    """

    def __init__(
        self,
        state_store: "TurnStateStore",
        routes: RouteTable,
        authorization: "AuthorizationOrchestrator | None" = None,
    ) -> None:
        self._state_store = state_store
        self._routes = routes
        self._authorization = authorization

    @property
    def routes(self) -> RouteTable:
        return self._routes

    @property
    def authorization(self) -> "AuthorizationOrchestrator | None":
        return self._authorization

    async def process(self, turn_context: TurnContext) -> bool:
        """Process one turn.

        Returns:
            True if a route handled the activity, False if the turn ended
            early (sign-in pending or handled elsewhere) or nothing matched
        """
        turn_state = TurnState(self._state_store)
        await turn_state.load(turn_context)

        if self._authorization is not None:
            if not await self._authorization.start_or_continue(turn_context, turn_state):
                log.debug(f"Turn for activity {turn_context.activity.id} ended by sign-in")
                return False

        route = await self._routes.find(turn_context)
        handled = False
        if route is None:
            log.debug(f"No route matched {turn_context.activity.type} activity")
        elif await self._ensure_route_sign_in(route, turn_context, turn_state):
            await route.handler(turn_context, turn_state)
            handled = True

        await turn_state.save(turn_context)
        return handled

    async def _ensure_route_sign_in(self, route: Route, turn_context: TurnContext, turn_state: TurnState) -> bool:
        if not route.auto_sign_in_handlers:
            return True
        if self._authorization is None:
            raise RuntimeError("Route requires sign-in handlers but no authorization is configured")
        for handler_name in route.auto_sign_in_handlers:
            if not await self._authorization.start_or_continue(turn_context, turn_state, handler_name, force_auto=True):
                return False
        return True
