"""Authorization Orchestrator - multi-turn sign-in coordinator.

Mediates between incoming turns and the authorization handlers registered in
a HandlerDispatcher. Two entry modes share one per-user FlowState:

Automatic (``start_or_continue``), called by the turn pipeline before routing:
    no flow + predicate false → pass through
    dispatcher PENDING        → bank the triggering activity, end the turn
    dispatcher COMPLETE       → cache the token, then either continue routing
                                (same activity) or redeliver the banked activity
    dispatcher ERROR          → clear the flow, notify failure

Explicit (``sign_in``), called by business logic:
    PENDING banks a synthetic completion event instead of the user's message.
    When the flow ends, the result is written into that event and it is
    redelivered as a fresh turn, where the completion route calls the
    success/failure callback.

Redelivery always goes through a ContinuationQueue so that callbacks run in an
unconstrained turn instead of inside a time-limited one (e.g. an invoke).
"""

import logging

from application.authorization.continuation import ContinuationQueue
from application.authorization.dispatcher import resolve_default_handler_name
from application.authorization.flow_state_accessor import FlowStateAccessor
from application.authorization.options import AuthorizationOptions, SignInFailureCallback, SignInSuccessCallback
from application.authorization.token_cache import TokenCache
from application.turn.context import TurnContext
from application.turn.routing import RouteTable
from application.turn.state import TurnState
from domain.enums import AuthErrorCause, SignInStatus
from domain.exceptions import AlreadyActiveFlowError, HandlerNotFoundError, MissingDependencyError, SignInFailedError, UnexpectedAuthorizationStateError
from domain.models import Activity, ActivityTypes, FlowState, SignInCompletionEvent, SignInResponse
from domain.models.sign_in_completion_event import SIGN_IN_COMPLETION_EVENT_NAME
from observability.metrics import (
    continuations_submitted,
    sign_in_duplicates,
    sign_in_flows_completed,
    sign_in_flows_failed,
    sign_in_flows_started,
)

log = logging.getLogger(__name__)


class AuthorizationOrchestrator:
    """Coordinates sign-in flows across turns.

    At most one flow is active per user. A continuing flow always takes
    precedence over a new automatic sign-in.

    Usage:
        routes = RouteTable()
        orchestrator = AuthorizationOrchestrator(
            options=AuthorizationOptions(dispatcher=HandlerDispatcher(graph_handler)),
            routes=routes,
            continuation_queue=queue,
        )
        orchestrator.on_success(handle_signed_in)

        # In business logic
        await orchestrator.sign_in(turn_context, turn_state, "graph")
    """

    def __init__(
        self,
        options: AuthorizationOptions,
        routes: RouteTable,
        continuation_queue: ContinuationQueue,
    ) -> None:
        """Initialize the orchestrator and register the completion route.

        Raises:
            MissingDependencyError: If options, dispatcher, routes or the queue are missing
            HandlerNotFoundError: If the default handler is not registered
        """
        if options is None:
            raise MissingDependencyError("options")
        if options.dispatcher is None:
            raise MissingDependencyError("dispatcher")
        if routes is None:
            raise MissingDependencyError("routes")
        if continuation_queue is None:
            raise MissingDependencyError("continuation_queue")

        self._options = options
        self._dispatcher = options.dispatcher
        self._continuation_queue = continuation_queue
        self._token_cache = TokenCache()
        self._success_callback: SignInSuccessCallback | None = options.on_success
        self._failure_callback: SignInFailureCallback | None = options.on_failure

        self._default_handler_name = resolve_default_handler_name(self._dispatcher.names, options.default_handler_name)
        if self._dispatcher.try_get(self._default_handler_name) is None:
            raise HandlerNotFoundError(self._default_handler_name)

        routes.add_route(self._is_completion_event, self._on_completion_event)
        log.info(f"🔐 Authorization orchestrator ready with handlers {self._dispatcher.names} (default: '{self._default_handler_name}')")

    # =========================================================================
    # Public Properties
    # =========================================================================

    @property
    def default_handler_name(self) -> str:
        return self._default_handler_name

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    # =========================================================================
    # Callback Registration
    # =========================================================================

    def on_success(self, callback: SignInSuccessCallback) -> None:
        """Set the callback invoked when an explicit sign-in produces a token.

        Replaces any previously registered callback.
        """
        if self._success_callback is not None and self._success_callback is not callback:
            log.warning("Replacing existing sign-in success callback")
        self._success_callback = callback

    def on_failure(self, callback: SignInFailureCallback) -> None:
        """Set the callback invoked when a sign-in flow fails.

        Used by both entry modes. Replaces any previously registered callback.
        """
        if self._failure_callback is not None and self._failure_callback is not callback:
            log.warning("Replacing existing sign-in failure callback")
        self._failure_callback = callback

    # =========================================================================
    # Token Access
    # =========================================================================

    def get_cached_token(self, handler_name: str) -> str | None:
        """Return a previously acquired token without refreshing it."""
        token_response = self._token_cache.get(handler_name)
        return token_response.token if token_response else None

    async def get_turn_token(
        self,
        turn_context: TurnContext,
        handler_name: str,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> str | None:
        """Return a previously acquired token, refreshing it when close to expiry.

        This reads tokens; it never starts a sign-in flow.

        Raises:
            UnexpectedAuthorizationStateError: If a cached token could not be refreshed
        """
        token_response = self._token_cache.get(handler_name)
        if token_response is None:
            return None
        if not token_response.is_expiring(self._options.token_refresh_window_seconds):
            return token_response.token

        log.debug(f"Cached token for '{handler_name}' is expiring, refreshing")
        handler = self._dispatcher.get(handler_name)
        refreshed = await handler.get_refreshed_token(turn_context, exchange_connection=exchange_connection, exchange_scopes=exchange_scopes)
        if refreshed is None or not refreshed.token:
            raise UnexpectedAuthorizationStateError(handler_name)
        self._token_cache.set(handler_name, refreshed)
        return refreshed.token

    # =========================================================================
    # Explicit API
    # =========================================================================

    async def sign_in(
        self,
        turn_context: TurnContext,
        turn_state: TurnState,
        handler_name: str,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> None:
        """Explicitly sign the user in with ``handler_name``.

        The outcome is reported through the success/failure callbacks. When the
        flow goes pending the caller should end the turn; the callbacks then
        run in a later, redelivered turn.

        Raises:
            AlreadyActiveFlowError: If a flow is already active for this user
            SignInFailedError: If sign-in fails and no failure callback is registered
            UnexpectedAuthorizationStateError: If a cached token could not be refreshed
        """
        if not handler_name or not handler_name.strip():
            raise ValueError("handler_name is required")

        flow_state = FlowStateAccessor.get(turn_state)
        if flow_state.is_active():
            raise AlreadyActiveFlowError(flow_state.active_handler_name)  # type: ignore[arg-type]

        cached_token = await self.get_turn_token(turn_context, handler_name, exchange_connection=exchange_connection, exchange_scopes=exchange_scopes)
        if cached_token is not None:
            log.debug(f"Explicit sign-in for '{handler_name}' served from cache")
            if self._success_callback is not None:
                await self._success_callback(turn_context, turn_state, handler_name, cached_token, turn_context.activity)
            return

        response = await self._dispatcher.sign_in(
            turn_context,
            handler_name,
            force_sign_in=True,
            exchange_connection=exchange_connection,
            exchange_scopes=exchange_scopes,
        )

        if response.status == SignInStatus.PENDING:
            completion_event = SignInCompletionEvent(
                handler_name=handler_name,
                initiating_activity=turn_context.activity,
                exchange_connection_name=exchange_connection,
                exchange_scopes=exchange_scopes,
            )
            FlowStateAccessor.set(turn_state, FlowState(active_handler_name=handler_name, banked_activity=completion_event.to_activity()))
            await turn_state.save(turn_context)
            sign_in_flows_started.add(1, {"handler": handler_name, "mode": "explicit"})
            log.info(f"Explicit sign-in for '{handler_name}' is pending user action")
            return

        if response.status == SignInStatus.ERROR:
            FlowStateAccessor.clear(turn_state)
            await turn_state.save(turn_context)
            sign_in_flows_failed.add(1, {"handler": handler_name, "mode": "explicit"})
            if self._failure_callback is not None:
                await self._failure_callback(turn_context, turn_state, handler_name, response, turn_context.activity)
                return
            raise SignInFailedError(handler_name, response.cause, response.error)

        if response.status == SignInStatus.COMPLETE:
            FlowStateAccessor.clear(turn_state)
            self._token_cache.set(handler_name, response.token_response)  # type: ignore[arg-type]
            sign_in_flows_completed.add(1, {"handler": handler_name, "mode": "explicit"})
            if self._success_callback is not None:
                await self._success_callback(turn_context, turn_state, handler_name, response.token, turn_context.activity)  # type: ignore[arg-type]
            return

        sign_in_duplicates.add(1, {"handler": handler_name})

    async def sign_out(self, turn_context: TurnContext, turn_state: TurnState, handler_name: str | None = None) -> None:
        """Sign the user out of a handler, clearing its cached token and any active flow."""
        handler_name = handler_name or self._default_handler_name
        self._token_cache.evict(handler_name)
        FlowStateAccessor.clear(turn_state)
        await turn_state.save(turn_context)
        await self._dispatcher.sign_out(turn_context, handler_name)
        log.info(f"Signed out of '{handler_name}'")

    async def reset_state(self, turn_context: TurnContext, turn_state: TurnState, handler_name: str | None = None) -> None:
        """Abandon any sign-in progress for a handler without signing out upstream."""
        handler_name = handler_name or self._default_handler_name
        self._token_cache.evict(handler_name)
        FlowStateAccessor.clear(turn_state)
        await turn_state.save(turn_context)
        await self._dispatcher.reset_state(turn_context, handler_name)

    # =========================================================================
    # Automatic Gating
    # =========================================================================

    async def start_or_continue(
        self,
        turn_context: TurnContext,
        turn_state: TurnState,
        handler_name: str | None = None,
        force_auto: bool = False,
    ) -> bool:
        """Start or continue the sign-in flow for the current turn.

        Args:
            turn_context: The current turn
            turn_state: Loaded state for the current turn
            handler_name: Handler to start when no flow is active
            force_auto: Start sign-in even if the auto sign-in predicate says no

        Returns:
            True if routing should proceed, False if this call fully handled the turn
        """
        flow_state = FlowStateAccessor.get(turn_state)
        continuing = flow_state.is_active()

        if not continuing and not force_auto and not await self._options.auto_sign_in(turn_context):
            return True

        active_handler = flow_state.active_handler_name or handler_name or self._default_handler_name
        completion_event = flow_state.completion_event

        if continuing and self._dispatcher.try_get(active_handler) is None:
            # Persisted flow names a handler that is no longer registered
            response = SignInResponse.failed(cause=AuthErrorCause.INVALID_ACTIVITY, error=f"Authorization handler '{active_handler}' is no longer registered")
        else:
            response = await self._dispatcher.sign_in(
                turn_context,
                active_handler,
                force_sign_in=not continuing,
                exchange_connection=completion_event.exchange_connection_name if completion_event else None,
                exchange_scopes=completion_event.exchange_scopes if completion_event else None,
            )

        if response.status == SignInStatus.DUPLICATE:
            sign_in_duplicates.add(1, {"handler": active_handler})
            return False

        if response.status == SignInStatus.PENDING:
            if not continuing:
                FlowStateAccessor.set(turn_state, FlowState(active_handler_name=active_handler, banked_activity=turn_context.activity))
                await turn_state.save(turn_context)
                sign_in_flows_started.add(1, {"handler": active_handler, "mode": "auto"})
                log.info(f"Sign-in for '{active_handler}' started, waiting for user")
            return False

        if response.status == SignInStatus.ERROR:
            await self._handle_flow_error(turn_context, turn_state, active_handler, response, flow_state, completion_event)
            return False

        return await self._handle_flow_complete(turn_context, turn_state, active_handler, response, flow_state, completion_event)

    async def _handle_flow_error(
        self,
        turn_context: TurnContext,
        turn_state: TurnState,
        handler_name: str,
        response: SignInResponse,
        flow_state: FlowState,
        completion_event: SignInCompletionEvent | None,
    ) -> None:
        log.warning(f"Sign-in for '{handler_name}' failed: {response.cause.value if response.cause else None}")
        sign_in_flows_failed.add(1, {"handler": handler_name, "mode": "explicit" if completion_event else "auto"})

        FlowStateAccessor.clear(turn_state)
        await turn_state.save(turn_context)

        if self._dispatcher.try_get(handler_name) is not None:
            try:
                await self._dispatcher.reset_state(turn_context, handler_name)
            except Exception as e:
                log.error(f"Failed to reset state of handler '{handler_name}': {e}", exc_info=True)

        if completion_event is not None:
            await self._redeliver(turn_context, completion_event.with_response(response).to_activity())
            return

        if self._failure_callback is not None:
            await self._failure_callback(turn_context, turn_state, handler_name, response, flow_state.banked_activity)
            return

        await turn_context.send_activities(self._options.sign_in_failed_message(handler_name, response))

    async def _handle_flow_complete(
        self,
        turn_context: TurnContext,
        turn_state: TurnState,
        handler_name: str,
        response: SignInResponse,
        flow_state: FlowState,
        completion_event: SignInCompletionEvent | None,
    ) -> bool:
        FlowStateAccessor.clear(turn_state)
        self._token_cache.set(handler_name, response.token_response)  # type: ignore[arg-type]
        await turn_state.save(turn_context)
        sign_in_flows_completed.add(1, {"handler": handler_name, "mode": "explicit" if completion_event else "auto"})

        banked = flow_state.banked_activity
        if banked is None:
            return True

        if completion_event is not None:
            await self._redeliver(turn_context, completion_event.with_response(response).to_activity())
            return False

        if not banked.same_as(turn_context.activity):
            # The flow spanned turns: resume the banked request in a clean turn
            await self._redeliver(turn_context, banked)
            return False

        return True

    async def _redeliver(self, turn_context: TurnContext, activity: Activity) -> None:
        await self._continuation_queue.submit(activity, identity=turn_context.identity)
        continuations_submitted.add(1, {"activity_type": activity.type})
        log.debug(f"Submitted {activity.type} activity for redelivery")

    # =========================================================================
    # Completion Route
    # =========================================================================

    @staticmethod
    async def _is_completion_event(turn_context: TurnContext) -> bool:
        activity = turn_context.activity
        return activity.is_type(ActivityTypes.EVENT) and activity.name == SIGN_IN_COMPLETION_EVENT_NAME

    async def _on_completion_event(self, turn_context: TurnContext, turn_state: TurnState) -> None:
        completion_event = SignInCompletionEvent.from_activity(turn_context.activity)
        response = completion_event.response
        handler_name = completion_event.handler_name

        if response is not None and response.status == SignInStatus.COMPLETE:
            self._token_cache.set(handler_name, response.token_response)  # type: ignore[arg-type]
            if self._success_callback is not None:
                await self._success_callback(turn_context, turn_state, handler_name, response.token, completion_event.initiating_activity)  # type: ignore[arg-type]
            else:
                log.warning(f"Sign-in for '{handler_name}' completed but no success callback is registered")
            return

        if self._failure_callback is not None:
            failure = response or SignInResponse.failed(error="Completion event carried no response")
            await self._failure_callback(turn_context, turn_state, handler_name, failure, completion_event.initiating_activity)
        else:
            log.warning(f"Sign-in for '{handler_name}' failed but no failure callback is registered")
