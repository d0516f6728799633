"""Handler dispatcher - named registry of authorization handlers.

Handler names are matched case-insensitively. The default handler is the
explicitly configured name when given, otherwise the first registered one
(see ``resolve_default_handler_name``).
"""

import logging
from collections.abc import Iterable

from opentelemetry import trace

from application.authorization.handler import AuthorizationHandler
from application.turn.context import TurnContext
from domain.enums import AuthErrorCause
from domain.exceptions import AuthorizationError, DuplicateExchangeError, HandlerNotFoundError, MissingDependencyError
from domain.models import SignInResponse

log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def resolve_default_handler_name(handler_names: Iterable[str], configured: str | None = None) -> str:
    """Pick the default handler name.

    Args:
        handler_names: Registered handler names, in registration order
        configured: Explicitly configured default, if any

    Returns:
        ``configured`` when set, else the first registered name

    Raises:
        MissingDependencyError: If no handler is registered and none is configured
    """
    if configured:
        return configured
    for name in handler_names:
        return name
    raise MissingDependencyError("authorization handlers")


class HandlerDispatcher:
    """Dispatches sign-in operations to named authorization handlers."""

    def __init__(self, *handlers: AuthorizationHandler) -> None:
        if not handlers:
            raise MissingDependencyError("authorization handlers")
        self._handlers: dict[str, AuthorizationHandler] = {}
        for handler in handlers:
            key = handler.name.lower()
            if key in self._handlers:
                raise ValueError(f"Duplicate authorization handler name: {handler.name}")
            self._handlers[key] = handler

    @property
    def names(self) -> list[str]:
        """Registered handler names, in registration order."""
        return [handler.name for handler in self._handlers.values()]

    @property
    def default(self) -> AuthorizationHandler:
        return self.get(resolve_default_handler_name(self.names))

    def get(self, handler_name: str | None) -> AuthorizationHandler:
        """Resolve a handler; an empty name resolves to the default.

        Raises:
            HandlerNotFoundError: If no handler is registered under the name
        """
        if not handler_name:
            return self.default
        handler = self._handlers.get(handler_name.lower())
        if handler is None:
            raise HandlerNotFoundError(handler_name)
        return handler

    def try_get(self, handler_name: str | None) -> AuthorizationHandler | None:
        try:
            return self.get(handler_name)
        except HandlerNotFoundError:
            return None

    async def sign_in(
        self,
        turn_context: TurnContext,
        handler_name: str,
        force_sign_in: bool = False,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> SignInResponse:
        """Invoke a handler and translate its outcome into a SignInResponse.

        Handler exceptions never escape: they become error responses.
        """
        handler = self.get(handler_name)
        with tracer.start_as_current_span("handler_dispatcher.sign_in") as span:
            span.set_attribute("auth.handler", handler.name)
            span.set_attribute("auth.force_sign_in", force_sign_in)
            try:
                token_response = await handler.sign_in(
                    turn_context,
                    force_sign_in=force_sign_in,
                    exchange_connection=exchange_connection,
                    exchange_scopes=exchange_scopes,
                )
            except DuplicateExchangeError:
                log.debug(f"Duplicate token exchange ignored for handler '{handler.name}'")
                span.set_attribute("auth.status", "duplicate")
                return SignInResponse.duplicate()
            except AuthorizationError as e:
                log.warning(f"Handler '{handler.name}' reported sign-in failure ({e.cause.value}): {e.message}")
                span.set_attribute("auth.status", "error")
                return SignInResponse.failed(cause=e.cause, error=e.message)
            except Exception as e:
                log.error(f"Handler '{handler.name}' raised during sign-in: {e}", exc_info=True)
                span.record_exception(e)
                span.set_attribute("auth.status", "error")
                return SignInResponse.failed(cause=AuthErrorCause.EXCEPTION, error=str(e))

            if token_response is not None and token_response.token:
                span.set_attribute("auth.status", "complete")
                return SignInResponse.complete(token_response)

            span.set_attribute("auth.status", "pending")
            return SignInResponse.pending()

    async def sign_out(self, turn_context: TurnContext, handler_name: str) -> None:
        await self.get(handler_name).sign_out(turn_context)

    async def reset_state(self, turn_context: TurnContext, handler_name: str) -> None:
        await self.get(handler_name).reset_state(turn_context)
