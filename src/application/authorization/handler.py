"""Authorization handler contract.

A handler implements one named sign-in flow (OAuth, token exchange, ...).
It may be invoked many times, across many turns, for the same logical flow
and keeps its own durable progress (for example a pending authorization code
exchange) keyed by user and conversation.
"""

from abc import ABC, abstractmethod

from application.turn.context import TurnContext
from domain.models import TokenResponse


class AuthorizationHandler(ABC):
    """Abstract base class for pluggable authorization handlers.

    Implementations report progress through their return value:
    - a TokenResponse with a token: sign-in complete
    - None: more user interaction is needed (pending)
    - raise AuthorizationError: sign-in failed
    - raise DuplicateExchangeError: the activity repeats an exchange already handled
    """

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def sign_in(
        self,
        turn_context: TurnContext,
        force_sign_in: bool = False,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> TokenResponse | None:
        """Start or continue the sign-in flow for the user of the current activity.

        Args:
            turn_context: The current turn
            force_sign_in: True when a new flow is being started, False when continuing
            exchange_connection: Optional connection for an on-behalf-of token exchange
            exchange_scopes: Optional scopes for the token exchange
        """
        pass

    @abstractmethod
    async def sign_out(self, turn_context: TurnContext) -> None:
        """Sign the user out and discard any stored token."""
        pass

    @abstractmethod
    async def reset_state(self, turn_context: TurnContext) -> None:
        """Discard in-progress flow state without signing out."""
        pass

    @abstractmethod
    async def get_refreshed_token(
        self,
        turn_context: TurnContext,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> TokenResponse | None:
        """Return a fresh token for a user who already signed in."""
        pass
