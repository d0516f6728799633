"""Construction-time options for the authorization orchestrator."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from application.authorization.dispatcher import HandlerDispatcher
from application.turn.context import TurnContext
from application.turn.state import TurnState
from domain.models import Activity, SignInCompletionEvent, SignInResponse

if TYPE_CHECKING:
    from application.settings import Settings

AutoSignInSelector = Callable[[TurnContext], Awaitable[bool]]
SignInFailedMessageFactory = Callable[[str, SignInResponse], list[Activity | str]]

# (turn_context, turn_state, handler_name, token, initiating_activity)
SignInSuccessCallback = Callable[[TurnContext, TurnState, str, str, Activity], Awaitable[None]]
# (turn_context, turn_state, handler_name, response, initiating_activity)
SignInFailureCallback = Callable[[TurnContext, TurnState, str, SignInResponse, Activity | None], Awaitable[None]]

DEFAULT_SIGN_IN_FAILED_MESSAGE = "Sign in for '{handler}' completed without a token. Status={cause}"


async def auto_sign_in_on(turn_context: TurnContext) -> bool:
    """Start sign-in for every turn except sign-in completion events."""
    return not SignInCompletionEvent.is_completion_activity(turn_context.activity)


async def auto_sign_in_off(turn_context: TurnContext) -> bool:
    return False


def format_sign_in_failed_message(handler_name: str, response: SignInResponse, template: str = DEFAULT_SIGN_IN_FAILED_MESSAGE) -> str:
    cause = response.cause.value if response.cause else None
    return template.format(handler=handler_name, cause=cause)


def default_sign_in_failed_message(handler_name: str, response: SignInResponse) -> list[Activity | str]:
    return [format_sign_in_failed_message(handler_name, response)]


@dataclass
class AuthorizationOptions:
    """Options for AuthorizationOrchestrator.

    Attributes:
        dispatcher: Registry of authorization handlers (required)
        default_handler_name: Handler used when none is active or requested;
            defaults to the dispatcher's first handler
        auto_sign_in: Predicate deciding whether a turn starts sign-in automatically
        sign_in_failed_message: Builds the message sent when automatic sign-in fails
            and no failure callback is registered
        on_success: Initial success callback for explicit sign-in
        on_failure: Initial failure callback
        token_refresh_window_seconds: Cached tokens expiring within this window
            are refreshed on read
    """

    dispatcher: HandlerDispatcher | None
    default_handler_name: str | None = None
    auto_sign_in: AutoSignInSelector = auto_sign_in_on
    sign_in_failed_message: SignInFailedMessageFactory = default_sign_in_failed_message
    on_success: SignInSuccessCallback | None = None
    on_failure: SignInFailureCallback | None = None
    token_refresh_window_seconds: int = 300

    @classmethod
    def from_settings(cls, settings: "Settings", dispatcher: HandlerDispatcher, **overrides) -> "AuthorizationOptions":
        """Build options from application settings; keyword overrides win."""
        template = settings.sign_in_failed_message

        def failed_message(handler_name: str, response: SignInResponse) -> list[Activity | str]:
            return [format_sign_in_failed_message(handler_name, response, template)]

        values = {
            "dispatcher": dispatcher,
            "default_handler_name": settings.default_handler_name or None,
            "auto_sign_in": auto_sign_in_on if settings.auto_sign_in else auto_sign_in_off,
            "sign_in_failed_message": failed_message,
            "token_refresh_window_seconds": settings.token_refresh_window_seconds,
        }
        values.update(overrides)
        return cls(**values)
