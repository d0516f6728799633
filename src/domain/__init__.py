"""Domain layer for Turn Authorization.

Contains:
- enums/: Sign-in status and failure cause enumerations
- models/: Activities, token responses, sign-in results and flow state
- exceptions: Domain-specific exceptions
"""

from domain.enums import AuthErrorCause, SignInStatus
from domain.exceptions import (
    AlreadyActiveFlowError,
    AuthorizationError,
    DomainError,
    DuplicateExchangeError,
    HandlerNotFoundError,
    MissingDependencyError,
    SignInFailedError,
    UnexpectedAuthorizationStateError,
)
from domain.models import (
    SIGN_IN_COMPLETION_EVENT_NAME,
    Activity,
    ActivityTypes,
    ChannelAccount,
    ConversationAccount,
    FlowState,
    SignInCompletionEvent,
    SignInResponse,
    TokenResponse,
)

__all__ = [
    # Enums
    "AuthErrorCause",
    "SignInStatus",
    # Exceptions
    "DomainError",
    "AlreadyActiveFlowError",
    "HandlerNotFoundError",
    "MissingDependencyError",
    "SignInFailedError",
    "UnexpectedAuthorizationStateError",
    "AuthorizationError",
    "DuplicateExchangeError",
    # Models
    "Activity",
    "ActivityTypes",
    "ChannelAccount",
    "ConversationAccount",
    "TokenResponse",
    "SignInResponse",
    "SignInCompletionEvent",
    "SIGN_IN_COMPLETION_EVENT_NAME",
    "FlowState",
]
