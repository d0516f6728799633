"""Multi-turn user authorization.

Architecture:
    application/authorization/
    ├── orchestrator.py         # AuthorizationOrchestrator (auto gating + explicit API)
    ├── dispatcher.py           # HandlerDispatcher + default handler resolution
    ├── handler.py              # AuthorizationHandler contract
    ├── options.py              # AuthorizationOptions, callbacks, auto sign-in predicates
    ├── flow_state_accessor.py  # FlowState <-> user-scoped TurnState keys
    ├── token_cache.py          # Instance-scoped token cache
    └── continuation.py         # ContinuationQueue contract
"""

from application.authorization.continuation import ContinuationQueue
from application.authorization.dispatcher import HandlerDispatcher, resolve_default_handler_name
from application.authorization.flow_state_accessor import ACTIVE_FLOW_KEY, CONTINUATION_ACTIVITY_KEY, FlowStateAccessor
from application.authorization.handler import AuthorizationHandler
from application.authorization.options import (
    AuthorizationOptions,
    AutoSignInSelector,
    SignInFailedMessageFactory,
    SignInFailureCallback,
    SignInSuccessCallback,
    auto_sign_in_off,
    auto_sign_in_on,
)
from application.authorization.orchestrator import AuthorizationOrchestrator
from application.authorization.token_cache import TokenCache

__all__ = [
    # Main orchestrator
    "AuthorizationOrchestrator",
    "AuthorizationOptions",
    # Handlers
    "AuthorizationHandler",
    "HandlerDispatcher",
    "resolve_default_handler_name",
    # State
    "FlowStateAccessor",
    "ACTIVE_FLOW_KEY",
    "CONTINUATION_ACTIVITY_KEY",
    "TokenCache",
    # Continuation
    "ContinuationQueue",
    # Callbacks and predicates
    "AutoSignInSelector",
    "SignInFailedMessageFactory",
    "SignInSuccessCallback",
    "SignInFailureCallback",
    "auto_sign_in_on",
    "auto_sign_in_off",
]
