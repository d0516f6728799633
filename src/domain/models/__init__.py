"""Domain models: activities, tokens, sign-in results and flow state."""

from .activity import Activity, ActivityTypes, ChannelAccount, ConversationAccount
from .camel_model import CamelModel
from .flow_state import FlowState
from .sign_in_completion_event import SIGN_IN_COMPLETION_EVENT_NAME, SignInCompletionEvent
from .sign_in_response import SignInResponse
from .token_response import TokenResponse

__all__ = [
    "CamelModel",
    # Activities
    "Activity",
    "ActivityTypes",
    "ChannelAccount",
    "ConversationAccount",
    # Sign-in
    "TokenResponse",
    "SignInResponse",
    "SignInCompletionEvent",
    "SIGN_IN_COMPLETION_EVENT_NAME",
    "FlowState",
]
