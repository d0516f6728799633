"""Synthetic sign-in completion event.

An explicit sign-in that goes pending banks one of these (wrapped in an
event activity) instead of the user's message. When the flow ends, the
result is written into it and the activity is delivered as a new turn, where
the completion route surfaces it to the success or failure callback.
"""

from typing import Any

from .activity import Activity, ActivityTypes
from .camel_model import CamelModel
from .sign_in_response import SignInResponse

SIGN_IN_COMPLETION_EVENT_NAME = "application/vnd.turnauth.signInCompletion"


class SignInCompletionEvent(CamelModel):
    """Continuation context carried across the turn boundary by an explicit sign-in."""

    handler_name: str
    initiating_activity: Activity
    response: SignInResponse | None = None
    exchange_connection_name: str | None = None
    exchange_scopes: list[str] | None = None

    @staticmethod
    def is_completion_activity(activity: Activity | None) -> bool:
        """Check if an activity is a sign-in completion event."""
        return activity is not None and activity.is_type(ActivityTypes.EVENT) and activity.name == SIGN_IN_COMPLETION_EVENT_NAME

    @classmethod
    def from_activity(cls, activity: Activity) -> "SignInCompletionEvent":
        """Decode the event payload from a completion activity."""
        value: Any = activity.value
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)

    def with_response(self, response: SignInResponse) -> "SignInCompletionEvent":
        return self.model_copy(update={"response": response})

    def to_activity(self) -> Activity:
        """Wrap the payload in an event activity addressed like the initiating activity."""
        activity = Activity(type=ActivityTypes.EVENT, name=SIGN_IN_COMPLETION_EVENT_NAME, value=self.to_json_dict())
        return activity.apply_conversation_reference(self.initiating_activity)
