"""Turn context: the activity being processed and how to reply to it."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from domain.models import Activity, ActivityTypes

log = logging.getLogger(__name__)

ActivitySender = Callable[[Activity], Awaitable[None]]


class TurnContext:
    """Context for one turn of conversational processing.

    A turn context is never reused: continuation delivery always builds a new
    one for the redelivered activity.

    Attributes:
        activity: The activity that triggered the turn
        identity: Claims of the caller that delivered the activity (adapter-level)
        sent_activities: Activities sent during this turn, in order
    """

    def __init__(
        self,
        activity: Activity,
        identity: dict[str, Any] | None = None,
        sender: ActivitySender | None = None,
    ) -> None:
        self.activity = activity
        self.identity = identity or {}
        self.sent_activities: list[Activity] = []
        self._sender = sender

    @property
    def responded(self) -> bool:
        """Whether anything was sent during this turn."""
        return len(self.sent_activities) > 0

    def create_reply(self, text: str) -> Activity:
        """Create a message addressed back to the sender of the current activity."""
        reply = Activity(type=ActivityTypes.MESSAGE, text=text).apply_conversation_reference(self.activity)
        return reply.model_copy(update={"from_": self.activity.recipient, "recipient": self.activity.from_})

    async def send_activity(self, activity: Activity | str) -> Activity:
        """Send an activity (or plain text) to the user."""
        if isinstance(activity, str):
            activity = self.create_reply(activity)
        self.sent_activities.append(activity)
        if self._sender is not None:
            await self._sender(activity)
        else:
            log.debug(f"No sender configured, buffered {activity.type} activity")
        return activity

    async def send_activities(self, activities: list[Activity | str]) -> None:
        for activity in activities:
            await self.send_activity(activity)
