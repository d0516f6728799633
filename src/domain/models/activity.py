"""Conversational activity models.

Only the fields the authorization flow reads or copies are modelled here;
anything else a channel sends is kept through ``extra="allow"``.
"""

from datetime import datetime
from typing import Any

import humps
from pydantic import Field

from .camel_model import CamelModel


class ActivityTypes:
    """Well-known activity type names."""

    MESSAGE = "message"
    EVENT = "event"
    INVOKE = "invoke"
    CONVERSATION_UPDATE = "conversationUpdate"


class ChannelAccount(CamelModel):
    """A user or agent on a channel."""

    id: str
    name: str | None = None


class ConversationAccount(CamelModel):
    """The conversation an activity belongs to."""

    id: str
    name: str | None = None
    is_group: bool | None = None


class Activity(CamelModel):
    """A single inbound or outbound conversational activity."""

    type: str
    id: str | None = None
    name: str | None = None
    text: str | None = None
    value: Any = None
    channel_id: str | None = None
    service_url: str | None = None
    from_: ChannelAccount | None = Field(default=None, alias="from")
    recipient: ChannelAccount | None = None
    conversation: ConversationAccount | None = None
    channel_data: Any = None
    timestamp: datetime | None = None

    model_config = {
        "alias_generator": humps.camelize,
        "populate_by_name": True,
        "from_attributes": True,
        "extra": "allow",
    }

    @classmethod
    def message(cls, text: str, **kwargs: Any) -> "Activity":
        """Create a message activity."""
        return cls(type=ActivityTypes.MESSAGE, text=text, **kwargs)

    @property
    def user_id(self) -> str | None:
        """Id of the user who sent the activity."""
        return self.from_.id if self.from_ else None

    @property
    def conversation_id(self) -> str | None:
        """Id of the conversation the activity belongs to."""
        return self.conversation.id if self.conversation else None

    def is_type(self, activity_type: str) -> bool:
        """Case-insensitive activity type check."""
        return (self.type or "").lower() == activity_type.lower()

    def same_as(self, other: "Activity | None") -> bool:
        """Compare two activities by their serialized form.

        Banked activities round-trip through the state store, so identity and
        plain model equality are not reliable.
        """
        if other is None:
            return False
        return self.to_json_dict() == other.to_json_dict()

    def apply_conversation_reference(self, source: "Activity") -> "Activity":
        """Copy addressing from ``source`` so this activity is routed to the same user and conversation."""
        return self.model_copy(
            update={
                "channel_id": source.channel_id,
                "service_url": source.service_url,
                "from_": source.from_,
                "recipient": source.recipient,
                "conversation": source.conversation,
                "channel_data": source.channel_data,
            }
        )
