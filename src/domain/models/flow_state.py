"""Per-user sign-in flow state."""

from .activity import Activity
from .camel_model import CamelModel
from .sign_in_completion_event import SignInCompletionEvent


class FlowState(CamelModel):
    """The sign-in flow in progress for one user.

    Invariants:
    - ``active_handler_name`` is set iff a flow is in progress
    - ``banked_activity`` is only set while ``active_handler_name`` is set

    Attributes:
        active_handler_name: Handler running the current flow
        banked_activity: The activity to redeliver once the flow ends; either
            the triggering activity or a sign-in completion event
    """

    active_handler_name: str | None = None
    banked_activity: Activity | None = None

    def is_active(self) -> bool:
        return bool(self.active_handler_name)

    @property
    def completion_event(self) -> SignInCompletionEvent | None:
        """Decoded completion event, when the banked activity is one."""
        if SignInCompletionEvent.is_completion_activity(self.banked_activity):
            return SignInCompletionEvent.from_activity(self.banked_activity)  # type: ignore[arg-type]
        return None
