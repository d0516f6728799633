"""Sign-in status enumeration."""

from enum import Enum


class SignInStatus(str, Enum):
    """Outcome of a single dispatcher sign-in attempt.

    - PENDING: the handler needs more user interaction (flow continues next turn)
    - COMPLETE: a token was acquired
    - ERROR: the flow failed and must not be continued
    - DUPLICATE: the incoming activity was a duplicate token exchange and was ignored
    """

    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"
    DUPLICATE = "duplicate"

    def is_terminal(self) -> bool:
        """Check if this status ends the active flow."""
        return self in {SignInStatus.COMPLETE, SignInStatus.ERROR}
