"""Authorization failure cause enumeration."""

from enum import Enum


class AuthErrorCause(str, Enum):
    """Reason a handler reported for a failed sign-in.

    INVALID_ACTIVITY is expected: the current activity cannot be evaluated
    by the flow (for example a plain message while a magic code is awaited
    and the handler gave up).
    """

    INVALID_ACTIVITY = "invalid_activity"
    INVALID_SIGN_IN = "invalid_sign_in"
    TIMEOUT = "timeout"
    USER_CANCELLED = "user_cancelled"
    EXCEPTION = "exception"
    OTHER = "other"
