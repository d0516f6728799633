"""Domain enumerations package."""

from .auth_error_cause import AuthErrorCause
from .sign_in_status import SignInStatus

__all__ = [
    "AuthErrorCause",
    "SignInStatus",
]
