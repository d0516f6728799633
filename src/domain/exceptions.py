"""Domain exceptions for turn authorization.

This module contains the exceptions raised by the authorization orchestrator
and its dispatcher when an invariant is violated or the configuration is
unusable, plus the exceptions authorization handlers raise to report a
failed or duplicate sign-in attempt.
"""

from domain.enums import AuthErrorCause


class DomainError(Exception):
    """Base exception for domain rule violations.

    Attributes:
        message: Human-readable description of the violation.
        code: Optional error code for programmatic handling.
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class AlreadyActiveFlowError(DomainError):
    """Raised when an explicit sign-in is requested while another flow is active."""

    def __init__(self, active_handler_name: str) -> None:
        super().__init__(f"A sign-in flow is already active for handler '{active_handler_name}'", code="ALREADY_ACTIVE_FLOW")
        self.active_handler_name = active_handler_name


class HandlerNotFoundError(DomainError):
    """Raised when an authorization handler cannot be resolved by name."""

    def __init__(self, handler_name: str) -> None:
        super().__init__(f"Authorization handler not found: {handler_name}", code="HANDLER_NOT_FOUND")
        self.handler_name = handler_name


class MissingDependencyError(DomainError):
    """Raised when a required collaborator is absent at construction."""

    def __init__(self, dependency: str) -> None:
        super().__init__(f"Required dependency is missing: {dependency}", code="MISSING_DEPENDENCY")
        self.dependency = dependency


class SignInFailedError(DomainError):
    """Raised by an explicit sign-in that failed with no failure callback registered."""

    def __init__(self, handler_name: str, cause: AuthErrorCause | None = None, error: str | None = None) -> None:
        detail = f" ({error})" if error else ""
        super().__init__(f"Sign in for '{handler_name}' failed. Status={cause.value if cause else None}{detail}", code="SIGN_IN_FAILED")
        self.handler_name = handler_name
        self.cause = cause
        self.error = error


class UnexpectedAuthorizationStateError(DomainError):
    """Raised when a previously cached token could not be refreshed."""

    def __init__(self, handler_name: str) -> None:
        super().__init__(f"Handler '{handler_name}' had a cached token but refresh returned none", code="UNEXPECTED_AUTHORIZATION_STATE")
        self.handler_name = handler_name


class AuthorizationError(Exception):
    """Raised by an authorization handler to report a failed sign-in.

    The dispatcher converts it into an error response carrying ``cause``.
    """

    def __init__(self, message: str, cause: AuthErrorCause = AuthErrorCause.OTHER) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class DuplicateExchangeError(Exception):
    """Raised by an authorization handler when a token exchange was already processed."""
