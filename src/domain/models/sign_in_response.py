"""Sign-in response model."""

from domain.enums import AuthErrorCause, SignInStatus

from .camel_model import CamelModel
from .token_response import TokenResponse


class SignInResponse(CamelModel):
    """Result of one dispatcher sign-in invocation.

    Produced on every call and never mutated afterwards.
    """

    status: SignInStatus
    token_response: TokenResponse | None = None
    cause: AuthErrorCause | None = None
    error: str | None = None

    model_config = {**CamelModel.model_config, "frozen": True}

    @classmethod
    def pending(cls) -> "SignInResponse":
        return cls(status=SignInStatus.PENDING)

    @classmethod
    def duplicate(cls) -> "SignInResponse":
        return cls(status=SignInStatus.DUPLICATE)

    @classmethod
    def complete(cls, token_response: TokenResponse) -> "SignInResponse":
        return cls(status=SignInStatus.COMPLETE, token_response=token_response)

    @classmethod
    def failed(cls, cause: AuthErrorCause = AuthErrorCause.OTHER, error: str | None = None) -> "SignInResponse":
        return cls(status=SignInStatus.ERROR, cause=cause, error=error)

    @property
    def token(self) -> str | None:
        """The acquired token, if any."""
        return self.token_response.token if self.token_response else None
