"""Token response model."""

from datetime import UTC, datetime, timedelta

from .camel_model import CamelModel


class TokenResponse(CamelModel):
    """A token acquired by an authorization handler.

    Attributes:
        token: The access token
        connection_name: Name of the connection that issued the token
        expiration: Absolute expiry time (UTC), None if unknown
    """

    token: str
    connection_name: str | None = None
    expiration: datetime | None = None

    def is_expiring(self, within_seconds: int) -> bool:
        """Check if the token expires within the given window.

        Tokens without an expiration are considered long-lived.
        """
        if self.expiration is None:
            return False
        expiration = self.expiration if self.expiration.tzinfo else self.expiration.replace(tzinfo=UTC)
        return expiration - datetime.now(UTC) < timedelta(seconds=within_seconds)
