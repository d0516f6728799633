"""Turn state stores for user- and conversation-scoped state.

Keys are built by TurnState (``<channel>/users/<id>`` and
``<channel>/conversations/<id>``); values are JSON-compatible dicts.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any

import redis.asyncio as redis
from neuroglia.hosting.abstractions import ApplicationBuilderBase

from application.settings import Settings

logger = logging.getLogger(__name__)


class TurnStateStore(ABC):
    """Abstract base class for turn state storage."""

    @abstractmethod
    async def read(self, key: str) -> dict[str, Any] | None:
        """Read the values stored under a key.

        Args:
            key: The state key

        Returns:
            The stored values, or None if not found/expired
        """
        pass

    @abstractmethod
    async def write(self, key: str, values: dict[str, Any]) -> None:
        """Replace the values stored under a key.

        Args:
            key: The state key
            values: JSON-compatible values
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error.

        Args:
            key: The state key
        """
        pass

    @staticmethod
    def configure(builder: ApplicationBuilderBase) -> "TurnStateStore":
        """
        Configure the TurnStateStore selected by settings in the service collection.

        Args:
            builder: The application builder

        Returns:
            The registered store
        """
        settings: Settings | None = next(
            (d.singleton for d in builder.services if d.service_type is Settings),
            None,
        )

        if settings is None:
            logger.warning("Settings not found in services, using defaults")
            settings = Settings()

        store = create_turn_state_store(settings)
        builder.services.add_singleton(TurnStateStore, singleton=store)
        logger.info(f"Configured {type(store).__name__} for turn state")
        return store


class InMemoryTurnStateStore(TurnStateStore):
    """Simple in-memory turn state store for development and tests.

    Warning: State is lost on application restart and is not shared between
    processes. For production, use RedisTurnStateStore.
    """

    def __init__(self, ttl_seconds: int | None = None):
        """Initialize the in-memory store.

        Args:
            ttl_seconds: How long entries remain valid after their last write (None = forever)
        """
        self._entries: dict[str, dict[str, Any]] = {}
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None

    async def read(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if not entry:
            return None

        expires_at = entry.get("expires_at")
        if expires_at is not None and datetime.fromisoformat(expires_at) < datetime.now(UTC):
            await self.delete(key)
            return None

        # Copy through JSON so callers never share mutable state with the store
        return json.loads(entry["values"])

    async def write(self, key: str, values: dict[str, Any]) -> None:
        expires_at = (datetime.now(UTC) + self._ttl).isoformat() if self._ttl else None
        self._entries[key] = {"values": json.dumps(values), "expires_at": expires_at}

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def cleanup_expired(self) -> int:
        """Remove all expired entries (optional maintenance method).

        Returns:
            Number of entries removed
        """
        now = datetime.now(UTC)
        expired = [key for key, entry in self._entries.items() if entry.get("expires_at") and datetime.fromisoformat(entry["expires_at"]) < now]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)


class RedisTurnStateStore(TurnStateStore):
    """Redis-based turn state store for production use.

    Shares state between processes so a redelivered turn can be handled by
    any instance. Entries expire through Redis TTL.
    """

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int = 86400,
        key_prefix: str = "turn-auth:state:",
    ):
        """Initialize the Redis turn state store.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/3)
            ttl_seconds: Entry TTL in seconds (default: 24 hours)
            key_prefix: Prefix for all state keys
        """
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._redis: redis.Redis | None = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info(f"Connected to Redis at {self._redis_url}")

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None
            logger.info("Disconnected from Redis")

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    def _make_key(self, key: str) -> str:
        """Create Redis key from a state key."""
        return f"{self._key_prefix}{key}"

    async def read(self, key: str) -> dict[str, Any] | None:
        data = await self.client.get(self._make_key(key))
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON in turn state for key {key}")
            return None

    async def write(self, key: str, values: dict[str, Any]) -> None:
        await self.client.setex(self._make_key(key), self._ttl_seconds, json.dumps(values))

    async def delete(self, key: str) -> None:
        await self.client.delete(self._make_key(key))

    async def ping(self) -> bool:
        """
        Check if Redis is healthy.

        Returns:
            True if healthy
        """
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False


def create_turn_state_store(settings: Settings) -> TurnStateStore:
    """Create the turn state store selected by ``settings.state_store``.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = settings.state_store.lower()
    if backend == "memory":
        return InMemoryTurnStateStore(ttl_seconds=settings.state_ttl_seconds)
    if backend == "redis":
        return RedisTurnStateStore(
            redis_url=settings.redis_url,
            ttl_seconds=settings.state_ttl_seconds,
            key_prefix=settings.redis_key_prefix,
        )
    raise ValueError(f"Unknown turn state store backend: {settings.state_store}")
