"""Turn-scoped state partitioned by user and by conversation.

State is loaded from a TurnStateStore at the start of a turn and written
back with ``save``. Only scopes that changed are written.
"""

import copy
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from application.turn.context import TurnContext
    from infrastructure.turn_state_store import TurnStateStore

log = logging.getLogger(__name__)


class StateScope:
    """A named bag of JSON-compatible values with change tracking."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._values: dict[str, Any] = {}
        self._dirty = False

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def load(self, values: dict[str, Any] | None) -> None:
        self._values = dict(values or {})
        self._dirty = False

    def has_value(self, key: str) -> bool:
        return key in self._values

    def get_value(self, key: str, default_factory: Callable[[], Any] | None = None) -> Any:
        """Get a value, optionally creating it with ``default_factory`` when missing."""
        if key not in self._values:
            if default_factory is None:
                return None
            self.set_value(key, default_factory())
        return self._values[key]

    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._dirty = True

    def delete_value(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._dirty = True

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)

    def mark_saved(self) -> None:
        self._dirty = False


class TurnState:
    """User and conversation scoped state for one turn."""

    def __init__(self, store: "TurnStateStore") -> None:
        self._store = store
        self.user = StateScope("user")
        self.conversation = StateScope("conversation")
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @staticmethod
    def user_key(turn_context: "TurnContext") -> str:
        activity = turn_context.activity
        if not activity.channel_id or not activity.user_id:
            raise ValueError("Activity is missing channel_id or from.id; cannot partition user state")
        return f"{activity.channel_id}/users/{activity.user_id}"

    @staticmethod
    def conversation_key(turn_context: "TurnContext") -> str:
        activity = turn_context.activity
        if not activity.channel_id or not activity.conversation_id:
            raise ValueError("Activity is missing channel_id or conversation.id; cannot partition conversation state")
        return f"{activity.channel_id}/conversations/{activity.conversation_id}"

    def _scopes(self, turn_context: "TurnContext") -> list[tuple[str, StateScope]]:
        return [
            (self.user_key(turn_context), self.user),
            (self.conversation_key(turn_context), self.conversation),
        ]

    async def load(self, turn_context: "TurnContext", force: bool = False) -> None:
        """Load all scopes from the store."""
        if self._loaded and not force:
            return
        for key, scope in self._scopes(turn_context):
            scope.load(await self._store.read(key))
        self._loaded = True

    async def save(self, turn_context: "TurnContext") -> None:
        """Write changed scopes back to the store; empty scopes are deleted."""
        for key, scope in self._scopes(turn_context):
            if not scope.is_dirty:
                continue
            values = scope.to_dict()
            if values:
                await self._store.write(key, values)
            else:
                await self._store.delete(key)
            scope.mark_saved()
            log.debug(f"Saved {scope.name} state for {key}")
