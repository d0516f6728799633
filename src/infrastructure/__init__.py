"""Infrastructure layer for turn state storage and continuation delivery."""

from .continuation_queue import AsyncioContinuationQueue
from .turn_state_store import InMemoryTurnStateStore, RedisTurnStateStore, TurnStateStore, create_turn_state_store

__all__ = [
    "TurnStateStore",
    "InMemoryTurnStateStore",
    "RedisTurnStateStore",
    "create_turn_state_store",
    "AsyncioContinuationQueue",
]
