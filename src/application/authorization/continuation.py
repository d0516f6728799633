"""Continuation delivery contract.

Submitting an activity schedules it to be processed as an independent, fresh
turn outside the current call stack. The caller does not wait for that turn.
"""

from abc import ABC, abstractmethod
from typing import Any

from domain.models import Activity


class ContinuationQueue(ABC):
    """Abstract execution queue for redelivering activities as new turns."""

    @abstractmethod
    async def submit(self, activity: Activity, identity: dict[str, Any] | None = None) -> None:
        """Schedule ``activity`` to be processed in a brand-new turn.

        Args:
            activity: The activity to redeliver
            identity: Caller claims to attach to the new turn
        """
        pass
