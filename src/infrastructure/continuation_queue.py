"""In-process continuation queue backed by asyncio.

Each submitted activity is processed by a background worker as a brand-new
turn with its own TurnContext. A failing turn is logged and counted; it never
stops the worker or reaches the code that submitted it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from neuroglia.hosting.abstractions import ApplicationBuilderBase

from application.authorization.continuation import ContinuationQueue
from application.settings import Settings
from application.turn.context import ActivitySender, TurnContext
from domain.models import Activity
from observability.metrics import continuation_failures

log = logging.getLogger(__name__)

TurnHandler = Callable[[TurnContext], Awaitable[Any]]


@dataclass
class _Continuation:
    activity: Activity
    identity: dict[str, Any] | None


class AsyncioContinuationQueue(ContinuationQueue):
    """Redelivers activities through a single background asyncio worker.

    Usage:
        queue = AsyncioContinuationQueue(sender=send_to_channel)
        queue.start(processor.process)
        ...
        await queue.stop()
    """

    def __init__(self, max_size: int = 0, sender: ActivitySender | None = None) -> None:
        """Initialize the queue.

        Args:
            max_size: Maximum pending continuations (0 = unbounded)
            sender: Used by redelivered turns to send activities to the user
        """
        self._queue: asyncio.Queue[_Continuation] = asyncio.Queue(maxsize=max_size)
        self._sender = sender
        self._turn_handler: TurnHandler | None = None
        self._worker: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def submit(self, activity: Activity, identity: dict[str, Any] | None = None) -> None:
        """Enqueue an activity for redelivery without waiting for it to be processed.

        Raises:
            asyncio.QueueFull: If the queue is bounded and full
        """
        self._queue.put_nowait(_Continuation(activity=activity, identity=identity))
        log.debug(f"Queued {activity.type} activity for continuation ({self._queue.qsize()} pending)")

    def start(self, turn_handler: TurnHandler) -> None:
        """Start the background worker.

        Args:
            turn_handler: Processes one turn, usually ``TurnProcessor.process``
        """
        if self.is_running:
            raise RuntimeError("Continuation queue is already running")
        self._turn_handler = turn_handler
        self._worker = asyncio.create_task(self._run(), name="continuation-queue")
        log.info("🔁 Continuation queue started")

    async def join(self) -> None:
        """Wait until every submitted continuation has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the worker. Pending continuations are dropped."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        log.info(f"Continuation queue stopped ({self._queue.qsize()} pending dropped)")

    async def _run(self) -> None:
        while True:
            continuation = await self._queue.get()
            try:
                await self._process(continuation)
            finally:
                self._queue.task_done()

    async def _process(self, continuation: _Continuation) -> None:
        turn_context = TurnContext(continuation.activity, identity=continuation.identity, sender=self._sender)
        try:
            await self._turn_handler(turn_context)  # type: ignore[misc]
        except asyncio.CancelledError:
            raise
        except Exception as e:
            continuation_failures.add(1, {"activity_type": continuation.activity.type, "error_type": type(e).__name__})
            log.error(f"Continuation turn for {continuation.activity.type} activity failed: {e}", exc_info=True)

    @staticmethod
    def configure(builder: ApplicationBuilderBase, sender: ActivitySender | None = None) -> "AsyncioContinuationQueue":
        """Register an AsyncioContinuationQueue sized from Settings."""
        settings: Settings | None = next(
            (d.singleton for d in builder.services if d.service_type is Settings),
            None,
        )
        max_size = settings.continuation_queue_max_size if settings else 0

        queue = AsyncioContinuationQueue(max_size=max_size, sender=sender)
        builder.services.add_singleton(ContinuationQueue, singleton=queue)
        return queue
