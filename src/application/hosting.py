"""Composition root for the turn authorization pipeline.

Wires RouteTable, TurnStateStore, AsyncioContinuationQueue,
AuthorizationOrchestrator and TurnProcessor together. The continuation queue
needs the processor and the orchestrator needs the queue, so the queue's
worker is started last with ``processor.process`` as its turn handler.
"""

import logging

from neuroglia.hosting.abstractions import ApplicationBuilderBase

from application.authorization import AuthorizationOptions, AuthorizationOrchestrator, ContinuationQueue, HandlerDispatcher
from application.settings import Settings
from application.turn import ActivitySender, RouteTable, TurnContext, TurnProcessor
from infrastructure.continuation_queue import AsyncioContinuationQueue
from infrastructure.turn_state_store import RedisTurnStateStore, TurnStateStore, create_turn_state_store

log = logging.getLogger(__name__)


class TurnAuthorizationHost:
    """Owns the pipeline components and their lifecycle.

    Usage:
        host = TurnAuthorizationHost.create(app_settings, HandlerDispatcher(graph_handler), sender=send)
        host.routes.on_message(handle_message, auto_sign_in_handlers=("graph",))
        await host.start()
        await host.process(TurnContext(activity, sender=send))
        await host.stop()
    """

    def __init__(
        self,
        routes: RouteTable,
        state_store: TurnStateStore,
        continuation_queue: ContinuationQueue,
        authorization: AuthorizationOrchestrator,
        processor: TurnProcessor,
    ) -> None:
        self.routes = routes
        self.state_store = state_store
        self.continuation_queue = continuation_queue
        self.authorization = authorization
        self.processor = processor

    @classmethod
    def create(
        cls,
        settings: Settings,
        dispatcher: HandlerDispatcher,
        state_store: TurnStateStore | None = None,
        continuation_queue: ContinuationQueue | None = None,
        sender: ActivitySender | None = None,
        **option_overrides,
    ) -> "TurnAuthorizationHost":
        """Build a host from settings.

        Args:
            settings: Application settings
            dispatcher: The registered authorization handlers
            state_store: Overrides the store selected by settings
            continuation_queue: Overrides the default AsyncioContinuationQueue
            sender: Used by redelivered turns to reach the user
            **option_overrides: Passed to AuthorizationOptions.from_settings
        """
        routes = RouteTable()
        state_store = state_store or create_turn_state_store(settings)
        continuation_queue = continuation_queue or AsyncioContinuationQueue(max_size=settings.continuation_queue_max_size, sender=sender)

        options = AuthorizationOptions.from_settings(settings, dispatcher, **option_overrides)
        authorization = AuthorizationOrchestrator(options, routes, continuation_queue)
        processor = TurnProcessor(state_store, routes, authorization=authorization)
        return cls(routes, state_store, continuation_queue, authorization, processor)

    async def start(self) -> None:
        """Connect the state store and start continuation delivery."""
        if isinstance(self.state_store, RedisTurnStateStore):
            await self.state_store.connect()
        if isinstance(self.continuation_queue, AsyncioContinuationQueue) and not self.continuation_queue.is_running:
            self.continuation_queue.start(self.processor.process)
        log.info("✅ Turn authorization pipeline started")

    async def stop(self) -> None:
        if isinstance(self.continuation_queue, AsyncioContinuationQueue):
            await self.continuation_queue.stop()
        if isinstance(self.state_store, RedisTurnStateStore):
            await self.state_store.disconnect()
        log.info("Turn authorization pipeline stopped")

    async def process(self, turn_context: TurnContext) -> bool:
        return await self.processor.process(turn_context)

    @staticmethod
    def configure(
        builder: ApplicationBuilderBase,
        dispatcher: HandlerDispatcher,
        sender: ActivitySender | None = None,
    ) -> "TurnAuthorizationHost":
        """
        Configure the turn authorization pipeline in the service collection.

        Registers the host and each of its components as singletons.

        Args:
            builder: The application builder
            dispatcher: The registered authorization handlers
            sender: Used by redelivered turns to reach the user

        Returns:
            The registered host
        """
        log.info("🔧 Configuring turn authorization services...")
        settings: Settings | None = next(
            (d.singleton for d in builder.services if d.service_type is Settings),
            None,
        )

        if settings is None:
            log.warning("Settings not found in services, using defaults")
            settings = Settings()

        state_store = TurnStateStore.configure(builder)
        continuation_queue = AsyncioContinuationQueue.configure(builder, sender=sender)
        host = TurnAuthorizationHost.create(settings, dispatcher, state_store=state_store, continuation_queue=continuation_queue)

        builder.services.add_singleton(RouteTable, singleton=host.routes)
        builder.services.add_singleton(AuthorizationOrchestrator, singleton=host.authorization)
        builder.services.add_singleton(TurnProcessor, singleton=host.processor)
        builder.services.add_singleton(TurnAuthorizationHost, singleton=host)
        return host
