"""Shared pytest fixtures for Turn Authorization tests."""

from dataclasses import dataclass
from typing import Any

import pytest

from application.authorization import AuthorizationHandler, AuthorizationOptions, AuthorizationOrchestrator, ContinuationQueue, HandlerDispatcher
from application.turn import RouteTable, TurnContext, TurnState
from domain.models import Activity, TokenResponse
from infrastructure.turn_state_store import InMemoryTurnStateStore, TurnStateStore
from tests.fixtures.factories import ActivityFactory

# ============================================================================
# FAKES
# ============================================================================


@dataclass
class SignInCall:
    """Arguments of one AuthorizationHandler.sign_in call."""

    activity: Activity
    force_sign_in: bool
    exchange_connection: str | None
    exchange_scopes: list[str] | None


class ScriptedAuthorizationHandler(AuthorizationHandler):
    """Authorization handler replaying a script of outcomes.

    Each outcome is a TokenResponse (complete), None (pending) or an exception
    to raise. When the script runs out the handler keeps reporting pending.
    """

    def __init__(self, name: str, *outcomes: TokenResponse | Exception | None) -> None:
        super().__init__(name)
        self.outcomes: list[TokenResponse | Exception | None] = list(outcomes)
        self.sign_in_calls: list[SignInCall] = []
        self.sign_out_count = 0
        self.reset_count = 0
        self.refresh_count = 0
        self.refreshed_token: TokenResponse | None = None

    def script(self, *outcomes: TokenResponse | Exception | None) -> None:
        self.outcomes.extend(outcomes)

    async def sign_in(
        self,
        turn_context: TurnContext,
        force_sign_in: bool = False,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> TokenResponse | None:
        self.sign_in_calls.append(SignInCall(turn_context.activity, force_sign_in, exchange_connection, exchange_scopes))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def sign_out(self, turn_context: TurnContext) -> None:
        self.sign_out_count += 1

    async def reset_state(self, turn_context: TurnContext) -> None:
        self.reset_count += 1

    async def get_refreshed_token(
        self,
        turn_context: TurnContext,
        exchange_connection: str | None = None,
        exchange_scopes: list[str] | None = None,
    ) -> TokenResponse | None:
        self.refresh_count += 1
        return self.refreshed_token


class RecordingContinuationQueue(ContinuationQueue):
    """Continuation queue that records submissions instead of running them."""

    def __init__(self) -> None:
        self.submitted: list[tuple[Activity, dict[str, Any] | None]] = []

    @property
    def activities(self) -> list[Activity]:
        return [activity for activity, _ in self.submitted]

    async def submit(self, activity: Activity, identity: dict[str, Any] | None = None) -> None:
        self.submitted.append((activity, identity))


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def state_store() -> TurnStateStore:
    """Create an in-memory turn state store."""
    return InMemoryTurnStateStore()


@pytest.fixture
def graph_handler() -> ScriptedAuthorizationHandler:
    return ScriptedAuthorizationHandler("graph")


@pytest.fixture
def github_handler() -> ScriptedAuthorizationHandler:
    return ScriptedAuthorizationHandler("github")


@pytest.fixture
def dispatcher(graph_handler, github_handler) -> HandlerDispatcher:
    """Dispatcher with 'graph' registered first (the default)."""
    return HandlerDispatcher(graph_handler, github_handler)


@pytest.fixture
def routes() -> RouteTable:
    return RouteTable()


@pytest.fixture
def continuation_queue() -> RecordingContinuationQueue:
    return RecordingContinuationQueue()


@pytest.fixture
def orchestrator(dispatcher, routes, continuation_queue) -> AuthorizationOrchestrator:
    """Create an orchestrator with auto sign-in enabled for every turn."""
    return AuthorizationOrchestrator(AuthorizationOptions(dispatcher=dispatcher), routes, continuation_queue)


@pytest.fixture
def message_activity() -> Activity:
    return ActivityFactory.create_message("show my calendar", activity_id="msg-1")


@pytest.fixture
def turn_context(message_activity) -> TurnContext:
    return TurnContext(message_activity, identity={"aud": "agent-1"})


async def load_turn_state(store: TurnStateStore, turn_context: TurnContext) -> TurnState:
    """Load a TurnState for the given turn, as the turn pipeline would."""
    turn_state = TurnState(store)
    await turn_state.load(turn_context)
    return turn_state
