"""Unit tests for automatic sign-in gating (AuthorizationOrchestrator.start_or_continue).

Tests cover:
- Pass-through when no flow is active and auto sign-in is off
- Starting a flow and banking the triggering activity
- Idempotent continuation while the handler stays pending
- Completion within the same turn and across turns
- Errors with and without a failure callback, including failing handler resets
- Flows left behind by a handler that is no longer registered
- Duplicate token exchanges
- Continuation of a flow banked by an explicit sign-in
"""

import logging
from unittest.mock import AsyncMock

import pytest

from application.authorization import AuthorizationOptions, AuthorizationOrchestrator, FlowStateAccessor, HandlerDispatcher, auto_sign_in_off
from application.turn import TurnContext
from domain.enums import AuthErrorCause, SignInStatus
from domain.exceptions import AuthorizationError, DuplicateExchangeError
from domain.models import FlowState, SignInCompletionEvent
from tests.conftest import ScriptedAuthorizationHandler, load_turn_state
from tests.fixtures.factories import ActivityFactory, CompletionEventFactory, TokenResponseFactory


async def start_flow(orchestrator, state_store, turn_context) -> None:
    """Run one turn that leaves a pending flow behind."""
    turn_state = await load_turn_state(state_store, turn_context)
    assert await orchestrator.start_or_continue(turn_context, turn_state) is False


class FailingResetHandler(ScriptedAuthorizationHandler):
    """Scripted handler whose state reset fails."""

    async def reset_state(self, turn_context: TurnContext) -> None:
        raise RuntimeError("token service down")


class TestPassThrough:
    """Test turns that do not involve sign-in."""

    @pytest.mark.asyncio
    async def test_predicate_false_and_no_flow_passes_through(self, dispatcher, routes, continuation_queue, graph_handler, state_store, turn_context) -> None:
        orchestrator = AuthorizationOrchestrator(AuthorizationOptions(dispatcher=dispatcher, auto_sign_in=auto_sign_in_off), routes, continuation_queue)
        turn_state = await load_turn_state(state_store, turn_context)

        result = await orchestrator.start_or_continue(turn_context, turn_state)

        assert result is True
        assert graph_handler.sign_in_calls == []

    @pytest.mark.asyncio
    async def test_completion_event_is_not_auto_signed_in(self, orchestrator, graph_handler, state_store) -> None:
        turn_context = TurnContext(CompletionEventFactory.create().to_activity())
        turn_state = await load_turn_state(state_store, turn_context)

        assert await orchestrator.start_or_continue(turn_context, turn_state) is True
        assert graph_handler.sign_in_calls == []

    @pytest.mark.asyncio
    async def test_force_auto_ignores_predicate(self, dispatcher, routes, continuation_queue, github_handler, state_store, turn_context) -> None:
        orchestrator = AuthorizationOrchestrator(AuthorizationOptions(dispatcher=dispatcher, auto_sign_in=auto_sign_in_off), routes, continuation_queue)
        turn_state = await load_turn_state(state_store, turn_context)

        result = await orchestrator.start_or_continue(turn_context, turn_state, "github", force_auto=True)

        assert result is False
        assert len(github_handler.sign_in_calls) == 1


class TestFlowStart:
    """Test the first turn of an automatic flow."""

    @pytest.mark.asyncio
    async def test_pending_banks_triggering_activity(self, orchestrator, graph_handler, state_store, turn_context, message_activity) -> None:
        turn_state = await load_turn_state(state_store, turn_context)

        result = await orchestrator.start_or_continue(turn_context, turn_state)

        assert result is False
        flow_state = FlowStateAccessor.get(turn_state)
        assert flow_state.active_handler_name == "graph"
        assert flow_state.banked_activity.same_as(message_activity)
        assert graph_handler.sign_in_calls[0].force_sign_in is True

    @pytest.mark.asyncio
    async def test_pending_flow_is_persisted(self, orchestrator, state_store, turn_context) -> None:
        await start_flow(orchestrator, state_store, turn_context)

        reloaded = await load_turn_state(state_store, turn_context)

        assert FlowStateAccessor.get(reloaded).active_handler_name == "graph"

    @pytest.mark.asyncio
    async def test_requested_handler_is_used(self, orchestrator, github_handler, state_store, turn_context) -> None:
        turn_state = await load_turn_state(state_store, turn_context)

        await orchestrator.start_or_continue(turn_context, turn_state, "github")

        assert FlowStateAccessor.get(turn_state).active_handler_name == "github"
        assert len(github_handler.sign_in_calls) == 1

    @pytest.mark.asyncio
    async def test_configured_default_handler_is_used(self, dispatcher, routes, continuation_queue, github_handler, state_store, turn_context) -> None:
        orchestrator = AuthorizationOrchestrator(AuthorizationOptions(dispatcher=dispatcher, default_handler_name="github"), routes, continuation_queue)
        turn_state = await load_turn_state(state_store, turn_context)

        await orchestrator.start_or_continue(turn_context, turn_state)

        assert FlowStateAccessor.get(turn_state).active_handler_name == "github"


class TestFlowContinuation:
    """Test subsequent turns of an active flow."""

    @pytest.mark.asyncio
    async def test_repeated_pending_leaves_banked_activity_unchanged(self, orchestrator, graph_handler, state_store, turn_context, message_activity) -> None:
        await start_flow(orchestrator, state_store, turn_context)

        for text in ("123", "456"):
            next_context = TurnContext(ActivityFactory.create_message(text))
            turn_state = await load_turn_state(state_store, next_context)

            assert await orchestrator.start_or_continue(next_context, turn_state) is False

            flow_state = FlowStateAccessor.get(await load_turn_state(state_store, next_context))
            assert flow_state.active_handler_name == "graph"
            assert flow_state.banked_activity.same_as(message_activity)

        assert [call.force_sign_in for call in graph_handler.sign_in_calls] == [True, False, False]

    @pytest.mark.asyncio
    async def test_active_flow_wins_over_requested_handler(self, orchestrator, graph_handler, github_handler, state_store, turn_context) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        next_context = TurnContext(ActivityFactory.create_message("123"))
        turn_state = await load_turn_state(state_store, next_context)

        await orchestrator.start_or_continue(next_context, turn_state, "github", force_auto=True)

        assert len(graph_handler.sign_in_calls) == 2
        assert github_handler.sign_in_calls == []
        assert FlowStateAccessor.get(turn_state).active_handler_name == "graph"

    @pytest.mark.asyncio
    async def test_active_flow_continues_even_when_predicate_is_false(self, dispatcher, routes, continuation_queue, graph_handler, state_store, turn_context) -> None:
        orchestrator = AuthorizationOrchestrator(AuthorizationOptions(dispatcher=dispatcher, auto_sign_in=auto_sign_in_off), routes, continuation_queue)
        turn_state = await load_turn_state(state_store, turn_context)
        await orchestrator.start_or_continue(turn_context, turn_state, "graph", force_auto=True)
        await turn_state.save(turn_context)

        next_context = TurnContext(ActivityFactory.create_message("123"))
        result = await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        assert result is False
        assert len(graph_handler.sign_in_calls) == 2


class TestFlowCompletion:
    """Test flows that produce a token."""

    @pytest.mark.asyncio
    async def test_complete_on_same_activity_continues_routing(self, orchestrator, graph_handler, continuation_queue, state_store, turn_context) -> None:
        # SSO: the token is available on the very first attempt
        graph_handler.script(TokenResponseFactory.create(token="sso"))
        turn_state = await load_turn_state(state_store, turn_context)

        result = await orchestrator.start_or_continue(turn_context, turn_state)

        assert result is True
        assert orchestrator.get_cached_token("graph") == "sso"
        assert continuation_queue.submitted == []
        assert not FlowStateAccessor.get(turn_state).is_active()

    @pytest.mark.asyncio
    async def test_complete_when_banked_activity_is_current_activity(self, orchestrator, graph_handler, continuation_queue, state_store, turn_context, message_activity) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(TokenResponseFactory.create(token="abc"))
        # Same activity delivered again (e.g. a retry by the channel)
        retry_context = TurnContext(message_activity.model_copy())
        turn_state = await load_turn_state(state_store, retry_context)

        result = await orchestrator.start_or_continue(retry_context, turn_state)

        assert result is True
        assert orchestrator.get_cached_token("graph") == "abc"
        assert FlowStateAccessor.get(turn_state).active_handler_name is None
        assert continuation_queue.submitted == []

    @pytest.mark.asyncio
    async def test_complete_across_turns_redelivers_banked_activity(self, orchestrator, graph_handler, continuation_queue, state_store, turn_context, message_activity) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(TokenResponseFactory.create(token="abc"))
        verify_context = TurnContext(ActivityFactory.create_invoke(value={"state": "123456"}), identity={"aud": "agent-1"})
        turn_state = await load_turn_state(state_store, verify_context)

        result = await orchestrator.start_or_continue(verify_context, turn_state)

        assert result is False
        assert orchestrator.get_cached_token("graph") == "abc"
        assert len(continuation_queue.submitted) == 1
        redelivered, identity = continuation_queue.submitted[0]
        assert redelivered.same_as(message_activity)
        assert identity == {"aud": "agent-1"}

    @pytest.mark.asyncio
    async def test_completion_clears_persisted_flow(self, orchestrator, graph_handler, state_store, turn_context) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(TokenResponseFactory.create(token="abc"))
        next_context = TurnContext(ActivityFactory.create_message("123456"))
        await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        reloaded = await load_turn_state(state_store, next_context)

        assert not FlowStateAccessor.get(reloaded).is_active()


class TestFlowError:
    """Test flows that fail."""

    @pytest.mark.asyncio
    async def test_error_invokes_failure_callback_with_banked_activity(self, orchestrator, graph_handler, state_store, turn_context, message_activity) -> None:
        on_failure = AsyncMock()
        orchestrator.on_failure(on_failure)
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(AuthorizationError("cannot evaluate", AuthErrorCause.INVALID_ACTIVITY))
        next_context = TurnContext(ActivityFactory.create_message("what?"))
        turn_state = await load_turn_state(state_store, next_context)

        result = await orchestrator.start_or_continue(next_context, turn_state)

        assert result is False
        on_failure.assert_awaited_once()
        _, _, handler_name, response, banked = on_failure.await_args.args
        assert handler_name == "graph"
        assert response.status == SignInStatus.ERROR
        assert response.cause == AuthErrorCause.INVALID_ACTIVITY
        assert banked.same_as(message_activity)
        assert not FlowStateAccessor.get(turn_state).is_active()

    @pytest.mark.asyncio
    async def test_error_resets_handler_state(self, orchestrator, graph_handler, state_store, turn_context) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(AuthorizationError("expired", AuthErrorCause.TIMEOUT))
        next_context = TurnContext(ActivityFactory.create_message("123456"))

        await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        assert graph_handler.reset_count == 1
        assert not FlowStateAccessor.get(await load_turn_state(state_store, next_context)).is_active()

    @pytest.mark.asyncio
    async def test_error_without_callback_sends_default_message(self, orchestrator, graph_handler, state_store, turn_context) -> None:
        graph_handler.script(AuthorizationError("denied", AuthErrorCause.USER_CANCELLED))
        turn_state = await load_turn_state(state_store, turn_context)

        result = await orchestrator.start_or_continue(turn_context, turn_state)

        assert result is False
        assert [a.text for a in turn_context.sent_activities] == ["Sign in for 'graph' completed without a token. Status=user_cancelled"]

    @pytest.mark.asyncio
    async def test_custom_failure_message(self, dispatcher, routes, continuation_queue, graph_handler, state_store, turn_context) -> None:
        options = AuthorizationOptions(dispatcher=dispatcher, sign_in_failed_message=lambda handler_name, response: [f"Could not sign you in to {handler_name}"])
        orchestrator = AuthorizationOrchestrator(options, routes, continuation_queue)
        graph_handler.script(AuthorizationError("denied"))

        await orchestrator.start_or_continue(turn_context, await load_turn_state(state_store, turn_context))

        assert turn_context.sent_activities[0].text == "Could not sign you in to graph"

    @pytest.mark.asyncio
    async def test_handler_exception_is_reported_as_error(self, orchestrator, graph_handler, state_store, turn_context) -> None:
        on_failure = AsyncMock()
        orchestrator.on_failure(on_failure)
        graph_handler.script(RuntimeError("token service unavailable"))

        result = await orchestrator.start_or_continue(turn_context, await load_turn_state(state_store, turn_context))

        assert result is False
        response = on_failure.await_args.args[3]
        assert response.cause == AuthErrorCause.EXCEPTION

    @pytest.mark.asyncio
    async def test_failing_handler_reset_still_clears_flow(self, routes, continuation_queue, state_store, turn_context, message_activity, caplog) -> None:
        handler = FailingResetHandler("graph", AuthorizationError("cannot evaluate", AuthErrorCause.INVALID_ACTIVITY))
        orchestrator = AuthorizationOrchestrator(AuthorizationOptions(dispatcher=HandlerDispatcher(handler)), routes, continuation_queue)
        on_failure = AsyncMock()
        orchestrator.on_failure(on_failure)
        turn_state = await load_turn_state(state_store, turn_context)
        FlowStateAccessor.set(turn_state, FlowState(active_handler_name="graph", banked_activity=message_activity))
        await turn_state.save(turn_context)
        next_context = TurnContext(ActivityFactory.create_message("123456"))

        with caplog.at_level(logging.ERROR):
            result = await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        assert result is False
        on_failure.assert_awaited_once()
        assert not FlowStateAccessor.get(await load_turn_state(state_store, next_context)).is_active()
        assert "token service down" in caplog.text

    @pytest.mark.asyncio
    async def test_flow_for_unregistered_handler_fails_and_clears(self, orchestrator, graph_handler, state_store, turn_context, message_activity) -> None:
        on_failure = AsyncMock()
        orchestrator.on_failure(on_failure)
        turn_state = await load_turn_state(state_store, turn_context)
        FlowStateAccessor.set(turn_state, FlowState(active_handler_name="removed", banked_activity=message_activity))
        await turn_state.save(turn_context)
        next_context = TurnContext(ActivityFactory.create_message("123456"))

        result = await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        assert result is False
        _, _, handler_name, response, banked = on_failure.await_args.args
        assert handler_name == "removed"
        assert response.cause == AuthErrorCause.INVALID_ACTIVITY
        assert banked.same_as(message_activity)
        assert graph_handler.sign_in_calls == []
        assert graph_handler.reset_count == 0
        assert not FlowStateAccessor.get(await load_turn_state(state_store, next_context)).is_active()


class TestDuplicateExchange:
    """Test de-duplicated token exchanges."""

    @pytest.mark.asyncio
    async def test_duplicate_ends_turn_without_state_change(self, orchestrator, graph_handler, continuation_queue, state_store, turn_context, message_activity) -> None:
        await start_flow(orchestrator, state_store, turn_context)
        graph_handler.script(DuplicateExchangeError())
        exchange_context = TurnContext(ActivityFactory.create_invoke("signin/tokenExchange"))
        turn_state = await load_turn_state(state_store, exchange_context)

        result = await orchestrator.start_or_continue(exchange_context, turn_state)

        assert result is False
        flow_state = FlowStateAccessor.get(turn_state)
        assert flow_state.active_handler_name == "graph"
        assert flow_state.banked_activity.same_as(message_activity)
        assert continuation_queue.submitted == []
        assert exchange_context.sent_activities == []


class TestExplicitFlowContinuation:
    """Test continuing a flow banked by an explicit sign-in."""

    @pytest.fixture
    async def explicit_flow(self, state_store, turn_context) -> SignInCompletionEvent:
        """Persist a flow whose banked activity is a completion event."""
        event = CompletionEventFactory.create(
            handler_name="github",
            initiating_activity=turn_context.activity,
            exchange_connection_name="obo",
            exchange_scopes=["repo"],
        )
        turn_state = await load_turn_state(state_store, turn_context)
        FlowStateAccessor.set(turn_state, FlowState(active_handler_name="github", banked_activity=event.to_activity()))
        await turn_state.save(turn_context)
        return event

    @pytest.mark.asyncio
    async def test_forwards_exchange_parameters(self, orchestrator, github_handler, state_store, explicit_flow) -> None:
        next_context = TurnContext(ActivityFactory.create_message("123456"))

        await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        call = github_handler.sign_in_calls[0]
        assert call.force_sign_in is False
        assert call.exchange_connection == "obo"
        assert call.exchange_scopes == ["repo"]

    @pytest.mark.asyncio
    async def test_complete_redelivers_completion_event_with_response(self, orchestrator, github_handler, continuation_queue, state_store, explicit_flow) -> None:
        github_handler.script(TokenResponseFactory.create(token="gh-token"))
        next_context = TurnContext(ActivityFactory.create_message("123456"))

        result = await orchestrator.start_or_continue(next_context, await load_turn_state(state_store, next_context))

        assert result is False
        assert orchestrator.get_cached_token("github") == "gh-token"
        redelivered = SignInCompletionEvent.from_activity(continuation_queue.activities[0])
        assert redelivered.handler_name == "github"
        assert redelivered.response.status == SignInStatus.COMPLETE
        assert redelivered.response.token == "gh-token"
        assert redelivered.initiating_activity.same_as(explicit_flow.initiating_activity)

    @pytest.mark.asyncio
    async def test_error_redelivers_completion_event_instead_of_callback(self, orchestrator, github_handler, continuation_queue, state_store, explicit_flow) -> None:
        on_failure = AsyncMock()
        orchestrator.on_failure(on_failure)
        github_handler.script(AuthorizationError("bad code", AuthErrorCause.INVALID_SIGN_IN))
        next_context = TurnContext(ActivityFactory.create_message("000000"))
        turn_state = await load_turn_state(state_store, next_context)

        result = await orchestrator.start_or_continue(next_context, turn_state)

        assert result is False
        on_failure.assert_not_awaited()
        redelivered = SignInCompletionEvent.from_activity(continuation_queue.activities[0])
        assert redelivered.response.status == SignInStatus.ERROR
        assert redelivered.response.cause == AuthErrorCause.INVALID_SIGN_IN
        assert not FlowStateAccessor.get(turn_state).is_active()
