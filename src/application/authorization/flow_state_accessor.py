"""Reads and writes FlowState in the user scope of TurnState.

FlowState is stored as two keys so either can be inspected on its own:
- ``active-flow``: the active handler name
- ``continuation-activity``: the banked activity in JSON form
"""

from application.turn.state import TurnState
from domain.models import Activity, FlowState

ACTIVE_FLOW_KEY = "active-flow"
CONTINUATION_ACTIVITY_KEY = "continuation-activity"


class FlowStateAccessor:
    """Static helpers mapping FlowState onto user-scoped state keys."""

    @staticmethod
    def get(turn_state: TurnState) -> FlowState:
        handler_name = turn_state.user.get_value(ACTIVE_FLOW_KEY)
        if not handler_name:
            return FlowState()
        banked = turn_state.user.get_value(CONTINUATION_ACTIVITY_KEY)
        return FlowState(
            active_handler_name=handler_name,
            banked_activity=Activity.model_validate(banked) if banked else None,
        )

    @staticmethod
    def set(turn_state: TurnState, flow_state: FlowState) -> None:
        if not flow_state.is_active():
            FlowStateAccessor.clear(turn_state)
            return
        turn_state.user.set_value(ACTIVE_FLOW_KEY, flow_state.active_handler_name)
        if flow_state.banked_activity is not None:
            turn_state.user.set_value(CONTINUATION_ACTIVITY_KEY, flow_state.banked_activity.to_json_dict())
        else:
            turn_state.user.delete_value(CONTINUATION_ACTIVITY_KEY)

    @staticmethod
    def clear(turn_state: TurnState) -> None:
        turn_state.user.delete_value(ACTIVE_FLOW_KEY)
        turn_state.user.delete_value(CONTINUATION_ACTIVITY_KEY)
