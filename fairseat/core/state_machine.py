"""Table occupancy state machine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from ..errors import ErrorCode, SeatingRejected
from ..models import TableState, utcnow


# Valid state transitions.
#
# available -> assigned -> occupied -> available is the full cycle;
# seating writes occupied directly, and assigned may be cancelled back
# to available.
VALID_TRANSITIONS: Dict[TableState, List[TableState]] = {
    TableState.AVAILABLE: [TableState.ASSIGNED, TableState.OCCUPIED],
    TableState.ASSIGNED: [TableState.OCCUPIED, TableState.AVAILABLE],
    TableState.OCCUPIED: [TableState.AVAILABLE],
}


@dataclass
class StateTransition:
    """Record of a table state change."""

    table_id: int
    from_state: TableState
    to_state: TableState
    trigger: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_metadata(self) -> Dict[str, Any]:
        """Ledger metadata for this transition."""
        return {
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "trigger": self.trigger,
        }


def can_transition(from_state: TableState, to_state: TableState) -> bool:
    """Check if a transition is legal."""
    return to_state in VALID_TRANSITIONS.get(from_state, [])


def check_transition(
    table_id: int,
    from_state: TableState,
    to_state: TableState,
    trigger: str = "manual",
) -> StateTransition:
    """Validate a transition, raising ``SeatingRejected`` if it is illegal."""
    if not can_transition(from_state, to_state):
        raise SeatingRejected(
            ErrorCode.INVALID_TRANSITION,
            f"Table {table_id} cannot go from {from_state.value} to {to_state.value}",
        )
    return StateTransition(
        table_id=table_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )


def release_trigger(from_state: TableState) -> str:
    """Name the release trigger for a table leaving ``from_state``."""
    if from_state == TableState.ASSIGNED:
        return "assignment_cancelled"
    return "table_cleared"
