"""Tests for table state transitions."""

import pytest

from fairseat.core.state_machine import can_transition, check_transition, release_trigger
from fairseat.errors import ErrorCode, SeatingRejected
from fairseat.models import TableState


class TestTableStateMachine:
    """Tests for table state machine."""

    @pytest.mark.parametrize(
        "from_state, to_state",
        [
            (TableState.AVAILABLE, TableState.ASSIGNED),
            (TableState.AVAILABLE, TableState.OCCUPIED),
            (TableState.ASSIGNED, TableState.OCCUPIED),
            (TableState.ASSIGNED, TableState.AVAILABLE),
            (TableState.OCCUPIED, TableState.AVAILABLE),
        ],
    )
    def test_valid_transition(self, from_state, to_state):
        """Legal moves are allowed."""
        assert can_transition(from_state, to_state)

    @pytest.mark.parametrize(
        "from_state, to_state",
        [
            (TableState.OCCUPIED, TableState.ASSIGNED),
            (TableState.AVAILABLE, TableState.AVAILABLE),
            (TableState.OCCUPIED, TableState.OCCUPIED),
        ],
    )
    def test_invalid_transition(self, from_state, to_state):
        """Illegal moves are refused."""
        assert not can_transition(from_state, to_state)

    def test_check_transition_records_change(self):
        """A checked transition carries its ledger metadata."""
        transition = check_transition(
            7, TableState.OCCUPIED, TableState.AVAILABLE, "table_cleared"
        )

        assert transition.table_id == 7
        assert transition.to_metadata() == {
            "from_state": "occupied",
            "to_state": "available",
            "trigger": "table_cleared",
        }

    def test_check_transition_rejects(self):
        """An illegal transition raises a non-retryable rejection."""
        with pytest.raises(SeatingRejected) as exc:
            check_transition(7, TableState.AVAILABLE, TableState.AVAILABLE)

        assert exc.value.code == ErrorCode.INVALID_TRANSITION
        assert not exc.value.retryable

    def test_release_trigger(self):
        """Releases are named by the state they leave."""
        assert release_trigger(TableState.ASSIGNED) == "assignment_cancelled"
        assert release_trigger(TableState.OCCUPIED) == "table_cleared"
