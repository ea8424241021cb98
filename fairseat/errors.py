"""Exception taxonomy for the seating engine."""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable reasons a seating request did not succeed."""

    # Retryable
    TABLE_TAKEN = "table_taken"
    PARTY_TAKEN = "party_taken"
    COMMIT_TIMEOUT = "commit_timeout"

    # Caller errors
    PARTY_NOT_WAITING = "party_not_waiting"
    NO_SUITABLE_TABLE = "no_suitable_table"
    TABLE_NOT_FOUND = "table_not_found"
    TABLE_NOT_AVAILABLE = "table_not_available"
    TABLE_INACTIVE = "table_inactive"
    NO_ACTIVE_SERVER = "no_active_server"
    INVALID_PARTY_SIZE = "invalid_party_size"
    INVALID_TRANSITION = "invalid_transition"


class SeatingError(Exception):
    """Base class for seating failures surfaced to callers."""

    retryable = False

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message or code.value.replace("_", " ")
        super().__init__(self.message)


class SeatingConflict(SeatingError):
    """Another request changed the floor first; retry against fresh state."""

    retryable = True


class SeatingRejected(SeatingError):
    """The request cannot succeed as asked."""


class FairnessMatrixError(Exception):
    """The fairness matrix is malformed (wrong shape, bad index)."""


class LedgerImmutableError(Exception):
    """Ledger entries are append-only."""
