"""Core seating engine modules."""

from .coordinator import SeatingCoordinator, SeatingResult, SeatingStatus
from .fairness import FairnessMatrix, FairnessMatrixBuilder, compute_matrix, party_size_bucket
from .ledger import LedgerWindow
from .selector import Assignment, AssignmentOptions, AssignmentSelector
from .snapshot import FloorState, ServerInfo, TableInfo

__all__ = [
    "SeatingCoordinator",
    "SeatingResult",
    "SeatingStatus",
    "FairnessMatrix",
    "FairnessMatrixBuilder",
    "compute_matrix",
    "party_size_bucket",
    "LedgerWindow",
    "Assignment",
    "AssignmentOptions",
    "AssignmentSelector",
    "FloorState",
    "ServerInfo",
    "TableInfo",
]
