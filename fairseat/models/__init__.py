"""Database models for the seating engine."""

from .base import Base, init_db, async_session, utcnow
from .table import Table, TableState
from .server import Server, StaffRole
from .waitlist import WaitlistEntry, PartyPriority, PartyStatus, PRIORITY_RANK
from .ledger import LedgerEntry, LedgerEventType

__all__ = [
    "Base",
    "init_db",
    "async_session",
    "utcnow",
    "Table",
    "TableState",
    "Server",
    "StaffRole",
    "WaitlistEntry",
    "PartyPriority",
    "PartyStatus",
    "PRIORITY_RANK",
    "LedgerEntry",
    "LedgerEventType",
]
