"""Append-only ledger of floor events."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Integer, JSON, event
from sqlalchemy.orm import Mapped, mapped_column

from ..errors import LedgerImmutableError
from .base import Base, utcnow


class LedgerEventType(str, Enum):
    """Kinds of ledger events. Only ASSIGNMENT feeds the fairness matrix."""

    ASSIGNMENT = "ASSIGNMENT"
    STATE_TRANSITION = "STATE_TRANSITION"


class LedgerEntry(Base):
    """Immutable record of something that happened on the floor."""

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    event_type: Mapped[LedgerEventType] = mapped_column(
        SQLEnum(LedgerEventType), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    # Context
    table_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    server_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    requested_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    party_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Algorithm, confidence, reason, party details, state change
    extra_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "table_id": self.table_id,
            "server_id": self.server_id,
            "requested_by": self.requested_by,
            "party_size": self.party_size,
            "metadata": self.extra_data,
        }


@event.listens_for(LedgerEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} cannot be modified")


@event.listens_for(LedgerEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} cannot be deleted")
