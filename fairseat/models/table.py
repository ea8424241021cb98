"""Table model for restaurant tables."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum as SQLEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TableState(str, Enum):
    """Table occupancy states."""

    AVAILABLE = "available"
    ASSIGNED = "assigned"
    OCCUPIED = "occupied"


class Table(Base):
    """Restaurant table model."""

    __tablename__ = "tables"
    __table_args__ = (
        CheckConstraint("capacity BETWEEN 2 AND 15", name="ck_tables_capacity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Current state
    state: Mapped[TableState] = mapped_column(
        SQLEnum(TableState), default=TableState.AVAILABLE, index=True
    )

    # Section ownership for the current shift (None = inactive)
    section: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Occupant
    party_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assigned_server_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    waitlist_entry_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    occupant_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Timing
    state_changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    seated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "number": self.number,
            "capacity": self.capacity,
            "state": self.state.value,
            "section": self.section,
            "party_size": self.party_size,
            "assigned_server_id": self.assigned_server_id,
            "waitlist_entry_id": self.waitlist_entry_id,
            "occupant_name": self.occupant_name,
            "state_changed_at": self.state_changed_at.isoformat()
            if self.state_changed_at
            else None,
            "seated_at": self.seated_at.isoformat() if self.seated_at else None,
        }
