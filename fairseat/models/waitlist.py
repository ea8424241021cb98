"""Waitlist entry model for parties waiting to be seated."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class PartyPriority(str, Enum):
    """Waitlist priority classes."""

    NORMAL = "normal"
    LARGE_PARTY = "large_party"
    STAFF = "staff"


class PartyStatus(str, Enum):
    """Waitlist entry status."""

    WAITING = "waiting"
    SEATED = "seated"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Higher ranks are offered tables first
PRIORITY_RANK = {
    PartyPriority.STAFF: 2,
    PartyPriority.LARGE_PARTY: 1,
    PartyPriority.NORMAL: 0,
}


class WaitlistEntry(Base):
    """A party on the waitlist."""

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        CheckConstraint("party_size BETWEEN 1 AND 20", name="ck_waitlist_party_size"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    party_name: Mapped[str] = mapped_column(String(100), nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[PartyPriority] = mapped_column(
        SQLEnum(PartyPriority), default=PartyPriority.NORMAL
    )
    status: Mapped[PartyStatus] = mapped_column(
        SQLEnum(PartyStatus), default=PartyStatus.WAITING, index=True
    )
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    # Filled in when seated
    seated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    table_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    server_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "party_name": self.party_name,
            "party_size": self.party_size,
            "priority": self.priority.value,
            "status": self.status.value,
            "special_requests": self.special_requests,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "seated_at": self.seated_at.isoformat() if self.seated_at else None,
            "table_id": self.table_id,
            "server_id": self.server_id,
        }

    def get_wait_minutes(self, now: Optional[datetime] = None) -> int:
        """Whole minutes since the party joined the waitlist."""
        if not self.created_at:
            return 0
        now = now or utcnow()
        return int((now - self.created_at).total_seconds() // 60)
