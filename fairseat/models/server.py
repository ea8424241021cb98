"""Server model for floor staff."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class StaffRole(str, Enum):
    """Staff role types."""

    SERVER = "server"
    HOST = "host"
    MANAGER = "manager"


class Server(Base):
    """Restaurant staff member. Only the ``server`` role takes tables."""

    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[StaffRole] = mapped_column(
        SQLEnum(StaffRole), default=StaffRole.SERVER, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Shift info (shift_start is None when off shift)
    shift_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # One section at a time
    section: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Last activity
    last_activity: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "is_active": self.is_active,
            "shift_start": self.shift_start.isoformat() if self.shift_start else None,
            "section": self.section,
            "last_activity": self.last_activity.isoformat()
            if self.last_activity
            else None,
        }

    def is_eligible(self) -> bool:
        """Check if the server can take new tables."""
        return (
            self.role == StaffRole.SERVER
            and self.is_active
            and self.shift_start is not None
            and self.section is not None
        )
