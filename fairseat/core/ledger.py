"""Ledger window, queries and entry builders.

The ledger is append-only. Every helper here either builds a new
``LedgerEntry`` for the caller to add inside its own transaction, or
reads entries back. Nothing updates or deletes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import LedgerEntry, LedgerEventType, utcnow
from .state_machine import StateTransition


@dataclass(frozen=True)
class LedgerWindow:
    """Half-open time window ``[start, end)`` over the ledger."""

    start: datetime
    end: Optional[datetime] = None

    @classmethod
    def today(
        cls, now: Optional[datetime] = None, day_start_hour: Optional[int] = None
    ) -> "LedgerWindow":
        """The current business day."""
        now = now or utcnow()
        hour = settings.day_start_hour if day_start_hour is None else day_start_hour
        start = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if start > now:
            start -= timedelta(days=1)
        return cls(start=start)

    @classmethod
    def since(cls, start: datetime) -> "LedgerWindow":
        """Everything from ``start`` on, e.g. a shift start."""
        return cls(start=start)

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        return self.end is None or moment < self.end


async def load_assignments(
    session: AsyncSession, window: LedgerWindow
) -> Sequence[LedgerEntry]:
    """Assignment events inside the window, oldest first."""
    query = (
        select(LedgerEntry)
        .where(LedgerEntry.event_type == LedgerEventType.ASSIGNMENT)
        .where(LedgerEntry.created_at >= window.start)
        .order_by(LedgerEntry.id)
    )
    if window.end is not None:
        query = query.where(LedgerEntry.created_at < window.end)

    result = await session.execute(query)
    return result.scalars().all()


async def table_history(
    session: AsyncSession, table_id: int, limit: int = 50
) -> Sequence[LedgerEntry]:
    """Most recent events for one table."""
    result = await session.execute(
        select(LedgerEntry)
        .where(LedgerEntry.table_id == table_id)
        .order_by(desc(LedgerEntry.created_at), desc(LedgerEntry.id))
        .limit(limit)
    )
    return result.scalars().all()


async def server_activity(
    session: AsyncSession,
    server_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Sequence[LedgerEntry]:
    """Events attributed to one server, newest first."""
    query = select(LedgerEntry).where(LedgerEntry.server_id == server_id)
    if start is not None:
        query = query.where(LedgerEntry.created_at >= start)
    if end is not None:
        query = query.where(LedgerEntry.created_at <= end)

    result = await session.execute(
        query.order_by(desc(LedgerEntry.created_at), desc(LedgerEntry.id))
    )
    return result.scalars().all()


async def recent_events(session: AsyncSession, limit: int = 100) -> Sequence[LedgerEntry]:
    """Most recent events across the floor."""
    result = await session.execute(
        select(LedgerEntry)
        .order_by(desc(LedgerEntry.created_at), desc(LedgerEntry.id))
        .limit(limit)
    )
    return result.scalars().all()


def build_assignment_entry(
    *,
    table_id: int,
    server_id: int,
    party_size: int,
    requested_by: int,
    metadata: Dict[str, Any],
    created_at: Optional[datetime] = None,
) -> LedgerEntry:
    """Assignment event carrying who decided what and why."""
    return LedgerEntry(
        event_type=LedgerEventType.ASSIGNMENT,
        table_id=table_id,
        server_id=server_id,
        party_size=party_size,
        requested_by=requested_by,
        created_at=created_at or utcnow(),
        extra_data=dict(metadata, requested_by=requested_by),
    )


def build_transition_entry(
    transition: StateTransition,
    requested_by: int,
    server_id: Optional[int] = None,
    party_size: Optional[int] = None,
) -> LedgerEntry:
    """State transition event for a table."""
    return LedgerEntry(
        event_type=LedgerEventType.STATE_TRANSITION,
        table_id=transition.table_id,
        server_id=server_id,
        party_size=party_size,
        requested_by=requested_by,
        created_at=transition.timestamp,
        extra_data=transition.to_metadata(),
    )
