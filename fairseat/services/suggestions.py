"""Seating suggestions for the head of the waitlist."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select

from ..config import settings
from ..core.coordinator import SeatingCoordinator
from ..core.selector import Assignment, AssignmentOptions
from ..errors import SeatingError
from ..models import PRIORITY_RANK, PartyStatus, WaitlistEntry, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Suggestion:
    """A proposed seating for one waiting party."""

    party_id: int
    party_name: str
    party_size: int
    priority: str
    wait_minutes: int
    urgent: bool
    assignment: Assignment
    special_requests: Optional[str] = None
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        assignment = self.assignment.to_dict()
        return {
            "id": f"suggestion_{self.party_id}_{int(self.generated_at.timestamp())}",
            "party": {
                "id": self.party_id,
                "party_name": self.party_name,
                "party_size": self.party_size,
                "priority": self.priority,
                "wait_minutes": self.wait_minutes,
                "urgent": self.urgent,
                "special_requests": self.special_requests,
            },
            "table": assignment["table"],
            "server": assignment["server"],
            "confidence": self.assignment.confidence,
            "reason": self.assignment.reason,
            "generated_at": self.generated_at.isoformat(),
        }


class SuggestionService:
    """
    Formats engine assignments for the host stand.

    Each party is evaluated independently against the current floor, so two
    suggestions may name the same table; seating either one through the
    coordinator settles it.
    """

    def __init__(
        self,
        coordinator: SeatingCoordinator,
        urgent_wait_minutes: Optional[int] = None,
        clock: Optional[Callable] = None,
    ):
        self.coordinator = coordinator
        self.urgent_wait_minutes = (
            settings.urgent_wait_minutes
            if urgent_wait_minutes is None
            else urgent_wait_minutes
        )
        self.clock = clock or coordinator.clock

    async def waiting_parties(self, limit: int) -> List[WaitlistEntry]:
        """Waiting parties by priority class, then first come first served."""
        async with self.coordinator.session_factory() as session:
            result = await session.execute(
                select(WaitlistEntry).where(WaitlistEntry.status == PartyStatus.WAITING)
            )
            parties = result.scalars().all()

        ordered = sorted(
            parties,
            key=lambda p: (-PRIORITY_RANK[p.priority], p.created_at, p.id),
        )
        return ordered[:limit]

    def is_urgent(self, party: WaitlistEntry, now: datetime) -> bool:
        if self.urgent_wait_minutes is None:
            return False
        return party.get_wait_minutes(now) > self.urgent_wait_minutes

    async def generate_suggestions(self, limit: Optional[int] = None) -> List[Suggestion]:
        """Suggest a table and server for each of the first ``limit`` parties."""
        limit = settings.suggestion_limit if limit is None else limit
        now = self.clock()
        suggestions = []

        for party in await self.waiting_parties(limit):
            urgent = self.is_urgent(party, now)
            try:
                assignment = await self.coordinator.find_assignment(
                    party.party_size, AssignmentOptions(urgent_party=urgent)
                )
            except SeatingError as e:
                logger.warning("No suggestion for party %s: %s", party.id, e.message)
                continue

            if assignment is None:
                continue

            suggestions.append(
                Suggestion(
                    party_id=party.id,
                    party_name=party.party_name,
                    party_size=party.party_size,
                    priority=party.priority.value,
                    wait_minutes=party.get_wait_minutes(now),
                    urgent=urgent,
                    assignment=assignment,
                    special_requests=party.special_requests,
                    generated_at=now,
                )
            )

        return suggestions
