"""Server and table selection using the fairness matrix."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models import TableState, utcnow
from .fairness import FairnessMatrix, NUM_BUCKETS, party_size_bucket
from .snapshot import ServerInfo, TableInfo

logger = logging.getLogger(__name__)


@dataclass
class AssignmentOptions:
    """Caller options for a single selection."""

    exclude_servers: List[int] = field(default_factory=list)
    urgent_party: bool = False
    table_preference: Optional[int] = None


@dataclass
class Assignment:
    """Assignment result."""

    server: ServerInfo
    table: TableInfo
    party_size: int
    confidence: int
    reason: str
    algorithm: str
    count: int = 0
    total: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "server": {
                "id": self.server.server_id,
                "name": self.server.name,
                "section": self.server.section,
            },
            "table": {
                "id": self.table.table_id,
                "number": self.table.number,
                "capacity": self.table.capacity,
                "section": self.table.section,
            },
            "party_size": self.party_size,
            "confidence": self.confidence,
            "reason": self.reason,
            "algorithm": self.algorithm,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class _Candidate:
    server: ServerInfo
    tables: List[TableInfo]
    count: int
    total: int


def describe_size(party_size: int, plural: bool = False) -> str:
    """'4-top' / '4-tops', or '6+ party' / '6+ parties' for the last bucket."""
    if party_size_bucket(party_size) == NUM_BUCKETS - 1:
        return "6+ parties" if plural else "6+ party"
    return f"{party_size}-tops" if plural else f"{party_size}-top"


class AssignmentSelector:
    """
    Picks the single best (server, table) pair for a party.

    Server choice is fairness-first: fewest parties of this size, then
    fewest parties overall, then first in candidate order. Urgent parties
    go to the server with the fewest parties overall. Table choice is the
    closest capacity fit in that server's section.

    Selection is a pure function of its inputs.
    """

    # Tables may be at most this many seats larger than the party
    CAPACITY_SLACK = 2

    # Confidence scoring
    BASE_CONFIDENCE = 100
    EXACT_MATCH_BONUS = 10
    MISMATCH_PENALTY = 15
    MAX_FAIRNESS_BONUS = 20
    MIN_CONFIDENCE = 60
    MAX_CONFIDENCE = 100

    FAIRNESS_ALGORITHM = "fairness-optimized"
    URGENCY_ALGORITHM = "urgency-override"

    def __init__(self):
        self._on_inconsistency_callbacks: List[Callable] = []

    def select_assignment(
        self,
        party_size: int,
        tables: Sequence[TableInfo],
        servers: Sequence[ServerInfo],
        matrix: FairnessMatrix,
        options: Optional[AssignmentOptions] = None,
    ) -> Optional[Assignment]:
        """
        Find the best assignment for a party.

        Args:
            party_size: Number of guests
            tables: Tables on the floor, any state
            servers: Eligible servers in deterministic order
            matrix: Fairness matrix for ``servers``
            options: Exclusions, urgency and table preference

        Returns:
            The assignment, or None if no server has a fitting table
        """
        options = options or AssignmentOptions()

        fitting = self.filter_tables(party_size, tables)
        if not fitting:
            logger.debug("No available table fits a party of %d", party_size)
            return None

        by_section = self.group_by_section(fitting)
        candidates = self._build_candidates(
            party_size, servers, by_section, matrix, options.exclude_servers
        )

        best = self.select_server(candidates, options.urgent_party)
        if best is None:
            return None

        table = self.select_table(party_size, best.tables, options.table_preference)
        if table is None:
            return None

        algorithm = (
            self.URGENCY_ALGORITHM if options.urgent_party else self.FAIRNESS_ALGORITHM
        )
        assignment = Assignment(
            server=best.server,
            table=table,
            party_size=party_size,
            confidence=self.calculate_confidence(
                party_size, table, matrix.fairness_score
            ),
            reason=self.explain(party_size, best, options.urgent_party),
            algorithm=algorithm,
            count=best.count,
            total=best.total,
        )
        logger.debug(
            "Selected table %s / server %s for party of %d (%s)",
            table.number,
            best.server.name,
            party_size,
            assignment.reason,
        )
        return assignment

    def filter_tables(
        self, party_size: int, tables: Sequence[TableInfo]
    ) -> List[TableInfo]:
        """Available, sectioned tables within the capacity window."""
        return [
            t
            for t in tables
            if t.state == TableState.AVAILABLE
            and t.section is not None
            and t.fits(party_size, self.CAPACITY_SLACK)
        ]

    def group_by_section(
        self, tables: Sequence[TableInfo]
    ) -> Dict[int, List[TableInfo]]:
        grouped: Dict[int, List[TableInfo]] = {}
        for table in tables:
            grouped.setdefault(table.section, []).append(table)
        return grouped

    def _build_candidates(
        self,
        party_size: int,
        servers: Sequence[ServerInfo],
        by_section: Dict[int, List[TableInfo]],
        matrix: FairnessMatrix,
        exclude_servers: Sequence[int],
    ) -> List[_Candidate]:
        excluded = set(exclude_servers)
        bucket = party_size_bucket(party_size)
        candidates = []

        for server in servers:
            if server.server_id in excluded or server.section is None:
                continue
            tables = by_section.get(server.section)
            if not tables:
                continue

            row = matrix.row(server.server_id)
            if row is None:
                self._report_inconsistency(server, matrix)
                continue

            candidates.append(
                _Candidate(
                    server=server,
                    tables=tables,
                    count=int(row[bucket]),
                    total=int(row.sum()),
                )
            )

        return candidates

    def select_server(
        self, candidates: Sequence[_Candidate], urgent_party: bool = False
    ) -> Optional[_Candidate]:
        """First candidate with the lowest (count, total), or lowest total if urgent."""
        if not candidates:
            return None
        if urgent_party:
            return min(candidates, key=lambda c: c.total)
        return min(candidates, key=lambda c: (c.count, c.total))

    def select_table(
        self,
        party_size: int,
        tables: Sequence[TableInfo],
        table_preference: Optional[int] = None,
    ) -> Optional[TableInfo]:
        """Preferred table if offered, otherwise the closest capacity fit."""
        if not tables:
            return None

        if table_preference is not None:
            for table in tables:
                if table.table_id == table_preference:
                    return table

        return min(tables, key=lambda t: (abs(t.capacity - party_size), t.table_id))

    def calculate_confidence(
        self, party_size: int, table: TableInfo, fairness_score: int
    ) -> int:
        """Score 60-100 from capacity fit and how balanced the floor is."""
        confidence = self.BASE_CONFIDENCE

        size_diff = abs(table.capacity - party_size)
        if size_diff == 0:
            confidence += self.EXACT_MATCH_BONUS
        else:
            confidence -= size_diff * self.MISMATCH_PENALTY

        confidence += min(self.MAX_FAIRNESS_BONUS, math.floor(fairness_score / 5 + 0.5))

        return max(self.MIN_CONFIDENCE, min(self.MAX_CONFIDENCE, confidence))

    def explain(self, party_size: int, candidate: _Candidate, urgent_party: bool) -> str:
        """Generate human-readable explanation for the chosen server."""
        name = candidate.server.name
        if urgent_party:
            return f"{name} has the lightest load today ({candidate.total} parties), urgent party"
        if candidate.count == 0:
            return f"{name} hasn't had a {describe_size(party_size)} yet today"
        return f"{name} has the fewest {describe_size(party_size, plural=True)} ({candidate.count})"

    def on_inconsistency(self, callback: Callable):
        """Register callback for servers missing from the fairness matrix."""
        self._on_inconsistency_callbacks.append(callback)

    def _report_inconsistency(self, server: ServerInfo, matrix: FairnessMatrix):
        logger.error(
            "Server %s (%s) is a candidate but has no fairness matrix row; "
            "excluding from selection",
            server.server_id,
            server.name,
        )
        for callback in self._on_inconsistency_callbacks:
            try:
                callback(server, matrix)
            except Exception:
                logger.exception("Inconsistency callback failed")
