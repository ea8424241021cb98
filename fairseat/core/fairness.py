"""Fairness matrix derived from the assignment ledger.

Rows are eligible servers, columns are party-size buckets. The matrix is
never stored; it is folded from the ledger on every request, so it cannot
drift from the assignments that actually happened.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import FairnessMatrixError
from .ledger import LedgerWindow, load_assignments
from .snapshot import ServerInfo

logger = logging.getLogger(__name__)

NUM_BUCKETS = 6

PERFECT_SCORE = 100


def party_size_bucket(party_size: int) -> int:
    """Map a party size to its column: 1->0 ... 5->4, 6 and up -> 5."""
    return min(NUM_BUCKETS - 1, max(0, party_size - 1))


def bucket_label(bucket: int) -> str:
    return "6+" if bucket == NUM_BUCKETS - 1 else str(bucket + 1)


def score_matrix(matrix: np.ndarray) -> int:
    """100 minus ten times the variance of per-server totals, floored at 0."""
    if matrix.shape[0] == 0:
        return PERFECT_SCORE
    totals = matrix.sum(axis=1)
    variance = float(np.var(totals))
    # Round half up
    return max(0, PERFECT_SCORE - int(math.floor(variance * 10 + 0.5)))


@dataclass
class FairnessMatrix:
    """Per-server, per-bucket assignment counts plus a fairness score."""

    matrix: np.ndarray
    servers: List[ServerInfo] = field(default_factory=list)
    server_index: Dict[int, int] = field(default_factory=dict)
    fairness_score: int = PERFECT_SCORE

    def __post_init__(self):
        if self.matrix.ndim != 2 or self.matrix.shape[1] != NUM_BUCKETS:
            raise FairnessMatrixError(
                f"Fairness matrix must be n x {NUM_BUCKETS}, got {self.matrix.shape}"
            )

    @classmethod
    def empty(cls) -> "FairnessMatrix":
        return cls(matrix=np.zeros((0, NUM_BUCKETS), dtype=np.int64))

    @classmethod
    def from_rows(
        cls, servers: Sequence[ServerInfo], rows: Sequence[Sequence[int]]
    ) -> "FairnessMatrix":
        """Build a matrix from explicit counts, one row per server."""
        if len(rows) != len(servers):
            raise FairnessMatrixError(
                f"{len(servers)} servers but {len(rows)} matrix rows"
            )
        if not rows:
            return cls.empty()
        try:
            matrix = np.array(rows, dtype=np.int64)
        except ValueError as e:
            raise FairnessMatrixError(f"Ragged fairness matrix rows: {e}") from e
        return cls(
            matrix=matrix,
            servers=list(servers),
            server_index={s.server_id: i for i, s in enumerate(servers)},
            fairness_score=score_matrix(matrix),
        )

    @property
    def is_empty(self) -> bool:
        return self.matrix.shape[0] == 0

    def row(self, server_id: int) -> Optional[np.ndarray]:
        """Counts for one server, or None if the server has no row.

        Raises ``FairnessMatrixError`` if the index points outside the matrix.
        """
        index = self.server_index.get(server_id)
        if index is None:
            return None
        if not 0 <= index < self.matrix.shape[0]:
            raise FairnessMatrixError(
                f"Server {server_id} maps to row {index} of a "
                f"{self.matrix.shape[0]}-row matrix"
            )
        return self.matrix[index]

    def count(self, server_id: int, party_size: int) -> int:
        row = self.row(server_id)
        return 0 if row is None else int(row[party_size_bucket(party_size)])

    def total(self, server_id: int) -> int:
        row = self.row(server_id)
        return 0 if row is None else int(row.sum())

    def totals(self) -> List[int]:
        return [int(t) for t in self.matrix.sum(axis=1)]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "matrix": self.matrix.astype(int).tolist(),
            "buckets": [bucket_label(b) for b in range(NUM_BUCKETS)],
            "servers": [
                {"id": s.server_id, "name": s.name, "section": s.section}
                for s in self.servers
            ],
            "server_index": {str(k): v for k, v in self.server_index.items()},
            "totals": self.totals(),
            "fairness_score": self.fairness_score,
        }


def compute_matrix(servers: Sequence[ServerInfo], entries: Iterable[Any]) -> FairnessMatrix:
    """Fold assignment entries into a matrix for ``servers``, in their order.

    Entries need ``server_id`` and ``party_size``. Entries for servers not in
    the list, or without a usable party size, are ignored.
    """
    if not servers:
        return FairnessMatrix.empty()

    ordered: List[ServerInfo] = []
    server_index: Dict[int, int] = {}
    for server in servers:
        if server.server_id in server_index:
            continue
        server_index[server.server_id] = len(ordered)
        ordered.append(server)

    matrix = np.zeros((len(ordered), NUM_BUCKETS), dtype=np.int64)

    skipped = 0
    for entry in entries:
        row = server_index.get(entry.server_id)
        if row is None or entry.party_size is None or entry.party_size < 1:
            skipped += 1
            continue
        matrix[row, party_size_bucket(entry.party_size)] += 1

    if skipped:
        logger.debug("Fairness matrix ignored %d ledger entries", skipped)

    return FairnessMatrix(
        matrix=matrix,
        servers=ordered,
        server_index=server_index,
        fairness_score=score_matrix(matrix),
    )


class FairnessMatrixBuilder:
    """Builds the fairness matrix from the ledger for a time window."""

    async def build(
        self,
        session: AsyncSession,
        servers: Sequence[ServerInfo],
        window: Optional[LedgerWindow] = None,
    ) -> FairnessMatrix:
        if not servers:
            return FairnessMatrix.empty()

        window = window or LedgerWindow.today()
        entries = await load_assignments(session, window)
        return compute_matrix(servers, entries)
