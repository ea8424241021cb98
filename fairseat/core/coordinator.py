"""Seating coordinator: the only writer of table, waitlist and ledger state."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..errors import ErrorCode, SeatingConflict, SeatingError, SeatingRejected
from ..models import (
    PartyStatus,
    Server,
    Table,
    TableState,
    WaitlistEntry,
    async_session,
    utcnow,
)
from .fairness import FairnessMatrix, FairnessMatrixBuilder
from .ledger import LedgerWindow, build_assignment_entry, build_transition_entry
from .selector import Assignment, AssignmentOptions, AssignmentSelector
from .snapshot import (
    ServerInfo,
    TableInfo,
    find_section_server,
    load_floor_state,
    load_servers,
)
from .state_machine import (
    StateTransition,
    can_transition,
    check_transition,
    release_trigger,
)

logger = logging.getLogger(__name__)

MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 20


class SeatingStatus(str, Enum):
    """Outcome of a seating request."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    REJECTED = "rejected"


@dataclass
class SeatingResult:
    """Result of a seating or release request."""

    status: SeatingStatus
    assignment: Optional[Assignment] = None
    table: Optional[Dict[str, Any]] = None
    party: Optional[Dict[str, Any]] = None
    code: Optional[ErrorCode] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == SeatingStatus.SUCCESS

    @property
    def retryable(self) -> bool:
        return self.status == SeatingStatus.CONFLICT

    @classmethod
    def from_error(cls, error: SeatingError) -> "SeatingResult":
        status = SeatingStatus.CONFLICT if error.retryable else SeatingStatus.REJECTED
        return cls(status=status, code=error.code, error=error.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        if not self.success:
            return {
                "success": False,
                "status": self.status.value,
                "code": self.code.value if self.code else None,
                "error": self.error,
            }
        return {
            "success": True,
            "status": self.status.value,
            "assignment": self.assignment.to_dict() if self.assignment else None,
            "updated_table": self.table,
            "updated_party": self.party,
        }


@dataclass
class _SeatingPlan:
    """Everything decided during the read phase, ready to commit."""

    assignment: Assignment
    assignment_type: str
    party_id: Optional[int] = None
    party_name: Optional[str] = None

    def ledger_metadata(self) -> Dict[str, Any]:
        assignment = self.assignment
        return {
            "party_id": self.party_id,
            "party_name": self.party_name,
            "party_size": assignment.party_size,
            "server_id": assignment.server.server_id,
            "server_name": assignment.server.name,
            "server_section": assignment.server.section,
            "table_number": assignment.table.number,
            "from_state": assignment.table.state.value,
            "confidence": assignment.confidence,
            "reason": assignment.reason,
            "algorithm": assignment.algorithm,
            "assignment_type": self.assignment_type,
        }


def check_party_size(party_size: int):
    if not MIN_PARTY_SIZE <= party_size <= MAX_PARTY_SIZE:
        raise SeatingRejected(
            ErrorCode.INVALID_PARTY_SIZE,
            f"Party size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}, "
            f"got {party_size}",
        )


class SeatingCoordinator:
    """
    Seats parties as a single unit of work.

    Each request reads a snapshot, decides, then issues exactly one
    transaction that:
    - moves the table to occupied, only if its state is unchanged since the read
    - marks the party seated, only if it is still waiting
    - appends the assignment to the ledger
    - stamps the server's last activity

    If a guarded update matches no row the transaction rolls back and the
    caller gets a retryable conflict. Nothing is retried here.
    """

    SMART_ASSIGNMENT = "smart_waitlist"
    MANUAL_ASSIGNMENT = "manual_floorplan"
    MANUAL_ALGORITHM = "manual"
    MANUAL_REASON = "Manual floor plan selection"

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        selector: Optional[AssignmentSelector] = None,
        matrix_builder: Optional[FairnessMatrixBuilder] = None,
        commit_timeout: Optional[float] = None,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory or async_session
        self.selector = selector or AssignmentSelector()
        self.matrix_builder = matrix_builder or FairnessMatrixBuilder()
        self.commit_timeout = (
            settings.commit_timeout_seconds if commit_timeout is None else commit_timeout
        )
        self.clock = clock

    # ==================== Read-only operations ====================

    def ledger_window(self) -> LedgerWindow:
        return LedgerWindow.today(now=self.clock())

    async def get_fairness_matrix(self) -> FairnessMatrix:
        """Current fairness matrix for all eligible servers."""
        async with self.session_factory() as session:
            servers = await load_servers(session)
            return await self.matrix_builder.build(session, servers, self.ledger_window())

    async def find_assignment(
        self, party_size: int, options: Optional[AssignmentOptions] = None
    ) -> Optional[Assignment]:
        """Best assignment for a party of ``party_size``, or None."""
        check_party_size(party_size)
        async with self.session_factory() as session:
            return await self._select(session, party_size, options)

    async def _select(
        self,
        session: AsyncSession,
        party_size: int,
        options: Optional[AssignmentOptions],
    ) -> Optional[Assignment]:
        floor = await load_floor_state(session)
        logger.debug(
            "Floor snapshot: %d available tables, %d eligible servers",
            len(floor.tables),
            len(floor.servers),
        )
        if not floor.has_available_tables or not floor.servers:
            return None

        matrix = await self.matrix_builder.build(
            session, floor.servers, self.ledger_window()
        )
        return self.selector.select_assignment(
            party_size, floor.tables, floor.servers, matrix, options
        )

    # ==================== Seating ====================

    async def seat_from_waitlist(
        self,
        party_id: int,
        requested_by: int,
        options: Optional[AssignmentOptions] = None,
    ) -> SeatingResult:
        """Seat a waiting party at the best table for it."""
        try:
            plan = await self._plan_waitlist_seating(party_id, options)
            table, party = await self._commit(self._commit_seating(plan, requested_by))
        except SeatingError as e:
            return self._failed(e, f"seat party {party_id}")

        self._log_seated(plan)
        return SeatingResult(
            status=SeatingStatus.SUCCESS,
            assignment=plan.assignment,
            table=table,
            party=party,
        )

    async def seat_manually(
        self, table_id: int, party_size: int, requested_by: int
    ) -> SeatingResult:
        """Seat a walk-in at a table chosen by the host."""
        try:
            check_party_size(party_size)
            plan = await self._plan_manual_seating(table_id, party_size)
            table, _ = await self._commit(self._commit_seating(plan, requested_by))
        except SeatingError as e:
            return self._failed(e, f"seat table {table_id} manually")

        self._log_seated(plan)
        return SeatingResult(
            status=SeatingStatus.SUCCESS, assignment=plan.assignment, table=table
        )

    async def _plan_waitlist_seating(
        self, party_id: int, options: Optional[AssignmentOptions]
    ) -> _SeatingPlan:
        async with self.session_factory() as session:
            party = await session.get(WaitlistEntry, party_id)
            if party is None or party.status != PartyStatus.WAITING:
                raise SeatingRejected(
                    ErrorCode.PARTY_NOT_WAITING, "Party not found or already processed"
                )
            check_party_size(party.party_size)

            assignment = await self._select(session, party.party_size, options)
            if assignment is None:
                raise SeatingRejected(
                    ErrorCode.NO_SUITABLE_TABLE, "No suitable tables available"
                )

            return _SeatingPlan(
                assignment=assignment,
                assignment_type=self.SMART_ASSIGNMENT,
                party_id=party.id,
                party_name=party.party_name,
            )

    async def _plan_manual_seating(self, table_id: int, party_size: int) -> _SeatingPlan:
        async with self.session_factory() as session:
            table = await session.get(Table, table_id)
            if table is None:
                raise SeatingRejected(ErrorCode.TABLE_NOT_FOUND, f"Table {table_id} not found")
            # Available tables and tables held for a party can be seated
            if not can_transition(table.state, TableState.OCCUPIED):
                raise SeatingRejected(
                    ErrorCode.TABLE_NOT_AVAILABLE, f"Table {table.number} is {table.state.value}"
                )
            server = await self._table_server(session, table)

            assignment = Assignment(
                server=server,
                table=TableInfo.from_model(table),
                party_size=party_size,
                confidence=100,
                reason=self.MANUAL_REASON,
                algorithm=self.MANUAL_ALGORITHM,
                timestamp=self.clock(),
            )
            return _SeatingPlan(
                assignment=assignment,
                assignment_type=self.MANUAL_ASSIGNMENT,
                party_name=f"Walk-in party of {party_size}",
            )

    async def _table_server(self, session: AsyncSession, table: Table) -> ServerInfo:
        """Server for a table: whoever holds it, else its section's server."""
        if table.section is None:
            raise SeatingRejected(
                ErrorCode.TABLE_INACTIVE, f"Table {table.number} is not in any section"
            )

        if table.assigned_server_id is not None:
            holder = await session.get(Server, table.assigned_server_id)
            if holder is not None and holder.is_eligible() and holder.section == table.section:
                return ServerInfo.from_model(holder)

        server = await find_section_server(session, table.section)
        if server is None:
            raise SeatingRejected(
                ErrorCode.NO_ACTIVE_SERVER,
                f"No active server for section {table.section}",
            )
        return server

    async def _commit_seating(
        self, plan: _SeatingPlan, requested_by: int
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        assignment = plan.assignment
        table_id = assignment.table.table_id
        server_id = assignment.server.server_id

        async with self.session_factory() as session:
            async with session.begin():
                now = self.clock()

                # Reserve the table only if it is still as we read it
                reserved = await session.execute(
                    update(Table)
                    .where(Table.id == table_id)
                    .where(Table.state == assignment.table.state)
                    .where(Table.section == assignment.table.section)
                    .values(
                        state=TableState.OCCUPIED,
                        party_size=assignment.party_size,
                        assigned_server_id=server_id,
                        waitlist_entry_id=plan.party_id,
                        occupant_name=plan.party_name,
                        state_changed_at=now,
                        seated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if reserved.rowcount != 1:
                    raise SeatingConflict(
                        ErrorCode.TABLE_TAKEN,
                        f"Table {assignment.table.number} no longer available",
                    )

                if plan.party_id is not None:
                    advanced = await session.execute(
                        update(WaitlistEntry)
                        .where(WaitlistEntry.id == plan.party_id)
                        .where(WaitlistEntry.status == PartyStatus.WAITING)
                        .values(
                            status=PartyStatus.SEATED,
                            seated_at=now,
                            table_id=table_id,
                            server_id=server_id,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if advanced.rowcount != 1:
                        raise SeatingConflict(
                            ErrorCode.PARTY_TAKEN,
                            f"Party {plan.party_id} was seated by another request",
                        )

                session.add(
                    build_assignment_entry(
                        table_id=table_id,
                        server_id=server_id,
                        party_size=assignment.party_size,
                        requested_by=requested_by,
                        metadata=plan.ledger_metadata(),
                        created_at=now,
                    )
                )

                await session.execute(
                    update(Server)
                    .where(Server.id == server_id)
                    .values(last_activity=now)
                    .execution_options(synchronize_session=False)
                )

                table = await session.get(Table, table_id)
                party = (
                    await session.get(WaitlistEntry, plan.party_id)
                    if plan.party_id is not None
                    else None
                )
                return table.to_dict(), party.to_dict() if party else None

    # ==================== Table state ====================

    async def advance_table(
        self,
        table_id: int,
        to_state: TableState,
        requested_by: int,
        party_size: Optional[int] = None,
    ) -> SeatingResult:
        """Move a table along its lifecycle.

        ``occupied`` seats a walk-in of ``party_size`` and is recorded as an
        assignment; ``assigned`` holds the table for its section's server;
        ``available`` releases it.
        """
        if to_state == TableState.OCCUPIED:
            if party_size is None:
                return self._failed(
                    SeatingRejected(
                        ErrorCode.INVALID_PARTY_SIZE,
                        "Party size is required to occupy a table",
                    ),
                    f"occupy table {table_id}",
                )
            return await self.seat_manually(table_id, party_size, requested_by)
        if to_state == TableState.ASSIGNED:
            return await self.hold_table(table_id, requested_by)
        return await self.release_table(table_id, requested_by)

    async def hold_table(self, table_id: int, requested_by: int) -> SeatingResult:
        """Hold an available table for its section's server."""
        try:
            async with self.session_factory() as session:
                table = await session.get(Table, table_id)
                if table is None:
                    raise SeatingRejected(
                        ErrorCode.TABLE_NOT_FOUND, f"Table {table_id} not found"
                    )
                transition = check_transition(
                    table.id, table.state, TableState.ASSIGNED, "table_held"
                )
                server = await self._table_server(session, table)
                section = table.section

            updated = await self._commit(
                self._commit_transition(
                    transition,
                    requested_by,
                    {"assigned_server_id": server.server_id},
                    server_id=server.server_id,
                    section=section,
                )
            )
        except SeatingError as e:
            return self._failed(e, f"hold table {table_id}")

        self._log_transition(updated, transition)
        return SeatingResult(status=SeatingStatus.SUCCESS, table=updated)

    async def release_table(self, table_id: int, requested_by: int) -> SeatingResult:
        """Return an assigned or occupied table to available."""
        try:
            async with self.session_factory() as session:
                table = await session.get(Table, table_id)
                if table is None:
                    raise SeatingRejected(
                        ErrorCode.TABLE_NOT_FOUND, f"Table {table_id} not found"
                    )
                transition = check_transition(
                    table.id,
                    table.state,
                    TableState.AVAILABLE,
                    release_trigger(table.state),
                )
                server_id = table.assigned_server_id
                party_size = table.party_size

            updated = await self._commit(
                self._commit_transition(
                    transition,
                    requested_by,
                    {
                        "party_size": None,
                        "assigned_server_id": None,
                        "waitlist_entry_id": None,
                        "occupant_name": None,
                        "seated_at": None,
                    },
                    server_id=server_id,
                    party_size=party_size,
                )
            )
        except SeatingError as e:
            return self._failed(e, f"release table {table_id}")

        self._log_transition(updated, transition)
        return SeatingResult(status=SeatingStatus.SUCCESS, table=updated)

    async def _commit_transition(
        self,
        transition: StateTransition,
        requested_by: int,
        values: Dict[str, Any],
        server_id: Optional[int] = None,
        party_size: Optional[int] = None,
        section: Optional[int] = None,
    ) -> Dict[str, Any]:
        async with self.session_factory() as session:
            async with session.begin():
                query = (
                    update(Table)
                    .where(Table.id == transition.table_id)
                    .where(Table.state == transition.from_state)
                )
                if section is not None:
                    query = query.where(Table.section == section)

                moved = await session.execute(
                    query.values(
                        state=transition.to_state,
                        state_changed_at=transition.timestamp,
                        **values,
                    ).execution_options(synchronize_session=False)
                )
                if moved.rowcount != 1:
                    raise SeatingConflict(
                        ErrorCode.TABLE_TAKEN,
                        f"Table {transition.table_id} changed state before "
                        f"{transition.trigger}",
                    )

                session.add(
                    build_transition_entry(
                        transition, requested_by, server_id=server_id, party_size=party_size
                    )
                )

                table = await session.get(Table, transition.table_id)
                return table.to_dict()

    # ==================== Helpers ====================

    async def _commit(self, work):
        """Run one commit under the timeout; lock failures become conflicts."""
        try:
            return await asyncio.wait_for(work, timeout=self.commit_timeout)
        except asyncio.TimeoutError:
            raise SeatingConflict(
                ErrorCode.COMMIT_TIMEOUT,
                f"Commit did not complete within {self.commit_timeout}s",
            )
        except OperationalError as e:
            raise SeatingConflict(
                ErrorCode.COMMIT_TIMEOUT, f"Storage unavailable: {e.orig}"
            ) from e

    def _failed(self, error: SeatingError, action: str) -> SeatingResult:
        if error.retryable:
            logger.warning("Could not %s: %s (%s)", action, error.message, error.code.value)
        else:
            logger.info("Could not %s: %s (%s)", action, error.message, error.code.value)
        return SeatingResult.from_error(error)

    def _log_seated(self, plan: _SeatingPlan):
        assignment = plan.assignment
        logger.info(
            "Seated party of %d at table %s with %s (section %s, %s)",
            assignment.party_size,
            assignment.table.number,
            assignment.server.name,
            assignment.server.section,
            plan.assignment_type,
        )

    def _log_transition(self, table: Dict[str, Any], transition: StateTransition):
        logger.info(
            "Table %s %s -> %s (%s)",
            table["number"],
            transition.from_state.value,
            transition.to_state.value,
            transition.trigger,
        )
