"""Read-only floor snapshots fed to the selector and matrix builder."""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Server, StaffRole, Table, TableState


@dataclass(frozen=True)
class ServerInfo:
    """Server information for assignment."""

    server_id: int
    name: str
    section: Optional[int]

    @classmethod
    def from_model(cls, server: Server) -> "ServerInfo":
        return cls(server_id=server.id, name=server.name, section=server.section)


@dataclass(frozen=True)
class TableInfo:
    """Table information for assignment."""

    table_id: int
    number: int
    capacity: int
    state: TableState
    section: Optional[int]

    @classmethod
    def from_model(cls, table: Table) -> "TableInfo":
        return cls(
            table_id=table.id,
            number=table.number,
            capacity=table.capacity,
            state=table.state,
            section=table.section,
        )

    def fits(self, party_size: int, slack: int) -> bool:
        """Check capacity is within [party_size, party_size + slack]."""
        return party_size <= self.capacity <= party_size + slack


@dataclass
class FloorState:
    """Tables and eligible servers as read at one moment."""

    tables: List[TableInfo] = field(default_factory=list)
    servers: List[ServerInfo] = field(default_factory=list)

    @property
    def has_available_tables(self) -> bool:
        return any(t.state == TableState.AVAILABLE for t in self.tables)


def eligible_servers_query():
    """Servers who can take new tables, in section order."""
    return (
        select(Server)
        .where(Server.role == StaffRole.SERVER)
        .where(Server.is_active.is_(True))
        .where(Server.shift_start.is_not(None))
        .where(Server.section.is_not(None))
        .order_by(Server.section, Server.id)
    )


async def load_servers(session: AsyncSession) -> List[ServerInfo]:
    result = await session.execute(eligible_servers_query())
    return [ServerInfo.from_model(s) for s in result.scalars().all()]


async def load_floor_state(session: AsyncSession) -> FloorState:
    """Available sectioned tables and eligible servers."""
    result = await session.execute(
        select(Table)
        .where(Table.state == TableState.AVAILABLE)
        .where(Table.section.is_not(None))
        .order_by(Table.id)
    )
    tables = [TableInfo.from_model(t) for t in result.scalars().all()]
    return FloorState(tables=tables, servers=await load_servers(session))


async def find_section_server(session: AsyncSession, section: int) -> Optional[ServerInfo]:
    """The eligible server who owns ``section``, if any."""
    query = eligible_servers_query().where(Server.section == section)
    result = await session.execute(query.limit(1))
    server = result.scalar_one_or_none()
    return ServerInfo.from_model(server) if server else None
