"""Shared fixtures: a throwaway SQLite database and a floor builder."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fairseat.core import SeatingCoordinator
from fairseat.core.ledger import build_assignment_entry
from fairseat.models import (
    Base,
    PartyPriority,
    Server,
    StaffRole,
    Table,
    TableState,
    WaitlistEntry,
)

NOW = datetime(2026, 3, 14, 19, 30)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
async def session_factory(anyio_backend, tmp_path):
    """Session factory bound to a file database, so writers really contend."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fairseat.db'}",
        connect_args={"timeout": 5},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def coordinator(session_factory):
    return SeatingCoordinator(
        session_factory=session_factory, commit_timeout=5, clock=lambda: NOW
    )


class FloorBuilder:
    """Adds servers, tables, parties and past assignments to the test database."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(self, *objects):
        async with self.session_factory() as session:
            async with session.begin():
                session.add_all(objects)
        return objects[0] if len(objects) == 1 else objects

    async def server(self, name, section, role=StaffRole.SERVER, on_shift=True, active=True):
        return await self.add(
            Server(
                name=name,
                role=role,
                is_active=active,
                section=section,
                shift_start=NOW - timedelta(hours=3) if on_shift else None,
            )
        )

    async def table(self, number, capacity, section, state=TableState.AVAILABLE):
        return await self.add(
            Table(number=number, capacity=capacity, section=section, state=state)
        )

    async def party(self, name, size, priority=PartyPriority.NORMAL, waited=0):
        return await self.add(
            WaitlistEntry(
                party_name=name,
                party_size=size,
                priority=priority,
                created_at=NOW - timedelta(minutes=waited),
            )
        )

    async def assignments(self, server, *sizes, at=None):
        """Record past assignments for ``server`` in the ledger."""
        entries = [
            build_assignment_entry(
                table_id=0,
                server_id=server.id,
                party_size=size,
                requested_by=0,
                metadata={"assignment_type": "history"},
                created_at=at or NOW - timedelta(hours=1),
            )
            for size in sizes
        ]
        async with self.session_factory() as session:
            async with session.begin():
                session.add_all(entries)
        return entries


@pytest.fixture
def floor(session_factory):
    return FloorBuilder(session_factory)
