"""Tests for waitlist seating suggestions."""

import pytest
from sqlalchemy import select

from fairseat.models import LedgerEntry, PartyPriority, Table, TableState
from fairseat.services.suggestions import SuggestionService

pytestmark = pytest.mark.anyio


async def seed(floor):
    await floor.server("Ana", 1)
    await floor.server("Ben", 2)
    await floor.table(1, 2, 1)
    await floor.table(2, 4, 2)
    await floor.table(3, 8, 2)
    lee = await floor.party("Lee", 4, waited=30)
    big = await floor.party("Big group", 8, priority=PartyPriority.LARGE_PARTY, waited=10)
    staff = await floor.party("Staff meal", 2, priority=PartyPriority.STAFF, waited=5)
    return lee, big, staff


async def test_priority_order_then_arrival(coordinator, floor):
    """Staff outrank large parties, and ties go by arrival."""
    lee, big, staff = await seed(floor)
    service = SuggestionService(coordinator)

    parties = await service.waiting_parties(limit=10)

    assert [p.id for p in parties] == [staff.id, big.id, lee.id]


async def test_suggestions_respect_limit(coordinator, floor):
    """Only the first parties up to the limit are suggested."""
    await seed(floor)
    service = SuggestionService(coordinator)

    suggestions = await service.generate_suggestions(limit=2)

    assert [s.party_name for s in suggestions] == ["Staff meal", "Big group"]
    assert suggestions[0].assignment.table.number == 1
    assert suggestions[1].assignment.table.number == 3


async def test_long_wait_is_urgent(coordinator, floor):
    """Parties past the wait threshold use the urgency override."""
    await seed(floor)
    service = SuggestionService(coordinator, urgent_wait_minutes=20)

    suggestions = await service.generate_suggestions(limit=3)
    by_name = {s.party_name: s for s in suggestions}

    assert by_name["Lee"].urgent
    assert by_name["Lee"].wait_minutes == 30
    assert by_name["Lee"].assignment.algorithm == "urgency-override"
    assert not by_name["Staff meal"].urgent


async def test_no_threshold_means_no_urgency(coordinator, floor):
    """Without a threshold no party is urgent."""
    await seed(floor)
    service = SuggestionService(coordinator, urgent_wait_minutes=None)

    suggestions = await service.generate_suggestions(limit=3)

    assert not any(s.urgent for s in suggestions)


async def test_party_without_table_is_skipped(coordinator, floor):
    """A party with no fitting table gets no suggestion."""
    await floor.server("Ana", 1)
    await floor.table(1, 4, 1)
    await floor.party("Too big", 12, priority=PartyPriority.LARGE_PARTY)
    await floor.party("Pair", 3)
    service = SuggestionService(coordinator)

    suggestions = await service.generate_suggestions(limit=5)

    assert [s.party_name for s in suggestions] == ["Pair"]


async def test_suggestions_do_not_write(coordinator, floor, session_factory):
    """Suggestions leave the ledger and tables untouched."""
    await seed(floor)
    service = SuggestionService(coordinator)

    suggestions = await service.generate_suggestions(limit=3)
    data = suggestions[0].to_dict()

    assert data["party"]["party_name"] == "Staff meal"
    assert data["table"]["number"] == 1
    assert data["server"]["name"] == "Ana"
    assert 60 <= data["confidence"] <= 100

    async with session_factory() as session:
        ledger = await session.execute(select(LedgerEntry))
        tables = await session.execute(select(Table))
        assert ledger.scalars().all() == []
        assert all(t.state == TableState.AVAILABLE for t in tables.scalars().all())
