from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from apps.api.tickets import (
    Role,
    Ticket,
    TicketAction,
    TicketFilters,
    TicketQuery,
    TicketRepository,
)
from apps.api.tickets.state import CriticalValue, TicketCategory, TicketPriority, TicketStatus
from packages.db.models import TicketActionTable, TicketTable

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _ticket(creator_id: str, *, offset: int = 0, **overrides) -> Ticket:
    values = dict(
        id=str(uuid.uuid4()),
        title="Printer broken",
        description="Printer on 3rd floor jammed",
        category=TicketCategory.HARDWARE,
        priority=TicketPriority.MEDIUM,
        status=TicketStatus.NEW,
        critical_value=CriticalValue.NONE,
        expected_completion_date=None,
        created_by_id=creator_id,
        assigned_to_id=creator_id,
        created_at=BASE_TIME + timedelta(minutes=offset),
        updated_at=BASE_TIME + timedelta(minutes=offset),
    )
    values.update(overrides)
    return Ticket(**values)


def _action(ticket_id: str, user_id: str, label: str, *, minutes: int, new_status=None) -> TicketAction:
    return TicketAction(
        id=str(uuid.uuid4()),
        ticket_id=ticket_id,
        user_id=user_id,
        action=label,
        notes=None,
        new_status=new_status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables(engine: AsyncEngine):
    repository = TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await repository.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))
    assert {"users", "tickets", "ticket_actions"} <= tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine(session_factory):
    repository = TicketRepository(session_factory)
    with pytest.raises(RuntimeError):
        await repository.ensure_schema()


@pytest.mark.asyncio
async def test_create_ticket_persists_and_projects_users(ticket_repository, session_factory, users):
    agent = users[Role.L1_AGENT]
    ticket = _ticket(agent.id, expected_completion_date=date(2024, 3, 8))

    created = await ticket_repository.create_ticket(ticket)

    assert created.created_by == agent
    assert created.assigned_to == agent
    async with session_factory() as session:
        row = await session.get(TicketTable, ticket.id)
    assert row is not None
    assert row.status == "NEW"
    assert row.category == "HARDWARE"
    assert row.expected_completion_date == date(2024, 3, 8)


@pytest.mark.asyncio
async def test_get_ticket_returns_none_for_unknown_id(ticket_repository):
    assert await ticket_repository.get_ticket("missing") is None


@pytest.mark.asyncio
async def test_get_ticket_orders_actions_newest_first(ticket_repository, users):
    agent = users[Role.L1_AGENT]
    tech = users[Role.L2_SUPPORT]
    ticket = await ticket_repository.create_ticket(_ticket(agent.id))

    await ticket_repository.add_action(_action(ticket.id, agent.id, "first", minutes=1))
    await ticket_repository.add_action(_action(ticket.id, tech.id, "second", minutes=2))

    loaded = await ticket_repository.get_ticket(ticket.id)

    assert loaded is not None
    assert [item.action for item in loaded.actions] == ["second", "first"]
    assert loaded.actions[0].user == tech
    assert loaded.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_update_ticket_applies_values_and_action_together(ticket_repository, session_factory, users):
    agent = users[Role.L1_AGENT]
    tech = users[Role.L2_SUPPORT]
    ticket = await ticket_repository.create_ticket(_ticket(agent.id))
    later = BASE_TIME + timedelta(hours=1)

    updated = await ticket_repository.update_ticket(
        ticket.id,
        {"critical_value": CriticalValue.C2, "assigned_to_id": tech.id},
        updated_at=later,
        action=_action(ticket.id, tech.id, "Changed critical value from NONE to C2", minutes=60),
    )

    assert updated is not None
    assert updated.critical_value is CriticalValue.C2
    assert updated.assigned_to == tech
    assert updated.updated_at == later
    assert [item.action for item in updated.actions] == ["Changed critical value from NONE to C2"]
    async with session_factory() as session:
        row = await session.get(TicketTable, ticket.id)
    assert row.critical_value == "C2"


@pytest.mark.asyncio
async def test_update_ticket_returns_none_when_missing(ticket_repository):
    result = await ticket_repository.update_ticket("missing", {"title": "x"}, updated_at=BASE_TIME)
    assert result is None


@pytest.mark.asyncio
async def test_add_action_moves_status_without_reassigning(ticket_repository, session_factory, users):
    agent = users[Role.L1_AGENT]
    tech = users[Role.L2_SUPPORT]
    ticket = await ticket_repository.create_ticket(_ticket(agent.id, status=TicketStatus.ESCALATED_L2))

    created = await ticket_repository.add_action(
        _action(ticket.id, tech.id, "Checked cabling", minutes=5, new_status=TicketStatus.ATTENDING),
        new_status=TicketStatus.ATTENDING,
    )

    assert created is not None
    assert created.user == tech
    async with session_factory() as session:
        row = await session.get(TicketTable, ticket.id)
        actions = await session.get(TicketActionTable, created.id)
    assert row.status == "ATTENDING"
    assert row.assigned_to_id == agent.id
    assert actions is not None and actions.new_status == "ATTENDING"


@pytest.mark.asyncio
async def test_add_action_returns_none_for_unknown_ticket(ticket_repository, users):
    agent = users[Role.L1_AGENT]
    assert await ticket_repository.add_action(_action("missing", agent.id, "noop", minutes=1)) is None


@pytest.mark.asyncio
async def test_list_tickets_filters_orders_and_paginates(ticket_repository, users):
    agent = users[Role.L1_AGENT]
    for index in range(5):
        await ticket_repository.create_ticket(
            _ticket(agent.id, offset=index, title=f"VPN issue {index}", category=TicketCategory.NETWORK)
        )
    await ticket_repository.create_ticket(_ticket(agent.id, offset=10))

    query = TicketQuery(TicketFilters(categories=(TicketCategory.NETWORK,), page=1, limit=2))
    tickets, total = await ticket_repository.list_tickets(query)

    assert total == 5
    assert [item.title for item in tickets] == ["VPN issue 4", "VPN issue 3"]
    assert tickets[0].created_by == agent

    second_page, _ = await ticket_repository.list_tickets(
        TicketQuery(TicketFilters(categories=(TicketCategory.NETWORK,), page=3, limit=2))
    )
    assert [item.title for item in second_page] == ["VPN issue 0"]


@pytest.mark.asyncio
async def test_list_tickets_breaks_timestamp_ties_by_id(ticket_repository, users):
    agent = users[Role.L1_AGENT]
    ids = [f"ticket-{index}" for index in (3, 0, 4, 1, 2)]
    for ticket_id in ids:
        await ticket_repository.create_ticket(_ticket(agent.id, id=ticket_id))

    seen: list[str] = []
    for page in (1, 2, 3):
        tickets, total = await ticket_repository.list_tickets(TicketQuery(TicketFilters(page=page, limit=2)))
        assert total == 5
        seen.extend(item.id for item in tickets)

    assert seen == sorted(ids)


@pytest.mark.asyncio
async def test_list_tickets_search_is_case_insensitive(ticket_repository, users):
    agent = users[Role.L1_AGENT]
    await ticket_repository.create_ticket(_ticket(agent.id, title="Laptop", description="Keyboard SPILL"))
    await ticket_repository.create_ticket(_ticket(agent.id, title="Monitor", description="Flickers"))

    tickets, total = await ticket_repository.list_tickets(TicketQuery(TicketFilters(search="spill")))

    assert total == 1
    assert tickets[0].title == "Laptop"
