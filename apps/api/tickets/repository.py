from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from packages.db.models import TicketActionTable, TicketTable, UserTable

from .filters import TicketQuery
from .models import Ticket, TicketAction, UserSummary
from .state import CriticalValue, Role, TicketCategory, TicketPriority, TicketStatus


class TicketRepository:
    """Persistence helper wrapping `tickets`, `ticket_actions` and user projections.

    Every method opens its own session; writes that belong together (a ticket
    change and its audit action) share one transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        title=ticket.title,
                        description=ticket.description,
                        category=ticket.category.value,
                        priority=ticket.priority.value,
                        status=ticket.status.value,
                        critical_value=ticket.critical_value.value,
                        expected_completion_date=ticket.expected_completion_date,
                        created_by_id=ticket.created_by_id,
                        assigned_to_id=ticket.assigned_to_id,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                    )
                )
            users = await self._load_users(session, [ticket.created_by_id, ticket.assigned_to_id])
        return self._attach_users(ticket, users)

    async def get_ticket(self, ticket_id: str, *, with_actions: bool = True) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return await self._build_ticket(session, row, with_actions=with_actions)

    async def update_ticket(
        self,
        ticket_id: str,
        values: Mapping[str, Any],
        *,
        updated_at: datetime,
        action: TicketAction | None = None,
    ) -> Ticket | None:
        """Apply field changes and optionally append an action atomically."""

        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id)
                if row is None:
                    return None
                for name, value in values.items():
                    setattr(row, name, _to_column_value(value))
                row.updated_at = updated_at
                if action is not None:
                    session.add(_action_to_table(action))
            await session.refresh(row)
            return await self._build_ticket(session, row, with_actions=True)

    async def add_action(
        self,
        action: TicketAction,
        *,
        new_status: TicketStatus | None = None,
    ) -> TicketAction | None:
        """Append an action, moving the ticket to ``new_status`` when given."""

        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, action.ticket_id)
                if row is None:
                    return None
                session.add(_action_to_table(action))
                if new_status is not None:
                    row.status = new_status.value
                    row.updated_at = action.created_at
            users = await self._load_users(session, [action.user_id])
        return replace(action, user=users.get(action.user_id))

    async def list_tickets(self, query: TicketQuery) -> tuple[list[Ticket], int]:
        conditions = query.conditions()
        statement = select(TicketTable)
        count_statement = select(func.count()).select_from(TicketTable)
        if conditions:
            statement = statement.where(*conditions)
            count_statement = count_statement.where(*conditions)
        statement = (
            statement.order_by(TicketTable.updated_at.desc(), TicketTable.id)
            .offset(query.offset)
            .limit(query.limit)
        )

        async with self._session_factory() as session:
            total = (await session.execute(count_statement)).scalar_one()
            rows = (await session.execute(statement)).scalars().all()
            user_ids: list[str | None] = []
            for row in rows:
                user_ids.extend((row.created_by_id, row.assigned_to_id))
            users = await self._load_users(session, user_ids)

        tickets = [self._attach_users(self._table_to_ticket(row), users) for row in rows]
        return tickets, int(total)

    async def _build_ticket(self, session: AsyncSession, row: TicketTable, *, with_actions: bool) -> Ticket:
        ticket = self._table_to_ticket(row)
        action_rows: Sequence[TicketActionTable] = []
        if with_actions:
            result = await session.execute(
                select(TicketActionTable)
                .where(TicketActionTable.ticket_id == row.id)
                .order_by(TicketActionTable.created_at.desc())
            )
            action_rows = result.scalars().all()

        user_ids = [row.created_by_id, row.assigned_to_id, *(item.user_id for item in action_rows)]
        users = await self._load_users(session, user_ids)
        ticket.actions = [self._table_to_action(item, users) for item in action_rows]
        return self._attach_users(ticket, users)

    async def _load_users(self, session: AsyncSession, user_ids: Iterable[str | None]) -> dict[str, UserSummary]:
        wanted = {user_id for user_id in user_ids if user_id}
        if not wanted:
            return {}
        result = await session.execute(select(UserTable).where(UserTable.id.in_(sorted(wanted))))
        return {row.id: user_summary_from_row(row) for row in result.scalars().all()}

    @staticmethod
    def _attach_users(ticket: Ticket, users: Mapping[str, UserSummary]) -> Ticket:
        ticket.created_by = users.get(ticket.created_by_id)
        ticket.assigned_to = users.get(ticket.assigned_to_id) if ticket.assigned_to_id else None
        return ticket

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description,
            category=TicketCategory(row.category),
            priority=TicketPriority(row.priority),
            status=TicketStatus(row.status),
            critical_value=CriticalValue(row.critical_value),
            expected_completion_date=row.expected_completion_date,
            created_by_id=row.created_by_id,
            assigned_to_id=row.assigned_to_id,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_action(row: TicketActionTable, users: Mapping[str, UserSummary]) -> TicketAction:
        return TicketAction(
            id=row.id,
            ticket_id=row.ticket_id,
            user_id=row.user_id,
            action=row.action,
            notes=row.notes,
            new_status=TicketStatus(row.new_status) if row.new_status else None,
            created_at=_ensure_datetime(row.created_at),
            user=users.get(row.user_id),
        )


def user_summary_from_row(row: UserTable) -> UserSummary:
    return UserSummary(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        role=Role(row.role),
    )


def _action_to_table(action: TicketAction) -> TicketActionTable:
    return TicketActionTable(
        id=action.id,
        ticket_id=action.ticket_id,
        user_id=action.user_id,
        action=action.action,
        notes=action.notes,
        new_status=action.new_status.value if action.new_status else None,
        created_at=action.created_at,
    )


def _to_column_value(value: Any) -> Any:
    if isinstance(value, (TicketStatus, TicketPriority, TicketCategory, CriticalValue)):
        return value.value
    return value


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
