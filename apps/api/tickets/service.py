from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from .errors import TicketNotFoundError, TicketPermissionError
from .filters import TicketFilters, TicketQuery
from .models import (
    ActorContext,
    Ticket,
    TicketAction,
    TicketActionCreate,
    TicketCreate,
    TicketPage,
    TicketUpdate,
)
from .repository import TicketRepository
from .state import CriticalValue, EscalationLevel, Role, TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

UPDATED_DETAILS_ACTION = "Updated ticket details"
RESOLVED_ACTION = "Resolved ticket"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_update(current: Ticket, changes: TicketUpdate) -> str:
    """Deterministic audit label for a generic update.

    A critical value change wins over a status change, which wins over a
    plain details update.
    """

    if changes.critical_value is not None and changes.critical_value != current.critical_value:
        return f"Changed critical value from {current.critical_value.value} to {changes.critical_value.value}"
    if changes.status is not None and changes.status != current.status:
        return f"Changed status from {current.status.value} to {changes.status.value}"
    return UPDATED_DETAILS_ACTION


class TicketService:
    """Ticket lifecycle engine: every state mutation paired with its audit trail."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        clock: Clock | None = None,
        skip_audit_for_agent_self_update: bool = True,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow
        # Product has not confirmed whether L1 self-updates should stay unaudited.
        self._skip_audit_for_agent_self_update = skip_audit_for_agent_self_update

    async def create_ticket(self, data: TicketCreate, creator_id: str) -> Ticket:
        now = self._clock()
        ticket = Ticket(
            id=str(uuid.uuid4()),
            title=data.title,
            description=data.description,
            category=data.category,
            priority=data.priority,
            status=TicketStateMachine.initial_state(),
            critical_value=TicketStateMachine.INITIAL_CRITICAL_VALUE,
            expected_completion_date=data.expected_completion_date,
            created_by_id=creator_id,
            assigned_to_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        created = await self._repository.create_ticket(ticket)
        logger.info("Ticket %s created by %s", created.id, creator_id)
        return created

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        return ticket

    async def list_tickets(self, filters: TicketFilters | None = None) -> TicketPage:
        return await self._page(filters or TicketFilters())

    async def list_tickets_by_assignee(self, user_id: str, filters: TicketFilters | None = None) -> TicketPage:
        return await self._page((filters or TicketFilters()).with_changes(assigned_to_id=user_id))

    async def list_escalated_tickets(
        self, level: EscalationLevel, filters: TicketFilters | None = None
    ) -> TicketPage:
        filters = (filters or TicketFilters()).with_changes(escalation=level)
        if level is EscalationLevel.L3:
            requested = filters.critical_values or tuple(CriticalValue)
            allowed = tuple(value for value in requested if TicketStateMachine.can_escalate_to_l3(value))
            if not allowed:
                return TicketPage(tickets=[], total=0, page=filters.page, limit=filters.limit, total_pages=0)
            filters = filters.with_changes(critical_values=allowed)
        return await self._page(filters)

    async def update_ticket(
        self,
        ticket_id: str,
        changes: TicketUpdate,
        actor: ActorContext,
        *,
        record_action: bool = True,
    ) -> Ticket:
        """Apply a partial update and hand the ticket to ``actor``.

        ``assigned_to_id`` is always overwritten with the actor. An action is
        appended when ``record_action`` is set, unless the actor is an L1
        agent and the service was built with
        ``skip_audit_for_agent_self_update``.
        """

        current = await self._repository.get_ticket(ticket_id, with_actions=False)
        if current is None:
            raise TicketNotFoundError()
        if changes.critical_value is not None and not TicketStateMachine.may_set_critical_value(actor.role):
            raise TicketPermissionError()

        now = self._clock()
        action: TicketAction | None = None
        if self._should_audit(actor, record_action):
            action = TicketAction(
                id=str(uuid.uuid4()),
                ticket_id=ticket_id,
                user_id=actor.id,
                action=describe_update(current, changes),
                notes=None,
                new_status=changes.status,
                created_at=now,
            )

        values = changes.changes()
        values["assigned_to_id"] = actor.id
        updated = await self._repository.update_ticket(ticket_id, values, updated_at=now, action=action)
        if updated is None:
            raise TicketNotFoundError()
        logger.info(
            "Ticket %s updated by %s (fields=%s, audited=%s)",
            ticket_id,
            actor.id,
            ",".join(sorted(values)),
            action is not None,
        )
        return updated

    async def set_critical_value(
        self, ticket_id: str, critical_value: CriticalValue, actor: ActorContext
    ) -> Ticket:
        return await self.update_ticket(ticket_id, TicketUpdate(critical_value=critical_value), actor)

    async def escalate_ticket(
        self,
        ticket_id: str,
        actor_id: str,
        notes: str,
        target_level: EscalationLevel,
        critical_value: CriticalValue | None = None,
    ) -> Ticket:
        current = await self._repository.get_ticket(ticket_id, with_actions=False)
        if current is None:
            raise TicketNotFoundError()
        TicketStateMachine.assert_escalation(target_level, critical_value or current.critical_value)

        new_status = TicketStateMachine.escalation_status(target_level)
        values: dict[str, object] = {"status": new_status}
        if critical_value is not None:
            values["critical_value"] = critical_value

        now = self._clock()
        action = TicketAction(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            user_id=actor_id,
            action=f"Escalated to {target_level.value}",
            notes=notes,
            new_status=new_status,
            created_at=now,
        )
        updated = await self._repository.update_ticket(ticket_id, values, updated_at=now, action=action)
        if updated is None:
            raise TicketNotFoundError()
        logger.info("Ticket %s escalated to %s by %s", ticket_id, target_level.value, actor_id)
        return updated

    async def add_ticket_action(self, data: TicketActionCreate, actor_id: str) -> TicketAction:
        """Append a free-form action; does not reassign the ticket."""

        if data.new_status is not None:
            current = await self._repository.get_ticket(data.ticket_id, with_actions=False)
            if current is None:
                raise TicketNotFoundError()
            TicketStateMachine.assert_action_status(data.new_status, current.critical_value)

        action = TicketAction(
            id=str(uuid.uuid4()),
            ticket_id=data.ticket_id,
            user_id=actor_id,
            action=data.action,
            notes=data.notes,
            new_status=data.new_status,
            created_at=self._clock(),
        )
        created = await self._repository.add_action(action, new_status=data.new_status)
        if created is None:
            raise TicketNotFoundError()
        logger.info("Action %r added to ticket %s by %s", data.action, data.ticket_id, actor_id)
        return created

    async def resolve_ticket(self, ticket_id: str, actor_id: str, resolution_notes: str) -> Ticket:
        now = self._clock()
        resolved = TicketStatus.RESOLVED
        action = TicketAction(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            user_id=actor_id,
            action=RESOLVED_ACTION,
            notes=resolution_notes,
            new_status=resolved,
            created_at=now,
        )
        updated = await self._repository.update_ticket(
            ticket_id,
            {"status": resolved, "assigned_to_id": actor_id},
            updated_at=now,
            action=action,
        )
        if updated is None:
            raise TicketNotFoundError()
        logger.info("Ticket %s resolved by %s", ticket_id, actor_id)
        return updated

    def _should_audit(self, actor: ActorContext, record_action: bool) -> bool:
        if not record_action:
            return False
        if actor.role is Role.L1_AGENT and self._skip_audit_for_agent_self_update:
            return False
        return True

    async def _page(self, filters: TicketFilters) -> TicketPage:
        query = TicketQuery(filters)
        tickets, total = await self._repository.list_tickets(query)
        return TicketPage(
            tickets=tickets,
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=query.total_pages(total),
        )
