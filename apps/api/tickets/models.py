from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Sequence

from .state import CriticalValue, Role, TicketCategory, TicketPriority, TicketStatus


@dataclass(slots=True, frozen=True)
class ActorContext:
    """The authenticated user performing a mutation."""

    id: str
    role: Role


@dataclass(slots=True)
class UserSummary:
    """Public projection of a user; secrets never leave the repository."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role


@dataclass(slots=True)
class TicketAction:
    """Immutable audit record of one event on a ticket."""

    id: str
    ticket_id: str
    user_id: str
    action: str
    notes: str | None
    new_status: TicketStatus | None
    created_at: datetime
    user: UserSummary | None = None


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    title: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    critical_value: CriticalValue
    expected_completion_date: date | None
    created_by_id: str
    assigned_to_id: str | None
    created_at: datetime
    updated_at: datetime
    created_by: UserSummary | None = None
    assigned_to: UserSummary | None = None
    actions: Sequence[TicketAction] = field(default_factory=list)


@dataclass(slots=True)
class TicketPage:
    """One page of a ticket listing."""

    tickets: Sequence[Ticket]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(slots=True)
class TicketCreate:
    title: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    expected_completion_date: date | None = None


@dataclass(slots=True)
class TicketUpdate:
    """Partial ticket update; ``None`` means the field is left untouched."""

    title: str | None = None
    description: str | None = None
    category: TicketCategory | None = None
    priority: TicketPriority | None = None
    status: TicketStatus | None = None
    critical_value: CriticalValue | None = None
    expected_completion_date: date | None = None
    assigned_to_id: str | None = None

    def changes(self) -> dict[str, Any]:
        """Return only the fields that were supplied."""

        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(slots=True)
class TicketActionCreate:
    ticket_id: str
    action: str
    notes: str | None = None
    new_status: TicketStatus | None = None
