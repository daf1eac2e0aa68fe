"""Ticket lifecycle domain: models, state rules, persistence and services."""

from .authorization import TicketAuthorizationGate
from .errors import TicketNotFoundError, TicketPermissionError, TicketServiceError, TicketValidationError
from .filters import TicketFilters, TicketQuery
from .models import (
    ActorContext,
    Ticket,
    TicketAction,
    TicketActionCreate,
    TicketCreate,
    TicketPage,
    TicketUpdate,
    UserSummary,
)
from .repository import TicketRepository
from .service import TicketService
from .state import (
    CriticalValue,
    EscalationLevel,
    Role,
    TicketCategory,
    TicketPriority,
    TicketStateMachine,
    TicketStatus,
)

__all__ = [
    "ActorContext",
    "CriticalValue",
    "EscalationLevel",
    "Role",
    "Ticket",
    "TicketAction",
    "TicketActionCreate",
    "TicketAuthorizationGate",
    "TicketCategory",
    "TicketCreate",
    "TicketFilters",
    "TicketNotFoundError",
    "TicketPage",
    "TicketPermissionError",
    "TicketPriority",
    "TicketQuery",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketStateMachine",
    "TicketStatus",
    "TicketUpdate",
    "TicketValidationError",
    "UserSummary",
]
