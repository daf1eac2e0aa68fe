"""Role and payload preconditions checked before the lifecycle engine runs.

Role checks always run first and fail with a generic ``TicketPermissionError``
so a caller without the right tier learns nothing about the ticket or the
business rule it tripped. Payload checks fail with ``TicketValidationError``
naming the offending field.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from .errors import TicketPermissionError, TicketValidationError
from .models import TicketActionCreate, TicketCreate
from .state import (
    CriticalValue,
    EscalationLevel,
    Role,
    TicketCategory,
    TicketPriority,
    TicketStateMachine,
    TicketStatus,
    parse_enum,
)

MISSING_FIELDS = "Missing required fields"
ESCALATION_NOTES_REQUIRED = "Escalation notes are required"
CRITICAL_VALUE_REQUIRED = "Critical value is required"
INVALID_CRITICAL_VALUE = "Invalid critical value"
L3_FIELDS_REQUIRED = "Notes and critical value are required"
L3_CRITICAL_VALUE_ONLY = "Only tickets with critical value C1 or C2 can be escalated to L3"
RESOLUTION_NOTES_REQUIRED = "Resolution notes are required"
ACTION_REQUIRED = "Action description is required"
STATUS_REQUIRED = "Status is required"


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


class TicketAuthorizationGate:
    """Decide whether a role may request a transition and whether the payload is valid."""

    @staticmethod
    def require_role(role: Role, allowed: Iterable[Role]) -> None:
        if role not in set(allowed):
            raise TicketPermissionError()

    def check_create(
        self,
        role: Role,
        *,
        title: str | None,
        description: str | None,
        category: str | None,
        priority: str | None,
        expected_completion_date: date | None = None,
    ) -> TicketCreate:
        self.require_role(role, (Role.L1_AGENT,))
        supplied = {"title": title, "description": description, "category": category, "priority": priority}
        missing = [name for name, value in supplied.items() if not _present(value)]
        if missing:
            raise TicketValidationError(f"{MISSING_FIELDS}: {', '.join(missing)}", field=missing[0])
        return TicketCreate(
            title=str(title),
            description=str(description),
            category=parse_enum(TicketCategory, category, field="category"),
            priority=parse_enum(TicketPriority, priority, field="priority"),
            expected_completion_date=expected_completion_date,
        )

    def check_update_status(self, role: Role, status: str | None) -> TicketStatus:
        self.require_role(role, (Role.L1_AGENT,))
        if not _present(status):
            raise TicketValidationError(STATUS_REQUIRED, field="status")
        parsed = parse_enum(TicketStatus, status, field="status")
        if not TicketStateMachine.agent_may_set(parsed):
            raise TicketPermissionError()
        return parsed

    def check_escalate_to_l2(self, role: Role, notes: str | None) -> str:
        self.require_role(role, (Role.L1_AGENT,))
        if not _present(notes):
            raise TicketValidationError(ESCALATION_NOTES_REQUIRED, field="notes")
        return str(notes)

    def check_set_critical_value(self, role: Role, critical_value: str | None) -> CriticalValue:
        self.require_role(role, TicketStateMachine.CRITICAL_VALUE_ROLES)
        if not _present(critical_value):
            raise TicketValidationError(CRITICAL_VALUE_REQUIRED, field="critical_value")
        return self._parse_critical_value(critical_value)

    def check_escalate_to_l3(
        self, role: Role, notes: str | None, critical_value: str | None
    ) -> tuple[str, CriticalValue]:
        self.require_role(role, (Role.L2_SUPPORT,))
        if not _present(notes) or not _present(critical_value):
            raise TicketValidationError(L3_FIELDS_REQUIRED)
        parsed = self._parse_critical_value(critical_value)
        if not TicketStateMachine.can_escalate_to_l3(parsed):
            raise TicketValidationError(L3_CRITICAL_VALUE_ONLY, field="critical_value")
        return str(notes), parsed

    def check_resolve(self, role: Role, resolution_notes: str | None) -> str:
        self.require_role(role, (Role.L3_SUPPORT,))
        if not _present(resolution_notes):
            raise TicketValidationError(RESOLUTION_NOTES_REQUIRED, field="resolution_notes")
        return str(resolution_notes)

    def check_add_action(
        self,
        role: Role,
        *,
        ticket_id: str,
        action: str | None,
        notes: str | None = None,
        new_status: str | None = None,
    ) -> TicketActionCreate:
        self.require_role(role, (Role.L2_SUPPORT, Role.L3_SUPPORT))
        if not _present(action):
            raise TicketValidationError(ACTION_REQUIRED, field="action")
        parsed = parse_enum(TicketStatus, new_status, field="new_status") if new_status else None
        if parsed is not None and not TicketStateMachine.action_may_set(role, parsed):
            raise TicketPermissionError()
        return TicketActionCreate(
            ticket_id=ticket_id,
            action=str(action),
            notes=notes or None,
            new_status=parsed,
        )

    def escalated_queue_level(self, role: Role) -> EscalationLevel:
        if role is Role.L2_SUPPORT:
            return EscalationLevel.L2
        if role is Role.L3_SUPPORT:
            return EscalationLevel.L3
        raise TicketPermissionError()

    @staticmethod
    def _parse_critical_value(value: str | None) -> CriticalValue:
        try:
            return CriticalValue(value)
        except ValueError as exc:
            raise TicketValidationError(INVALID_CRITICAL_VALUE, field="critical_value") from exc
