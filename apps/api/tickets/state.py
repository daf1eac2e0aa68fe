from __future__ import annotations

from enum import Enum
from typing import TypeVar

from .errors import TicketValidationError


class Role(str, Enum):
    """Support tiers, increasing in authority."""

    L1_AGENT = "L1_AGENT"
    L2_SUPPORT = "L2_SUPPORT"
    L3_SUPPORT = "L3_SUPPORT"


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "NEW"
    ATTENDING = "ATTENDING"
    COMPLETED = "COMPLETED"
    ESCALATED_L2 = "ESCALATED_L2"
    ESCALATED_L3 = "ESCALATED_L3"
    RESOLVED = "RESOLVED"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TicketCategory(str, Enum):
    HARDWARE = "HARDWARE"
    SOFTWARE = "SOFTWARE"
    NETWORK = "NETWORK"
    ACCESS = "ACCESS"
    OTHER = "OTHER"


class CriticalValue(str, Enum):
    """Severity assigned by L2/L3 support; gates escalation to L3."""

    C1 = "C1"
    C2 = "C2"
    C3 = "C3"
    NONE = "NONE"


class EscalationLevel(str, Enum):
    L2 = "L2"
    L3 = "L3"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: object, *, field: str) -> E:
    """Parse an exact-case enum literal, failing loudly on anything else."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise TicketValidationError(f"Invalid {field}: {value!r}", field=field) from exc


class TicketStateMachine:
    """Escalation rules shared by the lifecycle engine and the authorization gate."""

    INITIAL_STATUS = TicketStatus.NEW
    INITIAL_CRITICAL_VALUE = CriticalValue.NONE

    # Statuses an L1 agent may set on its own tickets.
    AGENT_STATUSES: frozenset[TicketStatus] = frozenset(
        {TicketStatus.NEW, TicketStatus.ATTENDING, TicketStatus.COMPLETED}
    )
    L3_CRITICAL_VALUES: frozenset[CriticalValue] = frozenset({CriticalValue.C1, CriticalValue.C2})
    CRITICAL_VALUE_ROLES: frozenset[Role] = frozenset({Role.L2_SUPPORT, Role.L3_SUPPORT})
    # Statuses each support tier may set while recording an action.
    ACTION_STATUSES: dict[Role, frozenset[TicketStatus]] = {
        Role.L2_SUPPORT: frozenset({TicketStatus.ATTENDING, TicketStatus.ESCALATED_L2, TicketStatus.COMPLETED}),
        Role.L3_SUPPORT: frozenset({TicketStatus.ATTENDING, TicketStatus.ESCALATED_L3}),
    }

    _ESCALATION_STATUS: dict[EscalationLevel, TicketStatus] = {
        EscalationLevel.L2: TicketStatus.ESCALATED_L2,
        EscalationLevel.L3: TicketStatus.ESCALATED_L3,
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return cls.INITIAL_STATUS

    @classmethod
    def escalation_status(cls, level: EscalationLevel) -> TicketStatus:
        return cls._ESCALATION_STATUS[level]

    @classmethod
    def agent_may_set(cls, status: TicketStatus) -> bool:
        return status in cls.AGENT_STATUSES

    @classmethod
    def action_may_set(cls, role: Role, status: TicketStatus) -> bool:
        return status in cls.ACTION_STATUSES.get(role, frozenset())

    @classmethod
    def can_escalate_to_l3(cls, critical_value: CriticalValue | None) -> bool:
        return critical_value in cls.L3_CRITICAL_VALUES

    @classmethod
    def may_set_critical_value(cls, role: Role | None) -> bool:
        return role in cls.CRITICAL_VALUE_ROLES

    @classmethod
    def assert_escalation(cls, level: EscalationLevel, critical_value: CriticalValue | None) -> None:
        if level is EscalationLevel.L3 and not cls.can_escalate_to_l3(critical_value):
            raise TicketValidationError(
                "Only tickets with critical value C1 or C2 can be escalated to L3",
                field="critical_value",
            )

    @classmethod
    def assert_action_status(cls, status: TicketStatus, critical_value: CriticalValue | None) -> None:
        """Guard a status change recorded alongside a free-form action."""

        if status is TicketStatus.RESOLVED:
            raise TicketValidationError("Tickets are resolved only with resolution notes", field="new_status")
        if status is TicketStatus.ESCALATED_L3:
            cls.assert_escalation(EscalationLevel.L3, critical_value)
