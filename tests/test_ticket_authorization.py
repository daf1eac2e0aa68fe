from datetime import date

import pytest

from apps.api.tickets import TicketAuthorizationGate, TicketPermissionError, TicketValidationError
from apps.api.tickets.state import (
    CriticalValue,
    EscalationLevel,
    Role,
    TicketCategory,
    TicketPriority,
    TicketStatus,
)

ALL_ROLES = tuple(Role)


@pytest.fixture
def gate() -> TicketAuthorizationGate:
    return TicketAuthorizationGate()


def _create_kwargs(**overrides):
    values = {
        "title": "Printer broken",
        "description": "Printer on 3rd floor jammed",
        "category": "HARDWARE",
        "priority": "MEDIUM",
    }
    values.update(overrides)
    return values


# (check name, args that are valid for the allowed roles, allowed roles)
GATE_TABLE = [
    ("check_create", ((), _create_kwargs()), {Role.L1_AGENT}),
    ("check_update_status", (("ATTENDING",), {}), {Role.L1_AGENT}),
    ("check_escalate_to_l2", (("Needs L2 help",), {}), {Role.L1_AGENT}),
    ("check_set_critical_value", (("C2",), {}), {Role.L2_SUPPORT, Role.L3_SUPPORT}),
    ("check_escalate_to_l3", (("critical", "C1"), {}), {Role.L2_SUPPORT}),
    ("check_resolve", (("Replaced toner",), {}), {Role.L3_SUPPORT}),
    (
        "check_add_action",
        ((), {"ticket_id": "ticket-1", "action": "Rebooted switch"}),
        {Role.L2_SUPPORT, Role.L3_SUPPORT},
    ),
]


@pytest.mark.parametrize("check, call, allowed", GATE_TABLE)
@pytest.mark.parametrize("role", ALL_ROLES)
def test_role_table(gate, check, call, allowed, role):
    args, kwargs = call
    method = getattr(gate, check)
    if role in allowed:
        method(role, *args, **kwargs)
    else:
        with pytest.raises(TicketPermissionError) as exc:
            method(role, *args, **kwargs)
        assert str(exc.value) == "not authorized"


def test_role_check_runs_before_payload_validation(gate):
    with pytest.raises(TicketPermissionError):
        gate.check_resolve(Role.L2_SUPPORT, None)
    with pytest.raises(TicketPermissionError):
        gate.check_escalate_to_l3(Role.L3_SUPPORT, None, "C3")


def test_check_create_builds_typed_payload(gate):
    data = gate.check_create(Role.L1_AGENT, **_create_kwargs(expected_completion_date=date(2024, 6, 1)))

    assert data.category is TicketCategory.HARDWARE
    assert data.priority is TicketPriority.MEDIUM
    assert data.expected_completion_date == date(2024, 6, 1)


def test_check_create_names_missing_fields(gate):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_create(Role.L1_AGENT, **_create_kwargs(title="  ", category=None))

    assert str(exc.value) == "Missing required fields: title, category"
    assert exc.value.field == "title"


def test_check_create_rejects_unknown_enum(gate):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_create(Role.L1_AGENT, **_create_kwargs(priority="URGENT"))
    assert exc.value.field == "priority"


@pytest.mark.parametrize("status", ["ESCALATED_L2", "ESCALATED_L3", "RESOLVED"])
def test_agent_cannot_request_privileged_status(gate, status):
    with pytest.raises(TicketPermissionError):
        gate.check_update_status(Role.L1_AGENT, status)


def test_update_status_validates_literal(gate):
    assert gate.check_update_status(Role.L1_AGENT, "COMPLETED") is TicketStatus.COMPLETED
    with pytest.raises(TicketValidationError):
        gate.check_update_status(Role.L1_AGENT, "completed")
    with pytest.raises(TicketValidationError) as exc:
        gate.check_update_status(Role.L1_AGENT, None)
    assert str(exc.value) == "Status is required"


def test_escalate_to_l2_requires_notes(gate):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_escalate_to_l2(Role.L1_AGENT, "")
    assert str(exc.value) == "Escalation notes are required"


@pytest.mark.parametrize(
    "value, message",
    [(None, "Critical value is required"), ("C7", "Invalid critical value"), ("c1", "Invalid critical value")],
)
def test_set_critical_value_messages(gate, value, message):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_set_critical_value(Role.L2_SUPPORT, value)
    assert str(exc.value) == message


def test_set_critical_value_accepts_every_enum_member(gate):
    for member in CriticalValue:
        assert gate.check_set_critical_value(Role.L3_SUPPORT, member.value) is member


@pytest.mark.parametrize(
    "notes, value, message",
    [
        (None, "C1", "Notes and critical value are required"),
        ("critical", None, "Notes and critical value are required"),
        ("critical", "C9", "Invalid critical value"),
        ("critical", "C3", "Only tickets with critical value C1 or C2 can be escalated to L3"),
        ("critical", "NONE", "Only tickets with critical value C1 or C2 can be escalated to L3"),
    ],
)
def test_escalate_to_l3_messages(gate, notes, value, message):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_escalate_to_l3(Role.L2_SUPPORT, notes, value)
    assert str(exc.value) == message


def test_escalate_to_l3_returns_typed_values(gate):
    assert gate.check_escalate_to_l3(Role.L2_SUPPORT, "critical", "C2") == ("critical", CriticalValue.C2)


def test_resolve_requires_notes(gate):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_resolve(Role.L3_SUPPORT, "   ")
    assert str(exc.value) == "Resolution notes are required"


def test_add_action_requires_description_and_valid_status(gate):
    with pytest.raises(TicketValidationError) as exc:
        gate.check_add_action(Role.L2_SUPPORT, ticket_id="ticket-1", action=None)
    assert str(exc.value) == "Action description is required"

    with pytest.raises(TicketValidationError):
        gate.check_add_action(Role.L2_SUPPORT, ticket_id="ticket-1", action="x", new_status="DONE")

    data = gate.check_add_action(
        Role.L3_SUPPORT, ticket_id="ticket-1", action="Swapped disk", notes="", new_status="ATTENDING"
    )
    assert data.new_status is TicketStatus.ATTENDING
    assert data.notes is None


@pytest.mark.parametrize(
    "role, allowed",
    [
        (Role.L2_SUPPORT, {TicketStatus.ATTENDING, TicketStatus.ESCALATED_L2, TicketStatus.COMPLETED}),
        (Role.L3_SUPPORT, {TicketStatus.ATTENDING, TicketStatus.ESCALATED_L3}),
    ],
)
@pytest.mark.parametrize("new_status", list(TicketStatus))
def test_add_action_status_is_limited_per_tier(gate, role, allowed, new_status):
    kwargs = {"ticket_id": "ticket-1", "action": "Checked", "new_status": new_status.value}

    if new_status in allowed:
        assert gate.check_add_action(role, **kwargs).new_status is new_status
    else:
        with pytest.raises(TicketPermissionError):
            gate.check_add_action(role, **kwargs)


def test_add_action_cannot_resolve_or_jump_to_l3_from_l2(gate):
    with pytest.raises(TicketPermissionError):
        gate.check_add_action(Role.L2_SUPPORT, ticket_id="ticket-1", action="x", new_status="ESCALATED_L3")
    with pytest.raises(TicketPermissionError):
        gate.check_add_action(Role.L3_SUPPORT, ticket_id="ticket-1", action="x", new_status="RESOLVED")


def test_escalated_queue_depends_on_role(gate):
    assert gate.escalated_queue_level(Role.L2_SUPPORT) is EscalationLevel.L2
    assert gate.escalated_queue_level(Role.L3_SUPPORT) is EscalationLevel.L3
    with pytest.raises(TicketPermissionError):
        gate.escalated_queue_level(Role.L1_AGENT)
