from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from apps.api.dependencies.auth import CurrentUser, actor_of, get_current_user
from apps.api.dependencies.tickets import TicketGateDep, TicketServiceDep
from apps.api.tickets import (
    CriticalValue,
    EscalationLevel,
    Role,
    Ticket,
    TicketAction,
    TicketCategory,
    TicketFilters,
    TicketPage,
    TicketPriority,
    TicketStatus,
    TicketUpdate,
    UserSummary,
)

router = APIRouter(prefix="/tickets", tags=["tickets"], dependencies=[Depends(get_current_user)])


class UserSummaryModel(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: Role

    @classmethod
    def from_entity(cls, entity: UserSummary) -> "UserSummaryModel":
        return cls(
            id=entity.id,
            email=entity.email,
            first_name=entity.first_name,
            last_name=entity.last_name,
            role=entity.role,
        )


class TicketActionModel(BaseModel):
    id: str
    ticket_id: str
    user_id: str
    action: str
    notes: str | None = None
    new_status: TicketStatus | None = None
    created_at: datetime
    user: UserSummaryModel | None = None

    @classmethod
    def from_entity(cls, entity: TicketAction) -> "TicketActionModel":
        return cls(
            id=entity.id,
            ticket_id=entity.ticket_id,
            user_id=entity.user_id,
            action=entity.action,
            notes=entity.notes,
            new_status=entity.new_status,
            created_at=entity.created_at,
            user=UserSummaryModel.from_entity(entity.user) if entity.user else None,
        )


class TicketModel(BaseModel):
    id: str
    title: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    critical_value: CriticalValue
    expected_completion_date: date | None = None
    created_by_id: str
    assigned_to_id: str | None = None
    created_at: datetime
    updated_at: datetime
    created_by: UserSummaryModel | None = None
    assigned_to: UserSummaryModel | None = None

    @classmethod
    def base_fields(cls, entity: Ticket) -> dict[str, object]:
        return {
            "id": entity.id,
            "title": entity.title,
            "description": entity.description,
            "category": entity.category,
            "priority": entity.priority,
            "status": entity.status,
            "critical_value": entity.critical_value,
            "expected_completion_date": entity.expected_completion_date,
            "created_by_id": entity.created_by_id,
            "assigned_to_id": entity.assigned_to_id,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
            "created_by": UserSummaryModel.from_entity(entity.created_by) if entity.created_by else None,
            "assigned_to": UserSummaryModel.from_entity(entity.assigned_to) if entity.assigned_to else None,
        }

    @classmethod
    def from_entity(cls, entity: Ticket) -> "TicketModel":
        return cls(**cls.base_fields(entity))


class TicketDetailModel(TicketModel):
    actions: list[TicketActionModel] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: Ticket) -> "TicketDetailModel":
        return cls(
            **cls.base_fields(entity),
            actions=[TicketActionModel.from_entity(action) for action in entity.actions],
        )


class TicketPageModel(BaseModel):
    tickets: list[TicketModel]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_entity(cls, entity: TicketPage) -> "TicketPageModel":
        return cls(
            tickets=[TicketModel.from_entity(ticket) for ticket in entity.tickets],
            total=entity.total,
            page=entity.page,
            limit=entity.limit,
            total_pages=entity.total_pages,
        )


# Enumerated fields arrive as plain strings so the gate can answer with its own messages.
class TicketCreateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    priority: str | None = None
    expected_completion_date: date | None = None


class TicketStatusRequest(BaseModel):
    status: str | None = None


class EscalationRequest(BaseModel):
    notes: str | None = None


class CriticalValueRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    critical_value: str | None = Field(default=None, alias="criticalValue")


class L3EscalationRequest(CriticalValueRequest):
    notes: str | None = None


class ResolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resolution_notes: str | None = Field(default=None, alias="resolutionNotes")


class TicketActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str | None = None
    notes: str | None = None
    new_status: str | None = Field(default=None, alias="newStatus")


async def list_filters(
    status_: Annotated[list[str] | None, Query(alias="status")] = None,
    priority: Annotated[list[str] | None, Query()] = None,
    category: Annotated[list[str] | None, Query()] = None,
    critical_value: Annotated[list[str] | None, Query(alias="criticalValue")] = None,
    escalation: Annotated[str | None, Query()] = None,
    search: Annotated[str | None, Query()] = None,
    page: Annotated[str | None, Query()] = None,
    limit: Annotated[str | None, Query()] = None,
) -> TicketFilters:
    """Listing parameters shared by every paginated endpoint.

    Page and limit stay raw strings: unparseable values fall back to the
    defaults instead of failing the request.
    """

    return TicketFilters.from_query(
        status=status_,
        priority=priority,
        category=category,
        critical_value=critical_value,
        search=search,
        escalation=escalation,
        page=page,
        limit=limit,
    )


TicketFiltersDep = Annotated[TicketFilters, Depends(list_filters)]


async def escalated_queue_level(gate: TicketGateDep, user: CurrentUser) -> EscalationLevel:
    # Resolved before the listing filters so a wrong tier is rejected first.
    return gate.escalated_queue_level(user.role)


@router.post(
    "/create",
    response_model=TicketModel,
    status_code=status.HTTP_201_CREATED,
    summary="Open a new ticket",
)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketModel:
    data = gate.check_create(
        user.role,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        expected_completion_date=payload.expected_completion_date,
    )
    ticket = await service.create_ticket(data, user.id)
    return TicketModel.from_entity(ticket)


@router.get("", response_model=TicketPageModel, summary="List tickets")
async def list_tickets(filters: TicketFiltersDep, service: TicketServiceDep) -> TicketPageModel:
    page = await service.list_tickets(filters)
    return TicketPageModel.from_entity(page)


@router.get("/my-tickets", response_model=TicketPageModel, summary="List tickets assigned to the caller")
async def list_my_tickets(
    filters: TicketFiltersDep,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketPageModel:
    page = await service.list_tickets_by_assignee(user.id, filters)
    return TicketPageModel.from_entity(page)


@router.get(
    "/escalated-tickets",
    response_model=TicketPageModel,
    summary="List the escalation queue of the caller's tier",
)
async def list_escalated_tickets(
    level: Annotated[EscalationLevel, Depends(escalated_queue_level)],
    filters: TicketFiltersDep,
    service: TicketServiceDep,
) -> TicketPageModel:
    page = await service.list_escalated_tickets(level, filters)
    return TicketPageModel.from_entity(page)


@router.post(
    "/add-ticket-action/{ticket_id}",
    response_model=TicketDetailModel,
    status_code=status.HTTP_201_CREATED,
    summary="Record work done on a ticket",
)
async def add_ticket_action(
    ticket_id: str,
    payload: TicketActionRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    data = gate.check_add_action(
        user.role,
        ticket_id=ticket_id,
        action=payload.action,
        notes=payload.notes,
        new_status=payload.new_status,
    )
    await service.add_ticket_action(data, user.id)
    # Two separate writes: the action lands first, then the ticket moves to
    # the caller without a second audit entry.
    ticket = await service.update_ticket(
        ticket_id,
        TicketUpdate(assigned_to_id=user.id),
        actor_of(user),
        record_action=False,
    )
    return TicketDetailModel.from_entity(ticket)


@router.get("/{ticket_id}", response_model=TicketDetailModel, summary="Ticket with its action history")
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketDetailModel:
    ticket = await service.get_ticket(ticket_id)
    return TicketDetailModel.from_entity(ticket)


@router.put("/{ticket_id}/update-status", response_model=TicketDetailModel)
async def update_ticket_status(
    ticket_id: str,
    payload: TicketStatusRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    new_status = gate.check_update_status(user.role, payload.status)
    ticket = await service.update_ticket(ticket_id, TicketUpdate(status=new_status), actor_of(user))
    return TicketDetailModel.from_entity(ticket)


@router.put("/{ticket_id}/escalate-l2", response_model=TicketDetailModel)
async def escalate_to_l2(
    ticket_id: str,
    payload: EscalationRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    notes = gate.check_escalate_to_l2(user.role, payload.notes)
    ticket = await service.escalate_ticket(ticket_id, user.id, notes, EscalationLevel.L2)
    return TicketDetailModel.from_entity(ticket)


@router.put("/{ticket_id}/set-critical-value", response_model=TicketDetailModel)
async def set_critical_value(
    ticket_id: str,
    payload: CriticalValueRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    critical_value = gate.check_set_critical_value(user.role, payload.critical_value)
    ticket = await service.set_critical_value(ticket_id, critical_value, actor_of(user))
    return TicketDetailModel.from_entity(ticket)


@router.put("/{ticket_id}/escalate-l3", response_model=TicketDetailModel)
async def escalate_to_l3(
    ticket_id: str,
    payload: L3EscalationRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    notes, critical_value = gate.check_escalate_to_l3(user.role, payload.notes, payload.critical_value)
    # The critical value is stored (and the ticket taken by the L2 caller)
    # before the escalation itself; only the escalation is audited.
    await service.update_ticket(
        ticket_id,
        TicketUpdate(critical_value=critical_value),
        actor_of(user),
        record_action=False,
    )
    ticket = await service.escalate_ticket(ticket_id, user.id, notes, EscalationLevel.L3, critical_value)
    return TicketDetailModel.from_entity(ticket)


@router.put("/{ticket_id}/resolve", response_model=TicketDetailModel)
async def resolve_ticket(
    ticket_id: str,
    payload: ResolveRequest,
    service: TicketServiceDep,
    gate: TicketGateDep,
    user: CurrentUser,
) -> TicketDetailModel:
    notes = gate.check_resolve(user.role, payload.resolution_notes)
    ticket = await service.resolve_ticket(ticket_id, user.id, notes)
    return TicketDetailModel.from_entity(ticket)
