"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class UserTable(SQLModel, table=True):
    """Support staff accounts, one tier role per user."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    first_name: str = Field(sa_column=Column(String(150), nullable=False))
    last_name: str = Field(sa_column=Column(String(150), nullable=False))
    role: str = Field(sa_column=Column(String(20), nullable=False))
    api_token: str | None = Field(default=None, sa_column=Column(String(255), nullable=True, unique=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Support tickets moving through the L1/L2/L3 workflow."""

    __tablename__ = "tickets"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    category: str = Field(sa_column=Column(String(20), nullable=False))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    critical_value: str = Field(sa_column=Column(String(10), nullable=False))
    expected_completion_date: date | None = Field(default=None, sa_column=Column(Date, nullable=True))
    created_by_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id"), nullable=False)
    )
    assigned_to_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketActionTable(SQLModel, table=True):
    """Append-only history of actions performed on a ticket."""

    __tablename__ = "ticket_actions"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    user_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id"), nullable=False)
    )
    action: str = Field(sa_column=Column(String(255), nullable=False))
    notes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    new_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
