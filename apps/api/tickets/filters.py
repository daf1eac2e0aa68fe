"""Typed ticket filters and their translation into SQL predicates."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Sequence

from sqlalchemy import or_

from packages.db.models import TicketTable

from .state import (
    CriticalValue,
    EscalationLevel,
    TicketCategory,
    TicketPriority,
    TicketStateMachine,
    TicketStatus,
    parse_enum,
)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

QueryValue = str | Sequence[str] | None


def _as_list(value: QueryValue) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [item for item in value if isinstance(item, str) and item]


def _parse_int(value: object, default: int) -> int:
    try:
        parsed = int(str(value))
    except (TypeError, ValueError):
        return default
    return parsed or default


@dataclass(slots=True, frozen=True)
class TicketFilters:
    """Optional listing criteria; empty tuples and ``None`` mean "no constraint"."""

    statuses: tuple[TicketStatus, ...] = ()
    priorities: tuple[TicketPriority, ...] = ()
    categories: tuple[TicketCategory, ...] = ()
    critical_values: tuple[CriticalValue, ...] = ()
    search: str = ""
    escalation: EscalationLevel | None = None
    assigned_to_id: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        object.__setattr__(self, "page", max(1, self.page))
        object.__setattr__(self, "limit", min(MAX_LIMIT, max(1, self.limit)))
        object.__setattr__(self, "search", self.search.strip())

    @classmethod
    def from_query(
        cls,
        *,
        status: QueryValue = None,
        priority: QueryValue = None,
        category: QueryValue = None,
        critical_value: QueryValue = None,
        search: QueryValue = None,
        escalation: str | None = None,
        page: object = None,
        limit: object = None,
    ) -> "TicketFilters":
        """Build filters from raw query parameters.

        Enum literals must match exactly; an unknown value raises
        ``TicketValidationError`` naming the parameter. Unparseable page and
        limit values fall back to the defaults.
        """

        search_terms = _as_list(search)
        return cls(
            statuses=tuple(parse_enum(TicketStatus, item, field="status") for item in _as_list(status)),
            priorities=tuple(parse_enum(TicketPriority, item, field="priority") for item in _as_list(priority)),
            categories=tuple(parse_enum(TicketCategory, item, field="category") for item in _as_list(category)),
            critical_values=tuple(
                parse_enum(CriticalValue, item, field="critical_value") for item in _as_list(critical_value)
            ),
            search=search_terms[0] if search_terms else "",
            escalation=parse_enum(EscalationLevel, escalation, field="escalation") if escalation else None,
            page=_parse_int(page, DEFAULT_PAGE),
            limit=_parse_int(limit, DEFAULT_LIMIT),
        )

    def with_changes(self, **changes: Any) -> "TicketFilters":
        return replace(self, **changes)


class TicketQuery:
    """Deterministic translation of ``TicketFilters`` into SQLAlchemy predicates."""

    def __init__(self, filters: TicketFilters) -> None:
        self.filters = filters

    @property
    def statuses(self) -> tuple[TicketStatus, ...]:
        # The escalation alias replaces any explicit status filter.
        if self.filters.escalation is not None:
            return (TicketStateMachine.escalation_status(self.filters.escalation),)
        return self.filters.statuses

    def conditions(self) -> list[Any]:
        filters = self.filters
        conditions: list[Any] = []
        if self.statuses:
            conditions.append(TicketTable.status.in_(_values(self.statuses)))
        if filters.priorities:
            conditions.append(TicketTable.priority.in_(_values(filters.priorities)))
        if filters.categories:
            conditions.append(TicketTable.category.in_(_values(filters.categories)))
        if filters.critical_values:
            conditions.append(TicketTable.critical_value.in_(_values(filters.critical_values)))
        if filters.assigned_to_id is not None:
            conditions.append(TicketTable.assigned_to_id == filters.assigned_to_id)
        if filters.search:
            pattern = f"%{_escape_like(filters.search)}%"
            conditions.append(
                or_(
                    TicketTable.title.ilike(pattern, escape="\\"),
                    TicketTable.description.ilike(pattern, escape="\\"),
                )
            )
        return conditions

    @property
    def offset(self) -> int:
        return (self.filters.page - 1) * self.filters.limit

    @property
    def limit(self) -> int:
        return self.filters.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.filters.limit)


def _values(items: Iterable[Any]) -> list[str]:
    return [item.value for item in items]


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
