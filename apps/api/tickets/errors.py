from __future__ import annotations

TICKET_NOT_FOUND = "Ticket not found"
NOT_AUTHORIZED = "not authorized"


class TicketServiceError(RuntimeError):
    """Base error for ticket workflow issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when an operation targets a non-existent ticket."""

    def __init__(self, message: str = TICKET_NOT_FOUND) -> None:
        super().__init__(message)


class TicketValidationError(TicketServiceError, ValueError):
    """Raised when a request payload or enum literal is invalid."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TicketPermissionError(TicketServiceError, PermissionError):
    """Raised when the caller's role may not perform the requested transition."""

    def __init__(self, message: str = NOT_AUTHORIZED) -> None:
        super().__init__(message)
