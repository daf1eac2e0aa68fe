"""Translate ticket workflow failures into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from apps.api.tickets.errors import (
    TicketNotFoundError,
    TicketPermissionError,
    TicketValidationError,
)

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = "Internal server error"


def _error_response(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(location) or "request"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


async def ticket_not_found_handler(request: Request, exc: TicketNotFoundError) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


async def ticket_validation_handler(request: Request, exc: TicketValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


async def ticket_permission_handler(request: Request, exc: TicketPermissionError) -> JSONResponse:
    logger.info("Forbidden %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TicketNotFoundError, ticket_not_found_handler)
    app.add_exception_handler(TicketValidationError, ticket_validation_handler)
    app.add_exception_handler(TicketPermissionError, ticket_permission_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
