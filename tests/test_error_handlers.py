from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from apps.api.core.errors import register_exception_handlers
from apps.api.tickets import TicketNotFoundError, TicketPermissionError, TicketValidationError


class Payload(BaseModel):
    count: int


def _client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise TicketNotFoundError()

    @app.get("/invalid")
    async def invalid():
        raise TicketValidationError("Resolution notes are required", field="resolution_notes")

    @app.get("/forbidden")
    async def forbidden():
        raise TicketPermissionError()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("password=hunter2")

    @app.post("/payload")
    async def payload(body: Payload):
        return {"count": body.count}

    return TestClient(app, raise_server_exceptions=False)


def test_not_found_maps_to_404():
    response = _client().get("/missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Ticket not found"}


def test_validation_maps_to_400_with_message():
    response = _client().get("/invalid")
    assert response.status_code == 400
    assert response.json() == {"detail": "Resolution notes are required"}


def test_permission_maps_to_generic_403():
    response = _client().get("/forbidden")
    assert response.status_code == 403
    assert response.json() == {"detail": "not authorized"}


def test_request_validation_maps_to_400_naming_field():
    response = _client().post("/payload", json={"count": "many"})
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid count")


def test_unexpected_error_is_logged_not_echoed(caplog):
    with caplog.at_level("ERROR", logger="apps.api.core.errors"):
        response = _client().get("/boom")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert "hunter2" not in response.text
    assert any("Unhandled error" in record.getMessage() for record in caplog.records)
