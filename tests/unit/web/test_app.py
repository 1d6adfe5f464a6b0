"""Tests for repairdesk.web.app - error mapping, request logging and health."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from repairdesk.db.connection import get_db
from repairdesk.exceptions import (
    DuplicateNumberError,
    InvalidReferenceError,
    TenantNotFoundError,
)
from repairdesk.web.app import (
    app,
    duplicate_number_handler,
    invalid_reference_handler,
    tenant_not_found_handler,
)


@pytest.fixture
def db_session():
    session = MagicMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def client(db_session):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_ok(client, db_session):
    result = MagicMock()
    result.scalar_one.return_value = 2
    db_session.execute.return_value = result

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "connected"
    assert body["organizations"] == 2
    assert body["environment"] == "development"


def test_health_reports_database_error(client, db_session):
    db_session.execute.side_effect = RuntimeError("connection refused")

    response = client.get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "error"
    assert "connection refused" in body["detail"]


def test_request_id_is_echoed(client, db_session):
    result = MagicMock()
    result.scalar_one.return_value = 0
    db_session.execute.return_value = result

    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated_when_missing(client):
    response = client.get("/")

    assert len(response.headers["X-Request-ID"]) == 36


def test_rejected_request_is_logged_as_warning(client, db_session):
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    db_session.execute.return_value = result

    with capture_logs() as logs:
        client.delete("/api/customers/1", headers={"X-Organization-Id": "42"})

    completed = [entry for entry in logs if entry["event"] == "request_completed"]
    assert completed[0]["log_level"] == "warning"
    assert completed[0]["status_code"] == 404
    assert completed[0]["path"] == "/api/customers/1"
    assert "duration_ms" in completed[0]


def test_unknown_tenant_header_is_404(client, db_session):
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    db_session.execute.return_value = result

    response = client.delete("/api/customers/1", headers={"X-Organization-Id": "42"})

    assert response.status_code == 404
    assert response.json() == {"detail": "Organization not found"}


@pytest.mark.asyncio
async def test_invalid_reference_maps_to_400():
    response = await invalid_reference_handler(MagicMock(), InvalidReferenceError("repair", 9))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_number_maps_to_409():
    response = await duplicate_number_handler(MagicMock(), DuplicateNumberError("ticket", "RT-1001"))

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_tenant_not_found_maps_to_404():
    response = await tenant_not_found_handler(MagicMock(), TenantNotFoundError(3))

    assert response.status_code == 404
