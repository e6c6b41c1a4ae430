import json

import pytest
from fastapi.testclient import TestClient

from roboshop.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalServiceError,
    NotFoundError,
    RoboshopError,
    ValidationError,
)
from roboshop.main import app, roboshop_error_handler


@pytest.fixture
def client():
    """Client without the startup hooks: no calendar login, no reminder loop"""
    return TestClient(app)


def test_health_reports_calendar_state(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "calendar_ready": False}


def test_calendar_status_when_not_connected(client):
    response = client.get("/auth/google-calendar/status")
    assert response.json()["success"] is False


def test_oauth_start_returns_google_url(client):
    response = client.get("/auth/google-calendar/start")
    assert response.json()["authorization_url"].startswith("https://accounts.google.com/")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, status",
    [
        (ValidationError("bad"), 422),
        (ConflictError("taken"), 409),
        (NotFoundError("missing"), 404),
        (ExternalServiceError("down"), 502),
        (RoboshopError("other"), 500),
    ],
)
async def test_error_status_codes(error, status):
    response = await roboshop_error_handler(None, error)
    assert response.status_code == status
    assert json.loads(response.body)["error"] == type(error).__name__


@pytest.mark.asyncio
async def test_consistency_error_says_change_was_saved():
    error = ConsistencyError("rental", 7, "create", ExternalServiceError("down"))
    response = await roboshop_error_handler(None, error)

    body = json.loads(response.body)
    assert response.status_code == 502
    assert body["saved"] is True
    assert (body["kind"], body["entity_id"], body["action"]) == ("rental", 7, "create")
