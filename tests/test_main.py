"""
Tests for Main Application wiring.

Root and metrics endpoints, request validation and the database
unavailable handler, exercised through the FastAPI test client.
"""

from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError

from videarn.api.dependencies import get_current_account
from videarn.config import settings


class TestRoot:
    """Tests for the root endpoint."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "running"
        assert body["version"] == settings.api_version


class TestMetricsEndpoint:
    """Tests for /metrics."""

    def test_prometheus_text(self, client):
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "videarn_http_requests_total" in response.text

    def test_disabled(self, client):
        with patch.object(settings, "metrics_enabled", False):
            response = client.get("/metrics")

        assert response.status_code == 404


class TestDatabaseUnavailable:
    """Database timeouts surface as 503, never as success."""

    def test_health_database_down(self, client, override_db):
        override_db.execute = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json() == {"detail": "Database unavailable, please try again"}

    def test_operational_error_in_route(self, app, client, override_db, user_account_data):
        app.dependency_overrides[get_current_account] = lambda: user_account_data
        override_db.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("timeout"))
        )

        response = client.get("/v1/me/history")

        assert response.status_code == 503


class TestValidationHandler:
    """Tests for the request validation handler."""

    def test_sanitized_422(self, app, client, override_db, user_account_data):
        app.dependency_overrides[get_current_account] = lambda: user_account_data

        response = client.post("/v1/withdrawals", json={"amount_minor": -1})

        assert response.status_code == 422
        locs = [tuple(error["loc"]) for error in response.json()["detail"]]
        assert ("body", "amount_minor") in locs
