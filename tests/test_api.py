"""Tests for the HTTP surface: health, sync trigger and error middleware."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from crmsync.api.v1.routes.health import router as health_router
from crmsync.api.v1.routes.sync import router as sync_router
from crmsync.core.config import settings
from crmsync.core.dependencies import get_supabase_optional
from crmsync.core.exceptions import ConfigurationError, FatalPassError
from crmsync.middleware.error_handler import ErrorHandlerMiddleware, status_for


@pytest.fixture
def app():
    app = FastAPI()
    app.add_middleware(ErrorHandlerMiddleware)
    app.include_router(health_router)
    app.include_router(sync_router)

    @app.get("/boom/config")
    async def boom_config():
        raise ConfigurationError("No HubSpot account found. Exiting...")

    @app.get("/boom/other")
    async def boom_other():
        raise RuntimeError("secret internals")

    return app


@pytest.fixture
def queued_task():
    with patch("crmsync.services.jobs.tasks.sync_hubspot_task") as task:
        task.send.return_value = MagicMock(message_id="msg-1")
        yield task


class TestHealth:

    def test_health(self, app):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "hubspot_oauth" in response.json()


class TestSyncTrigger:
    """Tests for POST /sync/hubspot."""

    def test_disabled_without_configured_key(self, app, monkeypatch, queued_task):
        monkeypatch.setattr(settings, "sync_api_key", None)

        response = TestClient(app).post("/sync/hubspot", headers={"X-API-Key": "anything"})

        assert response.status_code == 503
        queued_task.send.assert_not_called()

    def test_rejects_wrong_key(self, app, monkeypatch, queued_task):
        monkeypatch.setattr(settings, "sync_api_key", "right-key")

        response = TestClient(app).post("/sync/hubspot", headers={"X-API-Key": "wrong-key"})

        assert response.status_code == 401
        queued_task.send.assert_not_called()

    def test_rejects_missing_key(self, app, monkeypatch, queued_task):
        monkeypatch.setattr(settings, "sync_api_key", "right-key")

        response = TestClient(app).post("/sync/hubspot")

        assert response.status_code == 401

    def test_queues_untracked_job_without_supabase(self, app, monkeypatch, queued_task):
        monkeypatch.setattr(settings, "sync_api_key", "right-key")
        app.dependency_overrides[get_supabase_optional] = lambda: None

        response = TestClient(app).post(
            "/sync/hubspot", params={"account_id": "12345"}, headers={"X-API-Key": "right-key"}
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        assert body["account_id"] == "12345"
        assert body["tracked"] is False
        queued_task.send.assert_called_once_with(account_id="12345", job_id=None)

    def test_tracks_job_in_supabase(self, app, monkeypatch, queued_task):
        monkeypatch.setattr(settings, "sync_api_key", "right-key")
        supabase = MagicMock()
        app.dependency_overrides[get_supabase_optional] = lambda: supabase

        response = TestClient(app).post("/sync/hubspot", headers={"X-API-Key": "right-key"})

        body = response.json()
        assert body["tracked"] is True
        supabase.table.assert_called_with("sync_jobs")
        inserted = supabase.table.return_value.insert.call_args[0][0]
        assert inserted["id"] == body["job_id"]
        assert inserted["status"] == "queued"
        queued_task.send.assert_called_once_with(account_id=None, job_id=body["job_id"])


class TestErrorHandler:
    """Tests for ErrorHandlerMiddleware."""

    def test_status_mapping(self):
        assert status_for(ConfigurationError("x")) == 503
        assert status_for(FatalPassError("x")) == 502
        assert status_for(ValueError("x")) == 500

    def test_sync_errors_keep_detail(self, app):
        response = TestClient(app).get("/boom/config")

        assert response.status_code == 503
        assert response.json()["error_type"] == "ConfigurationError"
        assert "No HubSpot account" in response.json()["detail"]

    def test_other_errors_are_opaque(self, app):
        response = TestClient(app).get("/boom/other")

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"
