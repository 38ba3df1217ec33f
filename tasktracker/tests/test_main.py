"""Tests for the app surface: health, banner, error shapes, and settings."""

import os
from datetime import timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient

from tasktracker import dates
from tasktracker.config import Settings
from tasktracker.database import Database
from tasktracker.main import create_app
from tasktracker.models import Task, TaskPriority, TaskStatus


class TestHealthCheck:
    def test_healthy(self, client: TestClient):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == {"connected": True}

    def test_unhealthy_when_database_unreachable(self, client: TestClient, app):
        with patch.object(app.state.db, "ping", return_value=False):
            response = client.get("/api/health")
        assert response.status_code == 500
        assert response.json()["status"] == "unhealthy"


def test_root_banner(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["environment"] == "test"


def test_unknown_route(client: TestClient):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"message": "Route /api/nothing-here not found"}


def test_validation_details_hidden_in_production(engine):
    settings = Settings(environment="production", jwt_secret="prod-secret", expiry_sweep_interval=0)
    app = create_app(settings, database=Database(settings, engine=engine))
    client = TestClient(app)
    response = client.post("/api/register", json={})
    assert response.status_code == 400
    assert "details" not in response.json()


def test_validation_details_shown_in_development(client: TestClient):
    response = client.post("/api/register", json={})
    assert response.status_code == 400
    assert response.json()["details"]


def test_lifespan_creates_tables_and_sweeps(engine):
    settings = Settings(jwt_secret="s", expiry_sweep_interval=0)
    app = create_app(settings, database=Database(settings, engine=engine))
    with TestClient(app) as client:
        assert client.get("/api/health").status_code == 200
        assert app.state.sweeper.running is False


def test_settings_from_env():
    env = {
        "DATABASE_URL": "sqlite:///tmp/test.db",
        "JWT_SECRET": "env-secret",
        "APP_ENV": "production",
        "CORS_ORIGINS": "https://a.example,https://b.example",
        "EXPIRY_SWEEP_INTERVAL_SECONDS": "0",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env):
        settings = Settings.from_env()
    assert settings.database_url == "sqlite:///tmp/test.db"
    assert settings.jwt_secret == "env-secret"
    assert settings.is_production is True
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.expiry_sweep_interval == 0
    assert settings.log_level == "DEBUG"


def test_lifespan_expires_stale_tasks_on_startup(engine, session, owner):
    task = Task(
        owner_id=owner.id,
        priority=TaskPriority.low,
        deadline=dates.fixed_date(dates.today() - timedelta(days=2)),
        hours=1,
        details="overdue",
        status=TaskStatus.in_progress,
    )
    session.add(task)
    session.commit()

    settings = Settings(jwt_secret="s", expiry_sweep_interval=0)
    app = create_app(settings, database=Database(settings, engine=engine))
    with TestClient(app):
        pass

    session.expire_all()
    assert session.get(Task, task.id).status == TaskStatus.expired


def test_settings_from_env_strips_cors_origins():
    with patch.dict(os.environ, {"CORS_ORIGINS": " https://a.example , https://b.example,"}):
        settings = Settings.from_env()
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
