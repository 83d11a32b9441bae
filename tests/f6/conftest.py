"""Fixtures for F6 tests - Web API and CLI."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from cptracker.config.app_config import AppConfig
from cptracker.core.notifier import Notifier
from cptracker.core.sync_orchestrator import SyncOrchestrator
from cptracker.judge.client import JudgeClient
from cptracker.mail.sender import LoggingEmailSender
from cptracker.web.api import create_app

CRON_SECRET = "test-secret"
NOW = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)


@pytest.fixture
def outbox():
    return LoggingEmailSender()


@pytest.fixture
def orchestrator(codeforces_api, outbox):
    return SyncOrchestrator(
        judge_client=JudgeClient(client=codeforces_api.client()),
        notifier=Notifier(outbox, "tracker@example.com", clock=lambda: NOW),
        clock=lambda: NOW,
    )


@pytest.fixture
def app(tmp_path, orchestrator):
    """App on an isolated database with a known trigger secret."""
    return create_app(
        AppConfig(),
        orchestrator=orchestrator,
        cron_secret=CRON_SECRET,
        db_path=tmp_path / "api.db",
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def student(client):
    """A registered student, as returned by the API."""
    response = client.post(
        "/api/students",
        json={"name": "Ana", "email": "ana@example.com", "handle": "ana_cf"},
    )
    assert response.status_code == 201
    return response.json()
