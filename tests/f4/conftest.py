"""Fixtures for F4 tests - orchestration, inactivity and notifications."""

from datetime import datetime, timezone

import pytest

from cptracker.core.notifier import Notifier
from cptracker.core.sync_orchestrator import SyncOrchestrator
from cptracker.db.database import get_db
from cptracker.judge.client import JudgeClient
from cptracker.mail.sender import LoggingEmailSender, SendResult
from cptracker.utils.time_utils import to_iso

NOW = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)
NOW_TS = int(NOW.timestamp())


class RejectingEmailSender:
    """Email provider that refuses every message."""

    def __init__(self, error: str = "Domain not verified"):
        self.error = error
        self.attempts = 0

    def send(self, sender, recipient, subject, text, html) -> SendResult:
        self.attempts += 1
        return SendResult(success=False, error=self.error)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def outbox():
    return LoggingEmailSender()


@pytest.fixture
def build_orchestrator(codeforces_api, outbox):
    """Orchestrator on the fake judge with a fixed clock."""

    def _build(sender=None, **kwargs):
        notifier = Notifier(
            sender=sender or outbox,
            from_address="tracker@example.com",
            clock=lambda: NOW,
        )
        return SyncOrchestrator(
            judge_client=JudgeClient(client=codeforces_api.client()),
            notifier=notifier,
            clock=lambda: NOW,
            **kwargs,
        )

    return _build


@pytest.fixture
def set_last_sync():
    """Stamp a student's last_data_sync directly."""

    def _set(student_id: str, moment: datetime) -> None:
        with get_db() as conn:
            conn.execute(
                "UPDATE students SET last_data_sync = ? WHERE student_id = ?",
                (to_iso(moment), student_id),
            )

    return _set


@pytest.fixture
def now_ts():
    return NOW_TS


@pytest.fixture
def rejecting_sender():
    return RejectingEmailSender()
