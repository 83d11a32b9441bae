"""Wire the sync pipeline from configuration."""

from __future__ import annotations

from datetime import timedelta

import httpx
import structlog

from cptracker.config.app_config import AppConfig
from cptracker.core.notifier import Notifier
from cptracker.core.sync_orchestrator import SyncOrchestrator
from cptracker.judge.client import JudgeClient
from cptracker.mail.sender import EmailSender, build_email_sender

logger = structlog.get_logger(__name__)


def build_notifier(config: AppConfig, sender: EmailSender | None = None) -> Notifier:
    """Notifier using the configured email sender."""
    return Notifier(
        sender=sender or build_email_sender(config.email),
        from_address=config.email.get_from_address(),
        inactivity_days=config.sync.inactivity_days,
    )


def build_orchestrator(
    config: AppConfig,
    *,
    http_client: httpx.Client | None = None,
    sender: EmailSender | None = None,
) -> SyncOrchestrator:
    """Orchestrator with judge client and notifier built from config.

    Args:
        config: Loaded application config
        http_client: Pre-built HTTP client for the judge API (tests)
        sender: Email sender override (tests)
    """
    orchestrator = SyncOrchestrator(
        judge_client=JudgeClient(config.judge, client=http_client),
        notifier=build_notifier(config, sender),
        resync_after=timedelta(hours=config.sync.resync_after_hours),
        inactivity_window=timedelta(days=config.sync.inactivity_days),
    )
    logger.debug(
        "orchestrator.built",
        judge_url=config.judge.base_url,
        resync_after_hours=config.sync.resync_after_hours,
    )
    return orchestrator
