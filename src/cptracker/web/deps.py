"""Request-scoped dependencies shared by the routers."""

from fastapi import Request

from cptracker.config.app_config import AppConfig
from cptracker.core.sync_orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_cron_secret(request: Request) -> str | None:
    return request.app.state.cron_secret
