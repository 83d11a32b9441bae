"""Sync settings endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, status

from cptracker.core.cron import InvalidCronExpression
from cptracker.db.settings_repository import get_sync_settings, update_sync_settings
from cptracker.web.schemas import SyncSettingsResponse, SyncSettingsUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/sync", response_model=SyncSettingsResponse)
def read_sync_settings() -> SyncSettingsResponse:
    """Current schedule, created with defaults on first read."""
    return SyncSettingsResponse(**get_sync_settings().to_dict())


@router.put("/sync", response_model=SyncSettingsResponse)
def write_sync_settings(update: SyncSettingsUpdate) -> SyncSettingsResponse:
    """Change the cron expression and/or the enabled flag.

    A running scheduler picks the change up on its next settings poll.
    """
    try:
        settings = update_sync_settings(
            cron_expression=update.cron_expression,
            is_enabled=update.is_enabled,
        )
    except InvalidCronExpression as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SyncSettingsResponse(**settings.to_dict())
