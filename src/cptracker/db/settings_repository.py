"""Repository functions for the sync_settings singleton.

The row is keyed by SETTINGS_ID and created lazily with defaults the
first time it is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from cptracker.core.cron import DEFAULT_CRON_EXPRESSION, validate_cron_expression
from cptracker.db.database import get_db
from cptracker.utils.time_utils import parse_iso, to_iso, utc_now

logger = structlog.get_logger(__name__)

SETTINGS_ID = "default"


@dataclass
class SyncSettings:
    """Process-wide sync schedule configuration."""

    cron_expression: str = DEFAULT_CRON_EXPRESSION
    is_enabled: bool = True
    last_sync: datetime | None = None
    next_sync: datetime | None = None
    updated_at: str = ""
    id: str = SETTINGS_ID

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "cron_expression": self.cron_expression,
            "is_enabled": self.is_enabled,
            "last_sync": to_iso(self.last_sync),
            "next_sync": to_iso(self.next_sync),
            "updated_at": self.updated_at,
        }


def get_sync_settings() -> SyncSettings:
    """Read the settings row, creating it with defaults if absent."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO sync_settings (id, cron_expression, is_enabled, updated_at)
            VALUES (?, ?, 1, ?)
            ON CONFLICT(id) DO NOTHING
            """,
            (SETTINGS_ID, DEFAULT_CRON_EXPRESSION, to_iso(utc_now())),
        )
        row = conn.execute(
            "SELECT * FROM sync_settings WHERE id = ?", (SETTINGS_ID,)
        ).fetchone()

    return _row_to_settings(row)


def update_sync_settings(
    cron_expression: str | None = None,
    is_enabled: bool | None = None,
) -> SyncSettings:
    """Update schedule fields.

    The expression is validated before anything is written.

    Args:
        cron_expression: New five-field expression, unchanged if None
        is_enabled: New enabled flag, unchanged if None

    Returns:
        The updated SyncSettings

    Raises:
        InvalidCronExpression: If cron_expression is invalid
    """
    if cron_expression is not None:
        validate_cron_expression(cron_expression)

    current = get_sync_settings()
    new_expression = cron_expression if cron_expression is not None else current.cron_expression
    new_enabled = is_enabled if is_enabled is not None else current.is_enabled

    with get_db() as conn:
        conn.execute(
            """
            UPDATE sync_settings
            SET cron_expression = ?, is_enabled = ?, updated_at = ?
            WHERE id = ?
            """,
            (new_expression, int(new_enabled), to_iso(utc_now()), SETTINGS_ID),
        )

    logger.info(
        "sync_settings.updated",
        cron_expression=new_expression,
        is_enabled=new_enabled,
    )
    return get_sync_settings()


def record_sync_run(last_sync: datetime, next_sync: datetime) -> SyncSettings:
    """Stamp the last and next batch times."""
    get_sync_settings()

    with get_db() as conn:
        conn.execute(
            """
            UPDATE sync_settings
            SET last_sync = ?, next_sync = ?, updated_at = ?
            WHERE id = ?
            """,
            (to_iso(last_sync), to_iso(next_sync), to_iso(utc_now()), SETTINGS_ID),
        )

    logger.debug("sync_settings.run_recorded", last_sync=to_iso(last_sync))
    return get_sync_settings()


def _row_to_settings(row) -> SyncSettings:
    """Convert database row to SyncSettings."""
    return SyncSettings(
        id=row["id"],
        cron_expression=row["cron_expression"],
        is_enabled=bool(row["is_enabled"]),
        last_sync=parse_iso(row["last_sync"]),
        next_sync=parse_iso(row["next_sync"]),
        updated_at=row["updated_at"],
    )
