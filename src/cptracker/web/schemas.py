"""Pydantic schemas for Web API.

Serialization models for students, sync runs and sync settings.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class StudentCreate(BaseModel):
    """Request body for registering a student."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=200)
    handle: str = Field(..., min_length=1, max_length=24)
    phone_number: str | None = Field(default=None, max_length=40)


class StudentUpdate(BaseModel):
    """Request body for a partial profile edit."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=200)
    handle: str | None = Field(default=None, max_length=24)
    phone_number: str | None = Field(default=None, max_length=40)
    is_active: bool | None = None
    email_reminders_enabled: bool | None = None


class StudentResponse(BaseModel):
    """Response for a student."""

    student_id: str
    name: str
    email: str
    phone_number: str | None = None
    handle: str
    current_rating: int
    max_rating: int
    is_active: bool
    email_reminders_enabled: bool
    last_data_sync: str | None = None
    created_at: str
    updated_at: str
    reminders_count: int = 0


class StudentListResponse(BaseModel):
    """Response for list of students."""

    students: list[StudentResponse]
    count: int


class StudentDetailResponse(StudentResponse):
    """Student with synced activity."""

    contests: list[dict[str, Any]] = Field(default_factory=list)
    submissions: list[dict[str, Any]] = Field(default_factory=list)
    reminders: list[dict[str, Any]] = Field(default_factory=list)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# =============================================================================
# SYNC SCHEMAS
# =============================================================================


class SyncRequest(BaseModel):
    """Request body for on-demand sync."""

    student_id: str | None = None
    force_sync: bool = False


class StudentSyncResponse(BaseModel):
    """Outcome of syncing one student."""

    student_id: str
    student_name: str
    status: str
    success: bool
    reason: str | None = None
    error: str | None = None
    stage: str | None = None
    contests_processed: int | None = None
    submissions_processed: int | None = None


class SyncAllResponse(BaseModel):
    results: list[StudentSyncResponse]


class BatchResults(BaseModel):
    sync_results: list[dict[str, Any]]
    inactivity_results: list[dict[str, Any]]
    email_results: list[dict[str, Any]]


class CronSyncResponse(BaseModel):
    """Response of the cron trigger."""

    success: bool
    message: str
    timestamp: str
    results: BatchResults


# =============================================================================
# SETTINGS SCHEMAS
# =============================================================================


class SyncSettingsResponse(BaseModel):
    id: str
    cron_expression: str
    is_enabled: bool
    last_sync: str | None = None
    next_sync: str | None = None
    updated_at: str


class SyncSettingsUpdate(BaseModel):
    cron_expression: str | None = None
    is_enabled: bool | None = None


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
