"""Inactivity detection.

A student is active when at least one submission falls inside the
trailing window [now - window, now]. Both ends are inclusive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Literal

from cptracker.judge.models import RemoteSubmission
from cptracker.utils.time_utils import from_epoch, to_iso

INACTIVITY_WINDOW = timedelta(days=7)

ActivityStatus = Literal["active", "inactive"]


@dataclass(frozen=True)
class InactivityResult:
    """Activity signal for one student."""

    status: ActivityStatus
    recent_submissions: int
    last_submission_at: datetime | None = None
    window_days: int = 7

    @property
    def is_inactive(self) -> bool:
        return self.status == "inactive"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "recent_submissions": self.recent_submissions,
            "last_submission_at": to_iso(self.last_submission_at),
            "window_days": self.window_days,
        }


def detect_inactivity(
    submissions: Iterable[RemoteSubmission],
    now: datetime,
    window: timedelta = INACTIVITY_WINDOW,
) -> InactivityResult:
    """Classify a student from their submission timestamps.

    Args:
        submissions: Full fetched submission list
        now: Reference time (aware UTC)
        window: Trailing window, 7 days by default

    Returns:
        InactivityResult with status and count of recent submissions
    """
    window_start = now - window
    recent = 0
    last: datetime | None = None

    for sub in submissions:
        submitted_at = from_epoch(sub.creation_time_seconds)
        if last is None or submitted_at > last:
            last = submitted_at
        if window_start <= submitted_at <= now:
            recent += 1

    return InactivityResult(
        status="active" if recent else "inactive",
        recent_submissions=recent,
        last_submission_at=last,
        window_days=window.days,
    )
