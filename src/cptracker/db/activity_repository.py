"""Repository functions for synced activity and reminders.

Read access to contests, submissions and problems written by the
reconciler, plus the append-only reminders log.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog

from cptracker.db.database import get_db
from cptracker.utils.time_utils import to_iso, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class ProblemRecord:
    """Problem reference row."""

    problem_key: str
    name: str
    rating: int | None
    tags: list[str]
    contest_id: int | None
    problem_index: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "problem_key": self.problem_key,
            "name": self.name,
            "rating": self.rating,
            "tags": self.tags,
            "contest_id": self.contest_id,
            "problem_index": self.problem_index,
        }


@dataclass
class ContestRecord:
    """One contest participation of a student."""

    contest_id: int
    name: str
    start_time: str
    rank: int
    old_rating: int
    new_rating: int
    rating_change: int
    problems_solved: int
    problems_attempted: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "contest_id": self.contest_id,
            "name": self.name,
            "start_time": self.start_time,
            "rank": self.rank,
            "old_rating": self.old_rating,
            "new_rating": self.new_rating,
            "rating_change": self.rating_change,
            "problems_solved": self.problems_solved,
            "problems_attempted": self.problems_attempted,
        }


@dataclass
class SubmissionRecord:
    """One judged (or in-queue) submission of a student."""

    submission_id: int
    student_id: str
    problem_key: str
    contest_id: int | None
    verdict: str | None
    language: str
    submitted_at: str
    execution_time_ms: int
    memory_kb: float
    problem: ProblemRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "problem_key": self.problem_key,
            "contest_id": self.contest_id,
            "verdict": self.verdict,
            "language": self.language,
            "submitted_at": self.submitted_at,
            "execution_time_ms": self.execution_time_ms,
            "memory_kb": self.memory_kb,
            "problem": self.problem.to_dict() if self.problem else None,
        }


@dataclass
class ReminderRecord:
    """Reminder log entry."""

    id: int
    student_id: str
    type: str
    sent_at: str
    email_content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "type": self.type,
            "sent_at": self.sent_at,
            "email_content": self.email_content,
        }


@dataclass
class ActivityCounts:
    """Row counts owned by one student."""

    contests: int = 0
    submissions: int = 0
    reminders: int = 0


# =============================================================================
# READS
# =============================================================================


def list_contests(student_id: str) -> list[ContestRecord]:
    """Contests of a student, most recent first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM contests WHERE student_id = ? ORDER BY start_time DESC",
            (student_id,),
        ).fetchall()

    return [
        ContestRecord(
            contest_id=row["contest_id"],
            name=row["name"],
            start_time=row["start_time"],
            rank=row["rank"],
            old_rating=row["old_rating"],
            new_rating=row["new_rating"],
            rating_change=row["rating_change"],
            problems_solved=row["problems_solved"],
            problems_attempted=row["problems_attempted"],
        )
        for row in rows
    ]


def list_submissions(student_id: str) -> list[SubmissionRecord]:
    """Submissions of a student with their problem, most recent first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT s.*, p.name AS p_name, p.rating AS p_rating, p.tags AS p_tags,
                   p.contest_id AS p_contest_id, p.problem_index AS p_index,
                   p.created_at AS p_created_at
            FROM submissions s
            JOIN problems p ON p.problem_key = s.problem_key
            WHERE s.student_id = ?
            ORDER BY s.submitted_at DESC, s.submission_id DESC
            """,
            (student_id,),
        ).fetchall()

    return [
        SubmissionRecord(
            submission_id=row["submission_id"],
            student_id=row["student_id"],
            problem_key=row["problem_key"],
            contest_id=row["contest_id"],
            verdict=row["verdict"],
            language=row["language"],
            submitted_at=row["submitted_at"],
            execution_time_ms=row["execution_time_ms"],
            memory_kb=row["memory_kb"],
            problem=ProblemRecord(
                problem_key=row["problem_key"],
                name=row["p_name"],
                rating=row["p_rating"],
                tags=json.loads(row["p_tags"]) if row["p_tags"] else [],
                contest_id=row["p_contest_id"],
                problem_index=row["p_index"],
                created_at=row["p_created_at"],
            ),
        )
        for row in rows
    ]


def list_reminders(student_id: str) -> list[ReminderRecord]:
    """Reminders sent to a student, most recent first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM reminders WHERE student_id = ? ORDER BY sent_at DESC, id DESC",
            (student_id,),
        ).fetchall()

    return [
        ReminderRecord(
            id=row["id"],
            student_id=row["student_id"],
            type=row["type"],
            sent_at=row["sent_at"],
            email_content=row["email_content"],
        )
        for row in rows
    ]


def count_activity(student_id: str) -> ActivityCounts:
    """Count contests, submissions and reminders owned by a student."""
    with get_db() as conn:
        contests = conn.execute(
            "SELECT COUNT(*) FROM contests WHERE student_id = ?", (student_id,)
        ).fetchone()[0]
        submissions = conn.execute(
            "SELECT COUNT(*) FROM submissions WHERE student_id = ?", (student_id,)
        ).fetchone()[0]
        reminders = conn.execute(
            "SELECT COUNT(*) FROM reminders WHERE student_id = ?", (student_id,)
        ).fetchone()[0]

    return ActivityCounts(contests=contests, submissions=submissions, reminders=reminders)


# =============================================================================
# WRITES
# =============================================================================


def insert_reminder(
    student_id: str,
    reminder_type: str,
    email_content: str,
    sent_at: str | None = None,
) -> ReminderRecord:
    """Append a reminder log entry.

    Args:
        student_id: Recipient student
        reminder_type: Reminder kind, e.g. "inactivity"
        email_content: Rendered message body
        sent_at: ISO timestamp; defaults to now

    Returns:
        The stored ReminderRecord
    """
    sent_at = sent_at or to_iso(utc_now())

    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO reminders (student_id, type, sent_at, email_content)
            VALUES (?, ?, ?, ?)
            """,
            (student_id, reminder_type, sent_at, email_content),
        )
        reminder_id = cursor.lastrowid

    logger.debug("reminders.inserted", student_id=student_id, type=reminder_type)
    return ReminderRecord(
        id=reminder_id,
        student_id=student_id,
        type=reminder_type,
        sent_at=sent_at,
        email_content=email_content,
    )
