"""Reconciliation engine.

Merges freshly fetched judge data for one student into local storage.

Two steps:
- plan_reconciliation(): pure, builds the deterministic set of writes
- apply_plan(): executes the writes in one SQLite transaction

Write policy per table:
- students: rating snapshot and last_data_sync always overwritten
- problems: insert-if-absent, existing rows are never modified
- contests: every row of the student deleted and recreated
- submissions: upserted by judge submission id, never bulk deleted
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from cptracker.db.database import get_db
from cptracker.db.students_repository import StudentRecord
from cptracker.judge.models import RatingChange, RemoteProfile, RemoteSubmission
from cptracker.utils.time_utils import from_epoch, to_iso, utc_now

logger = structlog.get_logger(__name__)


class PersistenceFailure(Exception):
    """The reconciliation transaction was rolled back."""

    def __init__(self, student_id: str, cause: Exception):
        self.student_id = student_id
        self.cause = cause
        super().__init__(f"Failed to persist sync for student {student_id}: {cause}")


# =============================================================================
# PLAN
# =============================================================================


@dataclass(frozen=True)
class ProblemRow:
    problem_key: str
    name: str
    rating: int | None
    tags: str
    contest_id: int | None
    problem_index: str


@dataclass(frozen=True)
class ContestRow:
    contest_id: int
    name: str
    start_time: str
    rank: int
    old_rating: int
    new_rating: int
    rating_change: int
    problems_solved: int
    problems_attempted: int


@dataclass(frozen=True)
class SubmissionRow:
    submission_id: int
    problem_key: str
    contest_id: int | None
    verdict: str | None
    language: str
    submitted_at: str
    execution_time_ms: int
    memory_kb: float


@dataclass
class ReconciliationPlan:
    """All writes needed to bring one student in sync."""

    student_id: str
    current_rating: int
    max_rating: int
    synced_at: str
    problems: list[ProblemRow] = field(default_factory=list)
    contests: list[ContestRow] = field(default_factory=list)
    submissions: list[SubmissionRow] = field(default_factory=list)


@dataclass
class ReconcileSummary:
    """What a committed reconciliation touched."""

    student_id: str
    contests_processed: int
    submissions_processed: int
    problems_seen: int

    def to_dict(self) -> dict[str, int | str]:
        return {
            "student_id": self.student_id,
            "contests_processed": self.contests_processed,
            "submissions_processed": self.submissions_processed,
            "problems_seen": self.problems_seen,
        }


def _contest_counts(
    submissions: list[RemoteSubmission],
) -> dict[int, tuple[int, int]]:
    """Map contest id -> (submissions made, accepted submissions)."""
    counts: dict[int, tuple[int, int]] = {}
    for sub in submissions:
        if sub.contest_id is None:
            continue
        attempted, solved = counts.get(sub.contest_id, (0, 0))
        counts[sub.contest_id] = (attempted + 1, solved + int(sub.is_accepted))
    return counts


def plan_reconciliation(
    student: StudentRecord,
    profile: RemoteProfile,
    submissions: list[RemoteSubmission],
    rating_history: list[RatingChange],
    now: datetime | None = None,
) -> ReconciliationPlan:
    """Compute the writes for one student. Performs no I/O.

    Args:
        student: Stored student being synced
        profile: Fetched rating snapshot
        submissions: Fetched submission list
        rating_history: Fetched rated contest participations
        now: Sync timestamp, defaults to current UTC time

    Returns:
        ReconciliationPlan with one entry per problem, contest and submission
    """
    plan = ReconciliationPlan(
        student_id=student.student_id,
        current_rating=profile.rating,
        max_rating=profile.max_rating,
        synced_at=to_iso(now or utc_now()),
    )

    # First occurrence in the payload wins, matching the table's policy
    problems: dict[str, ProblemRow] = {}
    for sub in submissions:
        problem = sub.problem
        if problem.key in problems:
            continue
        problems[problem.key] = ProblemRow(
            problem_key=problem.key,
            name=problem.name,
            rating=problem.rating,
            tags=json.dumps(problem.tags),
            contest_id=problem.contest_id,
            problem_index=problem.index,
        )
    plan.problems = list(problems.values())

    counts = _contest_counts(submissions)
    for entry in rating_history:
        attempted, solved = counts.get(entry.contest_id, (0, 0))
        plan.contests.append(
            ContestRow(
                contest_id=entry.contest_id,
                name=entry.contest_name,
                start_time=to_iso(from_epoch(entry.rating_update_time_seconds)),
                rank=entry.rank,
                old_rating=entry.old_rating,
                new_rating=entry.new_rating,
                rating_change=entry.rating_change,
                problems_solved=solved,
                problems_attempted=attempted,
            )
        )

    seen_ids: set[int] = set()
    for sub in submissions:
        if sub.id in seen_ids:
            continue
        seen_ids.add(sub.id)
        plan.submissions.append(
            SubmissionRow(
                submission_id=sub.id,
                problem_key=sub.problem.key,
                contest_id=sub.contest_id,
                verdict=sub.verdict,
                language=sub.programming_language,
                submitted_at=to_iso(from_epoch(sub.creation_time_seconds)),
                execution_time_ms=sub.time_consumed_millis,
                memory_kb=sub.memory_consumed_bytes / 1024,
            )
        )

    return plan


# =============================================================================
# APPLY
# =============================================================================


def _write_plan(conn: sqlite3.Connection, plan: ReconciliationPlan) -> None:
    cursor = conn.execute(
        """
        UPDATE students
        SET current_rating = ?, max_rating = ?, last_data_sync = ?, updated_at = ?
        WHERE student_id = ?
        """,
        (
            plan.current_rating,
            plan.max_rating,
            plan.synced_at,
            plan.synced_at,
            plan.student_id,
        ),
    )
    if cursor.rowcount == 0:
        raise sqlite3.IntegrityError(f"student {plan.student_id} no longer exists")

    conn.executemany(
        """
        INSERT INTO problems (
            problem_key, name, rating, tags, contest_id, problem_index, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(problem_key) DO NOTHING
        """,
        [
            (
                p.problem_key,
                p.name,
                p.rating,
                p.tags,
                p.contest_id,
                p.problem_index,
                plan.synced_at,
            )
            for p in plan.problems
        ],
    )

    conn.execute("DELETE FROM contests WHERE student_id = ?", (plan.student_id,))
    conn.executemany(
        """
        INSERT INTO contests (
            student_id, contest_id, name, start_time, rank,
            old_rating, new_rating, rating_change,
            problems_solved, problems_attempted
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (
                plan.student_id,
                c.contest_id,
                c.name,
                c.start_time,
                c.rank,
                c.old_rating,
                c.new_rating,
                c.rating_change,
                c.problems_solved,
                c.problems_attempted,
            )
            for c in plan.contests
        ],
    )

    conn.executemany(
        """
        INSERT INTO submissions (
            submission_id, student_id, problem_key, contest_id, verdict,
            language, submitted_at, execution_time_ms, memory_kb
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(submission_id) DO UPDATE SET
            student_id = excluded.student_id,
            problem_key = excluded.problem_key,
            contest_id = excluded.contest_id,
            verdict = excluded.verdict,
            language = excluded.language,
            submitted_at = excluded.submitted_at,
            execution_time_ms = excluded.execution_time_ms,
            memory_kb = excluded.memory_kb
        """,
        [
            (
                s.submission_id,
                plan.student_id,
                s.problem_key,
                s.contest_id,
                s.verdict,
                s.language,
                s.submitted_at,
                s.execution_time_ms,
                s.memory_kb,
            )
            for s in plan.submissions
        ],
    )


def apply_plan(plan: ReconciliationPlan) -> ReconcileSummary:
    """Execute a plan atomically.

    Raises:
        PersistenceFailure: If any write fails; nothing is kept in that case
    """
    try:
        with get_db() as conn:
            _write_plan(conn, plan)
    except sqlite3.Error as e:
        logger.error(
            "reconcile.transaction_failed",
            student_id=plan.student_id,
            error=str(e),
        )
        raise PersistenceFailure(plan.student_id, e) from e

    summary = ReconcileSummary(
        student_id=plan.student_id,
        contests_processed=len(plan.contests),
        submissions_processed=len(plan.submissions),
        problems_seen=len(plan.problems),
    )
    logger.info("reconcile.committed", **summary.to_dict())
    return summary


def reconcile_student(
    student: StudentRecord,
    profile: RemoteProfile,
    submissions: list[RemoteSubmission],
    rating_history: list[RatingChange],
    now: datetime | None = None,
) -> ReconcileSummary:
    """Plan and apply a sync for one student.

    Raises:
        PersistenceFailure: If the transaction is rolled back
    """
    plan = plan_reconciliation(student, profile, submissions, rating_history, now)
    return apply_plan(plan)
