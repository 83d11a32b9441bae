"""Sync orchestrator.

Drives the per-student pipeline:

    skip check -> judge fetch -> reconcile -> inactivity -> notify

Every stage failure is caught per student and turned into a result
entry, so one bad handle or transaction never aborts the batch.
Batches are serialized with a run-in-progress guard.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Literal

import structlog

from cptracker.core.inactivity import INACTIVITY_WINDOW, InactivityResult, detect_inactivity
from cptracker.core.notifier import NotificationFailure, Notifier, ReminderNotRecorded
from cptracker.core.reconciler import PersistenceFailure, ReconcileSummary, reconcile_student
from cptracker.db.settings_repository import record_sync_run
from cptracker.db.students_repository import (
    StudentRecord,
    get_student_by_id,
    list_students,
)
from cptracker.judge.client import JudgeClient, JudgeError
from cptracker.judge.models import RemoteSubmission
from cptracker.utils.time_utils import to_iso, utc_now

logger = structlog.get_logger(__name__)

RESYNC_AFTER = timedelta(hours=24)
NEXT_SYNC_DELAY = timedelta(hours=24)

SyncStatus = Literal["success", "skipped", "failed"]
SyncStage = Literal["fetch", "reconcile", "unexpected"]


class StudentNotFound(Exception):
    """Raised when an on-demand sync names an unknown student."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student '{student_id}' not found")


class BatchAlreadyRunning(Exception):
    """Raised when a batch starts while another one is in progress."""

    pass


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class StudentSyncResult:
    """Outcome of syncing one student."""

    student_id: str
    student_name: str
    status: SyncStatus
    reason: str | None = None
    error: str | None = None
    stage: SyncStage | None = None
    contests_processed: int = 0
    submissions_processed: int = 0
    # Fetched list, kept for the inactivity check; never serialized
    submissions: list[RemoteSubmission] = field(default_factory=list, repr=False)

    @property
    def success(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "status": self.status,
            "success": self.success,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
            data["stage"] = self.stage
        if self.status == "success":
            data["contests_processed"] = self.contests_processed
            data["submissions_processed"] = self.submissions_processed
        return data


@dataclass
class InactivityOutcome:
    student_id: str
    student_name: str
    result: InactivityResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            **self.result.to_dict(),
        }


@dataclass
class EmailOutcome:
    student_id: str
    student_name: str
    status: Literal["sent", "failed", "skipped"]
    type: str = "inactivity"
    error: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "status": self.status,
            "type": self.type,
        }
        if self.error:
            data["error"] = self.error
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class BatchResult:
    """Aggregated outcome of one batch pass."""

    started_at: datetime
    finished_at: datetime | None = None
    sync_results: list[StudentSyncResult] = field(default_factory=list)
    inactivity_results: list[InactivityOutcome] = field(default_factory=list)
    email_results: list[EmailOutcome] = field(default_factory=list)

    def count(self, status: SyncStatus) -> int:
        return sum(1 for r in self.sync_results if r.status == status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": to_iso(self.started_at),
            "finished_at": to_iso(self.finished_at),
            "sync_results": [r.to_dict() for r in self.sync_results],
            "inactivity_results": [r.to_dict() for r in self.inactivity_results],
            "email_results": [r.to_dict() for r in self.email_results],
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class SyncOrchestrator:
    """Run student syncs one at a time."""

    def __init__(
        self,
        judge_client: JudgeClient,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
        reconcile: Callable[..., ReconcileSummary] = reconcile_student,
        detector: Callable[..., InactivityResult] = detect_inactivity,
        resync_after: timedelta = RESYNC_AFTER,
        inactivity_window: timedelta = INACTIVITY_WINDOW,
    ):
        self.judge_client = judge_client
        self.notifier = notifier
        self.clock = clock
        self.reconcile = reconcile
        self.detector = detector
        self.resync_after = resync_after
        self.inactivity_window = inactivity_window
        self._batch_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._batch_lock.locked()

    # -------------------------------------------------------------------------
    # Per-student sync
    # -------------------------------------------------------------------------

    def _is_recently_synced(self, student: StudentRecord, now: datetime) -> bool:
        if student.last_data_sync is None:
            return False
        return now - student.last_data_sync < self.resync_after

    def _sync_one(self, student: StudentRecord, force: bool) -> StudentSyncResult:
        """Skip check, fetch and reconcile one student. Never raises."""
        log = logger.bind(student_id=student.student_id, handle=student.handle)
        now = self.clock()

        if not force and self._is_recently_synced(student, now):
            log.info("sync.student_skipped", last_data_sync=to_iso(student.last_data_sync))
            return StudentSyncResult(
                student_id=student.student_id,
                student_name=student.name,
                status="skipped",
                reason="Recently synced",
            )

        stage: SyncStage = "fetch"
        try:
            fetch = self.judge_client.fetch_all(student.handle)
            if not fetch.ok:
                log.warning(
                    "sync.student_failed",
                    stage=stage,
                    failed_calls=list(fetch.errors),
                    error=fetch.error_message(),
                )
                return StudentSyncResult(
                    student_id=student.student_id,
                    student_name=student.name,
                    status="failed",
                    stage=stage,
                    error=fetch.error_message(),
                )

            stage = "reconcile"
            summary = self.reconcile(
                student,
                fetch.profile,
                fetch.submissions,
                fetch.rating_history,
                now,
            )
        except (JudgeError, PersistenceFailure) as e:
            log.warning("sync.student_failed", stage=stage, error=str(e))
            return StudentSyncResult(
                student_id=student.student_id,
                student_name=student.name,
                status="failed",
                stage=stage,
                error=str(e),
            )
        except Exception as e:
            log.exception("sync.student_crashed", stage=stage)
            return StudentSyncResult(
                student_id=student.student_id,
                student_name=student.name,
                status="failed",
                stage="unexpected",
                error=str(e) or type(e).__name__,
            )

        log.info(
            "sync.student_synced",
            contests=summary.contests_processed,
            submissions=summary.submissions_processed,
        )
        return StudentSyncResult(
            student_id=student.student_id,
            student_name=student.name,
            status="success",
            contests_processed=summary.contests_processed,
            submissions_processed=summary.submissions_processed,
            submissions=list(fetch.submissions or []),
        )

    def sync_student(self, student_id: str, force: bool = False) -> StudentSyncResult:
        """On-demand sync of one student, without inactivity checks.

        Raises:
            StudentNotFound: If the id is unknown
        """
        student = get_student_by_id(student_id)
        if student is None:
            raise StudentNotFound(student_id)
        return self._sync_one(student, force)

    def sync_all(self, force: bool = False) -> list[StudentSyncResult]:
        """On-demand sync of every active student, without inactivity checks."""
        return [self._sync_one(s, force) for s in list_students(active_only=True)]

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def _check_inactivity(
        self,
        student: StudentRecord,
        sync_result: StudentSyncResult,
        batch: BatchResult,
    ) -> None:
        result = self.detector(sync_result.submissions, self.clock(), self.inactivity_window)
        batch.inactivity_results.append(
            InactivityOutcome(student.student_id, student.name, result)
        )
        if not result.is_inactive:
            return

        if not student.email_reminders_enabled:
            batch.email_results.append(
                EmailOutcome(
                    student.student_id,
                    student.name,
                    status="skipped",
                    reason="Email reminders disabled",
                )
            )
            return

        try:
            # Reminder content shows the freshly synced ratings
            fresh = get_student_by_id(student.student_id) or student
            self.notifier.send_inactivity_reminder(fresh)
        except NotificationFailure as e:
            batch.email_results.append(
                EmailOutcome(student.student_id, student.name, status="failed", error=e.error)
            )
            return
        except ReminderNotRecorded as e:
            batch.email_results.append(
                EmailOutcome(
                    student.student_id,
                    student.name,
                    status="sent",
                    error=e.error,
                    reason="Reminder not recorded",
                )
            )
            return
        except Exception as e:
            logger.exception("sync.notify_crashed", student_id=student.student_id)
            batch.email_results.append(
                EmailOutcome(
                    student.student_id,
                    student.name,
                    status="failed",
                    error=str(e) or type(e).__name__,
                )
            )
            return

        batch.email_results.append(
            EmailOutcome(student.student_id, student.name, status="sent")
        )

    def run_batch(self, force: bool = False) -> BatchResult:
        """Sync every active student, then check inactivity and notify.

        Raises:
            BatchAlreadyRunning: If another batch holds the guard
        """
        if not self._batch_lock.acquire(blocking=False):
            logger.warning("sync.batch_rejected", reason="already running")
            raise BatchAlreadyRunning("A sync batch is already in progress")

        try:
            batch = BatchResult(started_at=self.clock())
            students = list_students(active_only=True)
            logger.info("sync.batch_started", students=len(students), force=force)

            for student in students:
                sync_result = self._sync_one(student, force)
                batch.sync_results.append(sync_result)
                if sync_result.status == "success":
                    self._check_inactivity(student, sync_result, batch)

            finished = self.clock()
            batch.finished_at = finished
            record_sync_run(last_sync=finished, next_sync=finished + NEXT_SYNC_DELAY)

            logger.info(
                "sync.batch_finished",
                synced=batch.count("success"),
                skipped=batch.count("skipped"),
                failed=batch.count("failed"),
                emails_sent=sum(1 for e in batch.email_results if e.status == "sent"),
            )
            return batch
        finally:
            self._batch_lock.release()
