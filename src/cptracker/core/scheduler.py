"""Cron-driven sync scheduler.

SyncScheduler owns the live schedule: the active cron expression, the
enabled flag and the last minute it fired. Two recurring concerns run
in its loop:

- settings polling: reconcile(settings) is called every poll interval
  and is a no-op when nothing changed
- cron ticking: once per minute the active schedule is checked and the
  job is dispatched on a worker thread

A tick never starts a job while the previous one is still running.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from cptracker.core.cron import CronSchedule, InvalidCronExpression
from cptracker.db.settings_repository import SyncSettings
from cptracker.utils.time_utils import utc_now

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 60.0


@dataclass(frozen=True)
class ScheduleState:
    """Snapshot of what the scheduler is currently applying."""

    expression: str | None
    is_enabled: bool


class SyncScheduler:
    """Explicitly owned replacement for process-wide cron state."""

    def __init__(
        self,
        job: Callable[[], Any],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.job = job
        self.clock = clock
        self._schedule: CronSchedule | None = None
        self._is_enabled = False
        self._last_fired_minute: datetime | None = None
        self._worker: threading.Thread | None = None
        self._stop = threading.Event()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ScheduleState:
        return ScheduleState(
            expression=self._schedule.expression if self._schedule else None,
            is_enabled=self._is_enabled,
        )

    @property
    def is_scheduled(self) -> bool:
        return self._schedule is not None

    def reconcile(self, settings: SyncSettings | None) -> bool:
        """Apply settings to the live schedule.

        Args:
            settings: Current settings, None if they could not be read

        Returns:
            True if the live schedule changed, False on the no-op path
        """
        if settings is None or not settings.is_enabled:
            changed = self._schedule is not None or self._is_enabled
            self._schedule = None
            self._is_enabled = False
            if changed:
                logger.info("scheduler.stopped", reason="disabled in settings")
            return changed

        if (
            self._schedule is not None
            and self._schedule.expression == settings.cron_expression
            and self._is_enabled
        ):
            return False

        try:
            schedule = CronSchedule.parse(settings.cron_expression)
        except InvalidCronExpression as e:
            # Keep whatever was running before
            logger.error("scheduler.invalid_expression", error=str(e))
            return False

        self._schedule = schedule
        self._is_enabled = True
        self._last_fired_minute = None
        logger.info("scheduler.scheduled", cron_expression=schedule.expression)
        return True

    # -------------------------------------------------------------------------
    # Ticking
    # -------------------------------------------------------------------------

    @property
    def job_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _run_job(self) -> None:
        started = self.clock()
        try:
            self.job()
        except Exception:
            logger.exception("scheduler.job_failed")
            return
        logger.info("scheduler.job_finished", started_at=started.isoformat())

    def join(self, timeout: float | None = None) -> None:
        """Wait for the current job, if any."""
        if self._worker is not None:
            self._worker.join(timeout)

    def tick(self, now: datetime | None = None) -> bool:
        """Fire the job if the schedule matches the current minute.

        Returns:
            True if a job was dispatched
        """
        if self._schedule is None:
            return False

        now = now or self.clock()
        minute = now.replace(second=0, microsecond=0)
        if minute == self._last_fired_minute or not self._schedule.matches(minute):
            return False

        if self.job_running:
            logger.warning("scheduler.tick_skipped", reason="previous job still running")
            return False

        self._last_fired_minute = minute
        logger.info("scheduler.triggered", at=minute.isoformat())
        self._worker = threading.Thread(target=self._run_job, name="sync-job", daemon=True)
        self._worker.start()
        return True

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def stop(self) -> None:
        self._stop.set()

    def run_forever(
        self,
        load_settings: Callable[[], SyncSettings | None],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Poll settings and tick until stop() is called."""
        next_poll = self.clock()
        logger.info("scheduler.started", poll_interval=poll_interval)

        while not self._stop.is_set():
            now = self.clock()

            if now >= next_poll:
                try:
                    self.reconcile(load_settings())
                except Exception:
                    logger.exception("scheduler.settings_poll_failed")
                next_poll = now + timedelta(seconds=poll_interval)

            self.tick(now)

            next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
            wake_at = min(next_minute, next_poll)
            self._stop.wait(max((wake_at - self.clock()).total_seconds(), 0.5))

        logger.info("scheduler.stopped", reason="stop requested")
