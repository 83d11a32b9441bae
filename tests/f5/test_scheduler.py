"""Tests for the cron-driven scheduler (F5)."""

import threading
from datetime import datetime, timezone

import pytest

from cptracker.core.scheduler import SyncScheduler
from cptracker.db.settings_repository import SyncSettings


def _at(hour, minute, second=0):
    return datetime(2024, 5, 1, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def scheduler(calls):
    return SyncScheduler(job=lambda: calls.append("run"), clock=lambda: _at(2, 0))


class TestReconcile:
    """Tests for applying settings to the live schedule."""

    def test_enable(self, scheduler):
        """Enabled settings start a schedule."""
        assert scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *")) is True
        assert scheduler.is_scheduled
        assert scheduler.state.expression == "0 2 * * *"
        assert scheduler.state.is_enabled

    def test_unchanged_is_noop(self, scheduler):
        """Re-applying the same settings reports no change."""
        settings = SyncSettings(cron_expression="0 2 * * *")
        scheduler.reconcile(settings)
        assert scheduler.reconcile(settings) is False

    def test_expression_change(self, scheduler):
        """A new expression replaces the old schedule."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        assert scheduler.reconcile(SyncSettings(cron_expression="0 */6 * * *")) is True
        assert scheduler.state.expression == "0 */6 * * *"

    def test_disable(self, scheduler):
        """Disabled settings stop the schedule."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        assert scheduler.reconcile(SyncSettings(is_enabled=False)) is True
        assert not scheduler.is_scheduled
        assert scheduler.reconcile(SyncSettings(is_enabled=False)) is False

    def test_missing_settings_stop(self, scheduler):
        """Unreadable settings stop the schedule."""
        scheduler.reconcile(SyncSettings())
        scheduler.reconcile(None)
        assert not scheduler.is_scheduled

    def test_invalid_keeps_previous(self, scheduler):
        """A bad stored expression leaves the running schedule alone."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        assert scheduler.reconcile(SyncSettings(cron_expression="99 * * * *")) is False
        assert scheduler.state.expression == "0 2 * * *"


class TestTick:
    """Tests for firing jobs."""

    def test_fires_on_match(self, scheduler, calls):
        """A matching minute runs the job once."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        assert scheduler.tick(_at(2, 0, 5)) is True
        scheduler.join(timeout=5)
        assert calls == ["run"]

    def test_once_per_minute(self, scheduler, calls):
        """Repeated ticks within the minute do not refire."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        scheduler.tick(_at(2, 0, 1))
        scheduler.join(timeout=5)
        assert scheduler.tick(_at(2, 0, 40)) is False
        assert calls == ["run"]

    def test_no_match(self, scheduler, calls):
        """Non-matching minutes do nothing."""
        scheduler.reconcile(SyncSettings(cron_expression="0 2 * * *"))
        assert scheduler.tick(_at(3, 0)) is False
        assert calls == []

    def test_unscheduled(self, scheduler, calls):
        """Without a schedule nothing fires."""
        assert scheduler.tick(_at(2, 0)) is False

    def test_skips_while_running(self):
        """A tick never overlaps the previous job."""
        release = threading.Event()
        runs = []

        def slow_job():
            runs.append("run")
            release.wait(timeout=5)

        scheduler = SyncScheduler(job=slow_job, clock=lambda: _at(0, 0))
        scheduler.reconcile(SyncSettings(cron_expression="* * * * *"))
        try:
            assert scheduler.tick(_at(0, 0)) is True
            assert scheduler.job_running
            assert scheduler.tick(_at(0, 1)) is False
        finally:
            release.set()
            scheduler.join(timeout=5)
        assert runs == ["run"]

    def test_job_errors_are_contained(self):
        """A failing job does not break the scheduler."""

        def failing_job():
            raise RuntimeError("boom")

        scheduler = SyncScheduler(job=failing_job, clock=lambda: _at(0, 0))
        scheduler.reconcile(SyncSettings(cron_expression="* * * * *"))
        scheduler.tick(_at(0, 0))
        scheduler.join(timeout=5)
        assert not scheduler.job_running
        assert scheduler.tick(_at(0, 1)) is True
        scheduler.join(timeout=5)


class TestRunForever:
    """Tests for the polling loop."""

    def test_polls_settings_and_stops(self, calls):
        """The loop loads settings, fires and exits on stop()."""
        scheduler = SyncScheduler(job=lambda: calls.append("run"), clock=lambda: _at(2, 0))

        def load_settings():
            # Stop after the first pass
            scheduler.stop()
            return SyncSettings(cron_expression="0 2 * * *")

        scheduler.run_forever(load_settings, poll_interval=60)
        scheduler.join(timeout=5)

        assert scheduler.state.expression == "0 2 * * *"
        assert calls == ["run"]

    def test_settings_errors_are_contained(self):
        """A failing settings read keeps the loop alive."""
        scheduler = SyncScheduler(job=lambda: None, clock=lambda: _at(2, 0))

        def load_settings():
            scheduler.stop()
            raise RuntimeError("db locked")

        scheduler.run_forever(load_settings, poll_interval=60)
        assert not scheduler.is_scheduled
