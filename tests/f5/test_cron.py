"""Tests for cron expression validation and matching (F5)."""

from datetime import datetime, timezone

import pytest

from cptracker.core.cron import (
    CronSchedule,
    InvalidCronExpression,
    is_valid_cron_expression,
    validate_cron_expression,
)


def _at(year, month, day, hour, minute):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class TestValidation:
    """Tests for the accepted expression subset."""

    @pytest.mark.parametrize(
        "expression",
        [
            "0 2 * * *",
            "0 */6 * * *",
            "*/15 * * * *",
            "30 1 1-15 * 1",
            "0 0,12 * * 0,6",
            "59 23 31 12 6",
            "0 0 1 1 0",
        ],
    )
    def test_valid(self, expression):
        """Supported forms pass."""
        assert is_valid_cron_expression(expression)
        assert validate_cron_expression(expression) == expression

    @pytest.mark.parametrize(
        "expression",
        [
            "60 2 * * *",
            "0 24 * * *",
            "0 2 0 * *",
            "0 2 32 * *",
            "0 2 * 13 *",
            "0 2 * * 7",
            "0 2 * *",
            "0 2 * * * *",
            "0  2 * * *",
            "",
            "a 2 * * *",
            "0 */0 * * *",
            "0 1/2 * * *",
            "0 5-2 * * *",
            "0 -1 * * *",
            "0 1-3,5 * * *",
            "² 2 * * *",
            "0 2 * * ١",
            "0 */² * * *",
        ],
    )
    def test_invalid(self, expression):
        """Out-of-range values, wrong arity and unsupported forms fail."""
        assert not is_valid_cron_expression(expression)
        with pytest.raises(InvalidCronExpression):
            validate_cron_expression(expression)

    def test_error_names_field(self):
        """The error message points at the offending field."""
        with pytest.raises(InvalidCronExpression) as exc:
            validate_cron_expression("60 2 * * *")
        assert "minute" in str(exc.value)
        assert exc.value.expression == "60 2 * * *"

    def test_is_value_error(self):
        """Callers can catch it as ValueError."""
        assert issubclass(InvalidCronExpression, ValueError)


class TestMatches:
    """Tests for CronSchedule.matches."""

    def test_daily(self):
        """'0 2 * * *' fires at 02:00 only."""
        schedule = CronSchedule.parse("0 2 * * *")
        assert schedule.matches(_at(2024, 5, 1, 2, 0))
        assert not schedule.matches(_at(2024, 5, 1, 2, 1))
        assert not schedule.matches(_at(2024, 5, 1, 3, 0))

    def test_step(self):
        """'0 */6 * * *' fires every six hours."""
        schedule = CronSchedule.parse("0 */6 * * *")
        hits = [h for h in range(24) if schedule.matches(_at(2024, 5, 1, h, 0))]
        assert hits == [0, 6, 12, 18]

    def test_weekday_sunday_is_zero(self):
        """Weekday 0 is Sunday."""
        schedule = CronSchedule.parse("0 9 * * 0")
        assert schedule.matches(_at(2024, 5, 5, 9, 0))  # Sunday
        assert not schedule.matches(_at(2024, 5, 6, 9, 0))  # Monday

    def test_day_or_weekday(self):
        """When both day fields are restricted either may match."""
        schedule = CronSchedule.parse("0 9 1 * 1")
        assert schedule.matches(_at(2024, 5, 1, 9, 0))  # 1st, Wednesday
        assert schedule.matches(_at(2024, 5, 6, 9, 0))  # Monday
        assert not schedule.matches(_at(2024, 5, 7, 9, 0))

    def test_month_range(self):
        """Month ranges are inclusive."""
        schedule = CronSchedule.parse("0 0 1 6-8 *")
        assert schedule.matches(_at(2024, 7, 1, 0, 0))
        assert not schedule.matches(_at(2024, 9, 1, 0, 0))
