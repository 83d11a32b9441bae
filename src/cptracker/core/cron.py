"""Cron expression validation and matching.

Supports the five-field subset accepted by the settings interface:

    minute hour day-of-month month weekday

Each field may be:
- "*"            any value
- "n"            a single value
- "a-b"          an inclusive range, a <= b
- "a,b,c"        a list of single values
- "*/n"          every n-th value starting at the field minimum, n >= 1

Weekday 0 is Sunday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# (name, min, max) per position
FIELD_SPECS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 6),
)

DEFAULT_CRON_EXPRESSION = "0 2 * * *"


class InvalidCronExpression(ValueError):
    """Raised when a cron expression fails validation."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


def _parse_int(token: str) -> int | None:
    if not (token.isascii() and token.isdecimal()):
        return None
    return int(token)


def _expand_field(part: str, name: str, low: int, high: int, expression: str) -> frozenset[int]:
    """Expand one field into the set of values it matches."""

    def fail(reason: str) -> InvalidCronExpression:
        return InvalidCronExpression(expression, f"{name} field '{part}' {reason}")

    if part == "*":
        return frozenset(range(low, high + 1))

    if "/" in part:
        base, _, step_token = part.partition("/")
        step = _parse_int(step_token)
        if base != "*":
            raise fail("only supports steps over '*'")
        if step is None or step < 1:
            raise fail("needs a positive step")
        return frozenset(range(low, high + 1, step))

    if "-" in part:
        start_token, _, end_token = part.partition("-")
        start, end = _parse_int(start_token), _parse_int(end_token)
        if start is None or end is None:
            raise fail("is not a numeric range")
        if start < low or end > high or start > end:
            raise fail(f"must be a range within {low}-{high}")
        return frozenset(range(start, end + 1))

    values = []
    for token in part.split(","):
        value = _parse_int(token)
        if value is None:
            raise fail("is not a number")
        if not low <= value <= high:
            raise fail(f"is out of range {low}-{high}")
        values.append(value)
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron expression."""

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronSchedule:
        """Parse and validate an expression.

        Raises:
            InvalidCronExpression: If the expression is malformed or out of range
        """
        if not isinstance(expression, str):
            raise InvalidCronExpression(str(expression), "must be a string")

        parts = expression.split(" ")
        if len(parts) != len(FIELD_SPECS):
            raise InvalidCronExpression(
                expression, f"expected 5 space-separated fields, got {len(parts)}"
            )

        expanded = [
            _expand_field(part, name, low, high, expression)
            for part, (name, low, high) in zip(parts, FIELD_SPECS)
        ]

        return cls(
            expression=expression,
            minutes=expanded[0],
            hours=expanded[1],
            days_of_month=expanded[2],
            months=expanded[3],
            weekdays=expanded[4],
            dom_restricted=parts[2] != "*",
            dow_restricted=parts[4] != "*",
        )

    def matches(self, moment: datetime) -> bool:
        """True if the schedule fires in the minute containing `moment`.

        Day-of-month and weekday follow classic cron: when both are
        restricted, either one matching is enough.
        """
        if moment.minute not in self.minutes or moment.hour not in self.hours:
            return False
        if moment.month not in self.months:
            return False

        cron_weekday = moment.isoweekday() % 7
        dom_ok = moment.day in self.days_of_month
        dow_ok = cron_weekday in self.weekdays

        if self.dom_restricted and self.dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok


def is_valid_cron_expression(expression: str) -> bool:
    """Check an expression without raising."""
    try:
        CronSchedule.parse(expression)
    except InvalidCronExpression:
        return False
    return True


def validate_cron_expression(expression: str) -> str:
    """Validate an expression and return it unchanged.

    Raises:
        InvalidCronExpression: If the expression is invalid
    """
    CronSchedule.parse(expression)
    return expression
