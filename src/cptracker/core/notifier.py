"""Reminder notifier.

Renders reminder emails, dispatches them through the email collaborator
and logs inactivity reminders. A Reminder row is written only after the
provider accepted the message.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from cptracker.db.activity_repository import ReminderRecord, insert_reminder
from cptracker.db.students_repository import StudentRecord
from cptracker.mail.sender import EmailSender, SendResult
from cptracker.utils.time_utils import to_iso, utc_now

logger = structlog.get_logger(__name__)

INACTIVITY_REMINDER = "inactivity"

INACTIVITY_SUBJECT = "Reminder: Keep Practicing on Codeforces!"
TEST_SUBJECT = "Test Email from Student Progress Management System"

INACTIVITY_TEMPLATE = """Dear {name},

We noticed that you haven't made any submissions on Codeforces in the last {days} days.
Regular practice is key to improving your competitive programming skills!

Your current rating: {current_rating}
Your max rating: {max_rating}

Keep up the great work and don't forget to practice regularly!

Best regards,
Student Progress Management System
"""

TEST_TEMPLATE = """Hello {name},

This is a test email from Student Progress Management System.

If you received this, your email setup is working!

Best regards,
Student Progress Management System
"""


class NotificationFailure(Exception):
    """The email provider rejected a reminder."""

    def __init__(self, student_id: str, error: str):
        self.student_id = student_id
        self.error = error
        super().__init__(error)


class ReminderNotRecorded(Exception):
    """The reminder was delivered but its Reminder row could not be written."""

    def __init__(self, student_id: str, message_id: str | None, error: str):
        self.student_id = student_id
        self.message_id = message_id
        self.error = error
        super().__init__(error)


@dataclass
class RenderedEmail:
    subject: str
    text: str
    html: str


@dataclass
class NotificationOutcome:
    """A delivered notification."""

    student_id: str
    message_id: str | None
    reminder: ReminderRecord | None = None


def _to_html(text: str) -> str:
    return html.escape(text).replace("\n", "<br>\n")


def render_inactivity_email(student: StudentRecord, days: int = 7) -> RenderedEmail:
    """Build the inactivity reminder for a student."""
    text = INACTIVITY_TEMPLATE.format(
        name=student.name,
        days=days,
        current_rating=student.current_rating,
        max_rating=student.max_rating,
    )
    return RenderedEmail(subject=INACTIVITY_SUBJECT, text=text, html=_to_html(text))


def render_test_email(student: StudentRecord) -> RenderedEmail:
    text = TEST_TEMPLATE.format(name=student.name)
    return RenderedEmail(subject=TEST_SUBJECT, text=text, html=_to_html(text))


class Notifier:
    """Send reminders and record them."""

    def __init__(
        self,
        sender: EmailSender,
        from_address: str,
        clock: Callable[[], datetime] = utc_now,
        inactivity_days: int = 7,
    ):
        self.sender = sender
        self.from_address = from_address
        self.clock = clock
        self.inactivity_days = inactivity_days

    def _dispatch(self, student: StudentRecord, email: RenderedEmail) -> SendResult:
        result = self.sender.send(
            sender=self.from_address,
            recipient=student.email,
            subject=email.subject,
            text=email.text,
            html=email.html,
        )
        if not result.success:
            error = result.error or "Unknown email provider error"
            logger.warning(
                "notifier.dispatch_failed",
                student_id=student.student_id,
                recipient=student.email,
                error=error,
            )
            raise NotificationFailure(student.student_id, error)
        return result

    def send_inactivity_reminder(self, student: StudentRecord) -> NotificationOutcome:
        """Email an inactivity reminder, then log it.

        Raises:
            NotificationFailure: If the provider rejected the message;
                no Reminder is written in that case
            ReminderNotRecorded: If the message went out but logging it failed
        """
        email = render_inactivity_email(student, days=self.inactivity_days)
        result = self._dispatch(student, email)

        try:
            reminder = insert_reminder(
                student_id=student.student_id,
                reminder_type=INACTIVITY_REMINDER,
                email_content=email.text,
                sent_at=to_iso(self.clock()),
            )
        except Exception as e:
            logger.exception(
                "notifier.reminder_not_recorded",
                student_id=student.student_id,
                message_id=result.message_id,
            )
            raise ReminderNotRecorded(
                student.student_id, result.message_id, str(e) or type(e).__name__
            ) from e

        logger.info(
            "notifier.reminder_sent",
            student_id=student.student_id,
            message_id=result.message_id,
        )
        return NotificationOutcome(
            student_id=student.student_id,
            message_id=result.message_id,
            reminder=reminder,
        )

    def send_test_email(self, student: StudentRecord) -> NotificationOutcome:
        """Email a test message. Nothing is logged to reminders.

        Raises:
            NotificationFailure: If the provider rejected the message
        """
        result = self._dispatch(student, render_test_email(student))
        logger.info("notifier.test_sent", student_id=student.student_id)
        return NotificationOutcome(student_id=student.student_id, message_id=result.message_id)
