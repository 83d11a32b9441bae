"""Email delivery."""

from cptracker.mail.sender import (
    EmailSender,
    LoggingEmailSender,
    ResendEmailSender,
    SendResult,
    build_email_sender,
)

__all__ = [
    "EmailSender",
    "LoggingEmailSender",
    "ResendEmailSender",
    "SendResult",
    "build_email_sender",
]
