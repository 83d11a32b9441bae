"""Outbound email collaborators.

EmailSender is the single "send" capability the notifier depends on.
ResendEmailSender delivers through Resend; LoggingEmailSender is the
development fallback used when no API key is configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import resend
import structlog

from cptracker.config.app_config import EmailConfig

logger = structlog.get_logger(__name__)


@dataclass
class SendResult:
    """Outcome of one send call."""

    success: bool
    error: str | None = None
    message_id: str | None = None


class EmailSender(Protocol):
    """Anything that can deliver one message."""

    def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        text: str,
        html: str,
    ) -> SendResult: ...


class ResendEmailSender:
    """Deliver email through the Resend API."""

    def __init__(self, api_key: str):
        resend.api_key = api_key

    def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        text: str,
        html: str,
    ) -> SendResult:
        params = {
            "from": sender,
            "to": [recipient],
            "subject": subject,
            "text": text,
            "html": html,
        }
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            # Provider errors become a result, never an exception
            logger.warning("email.send_failed", recipient=recipient, error=str(e))
            return SendResult(success=False, error=f"Failed to send email via Resend: {e}")

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info("email.sent", recipient=recipient, message_id=message_id)
        return SendResult(success=True, message_id=message_id)


class LoggingEmailSender:
    """Log messages instead of sending them (local dev).

    Only the most recent ``keep`` messages are retained in ``sent``.
    """

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.sent: list[dict[str, str]] = []
        self._count = 0

    def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        text: str,
        html: str,
    ) -> SendResult:
        self._count += 1
        self.sent.append(
            {"from": sender, "to": recipient, "subject": subject, "text": text, "html": html}
        )
        del self.sent[: -self.keep]
        logger.info("email.dev_only", recipient=recipient, subject=subject)
        return SendResult(success=True, message_id=f"dev-{self._count}")


def build_email_sender(config: EmailConfig) -> EmailSender:
    """Pick the Resend sender when an API key is configured."""
    api_key = config.get_api_key()
    if api_key:
        logger.info("email.resend_configured")
        return ResendEmailSender(api_key)

    logger.warning("email.resend_not_configured", hint="emails will be logged only")
    return LoggingEmailSender()
