"""Outbound email over SMTP (password reset links)."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backoffice.core.config import Settings

logger = logging.getLogger(__name__)


class MailerNotConfiguredError(Exception):
    """Raised when an email is sent but EMAIL_HOST/EMAIL_USERNAME/EMAIL_PASSWORD are missing."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MailDeliveryError(Exception):
    """Raised when the SMTP server refuses or the connection fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SmtpMailer:
    """Send plain-text email with the SMTP settings from Settings."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _build_message(self, to_email: str, subject: str, text_body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._settings.EMAIL_FROM
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(text_body)
        return msg

    def send(self, to_email: str, subject: str, text_body: str) -> None:
        s = self._settings
        if not s.is_email_configured():
            raise MailerNotConfiguredError(
                "SMTP is not configured. Set EMAIL_HOST, EMAIL_USERNAME and EMAIL_PASSWORD."
            )
        msg = self._build_message(to_email, subject, text_body)
        password = s.EMAIL_PASSWORD.get_secret_value() if s.EMAIL_PASSWORD else ""
        try:
            # STARTTLS on 587 by default; implicit TLS otherwise
            if s.EMAIL_USE_TLS:
                with smtplib.SMTP(s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT_SEC) as server:
                    server.starttls()
                    server.login(s.EMAIL_USERNAME, password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT_SEC) as server:
                    server.login(s.EMAIL_USERNAME, password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery failed: {e!s}") from e
        logger.info("Email sent", extra={"subject": subject})
