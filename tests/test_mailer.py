"""SmtpMailer: configuration checks and SMTP transport selection (smtplib mocked)."""

import smtplib
import unittest
from unittest.mock import MagicMock, patch

from backoffice.services.mailer import MailDeliveryError, MailerNotConfiguredError, SmtpMailer
from tests.support import make_settings

SMTP_SETTINGS = {
    "EMAIL_HOST": "smtp.bakery.test",
    "EMAIL_USERNAME": "mailer",
    "EMAIL_PASSWORD": "smtp-pass",
    "EMAIL_FROM": "Back Office <no-reply@bakery.test>",
}


class TestSmtpMailer(unittest.TestCase):
    def test_unconfigured_raises(self) -> None:
        mailer = SmtpMailer(make_settings())
        with self.assertRaises(MailerNotConfiguredError):
            mailer.send("alice@example.com", "Hi", "body")

    @patch("backoffice.services.mailer.smtplib.SMTP")
    def test_starttls_send(self, smtp_cls: MagicMock) -> None:
        server = smtp_cls.return_value.__enter__.return_value
        SmtpMailer(make_settings(**SMTP_SETTINGS)).send("alice@example.com", "Reset", "link here")

        smtp_cls.assert_called_once_with("smtp.bakery.test", 587, timeout=15.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "smtp-pass")
        msg = server.send_message.call_args.args[0]
        self.assertEqual(msg["To"], "alice@example.com")
        self.assertEqual(msg["Subject"], "Reset")
        self.assertIn("link here", msg.get_content())

    @patch("backoffice.services.mailer.smtplib.SMTP_SSL")
    def test_implicit_tls_when_starttls_disabled(self, smtp_ssl_cls: MagicMock) -> None:
        settings = make_settings(EMAIL_USE_TLS=False, EMAIL_PORT=465, **SMTP_SETTINGS)
        SmtpMailer(settings).send("alice@example.com", "Reset", "link")
        smtp_ssl_cls.assert_called_once_with("smtp.bakery.test", 465, timeout=15.0)

    @patch("backoffice.services.mailer.smtplib.SMTP")
    def test_smtp_failure_becomes_delivery_error(self, smtp_cls: MagicMock) -> None:
        smtp_cls.side_effect = smtplib.SMTPConnectError(421, "busy")
        with self.assertRaises(MailDeliveryError):
            SmtpMailer(make_settings(**SMTP_SETTINGS)).send("alice@example.com", "Reset", "link")


if __name__ == "__main__":
    unittest.main()
