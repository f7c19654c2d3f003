"""Unit tests for EmailService: reset links, SMTP delivery and the unconfigured fallback."""

import smtplib
import unittest
from unittest.mock import patch

from tessera.services.email import EmailService, redact_email
from tessera.services.errors import EmailDeliveryError
from tests.helpers import make_settings


def _configured(**overrides: object) -> EmailService:
    values = {
        "SMTP_HOST": "smtp.example.com",
        "SMTP_USER": "mailer",
        "SMTP_PASSWORD": "secret",
        "EMAIL_FROM": "noreply@example.com",
    }
    values.update(overrides)
    return EmailService(make_settings(**values))


class TestRedactEmail(unittest.TestCase):
    def test_redacts_local_part(self) -> None:
        self.assertEqual(redact_email("alice@example.com"), "al***@example.com")
        self.assertEqual(redact_email("nonsense"), "redacted")


class TestResetLink(unittest.TestCase):
    def test_link_points_at_client_app(self) -> None:
        service = EmailService(make_settings(CLIENT_APP_URL="https://app.example.com/"))
        self.assertEqual(
            service.build_reset_link("abc-123"),
            "https://app.example.com/reset-password?token=abc-123",
        )


class TestSendPasswordResetEmail(unittest.TestCase):
    def test_unconfigured_logs_without_sending(self) -> None:
        service = EmailService(make_settings())
        self.assertFalse(service.is_configured)
        with patch("tessera.services.email.smtplib.SMTP") as smtp:
            with self.assertLogs("tessera.services.email", level="INFO") as logs:
                service.send_password_reset_email("alice@example.com", "secret-token")
        smtp.assert_not_called()
        self.assertFalse(any("secret-token" in line for line in logs.output))

    def test_sends_over_starttls(self) -> None:
        service = _configured()
        with patch("tessera.services.email.smtplib.SMTP") as smtp:
            service.send_password_reset_email("alice@example.com", "tok")
        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        from_addr, to_addr, message = server.sendmail.call_args.args
        self.assertEqual(from_addr, "noreply@example.com")
        self.assertEqual(to_addr, "alice@example.com")
        self.assertIn("reset-password?token=tok", message)

    def test_implicit_tls(self) -> None:
        service = _configured(SMTP_USE_TLS=False, SMTP_PORT=465)
        with patch("tessera.services.email.smtplib.SMTP_SSL") as smtp_ssl:
            service.send_password_reset_email("alice@example.com", "tok")
        smtp_ssl.return_value.__enter__.return_value.sendmail.assert_called_once()

    def test_delivery_failure_raises(self) -> None:
        service = _configured()
        with patch("tessera.services.email.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value.sendmail.side_effect = (
                smtplib.SMTPRecipientsRefused({})
            )
            with self.assertRaises(EmailDeliveryError):
                service.send_password_reset_email("alice@example.com", "tok")


if __name__ == "__main__":
    unittest.main()
