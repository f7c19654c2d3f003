"""Transactional email: password reset links over SMTP, logged instead of sent in dev."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

from tessera.services.errors import EmailDeliveryError

if TYPE_CHECKING:
    from tessera.core.config import Settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SEC = 30


class EmailSender(Protocol):
    def send_password_reset_email(self, email: str, reset_token: str) -> None: ...


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailService:
    """
    SMTP email sender.

    When SMTP_HOST or EMAIL_FROM is unset the message is logged (recipient
    redacted, no link) and treated as sent. Delivery failures raise
    EmailDeliveryError.
    """

    def __init__(self, settings: "Settings") -> None:
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = (
            settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else None
        )
        self.smtp_use_tls = settings.SMTP_USE_TLS
        self.from_email = settings.EMAIL_FROM or settings.SMTP_USER
        self.from_name = settings.EMAIL_FROM_NAME
        self.reset_url = f"{settings.CLIENT_APP_URL}{settings.PASSWORD_RESET_PATH}"

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def build_reset_link(self, reset_token: str) -> str:
        return f"{self.reset_url}?{urlencode({'token': reset_token})}"

    def send_password_reset_email(self, email: str, reset_token: str) -> None:
        link = self.build_reset_link(reset_token)
        subject = f"Reset your {self.from_name} password"
        text_body = (
            "We received a request to reset your password.\n\n"
            f"Open this link within 24 hours to choose a new password:\n{link}\n\n"
            "If you did not request a reset, you can ignore this email."
        )
        html_body = (
            "<p>We received a request to reset your password.</p>"
            f'<p><a href="{link}">Choose a new password</a> (valid for 24 hours).</p>'
            "<p>If you did not request a reset, you can ignore this email.</p>"
        )
        self._send(email, subject, html_body, text_body)

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        if not self.is_configured:
            logger.info(
                "Email not sent (SMTP not configured)",
                extra={"to": redact_email(to_email), "subject": subject},
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=SMTP_TIMEOUT_SEC) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.smtp_host, self.smtp_port, context=context, timeout=SMTP_TIMEOUT_SEC
                ) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery failed: {type(e).__name__}") from e

        logger.info("Email sent", extra={"to": redact_email(to_email), "subject": subject})
