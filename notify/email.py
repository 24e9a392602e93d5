"""
notify/email.py -- Email delivery for password-reset codes.

SmtpNotifier sends a plain-text message over SMTP with STARTTLS. Any SMTP or
socket failure becomes DeliveryError; the reset flow surfaces it to the client
and does not retry. Timeouts are a property of this collaborator
(smtp_timeout_seconds), not of the reset flow.

LogNotifier is the debug-mode fallback when no SMTP host is configured. It
logs the destination and subject only -- never the body, which contains the
raw code.

Usage:
    notifier = build_notifier(get_settings())
    notifier.send("user@example.com", "Subject", "Body")
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

from auth.errors import DeliveryError
from core.config import ConfigurationError, Settings

logger = logging.getLogger("nileguide.notify")


class Notifier(Protocol):
    def send(self, destination: str, subject: str, body: str) -> None:
        """Deliver a message or raise DeliveryError."""


class SmtpNotifier:
    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.from_email = settings.smtp_from_email
        self.from_name = settings.smtp_from_name
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_seconds

    def send(self, destination: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = destination
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery to %s:%d failed: %s", self.host, self.port, type(exc).__name__)
            raise DeliveryError() from exc
        logger.info("Sent '%s' email via %s", subject, self.host)


class LogNotifier:
    """Development notifier: records that a message would have been sent."""

    def send(self, destination: str, subject: str, body: str) -> None:
        logger.warning("SMTP not configured; dropping '%s' email (debug mode)", subject)


def build_notifier(settings: Settings) -> Notifier:
    """Pick the notifier for the current settings.

    Without an SMTP host, debug mode falls back to LogNotifier; production
    refuses to start, since every reset request would otherwise fail.
    """
    if settings.smtp_configured:
        return SmtpNotifier(settings)
    if settings.debug:
        return LogNotifier()
    raise ConfigurationError("SMTP_HOST is required in production mode.")
