"""SMTP transport for outgoing email (one recipient per message)."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from copilot.config import EMAIL_APP_PASSWORD, EMAIL_SENDER_NAME, EMAIL_USERNAME, SMTP_HOST, SMTP_PORT

logger = logging.getLogger(__name__)


class EmailClient:
    """Send plain-text email over SMTP with implicit TLS."""

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        *,
        sender_name: str = EMAIL_SENDER_NAME,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
    ):
        self._username = username if username is not None else EMAIL_USERNAME
        self._password = password if password is not None else EMAIL_APP_PASSWORD
        self._sender_name = sender_name
        self._host = host
        self._port = port

    def send(self, to: str, subject: str, body: str) -> None:
        if not self._username or not self._password:
            raise RuntimeError("Email is not configured. Set EMAIL_USERNAME and EMAIL_APP_PASSWORD.")

        message = EmailMessage()
        message["From"] = formataddr((self._sender_name, self._username))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP_SSL(self._host, self._port) as smtp:
            smtp.login(self._username, self._password)
            smtp.send_message(message)
        logger.info("Sent email %r to %s", subject, to)
