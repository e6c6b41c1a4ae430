"""Plain-text email notifications over SMTP"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional

from roboshop.core.config import (
    EMAIL_FROM,
    EMAIL_REPLY_TO,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USER,
)

logger = logging.getLogger(__name__)


class EmailNotifier:
    name = "email"

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USER,
        password: Optional[str] = SMTP_PASSWORD,
        use_tls: bool = SMTP_USE_TLS,
        sender: str = EMAIL_FROM,
        reply_to: Optional[str] = EMAIL_REPLY_TO,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.reply_to = reply_to

    async def notify(self, addresses: Iterable[str], subject: str, body: str) -> None:
        recipients = sorted(set(addresses))
        if not recipients:
            return
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send, recipients, subject, body)
            logger.info(f"Sent '{subject}' to {len(recipients)} recipient(s)")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {recipients}: {e}")

    def build_message(self, recipients: list[str], subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        if self.reply_to:
            msg["Reply-To"] = self.reply_to
        msg.attach(MIMEText(body, "plain", "utf-8"))
        return msg

    def _send(self, recipients: list[str], subject: str, body: str) -> None:
        msg = self.build_message(recipients, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
