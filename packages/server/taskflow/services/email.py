"""
Transactional email.

Sending is best-effort: it runs after the response as a background task and
never raises. Without an SMTP host configured, messages are only logged.
"""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MIMEEmail
from functools import lru_cache

import structlog

from taskflow.core.config import Settings, get_settings

log = structlog.get_logger()


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class EmailService:
    """SMTP sender."""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.from_email = settings.smtp_from_email

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    def _send_sync(self, message: EmailMessage) -> None:
        mime = MIMEEmail()
        mime["Subject"] = message.subject
        mime["From"] = self.from_email
        mime["To"] = message.to
        mime.set_content(message.body)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
            if self.smtp_use_tls:
                server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(mime)

    async def send(self, message: EmailMessage) -> bool:
        """Send one message. Returns False instead of raising on failure."""
        if not self.is_configured:
            log.info("email.skipped", to=message.to, subject=message.subject)
            return False
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            log.error("email.send_failed", to=message.to, error=str(exc))
            return False
        log.info("email.sent", to=message.to, subject=message.subject)
        return True


@lru_cache
def get_email_service() -> EmailService:
    return EmailService(get_settings())


async def send_all(messages: list[EmailMessage]) -> None:
    """Background-task entry point."""
    service = get_email_service()
    for message in messages:
        await service.send(message)


def invitation_email(
    to: str, organization_name: str, inviter_name: str, role: str, accept_url: str
) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"You've been invited to join {organization_name} on TaskFlow Pro",
        body=(
            f"{inviter_name} has invited you to join {organization_name} "
            f"as {role.replace('_', ' ')}.\n\n"
            f"Accept the invitation: {accept_url}\n"
        ),
    )


def acceptance_email(to: str, organization_name: str, member_name: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"{member_name} joined {organization_name}",
        body=f"{member_name} accepted your invitation and joined {organization_name}.\n",
    )
