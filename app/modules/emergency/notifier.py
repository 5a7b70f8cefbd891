"""Outbound notification capability: ``notify(to, subject, html) -> message id``."""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional, Protocol

import httpx
import structlog

from app.core.config import Settings
from app.shared.exceptions import NotificationDispatchError

log = structlog.get_logger()


class Notifier(Protocol):
    async def notify(self, to: str, subject: str, html: str) -> str: ...


class WebhookNotifier:
    """POST the message as JSON to a mail/SMS relay that answers with ``messageId``."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    async def notify(self, to: str, subject: str, html: str) -> str:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url,
                    json={"to": to, "subject": subject, "html": html},
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise NotificationDispatchError(
                f"notification relay answered {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise NotificationDispatchError(f"notification relay unreachable: {exc}") from exc

        message_id = data.get("messageId") if isinstance(data, dict) else None
        if not message_id:
            raise NotificationDispatchError("notification relay returned no messageId")
        return str(message_id)


class SmtpNotifier:
    """Send HTML mail over SMTP with STARTTLS; the blocking client runs in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "vitals-relay@localhost",
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._timeout = timeout

    async def notify(self, to: str, subject: str, html: str) -> str:
        message_id = make_msgid(domain=self._sender.rpartition("@")[2] or None)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(html, "html"))
        try:
            await asyncio.to_thread(self._send, to, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDispatchError(f"smtp delivery failed: {exc}") from exc
        return message_id

    def _send(self, to: str, payload: str) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.sendmail(self._sender, [to], payload)


def build_notifier(settings: Settings) -> Optional[Notifier]:
    """Pick the configured delivery channel; ``None`` when nothing is configured."""
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(
            url=settings.NOTIFY_WEBHOOK_URL,
            token=settings.NOTIFY_WEBHOOK_TOKEN,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
    if settings.SMTP_HOST:
        return SmtpNotifier(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.SMTP_FROM,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
    log.info("no notification channel configured")
    return None
