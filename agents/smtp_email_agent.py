"""Email delivery through direct SMTP submission."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional

import aiosmtplib

from agents.factory import register_agent
from agents.interfaces import BaseEmailAgent
from schemas.email import EmailEnvelope
from utils.async_smtp import send_email
from utils.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


@register_agent(BaseEmailAgent, "smtp")
class SmtpEmailAgent(BaseEmailAgent):
    """
    SMTP client supporting:
    - SMTPS (implicit SSL, port 465)
    - STARTTLS (submission, e.g. port 587)
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        username: str,
        password: str,
        starttls: bool = True,
        timeout: float = 20.0,
    ) -> None:
        if not host or not username or not password:
            raise ValueError(
                "SMTP configuration incomplete (host/username/password required)"
            )
        self.host = host.strip()
        self.port = int(port)
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    @property
    def method(self) -> str:  # type: ignore[override]
        mode = "implicit-SSL" if self.port == 465 else ("STARTTLS" if self.starttls else "PLAIN")
        return f"SMTP {mode} ({self.host}:{self.port})"

    def _build_message(self, envelope: EmailEnvelope) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = envelope.sender.formatted()
        msg["To"] = ", ".join(address.formatted() for address in envelope.to)
        msg["Subject"] = envelope.subject
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=envelope.sender.email.split("@")[-1])
        if envelope.reply_to is not None:
            msg["Reply-To"] = envelope.reply_to.formatted()
        msg.set_content(envelope.text_content or "")
        if envelope.html_content:
            msg.add_alternative(envelope.html_content, subtype="html")
        return msg

    async def send(self, envelope: EmailEnvelope) -> Optional[str]:
        msg = self._build_message(envelope)
        try:
            await send_email(
                host=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                from_addr=envelope.sender.email,
                to_addrs=envelope.recipients,
                message=msg.as_string(),
                starttls=self.starttls,
                timeout=self.timeout,
            )
        except (aiosmtplib.errors.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"SMTP error: {exc}") from exc
        return str(msg["Message-ID"]).strip() or None
