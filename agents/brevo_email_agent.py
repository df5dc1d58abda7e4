"""Email delivery through the Brevo transactional HTTP API.

Some hosts block outbound SMTP, so HTTP is the default transport.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from agents.factory import register_agent
from agents.interfaces import BaseEmailAgent
from schemas.email import EmailEnvelope
from utils.async_http import AsyncHTTP, error_detail
from utils.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

DEFAULT_BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


@register_agent(BaseEmailAgent, "brevo", "default", is_default=True)
class BrevoEmailAgent(BaseEmailAgent):
    """Send one :class:`EmailEnvelope` per call via ``POST /v3/smtp/email``."""

    method = "Brevo API v3 (HTTP)"

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str = DEFAULT_BREVO_API_URL,
        timeout: float = 20.0,
        http: Optional[AsyncHTTP] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Brevo API key is required")
        self.api_key = api_key
        self.api_url = api_url
        self._http = http or AsyncHTTP(timeout=timeout)

    async def send(self, envelope: EmailEnvelope) -> Optional[str]:
        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        try:
            response = await self._http.post(
                self.api_url, headers=headers, json=envelope.to_brevo_payload()
            )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Brevo API request failed: {exc}") from exc

        if not response.is_success:
            raise EmailDeliveryError(
                f"Brevo API error: {response.status_code} - {error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        message_id = data.get("messageId") if isinstance(data, dict) else None
        logger.debug(
            "Brevo accepted message to=%s id=%s",
            ",".join(envelope.recipients),
            message_id,
        )
        return message_id

    async def aclose(self) -> None:
        await self._http.aclose()
