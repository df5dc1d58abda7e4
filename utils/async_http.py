"""Outbound HTTP client shared by the Brevo, Gemini and keep-alive agents.

Every call is a single attempt. Retrying is the caller's decision and goes
through :func:`utils.dispatcher.dispatch`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_CAP = 5.0
READ_TIMEOUT_CAP = 20.0
DEFAULT_TOTAL_TIMEOUT = 30.0


def build_timeout(total: Optional[float]) -> httpx.Timeout:
    """Split *total* seconds into httpx phase timeouts.

    Connect and read phases are capped so a slow TLS handshake cannot eat the
    whole budget; a smaller *total* shrinks every phase.
    """

    total = total or DEFAULT_TOTAL_TIMEOUT
    return httpx.Timeout(
        total,
        connect=min(CONNECT_TIMEOUT_CAP, total),
        read=min(READ_TIMEOUT_CAP, total),
    )


class AsyncHTTP:
    """Thin owner of one :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=build_timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTP":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request; ``kwargs`` go straight to :meth:`httpx.AsyncClient.request`."""

        logger.debug("%s %s", method, url)
        response = await self._client.request(method, url, **kwargs)
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)


def error_detail(response: httpx.Response) -> str:
    """Best-effort human readable reason for a failed *response*."""

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, Mapping):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, Mapping):
                value = value.get("message")
            if value:
                return str(value)
    return response.reason_phrase or "unknown error"
