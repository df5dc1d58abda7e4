"""Keep-alive pinger for a backend hosted on a platform that idles free instances.

Usage::

    python -m agents.keep_alive_agent --url https://backend.example.com
    python -m agents.keep_alive_agent --interval 600   # ping every 10 minutes

Exit code is 0 when the ping succeeded and 1 when every attempt failed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from config.config import settings
from utils.async_http import AsyncHTTP
from utils.dispatcher import DispatchOutcome, dispatch
from utils.errors import OperationError
from utils.observability import configure_logging, record_delivery
from utils.retry import KEEP_ALIVE_POLICY, RetryPolicy

logger = logging.getLogger(__name__)

PING_ENDPOINT = "/api/ping"
DEFAULT_TIMEOUT = 25.0


class PingFailed(Exception):
    """The backend answered, but not with a 2xx status."""

    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class PingResult:
    status_code: int
    data: Any
    duration_ms: float


class KeepAliveAgent:
    """Signals liveness by requesting the backend's ping endpoint."""

    def __init__(
        self,
        backend_url: str,
        *,
        policy: RetryPolicy = KEEP_ALIVE_POLICY,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "KeepAlive/1.0",
        http: Optional[AsyncHTTP] = None,
    ) -> None:
        self.ping_url = backend_url.rstrip("/") + PING_ENDPOINT
        self.policy = policy
        self._http = http or AsyncHTTP(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def _ping_once(self) -> PingResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        response = await self._http.get(self.ping_url)
        duration_ms = (loop.time() - started) * 1000
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text
        if not response.is_success:
            raise PingFailed(response.status_code, data)
        return PingResult(response.status_code, data, duration_ms)

    async def ping(self) -> DispatchOutcome[PingResult]:
        """Ping once, retrying per policy while the host may be cold-starting."""

        def _log_retry(error: OperationError, delay: float) -> None:
            logger.warning("Attempt %d failed: %s", error.attempt, error.cause)
            logger.info(
                "Waiting %.1fs before retry (server might be cold starting)...", delay
            )

        logger.info("Pinging %s", self.ping_url)
        outcome = await dispatch(self._ping_once, self.policy, on_retry=_log_retry)
        record_delivery("ping", outcome.ok, outcome.attempts_made)
        if outcome.ok:
            result = outcome.value
            status = (
                result.data.get("status", "alive")
                if isinstance(result.data, dict)
                else "alive"
            )
            logger.info(
                "Ping successful (%.0fms, status=%s, attempts=%d)",
                result.duration_ms,
                status,
                outcome.attempts_made,
            )
            if isinstance(result.data, dict) and result.data.get("pings"):
                logger.info("Total pings: %s", result.data["pings"])
        else:
            logger.error("Keep-alive failed after all retries: %s", outcome.cause)
        return outcome

    async def run_forever(
        self,
        interval: float,
        *,
        max_cycles: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Ping every *interval* seconds until cancelled (or *max_cycles* pings)."""

        if interval <= 0:
            raise ValueError("interval must be positive")
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            await self.ping()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            await sleep(interval)

    async def aclose(self) -> None:
        await self._http.aclose()


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ping the backend to keep it awake")
    parser.add_argument(
        "--url",
        default=settings.backend_url,
        help="Backend base URL (defaults to BACKEND_URL)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.keep_alive_interval_seconds,
        help="Seconds between pings; 0 pings once and exits",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.keep_alive_timeout_seconds,
        help="Per-request timeout in seconds",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


async def _run(args: argparse.Namespace) -> int:
    agent = KeepAliveAgent(
        args.url,
        timeout=args.timeout,
        user_agent=f"{settings.company_name}-KeepAlive/1.0",
    )
    try:
        if args.interval and args.interval > 0:
            logger.info("Keep-alive loop started (every %.0fs)", args.interval)
            await agent.run_forever(args.interval)
            return 0
        outcome = await agent.ping()
    finally:
        await agent.aclose()

    if outcome.ok:
        logger.info("Keep-alive completed successfully")
        return 0
    logger.info("Check that BACKEND_URL is correct and the server is deployed (%s)", args.url)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(settings.log_level)
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
