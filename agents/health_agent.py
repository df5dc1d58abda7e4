"""Liveness bookkeeping for the ping and health endpoints."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from config.config import FeatureFlags


def _format_uptime(seconds: float) -> str:
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {minutes}m {secs}s"
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


@dataclass
class HealthReporter:
    """Owns the ping counter and uptime clock.

    One instance is created at startup and stored on the web application;
    request handlers only read or bump it through this object.
    """

    features: FeatureFlags
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))
    monotonic: Callable[[], float] = field(default=time.monotonic)
    ping_count: int = 0
    last_ping: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.started_at = self.clock()
        self._started_monotonic = self.monotonic()

    @property
    def uptime_seconds(self) -> float:
        return max(0.0, self.monotonic() - self._started_monotonic)

    def record_ping(self) -> Dict[str, Any]:
        """Count one liveness ping and return the ping response body."""

        self.ping_count += 1
        self.last_ping = self.clock()
        return {
            "status": "alive",
            "message": "Server is awake",
            "pings": self.ping_count,
            "timestamp": self.last_ping.isoformat(),
            "uptime": _format_uptime(self.uptime_seconds),
        }

    def snapshot(self) -> Dict[str, Any]:
        """Detailed status report for ``/api/health``."""

        features = self.features
        return {
            "status": "ok",
            "message": "Server is running",
            "emailService": "configured" if features.email_configured else "not configured",
            "emailBackend": features.email_backend,
            "missingVars": list(features.missing_email_vars),
            "chatService": "configured" if features.chat_configured else "not configured",
            "pings": self.ping_count,
            "lastPing": self.last_ping.isoformat() if self.last_ping else None,
            "startedAt": self.started_at.isoformat(),
            "uptime": _format_uptime(self.uptime_seconds),
            "uptimeSeconds": round(self.uptime_seconds, 3),
            "timestamp": self.clock().isoformat(),
        }
