"""Shared retry/backoff configuration utilities."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import ConfigurationError

DEFAULT_MAX_ATTEMPTS: int = 3
INITIAL_BACKOFF_SECONDS: float = 1.0
BACKOFF_MULTIPLIER: float = 2.0

KEEP_ALIVE_MAX_ATTEMPTS: int = 3
KEEP_ALIVE_BACKOFF_SECONDS: float = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable attempt budget and exponential backoff parameters.

    ``max_attempts`` includes the first try. The wait before attempt ``n``
    (``n >= 2``) is ``base_delay * backoff_multiplier ** (n - 2)`` seconds.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = INITIAL_BACKOFF_SECONDS
    backoff_multiplier: float = BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` when any parameter is out of range."""

        attempts = self.max_attempts
        if isinstance(attempts, bool) or not isinstance(attempts, int):
            raise ConfigurationError(
                f"max_attempts must be an integer, got {attempts!r}"
            )
        if attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {attempts}")

        for name, value, floor in (
            ("base_delay", self.base_delay, 0.0),
            ("backoff_multiplier", self.backoff_multiplier, 1.0),
        ):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if math.isnan(value) or math.isinf(value) or value < floor:
                raise ConfigurationError(f"{name} must be >= {floor:g}, got {value}")

    def delay_before(self, attempt: int) -> float:
        """Return the wait in seconds preceding *attempt* (1-based)."""

        if attempt <= 1:
            return 0.0
        return float(self.base_delay) * float(self.backoff_multiplier) ** (attempt - 2)

    @property
    def total_delay(self) -> float:
        """Sum of every wait when all attempts fail."""

        return sum(self.delay_before(n) for n in range(2, self.max_attempts + 1))

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1, base_delay=0.0, backoff_multiplier=1.0)


# Email sends: 3 attempts, 1s then 2s between them.
EMAIL_POLICY = RetryPolicy()

# Keep-alive pings give a cold-starting host 2s then 4s to wake up.
KEEP_ALIVE_POLICY = RetryPolicy(
    max_attempts=KEEP_ALIVE_MAX_ATTEMPTS,
    base_delay=KEEP_ALIVE_BACKOFF_SECONDS,
    backoff_multiplier=BACKOFF_MULTIPLIER,
)
