"""Exception taxonomy shared by the dispatcher and its callers."""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for every error raised by :mod:`utils.dispatcher`."""


class ConfigurationError(DispatchError, ValueError):
    """Raised when a retry policy is invalid. No attempt is ever made."""


class OperationError(DispatchError):
    """Failure of a single attempt.

    The underlying exception is kept untouched in :attr:`cause` (and as
    ``__cause__`` when raised with ``from``); the dispatcher never classifies it.
    """

    def __init__(self, cause: BaseException, *, attempt: int = 0) -> None:
        super().__init__(f"attempt {attempt} failed: {cause}")
        self.cause = cause
        self.attempt = attempt


class ExhaustedError(DispatchError):
    """All attempts allowed by the policy failed."""

    def __init__(self, last_error: OperationError, attempts_made: int) -> None:
        super().__init__(
            f"operation failed after {attempts_made} attempt(s): {last_error.cause}"
        )
        self.last_error = last_error
        self.attempts_made = attempts_made

    @property
    def cause(self) -> Optional[BaseException]:
        return self.last_error.cause


class EmailDeliveryError(Exception):
    """Raised by email backends when a message could not be handed over."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChatGenerationError(Exception):
    """Raised by the chat agent when the text-generation API fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ChatGenerationError",
    "ConfigurationError",
    "DispatchError",
    "EmailDeliveryError",
    "ExhaustedError",
    "OperationError",
]
