"""Bounded-retry dispatcher for single outbound calls to unreliable services.

An *operation* is a zero-argument coroutine function performing exactly one
externally visible call (one HTTP POST, one SMTP submission, one ping).
:func:`dispatch` runs it under a :class:`~utils.retry.RetryPolicy` and returns
a tagged outcome instead of raising, so callers decide what a final failure
means for them.

The dispatcher does not log. Callers that want per-retry diagnostics pass an
``on_retry`` hook.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import ConfigurationError, ExhaustedError, OperationError
from .retry import RetryPolicy

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
SleepFunc = Callable[[float], Awaitable[Any]]
RetryHook = Callable[[OperationError, float], None]


@dataclass(frozen=True)
class AttemptRecord:
    """What happened during one attempt. Lives only as long as the outcome."""

    index: int
    started_at: datetime
    succeeded: bool
    error: Optional[OperationError] = None


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts_made: int
    attempts: Tuple[AttemptRecord, ...] = ()

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: ExhaustedError
    attempts_made: int
    attempts: Tuple[AttemptRecord, ...] = ()

    @property
    def ok(self) -> bool:
        return False

    @property
    def last_error(self) -> OperationError:
        return self.error.last_error

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error.cause

    def unwrap(self) -> Any:
        raise self.error


DispatchOutcome = Union[Success[T], Failure]


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float]) -> T:
    """Await *awaitable*, cancelling it once *seconds* have elapsed.

    ``None`` disables the bound. On expiry :class:`asyncio.TimeoutError` is
    raised and the wrapped work is cancelled.
    """

    if seconds is None:
        return await awaitable
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise ConfigurationError(f"timeout must be a positive number, got {seconds!r}")
    return await asyncio.wait_for(awaitable, timeout=seconds)


def _check_policy(policy: RetryPolicy) -> None:
    if not isinstance(policy, RetryPolicy):
        raise ConfigurationError(f"expected a RetryPolicy, got {type(policy).__name__}")
    # Frozen dataclasses can still be forced through object.__setattr__.
    policy.validate()


async def dispatch(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    attempt_timeout: Optional[float] = None,
    on_retry: Optional[RetryHook] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> DispatchOutcome[T]:
    """Run *operation* until it succeeds or *policy* runs out of attempts.

    Returns :class:`Success` as soon as one attempt succeeds, otherwise
    :class:`Failure` wrapping the last attempt's error. Raises
    :class:`ConfigurationError` before any attempt when *policy* or
    *attempt_timeout* is invalid. Cancellation of the calling task is never
    treated as an attempt failure.
    """

    _check_policy(policy)
    if attempt_timeout is not None and (
        isinstance(attempt_timeout, bool)
        or not isinstance(attempt_timeout, (int, float))
        or attempt_timeout <= 0
    ):
        raise ConfigurationError(
            f"attempt_timeout must be a positive number, got {attempt_timeout!r}"
        )

    records: List[AttemptRecord] = []

    def _before_sleep(retry_state: RetryCallState) -> None:
        if on_retry is None or retry_state.outcome is None:
            return
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        on_retry(retry_state.outcome.exception(), float(delay))

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.base_delay, exp_base=policy.backoff_multiplier
        ),
        retry=retry_if_exception_type(OperationError),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=False,
    )

    value: Any = None
    try:
        async for attempt in retrying:
            with attempt:
                index = attempt.retry_state.attempt_number
                started_at = datetime.now(timezone.utc)
                try:
                    value = await with_timeout(operation(), attempt_timeout)
                except Exception as exc:
                    error = OperationError(exc, attempt=index)
                    records.append(AttemptRecord(index, started_at, False, error))
                    raise error from exc
                records.append(AttemptRecord(index, started_at, True))
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        attempts = tuple(records)
        return Failure(ExhaustedError(last_error, len(attempts)), len(attempts), attempts)

    attempts = tuple(records)
    return Success(value, len(attempts), attempts)


__all__ = [
    "AttemptRecord",
    "DispatchOutcome",
    "Failure",
    "Operation",
    "Success",
    "dispatch",
    "with_timeout",
]
