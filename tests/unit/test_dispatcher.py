"""Unit tests for the retrying dispatcher."""

from __future__ import annotations

import asyncio

import pytest

from utils.dispatcher import Failure, Success, dispatch, with_timeout
from utils.errors import ConfigurationError, ExhaustedError, OperationError
from utils.retry import EMAIL_POLICY, RetryPolicy


class ScriptedOperation:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value: str = "ok") -> None:
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"boom {self.calls}")
        return self.value


@pytest.mark.asyncio
@pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
async def test_permanent_failure_uses_every_attempt(max_attempts, fake_sleep):
    operation = ScriptedOperation(failures=100)
    policy = RetryPolicy(max_attempts=max_attempts, base_delay=0.5, backoff_multiplier=2)

    outcome = await dispatch(operation, policy, sleep=fake_sleep)

    assert isinstance(outcome, Failure)
    assert not outcome.ok
    assert operation.calls == max_attempts
    assert outcome.attempts_made == max_attempts
    assert isinstance(outcome.error, ExhaustedError)
    assert outcome.error.attempts_made == max_attempts
    assert len(fake_sleep.delays) == max_attempts - 1


@pytest.mark.asyncio
@pytest.mark.parametrize("succeed_on", [1, 2, 3])
async def test_success_stops_immediately(succeed_on, fake_sleep):
    operation = ScriptedOperation(failures=succeed_on - 1, value="sent")

    outcome = await dispatch(operation, RetryPolicy(max_attempts=3), sleep=fake_sleep)

    assert isinstance(outcome, Success)
    assert outcome.ok
    assert outcome.value == "sent"
    assert outcome.unwrap() == "sent"
    assert operation.calls == succeed_on
    assert outcome.attempts_made == succeed_on
    # One wait between consecutive attempts, none after the success.
    assert len(fake_sleep.delays) == succeed_on - 1


@pytest.mark.asyncio
async def test_delays_follow_exponential_backoff(fake_sleep):
    policy = RetryPolicy(max_attempts=5, base_delay=0.25, backoff_multiplier=3)

    await dispatch(ScriptedOperation(failures=100), policy, sleep=fake_sleep)

    assert fake_sleep.delays == pytest.approx([0.25, 0.75, 2.25, 6.75])
    assert fake_sleep.delays == pytest.approx(
        [policy.delay_before(n) for n in range(2, 6)]
    )


@pytest.mark.asyncio
async def test_single_attempt_policy_never_sleeps(fake_sleep):
    operation = ScriptedOperation(failures=1)

    outcome = await dispatch(operation, RetryPolicy.no_retry(), sleep=fake_sleep)

    assert not outcome.ok
    assert operation.calls == 1
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_invalid_policy_makes_no_attempt(fake_sleep):
    operation = ScriptedOperation(failures=0)
    policy = RetryPolicy()
    # Bypass the frozen dataclass the way a careless caller might.
    object.__setattr__(policy, "max_attempts", 0)

    with pytest.raises(ConfigurationError):
        await dispatch(operation, policy, sleep=fake_sleep)

    assert operation.calls == 0
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_non_policy_argument_is_rejected():
    operation = ScriptedOperation(failures=0)

    with pytest.raises(ConfigurationError):
        await dispatch(operation, {"max_attempts": 3})  # type: ignore[arg-type]

    assert operation.calls == 0


@pytest.mark.asyncio
async def test_email_scenario_recovers_on_third_attempt(fake_sleep):
    operation = ScriptedOperation(failures=2, value="message-id")

    outcome = await dispatch(operation, EMAIL_POLICY, sleep=fake_sleep)

    assert outcome.ok
    assert operation.calls == 3
    assert fake_sleep.delays == pytest.approx([1.0, 2.0])
    assert [record.succeeded for record in outcome.attempts] == [False, False, True]


@pytest.mark.asyncio
async def test_email_scenario_exhausts_after_three_seconds_of_waiting(fake_sleep):
    outcome = await dispatch(ScriptedOperation(failures=100), EMAIL_POLICY, sleep=fake_sleep)

    assert isinstance(outcome, Failure)
    assert outcome.attempts_made == 3
    assert sum(fake_sleep.delays) == pytest.approx(3.0)
    assert sum(fake_sleep.delays) == pytest.approx(EMAIL_POLICY.total_delay)


@pytest.mark.asyncio
async def test_failure_keeps_the_last_cause_untouched(fake_sleep):
    outcome = await dispatch(
        ScriptedOperation(failures=100), RetryPolicy(max_attempts=2), sleep=fake_sleep
    )

    assert isinstance(outcome.last_error, OperationError)
    assert outcome.last_error.attempt == 2
    assert isinstance(outcome.cause, RuntimeError)
    assert str(outcome.cause) == "boom 2"
    with pytest.raises(ExhaustedError) as excinfo:
        outcome.unwrap()
    assert excinfo.value.cause is outcome.cause


@pytest.mark.asyncio
async def test_attempt_records_are_numbered(fake_sleep):
    outcome = await dispatch(
        ScriptedOperation(failures=1), RetryPolicy(max_attempts=3), sleep=fake_sleep
    )

    assert [record.index for record in outcome.attempts] == [1, 2]
    first, second = outcome.attempts
    assert not first.succeeded and isinstance(first.error.cause, RuntimeError)
    assert second.succeeded and second.error is None
    assert first.started_at <= second.started_at


@pytest.mark.asyncio
async def test_on_retry_receives_error_and_delay(fake_sleep):
    seen = []

    def _hook(error: OperationError, delay: float) -> None:
        seen.append((error.attempt, str(error.cause), delay))

    await dispatch(
        ScriptedOperation(failures=2),
        RetryPolicy(max_attempts=3, base_delay=1, backoff_multiplier=2),
        on_retry=_hook,
        sleep=fake_sleep,
    )

    assert seen == [(1, "boom 1", 1.0), (2, "boom 2", 2.0)]


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_failed_attempt(fake_sleep):
    calls = 0

    async def slow_then_fast():
        nonlocal calls
        calls += 1
        if calls == 1:
            await asyncio.sleep(10)
        return "done"

    outcome = await dispatch(
        slow_then_fast,
        RetryPolicy(max_attempts=2, base_delay=0),
        attempt_timeout=0.01,
        sleep=fake_sleep,
    )

    assert outcome.ok
    assert calls == 2
    assert isinstance(outcome.attempts[0].error.cause, asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_invalid_attempt_timeout_is_configuration_error():
    operation = ScriptedOperation(failures=0)

    with pytest.raises(ConfigurationError):
        await dispatch(operation, RetryPolicy(), attempt_timeout=0)

    assert operation.calls == 0


@pytest.mark.asyncio
async def test_cancellation_is_not_retried():
    started = asyncio.Event()
    calls = 0

    async def hangs():
        nonlocal calls
        calls += 1
        started.set()
        await asyncio.sleep(10)

    task = asyncio.create_task(dispatch(hangs, RetryPolicy(max_attempts=3, base_delay=0)))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls == 1


@pytest.mark.asyncio
async def test_concurrent_dispatches_are_independent(fake_sleep):
    first = ScriptedOperation(failures=1, value="admin")
    second = ScriptedOperation(failures=100)

    outcomes = await asyncio.gather(
        dispatch(first, RetryPolicy(max_attempts=3, base_delay=0), sleep=fake_sleep),
        dispatch(second, RetryPolicy(max_attempts=2, base_delay=0), sleep=fake_sleep),
    )

    assert outcomes[0].ok and outcomes[0].value == "admin"
    assert not outcomes[1].ok and outcomes[1].attempts_made == 2


@pytest.mark.asyncio
async def test_with_timeout_none_means_unbounded():
    async def quick():
        return 42

    assert await with_timeout(quick(), None) == 42


@pytest.mark.asyncio
async def test_with_timeout_rejects_non_positive_bound():
    async def quick():
        return 42

    with pytest.raises(ConfigurationError):
        await with_timeout(quick(), -1)
