import pytest

from imagitales.core.retry import RetryPolicy, retry_with_backoff


class Flaky:

    def __init__(self, failures, error=RuntimeError("busy")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.mark.asyncio
async def test_success_on_first_attempt_does_not_wait(sleeps):
    op = Flaky(0)
    outcome = await retry_with_backoff(op, RetryPolicy(), sleep=sleeps)

    assert outcome.ok
    assert outcome.value == "ok"
    assert outcome.attempts == 1
    assert outcome.waits == []
    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_waits_double_from_base_delay(sleeps):
    op = Flaky(2)
    outcome = await retry_with_backoff(op, RetryPolicy(), sleep=sleeps)

    assert outcome.ok
    assert outcome.attempts == 3
    assert outcome.retries == 2
    assert sleeps.calls == [2, 4]


@pytest.mark.asyncio
async def test_exhaustion_returns_failure_instead_of_raising(sleeps):
    op = Flaky(100)
    outcome = await retry_with_backoff(op, RetryPolicy(max_retries=5, base_delay=2.0), sleep=sleeps)

    assert not outcome.ok
    assert isinstance(outcome.error, RuntimeError)
    assert op.calls == 6
    assert outcome.waits == [2, 4, 8, 16, 32]
    assert sleeps.calls == [2, 4, 8, 16, 32]


@pytest.mark.asyncio
async def test_non_retryable_error_stops_immediately(sleeps):
    op = Flaky(100, error=ValueError("bad request"))
    policy = RetryPolicy(is_retryable=lambda e: not isinstance(e, ValueError))
    outcome = await retry_with_backoff(op, policy, sleep=sleeps)

    assert not outcome.ok
    assert isinstance(outcome.error, ValueError)
    assert outcome.attempts == 1
    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_policy_values_are_configurable(sleeps):
    op = Flaky(100)
    outcome = await retry_with_backoff(op, RetryPolicy(max_retries=2, base_delay=0.5), sleep=sleeps)

    assert outcome.attempts == 3
    assert sleeps.calls == [0.5, 1.0]
