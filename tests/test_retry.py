from __future__ import annotations

import asyncio

import pytest

from recipe_finder.models.errors import ExtractionTimeout, NoUrlsFound, ProviderUnavailable
from recipe_finder.services.retry import RetryPolicy, with_retry, with_timeout


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def test_backoff_doubles_and_caps():
    policy = RetryPolicy(max_attempts=5, base_delay_ms=1000, max_delay_ms=5000)
    assert [policy.delay_ms(attempt) for attempt in range(1, 5)] == [1000, 2000, 4000, 5000]


@pytest.mark.asyncio
async def test_retries_raised_errors_until_success():
    sleep = SleepRecorder()
    attempts: list[int] = []

    async def flaky(attempt: int) -> str:
        attempts.append(attempt)
        if attempt < 3:
            raise ProviderUnavailable("search", "temporarily down")
        return "hits"

    result = await with_retry(flaky, RetryPolicy(max_attempts=3), retry_on=(ProviderUnavailable,), sleep=sleep)
    assert result == "hits"
    assert attempts == [1, 2, 3]
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_last_error_is_raised_when_attempts_run_out():
    sleep = SleepRecorder()

    async def always_empty(attempt: int) -> str:
        raise NoUrlsFound("jollof rice")

    with pytest.raises(NoUrlsFound):
        await with_retry(always_empty, RetryPolicy(max_attempts=2), retry_on=(NoUrlsFound,), sleep=sleep)
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_give_up_on_stops_immediately():
    sleep = SleepRecorder()
    calls: list[int] = []

    async def broken(attempt: int) -> str:
        calls.append(attempt)
        raise ValueError("bad config")

    with pytest.raises(ValueError):
        await with_retry(broken, RetryPolicy(max_attempts=3), give_up_on=(ValueError,), sleep=sleep)
    assert calls == [1]
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_should_retry_returns_last_result_when_exhausted():
    sleep = SleepRecorder()
    retries: list[tuple[int, int]] = []

    async def low_yield(attempt: int) -> int:
        return attempt

    def on_retry(attempt: int, delay_ms: int, error):
        retries.append((attempt, delay_ms))

    result = await with_retry(
        low_yield,
        RetryPolicy(max_attempts=2),
        should_retry=lambda count: count < 5,
        on_retry=on_retry,
        sleep=sleep,
    )
    assert result == 2
    assert retries == [(1, 1000)]


@pytest.mark.asyncio
async def test_async_on_retry_is_awaited():
    seen: list[BaseException | None] = []

    async def on_retry(attempt: int, delay_ms: int, error):
        seen.append(error)

    async def flaky(attempt: int) -> str:
        if attempt == 1:
            raise ProviderUnavailable("groq")
        return "ok"

    await with_retry(
        flaky,
        RetryPolicy(max_attempts=2),
        retry_on=(ProviderUnavailable,),
        on_retry=on_retry,
        sleep=SleepRecorder(),
    )
    assert len(seen) == 1
    assert isinstance(seen[0], ProviderUnavailable)


@pytest.mark.asyncio
async def test_with_timeout_raises_typed_error():
    with pytest.raises(ExtractionTimeout) as excinfo:
        await with_timeout(asyncio.sleep(1), 10, label="slow provider", error_type=ExtractionTimeout)
    assert excinfo.value.timeout_ms == 10
    assert "slow provider" in str(excinfo.value)


@pytest.mark.asyncio
async def test_with_timeout_returns_result():
    async def quick():
        return 42

    assert await with_timeout(quick(), 1000, label="quick") == 42
