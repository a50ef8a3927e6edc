from __future__ import annotations

import asyncio

import pytest

from recipe_finder.models.errors import CircuitOpenError
from recipe_finder.services.circuit_breaker import (
    BreakerConfig,
    BreakerState,
    CircuitBreaker,
    CircuitBreakerRegistry,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def _fail():
    raise RuntimeError("provider down")


async def _ok():
    return "ok"


async def _trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute(_fail)


@pytest.mark.asyncio
async def test_opens_after_threshold_and_fails_fast():
    clock = FakeClock()
    breaker = CircuitBreaker("perplexity", BreakerConfig(failure_threshold=3, timeout_ms=30000), clock=clock)
    await _trip(breaker, 2)
    assert breaker.state == BreakerState.CLOSED

    await _trip(breaker, 1)
    assert breaker.state == BreakerState.OPEN

    calls: list[int] = []

    async def tracked():
        calls.append(1)
        return "ok"

    with pytest.raises(CircuitOpenError) as excinfo:
        await breaker.execute(tracked)
    assert calls == []
    assert excinfo.value.retry_after_ms == 30000
    assert excinfo.value.kind == "circuit_open"
    assert breaker.snapshot().rejected_calls == 1


@pytest.mark.asyncio
async def test_success_resets_consecutive_failures():
    breaker = CircuitBreaker("groq", BreakerConfig(failure_threshold=2), clock=FakeClock())
    await _trip(breaker, 1)
    assert await breaker.execute(_ok) == "ok"
    await _trip(breaker, 1)
    assert breaker.state == BreakerState.CLOSED


@pytest.mark.asyncio
async def test_half_open_admits_a_single_trial():
    clock = FakeClock()
    breaker = CircuitBreaker("jsonld", BreakerConfig(failure_threshold=1, timeout_ms=1000), clock=clock)
    await _trip(breaker, 1)
    clock.advance(1.5)

    gate = asyncio.Event()

    async def slow_trial():
        await gate.wait()
        return "trial"

    trial = asyncio.create_task(breaker.execute(slow_trial))
    await asyncio.sleep(0)
    assert breaker.state == BreakerState.HALF_OPEN

    with pytest.raises(CircuitOpenError):
        await breaker.execute(_ok)

    gate.set()
    assert await trial == "trial"
    assert breaker.state == BreakerState.HALF_OPEN


@pytest.mark.asyncio
async def test_half_open_closes_after_success_threshold():
    clock = FakeClock()
    breaker = CircuitBreaker(
        "jsonld", BreakerConfig(failure_threshold=1, timeout_ms=1000, success_threshold=2), clock=clock
    )
    await _trip(breaker, 1)
    clock.advance(2)

    await breaker.execute(_ok)
    assert breaker.state == BreakerState.HALF_OPEN
    await breaker.execute(_ok)
    assert breaker.state == BreakerState.CLOSED
    assert breaker.snapshot().consecutive_failures == 0


@pytest.mark.asyncio
async def test_failed_trial_reopens():
    clock = FakeClock()
    breaker = CircuitBreaker("jsonld", BreakerConfig(failure_threshold=1, timeout_ms=1000), clock=clock)
    await _trip(breaker, 1)
    clock.advance(2)

    await _trip(breaker, 1)
    assert breaker.state == BreakerState.OPEN
    with pytest.raises(CircuitOpenError):
        await breaker.execute(_ok)


def test_registry_returns_same_breaker_and_applies_overrides():
    registry = CircuitBreakerRegistry(
        default_config=BreakerConfig(failure_threshold=3),
        overrides={"search": BreakerConfig(failure_threshold=5, timeout_ms=60000)},
    )
    assert registry.get("groq") is registry.get("groq")
    assert registry.get("groq").failure_threshold == 3
    assert registry.get("search").failure_threshold == 5
    assert registry.get("search").timeout_ms == 60000
    assert "groq" in registry
    assert "perplexity" not in registry


def test_registry_is_bounded():
    registry = CircuitBreakerRegistry(max_size=2)
    registry.get("a")
    registry.get("b")
    with pytest.raises(RuntimeError):
        registry.get("c")
    assert registry.get("a") is not None


@pytest.mark.asyncio
async def test_registry_stats_and_reset_all():
    registry = CircuitBreakerRegistry(default_config=BreakerConfig(failure_threshold=1), clock=FakeClock())
    await _trip(registry.get("perplexity"), 1)

    stats = registry.stats()
    assert stats["perplexity"].state == BreakerState.OPEN
    assert stats["perplexity"].total_failures == 1
    assert stats["perplexity"].total_calls == 1

    registry.reset_all()
    assert registry.get("perplexity").state == BreakerState.CLOSED
