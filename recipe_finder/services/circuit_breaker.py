"""Per-provider circuit breakers and the registry that owns them.

The registry is constructed once at process start (see ``agents.factory``)
and passed by reference to every component that calls a provider, so tests
can build isolated instances.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from recipe_finder.models.errors import CircuitOpenError

T = TypeVar("T")


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class BreakerConfig:
    failure_threshold: int = 3
    timeout_ms: int = 30000
    success_threshold: int = 2


@dataclass(frozen=True, slots=True)
class CircuitBreakerState:
    provider: str
    state: BreakerState
    consecutive_failures: int
    consecutive_successes: int
    opened_at: float | None
    total_calls: int
    total_failures: int
    rejected_calls: int


class CircuitBreaker:
    """CLOSED -> OPEN -> HALF_OPEN -> CLOSED | OPEN state machine."""

    def __init__(
        self,
        name: str,
        config: BreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        config = config or BreakerConfig()
        self.name = name
        self.failure_threshold = max(int(config.failure_threshold), 1)
        self.timeout_ms = max(int(config.timeout_ms), 0)
        self.success_threshold = max(int(config.success_threshold), 1)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._total_calls = 0
        self._total_failures = 0
        self._rejected_calls = 0

    @property
    def state(self) -> BreakerState:
        return self._state

    def _remaining_open_ms(self) -> int:
        if self._opened_at is None:
            return 0
        elapsed_ms = (self._clock() - self._opened_at) * 1000
        return max(int(self.timeout_ms - elapsed_ms), 0)

    async def can_execute(self) -> bool:
        """Reserve a call slot; False means the call must fail fast."""
        async with self._lock:
            if self._state == BreakerState.OPEN:
                if self._remaining_open_ms() > 0:
                    self._rejected_calls += 1
                    return False
                self._state = BreakerState.HALF_OPEN
                self._consecutive_successes = 0
                logger.info(f"Circuit breaker {self.name}: OPEN -> HALF_OPEN")

            if self._state == BreakerState.HALF_OPEN:
                if self._trial_in_flight:
                    self._rejected_calls += 1
                    return False
                self._trial_in_flight = True

            self._total_calls += 1
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._consecutive_failures = 0
            if self._state == BreakerState.HALF_OPEN:
                self._trial_in_flight = False
                self._consecutive_successes += 1
                if self._consecutive_successes >= self.success_threshold:
                    self._close()

    async def record_failure(self, error: BaseException | None = None) -> None:
        async with self._lock:
            self._total_failures += 1
            self._consecutive_successes = 0
            if self._state == BreakerState.HALF_OPEN:
                self._trial_in_flight = False
                self._open(f"trial call failed: {error}")
                return
            if self._state == BreakerState.OPEN:
                return
            self._consecutive_failures += 1
            if self._consecutive_failures >= self.failure_threshold:
                self._open(f"{self._consecutive_failures} consecutive failures: {error}")

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        if not await self.can_execute():
            raise CircuitOpenError(self.name, self._remaining_open_ms())
        try:
            result = await fn()
        except BaseException as exc:
            # Cancellation is not a provider failure, but the trial slot must be released.
            if isinstance(exc, asyncio.CancelledError):
                async with self._lock:
                    self._trial_in_flight = False
            else:
                await self.record_failure(exc)
            raise
        await self.record_success()
        return result

    def _open(self, reason: str) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = self._clock()
        self._consecutive_successes = 0
        logger.warning(f"Circuit breaker {self.name} OPEN for {self.timeout_ms}ms ({reason})")

    def _close(self) -> None:
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._opened_at = None
        logger.info(f"Circuit breaker {self.name}: HALF_OPEN -> CLOSED")

    def reset(self) -> None:
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._opened_at = None
        self._trial_in_flight = False

    def snapshot(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            provider=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            consecutive_successes=self._consecutive_successes,
            opened_at=self._opened_at,
            total_calls=self._total_calls,
            total_failures=self._total_failures,
            rejected_calls=self._rejected_calls,
        )


class CircuitBreakerRegistry:
    """Bounded registry: one lazily created breaker per provider name."""

    def __init__(
        self,
        *,
        default_config: BreakerConfig | None = None,
        overrides: dict[str, BreakerConfig] | None = None,
        max_size: int = 32,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_config = default_config or BreakerConfig()
        self.overrides = dict(overrides or {})
        self.max_size = max(int(max_size), 1)
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        breaker = self._breakers.get(name)
        if breaker is not None:
            return breaker
        if len(self._breakers) >= self.max_size:
            raise RuntimeError(
                f"Circuit breaker registry full ({self.max_size}); refusing to create {name!r}"
            )
        breaker = CircuitBreaker(
            name,
            self.overrides.get(name, self.default_config),
            clock=self._clock,
        )
        self._breakers[name] = breaker
        return breaker

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def stats(self) -> dict[str, CircuitBreakerState]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()
