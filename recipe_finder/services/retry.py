from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from recipe_finder.models.errors import OperationTimeout

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000

    def delay_ms(self, attempt: int) -> int:
        """Backoff before the attempt after ``attempt``: min(base * 2^(attempt-1), max)."""
        attempt = max(int(attempt), 1)
        return int(min(self.base_delay_ms * (2 ** (attempt - 1)), self.max_delay_ms))


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    give_up_on: tuple[type[BaseException], ...] = (),
    should_retry: Callable[[T], bool] | None = None,
    on_retry: Callable[[int, int, BaseException | None], Awaitable[None] | None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation(attempt)`` until it succeeds or attempts run out.

    A raised ``retry_on`` exception (unless it is also a ``give_up_on``), or a
    result for which ``should_retry`` is true, triggers another attempt. The last result is returned (or the last
    exception re-raised) once ``policy.max_attempts`` is reached.
    """
    max_attempts = max(int(policy.max_attempts), 1)
    attempt = 1
    while True:
        error: BaseException | None = None
        try:
            result = await operation(attempt)
        except retry_on as exc:
            if attempt >= max_attempts or isinstance(exc, give_up_on):
                raise
            error = exc
        else:
            if should_retry is None or attempt >= max_attempts or not should_retry(result):
                return result

        delay_ms = policy.delay_ms(attempt)
        logger.debug(f"Retrying after attempt {attempt}/{max_attempts} in {delay_ms}ms: {error}")
        if on_retry is not None:
            maybe = on_retry(attempt, delay_ms, error)
            if maybe is not None:
                await maybe
        await sleep(delay_ms / 1000.0)
        attempt += 1


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_ms: int,
    *,
    label: str,
    error_type: type[OperationTimeout] = OperationTimeout,
) -> T:
    """Race ``awaitable`` against a timer; raise ``error_type`` on expiry."""
    try:
        return await asyncio.wait_for(awaitable, timeout=max(timeout_ms, 1) / 1000.0)
    except asyncio.TimeoutError as exc:
        raise error_type(label, timeout_ms) from exc
