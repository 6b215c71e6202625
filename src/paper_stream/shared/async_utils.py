"""
Async Utilities for Source Fan-out.

Provides:
- Settled parallel execution with TaskGroup (every task runs to completion,
  each outcome is reported individually)
- Per-call timeout that converts a hang into a SourceUnavailableError
- Circuit breaker for persistently failing providers
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import RateLimitError, SourceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Settled Parallel Execution (Python 3.11+ TaskGroup)
# =============================================================================

@dataclass(frozen=True, slots=True)
class Settled(Generic[T]):
    """Outcome of one task: either a value or the exception it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(*coros: Awaitable[T]) -> list[Settled[T]]:
    """
    Execute coroutines concurrently and wait for all of them to settle.

    Unlike a fail-fast TaskGroup, an exception in one coroutine never cancels
    the others. Results are returned in argument order.

    Example:
        outcomes = await gather_settled(fetch_a(), fetch_b())
        papers = [o.value for o in outcomes if o.ok]
    """
    outcomes: list[Settled[T]] = [Settled() for _ in coros]

    async def safe_run(coro: Awaitable[T], index: int) -> None:
        try:
            outcomes[index] = Settled(value=await coro)
        except Exception as e:
            outcomes[index] = Settled(error=e)

    async with asyncio.TaskGroup() as tg:
        for i, coro in enumerate(coros):
            tg.create_task(safe_run(coro, i))

    return outcomes


async def with_timeout(coro: Awaitable[T], timeout: float | None, *, source: str) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    A timeout is reported as SourceUnavailableError so the caller treats a
    hanging provider exactly like a failing one. ``None`` disables the bound.
    """
    if timeout is None:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        raise SourceUnavailableError(source, f"timed out after {timeout:.1f}s") from e


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(name="OpenAlex", failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """
    name: str = "API"
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise RateLimitError(
                    self.name,
                    "Circuit breaker is open",
                    retry_after=self.recovery_timeout,
                )

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise RateLimitError(
                        self.name,
                        "Circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None:
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(
                        f"{self.name}: circuit breaker opened after {self._failure_count} failures"
                    )
            else:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info(f"{self.name}: circuit breaker closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)
