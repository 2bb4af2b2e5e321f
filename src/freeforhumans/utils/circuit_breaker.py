"""
Circuit breaker for per-chain RPC health.

The campaign aggregator wraps each chain's refresh in a breaker so an
endpoint that keeps failing is skipped quickly instead of costing every
listing request a full timeout.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from freeforhumans.config import CircuitBreakerConfig
from freeforhumans.utils.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    """Normal operation - requests are allowed."""

    OPEN = "open"
    """Circuit is open - requests are blocked."""

    HALF_OPEN = "half_open"
    """Testing recovery - limited requests allowed."""


@dataclass
class CircuitBreakerState:
    """Internal state of circuit breaker."""

    state: CircuitState = CircuitState.CLOSED
    failures: int = 0
    successes: int = 0
    last_failure_time: float = 0
    failure_times: List[float] = field(default_factory=list)
    """Clock readings (seconds) of failures within the window."""


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and blocking requests."""

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        *,
        reset_at: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class CircuitBreaker:
    """
    Circuit breaker for a single upstream.

    States:
    - CLOSED: Normal operation, requests allowed
    - OPEN: Circuit tripped, requests blocked
    - HALF_OPEN: Testing if service recovered

    Example:
        ```python
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3), name="base")

        try:
            campaigns = await breaker.execute(lambda: scan_chain(8453))
        except CircuitBreakerOpenError:
            campaigns = []
        ```
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        *,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._clock = clock
        self._state = CircuitBreakerState()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state.state

    @property
    def is_open(self) -> bool:
        return self._state.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._state.state == CircuitState.CLOSED

    @property
    def failure_count(self) -> int:
        return self._state.failures

    def _check_reset_timeout(self) -> None:
        """Move OPEN to HALF_OPEN once the reset timeout has elapsed."""
        if self._state.state != CircuitState.OPEN:
            return

        elapsed_ms = (self._clock() - self._state.last_failure_time) * 1000
        if elapsed_ms >= self.config.reset_timeout_ms:
            self._state.state = CircuitState.HALF_OPEN
            self._state.successes = 0

    def _clean_old_failures(self) -> None:
        window_start = self._clock() - self.config.failure_window_ms / 1000
        self._state.failure_times = [t for t in self._state.failure_times if t > window_start]
        self._state.failures = len(self._state.failure_times)

    async def record_success(self) -> None:
        async with self._lock:
            if self._state.state == CircuitState.HALF_OPEN:
                self._state.successes += 1

                if self._state.successes >= self.config.success_threshold:
                    self._state = CircuitBreakerState()
                    _logger.info("Circuit closed", extra={"breaker": self.name})

    async def record_failure(self) -> None:
        async with self._lock:
            now = self._clock()
            self._state.failure_times.append(now)
            self._state.last_failure_time = now
            self._clean_old_failures()

            was_open = self._state.state == CircuitState.OPEN
            if self._state.state == CircuitState.HALF_OPEN:
                # Any failure while probing reopens immediately
                self._state.state = CircuitState.OPEN
            elif self._state.failures >= self.config.failure_threshold:
                self._state.state = CircuitState.OPEN

            if self._state.state == CircuitState.OPEN and not was_open:
                _logger.warning(
                    "Circuit opened",
                    extra={"breaker": self.name, "failures": self._state.failures},
                )

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
    ) -> T:
        """
        Execute function with circuit breaker protection.

        Args:
            fn: Async function to execute
            fallback: Optional fallback function when circuit is open

        Returns:
            Result of fn or fallback

        Raises:
            CircuitBreakerOpenError: If circuit is open and no fallback provided
        """
        if not self.config.enabled:
            return await fn()

        async with self._lock:
            self._check_reset_timeout()

        if self.is_open:
            if fallback is not None:
                return await fallback()

            reset_at = self._state.last_failure_time + self.config.reset_timeout_ms / 1000
            raise CircuitBreakerOpenError(
                f"Circuit breaker for {self.name} is open",
                reset_at=reset_at,
            )

        try:
            result = await fn()
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    def reset(self) -> None:
        self._state = CircuitBreakerState()

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.state.value,
            "failures": self._state.failures,
            "successes": self._state.successes,
            "last_failure_time": self._state.last_failure_time,
        }


__all__ = [
    "CircuitState",
    "CircuitBreakerState",
    "CircuitBreakerOpenError",
    "CircuitBreaker",
]
