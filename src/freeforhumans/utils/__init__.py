"""
Relayer utilities.

This module provides logging, retry and circuit breaker helpers.
"""

from freeforhumans.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)
from freeforhumans.utils.logging import configure_logging, get_logger, set_level
from freeforhumans.utils.retry import NO_RETRY, RetryConfig, calculate_delay, retry_async

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_level",
    # Resilience
    "RetryConfig",
    "NO_RETRY",
    "calculate_delay",
    "retry_async",
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitState",
]
