"""
Tests for retry utilities.

Tests cover:
- RetryConfig defaults
- Delay calculation (exponential backoff, cap, jitter)
- retry_async success, exhaustion and non-retryable errors
"""

from unittest.mock import AsyncMock, patch

import pytest

from freeforhumans.errors import RpcError, ValidationError
from freeforhumans.utils.retry import NO_RETRY, RetryConfig, calculate_delay, retry_async

FAST = RetryConfig(max_attempts=3, base_delay_ms=1, jitter=False, retryable_errors=(RpcError,))


# =============================================================================
# RetryConfig Tests
# =============================================================================


class TestRetryConfig:
    """Tests for RetryConfig dataclass."""

    def test_defaults(self) -> None:
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.base_delay_ms == 250
        assert config.max_delay_ms == 5000
        assert config.jitter is True
        assert config.retryable_errors == (Exception,)

    def test_no_retry(self) -> None:
        assert NO_RETRY.max_attempts == 1


# =============================================================================
# Delay Calculation Tests
# =============================================================================


class TestCalculateDelay:
    """Tests for calculate_delay function."""

    def test_exponential_growth(self) -> None:
        config = RetryConfig(base_delay_ms=100, jitter=False)

        assert calculate_delay(0, config) == pytest.approx(0.1)
        assert calculate_delay(1, config) == pytest.approx(0.2)
        assert calculate_delay(2, config) == pytest.approx(0.4)

    def test_capped(self) -> None:
        config = RetryConfig(base_delay_ms=1000, max_delay_ms=1500, jitter=False)

        assert calculate_delay(5, config) == pytest.approx(1.5)

    def test_jitter_within_bounds(self) -> None:
        config = RetryConfig(base_delay_ms=100, jitter=True)

        for _ in range(20):
            assert 0 <= calculate_delay(1, config) <= 0.2


# =============================================================================
# retry_async Tests
# =============================================================================


class TestRetryAsync:
    """Tests for retry_async function."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self) -> None:
        fn = AsyncMock(return_value=42)

        assert await retry_async(fn, FAST) == 42
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        fn = AsyncMock(side_effect=[RpcError("flaky"), RpcError("flaky"), "ok"])

        assert await retry_async(fn, FAST, operation="getCampaign@8453") == "ok"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self) -> None:
        fn = AsyncMock(side_effect=[RpcError("first"), RpcError("second"), RpcError("third")])

        with pytest.raises(RpcError, match="third"):
            await retry_async(fn, FAST)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self) -> None:
        fn = AsyncMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            await retry_async(fn, FAST)
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self) -> None:
        fn = AsyncMock(side_effect=[RpcError("flaky"), "ok"])
        config = RetryConfig(max_attempts=2, base_delay_ms=500, jitter=False, retryable_errors=(RpcError,))

        with patch("freeforhumans.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_async(fn, config)

        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_retry_logged(self, caplog) -> None:
        fn = AsyncMock(side_effect=[RpcError("flaky"), "ok"])

        await retry_async(fn, FAST, operation="nextCampaignId@480")

        assert "Retrying after transient failure" in caplog.text
