"""
Tests for retry and timeout utilities.
"""

import asyncio

import pytest


class TestRetryAsync:
    """Test retry_async."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Test a transient failure is retried."""
        from autobrowse.utils.retry import RetryConfig, retry_async
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "ok"

        config = RetryConfig(max_attempts=3, initial_delay_ms=1)
        assert await retry_async(flaky, config) == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_raises_last_error(self):
        """Test the last exception surfaces after the final attempt."""
        from autobrowse.utils.retry import RetryConfig, retry_async

        async def broken():
            raise ConnectionError("still down")

        with pytest.raises(ConnectionError, match="still down"):
            await retry_async(broken, RetryConfig(max_attempts=2, initial_delay_ms=1))

    @pytest.mark.asyncio
    async def test_should_retry_predicate_stops(self):
        """Test a rejected exception is raised immediately."""
        from autobrowse.utils.retry import RetryConfig, retry_async
        calls = []

        async def fatal():
            calls.append(1)
            raise ValueError("bad key")

        config = RetryConfig(max_attempts=5, initial_delay_ms=1, should_retry=lambda e: False)
        with pytest.raises(ValueError):
            await retry_async(fatal, config)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """Test on_retry is told the attempt number."""
        from autobrowse.utils.retry import RetryConfig, retry_async
        seen = []

        async def broken():
            raise TimeoutError("slow")

        config = RetryConfig(max_attempts=3, initial_delay_ms=1, on_retry=lambda n, e: seen.append(n))
        with pytest.raises(TimeoutError):
            await retry_async(broken, config)
        assert seen == [1, 2]


class TestTimeouts:
    """Test with_timeout and helpers."""

    @pytest.mark.asyncio
    async def test_with_timeout_message(self):
        """Test the custom timeout message."""
        from autobrowse.utils.retry import with_timeout
        with pytest.raises(asyncio.TimeoutError, match="took too long"):
            await with_timeout(asyncio.sleep(1), 0.01, "took too long")

    @pytest.mark.asyncio
    async def test_with_timeout_returns_value(self):
        """Test a fast coroutine returns normally."""
        from autobrowse.utils.retry import with_timeout

        async def quick():
            return "done"

        assert await with_timeout(quick(), 1) == "done"

    def test_clamp(self):
        """Test clamp bounds."""
        from autobrowse.utils.retry import clamp
        assert clamp(5, 1, 3) == 3
        assert clamp(-1, 0, 3) == 0
        assert clamp(2, 0, 3) == 2

    def test_now_ms(self):
        """Test epoch milliseconds are plausible."""
        from autobrowse.utils.retry import now_ms
        assert now_ms() > 1_600_000_000_000
