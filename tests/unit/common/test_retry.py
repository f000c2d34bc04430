"""
재시도 유틸리티 테스트
"""

from unittest.mock import AsyncMock, patch

import pytest

from tourist_safety.common.retry import backoff_delay, retry_with_backoff


class TestBackoffDelay:
    """지수 백오프 계산 테스트"""

    @pytest.mark.parametrize("attempt,expected", [(1, 0.5), (2, 1.0), (3, 2.0), (4, 4.0), (10, 8.0)])
    def test_doubles_until_cap(self, attempt, expected):
        assert backoff_delay(attempt, 0.5, 8.0) == expected

    def test_attempt_zero_uses_base(self):
        assert backoff_delay(0, 1.0, 60.0) == 1.0


class TestRetryWithBackoff:
    """retry_with_backoff 테스트"""

    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")
        assert await retry_with_backoff(func, max_retries=3) == "ok"
        assert func.await_count == 1

    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[ConnectionError("x"), ConnectionError("y"), "ok"])
        with patch("tourist_safety.common.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, max_retries=3, base_delay=1.0, jitter=False)
        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_raises_after_max_retries(self):
        func = AsyncMock(side_effect=TimeoutError("timeout"))
        with patch("tourist_safety.common.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(TimeoutError):
                await retry_with_backoff(func, max_retries=2, retry_on=(TimeoutError,))
        assert func.await_count == 3

    async def test_non_retryable_error_propagates_immediately(self):
        func = AsyncMock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            await retry_with_backoff(func, max_retries=5, retry_on=(ConnectionError,))
        assert func.await_count == 1

    async def test_jitter_keeps_delay_within_half(self):
        func = AsyncMock(side_effect=[ConnectionError("x"), "ok"])
        with patch("tourist_safety.common.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_backoff(func, max_retries=1, base_delay=2.0, jitter=True)
        delay = sleep.await_args_list[0].args[0]
        assert 1.0 <= delay <= 2.0
