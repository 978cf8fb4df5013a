"""Tests for retry utilities."""

from unittest.mock import Mock

import pytest

from milesync.sync.retry import (
    RetryConfig,
    RetryExhausted,
    backoff_delay,
    retry_with_backoff,
)


class TestBackoffDelay:
    """Tests for backoff_delay()."""

    def test_doubles_after_each_failure(self):
        """Test 2s, 4s, 8s without jitter."""
        assert backoff_delay(1) == 2.0
        assert backoff_delay(2) == 4.0
        assert backoff_delay(3) == 8.0

    def test_custom_base(self):
        """Test a different first wait."""
        assert backoff_delay(2, base_delay=0.5) == 1.0

    def test_jitter_stays_within_25_percent(self):
        """Test jitter bounds."""
        for _ in range(50):
            delay = backoff_delay(2, jitter=True)
            assert 3.0 <= delay <= 5.0


class TestRetryWithBackoff:
    """Tests for retry_with_backoff()."""

    def setup_method(self):
        """Set up test fixtures."""
        self.sleep = Mock()

    def test_success_first_try(self):
        """Test no sleeping when the first call succeeds."""
        func = Mock(return_value="ok")

        result = retry_with_backoff(func, sleep=self.sleep)

        assert result == "ok"
        assert func.call_count == 1
        self.sleep.assert_not_called()

    def test_fails_twice_then_succeeds(self):
        """Test three attempts with 2s then 4s waits."""
        func = Mock(side_effect=[OSError("down"), OSError("down"), "ok"])

        result = retry_with_backoff(func, sleep=self.sleep)

        assert result == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in self.sleep.call_args_list] == [2.0, 4.0]

    def test_exhausted(self):
        """Test RetryExhausted carries the attempt count and last error."""
        last = OSError("still down")
        func = Mock(side_effect=[OSError("down"), OSError("down"), last])

        with pytest.raises(RetryExhausted) as exc_info:
            retry_with_backoff(func, sleep=self.sleep)

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        # No wait after the final attempt
        assert self.sleep.call_count == 2

    def test_non_retryable_propagates(self):
        """Test exceptions outside retryable_exceptions are raised at once."""
        func = Mock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            retry_with_backoff(
                func, retryable_exceptions=(OSError,), sleep=self.sleep
            )

        assert func.call_count == 1
        self.sleep.assert_not_called()

    def test_on_retry_callback(self):
        """Test the callback sees attempt number, error and delay."""
        error = OSError("down")
        func = Mock(side_effect=[error, "ok"])
        on_retry = Mock()

        retry_with_backoff(func, on_retry=on_retry, sleep=self.sleep)

        on_retry.assert_called_once_with(1, error, 2.0)

    def test_single_attempt_config(self):
        """Test max_attempts=1 means no retries."""
        func = Mock(side_effect=OSError("down"))

        with pytest.raises(RetryExhausted):
            retry_with_backoff(func, config=RetryConfig(max_attempts=1), sleep=self.sleep)

        assert func.call_count == 1
        self.sleep.assert_not_called()
