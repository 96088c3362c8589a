"""
Unit tests for retry logic with backoff

Tests verify:
- Backoff calculation and jitter
- Exception filtering by type and by predicate
- Retry callbacks
- Network-specific retry decisions
"""

import pytest
from unittest.mock import Mock, patch

import requests

from utils.retry import (
    call_with_retries,
    compute_delay,
    is_retryable_network_exception,
    retry_with_backoff,
)


def http_error(status_code: int) -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status_code
    return requests.HTTPError(f"HTTP {status_code}", response=response)


class TestComputeDelay:
    """Test compute_delay()"""

    def test_fixed_delay(self):
        """Test a multiplier of 1 keeps the delay fixed"""
        assert [compute_delay(a, 5.0) for a in (1, 2, 3)] == [5.0, 5.0, 5.0]

    def test_growing_delay(self):
        """Test the delay grows with the multiplier"""
        assert compute_delay(1, 20.0, 1.5) == 20.0
        assert compute_delay(2, 20.0, 1.5) == 30.0
        assert compute_delay(3, 20.0, 1.5) == 45.0

    def test_max_delay(self):
        """Test the delay is capped"""
        assert compute_delay(10, 1.0, 2.0, max_delay=60.0) == 60.0

    def test_jitter_bounds(self):
        """Test jitter stays within 25% and above 0.1s"""
        for _ in range(50):
            assert 7.5 <= compute_delay(1, 10.0, jitter=True) <= 12.5
            assert compute_delay(1, 0.1, jitter=True) >= 0.1

    def test_zero_delay(self):
        """Test zero stays zero with jitter"""
        assert compute_delay(1, 0.0, jitter=True) == 0.0


class TestCallWithRetries:
    """Test call_with_retries()"""

    def test_attempt_count(self):
        """Test func is called exactly attempts times before giving up"""
        func = Mock(side_effect=RuntimeError("down"))
        sleep = Mock()

        with pytest.raises(RuntimeError, match="down"):
            call_with_retries(func, attempts=4, delay=5.0, sleep=sleep)

        assert func.call_count == 4
        assert [c.args[0] for c in sleep.call_args_list] == [5.0, 5.0, 5.0]

    def test_should_retry_stops_early(self):
        """Test a rejected exception is raised without further attempts"""
        func = Mock(side_effect=[RuntimeError("transient"), KeyError("fatal"), "never"])
        sleep = Mock()

        with pytest.raises(KeyError):
            call_with_retries(
                func,
                attempts=3,
                should_retry=lambda e: isinstance(e, RuntimeError),
                sleep=sleep,
            )

        assert func.call_count == 2
        assert sleep.call_count == 1

    def test_zero_delay_does_not_sleep(self):
        """Test no sleep call when the delay is zero"""
        sleep = Mock()

        assert call_with_retries(Mock(side_effect=[OSError(), "ok"]), attempts=2, sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_invalid_attempts(self):
        """Test attempts must be at least 1"""
        with pytest.raises(ValueError):
            call_with_retries(Mock(), attempts=0)


class TestRetryWithBackoff:
    """Test retry_with_backoff decorator"""

    def test_success_on_first_attempt(self):
        """Test function succeeds on first attempt without retries"""
        mock_func = Mock(return_value="success")
        decorated = retry_with_backoff(max_retries=3)(mock_func)

        result = decorated()

        assert result == "success"
        assert mock_func.call_count == 1

    def test_success_after_retries(self):
        """Test function succeeds after transient failures"""
        mock_func = Mock(side_effect=[
            ConnectionError("Connection failed"),
            ConnectionError("Connection failed"),
            "success"
        ])

        with patch('time.sleep'):
            decorated = retry_with_backoff(max_retries=3)(mock_func)
            result = decorated()

        assert result == "success"
        assert mock_func.call_count == 3

    def test_max_retries_exceeded(self):
        """Test function fails after max retries exceeded"""
        mock_func = Mock(side_effect=ConnectionError("Persistent error"))

        with patch('time.sleep'):
            decorated = retry_with_backoff(max_retries=2)(mock_func)

            with pytest.raises(ConnectionError, match="Persistent error"):
                decorated()

        # Called 3 times: initial + 2 retries
        assert mock_func.call_count == 3

    def test_exponential_backoff_timing(self):
        """Test exponential backoff delays increase correctly"""
        mock_func = Mock(side_effect=[
            TimeoutError("Timeout"),
            TimeoutError("Timeout"),
            "success"
        ])

        with patch('time.sleep') as mock_sleep:
            decorated = retry_with_backoff(
                max_retries=2,
                base_delay=1.0,
                exponential_base=2.0,
                jitter=False
            )(mock_func)

            result = decorated()

            assert result == "success"
            delays = [call_args[0][0] for call_args in mock_sleep.call_args_list]
            assert delays == [1.0, 2.0]

    def test_max_delay_cap(self):
        """Test delay is capped at max_delay"""
        mock_func = Mock(side_effect=[
            TimeoutError("Timeout"),
            TimeoutError("Timeout"),
            "success"
        ])

        with patch('time.sleep') as mock_sleep:
            decorated = retry_with_backoff(
                max_retries=5,
                base_delay=10.0,
                max_delay=15.0,
                exponential_base=2.0,
                jitter=False
            )(mock_func)

            decorated()

            delays = [call_args[0][0] for call_args in mock_sleep.call_args_list]
            assert delays == [10.0, 15.0]

    def test_retryable_exceptions_filter(self):
        """Test only specified exceptions are retried"""
        mock_func = Mock(side_effect=ValueError("Not retryable"))
        decorated = retry_with_backoff(
            max_retries=3,
            retryable_exceptions=(ConnectionError, TimeoutError)
        )(mock_func)

        with pytest.raises(ValueError, match="Not retryable"):
            decorated()

        assert mock_func.call_count == 1

    def test_retry_if_predicate(self):
        """Test retry_if decides instead of the exception types"""
        mock_func = Mock(side_effect=[ValueError("retry me"), ValueError("stop")])

        with patch('time.sleep'):
            decorated = retry_with_backoff(
                max_retries=3,
                retryable_exceptions=(ConnectionError,),
                retry_if=lambda e: str(e) == "retry me",
            )(mock_func)

            with pytest.raises(ValueError, match="stop"):
                decorated()

        assert mock_func.call_count == 2

    def test_on_retry_callback_called(self):
        """Test on_retry callback is called for each retry"""
        mock_callback = Mock()
        mock_func = Mock(side_effect=[
            ConnectionError("Error 1"),
            ConnectionError("Error 2"),
            "success"
        ])

        with patch('time.sleep'):
            decorated = retry_with_backoff(
                max_retries=3,
                on_retry=mock_callback
            )(mock_func)

            result = decorated()

        assert result == "success"
        assert mock_callback.call_count == 2

        first_call = mock_callback.call_args_list[0][0]
        assert first_call[0] == 1
        assert isinstance(first_call[1], ConnectionError)
        assert isinstance(first_call[2], float)

    def test_on_retry_callback_exception_handled(self):
        """Test exception in callback doesn't break retry logic"""
        mock_callback = Mock(side_effect=Exception("Callback error"))
        mock_func = Mock(side_effect=[
            ConnectionError("Error"),
            "success"
        ])

        with patch('time.sleep'):
            decorated = retry_with_backoff(
                max_retries=2,
                on_retry=mock_callback
            )(mock_func)

            assert decorated() == "success"

    def test_function_with_arguments(self):
        """Test retry passes positional and keyword arguments through"""
        calls = []

        def fetch(url, timeout=10):
            calls.append((url, timeout))
            if len(calls) == 1:
                raise ConnectionError("Error")
            return f"{url} in {timeout}s"

        with patch('time.sleep'):
            decorated = retry_with_backoff(max_retries=2)(fetch)
            result = decorated("https://example.org", timeout=60)

        assert result == "https://example.org in 60s"
        assert calls == [("https://example.org", 60)] * 2

    def test_preserves_function_metadata(self):
        """Test decorator preserves function name and docstring"""
        @retry_with_backoff(max_retries=3)
        def fetch_dump():
            """Fetch the notes dump"""
            return "result"

        assert fetch_dump.__name__ == "fetch_dump"
        assert fetch_dump.__doc__ == "Fetch the notes dump"


class TestIsRetryableNetworkException:
    """Test is_retryable_network_exception()"""

    def test_connection_and_timeout(self):
        """Test connection problems are retryable"""
        assert is_retryable_network_exception(requests.ConnectionError("refused")) is True
        assert is_retryable_network_exception(requests.Timeout("slow")) is True

    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
    def test_transient_http_errors(self, status_code):
        """Test throttling and server errors are retryable"""
        assert is_retryable_network_exception(http_error(status_code)) is True

    @pytest.mark.parametrize("status_code", [400, 403, 404])
    def test_client_http_errors(self, status_code):
        """Test client errors are not retryable"""
        assert is_retryable_network_exception(http_error(status_code)) is False

    def test_http_error_without_response(self):
        """Test an HTTP error without a response is retryable"""
        assert is_retryable_network_exception(requests.HTTPError("no response")) is True

    def test_other_exceptions(self):
        """Test unrelated exceptions are not retryable"""
        assert is_retryable_network_exception(ValueError("bad input")) is False
