"""
Tests for retry logic and circuit breaker.
"""

import pytest
import time
from genexchange.retry import (
    CircuitBreaker,
    CircuitOpenError,
    RetryError,
    exponential_backoff,
    is_transient_error,
    should_retry_http_status,
)


class TestExponentialBackoff:
    """Test exponential backoff decorator."""

    def test_success_on_first_try(self):
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def succeeds():
            call_count[0] += 1
            return "success"

        assert succeeds() == "success"
        assert call_count[0] == 1

    def test_retry_then_succeed(self):
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def fails_twice():
            call_count[0] += 1
            if call_count[0] < 3:
                raise ConnectionError("Temporary failure")
            return "success"

        assert fails_twice() == "success"
        assert call_count[0] == 3

    def test_all_retries_exhausted(self):
        call_count = [0]

        @exponential_backoff(max_retries=2, base_delay=0.01)
        def always_fails():
            call_count[0] += 1
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc_info:
            always_fails()

        assert call_count[0] == 3  # Initial + 2 retries
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_only_catches_specified_exceptions(self):
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01, exceptions=(ConnectionError,))
        def raises_value_error():
            call_count[0] += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            raises_value_error()

        assert call_count[0] == 1

    def test_exponential_delay(self):
        delays = []

        @exponential_backoff(
            max_retries=3,
            base_delay=0.01,
            exponential_base=2.0,
            on_retry=lambda attempt, exc, delay: delays.append(delay),
        )
        def always_fails():
            raise ConnectionError("Test")

        with pytest.raises(RetryError):
            always_fails()

        assert delays == [0.01, 0.02, 0.04]

    def test_max_delay_cap(self, monkeypatch):
        monkeypatch.setattr("genexchange.retry.time.sleep", lambda s: None)
        delays = []

        @exponential_backoff(
            max_retries=5,
            base_delay=1.0,
            max_delay=2.0,
            exponential_base=3.0,
            on_retry=lambda attempt, exc, delay: delays.append(delay),
        )
        def always_fails():
            raise ConnectionError("Test")

        with pytest.raises(RetryError):
            always_fails()

        assert delays[0] == 1.0
        assert all(d <= 2.0 for d in delays)


class TestCircuitBreaker:
    """Test circuit breaker pattern."""

    def test_closed_state_allows_calls(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=1)

        assert breaker.call(lambda: "success") == "success"
        assert breaker.state == CircuitBreaker.CLOSED

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=1)

        def failing_func():
            raise ConnectionError("Test failure")

        for _ in range(3):
            with pytest.raises(ConnectionError):
                breaker.call(failing_func)

        assert breaker.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitOpenError, match="Circuit breaker is OPEN"):
            breaker.call(failing_func)

    def test_closes_on_success_in_half_open(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0.1)
        call_count = [0]

        def sometimes_fails():
            call_count[0] += 1
            if call_count[0] <= 2:
                raise ConnectionError("Fail")
            return "success"

        for _ in range(2):
            with pytest.raises(ConnectionError):
                breaker.call(sometimes_fails)
        assert breaker.state == CircuitBreaker.OPEN

        time.sleep(0.15)
        assert breaker.call(sometimes_fails) == "success"
        assert breaker.state == CircuitBreaker.CLOSED

    def test_failure_in_half_open_reopens(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=0.1)

        def failing_func():
            raise ConnectionError("Fail")

        for _ in range(3):
            with pytest.raises(ConnectionError):
                breaker.call(failing_func)

        time.sleep(0.15)
        with pytest.raises(ConnectionError):
            breaker.call(failing_func)

        assert breaker.state == CircuitBreaker.OPEN

    def test_unexpected_exception_not_counted(self):
        breaker = CircuitBreaker(failure_threshold=1, expected_exception=ConnectionError)

        def bad_input():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            breaker.call(bad_input)

        assert breaker.state == CircuitBreaker.CLOSED

    def test_manual_reset(self):
        breaker = CircuitBreaker(failure_threshold=2)

        def failing_func():
            raise ConnectionError("Test")

        for _ in range(2):
            with pytest.raises(ConnectionError):
                breaker.call(failing_func)

        breaker.reset()
        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.failure_count == 0


class TestTransientErrorDetection:
    """Test transient error detection utilities."""

    def test_detects_timeouts_and_connection_drops(self):
        assert is_transient_error(ConnectionError("Connection timeout"))
        assert is_transient_error(Exception("Connection reset by peer"))
        assert is_transient_error(Exception("Read timed out"))

    def test_detects_locked_database(self):
        assert is_transient_error(Exception("(sqlite3.OperationalError) database is locked"))

    def test_detects_server_errors(self):
        for error in (Exception("503 Service Unavailable"), Exception("502 Bad Gateway"), Exception("429 Too Many Requests")):
            assert is_transient_error(error)

    def test_non_transient_errors(self):
        for error in (Exception("404 Not Found"), ValueError("Invalid data"), Exception("no such table: profiles")):
            assert not is_transient_error(error)

    def test_http_status_retry_logic(self):
        for code in (408, 429, 500, 502, 503, 504):
            assert should_retry_http_status(code)
        for code in (200, 400, 401, 403, 404):
            assert not should_retry_http_status(code)
