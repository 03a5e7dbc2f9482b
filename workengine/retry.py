"""
Retry and circuit-breaking for relationship store reads.

A remote relationship store can time out or drop connections. Reads are
retried with exponential backoff, and a circuit breaker stops hammering a
store that keeps failing so resolutions fall through to later rules quickly.
"""

import functools
import time
from datetime import datetime
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


class CircuitOpenError(Exception):
    """Raised when the circuit breaker refuses a call."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator for retrying a read with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Multiplier applied to the delay after each retry
        exceptions: Exception types that trigger a retry; others propagate
        on_retry: Optional callback(attempt, exception, delay)
        sleep: Sleep function (tests pass a no-op)

    Example:
        @exponential_backoff(max_retries=2, exceptions=(requests.Timeout,))
        def fetch_rows(url):
            return requests.get(url, timeout=5)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {e}"
                        ) from e
                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    sleep(current_delay)
                    delay *= exponential_base
            raise RetryError("Retry loop exited without a result")

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Circuit breaker in front of a relationship store.

    States:
    - CLOSED: calls pass through
    - OPEN: too many consecutive failures, calls are refused
    - HALF_OPEN: recovery timeout elapsed, the next call is a probe
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exception: Type[Exception] = Exception,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = self.CLOSED

    def call(self, func: Callable, *args, **kwargs):
        """
        Execute ``func`` under breaker protection.

        Raises:
            CircuitOpenError: If the circuit is OPEN
            Original exception: If ``func`` fails while CLOSED/HALF_OPEN
        """
        if self.state == self.OPEN:
            if self._recovery_elapsed():
                self.state = self.HALF_OPEN
            else:
                raise CircuitOpenError(
                    f"Relationship store circuit is open; retry after "
                    f"{self._seconds_until_probe():.0f}s"
                )

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _recovery_elapsed(self) -> bool:
        if self.last_failure_time is None:
            return True
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return elapsed >= self.recovery_timeout

    def _seconds_until_probe(self) -> float:
        if self.last_failure_time is None:
            return 0
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return max(0, self.recovery_timeout - elapsed)

    def _on_success(self):
        self.failure_count = 0
        self.state = self.CLOSED

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now()
        # A failed probe reopens immediately.
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN

    def reset(self):
        """Manually close the circuit."""
        self.failure_count = 0
        self.last_failure_time = None
        self.state = self.CLOSED


def is_transient_error(exception: Exception) -> bool:
    """
    Guess whether a failed read is worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True for timeouts, dropped connections, 5xx and rate limiting
    """
    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True

    error_str = str(exception).lower()
    transient_keywords = [
        'timeout',
        'timed out',
        'connection',
        'temporarily unavailable',
        'service unavailable',
        '429',
        '500',
        '502',
        '503',
        '504',
    ]
    return any(keyword in error_str for keyword in transient_keywords)


def should_retry_http_status(status_code: int) -> bool:
    """Whether a relationship store HTTP status is retryable."""
    return status_code in {408, 429, 500, 502, 503, 504}
