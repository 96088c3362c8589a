"""
Retry primitives with backoff.

call_with_retries() is the single retry loop of the project. The worker pool
uses it with a fixed delay between unit attempts, the Overpass client uses it
with a growing delay per endpoint, and retry_with_backoff() wraps it as a
decorator for plain network calls such as dump downloads.

Usage:
    from utils.retry import call_with_retries, retry_with_backoff

    result = call_with_retries(fetch, attempts=3, delay=5.0)

    @retry_with_backoff(max_retries=3, base_delay=1.0)
    def download():
        ...
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_delay(
    attempt: int,
    base_delay: float,
    multiplier: float = 1.0,
    max_delay: Optional[float] = None,
    jitter: bool = False,
) -> float:
    """
    Delay to wait after the given (1-based) failed attempt.

    The delay is base_delay * multiplier ** (attempt - 1), capped at max_delay.
    With jitter the result moves randomly by up to 25% but never below 0.1s.
    """
    delay = base_delay * (multiplier ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)

    if jitter and delay > 0:
        jitter_amount = delay * 0.25
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))

    return max(0.0, delay)


def call_with_retries(
    func: Callable[[], T],
    attempts: int,
    delay: float = 0.0,
    backoff_multiplier: float = 1.0,
    max_delay: Optional[float] = None,
    jitter: bool = False,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
    description: Optional[str] = None,
) -> T:
    """
    Call func() until it succeeds or attempts run out.

    Args:
        func: Zero-argument callable to invoke
        attempts: Total number of calls allowed (>= 1)
        delay: Delay after the first failure in seconds
        backoff_multiplier: Factor applied to the delay after each failure
            (1.0 keeps the delay fixed)
        max_delay: Upper bound for a single delay
        jitter: Randomize each delay by up to 25%
        should_retry: Predicate deciding whether an exception is retryable
            (default: every exception is)
        on_retry: Callback(attempt, exception, delay) called before sleeping
        sleep: Sleep function (default: time.sleep)
        description: Name used in log messages

    Returns:
        The value returned by the first successful call

    Raises:
        ValueError: If attempts < 1
        Exception: The last exception raised by func, or the first
            non-retryable one
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    sleep = sleep or time.sleep
    name = description or getattr(func, "__name__", "function")

    for attempt in range(1, attempts + 1):
        try:
            return func()

        except Exception as e:
            if should_retry is not None and not should_retry(e):
                logger.error(f"Non-retryable exception in {name}: {type(e).__name__}: {e}")
                raise

            if attempt == attempts:
                logger.error(
                    f"Max attempts ({attempts}) exceeded for {name}: {type(e).__name__}: {e}"
                )
                raise

            wait = compute_delay(attempt, delay, backoff_multiplier, max_delay, jitter)

            logger.warning(
                f"Attempt {attempt}/{attempts} failed for {name}: "
                f"{type(e).__name__}: {e}. Retrying in {wait:.2f}s..."
            )

            if on_retry:
                try:
                    on_retry(attempt, e, wait)
                except Exception as callback_error:
                    logger.error(f"Error in retry callback: {callback_error}")

            if wait > 0:
                sleep(wait)

    raise RuntimeError(f"Unexpected exit from retry loop for {name}")


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    retry_if: Optional[Callable[[Exception], bool]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retries after the first call (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter (default: True)
        retryable_exceptions: Exception types to retry (default: all exceptions)
        on_retry: Callback function(attempt, exception, delay) called on each retry
        retry_if: Predicate deciding whether an exception is retried; takes
            precedence over retryable_exceptions

    Example:
        @retry_with_backoff(
            max_retries=5,
            retryable_exceptions=(requests.ConnectionError, requests.Timeout),
        )
        def fetch_dump(url):
            return requests.get(url, timeout=60)
    """
    should_retry = retry_if
    if should_retry is None and retryable_exceptions:
        def should_retry(exc: Exception) -> bool:
            return isinstance(exc, retryable_exceptions)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            return call_with_retries(
                lambda: func(*args, **kwargs),
                attempts=max_retries + 1,
                delay=base_delay,
                backoff_multiplier=exponential_base,
                max_delay=max_delay,
                jitter=jitter,
                should_retry=should_retry,
                on_retry=on_retry,
                description=getattr(func, "__name__", "function"),
            )

        return wrapper

    return decorator


def is_retryable_network_exception(exception: Exception) -> bool:
    """
    Determine if an HTTP exception is worth retrying

    Connection errors, timeouts, HTTP 429 and 5xx responses are transient.
    Other HTTP errors (404, 400, ...) are not.
    """
    if isinstance(exception, (requests.ConnectionError, requests.Timeout)):
        return True

    if isinstance(exception, requests.HTTPError):
        response = exception.response
        if response is None:
            return True
        return response.status_code == 429 or response.status_code >= 500

    return False
