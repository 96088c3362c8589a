"""
Overpass API client with multi-endpoint failover.

Each endpoint is tried up to retries_per_endpoint times with a growing
backoff before the client moves on to the next endpoint. A response that is
empty or lacks the expected structure counts as a failed attempt. When every
endpoint is exhausted the caller gets an ExhaustedError and is expected to
fall back to backup data.
"""

import logging
import time
from typing import Any, Callable, Iterable

import requests
from opentelemetry import trace
from prometheus_client import Counter

from ingestion.config import OverpassSettings
from ingestion.errors import ExhaustedError, InvalidResponseError
from utils.metrics import get_or_create_metric
from utils.retry import call_with_retries
from utils.tracing import add_span_attributes, add_span_event, trace_operation

from .endpoints import Endpoint, order_endpoints

logger = logging.getLogger(__name__)

Transport = Callable[[Endpoint, Any], Any]

QUERY_ATTEMPTS = get_or_create_metric(
    lambda: Counter(
        "overpass_query_attempts_total",
        "Overpass query attempts",
        ["endpoint", "status"],  # success, failed
    ),
    "overpass_query_attempts_total",
)

ENDPOINTS_EXHAUSTED = get_or_create_metric(
    lambda: Counter(
        "overpass_endpoints_exhausted_total",
        "Endpoints that ran out of attempts during a query",
        ["endpoint"],
    ),
    "overpass_endpoints_exhausted_total",
)


class _DeadlineReached(Exception):
    """The caller's time budget ran out before the next attempt."""


def has_elements(response: Any) -> bool:
    """An Overpass JSON answer is an object with an 'elements' list."""
    return isinstance(response, dict) and isinstance(response.get("elements"), list)


class OverpassTransport:
    """POSTs an Overpass QL query and decodes the JSON answer."""

    def __init__(
        self,
        timeout_seconds: float = 300.0,
        user_agent: str = "OSM-Notes-Ingestion/1.0",
        session: requests.Session | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def __call__(self, endpoint: Endpoint, request: str) -> Any:
        response = self.session.post(
            endpoint.url,
            data={"data": request},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()

        if not response.content or not response.content.strip():
            raise InvalidResponseError(f"Empty response body from {endpoint.url}")

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(f"Response from {endpoint.url} is not JSON: {e}") from e


class RetryingClient:
    """
    Sends queries to the first endpoint that answers correctly.

    Args:
        settings: Default endpoints, retry counts and backoff
        transport: Callable(endpoint, request) -> decoded response
            (default: OverpassTransport built from settings)
        validator: Predicate a response must satisfy (default: has_elements)
        sleep: Sleep function, injectable for tests
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        settings: OverpassSettings | None = None,
        transport: Transport | None = None,
        validator: Callable[[Any], bool] = has_elements,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or OverpassSettings()
        self.transport = transport or OverpassTransport(
            timeout_seconds=self.settings.timeout_seconds,
            user_agent=self.settings.user_agent,
        )
        self.validator = validator
        self._sleep = sleep
        self._clock = clock

    def query(
        self,
        request: Any,
        endpoints: Iterable[Endpoint | str] | None = None,
        retries_per_endpoint: int | None = None,
        backoff_seconds: float | None = None,
        deadline_seconds: float | None = None,
    ) -> Any:
        """
        Run a query with failover across endpoints.

        Args:
            request: Query passed to the transport (Overpass QL text)
            endpoints: Endpoints in priority order (default: settings)
            retries_per_endpoint: Attempts per endpoint (default: settings)
            backoff_seconds: First delay between attempts on one endpoint
            deadline_seconds: Overall time budget for the query
                (default: settings.deadline_seconds, None for no limit)

        Returns:
            The first valid response

        Raises:
            ValueError: If there are no endpoints or retries_per_endpoint < 1
            ExhaustedError: If every endpoint failed every attempt, or the
                deadline passed first
        """
        if endpoints is None:
            endpoints = Endpoint.parse_list(self.settings.endpoints)
        if retries_per_endpoint is None:
            retries_per_endpoint = self.settings.retries_per_endpoint
        if backoff_seconds is None:
            backoff_seconds = self.settings.backoff_seconds
        if deadline_seconds is None:
            deadline_seconds = self.settings.deadline_seconds

        ordered = order_endpoints(endpoints)
        if not ordered:
            raise ValueError("At least one endpoint is required")
        if retries_per_endpoint < 1:
            raise ValueError(f"retries_per_endpoint must be >= 1, got {retries_per_endpoint}")

        deadline_at = self._clock() + deadline_seconds if deadline_seconds is not None else None
        failures: dict[str, BaseException] = {}
        attempts = 0

        with trace_operation(
            "overpass_query",
            kind=trace.SpanKind.CLIENT,
            endpoint_count=len(ordered),
            retries_per_endpoint=retries_per_endpoint,
        ):
            for endpoint in ordered:
                if self._deadline_passed(deadline_at):
                    logger.warning(f"Deadline reached before trying {endpoint.url}")
                    break

                def attempt() -> Any:
                    nonlocal attempts
                    if self._deadline_passed(deadline_at):
                        raise _DeadlineReached()

                    attempts += 1
                    try:
                        response = self.transport(endpoint, request)
                        if not self.validator(response):
                            raise InvalidResponseError(
                                f"Invalid or empty response from {endpoint.url}"
                            )
                    except Exception as e:
                        failures[endpoint.url] = e
                        QUERY_ATTEMPTS.labels(endpoint=endpoint.url, status="failed").inc()
                        raise
                    QUERY_ATTEMPTS.labels(endpoint=endpoint.url, status="success").inc()
                    return response

                try:
                    response = call_with_retries(
                        attempt,
                        attempts=retries_per_endpoint,
                        delay=backoff_seconds,
                        backoff_multiplier=self.settings.backoff_multiplier,
                        should_retry=lambda exc: not self._deadline_passed(deadline_at),
                        sleep=lambda seconds: self._pause(seconds, deadline_at),
                        description=f"Overpass query on {endpoint.url}",
                    )
                except _DeadlineReached:
                    logger.warning(f"Deadline reached while retrying {endpoint.url}")
                    add_span_event("deadline_reached", endpoint=endpoint.url, attempts=attempts)
                    break
                except Exception as e:
                    ENDPOINTS_EXHAUSTED.labels(endpoint=endpoint.url).inc()
                    add_span_event("endpoint_exhausted", endpoint=endpoint.url, error=type(e).__name__)
                    logger.warning(f"✗ Endpoint {endpoint.url} gave up after an error: {e}")
                    continue

                add_span_attributes(endpoint=endpoint.url, attempts=attempts)
                logger.info(f"✓ Query answered by {endpoint.url} after {attempts} attempt(s)")
                return response

            add_span_attributes(
                attempts=attempts,
                exhausted=True,
                deadline_reached=self._deadline_passed(deadline_at),
            )

        logger.error(f"All {len(ordered)} endpoint(s) exhausted after {attempts} attempt(s)")
        raise ExhaustedError(failures, attempts)

    def _deadline_passed(self, deadline_at: float | None) -> bool:
        return deadline_at is not None and self._clock() >= deadline_at

    def _pause(self, seconds: float, deadline_at: float | None) -> None:
        if deadline_at is not None:
            seconds = max(0.0, min(seconds, deadline_at - self._clock()))
        if seconds > 0:
            self._sleep(seconds)
