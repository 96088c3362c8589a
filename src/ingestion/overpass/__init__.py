"""
Overpass API access with endpoint failover and backoff.

Usage:
    from ingestion.overpass import Endpoint, RetryingClient

    client = RetryingClient(settings)
    response = client.query(
        "[out:json];relation[admin_level=2];out ids;",
        Endpoint.parse_list("https://overpass-api.de/api/interpreter"),
        retries_per_endpoint=7,
        backoff_seconds=20,
    )
"""

from .client import OverpassTransport, RetryingClient, has_elements
from .endpoints import Endpoint, order_endpoints

__all__ = [
    "Endpoint",
    "OverpassTransport",
    "RetryingClient",
    "has_elements",
    "order_endpoints",
]
