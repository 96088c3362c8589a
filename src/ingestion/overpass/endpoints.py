"""
Overpass endpoint lists.
"""

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Endpoint:
    """One address of the query service; lower priority is tried first."""

    url: str
    priority: int = 0

    @classmethod
    def parse_list(cls, value: str | Iterable[str]) -> list["Endpoint"]:
        """
        Build endpoints from a comma-separated string or a list of URLs.

        Priority follows the given order.
        """
        if isinstance(value, str):
            value = value.split(",")
        urls = [url.strip() for url in value if url and url.strip()]
        return [cls(url=url, priority=i) for i, url in enumerate(urls)]


def order_endpoints(endpoints: Iterable[Endpoint | str]) -> list[Endpoint]:
    """Sort by priority, keeping the given order for equal priorities."""
    normalized = [
        endpoint if isinstance(endpoint, Endpoint) else Endpoint(url=endpoint, priority=i)
        for i, endpoint in enumerate(endpoints)
    ]
    return sorted(normalized, key=lambda endpoint: endpoint.priority)
