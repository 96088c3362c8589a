"""
HTTP download of notes dumps and API answers.
"""

import logging
import os
from pathlib import Path

import requests

from utils.retry import is_retryable_network_exception, retry_with_backoff
from utils.tracing import add_span_attributes, trace_operation

from .errors import InvalidResponseError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
USER_AGENT = "OSM-Notes-Ingestion/1.0"


def _retryable_download_error(exc: Exception) -> bool:
    return isinstance(exc, InvalidResponseError) or is_retryable_network_exception(exc)


@retry_with_backoff(max_retries=3, base_delay=5.0, max_delay=120.0, retry_if=_retryable_download_error)
def download_file(
    url: str,
    destination: str | os.PathLike,
    timeout: float = 300,
    session: requests.Session | None = None,
) -> Path:
    """
    Stream a remote file to disk.

    The body is written to a temporary sibling and renamed once complete, so
    a failed transfer never leaves a truncated file at the destination.

    Returns:
        Path of the downloaded file

    Raises:
        InvalidResponseError: If the server answered with an empty body
        requests.HTTPError: For non-retryable HTTP errors
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    http = session or requests

    with trace_operation("download_file", url=url):
        written = 0
        with http.get(url, stream=True, timeout=timeout, headers={"User-Agent": USER_AGENT}) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)

        if written == 0:
            partial.unlink(missing_ok=True)
            raise InvalidResponseError(f"Empty download from {url}")

        partial.replace(destination)
        add_span_attributes(bytes_written=written)

    logger.info(f"Downloaded {url} -> {destination} ({written} bytes)")
    return destination
