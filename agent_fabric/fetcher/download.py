"""HTTP download operations with bounded retry."""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from agent_fabric.constants import (
    HTTP_TIMEOUT,
    MAX_RETRIES,
    RETRY_BACKOFF,
    RETRY_DELAY,
    USER_AGENT,
)
from agent_fabric.exceptions import NetworkError, OriginNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for network fetches.

    max_retries counts retries after the first attempt, so the default
    makes at most four requests.
    """

    max_retries: int = MAX_RETRIES
    delay: float = RETRY_DELAY
    backoff: float = RETRY_BACKOFF

    def delays(self) -> list[float]:
        """Sleep durations between consecutive attempts."""
        return [self.delay * (self.backoff ** i) for i in range(self.max_retries)]


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def create_client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the HTTP client used for every fetch."""
    return httpx.Client(
        follow_redirects=True,
        timeout=HTTP_TIMEOUT,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    )


def fetch_with_retry(
    client: httpx.Client,
    url: str,
    *,
    what: str,
    retry: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """GET a URL, retrying transient failures with exponential backoff.

    Args:
        client: HTTP client to use
        url: URL to fetch
        what: Human-readable label for error messages (e.g. "vercel/skills")
        retry: Retry policy, defaults to RetryConfig()
        sleep: Sleep function, injectable for tests
        headers: Extra request headers

    Returns:
        The successful response

    Raises:
        OriginNotFoundError: On HTTP 404, without retrying
        NetworkError: On other 4xx responses, or once retries are exhausted
    """
    retry = retry or RetryConfig()
    delays = retry.delays()
    last_error = ""

    for attempt in range(retry.max_retries + 1):
        try:
            response = client.get(url, headers=headers)
        except httpx.RequestError as e:
            last_error = f"Network error: {e}"
        else:
            if response.status_code == 404:
                raise OriginNotFoundError(f"'{what}' not found ({url} returned 404).")
            if response.is_success:
                return response
            if not _is_retryable_status(response.status_code):
                raise NetworkError(
                    f"Failed to fetch '{what}': HTTP {response.status_code} from {url}"
                )
            last_error = f"HTTP {response.status_code}"

        if attempt < retry.max_retries:
            logger.debug(
                "Fetch of %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                url,
                last_error,
                delays[attempt],
                attempt + 1,
                retry.max_retries,
            )
            sleep(delays[attempt])

    raise NetworkError(
        f"Failed to fetch '{what}' after {retry.max_retries + 1} attempts: {last_error}"
    )


def fetch_json(
    client: httpx.Client,
    url: str,
    *,
    what: str,
    retry: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Fetch and decode a JSON document with the same retry policy."""
    response = fetch_with_retry(
        client, url, what=what, retry=retry, sleep=sleep,
        headers={"Accept": "application/json"},
    )
    try:
        data = response.json()
    except ValueError as e:
        raise NetworkError(f"Invalid JSON from {url}: {e}")
    if not isinstance(data, dict):
        raise NetworkError(f"Unexpected response from {url}: expected a JSON object")
    return data
