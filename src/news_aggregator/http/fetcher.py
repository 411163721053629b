"""HTTP JSON client with a single attempt and a bounded timeout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; NewsAggregatorBot/0.1)"


@dataclass(slots=True)
class FetchResult:
    """Result of an HTTP JSON fetch operation."""

    url: str
    status_code: int
    payload: Any
    is_success: bool
    error: str | None = None


class HttpFetcher:
    """httpx client wrapper: one attempt per request, no retries, fixed timeout."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        base_headers = {"User-Agent": user_agent, "Accept": "application/json"}
        if headers:
            base_headers.update(headers)
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds)),
            headers=base_headers,
            transport=transport or httpx.HTTPTransport(retries=0),
            follow_redirects=True,
        )

    def get_json(self, url: str, params: dict[str, Any] | None = None) -> FetchResult:
        """GET a JSON document, returning a structured result instead of raising."""

        try:
            response = self._client.get(url, params=params)
        except httpx.TimeoutException:
            logger.warning("Timeout fetching %s", url)
            return FetchResult(url=url, status_code=0, payload=None, is_success=False, error="timeout")
        except httpx.HTTPError as exc:
            logger.warning("HTTP error fetching %s: %s", url, exc)
            return FetchResult(url=url, status_code=0, payload=None, is_success=False, error=str(exc))

        if not response.is_success:
            logger.warning("HTTP GET %s failed with status %s", url, response.status_code)
            return FetchResult(
                url=url,
                status_code=response.status_code,
                payload=None,
                is_success=False,
                error=f"HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Invalid JSON from %s: %s", url, exc)
            return FetchResult(
                url=url,
                status_code=response.status_code,
                payload=None,
                is_success=False,
                error="invalid JSON response",
            )
        return FetchResult(
            url=url,
            status_code=response.status_code,
            payload=payload,
            is_success=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
