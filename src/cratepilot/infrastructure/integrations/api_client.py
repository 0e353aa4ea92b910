"""Authenticated, rate-governed HTTP client for source APIs."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from cratepilot.domain.entities import ApiConfig, RequestCounters
from cratepilot.domain.exceptions import ConfigurationError, RequestError
from cratepilot.infrastructure.rate_limiter import RateGovernor

logger = logging.getLogger(__name__)

AuthHeadersProvider = Callable[[], Awaitable[dict[str, str]]]

# Methods that never carry a body - no Content-Type for these
_BODYLESS_METHODS = frozenset({"GET", "HEAD"})


class SourceApiClient:
    """HTTP client for one source API with pacing, auth and request counting."""

    # Hey future me, this init is deceptively simple - we DON'T create the httpx client here
    # because we need to be async-friendly. The actual client gets lazy-loaded in _get_client().
    # The counters are NOT ours - they belong to the importer that created us, we just bump them.
    def __init__(
        self,
        config: ApiConfig,
        counters: RequestCounters,
        governor: RateGovernor | None = None,
        auth_headers: AuthHeadersProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: API configuration (base URL, credentials, rate limit)
            counters: Request counters owned by the importer
            governor: Rate governor, defaults to one built from config.rate_limit
            auth_headers: Source hook overriding the default Authorization header
            transport: Custom httpx transport (tests use httpx.MockTransport)
            timeout: Request timeout in seconds

        Raises:
            ConfigurationError: If the base URL is empty
        """
        if not config.base_url or not config.base_url.strip():
            raise ConfigurationError("API base URL must not be empty")

        self.config = config
        self.counters = counters
        self.governor = governor or RateGovernor(config=config.rate_limit)
        self._auth_headers = auth_headers
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    # Hey, close() is IMPORTANT - if you don't call it, you'll leak connections. The importer
    # calls this from its own close() / __aexit__.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_url(self, endpoint: str) -> str:
        """Join base URL and endpoint; absolute URLs pass through (pagination 'next' links)."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def build_headers(self, method: str) -> dict[str, str]:
        """Auth headers plus Content-Type for methods that carry a body."""
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self._auth_headers is not None:
            headers.update(await self._auth_headers())
        if method not in _BODYLESS_METHODS:
            headers["Content-Type"] = "application/json"
        return headers

    # Hey future me - ALL source API calls go through here!
    # - Rate governor wait before EVERY attempt (retries included)
    # - Counter + timestamp bumped on EVERY attempt, success or failure
    # - 429 is retried up to config.rate_limit.retry_attempts times, honoring Retry-After
    # - Everything else non-2xx raises RequestError and is NOT caught here. Whether that kills
    #   the whole import or just one record is the importer's call, not ours.
    # The timestamp is stamped AFTER the response arrives. Slow responses then can't make two
    # request starts closer than the interval.
    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a governed, authenticated request and decode the JSON response.

        Args:
            endpoint: Path relative to the base URL (or an absolute URL)
            method: HTTP method
            body: JSON body for POST/PUT/PATCH
            params: Query parameters

        Returns:
            Decoded JSON, or None for empty responses

        Raises:
            RequestError: On non-success status or transport failure
        """
        method = method.upper()
        url = self.build_url(endpoint)
        headers = await self.build_headers(method)
        client = await self._get_client()
        max_retries = self.governor.retry_attempts

        attempt = 0
        while True:
            await self.governor.wait(self.counters)
            try:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=body if method not in _BODYLESS_METHODS else None,
                    headers=headers,
                )
            except httpx.TransportError as e:
                self.counters.record_request(self.governor.now())
                logger.error(f"{method} {url} failed: {e.__class__.__name__}: {e}")
                raise RequestError(None, str(e) or e.__class__.__name__, url) from e

            self.counters.record_request(self.governor.now())

            if response.status_code == 429 and attempt < max_retries:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                delay = self.governor.retry_delay(attempt, retry_after)
                logger.warning(
                    f"429 Rate Limit (attempt {attempt + 1}/{max_retries}): "
                    f"waiting {delay:.1f}s, retrying {url}"
                )
                await self.governor.sleep(delay)
                attempt += 1
                continue

            if not response.is_success:
                logger.error(
                    f"{method} {url} failed: {response.status_code} {response.reason_phrase}"
                )
                raise RequestError(response.status_code, response.reason_phrase, url)

            if response.status_code == 204 or not response.content:
                return None
            return response.json()


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds; HTTP-date values are ignored (backoff kicks in instead)."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


__all__ = ["AuthHeadersProvider", "SourceApiClient"]
