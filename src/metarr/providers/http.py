# ABOUTME: Async HTTP client abstraction for provider API calls.
# ABOUTME: Provides rate limiting, status-code error mapping, and injectable transport for testing.

import asyncio
import logging
import time
from email.utils import parsedate_to_datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from metarr.providers.errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    ServerError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP GET operations against provider APIs."""

    async def get(
        self,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any: ...

    async def aclose(self) -> None: ...


def parse_retry_after(value: str | None) -> float | None:
    """Interpret a Retry-After header as seconds from now.

    Accepts both the delta-seconds and the HTTP-date forms.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, when.timestamp() - time.time())


def error_for_response(
    response: httpx.Response, provider_name: str, url: str = ""
) -> ProviderError:
    """Map a non-success HTTP response onto the provider error hierarchy."""
    status = response.status_code
    message = f"HTTP {status} from {url}"
    if status == 429:
        return RateLimitError(
            message,
            provider_name,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )
    if status == 404:
        return NotFoundError(message, provider_name)
    if status in (401, 403):
        return AuthenticationError(message, provider_name, status_code=status)
    if status >= 500:
        return ServerError(message, provider_name, status_code=status)
    return ProviderError(message, provider_name, status_code=status)


class RateLimiter:
    """Keeps a minimum interval between requests to one provider.

    One limiter can be shared by several clients; callers queue on its lock so
    the interval holds across all of them.
    """

    def __init__(self, min_interval: float = 0.0) -> None:
        self.min_interval = min_interval
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Sleep if needed to maintain the minimum interval."""
        if self.min_interval <= 0:
            return
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.min_interval and self._last_request_time > 0:
                await asyncio.sleep(self.min_interval - elapsed)
            self._last_request_time = time.monotonic()


class MetarrHttpClient:
    """HTTP client with per-provider rate limiting for provider API calls.

    Wraps httpx.AsyncClient with a RateLimiter. Pass a shared limiter to keep
    the interval across client instances; otherwise the client makes its own.
    Retries are not done here; the orchestrator owns that policy.
    """

    def __init__(
        self,
        provider_name: str,
        *,
        min_request_interval: float = 0.0,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": "metarr/0.1.0", **(headers or {})},
            "timeout": timeout,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)
        self._provider_name = provider_name
        self._limiter = rate_limiter or RateLimiter(min_request_interval)

    async def get(
        self,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send a GET request and return the parsed JSON body.

        Raises:
            ProviderError: A subclass matching the failure; NetworkError when
                no response was received.
        """
        await self._limiter.wait()
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"Request failed: {url}: {exc}", self._provider_name
            ) from exc

        if response.status_code != 200:
            error = error_for_response(response, self._provider_name, url)
            logger.debug("%s: %s", self._provider_name, error.message)
            raise error

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Invalid JSON from {url}", self._provider_name, status_code=200
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
