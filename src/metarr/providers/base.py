# ABOUTME: BaseProvider gives adapters a circuit breaker, a rate-limited HTTP client and defaults.
# ABOUTME: Concrete adapters subclass it and declare CAPABILITIES and DEFAULT_BASE_URL.

import logging
import time
from typing import Any, ClassVar

import httpx

from metarr.providers.candidate import AssetCandidate
from metarr.providers.capabilities import ProviderCapabilities
from metarr.providers.circuit import CircuitBreaker
from metarr.providers.errors import NotFoundError, ProviderError, UnsupportedOperationError
from metarr.providers.http import HttpClient, MetarrHttpClient, RateLimiter
from metarr.providers.types import (
    AssetRequest,
    ConnectionTestResult,
    MetadataRequest,
    MetadataResponse,
    ProviderConfig,
    SearchRequest,
    SearchResult,
)

logger = logging.getLogger(__name__)


class BaseProvider:
    """Shared plumbing for provider adapters.

    Every request goes through the adapter's circuit breaker and rate limiter.
    When the caller supplies them they are shared across adapter instances,
    which is how the orchestrator keeps failure history and request spacing
    for a provider between calls.
    """

    CAPABILITIES: ClassVar[ProviderCapabilities]
    DEFAULT_BASE_URL: ClassVar[str] = ""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        http_client: HttpClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.config = config
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._owns_http = http_client is None
        if rate_limiter is not None:
            # The interval can depend on config, so the adapter sets it.
            rate_limiter.min_interval = self._request_interval()
        self._http: HttpClient = http_client or MetarrHttpClient(
            self.name,
            min_request_interval=self._request_interval(),
            transport=transport,
            rate_limiter=rate_limiter,
        )
        self._breaker = circuit_breaker or CircuitBreaker(name=self.name)

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self.CAPABILITIES

    @property
    def name(self) -> str:
        return self.CAPABILITIES.id

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    async def search(self, request: SearchRequest) -> list[SearchResult]:
        raise UnsupportedOperationError(f"{self.name} does not support search", self.name)

    async def get_metadata(self, request: MetadataRequest) -> MetadataResponse:
        raise UnsupportedOperationError(f"{self.name} does not provide metadata", self.name)

    async def get_assets(self, request: AssetRequest) -> list[AssetCandidate]:
        raise UnsupportedOperationError(f"{self.name} does not provide assets", self.name)

    async def test_connection(self) -> ConnectionTestResult:
        """Run a cheap authenticated request and report whether it worked."""
        if self._breaker.is_open():
            return ConnectionTestResult(
                success=False,
                message=f"{self.CAPABILITIES.name} is temporarily disabled",
                error="Circuit breaker is open",
            )
        started = time.monotonic()
        try:
            await self._ping()
        except ProviderError as exc:
            logger.warning("Connection test failed for %s: %s", self.name, exc)
            return ConnectionTestResult(
                success=False,
                message=f"Could not connect to {self.CAPABILITIES.name}",
                error=str(exc),
            )
        return ConnectionTestResult(
            success=True,
            message=f"Connected to {self.CAPABILITIES.name}",
            response_time=time.monotonic() - started,
        )

    def health_status(self) -> dict[str, Any]:
        return {
            "provider": self.name,
            "enabled": self.config.enabled,
            "circuit": self._breaker.get_stats(),
        }

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _ping(self) -> None:
        raise UnsupportedOperationError(
            f"{self.name} does not support connection tests", self.name
        )

    def _request_interval(self) -> float:
        return self.CAPABILITIES.rate_limit.min_interval

    async def _request(
        self,
        path: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET base_url + path through the circuit breaker."""
        url = f"{self.base_url}{path}"

        async def call() -> Any:
            try:
                return await self._http.get(url, params=params, headers=headers)
            except NotFoundError as exc:
                # A 404 is an answer, not an outage; keep it off the breaker.
                return exc

        result = await self._breaker.execute(call)
        if isinstance(result, NotFoundError):
            raise result
        return result
