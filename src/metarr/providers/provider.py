# ABOUTME: ProviderAdapter protocol defining the contract for metadata and artwork sources.
# ABOUTME: Any external provider API (TMDB, FanArt.tv, TVDB, etc.) implements this.

from typing import Protocol, runtime_checkable

from metarr.providers.candidate import AssetCandidate
from metarr.providers.capabilities import ProviderCapabilities
from metarr.providers.types import (
    AssetRequest,
    ConnectionTestResult,
    MetadataRequest,
    MetadataResponse,
    SearchRequest,
    SearchResult,
)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for provider adapters.

    Adapters translate one vendor's wire format into MetadataResponse and
    AssetCandidate. Operations an adapter cannot serve raise
    UnsupportedOperationError rather than returning partial data.
    """

    @property
    def capabilities(self) -> ProviderCapabilities: ...

    async def search(self, request: SearchRequest) -> list[SearchResult]: ...

    async def get_metadata(self, request: MetadataRequest) -> MetadataResponse: ...

    async def get_assets(self, request: AssetRequest) -> list[AssetCandidate]: ...

    async def test_connection(self) -> ConnectionTestResult: ...

    async def aclose(self) -> None: ...
