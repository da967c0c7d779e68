# ABOUTME: Provider package for fetching movie metadata and artwork from third-party services.
# ABOUTME: Exports the orchestrator, registry, selector and the value types they exchange.

from metarr.providers.candidate import AssetCandidate
from metarr.providers.capabilities import ProviderCapabilities
from metarr.providers.circuit import CircuitBreaker, CircuitState
from metarr.providers.errors import (
    AllProvidersFailedError,
    CircuitOpenError,
    ProviderError,
    ProviderNotRegisteredError,
)
from metarr.providers.orchestrator import (
    EnrichmentResult,
    FetchDiagnostics,
    MetadataOptions,
    OrchestratorSettings,
    ProviderOrchestrator,
)
from metarr.providers.provider import ProviderAdapter
from metarr.providers.registry import ProviderRegistry, create_default_registry
from metarr.providers.selector import AssetSelectionConfig, AssetSelector
from metarr.providers.types import MetadataResponse, ProviderConfig

__all__ = [
    "AllProvidersFailedError",
    "AssetCandidate",
    "AssetSelectionConfig",
    "AssetSelector",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "EnrichmentResult",
    "FetchDiagnostics",
    "MetadataOptions",
    "MetadataResponse",
    "OrchestratorSettings",
    "ProviderAdapter",
    "ProviderCapabilities",
    "ProviderConfig",
    "ProviderError",
    "ProviderNotRegisteredError",
    "ProviderOrchestrator",
    "ProviderRegistry",
    "create_default_registry",
]
