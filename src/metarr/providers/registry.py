# ABOUTME: Catalog of provider adapter classes and their capabilities.
# ABOUTME: Populated at startup, then used to discover providers and create adapter instances.

import logging
from typing import Any

from metarr.providers.capabilities import ProviderCapabilities, normalize_id_kind
from metarr.providers.errors import ProviderNotRegisteredError
from metarr.providers.provider import ProviderAdapter
from metarr.providers.types import ProviderConfig

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps provider ids to adapter classes and capabilities.

    One registry is built per process and passed to whatever needs it.
    Registration is expected to finish before orchestration starts.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, type] = {}
        self._capabilities: dict[str, ProviderCapabilities] = {}

    def register_provider(
        self,
        provider_id: str,
        adapter_cls: type,
        capabilities: ProviderCapabilities,
    ) -> None:
        """Register an adapter class. Registering an id again replaces it."""
        if provider_id in self._adapters:
            logger.info("Replacing registered provider %s", provider_id)
        self._adapters[provider_id] = adapter_cls
        self._capabilities[provider_id] = capabilities
        logger.info("Registered provider %s (%s)", provider_id, capabilities.name)

    def register(self, adapter_cls: type) -> None:
        """Register an adapter class under the id its CAPABILITIES declare."""
        capabilities: ProviderCapabilities = adapter_cls.CAPABILITIES
        self.register_provider(capabilities.id, adapter_cls, capabilities)

    def get_capabilities(self, provider_id: str) -> ProviderCapabilities | None:
        return self._capabilities.get(provider_id)

    def is_registered(self, provider_id: str) -> bool:
        return provider_id in self._adapters

    def list_providers(self) -> list[str]:
        return list(self._adapters)

    def get_registered_provider_ids(self) -> list[str]:
        return self.list_providers()

    def get_providers_for_entity_type(self, entity_type: str) -> list[ProviderCapabilities]:
        return [c for c in self._capabilities.values() if c.supports_entity(entity_type)]

    def get_providers_for_asset_type(
        self, entity_type: str, asset_type: str
    ) -> list[ProviderCapabilities]:
        return [
            c for c in self._capabilities.values() if asset_type in c.asset_types_for(entity_type)
        ]

    def get_providers_for_metadata_field(
        self, entity_type: str, field_name: str
    ) -> list[ProviderCapabilities]:
        return [
            c
            for c in self._capabilities.values()
            if field_name in c.metadata_fields_for(entity_type)
        ]

    def get_providers_for_external_id(self, id_kind: str) -> list[ProviderCapabilities]:
        kind = normalize_id_kind(id_kind)
        return [c for c in self._capabilities.values() if kind in c.accepted_id_kinds()]

    def get_capability_summary(self) -> list[dict[str, Any]]:
        """One display-ready row per registered provider."""
        summary = []
        for provider_id, caps in sorted(self._capabilities.items()):
            asset_types = sorted(
                {asset for types in caps.supported_asset_types.values() for asset in types}
            )
            summary.append(
                {
                    "id": provider_id,
                    "name": caps.name,
                    "category": caps.category,
                    "entity_types": list(caps.supported_entity_types),
                    "asset_types": asset_types,
                    "lookup_ids": list(caps.accepted_id_kinds()),
                    "auth_required": caps.authentication.required,
                    "requests_per_second": caps.rate_limit.requests_per_second,
                }
            )
        return summary

    async def create_provider(
        self, config: ProviderConfig, **adapter_kwargs: Any
    ) -> ProviderAdapter:
        """Instantiate the adapter registered for config.provider_name.

        A new instance is returned on every call; the caller closes it.

        Raises:
            ProviderNotRegisteredError: If no adapter is registered under that name.
        """
        adapter_cls = self._adapters.get(config.provider_name)
        if adapter_cls is None:
            raise ProviderNotRegisteredError(config.provider_name)
        return adapter_cls(config, **adapter_kwargs)


def create_default_registry() -> ProviderRegistry:
    """Registry holding the built-in adapters."""
    from metarr.providers.fanart import FanArtProvider
    from metarr.providers.tmdb import TMDBProvider

    registry = ProviderRegistry()
    registry.register(TMDBProvider)
    registry.register(FanArtProvider)
    return registry
