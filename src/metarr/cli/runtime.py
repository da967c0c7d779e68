# ABOUTME: Wiring shared by CLI commands: database, config store, registry and orchestrator.
# ABOUTME: Also parses kind=value arguments and overlays API keys from the environment.

import logging
import os
import sqlite3
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

import click
import httpx

from metarr.db.config_store import ConfigStore, ProviderConfigStore
from metarr.db.connection import DEFAULT_DB_PATH, open_database
from metarr.providers.events import LoggingSink
from metarr.providers.orchestrator import (
    FetchPriority,
    OrchestratorSettings,
    ProviderOrchestrator,
)
from metarr.providers.registry import ProviderRegistry, create_default_registry
from metarr.providers.types import ProviderConfig

logger = logging.getLogger(__name__)

# Gap between the default priorities given to registered providers.
_PRIORITY_STEP = 10


def api_key_envvar(provider_name: str) -> str:
    return f"METARR_{provider_name.upper()}_API_KEY"


class EnvironmentConfigStore:
    """Read-only view over another store that fills missing API keys from
    METARR_<PROVIDER>_API_KEY environment variables."""

    def __init__(self, inner: ConfigStore) -> None:
        self._inner = inner

    def get_all(self) -> list[ProviderConfig]:
        return [self._with_env_key(config) for config in self._inner.get_all()]

    def get_by_name(self, provider_name: str) -> ProviderConfig | None:
        config = self._inner.get_by_name(provider_name)
        return self._with_env_key(config) if config else None

    @staticmethod
    def _with_env_key(config: ProviderConfig) -> ProviderConfig:
        if config.api_key:
            return config
        env_key = os.environ.get(api_key_envvar(config.provider_name))
        return replace(config, api_key=env_key) if env_key else config


def seed_default_configs(store: ProviderConfigStore, registry: ProviderRegistry) -> None:
    """Give every registered provider without a stored row an enabled default.

    Priorities follow registration order.
    """
    for index, provider_id in enumerate(registry.list_providers(), start=1):
        if store.get_by_name(provider_id) is None:
            logger.debug("Adding default configuration for %s", provider_id)
            store.save(ProviderConfig(provider_name=provider_id, priority=index * _PRIORITY_STEP))


def open_store(db_path: Path | None, registry: ProviderRegistry) -> tuple[
    sqlite3.Connection, ProviderConfigStore
]:
    conn = open_database(db_path or DEFAULT_DB_PATH)
    store = ProviderConfigStore(conn)
    seed_default_configs(store, registry)
    return conn, store


def default_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for provider HTTP clients; None means httpx's default."""
    return None


def build_orchestrator(
    store: ConfigStore,
    registry: ProviderRegistry,
    priority: FetchPriority = "user",
) -> ProviderOrchestrator:
    return ProviderOrchestrator(
        registry,
        EnvironmentConfigStore(store),
        OrchestratorSettings.for_priority(priority),
        sink=LoggingSink(),
        transport=default_transport(),
    )


def build_registry() -> ProviderRegistry:
    return create_default_registry()


def parse_pairs(values: Iterable[str], option_name: str) -> dict[str, str]:
    """Parse repeated KIND=VALUE arguments into a dict.

    Raises:
        click.BadParameter: If a value has no '=' or an empty side.
    """
    pairs: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip() or not item.strip():
            raise click.BadParameter(
                f"expected KIND=VALUE, got {value!r}", param_hint=option_name
            )
        pairs[key.strip().lower()] = item.strip()
    return pairs
