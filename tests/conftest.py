# ABOUTME: Shared pytest fixtures for metarr tests.
# ABOUTME: Provides registries, config stores, fast orchestrators and a temp database.

import sqlite3
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from metarr.db.config_store import InMemoryConfigStore
from metarr.db.connection import open_database
from metarr.providers.events import ListSink
from metarr.providers.orchestrator import OrchestratorSettings, ProviderOrchestrator
from metarr.providers.registry import ProviderRegistry
from metarr.providers.types import ProviderConfig
from tests.fixtures.fake_providers import FakeProvider


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def fast_settings() -> OrchestratorSettings:
    """Settings with no real backoff so retry tests run instantly."""
    return OrchestratorSettings(timeout=2.0, max_retries=2, base_retry_delay=0.0)


@pytest.fixture
def sink() -> ListSink:
    return ListSink()


@pytest.fixture
def build_orchestrator(
    fast_settings: OrchestratorSettings, sink: ListSink
) -> Callable[..., ProviderOrchestrator]:
    """Register the given fake provider classes, in order, and wire an orchestrator.

    Each provider is enabled with priority 10, 20, ... in argument order
    unless a config for it is passed explicitly.
    """

    def build(
        *providers: type[FakeProvider],
        configs: list[ProviderConfig] | None = None,
        settings: OrchestratorSettings | None = None,
    ) -> ProviderOrchestrator:
        registry = ProviderRegistry()
        for provider_cls in providers:
            registry.register(provider_cls)
        if configs is None:
            configs = [
                ProviderConfig(provider_name=p.CAPABILITIES.id, priority=(i + 1) * 10)
                for i, p in enumerate(providers)
            ]
        return ProviderOrchestrator(
            registry,
            InMemoryConfigStore(configs),
            settings or fast_settings,
            sink=sink,
        )

    return build


@pytest.fixture
def db_conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    """A freshly created configuration database."""
    conn = open_database(tmp_path / "metarr.db")
    yield conn
    conn.close()
