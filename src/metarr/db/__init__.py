# ABOUTME: Public API for the metarr configuration database layer.
# ABOUTME: Exports connection management and the provider configuration stores.

from metarr.db.config_store import ConfigStore, InMemoryConfigStore, ProviderConfigStore
from metarr.db.connection import DEFAULT_DB_PATH, open_database

__all__ = [
    "DEFAULT_DB_PATH",
    "ConfigStore",
    "InMemoryConfigStore",
    "ProviderConfigStore",
    "open_database",
]
