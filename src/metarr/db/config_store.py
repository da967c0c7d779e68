# ABOUTME: Provider configuration stores read by the orchestrator on every call.
# ABOUTME: ProviderConfigStore persists rows in SQLite; InMemoryConfigStore is for tests.

import sqlite3
from dataclasses import replace
from typing import Protocol, runtime_checkable

from metarr.db.mapping import config_to_row, row_to_config
from metarr.providers.types import ProviderConfig


@runtime_checkable
class ConfigStore(Protocol):
    """Read side of provider configuration, as the orchestrator sees it."""

    def get_all(self) -> list[ProviderConfig]: ...

    def get_by_name(self, provider_name: str) -> ProviderConfig | None: ...


class ProviderConfigStore:
    """Wraps a sqlite3 connection and provides typed CRUD for provider_config."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_all(self) -> list[ProviderConfig]:
        """Return every configured provider, lowest priority value first."""
        cursor = self._conn.execute(
            "SELECT * FROM provider_config ORDER BY priority, provider_name"
        )
        return [row_to_config(row) for row in cursor.fetchall()]

    def get_by_name(self, provider_name: str) -> ProviderConfig | None:
        cursor = self._conn.execute(
            "SELECT * FROM provider_config WHERE provider_name = ?", (provider_name,)
        )
        row = cursor.fetchone()
        return row_to_config(row) if row else None

    def save(self, config: ProviderConfig) -> None:
        """Insert the config, or replace the stored one with the same name."""
        row = config_to_row(config)
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        updates = ", ".join(f"{k} = excluded.{k}" for k in row if k != "provider_name")
        self._conn.execute(
            f"INSERT INTO provider_config ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(provider_name) DO UPDATE SET {updates}, "
            "date_modified = strftime('%Y-%m-%dT%H:%M:%S', 'now')",
            list(row.values()),
        )
        self._conn.commit()

    def set_enabled(self, provider_name: str, enabled: bool) -> None:
        """Enable or disable a configured provider.

        Raises:
            ValueError: If the provider has no stored configuration.
        """
        cursor = self._conn.execute(
            "UPDATE provider_config SET enabled = ?, "
            "date_modified = strftime('%Y-%m-%dT%H:%M:%S', 'now') "
            "WHERE provider_name = ?",
            (1 if enabled else 0, provider_name),
        )
        self._conn.commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Provider '{provider_name}' is not configured")

    def delete(self, provider_name: str) -> None:
        """Remove a provider's configuration.

        Raises:
            ValueError: If the provider has no stored configuration.
        """
        cursor = self._conn.execute(
            "DELETE FROM provider_config WHERE provider_name = ?", (provider_name,)
        )
        self._conn.commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Provider '{provider_name}' is not configured")


class InMemoryConfigStore:
    """Dict-backed store with the same interface as ProviderConfigStore."""

    def __init__(self, configs: list[ProviderConfig] | None = None) -> None:
        self._configs: dict[str, ProviderConfig] = {}
        for config in configs or []:
            self.save(config)

    def get_all(self) -> list[ProviderConfig]:
        return sorted(self._configs.values(), key=lambda c: (c.priority, c.provider_name))

    def get_by_name(self, provider_name: str) -> ProviderConfig | None:
        return self._configs.get(provider_name)

    def save(self, config: ProviderConfig) -> None:
        self._configs[config.provider_name] = config

    def set_enabled(self, provider_name: str, enabled: bool) -> None:
        config = self._configs.get(provider_name)
        if config is None:
            raise ValueError(f"Provider '{provider_name}' is not configured")
        self._configs[provider_name] = replace(config, enabled=enabled)

    def delete(self, provider_name: str) -> None:
        if self._configs.pop(provider_name, None) is None:
            raise ValueError(f"Provider '{provider_name}' is not configured")
