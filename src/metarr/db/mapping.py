# ABOUTME: Converts between the ProviderConfig dataclass and SQLite row dictionaries.
# ABOUTME: Handles JSON serialization of the free-form options column.

import json
from typing import Any

from metarr.providers.types import ProviderConfig


def config_to_row(config: ProviderConfig) -> dict[str, Any]:
    """Convert a ProviderConfig to a dict suitable for INSERT."""
    return {
        "provider_name": config.provider_name,
        "enabled": 1 if config.enabled else 0,
        "api_key": config.api_key,
        "base_url": config.base_url,
        "priority": config.priority,
        "language": config.language,
        "options": json.dumps(config.options, sort_keys=True),
    }


def row_to_config(row: Any) -> ProviderConfig:
    """Convert a database row (dict-like) back to a ProviderConfig."""
    return ProviderConfig(
        provider_name=row["provider_name"],
        enabled=bool(row["enabled"]),
        api_key=row["api_key"],
        base_url=row["base_url"],
        priority=row["priority"],
        language=row["language"],
        options=json.loads(row["options"]) if row["options"] else {},
    )
