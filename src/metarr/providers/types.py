# ABOUTME: Request and response data structures shared by all provider adapters.
# ABOUTME: MetadataResponse is the normalized shape the orchestrator merges.

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        msg = f"{name} must be between 0.0 and 1.0, got {value}"
        raise ValueError(msg)


@dataclass
class ProviderConfig:
    """User-editable settings for one provider, as stored in the config store.

    Lower priority values are queried first.
    """

    provider_name: str
    enabled: bool = True
    api_key: str | None = None
    base_url: str | None = None
    priority: int = 100
    language: str = "en"
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchRequest:
    query: str
    entity_type: str
    year: int | None = None
    language: str | None = None
    limit: int = 10
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """A single search hit with a confidence score in [0, 1]."""

    provider_id: str
    provider_result_id: str
    entity_type: str
    title: str
    confidence: float
    original_title: str | None = None
    release_date: str | None = None
    overview: str | None = None
    poster_url: str | None = None
    external_ids: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_unit_interval("confidence", self.confidence)


@dataclass(frozen=True)
class MetadataRequest:
    """Ask one provider for the metadata of one entity.

    provider_result_id is interpreted according to id_kind, so an adapter that
    accepts several external ID kinds knows which lookup to run. external_ids
    carries every ID known for the entity.
    """

    provider_id: str
    provider_result_id: str
    entity_type: str
    id_kind: str = "tmdb"
    fields: tuple[str, ...] | None = None
    language: str | None = None
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MetadataResponse:
    """One provider's metadata for an entity, or the merge of several.

    completeness and confidence are both constrained to [0, 1].
    """

    provider_id: str
    provider_result_id: str
    fields: dict[str, Any]
    completeness: float
    confidence: float
    external_ids: dict[str, str] = field(default_factory=dict)
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        _check_unit_interval("completeness", self.completeness)
        _check_unit_interval("confidence", self.confidence)

    def populated_fields(self) -> set[str]:
        """Field names carrying a usable value."""
        return {name for name, value in self.fields.items() if _has_value(value)}


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0:
        return False
    return True


@dataclass(frozen=True)
class AssetRequest:
    provider_id: str
    provider_result_id: str
    entity_type: str
    id_kind: str = "tmdb"
    asset_types: tuple[str, ...] = ()
    language: str | None = None
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a provider connectivity check."""

    success: bool
    message: str
    error: str | None = None
    response_time: float | None = None
