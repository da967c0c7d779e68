# ABOUTME: Static capability descriptors that every provider adapter declares.
# ABOUTME: The registry and orchestrator use these to decide which providers to query.

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

EntityType = Literal[
    "movie",
    "series",
    "season",
    "episode",
    "collection",
    "artist",
    "album",
    "track",
    "actor",
]

AssetType = Literal[
    "poster",
    "fanart",
    "banner",
    "clearlogo",
    "clearart",
    "thumb",
    "characterart",
    "discart",
    "landscape",
    "keyart",
    "cdart",
    "albumcover",
    "artistthumb",
    "musiclogo",
    "hdmusiclogo",
    "artistbackground",
]

ProviderCategory = Literal["metadata", "images", "both"]

# Aliases accepted for external ID kinds; the key is the canonical name.
_ID_KIND_ALIASES: dict[str, str] = {
    "tmdb_id": "tmdb",
    "imdb_id": "imdb",
    "tvdb_id": "tvdb",
    "musicbrainz_id": "musicbrainz",
    "mbid": "musicbrainz",
}


def normalize_id_kind(kind: str) -> str:
    """Map an external ID kind to its canonical name ('tmdb_id' -> 'tmdb')."""
    kind = kind.strip().lower()
    return _ID_KIND_ALIASES.get(kind, kind)


def normalize_external_ids(external_ids: Mapping[str, object]) -> dict[str, str]:
    """Canonicalize ID kinds and drop empty values.

    The first non-empty value wins when two aliases of the same kind appear.
    """
    normalized: dict[str, str] = {}
    for kind, value in external_ids.items():
        if value is None or value == "":
            continue
        canonical = normalize_id_kind(kind)
        normalized.setdefault(canonical, str(value))
    return normalized


@dataclass(frozen=True)
class AuthenticationInfo:
    """How a provider authenticates requests."""

    type: Literal["none", "api_key", "jwt", "bearer", "oauth"] = "none"
    required: bool = False
    allows_personal_key: bool = False


@dataclass(frozen=True)
class RateLimitInfo:
    """Client-side rate limit a provider asks us to respect."""

    requests_per_second: float = 1.0
    burst_capacity: int = 1

    @property
    def min_interval(self) -> float:
        """Seconds to wait between consecutive requests."""
        if self.requests_per_second <= 0:
            return 0.0
        return 1.0 / self.requests_per_second


@dataclass(frozen=True)
class SearchCapabilities:
    """Search support and the external ID kinds a provider can look up by."""

    supported: bool = False
    fuzzy_matching: bool = False
    year_filter: bool = False
    external_id_lookup: tuple[str, ...] = ()


@dataclass(frozen=True)
class DataQuality:
    """Coarse quality hints, each in [0, 1] where numeric."""

    metadata_completeness: float = 0.0
    image_quality: float = 0.0
    user_contributed: bool = False
    curated_content: bool = False


@dataclass(frozen=True)
class ProviderCapabilities:
    """Everything the core needs to know about a provider without calling it.

    Declared once per adapter class and registered at startup; never mutated.
    """

    id: str
    name: str
    category: ProviderCategory
    supported_entity_types: tuple[str, ...]
    version: str = "1.0.0"
    supported_metadata_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    supported_asset_types: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    authentication: AuthenticationInfo = field(default_factory=AuthenticationInfo)
    rate_limit: RateLimitInfo = field(default_factory=RateLimitInfo)
    search: SearchCapabilities = field(default_factory=SearchCapabilities)
    data_quality: DataQuality = field(default_factory=DataQuality)

    @property
    def provides_metadata(self) -> bool:
        return self.category in ("metadata", "both")

    @property
    def provides_images(self) -> bool:
        return self.category in ("images", "both")

    def supports_entity(self, entity_type: str) -> bool:
        return entity_type in self.supported_entity_types

    def asset_types_for(self, entity_type: str) -> tuple[str, ...]:
        return tuple(self.supported_asset_types.get(entity_type, ()))

    def metadata_fields_for(self, entity_type: str) -> tuple[str, ...]:
        return tuple(self.supported_metadata_fields.get(entity_type, ()))

    def accepted_id_kinds(self) -> tuple[str, ...]:
        """External ID kinds in lookup preference order, canonicalized."""
        return tuple(normalize_id_kind(kind) for kind in self.search.external_id_lookup)

    def resolve_external_id(
        self, external_ids: Mapping[str, object]
    ) -> tuple[str, str] | None:
        """Pick the first ID this provider accepts from an entity's ID set.

        Returns (kind, value) or None when no compatible ID is present.
        """
        available = normalize_external_ids(external_ids)
        for kind in self.accepted_id_kinds():
            if kind in available:
                return kind, available[kind]
        return None
