# ABOUTME: The Movie Database (TMDB) provider implementation.
# ABOUTME: Supplies movie and collection metadata plus posters, backdrops and logos.

import logging
from typing import Any

from metarr.providers.base import BaseProvider
from metarr.providers.candidate import AssetCandidate
from metarr.providers.capabilities import (
    AuthenticationInfo,
    DataQuality,
    ProviderCapabilities,
    RateLimitInfo,
    SearchCapabilities,
)
from metarr.providers.errors import NotFoundError, UnsupportedOperationError
from metarr.providers.tmdb_parser import (
    COLLECTION_FIELDS,
    IMAGE_BASE_URL,
    MOVIE_FIELDS,
    PROVIDER_ID,
    compute_completeness,
    parse_collection,
    parse_find_response,
    parse_find_results,
    parse_images,
    parse_movie,
    parse_search_results,
)
from metarr.providers.types import (
    AssetRequest,
    MetadataRequest,
    MetadataResponse,
    SearchRequest,
    SearchResult,
)

logger = logging.getLogger(__name__)

# TMDB data is curated and stable enough to be trusted over most sources.
_METADATA_CONFIDENCE = 0.95
_MOVIE_APPENDS = "credits,external_ids,release_dates,videos"


class TMDBProvider(BaseProvider):
    """Provider backed by the TMDB v3 API.

    Accepts either a v3 API key (sent as a query parameter) or a v4 read
    access token (sent as a bearer token). Entities can be addressed by TMDB id
    or by IMDb id, which is resolved through the /find endpoint first.
    """

    CAPABILITIES = ProviderCapabilities(
        id=PROVIDER_ID,
        name="The Movie Database",
        category="both",
        supported_entity_types=("movie", "collection"),
        supported_metadata_fields={"movie": MOVIE_FIELDS, "collection": COLLECTION_FIELDS},
        supported_asset_types={
            "movie": ("poster", "fanart", "clearlogo"),
            "collection": ("poster", "fanart"),
        },
        authentication=AuthenticationInfo(type="api_key", required=True),
        rate_limit=RateLimitInfo(requests_per_second=4, burst_capacity=40),
        search=SearchCapabilities(
            supported=True,
            fuzzy_matching=True,
            year_filter=True,
            external_id_lookup=("tmdb", "imdb"),
        ),
        data_quality=DataQuality(
            metadata_completeness=0.95,
            image_quality=0.9,
            user_contributed=True,
            curated_content=True,
        ),
    )
    DEFAULT_BASE_URL = "https://api.themoviedb.org/3"

    @property
    def image_base_url(self) -> str:
        return str(self.config.options.get("image_base_url", IMAGE_BASE_URL)).rstrip("/")

    async def search(self, request: SearchRequest) -> list[SearchResult]:
        if request.entity_type != "movie":
            return []

        imdb_id = request.external_ids.get("imdb")
        if imdb_id:
            data = await self._get(f"/find/{imdb_id}", {"external_source": "imdb_id"})
            return parse_find_results(data, request.limit, self.image_base_url)

        params = {"query": request.query, "include_adult": "false"}
        if request.year:
            params["year"] = str(request.year)
        if request.language or self.config.language:
            params["language"] = request.language or self.config.language
        data = await self._get("/search/movie", params)
        return parse_search_results(
            data, request.query, request.year, request.limit, self.image_base_url
        )

    async def get_metadata(self, request: MetadataRequest) -> MetadataResponse:
        if not self.CAPABILITIES.supports_entity(request.entity_type):
            raise UnsupportedOperationError(
                f"TMDB does not support entity type: {request.entity_type}", self.name
            )

        tmdb_id = await self._resolve_tmdb_id(request.id_kind, request.provider_result_id)
        params: dict[str, str] = {}
        language = request.language or self.config.language
        if language:
            params["language"] = language

        if request.entity_type == "movie":
            params["append_to_response"] = _MOVIE_APPENDS
            data = await self._get(f"/movie/{tmdb_id}", params)
            fields, external_ids = parse_movie(data, request.fields, self.image_base_url)
        else:
            data = await self._get(f"/collection/{tmdb_id}", params)
            fields = parse_collection(data, request.fields)
            external_ids = {"tmdb": tmdb_id}

        logger.debug("TMDB returned %d fields for %s %s", len(fields), request.entity_type, tmdb_id)
        return MetadataResponse(
            provider_id=PROVIDER_ID,
            provider_result_id=tmdb_id,
            fields=fields,
            completeness=compute_completeness(fields, request.fields),
            confidence=_METADATA_CONFIDENCE,
            external_ids=external_ids,
        )

    async def get_assets(self, request: AssetRequest) -> list[AssetCandidate]:
        if not self.CAPABILITIES.supports_entity(request.entity_type):
            return []

        tmdb_id = await self._resolve_tmdb_id(request.id_kind, request.provider_result_id)
        path = "movie" if request.entity_type == "movie" else "collection"
        data = await self._get(f"/{path}/{tmdb_id}/images")

        asset_types = request.asset_types or self.CAPABILITIES.asset_types_for(request.entity_type)
        candidates = parse_images(data, tmdb_id, asset_types, self.image_base_url)
        logger.debug(
            "TMDB returned %d asset candidates for %s %s",
            len(candidates),
            request.entity_type,
            tmdb_id,
        )
        return candidates

    async def _ping(self) -> None:
        await self._get("/configuration")

    async def _resolve_tmdb_id(self, id_kind: str, value: str) -> str:
        if id_kind == "tmdb":
            return value
        if id_kind == "imdb":
            data = await self._get(f"/find/{value}", {"external_source": "imdb_id"})
            tmdb_id = parse_find_response(data)
            if tmdb_id is None:
                raise NotFoundError(f"No TMDB movie for IMDb id {value}", self.name)
            return tmdb_id
        raise UnsupportedOperationError(f"TMDB cannot look up by {id_kind}", self.name)

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        params = dict(params or {})
        headers: dict[str, str] = {}
        api_key = self.config.api_key or ""
        # v4 read access tokens are JWTs; v3 keys are short hex strings.
        if api_key.startswith("eyJ"):
            headers["Authorization"] = f"Bearer {api_key}"
        elif api_key:
            params["api_key"] = api_key
        return await self._request(path, params=params or None, headers=headers or None)
