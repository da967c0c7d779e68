# ABOUTME: FanArt.tv provider implementation.
# ABOUTME: Images only: logos, clear art, posters, backgrounds, banners and disc art.

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
from metarr.providers.fanart_parser import PROVIDER_ID, parse_images
from metarr.providers.types import AssetRequest, SearchRequest, SearchResult

logger = logging.getLogger(__name__)

# A personal key doubles the allowed request rate.
_PERSONAL_KEY_INTERVAL = 0.5

# Which external ID kinds each FanArt.tv endpoint understands, in preference order.
_ID_KINDS_BY_ENTITY = {
    "movie": ("tmdb", "imdb"),
    "series": ("tvdb",),
    "season": ("tvdb",),
}


class FanArtProvider(BaseProvider):
    """Provider backed by the FanArt.tv v3 API.

    FanArt.tv has no search and no metadata; it is addressed by TMDB or IMDb
    id for movies and by TVDB id for series. A missing entity is a normal
    outcome and yields no candidates.
    """

    CAPABILITIES = ProviderCapabilities(
        id=PROVIDER_ID,
        name="FanArt.tv",
        category="images",
        supported_entity_types=("movie", "series", "season"),
        supported_asset_types={
            "movie": (
                "clearlogo",
                "clearart",
                "poster",
                "fanart",
                "banner",
                "landscape",
                "discart",
            ),
            "series": (
                "clearlogo",
                "clearart",
                "poster",
                "fanart",
                "banner",
                "landscape",
                "characterart",
            ),
            "season": ("poster", "landscape", "banner"),
        },
        authentication=AuthenticationInfo(
            type="api_key", required=True, allows_personal_key=True
        ),
        rate_limit=RateLimitInfo(requests_per_second=1, burst_capacity=5),
        search=SearchCapabilities(supported=False, external_id_lookup=("tmdb", "tvdb", "imdb")),
        data_quality=DataQuality(
            metadata_completeness=0.0,
            image_quality=1.0,
            user_contributed=True,
            curated_content=True,
        ),
    )
    DEFAULT_BASE_URL = "https://webservice.fanart.tv/v3"

    @property
    def personal_api_key(self) -> str | None:
        return self.config.options.get("personal_api_key") or None

    async def search(self, request: SearchRequest) -> list[SearchResult]:
        return []

    async def get_assets(self, request: AssetRequest) -> list[AssetCandidate]:
        if not self.CAPABILITIES.supports_entity(request.entity_type):
            return []

        lookup_id = self._lookup_id(request)
        path = f"/movies/{lookup_id}" if request.entity_type == "movie" else f"/tv/{lookup_id}"
        try:
            data = await self._get(path)
        except NotFoundError:
            logger.debug("No FanArt.tv images for %s %s", request.entity_type, lookup_id)
            return []

        candidates = parse_images(data, request.entity_type, lookup_id, request.asset_types)
        logger.debug(
            "FanArt.tv returned %d asset candidates for %s %s",
            len(candidates),
            request.entity_type,
            lookup_id,
        )
        return candidates

    async def _ping(self) -> None:
        # Any well-known movie works; 603 is The Matrix.
        await self._get("/movies/603")

    def _request_interval(self) -> float:
        if self.personal_api_key:
            return _PERSONAL_KEY_INTERVAL
        return super()._request_interval()

    def _lookup_id(self, request: AssetRequest) -> str:
        kinds = _ID_KINDS_BY_ENTITY[request.entity_type]
        if request.id_kind in kinds:
            return request.provider_result_id
        for kind in kinds:
            if request.external_ids.get(kind):
                return request.external_ids[kind]
        raise UnsupportedOperationError(
            f"FanArt.tv needs a {' or '.join(kinds)} id for {request.entity_type}", self.name
        )

    async def _get(self, path: str) -> Any:
        params: dict[str, str] = {}
        if self.config.api_key:
            params["api_key"] = self.config.api_key
        if self.personal_api_key:
            params["client_key"] = self.personal_api_key
        return await self._request(path, params=params or None)
