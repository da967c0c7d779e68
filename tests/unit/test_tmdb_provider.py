# ABOUTME: Unit tests for TMDBProvider with a mock HTTP transport.
# ABOUTME: Verifies request construction, ID resolution, metadata, assets and error mapping.

import httpx
import pytest

from metarr.providers.circuit import CircuitBreaker
from metarr.providers.errors import (
    AuthenticationError,
    CircuitOpenError,
    NotFoundError,
    ServerError,
    UnsupportedOperationError,
)
from metarr.providers.provider import ProviderAdapter
from metarr.providers.tmdb import TMDBProvider
from metarr.providers.types import AssetRequest, MetadataRequest, ProviderConfig, SearchRequest
from tests.fixtures.tmdb_responses import (
    COLLECTION_RESPONSE,
    CONFIGURATION_RESPONSE,
    FIND_EMPTY_RESPONSE,
    FIND_RESPONSE,
    IMAGES_RESPONSE,
    MOVIE_RESPONSE,
    SEARCH_RESPONSE,
)

ROUTES = {
    "/3/movie/603": MOVIE_RESPONSE,
    "/3/movie/603/images": IMAGES_RESPONSE,
    "/3/collection/2344": COLLECTION_RESPONSE,
    "/3/find/tt0133093": FIND_RESPONSE,
    "/3/find/tt0000000": FIND_EMPTY_RESPONSE,
    "/3/search/movie": SEARCH_RESPONSE,
    "/3/configuration": CONFIGURATION_RESPONSE,
}


class Router:
    """MockTransport handler serving canned TMDB responses by path."""

    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status)
        body = ROUTES.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"status_message": "not found"})
        return httpx.Response(200, json=body)


def _provider(router: Router, api_key: str = "v3key", **kwargs) -> TMDBProvider:
    config = ProviderConfig(provider_name="tmdb", api_key=api_key)
    return TMDBProvider(config, transport=httpx.MockTransport(router), **kwargs)


def _metadata_request(**kwargs) -> MetadataRequest:
    kwargs.setdefault("provider_id", "tmdb")
    kwargs.setdefault("provider_result_id", "603")
    kwargs.setdefault("entity_type", "movie")
    return MetadataRequest(**kwargs)


class TestTMDBProviderBasics:
    @pytest.mark.asyncio
    async def test_satisfies_protocol(self) -> None:
        provider = _provider(Router())
        assert isinstance(provider, ProviderAdapter)
        assert provider.capabilities.id == "tmdb"
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_v3_key_sent_as_query_param(self) -> None:
        router = Router()
        provider = _provider(router, api_key="v3key")
        await provider.get_metadata(_metadata_request())
        await provider.aclose()
        assert router.requests[0].url.params["api_key"] == "v3key"
        assert "authorization" not in router.requests[0].headers

    @pytest.mark.asyncio
    async def test_v4_token_sent_as_bearer(self) -> None:
        router = Router()
        provider = _provider(router, api_key="eyJhbGciOiJIUzI1NiJ9.token")
        await provider.get_metadata(_metadata_request())
        await provider.aclose()
        assert router.requests[0].headers["authorization"].startswith("Bearer eyJ")
        assert "api_key" not in router.requests[0].url.params


class TestTMDBMetadata:
    """Tests for get_metadata()."""

    @pytest.mark.asyncio
    async def test_movie_fields(self) -> None:
        router = Router()
        provider = _provider(router)
        response = await provider.get_metadata(_metadata_request())
        await provider.aclose()

        fields = response.fields
        assert fields["title"] == "The Matrix"
        assert fields["plot"].startswith("Set in the 22nd century")
        assert fields["genres"] == ["Action", "Science Fiction"]
        assert fields["directors"] == ["Lana Wachowski", "Lilly Wachowski"]
        assert fields["writers"] == ["Lilly Wachowski"]
        assert fields["actors"][0] == {
            "name": "Keanu Reeves",
            "role": "Neo",
            "thumb": "https://image.tmdb.org/t/p/w185/keanu.jpg",
        }
        assert fields["certification"] == "R"
        assert fields["trailer"] == "https://www.youtube.com/watch?v=vKQi3bBA1y8"
        assert fields["collection"] == {"id": 2344, "name": "The Matrix Collection"}
        assert response.external_ids == {"tmdb": "603", "imdb": "tt0133093"}
        assert response.confidence == 0.95
        assert response.completeness == 1.0
        params = router.requests[0].url.params
        assert params["append_to_response"] == "credits,external_ids,release_dates,videos"
        assert params["language"] == "en"

    @pytest.mark.asyncio
    async def test_requested_fields_only(self) -> None:
        provider = _provider(Router())
        response = await provider.get_metadata(
            _metadata_request(fields=("title", "runtime", "studios", "keywords"))
        )
        await provider.aclose()
        assert set(response.fields) == {"title", "runtime", "studios"}
        assert response.completeness == 0.75

    @pytest.mark.asyncio
    async def test_imdb_id_resolved_through_find(self) -> None:
        router = Router()
        provider = _provider(router)
        response = await provider.get_metadata(
            _metadata_request(provider_result_id="tt0133093", id_kind="imdb")
        )
        await provider.aclose()
        assert response.provider_result_id == "603"
        assert [r.url.path for r in router.requests] == ["/3/find/tt0133093", "/3/movie/603"]

    @pytest.mark.asyncio
    async def test_unknown_imdb_id_is_not_found(self) -> None:
        provider = _provider(Router())
        with pytest.raises(NotFoundError, match="tt0000000"):
            await provider.get_metadata(
                _metadata_request(provider_result_id="tt0000000", id_kind="imdb")
            )
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_collection(self) -> None:
        provider = _provider(Router())
        response = await provider.get_metadata(
            _metadata_request(provider_result_id="2344", entity_type="collection")
        )
        await provider.aclose()
        assert response.fields == {
            "title": "The Matrix Collection",
            "plot": "The Matrix trilogy and its sequels.",
        }

    @pytest.mark.asyncio
    async def test_unsupported_entity(self) -> None:
        provider = _provider(Router())
        with pytest.raises(UnsupportedOperationError):
            await provider.get_metadata(_metadata_request(entity_type="series"))
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_auth_failure_maps_to_authentication_error(self) -> None:
        provider = _provider(Router(status=401))
        with pytest.raises(AuthenticationError):
            await provider.get_metadata(_metadata_request())
        await provider.aclose()


class TestTMDBAssets:
    """Tests for get_assets()."""

    @pytest.mark.asyncio
    async def test_images_become_candidates(self) -> None:
        provider = _provider(Router())
        candidates = await provider.get_assets(
            AssetRequest(
                provider_id="tmdb",
                provider_result_id="603",
                entity_type="movie",
                asset_types=("poster", "fanart"),
            )
        )
        await provider.aclose()

        by_type = {}
        for c in candidates:
            by_type.setdefault(c.asset_type, []).append(c)
        assert set(by_type) == {"poster", "fanart"}
        poster = by_type["poster"][0]
        assert poster.url == "https://image.tmdb.org/t/p/original/poster_en.jpg"
        assert poster.thumbnail_url == "https://image.tmdb.org/t/p/w342/poster_en.jpg"
        assert (poster.width, poster.height) == (2000, 3000)
        assert poster.quality == "hd"
        assert poster.language == "en"
        assert poster.votes == 12
        fanart = by_type["fanart"][0]
        assert fanart.quality == "4k"
        assert fanart.language is None


class TestTMDBSearch:
    """Tests for search()."""

    @pytest.mark.asyncio
    async def test_title_search_scores_exact_match_highest(self) -> None:
        router = Router()
        provider = _provider(router)
        results = await provider.search(
            SearchRequest(query="The Matrix", entity_type="movie", year=1999)
        )
        await provider.aclose()

        assert [r.provider_result_id for r in results] == ["603", "604"]
        assert results[0].confidence == 1.0
        assert results[1].confidence < results[0].confidence
        assert router.requests[0].url.params["year"] == "1999"

    @pytest.mark.asyncio
    async def test_imdb_search_is_exact(self) -> None:
        provider = _provider(Router())
        results = await provider.search(
            SearchRequest(
                query="ignored", entity_type="movie", external_ids={"imdb": "tt0133093"}
            )
        )
        await provider.aclose()
        assert len(results) == 1
        assert results[0].confidence == 1.0
        assert results[0].poster_url == "https://image.tmdb.org/t/p/w500/matrix.jpg"


class TestTMDBConnection:
    """Tests for test_connection() and the circuit breaker."""

    @pytest.mark.asyncio
    async def test_connection_ok(self) -> None:
        provider = _provider(Router())
        result = await provider.test_connection()
        await provider.aclose()
        assert result.success
        assert result.response_time is not None

    @pytest.mark.asyncio
    async def test_connection_failure(self) -> None:
        provider = _provider(Router(status=401))
        result = await provider.test_connection()
        await provider.aclose()
        assert not result.success
        assert "401" in result.error

    @pytest.mark.asyncio
    async def test_not_found_does_not_trip_breaker(self) -> None:
        breaker = CircuitBreaker(name="tmdb", threshold=1)
        provider = _provider(Router(), circuit_breaker=breaker)
        with pytest.raises(NotFoundError):
            await provider.get_metadata(_metadata_request(provider_result_id="999999"))
        assert not breaker.is_open()
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_open_breaker_short_circuits(self) -> None:
        breaker = CircuitBreaker(name="tmdb", threshold=1)
        router = Router(status=500)
        provider = _provider(router, circuit_breaker=breaker)
        with pytest.raises(ServerError):
            await provider.get_metadata(_metadata_request())
        with pytest.raises(CircuitOpenError):
            await provider.get_metadata(_metadata_request())
        result = await provider.test_connection()
        await provider.aclose()
        assert len(router.requests) == 1
        assert result.error == "Circuit breaker is open"
