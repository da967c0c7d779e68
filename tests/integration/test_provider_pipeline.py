# ABOUTME: Integration tests running the orchestrator against the real TMDB and FanArt.tv adapters.
# ABOUTME: HTTP is served by a routing MockTransport, so the full request path is exercised.

import asyncio
import time

import httpx
import pytest

from metarr.db.config_store import InMemoryConfigStore
from metarr.providers import (
    AllProvidersFailedError,
    AssetSelectionConfig,
    OrchestratorSettings,
    ProviderOrchestrator,
    create_default_registry,
)
from metarr.providers.circuit import CircuitState
from metarr.providers.types import ProviderConfig, SearchRequest
from tests.fixtures.service_router import FANART_HOST, TMDB_HOST, ServiceRouter


def _orchestrator(router: ServiceRouter, threshold: int = 5) -> ProviderOrchestrator:
    store = InMemoryConfigStore(
        [
            ProviderConfig("tmdb", api_key="tmdb-key", priority=10),
            ProviderConfig("fanart_tv", api_key="fanart-key", priority=20),
        ]
    )
    settings = OrchestratorSettings(timeout=5.0, max_retries=0, breaker_threshold=threshold)
    return ProviderOrchestrator(
        create_default_registry(), store, settings, transport=httpx.MockTransport(router)
    )


class TestMetadataPipeline:
    @pytest.mark.asyncio
    async def test_metadata_comes_from_tmdb_only(self) -> None:
        router = ServiceRouter()
        result = await _orchestrator(router).fetch_metadata_detailed("movie", {"tmdb_id": 603})

        assert result.response.fields["title"] == "The Matrix"
        assert result.diagnostics.considered == ["tmdb"]
        assert router.hits(FANART_HOST) == 0

    @pytest.mark.asyncio
    async def test_imdb_only_entity_resolves_through_find(self) -> None:
        router = ServiceRouter()
        response = await _orchestrator(router).fetch_metadata("movie", {"imdb": "tt0133093"})
        assert response.external_ids["tmdb"] == "603"

    @pytest.mark.asyncio
    async def test_outage_raises_all_failed(self) -> None:
        router = ServiceRouter(down=(TMDB_HOST,))
        with pytest.raises(AllProvidersFailedError) as excinfo:
            await _orchestrator(router).fetch_metadata("movie", {"tmdb": "603"})
        assert "tmdb" in excinfo.value.failures


class TestAssetPipeline:
    """Asset fetching pools both vendors and survives one of them failing."""

    @pytest.mark.asyncio
    async def test_pool_spans_both_providers(self) -> None:
        router = ServiceRouter()
        result = await _orchestrator(router).fetch_assets("movie", {"tmdb": "603"}, ["poster"])

        providers = {c.provider_id for c in result.candidates}
        assert providers == {"tmdb", "fanart_tv"}
        assert len(result.candidates) == 4
        assert all(c.asset_type == "poster" for c in result.candidates)
        assert not result.diagnostics.partial

    @pytest.mark.asyncio
    async def test_fetch_all_survives_tmdb_outage(self) -> None:
        router = ServiceRouter(down=(TMDB_HOST,))
        result = await _orchestrator(router).fetch_all(
            "movie",
            {"tmdb": "603"},
            ["poster", "clearlogo"],
            selections={"poster": AssetSelectionConfig(asset_type="poster", max_count=5)},
        )

        assert result.metadata is None
        assert result.metadata_error is not None
        assert result.partial
        posters = result.selected_assets["poster"]
        assert {c.provider_id for c in posters} == {"fanart_tv"}
        assert len(result.selected_assets["clearlogo"]) == 1
        assert "tmdb" in result.diagnostics["assets"].failed

    @pytest.mark.asyncio
    async def test_open_breaker_stops_calling_failed_provider(self) -> None:
        router = ServiceRouter(down=(TMDB_HOST,))
        orchestrator = _orchestrator(router, threshold=1)

        await orchestrator.fetch_assets("movie", {"tmdb": "603"}, ["poster"])
        assert orchestrator.circuit_breaker("tmdb").state is CircuitState.OPEN
        second = await orchestrator.fetch_assets("movie", {"tmdb": "603"}, ["poster"])

        assert router.hits(TMDB_HOST) == 1
        assert second.diagnostics.failed["tmdb"] == "Circuit breaker is open"
        assert len(second.candidates) == 2


    @pytest.mark.asyncio
    async def test_requests_stay_spaced_across_concurrent_calls(self) -> None:
        router = ServiceRouter()
        sent: list[float] = []

        def timed(request: httpx.Request) -> httpx.Response:
            sent.append(time.monotonic())
            return router(request)

        store = InMemoryConfigStore([ProviderConfig("tmdb", api_key="tmdb-key")])
        orchestrator = ProviderOrchestrator(
            create_default_registry(),
            store,
            OrchestratorSettings(timeout=10.0, max_retries=0),
            transport=httpx.MockTransport(timed),
        )

        await asyncio.gather(
            *(
                orchestrator.fetch_asset_candidates("movie", {"tmdb": "603"}, ["poster"])
                for _ in range(4)
            )
        )

        # TMDB allows four requests a second.
        assert len(sent) >= 4
        gaps = [later - earlier for earlier, later in zip(sent, sent[1:])]
        assert min(gaps) >= 0.24


class TestSearchAndConnectivity:
    @pytest.mark.asyncio
    async def test_search_skips_providers_without_search(self) -> None:
        router = ServiceRouter()
        results = await _orchestrator(router).search_across_providers(
            SearchRequest(query="The Matrix", entity_type="movie", year=1999)
        )
        assert [r.provider_result_id for r in results] == ["603", "604"]
        assert router.hits(FANART_HOST) == 0

    @pytest.mark.asyncio
    async def test_test_provider(self) -> None:
        router = ServiceRouter()
        orchestrator = _orchestrator(router)
        assert (await orchestrator.test_provider("tmdb")).success
        assert (await orchestrator.test_provider("fanart_tv")).success
