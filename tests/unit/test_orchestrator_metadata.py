# ABOUTME: Unit tests for ProviderOrchestrator metadata fetching with fallback and merging.
# ABOUTME: Fake providers stand in for real APIs so failures and timings are scripted.

import pytest

from metarr.providers.errors import AllProvidersFailedError, NotFoundError, ServerError
from metarr.providers.merge import MERGED_PROVIDER_ID
from metarr.providers.orchestrator import MetadataOptions
from metarr.providers.types import ProviderConfig
from tests.fixtures.fake_providers import make_provider, metadata_response


class TestFetchMetadataFallback:
    """Tests for partial and total failure."""

    @pytest.mark.asyncio
    async def test_failed_provider_falls_back_to_next(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A fails with a server error, B succeeds: the result is B's response."""
        b_response = metadata_response("b", {"title": "The Matrix", "runtime": 136})
        orchestrator = build_orchestrator(
            make_provider("a", metadata=ServerError("HTTP 500", "a")),
            make_provider("b", metadata=b_response),
        )

        with caplog.at_level("INFO"):
            result = await orchestrator.fetch_metadata("movie", {"tmdb": "603"})

        assert result == b_response
        assert "Provider fallback chain activated" in caplog.text
        assert "failed=['a'] succeeded=1 total=2" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_logged_with_fallback_flag(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        orchestrator = build_orchestrator(
            make_provider("a", metadata=NotFoundError("HTTP 404", "a")),
            make_provider("b"),
        )
        with caplog.at_level("WARNING"):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert "Metadata fetch failed for a: HTTP 404 (fallback available: True)" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_flag_counts_earlier_successes(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        """The last provider failing still has a fallback when an earlier one succeeded."""
        orchestrator = build_orchestrator(
            make_provider("a"),
            make_provider("b", metadata=ServerError("HTTP 500", "b")),
        )
        with caplog.at_level("WARNING"):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert "Metadata fetch failed for b: HTTP 500 (fallback available: True)" in caplog.text

    @pytest.mark.asyncio
    async def test_no_fallback_when_every_provider_fails(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        orchestrator = build_orchestrator(
            make_provider("a", metadata=ServerError("HTTP 500", "a")),
            make_provider("b", metadata=ServerError("HTTP 503", "b")),
        )
        with caplog.at_level("WARNING"), pytest.raises(AllProvidersFailedError):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert "fallback available: True" not in caplog.text
        assert "Metadata fetch failed for a: HTTP 500 (fallback available: False)" in caplog.text

    @pytest.mark.asyncio
    async def test_all_providers_failed(self, build_orchestrator) -> None:
        orchestrator = build_orchestrator(
            make_provider("a", metadata=ServerError("HTTP 500", "a")),
            make_provider("b", metadata=ServerError("HTTP 503", "b")),
        )
        with pytest.raises(
            AllProvidersFailedError, match="All 2 metadata providers failed for movie"
        ) as excinfo:
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert excinfo.value.attempted == 2
        assert excinfo.value.entity_type == "movie"
        assert set(excinfo.value.failures) == {"a", "b"}
        assert excinfo.value.diagnostics.considered == ["a", "b"]
        assert excinfo.value.diagnostics.all_failed

    @pytest.mark.asyncio
    async def test_no_providers_at_all(self, build_orchestrator) -> None:
        orchestrator = build_orchestrator()
        with pytest.raises(AllProvidersFailedError, match="All 0 metadata providers"):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})

    @pytest.mark.asyncio
    async def test_provider_without_compatible_id_is_skipped_but_counted(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        provider = make_provider("a", id_kinds=("tmdb",))
        orchestrator = build_orchestrator(provider)
        with caplog.at_level("WARNING"), pytest.raises(AllProvidersFailedError, match="All 1"):
            await orchestrator.fetch_metadata("movie", {"tvdb": "81189"})
        assert "No compatible external ID found for a" in caplog.text
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_images_only_provider_not_considered(self, build_orchestrator) -> None:
        images = make_provider("art", category="images")
        orchestrator = build_orchestrator(images, make_provider("b"))
        result = await orchestrator.fetch_metadata_detailed("movie", {"tmdb": "603"})
        assert result.diagnostics.considered == ["b"]
        assert images.requests == []

    @pytest.mark.asyncio
    async def test_unsupported_entity_type_not_considered(self, build_orchestrator) -> None:
        orchestrator = build_orchestrator(make_provider("a", entity_types=("series",)))
        with pytest.raises(AllProvidersFailedError, match="All 0 metadata providers"):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})

    @pytest.mark.asyncio
    async def test_disabled_provider_not_called(self, build_orchestrator) -> None:
        disabled = make_provider("a")
        enabled = make_provider("b")
        orchestrator = build_orchestrator(
            disabled,
            enabled,
            configs=[
                ProviderConfig(provider_name="a", enabled=False),
                ProviderConfig(provider_name="b"),
            ],
        )
        await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert disabled.requests == []
        assert len(enabled.requests) == 1

    @pytest.mark.asyncio
    async def test_configured_but_unregistered_provider_warns(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        orchestrator = build_orchestrator(
            make_provider("b"),
            configs=[ProviderConfig(provider_name="ghost"), ProviderConfig(provider_name="b")],
        )
        with caplog.at_level("WARNING"):
            await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert "Provider ghost is configured but not registered" in caplog.text


class TestFetchMetadataRequests:
    """Tests for what providers are asked."""

    @pytest.mark.asyncio
    async def test_request_carries_resolved_id(self, build_orchestrator) -> None:
        provider = make_provider("a", id_kinds=("tmdb", "imdb"))
        orchestrator = build_orchestrator(provider)
        await orchestrator.fetch_metadata(
            "movie",
            {"imdb_id": "tt0133093"},
            MetadataOptions(fields=("title",), language="de"),
        )
        request = provider.requests[0]
        assert request.id_kind == "imdb"
        assert request.provider_result_id == "tt0133093"
        assert request.external_ids == {"imdb": "tt0133093"}
        assert request.fields == ("title",)
        assert request.language == "de"

    @pytest.mark.asyncio
    async def test_provider_instances_are_closed(self, build_orchestrator) -> None:
        good = make_provider("a")
        bad = make_provider("b", metadata=ServerError("HTTP 500", "b"))
        orchestrator = build_orchestrator(good, bad)
        await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert good.closed == [True]
        assert bad.closed == [True]


class TestFetchMetadataMerge:
    """Tests for merging several successful responses."""

    @pytest.mark.asyncio
    async def test_single_success_returned_as_is(self, build_orchestrator) -> None:
        response = metadata_response("a", {"title": "The Matrix"}, confidence=0.7)
        orchestrator = build_orchestrator(make_provider("a", metadata=response))
        assert await orchestrator.fetch_metadata("movie", {"tmdb": "603"}) is response

    @pytest.mark.asyncio
    async def test_higher_confidence_wins_per_field(
        self, build_orchestrator, caplog: pytest.LogCaptureFixture
    ) -> None:
        low = metadata_response("a", {"title": "Matrix", "plot": "Plot A"}, confidence=0.6)
        high = metadata_response("b", {"title": "The Matrix", "runtime": 136}, confidence=0.9)
        orchestrator = build_orchestrator(
            make_provider("a", metadata=low), make_provider("b", metadata=high)
        )

        with caplog.at_level("INFO"):
            merged = await orchestrator.fetch_metadata("movie", {"tmdb": "603"})

        assert merged.provider_id == MERGED_PROVIDER_ID
        assert merged.fields == {"title": "The Matrix", "runtime": 136, "plot": "Plot A"}
        assert merged.confidence == 0.9
        assert "Collected metadata from 2 providers" in caplog.text
        assert "fallback chain" not in caplog.text

    @pytest.mark.asyncio
    async def test_equal_confidence_tie_goes_to_priority(self, build_orchestrator) -> None:
        first = metadata_response("a", {"title": "First"}, confidence=0.8)
        second = metadata_response("b", {"title": "Second"}, confidence=0.8)
        orchestrator = build_orchestrator(
            make_provider("b", metadata=second),
            make_provider("a", metadata=first),
        )
        merged = await orchestrator.fetch_metadata("movie", {"tmdb": "603"})
        assert merged.fields["title"] == "Second"

    @pytest.mark.asyncio
    async def test_preferred_first_strategy(self, build_orchestrator) -> None:
        a = metadata_response("a", {"title": "A title"}, confidence=0.9)
        b = metadata_response("b", {"title": "B title", "plot": "B plot"}, confidence=0.5)
        orchestrator = build_orchestrator(
            make_provider("a", metadata=a), make_provider("b", metadata=b)
        )
        merged = await orchestrator.fetch_metadata(
            "movie",
            {"tmdb": "603"},
            MetadataOptions(strategy="preferred_first", preferred_provider="b"),
        )
        assert merged.fields == {"title": "B title", "plot": "B plot"}
        assert merged.confidence == 0.5

    @pytest.mark.asyncio
    async def test_field_mapping_strategy(self, build_orchestrator) -> None:
        a = metadata_response("a", {"title": "A title", "plot": "A plot"}, confidence=0.9)
        b = metadata_response("b", {"title": "B title", "plot": "B plot"}, confidence=0.5)
        orchestrator = build_orchestrator(
            make_provider("a", metadata=a), make_provider("b", metadata=b)
        )
        merged = await orchestrator.fetch_metadata(
            "movie",
            {"tmdb": "603"},
            MetadataOptions(strategy="field_mapping", field_mapping={"plot": "b"}),
        )
        assert merged.fields == {"title": "A title", "plot": "B plot"}


class TestFetchMetadataDiagnostics:
    """Tests for fetch_metadata_detailed()."""

    @pytest.mark.asyncio
    async def test_diagnostics_record_every_outcome(self, build_orchestrator) -> None:
        orchestrator = build_orchestrator(
            make_provider("a", metadata=ServerError("HTTP 500", "a")),
            make_provider("b"),
            make_provider("c", id_kinds=("tvdb",)),
        )
        result = await orchestrator.fetch_metadata_detailed("movie", {"tmdb": "603"})
        diagnostics = result.diagnostics

        assert diagnostics.phase == "metadata"
        assert diagnostics.considered == ["a", "b", "c"]
        assert diagnostics.attempted == ["a", "b"]
        assert diagnostics.succeeded == ["b"]
        assert diagnostics.failed == {"a": "HTTP 500"}
        assert list(diagnostics.skipped) == ["c"]
        assert diagnostics.unsuccessful == ["a", "c"]
        assert diagnostics.total == 3
        assert diagnostics.partial
        assert not diagnostics.all_failed

    @pytest.mark.asyncio
    async def test_clean_run_is_not_partial(self, build_orchestrator) -> None:
        orchestrator = build_orchestrator(make_provider("a"), make_provider("b"))
        result = await orchestrator.fetch_metadata_detailed("movie", {"tmdb": "603"})
        assert not result.diagnostics.partial
        assert result.diagnostics.as_dict()["succeeded"] == ["a", "b"]
