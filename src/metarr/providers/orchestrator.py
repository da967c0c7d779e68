# ABOUTME: Fans requests out to every eligible provider and combines what comes back.
# ABOUTME: Metadata is merged by confidence; assets are pooled and ranked by the selector.

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar

import httpx

from metarr.providers.candidate import AssetCandidate
from metarr.providers.capabilities import ProviderCapabilities, normalize_external_ids
from metarr.providers.circuit import CircuitBreaker
from metarr.providers.errors import (
    AllProvidersFailedError,
    ProviderError,
    ProviderTimeoutError,
)
from metarr.providers.events import (
    NullSink,
    Phase,
    ProgressSink,
    ProviderCompleted,
    ProviderRetried,
    ProviderStarted,
    ProviderTimedOut,
)
from metarr.providers.http import RateLimiter
from metarr.providers.merge import MergeStrategy, merge_responses
from metarr.providers.provider import ProviderAdapter
from metarr.providers.registry import ProviderRegistry
from metarr.providers.selector import AssetSelectionConfig, AssetSelector
from metarr.providers.types import (
    AssetRequest,
    ConnectionTestResult,
    MetadataRequest,
    MetadataResponse,
    ProviderConfig,
    SearchRequest,
    SearchResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchPriority = Literal["user", "background"]


@dataclass(frozen=True)
class OrchestratorSettings:
    """Timeouts, retry policy and breaker tuning for provider calls.

    timeout bounds one provider's whole call, retries and backoff included.
    """

    timeout: float = 10.0
    max_retries: int = 2
    base_retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    breaker_threshold: int = 5
    breaker_reset_timeout: float = 300.0

    @classmethod
    def for_priority(cls, priority: FetchPriority) -> "OrchestratorSettings":
        """Presets: interactive requests fail fast, background jobs persist."""
        if priority == "user":
            return cls(timeout=10.0, max_retries=2)
        if priority == "background":
            return cls(timeout=60.0, max_retries=5)
        msg = f"Unknown fetch priority: {priority}"
        raise ValueError(msg)

    def retry_delay(self, attempt: int, error: ProviderError) -> float:
        """Seconds to wait before retry number attempt (1-based)."""
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return min(float(retry_after), self.max_retry_delay)
        return min(self.base_retry_delay * 2 ** (attempt - 1), self.max_retry_delay)


@dataclass(frozen=True)
class MetadataOptions:
    strategy: MergeStrategy = "aggregate_all"
    fields: tuple[str, ...] | None = None
    language: str | None = None
    preferred_provider: str | None = None
    fill_gaps: bool = True
    field_mapping: Mapping[str, str] = field(default_factory=dict)


@dataclass
class FetchDiagnostics:
    """What happened to each provider during one fetch.

    considered lists every provider that was eligible apart from its external
    IDs, in priority order. Providers skipped for lacking a compatible ID are
    in skipped; every other considered provider was attempted.
    """

    phase: Phase
    considered: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> list[str]:
        return [name for name in self.considered if name not in self.skipped]

    @property
    def unsuccessful(self) -> list[str]:
        """Failed and skipped providers, in priority order."""
        return [name for name in self.considered if name in self.failed or name in self.skipped]

    @property
    def total(self) -> int:
        return len(self.considered)

    @property
    def partial(self) -> bool:
        """Some providers answered while others did not."""
        return bool(self.succeeded) and bool(self.unsuccessful)

    @property
    def all_failed(self) -> bool:
        return not self.succeeded

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "considered": list(self.considered),
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
            "timed_out": list(self.timed_out),
            "skipped": dict(self.skipped),
            "partial": self.partial,
        }


@dataclass
class MetadataResult:
    response: MetadataResponse
    diagnostics: FetchDiagnostics


@dataclass
class AssetFetchResult:
    candidates: list[AssetCandidate]
    diagnostics: FetchDiagnostics


@dataclass
class EnrichmentResult:
    """Metadata plus selected assets for one entity.

    metadata is None when every metadata provider failed; metadata_error then
    carries the reason. Asset selection still runs in that case.
    """

    metadata: MetadataResponse | None
    selected_assets: dict[str, list[AssetCandidate]]
    diagnostics: dict[str, FetchDiagnostics]
    metadata_error: str | None = None

    @property
    def partial(self) -> bool:
        return self.metadata is None or any(d.partial for d in self.diagnostics.values())


@dataclass(frozen=True)
class _Plan:
    """One provider call the orchestrator has decided to make."""

    config: ProviderConfig
    capabilities: ProviderCapabilities
    id_kind: str
    id_value: str
    asset_types: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.config.provider_name


@dataclass
class _Outcome:
    name: str
    value: Any = None
    error: str | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class ProviderOrchestrator:
    """Queries providers concurrently with fallback, isolation and merging.

    Provider configuration is re-read from the store on every call. Circuit
    breakers and rate limiters live here, one per provider name, and are handed
    to each adapter instance so failure history and request spacing survive
    between calls.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config_store: Any,
        settings: OrchestratorSettings | None = None,
        *,
        sink: ProgressSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = registry
        self._config_store = config_store
        self.settings = settings or OrchestratorSettings()
        self._sink: ProgressSink = sink or NullSink()
        self._transport = transport
        self._breakers: dict[str, CircuitBreaker] = {}
        self._limiters: dict[str, RateLimiter] = {}

    def circuit_breaker(self, provider_name: str) -> CircuitBreaker:
        breaker = self._breakers.get(provider_name)
        if breaker is None:
            breaker = CircuitBreaker(
                name=provider_name,
                threshold=self.settings.breaker_threshold,
                reset_timeout=self.settings.breaker_reset_timeout,
            )
            self._breakers[provider_name] = breaker
        return breaker

    def rate_limiter(self, provider_name: str) -> RateLimiter:
        limiter = self._limiters.get(provider_name)
        if limiter is None:
            limiter = RateLimiter()
            self._limiters[provider_name] = limiter
        return limiter

    def circuit_stats(self) -> dict[str, dict[str, Any]]:
        return {name: breaker.get_stats() for name, breaker in sorted(self._breakers.items())}

    # Metadata

    async def fetch_metadata(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        options: MetadataOptions | None = None,
    ) -> MetadataResponse:
        """Fetch and merge metadata from every eligible provider.

        Raises:
            AllProvidersFailedError: When no provider produced a response.
        """
        result = await self.fetch_metadata_detailed(entity_type, external_ids, options)
        return result.response

    async def fetch_metadata_detailed(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        options: MetadataOptions | None = None,
    ) -> MetadataResult:
        """Like fetch_metadata, also returning per-provider diagnostics."""
        options = options or MetadataOptions()
        ids = normalize_external_ids(external_ids)
        plans, diagnostics = self._plan("metadata", entity_type, ids)

        def call(plan: _Plan) -> Callable[[ProviderAdapter], Awaitable[MetadataResponse]]:
            request = MetadataRequest(
                provider_id=plan.name,
                provider_result_id=plan.id_value,
                entity_type=entity_type,
                id_kind=plan.id_kind,
                fields=options.fields,
                language=options.language or plan.config.language,
                external_ids=ids,
            )
            return lambda provider: provider.get_metadata(request)

        outcomes = await asyncio.gather(
            *(self._run(plan, "metadata", call(plan)) for plan in plans)
        )
        self._record(diagnostics, outcomes, "Metadata")

        responses = [o.value for o in outcomes if o.ok]
        if not responses:
            logger.error(
                "All %d metadata providers failed for %s", diagnostics.total, entity_type
            )
            raise AllProvidersFailedError(
                diagnostics.total,
                entity_type,
                {**diagnostics.skipped, **diagnostics.failed},
                diagnostics=diagnostics,
            )

        logger.info("Collected metadata from %d providers", len(responses))
        if diagnostics.unsuccessful:
            logger.info(
                "Provider fallback chain activated: failed=%s succeeded=%d total=%d",
                diagnostics.unsuccessful,
                len(diagnostics.succeeded),
                diagnostics.total,
            )

        if len(responses) == 1 and options.strategy == "aggregate_all":
            return MetadataResult(responses[0], diagnostics)

        merged = merge_responses(
            responses,
            options.strategy,
            priority_order=[plan.name for plan in plans],
            requested_fields=options.fields,
            preferred_provider=options.preferred_provider,
            fill_gaps=options.fill_gaps,
            mapping=options.field_mapping,
        )
        return MetadataResult(merged, diagnostics)

    # Assets

    async def fetch_asset_candidates(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        asset_types: Sequence[str],
    ) -> list[AssetCandidate]:
        """Pool candidates from every eligible image provider. Never raises
        for provider trouble; returns [] when nothing came back."""
        result = await self.fetch_assets(entity_type, external_ids, asset_types)
        return result.candidates

    async def fetch_assets(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        asset_types: Sequence[str],
    ) -> AssetFetchResult:
        ids = normalize_external_ids(external_ids)
        plans, diagnostics = self._plan("assets", entity_type, ids, tuple(asset_types))

        def call(plan: _Plan) -> Callable[[ProviderAdapter], Awaitable[list[AssetCandidate]]]:
            request = AssetRequest(
                provider_id=plan.name,
                provider_result_id=plan.id_value,
                entity_type=entity_type,
                id_kind=plan.id_kind,
                asset_types=plan.asset_types,
                language=plan.config.language,
                external_ids=ids,
            )
            return lambda provider: provider.get_assets(request)

        outcomes = await asyncio.gather(*(self._run(plan, "assets", call(plan)) for plan in plans))
        for outcome in outcomes:
            if outcome.ok and not outcome.value:
                outcome.error = "No candidates returned"
        self._record(diagnostics, outcomes, "Asset")

        candidates = [c for o in outcomes if o.ok for c in o.value]
        logger.info(
            "Collected %d asset candidates from %d providers",
            len(candidates),
            len(diagnostics.succeeded),
        )
        if candidates and diagnostics.unsuccessful:
            logger.info(
                "Asset provider fallback chain activated: failed=%s candidates_found=%d total=%d",
                diagnostics.unsuccessful,
                len(candidates),
                diagnostics.total,
            )
        return AssetFetchResult(candidates, diagnostics)

    def select_best_assets(
        self, candidates: Sequence[AssetCandidate], selection: AssetSelectionConfig
    ) -> list[AssetCandidate]:
        return AssetSelector(selection).select_best(candidates)

    async def fetch_all(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        asset_types: Sequence[str],
        selections: Mapping[str, AssetSelectionConfig] | None = None,
        options: MetadataOptions | None = None,
    ) -> EnrichmentResult:
        """Fetch metadata and assets together, then select per asset type.

        Asset types without a selection config keep their single best candidate.
        """
        selections = selections or {}
        metadata_outcome, assets = await asyncio.gather(
            self._metadata_or_failure(entity_type, external_ids, options),
            self.fetch_assets(entity_type, external_ids, asset_types),
        )
        metadata, metadata_diagnostics, metadata_error = metadata_outcome

        selected: dict[str, list[AssetCandidate]] = {}
        for asset_type in asset_types:
            pool = [c for c in assets.candidates if c.asset_type == asset_type]
            selection = selections.get(asset_type) or AssetSelectionConfig(
                asset_type=asset_type, max_count=1
            )
            selected[asset_type] = self.select_best_assets(pool, selection)

        return EnrichmentResult(
            metadata=metadata,
            selected_assets=selected,
            diagnostics={"metadata": metadata_diagnostics, "assets": assets.diagnostics},
            metadata_error=metadata_error,
        )

    async def _metadata_or_failure(
        self,
        entity_type: str,
        external_ids: Mapping[str, object],
        options: MetadataOptions | None,
    ) -> tuple[MetadataResponse | None, FetchDiagnostics, str | None]:
        try:
            result = await self.fetch_metadata_detailed(entity_type, external_ids, options)
        except AllProvidersFailedError as exc:
            return None, exc.diagnostics, str(exc)
        return result.response, result.diagnostics, None

    # Search and connectivity

    async def search_across_providers(self, request: SearchRequest) -> list[SearchResult]:
        """Search every enabled provider that supports search; best first."""
        plans = []
        for config in self._enabled_configs():
            caps = self._registry.get_capabilities(config.provider_name)
            if caps is None or not caps.search.supported:
                continue
            if not caps.supports_entity(request.entity_type):
                continue
            plans.append(_Plan(config, caps, id_kind="", id_value=""))

        logger.info(
            "Searching %d providers for %r (%s)", len(plans), request.query, request.entity_type
        )
        outcomes = await asyncio.gather(
            *(self._run(plan, "search", lambda p: p.search(request)) for plan in plans)
        )
        results: list[SearchResult] = []
        for outcome in outcomes:
            if outcome.ok:
                results.extend(outcome.value)
            else:
                logger.warning("Search failed for %s: %s", outcome.name, outcome.error)
        results.sort(key=lambda r: r.confidence, reverse=True)
        return results

    async def test_provider(self, provider_name: str) -> ConnectionTestResult:
        """Check that a provider is reachable with its stored configuration.

        Raises:
            ProviderNotRegisteredError: If no adapter is registered under that name.
        """
        config = self._config_store.get_by_name(provider_name) or ProviderConfig(
            provider_name=provider_name
        )
        provider = await self._create(config)
        try:
            return await provider.test_connection()
        finally:
            await provider.aclose()

    # Internals

    def _enabled_configs(self) -> list[ProviderConfig]:
        configs = [c for c in self._config_store.get_all() if c.enabled]
        return sorted(configs, key=lambda c: (c.priority, c.provider_name))

    def _plan(
        self,
        phase: Phase,
        entity_type: str,
        ids: dict[str, str],
        asset_types: tuple[str, ...] = (),
    ) -> tuple[list[_Plan], FetchDiagnostics]:
        """Decide which providers to call.

        Providers that cannot serve the phase, entity or asset types are left
        out entirely. Providers that could but lack a compatible external ID are
        recorded as skipped and still count toward the total.
        """
        diagnostics = FetchDiagnostics(phase=phase)
        plans: list[_Plan] = []
        for config in self._enabled_configs():
            name = config.provider_name
            caps = self._registry.get_capabilities(name)
            if caps is None:
                logger.warning("Provider %s is configured but not registered", name)
                continue
            if not caps.supports_entity(entity_type):
                continue
            if phase == "metadata" and not caps.provides_metadata:
                continue
            supported_assets: tuple[str, ...] = ()
            if phase == "assets":
                if not caps.provides_images:
                    continue
                offered = caps.asset_types_for(entity_type)
                supported_assets = tuple(t for t in asset_types if t in offered)
                if not supported_assets:
                    continue

            diagnostics.considered.append(name)
            resolved = caps.resolve_external_id(ids)
            if resolved is None:
                logger.warning(
                    "No compatible external ID found for %s: have %s, needs one of %s",
                    name,
                    sorted(ids),
                    list(caps.accepted_id_kinds()),
                )
                diagnostics.skipped[name] = "No compatible external ID"
                continue
            id_kind, id_value = resolved
            plans.append(_Plan(config, caps, id_kind, id_value, supported_assets))

        logger.debug(
            "%s fetch for %s: calling %s", phase, entity_type, [p.name for p in plans]
        )
        return plans, diagnostics

    def _record(
        self,
        diagnostics: FetchDiagnostics,
        outcomes: list[_Outcome],
        label: str,
    ) -> None:
        for outcome in outcomes:
            if outcome.ok:
                diagnostics.succeeded.append(outcome.name)
                continue
            diagnostics.failed[outcome.name] = outcome.error or "Unknown error"
            if outcome.timed_out:
                diagnostics.timed_out.append(outcome.name)
            logger.warning(
                "%s fetch failed for %s: %s (fallback available: %s)",
                label,
                outcome.name,
                outcome.error,
                any(other.ok for other in outcomes if other is not outcome),
            )

    async def _create(self, config: ProviderConfig) -> ProviderAdapter:
        name = config.provider_name
        kwargs: dict[str, Any] = {
            "circuit_breaker": self.circuit_breaker(name),
            "rate_limiter": self.rate_limiter(name),
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return await self._registry.create_provider(config, **kwargs)

    async def _run(
        self,
        plan: _Plan,
        phase: Phase,
        operation: Callable[[ProviderAdapter], Awaitable[T]],
    ) -> _Outcome:
        """Call one provider under the timeout. Returns an outcome, never raises
        for provider trouble; cancellation still propagates."""
        name = plan.name
        timeout = self.settings.timeout
        self._sink.emit(ProviderStarted(name, phase))
        provider: ProviderAdapter | None = None
        scope = asyncio.timeout(timeout)
        try:
            async with scope:
                provider = await self._create(plan.config)
                value = await self._with_retries(name, phase, lambda: operation(provider))
        except Exception as exc:
            if isinstance(exc, TimeoutError) and scope.expired():
                # The cancelled call never reached the breaker's failure count.
                self.circuit_breaker(name).record_failure()
                error = ProviderTimeoutError(f"Timed out after {timeout:g}s", name).message
                self._sink.emit(ProviderTimedOut(name, phase, timeout=timeout))
                return _Outcome(name, error=error, timed_out=True)
            error = str(exc) or type(exc).__name__
            self._sink.emit(ProviderCompleted(name, phase, success=False, error=error))
            return _Outcome(name, error=error)
        finally:
            if provider is not None:
                await provider.aclose()

        count = len(value) if isinstance(value, list) else 1
        self._sink.emit(ProviderCompleted(name, phase, success=True, result_count=count))
        return _Outcome(name, value=value)

    async def _with_retries(
        self, name: str, phase: Phase, fn: Callable[[], Awaitable[T]]
    ) -> T:
        attempt = 0
        while True:
            try:
                return await fn()
            except ProviderError as exc:
                if not exc.retryable or attempt >= self.settings.max_retries:
                    raise
                attempt += 1
                delay = self.settings.retry_delay(attempt, exc)
                logger.info(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    name,
                    delay,
                    attempt,
                    self.settings.max_retries,
                    exc,
                )
                self._sink.emit(
                    ProviderRetried(
                        name,
                        phase,
                        attempt=attempt,
                        max_retries=self.settings.max_retries,
                        error=str(exc),
                        delay=delay,
                    )
                )
                await asyncio.sleep(delay)
