# ABOUTME: Pure functions that combine several providers' metadata into one response.
# ABOUTME: Results depend only on the responses and the priority order, never on arrival order.

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from metarr.providers.types import MetadataResponse

MergeStrategy = Literal["aggregate_all", "preferred_first", "field_mapping"]

MERGED_PROVIDER_ID = "aggregated"
MERGED_RESULT_ID = "merged"


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def rank_responses(
    responses: Sequence[MetadataResponse], priority_order: Sequence[str] = ()
) -> list[MetadataResponse]:
    """Sort responses best first: higher confidence, then earlier priority.

    Providers missing from priority_order rank after listed ones, by id.
    """
    rank = {provider_id: index for index, provider_id in enumerate(priority_order)}
    return sorted(
        responses,
        key=lambda r: (-r.confidence, rank.get(r.provider_id, len(rank)), r.provider_id),
    )


def _completeness(
    fields: Mapping[str, Any],
    responses: Sequence[MetadataResponse],
    requested_fields: Sequence[str] | None,
) -> float:
    if requested_fields:
        return _clamp(sum(1 for f in requested_fields if f in fields) / len(requested_fields))
    reported: set[str] = set()
    for response in responses:
        reported.update(response.fields)
    if not reported:
        return 0.0
    return _clamp(len(fields) / len(reported))


def _merged_external_ids(ranked: Sequence[MetadataResponse]) -> dict[str, str]:
    external_ids: dict[str, str] = {}
    for response in ranked:
        for kind, value in response.external_ids.items():
            external_ids.setdefault(kind, value)
    return external_ids


def _build(
    fields: dict[str, Any],
    ranked: Sequence[MetadataResponse],
    requested_fields: Sequence[str] | None,
    confidence: float,
) -> MetadataResponse:
    return MetadataResponse(
        provider_id=MERGED_PROVIDER_ID,
        provider_result_id=MERGED_RESULT_ID,
        fields=fields,
        completeness=_completeness(fields, ranked, requested_fields),
        confidence=_clamp(confidence),
        external_ids=_merged_external_ids(ranked),
    )


def aggregate_all(
    responses: Sequence[MetadataResponse],
    priority_order: Sequence[str] = (),
    requested_fields: Sequence[str] | None = None,
) -> MetadataResponse:
    """Take each field from the most confident response that populates it.

    Confidence is response-level: a provider's overall confidence decides
    every field it supplies. The aggregate confidence is the highest seen.
    """
    if not responses:
        raise ValueError("aggregate_all needs at least one response")
    ranked = rank_responses(responses, priority_order)
    fields: dict[str, Any] = {}
    for response in ranked:
        populated = response.populated_fields()
        for name in response.fields:
            if name not in fields and name in populated:
                fields[name] = response.fields[name]
    return _build(fields, ranked, requested_fields, max(r.confidence for r in ranked))


def preferred_first(
    responses: Sequence[MetadataResponse],
    preferred_provider: str | None,
    priority_order: Sequence[str] = (),
    requested_fields: Sequence[str] | None = None,
    fill_gaps: bool = True,
) -> MetadataResponse:
    """Start from the preferred provider; optionally fill gaps from the rest.

    Gaps are filled from the remaining responses in priority order. When the
    preferred provider did not answer, the result is empty unless fill_gaps.
    """
    if not responses:
        raise ValueError("preferred_first needs at least one response")
    rank = {provider_id: index for index, provider_id in enumerate(priority_order)}
    ordered = sorted(responses, key=lambda r: (rank.get(r.provider_id, len(rank)), r.provider_id))
    preferred = next((r for r in ordered if r.provider_id == preferred_provider), None)

    fields: dict[str, Any] = {}
    confidence = 0.0
    if preferred is not None:
        fields = {name: preferred.fields[name] for name in preferred.populated_fields()}
        confidence = preferred.confidence

    if fill_gaps:
        for response in ordered:
            if response is preferred:
                continue
            populated = response.populated_fields()
            for name in response.fields:
                if name not in fields and name in populated:
                    fields[name] = response.fields[name]
        if preferred is None:
            confidence = max(r.confidence for r in ordered)

    return _build(fields, ordered, requested_fields, confidence)


def field_mapping(
    responses: Sequence[MetadataResponse],
    mapping: Mapping[str, str],
    priority_order: Sequence[str] = (),
    requested_fields: Sequence[str] | None = None,
) -> MetadataResponse:
    """Take each mapped field from its assigned provider.

    A mapped field its provider did not populate, and every unmapped field,
    comes from aggregate_all over all responses.
    """
    fallback = aggregate_all(responses, priority_order, requested_fields)
    by_provider = {r.provider_id: r for r in responses}

    fields: dict[str, Any] = {}
    for name, provider_id in mapping.items():
        response = by_provider.get(provider_id)
        if response is not None and name in response.populated_fields():
            fields[name] = response.fields[name]
    for name, value in fallback.fields.items():
        fields.setdefault(name, value)

    ranked = rank_responses(responses, priority_order)
    return _build(fields, ranked, requested_fields, fallback.confidence)


def merge_responses(
    responses: Sequence[MetadataResponse],
    strategy: MergeStrategy = "aggregate_all",
    *,
    priority_order: Sequence[str] = (),
    requested_fields: Sequence[str] | None = None,
    preferred_provider: str | None = None,
    fill_gaps: bool = True,
    mapping: Mapping[str, str] | None = None,
) -> MetadataResponse:
    """Dispatch to the named merge strategy."""
    if strategy == "aggregate_all":
        return aggregate_all(responses, priority_order, requested_fields)
    if strategy == "preferred_first":
        return preferred_first(
            responses, preferred_provider, priority_order, requested_fields, fill_gaps
        )
    if strategy == "field_mapping":
        return field_mapping(responses, mapping or {}, priority_order, requested_fields)
    msg = f"Unknown merge strategy: {strategy}"
    raise ValueError(msg)
