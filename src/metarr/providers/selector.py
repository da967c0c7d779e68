# ABOUTME: Ranks pooled asset candidates and picks the best N for one asset type.
# ABOUTME: Filters the pool, scores what is left, then drops near-duplicates by pHash.

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from metarr.providers.candidate import QUALITY_RANK, AssetCandidate

logger = logging.getLogger(__name__)

QualityPreference = Literal["any", "sd", "hd", "4k"]

# Score weights, summing to 1.0
_WEIGHT_RESOLUTION = 0.25
_WEIGHT_VOTES = 0.30
_WEIGHT_LANGUAGE = 0.20
_WEIGHT_PROVIDER = 0.15
_WEIGHT_ASPECT = 0.10

# Additive boosts on top of the weighted score.
_PRIORITY_BOOST_STEP = 2
_PROVIDER_PREFERRED_BOOST = 10

# Resolution is scored against a 4K frame.
_MAX_PIXELS = 3840 * 2160

# Vote count at which the count half of the vote score saturates.
_VOTE_COUNT_SATURATION = 100

PROVIDER_QUALITY: dict[str, float] = {
    "fanart_tv": 1.0,
    "tmdb": 0.8,
    "tvdb": 0.6,
    "imdb": 0.5,
    "local": 0.5,
}
_DEFAULT_PROVIDER_QUALITY = 0.5

IDEAL_ASPECT_RATIOS: dict[str, float] = {
    "poster": 0.67,
    "fanart": 1.78,
    "banner": 5.4,
    "clearart": 1.0,
    "clearlogo": 1.0,
    "thumb": 1.78,
    "landscape": 1.78,
    "discart": 1.0,
    "characterart": 0.67,
    "keyart": 0.67,
}
_DEFAULT_ASPECT_RATIO = 1.0


@dataclass(frozen=True)
class AssetSelectionConfig:
    """How to pick assets of one type."""

    asset_type: str
    max_count: int
    min_width: int | None = None
    min_height: int | None = None
    quality_preference: QualityPreference = "any"
    prefer_language: str = "en"
    allow_multilingual: bool = True
    phash_threshold: float = 0.92
    provider_priority: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_count < 0:
            msg = f"max_count must not be negative, got {self.max_count}"
            raise ValueError(msg)
        if not 0.0 <= self.phash_threshold <= 1.0:
            msg = f"phash_threshold must be between 0.0 and 1.0, got {self.phash_threshold}"
            raise ValueError(msg)
        if self.quality_preference != "any" and self.quality_preference not in QUALITY_RANK:
            msg = f"Unknown quality preference: {self.quality_preference}"
            raise ValueError(msg)


def compare_phash(hash1: str, hash2: str) -> float:
    """Fraction of positions where two hashes agree.

    Hashes of different length are not comparable and score 0.
    """
    if not hash1 or len(hash1) != len(hash2):
        return 0.0
    matches = sum(1 for a, b in zip(hash1, hash2) if a == b)
    return matches / len(hash1)


class AssetSelector:
    """Deterministic best-N selection over a candidate pool."""

    def __init__(self, config: AssetSelectionConfig) -> None:
        self.config = config

    def get_weights(self) -> dict[str, float]:
        return {
            "resolution": _WEIGHT_RESOLUTION,
            "votes": _WEIGHT_VOTES,
            "language": _WEIGHT_LANGUAGE,
            "provider": _WEIGHT_PROVIDER,
            "aspect_ratio": _WEIGHT_ASPECT,
        }

    def select_best(self, candidates: Sequence[AssetCandidate]) -> list[AssetCandidate]:
        """Return at most max_count candidates, best first.

        An empty result is a normal outcome when nothing passes the filters.
        """
        config = self.config
        filtered = [c for c in candidates if self._passes_filters(c)]
        if not filtered:
            if candidates:
                logger.info("No %s candidates passed quality filters", config.asset_type)
            return []

        # sorted() is stable, so equal scores keep their pool order.
        scored = sorted(filtered, key=self.score, reverse=True)

        kept: list[AssetCandidate] = []
        for candidate in scored:
            if len(kept) >= config.max_count:
                break
            if self._is_duplicate(candidate, kept):
                logger.debug("Skipping near-duplicate %s: %s", config.asset_type, candidate.url)
                continue
            kept.append(candidate)

        logger.debug(
            "Selected %d of %d %s candidates", len(kept), len(candidates), config.asset_type
        )
        return kept

    def score(self, candidate: AssetCandidate) -> float:
        """Weighted sum of sub-scores (each 0-100) plus boosts."""
        config = self.config
        total = 0.0

        pixels = candidate.pixels
        if pixels:
            total += min(pixels / _MAX_PIXELS, 1.0) * 100 * _WEIGHT_RESOLUTION

        total += self._vote_score(candidate) * _WEIGHT_VOTES

        if candidate.language is None or candidate.language == config.prefer_language:
            total += 100 * _WEIGHT_LANGUAGE

        quality = PROVIDER_QUALITY.get(candidate.provider_id, _DEFAULT_PROVIDER_QUALITY)
        total += quality * 100 * _WEIGHT_PROVIDER

        ratio = candidate.effective_aspect_ratio
        if ratio:
            ideal = IDEAL_ASPECT_RATIOS.get(candidate.asset_type, _DEFAULT_ASPECT_RATIO)
            total += max(0.0, 100 - abs(ideal - ratio) * 200) * _WEIGHT_ASPECT

        if candidate.provider_id in config.provider_priority:
            index = config.provider_priority.index(candidate.provider_id)
            total += (len(config.provider_priority) - index) * _PRIORITY_BOOST_STEP

        if candidate.is_preferred_by_provider:
            total += _PROVIDER_PREFERRED_BOOST

        return total

    @staticmethod
    def _vote_score(candidate: AssetCandidate) -> float:
        if candidate.votes is not None and candidate.vote_average is not None:
            count_part = min(candidate.votes / _VOTE_COUNT_SATURATION, 1.0) * 50
            return count_part + (candidate.vote_average / 10) * 50
        if candidate.vote_average is not None:
            return (candidate.vote_average / 10) * 100
        return 0.0

    def _passes_filters(self, candidate: AssetCandidate) -> bool:
        config = self.config
        if config.min_width and candidate.width and candidate.width < config.min_width:
            return False
        if config.min_height and candidate.height and candidate.height < config.min_height:
            return False
        if config.quality_preference != "any" and candidate.quality:
            if QUALITY_RANK[candidate.quality] < QUALITY_RANK[config.quality_preference]:
                return False
        if not config.allow_multilingual and candidate.language:
            if candidate.language != config.prefer_language:
                return False
        return True

    def _is_duplicate(self, candidate: AssetCandidate, kept: list[AssetCandidate]) -> bool:
        if not candidate.perceptual_hash:
            return False
        for other in kept:
            if not other.perceptual_hash:
                continue
            similarity = compare_phash(candidate.perceptual_hash, other.perceptual_hash)
            if similarity >= self.config.phash_threshold:
                return True
        return False
