# ABOUTME: AssetCandidate describes one image or video option offered by a provider.
# ABOUTME: Candidates are pooled by the orchestrator and ranked by the asset selector.

from dataclasses import dataclass, replace
from typing import Literal

QualityTier = Literal["sd", "hd", "4k"]

QUALITY_RANK: dict[str, int] = {"sd": 1, "hd": 2, "4k": 3}


def classify_quality(width: int | None, height: int | None) -> QualityTier | None:
    """Derive a quality tier from pixel dimensions.

    Returns None when either dimension is unknown.
    """
    if not width or not height:
        return None
    long_side, short_side = max(width, height), min(width, height)
    if long_side >= 3840 or short_side >= 2160:
        return "4k"
    if long_side >= 1280 or short_side >= 720:
        return "hd"
    return "sd"


@dataclass(frozen=True)
class AssetCandidate:
    """A discovered asset that has not been selected or downloaded yet.

    Hash fields are empty when the provider hands the candidate over; they are
    filled in later with with_hashes(), which returns a new candidate.
    """

    provider_id: str
    provider_result_id: str
    asset_type: str
    url: str
    thumbnail_url: str | None = None
    width: int | None = None
    height: int | None = None
    aspect_ratio: float | None = None
    quality: QualityTier | None = None
    language: str | None = None
    votes: int | None = None
    vote_average: float | None = None
    is_preferred_by_provider: bool = False
    content_hash: str | None = None
    perceptual_hash: str | None = None
    difference_hash: str | None = None

    def __post_init__(self) -> None:
        if self.quality is not None and self.quality not in QUALITY_RANK:
            msg = f"quality must be one of {sorted(QUALITY_RANK)}, got {self.quality!r}"
            raise ValueError(msg)
        if self.vote_average is not None and not 0.0 <= self.vote_average <= 10.0:
            msg = f"vote_average must be between 0 and 10, got {self.vote_average}"
            raise ValueError(msg)

    @property
    def pixels(self) -> int | None:
        if self.width and self.height:
            return self.width * self.height
        return None

    @property
    def effective_aspect_ratio(self) -> float | None:
        """Declared aspect ratio, or width/height when only dimensions are known."""
        if self.aspect_ratio:
            return self.aspect_ratio
        if self.width and self.height:
            return self.width / self.height
        return None

    def with_hashes(
        self,
        *,
        content_hash: str | None = None,
        perceptual_hash: str | None = None,
        difference_hash: str | None = None,
    ) -> "AssetCandidate":
        """Return a copy carrying the given hashes; unspecified hashes are kept."""
        return replace(
            self,
            content_hash=content_hash or self.content_hash,
            perceptual_hash=perceptual_hash or self.perceptual_hash,
            difference_hash=difference_hash or self.difference_hash,
        )
