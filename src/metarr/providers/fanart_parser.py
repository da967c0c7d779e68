# ABOUTME: Parsing functions for FanArt.tv API JSON responses.
# ABOUTME: Maps FanArt.tv image sections onto asset types and builds AssetCandidates.

from typing import Any

from metarr.providers.candidate import AssetCandidate

PROVIDER_ID = "fanart_tv"

# FanArt.tv section -> (asset type, is HD). HD sections are listed first so
# they lead the pool for their asset type.
MOVIE_SECTIONS: dict[str, tuple[str, bool]] = {
    "hdmovielogo": ("clearlogo", True),
    "movielogo": ("clearlogo", False),
    "hdmovieclearart": ("clearart", True),
    "movieart": ("clearart", False),
    "movieposter": ("poster", False),
    "moviebackground": ("fanart", False),
    "moviebanner": ("banner", False),
    "moviethumb": ("landscape", False),
    "moviedisc": ("discart", False),
}

SERIES_SECTIONS: dict[str, tuple[str, bool]] = {
    "hdtvlogo": ("clearlogo", True),
    "clearlogo": ("clearlogo", False),
    "hdclearart": ("clearart", True),
    "clearart": ("clearart", False),
    "showbackground": ("fanart", False),
    "tvposter": ("poster", False),
    "tvbanner": ("banner", False),
    "tvthumb": ("landscape", False),
    "characterart": ("characterart", False),
}

SEASON_SECTIONS: dict[str, tuple[str, bool]] = {
    "seasonposter": ("poster", False),
    "seasonthumb": ("landscape", False),
    "seasonbanner": ("banner", False),
}

_SECTIONS_BY_ENTITY = {
    "movie": MOVIE_SECTIONS,
    "series": SERIES_SECTIONS,
    "season": SEASON_SECTIONS,
}

# FanArt.tv marks language-neutral art with "00".
_NO_LANGUAGE = "00"


def parse_language(lang: str | None) -> str | None:
    if not lang or lang == _NO_LANGUAGE:
        return None
    return lang


def parse_likes(likes: Any) -> int | None:
    try:
        return int(likes)
    except (TypeError, ValueError):
        return None


def parse_images(
    data: dict[str, Any],
    entity_type: str,
    provider_result_id: str,
    asset_types: tuple[str, ...],
) -> list[AssetCandidate]:
    """Convert a /movies/{id} or /tv/{id} response into candidates.

    Sections whose asset type was not requested are skipped; an empty
    asset_types tuple means every section.
    """
    sections = _SECTIONS_BY_ENTITY.get(entity_type, {})
    candidates: list[AssetCandidate] = []
    for section, (asset_type, is_hd) in sections.items():
        if asset_types and asset_type not in asset_types:
            continue
        for image in data.get(section) or []:
            url = image.get("url")
            if not url:
                continue
            candidates.append(
                AssetCandidate(
                    provider_id=PROVIDER_ID,
                    provider_result_id=provider_result_id,
                    asset_type=asset_type,
                    url=url,
                    thumbnail_url=url.replace("/fanart/", "/preview/", 1),
                    quality="hd" if is_hd else None,
                    language=parse_language(image.get("lang")),
                    votes=parse_likes(image.get("likes")),
                )
            )
    return candidates
