# ABOUTME: Parsing functions for TMDB API JSON responses.
# ABOUTME: Converts TMDB structures into metadata field maps, search results and candidates.

from typing import Any

from metarr.providers.candidate import AssetCandidate, classify_quality
from metarr.providers.types import SearchResult

PROVIDER_ID = "tmdb"
IMAGE_BASE_URL = "https://image.tmdb.org/t/p"

MOVIE_FIELDS = (
    "title",
    "original_title",
    "plot",
    "tagline",
    "release_date",
    "runtime",
    "ratings",
    "genres",
    "studios",
    "country",
    "directors",
    "writers",
    "actors",
    "certification",
    "collection",
    "trailer",
)
COLLECTION_FIELDS = ("title", "plot")

_MAX_ACTORS = 20
_WRITER_JOBS = {"Screenplay", "Writer", "Story"}
_CERTIFICATION_COUNTRY = "US"

# TMDB image list key -> (asset type, thumbnail size)
_IMAGE_SECTIONS = {
    "posters": ("poster", "w342"),
    "backdrops": ("fanart", "w780"),
    "logos": ("clearlogo", "w185"),
}


def image_url(path: str, size: str = "original", base: str = IMAGE_BASE_URL) -> str:
    return f"{base}/{size}{path}"


def _wanted(name: str, requested: tuple[str, ...] | None) -> bool:
    return requested is None or name in requested


def compute_completeness(fields: dict[str, Any], requested: tuple[str, ...] | None) -> float:
    """Fraction of requested fields that came back populated.

    Without an explicit request any non-empty result counts as complete.
    """
    populated = [name for name, value in fields.items() if value not in (None, "", [], {})]
    if not requested:
        return 1.0 if populated else 0.0
    return sum(1 for name in requested if name in populated) / len(requested)


def parse_movie(
    data: dict[str, Any],
    requested: tuple[str, ...] | None = None,
    image_base: str = IMAGE_BASE_URL,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Parse a /movie/{id} response fetched with credits, external_ids,
    release_dates and videos appended.

    Returns (fields, external_ids).
    """
    fields: dict[str, Any] = {}

    if _wanted("title", requested):
        fields["title"] = data.get("title")
    if _wanted("original_title", requested):
        fields["original_title"] = data.get("original_title")
    if _wanted("plot", requested):
        fields["plot"] = data.get("overview") or None
    if _wanted("tagline", requested):
        fields["tagline"] = data.get("tagline") or None
    if _wanted("release_date", requested):
        fields["release_date"] = data.get("release_date") or None
    if _wanted("runtime", requested):
        fields["runtime"] = data.get("runtime")

    if _wanted("ratings", requested) and data.get("vote_count"):
        fields["ratings"] = [
            {
                "source": PROVIDER_ID,
                "value": data.get("vote_average"),
                "votes": data.get("vote_count"),
            }
        ]

    if _wanted("genres", requested) and data.get("genres"):
        fields["genres"] = [g["name"] for g in data["genres"]]
    if _wanted("studios", requested) and data.get("production_companies"):
        fields["studios"] = [c["name"] for c in data["production_companies"]]
    if _wanted("country", requested) and data.get("production_countries"):
        fields["country"] = [c["name"] for c in data["production_countries"]]

    credits = data.get("credits") or {}
    if _wanted("actors", requested) and credits.get("cast"):
        fields["actors"] = [
            {
                "name": actor.get("name"),
                "role": actor.get("character"),
                "thumb": (
                    image_url(actor["profile_path"], "w185", image_base)
                    if actor.get("profile_path")
                    else None
                ),
            }
            for actor in credits["cast"][:_MAX_ACTORS]
        ]
    if _wanted("directors", requested) and credits.get("crew"):
        fields["directors"] = [c["name"] for c in credits["crew"] if c.get("job") == "Director"]
    if _wanted("writers", requested) and credits.get("crew"):
        fields["writers"] = [c["name"] for c in credits["crew"] if c.get("job") in _WRITER_JOBS]

    if _wanted("certification", requested):
        certification = parse_certification(data.get("release_dates") or {})
        if certification:
            fields["certification"] = certification

    if _wanted("collection", requested) and data.get("belongs_to_collection"):
        collection = data["belongs_to_collection"]
        fields["collection"] = {"id": collection.get("id"), "name": collection.get("name")}

    if _wanted("trailer", requested):
        trailer = parse_trailer(data.get("videos") or {})
        if trailer:
            fields["trailer"] = trailer

    return _drop_empty(fields), parse_external_ids(data)


def parse_collection(
    data: dict[str, Any], requested: tuple[str, ...] | None = None
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if _wanted("title", requested):
        fields["title"] = data.get("name")
    if _wanted("plot", requested):
        fields["plot"] = data.get("overview") or None
    return _drop_empty(fields)


def _drop_empty(fields: dict[str, Any]) -> dict[str, Any]:
    return {name: value for name, value in fields.items() if value is not None}


def parse_external_ids(data: dict[str, Any]) -> dict[str, str]:
    external_ids: dict[str, str] = {}
    if data.get("id") is not None:
        external_ids["tmdb"] = str(data["id"])
    ids = data.get("external_ids") or {}
    if ids.get("imdb_id"):
        external_ids["imdb"] = str(ids["imdb_id"])
    if ids.get("tvdb_id"):
        external_ids["tvdb"] = str(ids["tvdb_id"])
    return external_ids


def parse_certification(release_dates: dict[str, Any]) -> str | None:
    """First non-empty US certification, or None."""
    for country in release_dates.get("results", []):
        if country.get("iso_3166_1") != _CERTIFICATION_COUNTRY:
            continue
        for release in country.get("release_dates", []):
            if release.get("certification"):
                return release["certification"]
    return None


def parse_trailer(videos: dict[str, Any]) -> str | None:
    """YouTube URL of the first trailer, preferring official uploads."""
    trailers = [
        v
        for v in videos.get("results", [])
        if v.get("site") == "YouTube" and v.get("type") == "Trailer" and v.get("key")
    ]
    if not trailers:
        return None
    trailers.sort(key=lambda v: not v.get("official", False))
    return f"https://www.youtube.com/watch?v={trailers[0]['key']}"


def parse_find_response(data: dict[str, Any]) -> str | None:
    """TMDB id of the first movie in a /find response."""
    results = data.get("movie_results") or []
    if not results:
        return None
    return str(results[0]["id"])


def parse_images(
    data: dict[str, Any],
    provider_result_id: str,
    asset_types: tuple[str, ...],
    image_base: str = IMAGE_BASE_URL,
) -> list[AssetCandidate]:
    """Convert a /movie/{id}/images response into candidates.

    Only sections whose asset type was requested are parsed. An empty
    asset_types tuple means every section.
    """
    candidates: list[AssetCandidate] = []
    for section, (asset_type, thumb_size) in _IMAGE_SECTIONS.items():
        if asset_types and asset_type not in asset_types:
            continue
        for image in data.get(section) or []:
            file_path = image.get("file_path")
            if not file_path:
                continue
            width = image.get("width")
            height = image.get("height")
            candidates.append(
                AssetCandidate(
                    provider_id=PROVIDER_ID,
                    provider_result_id=provider_result_id,
                    asset_type=asset_type,
                    url=image_url(file_path, "original", image_base),
                    thumbnail_url=image_url(file_path, thumb_size, image_base),
                    width=width,
                    height=height,
                    aspect_ratio=image.get("aspect_ratio"),
                    quality=classify_quality(width, height),
                    language=image.get("iso_639_1") or None,
                    votes=image.get("vote_count"),
                    vote_average=image.get("vote_average"),
                )
            )
    return candidates


def search_confidence(movie: dict[str, Any], query: str, year: int | None = None) -> float:
    """Score how well a search hit matches the query, in [0, 1]."""
    score = 50
    title = (movie.get("title") or "").lower()
    original_title = (movie.get("original_title") or "").lower()
    needle = query.lower()

    if title == needle:
        score += 30
    elif needle in title:
        score += 20
    if original_title == needle:
        score += 20
    release_date = movie.get("release_date") or ""
    if year and release_date[:4] == str(year):
        score += 20
    if (movie.get("popularity") or 0) > 100:
        score += 10
    return min(score, 100) / 100


def parse_search_results(
    data: dict[str, Any],
    query: str,
    year: int | None = None,
    limit: int = 10,
    image_base: str = IMAGE_BASE_URL,
) -> list[SearchResult]:
    results = []
    for movie in (data.get("results") or [])[:limit]:
        results.append(_search_result(movie, search_confidence(movie, query, year), image_base))
    return results


def parse_find_results(
    data: dict[str, Any], limit: int = 10, image_base: str = IMAGE_BASE_URL
) -> list[SearchResult]:
    """Search results from a /find lookup; an external-ID hit is exact."""
    return [
        _search_result(movie, 1.0, image_base)
        for movie in (data.get("movie_results") or [])[:limit]
    ]


def _search_result(movie: dict[str, Any], confidence: float, image_base: str) -> SearchResult:
    poster = movie.get("poster_path")
    return SearchResult(
        provider_id=PROVIDER_ID,
        provider_result_id=str(movie["id"]),
        entity_type="movie",
        title=movie.get("title") or "",
        confidence=confidence,
        original_title=movie.get("original_title"),
        release_date=movie.get("release_date") or None,
        overview=movie.get("overview") or None,
        poster_url=image_url(poster, "w500", image_base) if poster else None,
        external_ids={"tmdb": str(movie["id"])},
    )
