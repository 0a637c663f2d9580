from __future__ import annotations

import logging
import random
import re
from typing import Any

from scenelens.domain.entities import ContentQuery, ContentRecord, ContentType, Mood
from scenelens.domain.ports.catalog import AnimeCatalog, MovieTvCatalog, TmdbMediaType
from scenelens.services.fallback_catalog import filter_fallback

logger = logging.getLogger(__name__)

TMDB_MOOD_GENRES: dict[str, tuple[int, ...]] = {
    "Chill": (35, 10751, 16),
    "Excited": (28, 12, 10759),
    "Emotional": (18, 10749),
    "Laugh": (35,),
    "Scared": (27, 53, 9648),
    "Mind-bending": (878, 9648, 14),
}

ANILIST_MOOD_TAGS: dict[str, tuple[str, ...]] = {
    "Chill": ("Slice of Life", "Comedy", "Iyashikei"),
    "Excited": ("Action", "Adventure", "Sports"),
    "Emotional": ("Drama", "Romance", "Tragedy"),
    "Laugh": ("Comedy", "Parody"),
    "Scared": ("Horror", "Psychological", "Thriller"),
    "Mind-bending": ("Sci-Fi", "Mystery", "Psychological", "Time Travel"),
}

LANGUAGE_CODES: dict[str, str] = {
    "English": "en",
    "Hindi": "hi",
    "Japanese": "ja",
    "Spanish": "es",
    "Korean": "ko",
    "French": "fr",
    "German": "de",
    "Italian": "it",
    "Chinese": "zh",
    "Portuguese": "pt",
    "Russian": "ru",
    "Arabic": "ar",
}
_LANGUAGE_NAMES: dict[str, str] = {code: name for name, code in LANGUAGE_CODES.items()}

TMDB_GENRE_NAMES: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Sci-Fi",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
    10759: "Action & Adventure",
    10762: "Kids",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
}

ANIME_LANGUAGE = "Japanese"

_HTML_TAG_RE = re.compile(r"<[^>]*>?")


class ContentResolver:
    def __init__(
        self,
        *,
        movie_catalog: MovieTvCatalog | None,
        anime_catalog: AnimeCatalog | None,
        image_base_url: str,
        rng: random.Random | None = None,
        fallback_catalog: tuple[ContentRecord, ...] | None = None,
    ) -> None:
        self._movies = movie_catalog
        self._anime = anime_catalog
        self._image_base_url = image_base_url.rstrip("/")
        self._rng = rng or random.Random()
        self._fallback_catalog = fallback_catalog

    async def resolve(self, query: ContentQuery) -> list[ContentRecord]:
        items: list[ContentRecord] = []
        try:
            if query.type == "anime":
                items = await self._fetch_anime(query)
            else:
                items = await self._fetch_movie_tv(query)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "catalog_request_failed",
                extra={
                    "content_type": query.type,
                    "reason": str(exc) or type(exc).__name__,
                    "exc_class": type(exc).__name__,
                },
            )
            items = []

        if items:
            return items

        fallback = filter_fallback(query, self._fallback_catalog)
        logger.info(
            "catalog_fallback_used",
            extra={"content_type": query.type, "mood": query.mood, "title_hint": query.title_hint, "results": len(fallback)},
        )
        return fallback

    def choose_genre(self, mood: Mood) -> int:
        return self._rng.choice(TMDB_MOOD_GENRES[mood])

    def choose_tag(self, mood: Mood) -> str:
        return self._rng.choice(ANILIST_MOOD_TAGS[mood])

    async def _fetch_movie_tv(self, query: ContentQuery) -> list[ContentRecord]:
        if self._movies is None:
            logger.debug("tmdb_not_configured")
            return []

        media_type: TmdbMediaType = "movie" if query.type == "movie" else "tv"
        if query.mood is not None:
            genre_id = self.choose_genre(query.mood)
            raw = await self._movies.discover(
                media_type=media_type,
                genre_ids=[genre_id],
                language_code=LANGUAGE_CODES.get(query.language, "en"),
            )
        else:
            raw = await self._movies.search_title(media_type=media_type, title=(query.title_hint or "").strip())

        out: list[ContentRecord] = []
        for item in raw:
            record = normalize_tmdb_item(
                item,
                content_type=query.type,
                language=query.language,
                mood=query.mood,
                image_base_url=self._image_base_url,
            )
            if record is not None:
                out.append(record)
        return out

    async def _fetch_anime(self, query: ContentQuery) -> list[ContentRecord]:
        if self._anime is None:
            return []

        if query.mood is not None:
            raw = await self._anime.by_tag(tag=self.choose_tag(query.mood))
        else:
            raw = await self._anime.search_title(title=(query.title_hint or "").strip())

        out: list[ContentRecord] = []
        for item in raw:
            record = normalize_anilist_item(item, mood=query.mood)
            if record is not None:
                out.append(record)
        return out


def normalize_tmdb_item(
    item: dict[str, Any],
    *,
    content_type: ContentType,
    language: str,
    mood: str | None,
    image_base_url: str,
) -> ContentRecord | None:
    raw_id = item.get("id")
    title = str(item.get("title") or item.get("name") or "").strip()
    if raw_id is None or not title:
        return None

    prefix = "m" if content_type == "movie" else "s"
    poster = item.get("poster_path")
    original_language = _LANGUAGE_NAMES.get(str(item.get("original_language") or ""), language)

    genres: list[str] = []
    for gid in item.get("genre_ids") or []:
        try:
            genres.append(TMDB_GENRE_NAMES.get(int(gid), "Unknown"))
        except (TypeError, ValueError):
            continue

    return ContentRecord(
        id=f"{prefix}-{raw_id}",
        title=title,
        type="movie" if content_type == "movie" else "series",
        genres=genres,
        language=original_language,
        rating=_clamp_rating(item.get("vote_average")),
        year=_year_from_date(item.get("release_date") or item.get("first_air_date")),
        image_url=f"{image_base_url}{poster}" if poster else "",
        description=str(item.get("overview") or ""),
        moods=[mood] if mood else [],
    )


def normalize_anilist_item(item: dict[str, Any], *, mood: str | None) -> ContentRecord | None:
    raw_id = item.get("id")
    titles = item.get("title") or {}
    if not isinstance(titles, dict):
        titles = {}
    title = str(titles.get("english") or titles.get("romaji") or titles.get("native") or "").strip()
    if raw_id is None or not title:
        return None

    score = item.get("averageScore")
    start_date = item.get("startDate") or {}
    cover = item.get("coverImage") or {}

    return ContentRecord(
        id=f"a-{raw_id}",
        title=title,
        type="anime",
        genres=[str(g) for g in (item.get("genres") or []) if g],
        language=ANIME_LANGUAGE,
        rating=_clamp_rating(score / 10 if isinstance(score, (int, float)) else 0),
        year=_as_year(item.get("seasonYear") or (start_date.get("year") if isinstance(start_date, dict) else None)),
        image_url=str(cover.get("extraLarge") or "") if isinstance(cover, dict) else "",
        description=_HTML_TAG_RE.sub("", str(item.get("description") or "")).strip(),
        moods=[mood] if mood else [],
    )


def _clamp_rating(value: Any) -> float:
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(10.0, rating))


def _year_from_date(value: Any) -> int:
    if not isinstance(value, str) or len(value) < 4:
        return 0
    return _as_year(value[:4])


def _as_year(value: Any) -> int:
    try:
        year = int(value)
    except (TypeError, ValueError):
        return 0
    return year if year > 0 else 0
