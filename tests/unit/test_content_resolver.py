from __future__ import annotations

import logging
import random

import httpx
import pytest

from scenelens.domain.entities import ContentQuery
from scenelens.services.content_resolver import (
    ANILIST_MOOD_TAGS,
    TMDB_MOOD_GENRES,
    ContentResolver,
    normalize_anilist_item,
    normalize_tmdb_item,
)
from tests.fakes import FakeAnimeCatalog, FakeMovieCatalog

IMAGE_BASE = "https://image.tmdb.org/t/p/w780"

PARASITE = {
    "id": 496243,
    "title": "Parasite",
    "genre_ids": [35, 53, 18],
    "original_language": "ko",
    "vote_average": 8.5,
    "release_date": "2019-05-30",
    "poster_path": "/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg",
    "overview": "All unemployed, Ki-taek's family takes peculiar interest in the Parks.",
}

FRIEREN = {
    "id": 154587,
    "title": {"english": None, "romaji": "Sousou no Frieren", "native": "葬送のフリーレン"},
    "genres": ["Adventure", "Drama", "Fantasy"],
    "averageScore": 91,
    "seasonYear": None,
    "startDate": {"year": 2023},
    "coverImage": {"extraLarge": "https://img.anili.st/frieren.jpg"},
    "description": "An elf <i>mage</i> outlives her party.<br>",
}


def _resolver(movies=None, anime=None, seed: int | None = 1) -> ContentResolver:
    return ContentResolver(
        movie_catalog=movies,
        anime_catalog=anime,
        image_base_url=IMAGE_BASE + "/",
        rng=random.Random(seed),
    )


class TestContentQuery:
    def test_requires_exactly_one_of_mood_or_title(self):
        with pytest.raises(ValueError):
            ContentQuery(type="movie")
        with pytest.raises(ValueError):
            ContentQuery(type="movie", mood="Chill", title_hint="Dark")


class TestResolveMood:
    @pytest.mark.asyncio
    async def test_movie_mood_uses_discover_with_one_genre(self):
        movies = FakeMovieCatalog(discover_results=[PARASITE])
        resolver = _resolver(movies=movies)

        records = await resolver.resolve(ContentQuery(type="movie", mood="Scared", language="Korean"))

        assert [r.id for r in records] == ["m-496243"]
        call = movies.discover_calls[0]
        assert call["media_type"] == "movie"
        assert call["language_code"] == "ko"
        assert len(call["genre_ids"]) == 1
        assert call["genre_ids"][0] in TMDB_MOOD_GENRES["Scared"]
        assert records[0].moods == ["Scared"]

    @pytest.mark.asyncio
    async def test_series_use_tv_endpoint_and_series_ids(self):
        movies = FakeMovieCatalog(discover_results=[{"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20"}])
        resolver = _resolver(movies=movies)

        records = await resolver.resolve(ContentQuery(type="series", mood="Excited"))

        assert movies.discover_calls[0]["media_type"] == "tv"
        assert records[0].id == "s-1396"
        assert records[0].type == "series"
        assert records[0].year == 2008

    @pytest.mark.asyncio
    async def test_seeded_rng_makes_anime_tags_repeatable(self):
        first = FakeAnimeCatalog(tag_results=[FRIEREN])
        second = FakeAnimeCatalog(tag_results=[FRIEREN])
        a = _resolver(anime=first, seed=42)
        b = _resolver(anime=second, seed=42)

        for _ in range(5):
            await a.resolve(ContentQuery(type="anime", mood="Mind-bending"))
            await b.resolve(ContentQuery(type="anime", mood="Mind-bending"))

        assert first.tags == second.tags
        assert set(first.tags) <= set(ANILIST_MOOD_TAGS["Mind-bending"])

    @pytest.mark.asyncio
    async def test_repeated_anime_mood_queries_vary_the_tag(self):
        catalog = FakeAnimeCatalog(tag_results=[FRIEREN])
        resolver = _resolver(anime=catalog, seed=7)

        for _ in range(30):
            await resolver.resolve(ContentQuery(type="anime", mood="Scared"))

        assert set(catalog.tags) <= {"Horror", "Psychological", "Thriller"}
        assert len(set(catalog.tags)) > 1

    @pytest.mark.asyncio
    async def test_different_seeds_choose_different_tags(self):
        first = FakeAnimeCatalog(tag_results=[FRIEREN])
        second = FakeAnimeCatalog(tag_results=[FRIEREN])
        a = _resolver(anime=first, seed=1)
        b = _resolver(anime=second, seed=2)

        for _ in range(30):
            await a.resolve(ContentQuery(type="anime", mood="Scared"))
            await b.resolve(ContentQuery(type="anime", mood="Scared"))

        assert first.tags != second.tags

    @pytest.mark.asyncio
    async def test_remote_error_falls_back_to_local_catalog(self, caplog):
        caplog.set_level(logging.INFO)
        movies = FakeMovieCatalog(error=httpx.ConnectError("unreachable"))
        resolver = _resolver(movies=movies)

        records = await resolver.resolve(ContentQuery(type="movie", mood="Mind-bending", language="English"))

        assert records
        assert all(r.id.startswith("local-") for r in records)
        messages = [r.getMessage() for r in caplog.records]
        assert "catalog_request_failed" in messages
        assert "catalog_fallback_used" in messages

    @pytest.mark.asyncio
    async def test_unconfigured_tmdb_uses_local_catalog(self):
        records = await _resolver().resolve(ContentQuery(type="series", mood="Emotional", language="Korean"))
        assert "local-crash-landing-on-you" in {r.id for r in records}

    @pytest.mark.asyncio
    async def test_empty_remote_result_uses_local_catalog(self):
        anime = FakeAnimeCatalog(tag_results=[])
        records = await _resolver(anime=anime).resolve(ContentQuery(type="anime", mood="Chill"))

        assert anime.tags
        assert records
        assert all(r.type == "anime" and "Chill" in r.moods for r in records)


class TestResolveTitle:
    @pytest.mark.asyncio
    async def test_anime_title_search(self):
        anime = FakeAnimeCatalog(search_results={"frieren": [FRIEREN]})
        records = await _resolver(anime=anime).resolve(ContentQuery(type="anime", title_hint=" Frieren "))

        assert anime.searches == ["Frieren"]
        assert records[0].id == "a-154587"
        assert records[0].moods == []

    @pytest.mark.asyncio
    async def test_movie_title_search(self):
        movies = FakeMovieCatalog(search_results={"movie:parasite": [PARASITE]})
        records = await _resolver(movies=movies).resolve(ContentQuery(type="movie", title_hint="Parasite"))

        assert movies.search_calls == [("movie", "Parasite")]
        assert records[0].title == "Parasite"


class TestNormalizers:
    def test_tmdb_item(self):
        record = normalize_tmdb_item(
            {**PARASITE, "vote_average": 11},
            content_type="movie",
            language="English",
            mood=None,
            image_base_url=IMAGE_BASE,
        )

        assert record is not None
        assert record.id == "m-496243"
        assert record.language == "Korean"
        assert record.rating == 10.0
        assert record.year == 2019
        assert record.genres == ["Comedy", "Thriller", "Drama"]
        assert record.image_url == IMAGE_BASE + "/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg"

    def test_tmdb_item_unknown_language_falls_back_to_query_language(self):
        record = normalize_tmdb_item(
            {"id": 5, "title": "Obscure", "original_language": "xx"},
            content_type="movie",
            language="Hindi",
            mood="Chill",
            image_base_url=IMAGE_BASE,
        )
        assert record is not None
        assert record.language == "Hindi"
        assert record.year == 0
        assert record.image_url == ""
        assert record.moods == ["Chill"]

    def test_tmdb_item_without_title_is_skipped(self):
        assert normalize_tmdb_item({"id": 7}, content_type="movie", language="English", mood=None, image_base_url=IMAGE_BASE) is None

    def test_anilist_item(self):
        record = normalize_anilist_item(FRIEREN, mood="Emotional")

        assert record is not None
        assert record.id == "a-154587"
        assert record.title == "Sousou no Frieren"
        assert record.rating == pytest.approx(9.1)
        assert record.year == 2023
        assert record.language == "Japanese"
        assert record.description == "An elf mage outlives her party."
        assert record.image_url == "https://img.anili.st/frieren.jpg"
        assert record.moods == ["Emotional"]
