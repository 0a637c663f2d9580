from __future__ import annotations

import json
import logging

import pytest

from scenelens.services.vision_analyzer import (
    VisionAnalyzer,
    build_prompt,
    normalize_confidence,
    parse_fields,
    parse_json_block,
)
from tests.fakes import CLOY_RESPONSE, BrokenCache, FakeVisionClient, MemoryCache, make_image


class TestParseJsonBlock:
    def test_current_shape(self):
        result = parse_json_block(CLOY_RESPONSE)

        assert result is not None
        assert result.parse_mode == "json"
        assert result.primary_match.title == "Crash Landing on You"
        assert result.primary_match.confidence == pytest.approx(0.92)
        assert [a.title for a in result.alternatives] == ["Hotel del Luna", "Goblin"]
        assert [a.confidence for a in result.alternatives] == pytest.approx([0.85, 0.40])
        assert result.genre == ["Romance", "Drama"]
        assert result.country == "South Korea"
        assert result.production_style == "K-drama"
        assert result.scene_description == "Two people talk by a river"
        assert result.visual_elements == ["uniform", "river"]

    def test_candidates_are_reordered_by_confidence(self):
        text = json.dumps(
            {
                "primaryMatch": {"title": "Boruto", "confidence": 0.3},
                "alternativeMatches": [{"title": "Naruto", "confidence": 0.8}],
            }
        )
        result = parse_json_block(text)

        assert result is not None
        assert result.primary_match.title == "Naruto"
        assert [a.title for a in result.alternatives] == ["Boruto"]

    def test_legacy_shape(self):
        text = 'Sure! {"showName": "Naruto", "confidence": 0.7, "alternativeMatches": ["Boruto", "Bleach"]}'
        result = parse_json_block(text)

        assert result is not None
        assert result.primary_match.title == "Naruto"
        assert result.primary_match.confidence == pytest.approx(0.7)
        assert [a.title for a in result.alternatives] == ["Boruto", "Bleach"]

    def test_missing_alternatives_are_padded(self):
        result = parse_json_block('{"primaryMatch": {"title": "Dark", "confidence": 0.6}}')

        assert result is not None
        assert len(result.alternatives) == 1
        assert result.alternatives[0].title == "Unknown"
        assert result.alternatives[0].confidence == 0.0

    def test_extra_alternatives_are_cut_to_two(self):
        result = parse_json_block(
            json.dumps(
                {
                    "primaryMatch": {"title": "A Show", "confidence": 0.9},
                    "alternativeMatches": [
                        {"title": "B Show", "confidence": 0.5},
                        {"title": "C Show", "confidence": 0.4},
                        {"title": "D Show", "confidence": 0.3},
                    ],
                }
            )
        )
        assert result is not None
        assert [a.title for a in result.alternatives] == ["B Show", "C Show"]

    def test_no_recognised_fields(self):
        assert parse_json_block("{}") is None
        assert parse_json_block("no braces at all") is None
        assert parse_json_block("{not json}") is None


class TestParseFields:
    def test_free_text_fields(self):
        text = "Show Name: Dark\nConfidence: 75%\nCountry: Germany\nGenre: Mystery, Sci-Fi"
        result = parse_fields(text)

        assert result is not None
        assert result.parse_mode == "fields"
        assert result.primary_match.title == "Dark"
        assert result.primary_match.confidence == pytest.approx(0.75)
        assert result.country == "Germany"
        assert result.genre == ["Mystery", "Sci-Fi"]
        assert result.scene_description == text[:200].strip()
        assert result.alternatives[0].title == "Unknown"

    def test_markdown_bullets(self):
        result = parse_fields("**Title:** Squid Game\n- **Production Style:** K-drama")

        assert result is not None
        assert result.primary_match.title == "Squid Game"
        assert result.production_style == "K-drama"

    def test_nothing_to_extract(self):
        assert parse_fields("I really cannot tell what this is.") is None


class TestNormalizeConfidence:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(0.5, 0.5), (1, 1.0), (85, 0.85), ("90%", 0.9), ("0.25", 0.25), (150, 1.0), (-3, 0.0), ("abc", 0.0), (None, 0.0)],
    )
    def test_values(self, raw, expected):
        assert normalize_confidence(raw) == pytest.approx(expected)


class TestVisionAnalyzer:
    @pytest.mark.asyncio
    async def test_missing_credential_returns_none_and_logs_once(self, caplog):
        caplog.set_level(logging.WARNING)
        analyzer = VisionAnalyzer(client=None, cache=MemoryCache(), cache_ttl_seconds=60)

        assert await analyzer.analyze(make_image(b"a")) is None
        assert await analyzer.analyze(make_image(b"b")) is None

        assert [r.getMessage() for r in caplog.records].count("vision_credential_missing") == 1

    @pytest.mark.asyncio
    async def test_remote_failure_returns_none(self):
        client = FakeVisionClient(default=TimeoutError())
        analyzer = VisionAnalyzer(client=client, cache=MemoryCache(), cache_ttl_seconds=60)

        assert await analyzer.analyze(make_image(b"a")) is None

    @pytest.mark.asyncio
    async def test_unparsable_text_gives_placeholder(self):
        client = FakeVisionClient(default="I have no idea, sorry.")
        cache = MemoryCache()
        analyzer = VisionAnalyzer(client=client, cache=cache, cache_ttl_seconds=60)

        result = await analyzer.analyze(make_image(b"a"))

        assert result is not None
        assert result.parse_mode == "placeholder"
        assert result.primary_match.title == "Unknown"
        assert result.primary_match.confidence == 0.5
        assert result.primary_match.reason == "parse failure"
        assert [(a.title, a.confidence) for a in result.alternatives] == [("Unknown", 0.0)]
        assert cache.data == {}

    @pytest.mark.asyncio
    async def test_parsed_result_is_cached_by_image_hash(self):
        client = FakeVisionClient(default=CLOY_RESPONSE)
        cache = MemoryCache()
        analyzer = VisionAnalyzer(client=client, cache=cache, cache_ttl_seconds=600)
        image = make_image(b"still")

        first = await analyzer.analyze(image)
        second = await analyzer.analyze(image)

        assert first == second
        assert len(client.prompts) == 1
        assert list(cache.data) == [f"vision:all:{image.sha256}"]
        assert cache.ttls[f"vision:all:{image.sha256}"] == 600

    @pytest.mark.asyncio
    async def test_cache_errors_are_ignored(self):
        client = FakeVisionClient(default=CLOY_RESPONSE)
        analyzer = VisionAnalyzer(client=client, cache=BrokenCache(), cache_ttl_seconds=60)

        result = await analyzer.analyze(make_image(b"a"))

        assert result is not None
        assert result.primary_match.title == "Crash Landing on You"

    @pytest.mark.asyncio
    async def test_filter_hint_reaches_prompt(self):
        client = FakeVisionClient(default=CLOY_RESPONSE)
        analyzer = VisionAnalyzer(client=client, cache=MemoryCache(), cache_ttl_seconds=60)

        await analyzer.analyze(make_image(b"a"), content_type_filter="anime")

        assert client.prompts == [build_prompt("anime")]
        assert "anime (Japanese animation)" in client.prompts[0]
        assert "ALWAYS return exactly three guesses" in client.prompts[0]
