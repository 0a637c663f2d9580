from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from scenelens.domain.entities import (
    ContentQuery,
    ContentRecord,
    ContentType,
    ContentTypeFilter,
    DetectionResult,
    ExtractedText,
    ImageBlob,
    VisionAnalysisResult,
)
from scenelens.services.content_resolver import ContentResolver
from scenelens.services.fallback_catalog import normalize_title, titles_overlap
from scenelens.services.text_extractor import TextExtractor, extract_potential_titles
from scenelens.services.vision_analyzer import VisionAnalyzer

logger = logging.getLogger(__name__)

OCR_FALLBACK_CONFIDENCE = 0.3
MAX_OCR_CANDIDATES = 5

_COUNTRY_LANGUAGES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("korea",), "Korean"),
    (("china", "taiwan", "hong kong"), "Chinese"),
    (("japan",), "Japanese"),
    (("india",), "Hindi"),
    (("spain", "mexico", "argentina", "colombia"), "Spanish"),
    (("france",), "French"),
    (("germany",), "German"),
    (("italy",), "Italian"),
    (("brazil", "portugal"), "Portuguese"),
    (("russia",), "Russian"),
    (("egypt", "saudi", "arab"), "Arabic"),
)

_ANIME_MARKERS = ("anime", "animation", "animated", "manga")


@dataclass(frozen=True)
class _SearchPlan:
    content_types: tuple[ContentType, ...]
    language: str


class DetectionOrchestrator:
    def __init__(
        self,
        *,
        text_extractor: TextExtractor,
        vision_analyzer: VisionAnalyzer,
        content_resolver: ContentResolver,
    ) -> None:
        self._text = text_extractor
        self._vision = vision_analyzer
        self._resolver = content_resolver

    async def detect(
        self,
        image: ImageBlob,
        content_type_filter: ContentTypeFilter = "all",
    ) -> DetectionResult | None:
        extracted, analysis = await asyncio.gather(
            self._text.extract(image),
            self._vision.analyze(image, content_type_filter=content_type_filter),
        )
        plan = build_search_plan(content_type_filter, analysis)

        if analysis is not None and not analysis.primary_match.is_unknown:
            return await self._from_vision(analysis, plan)

        result = await self._from_ocr(extracted, analysis, plan)
        if result is None:
            logger.info(
                "detection_no_match",
                extra={"sha256": image.sha256, "vision_available": analysis is not None, "ocr_chars": len(extracted.text)},
            )
        return result

    async def _from_vision(self, analysis: VisionAnalysisResult, plan: _SearchPlan) -> DetectionResult:
        primary = analysis.primary_match
        record = await self._corroborate(primary.title, plan)

        logger.info(
            "detection_from_vision",
            extra={"title": primary.title, "confidence": primary.confidence, "matched_record": record.id if record else None},
        )
        return DetectionResult(
            title=primary.title,
            confidence=primary.confidence,
            description=analysis.scene_description or primary.reason,
            alternatives=_alternative_titles(analysis),
            matched_record=record,
            source="vision",
        )

    async def _from_ocr(
        self,
        extracted: ExtractedText,
        analysis: VisionAnalysisResult | None,
        plan: _SearchPlan,
    ) -> DetectionResult | None:
        candidates = extract_potential_titles(extracted.text, extracted.words)[:MAX_OCR_CANDIDATES]
        if not candidates:
            return None

        alternatives = _alternative_titles(analysis) if analysis is not None else []
        for candidate in candidates:
            record = await self._corroborate(candidate, plan)
            if record is None:
                continue
            logger.info("detection_from_ocr", extra={"ocr_candidate": candidate, "matched_record": record.id})
            return DetectionResult(
                title=record.title,
                confidence=OCR_FALLBACK_CONFIDENCE,
                description=record.description or f"Detected from on-screen text: {candidate}",
                alternatives=alternatives,
                matched_record=record,
                source="ocr",
            )

        best = candidates[0]
        logger.info("detection_from_ocr_uncorroborated", extra={"ocr_candidate": best})
        return DetectionResult(
            title=best,
            confidence=OCR_FALLBACK_CONFIDENCE,
            description=f"Detected from on-screen text: {best}",
            alternatives=alternatives,
            matched_record=None,
            source="ocr",
        )

    async def _corroborate(self, title_hint: str, plan: _SearchPlan) -> ContentRecord | None:
        for content_type in plan.content_types:
            records = await self._resolver.resolve(
                ContentQuery(type=content_type, title_hint=title_hint, language=plan.language)
            )
            match = pick_best_record(title_hint, records)
            if match is not None:
                return match
        return None


def pick_best_record(title_hint: str, records: Sequence[ContentRecord]) -> ContentRecord | None:
    if not records:
        return None
    hint = normalize_title(title_hint)
    for record in records:
        if normalize_title(record.title) == hint:
            return record
    for record in records:
        if titles_overlap(hint, normalize_title(record.title)):
            return record
    return None


def build_search_plan(content_type_filter: ContentTypeFilter, analysis: VisionAnalysisResult | None) -> _SearchPlan:
    country = (analysis.country if analysis is not None else "").lower()
    style = (analysis.production_style if analysis is not None else "").lower()
    genres = " ".join(analysis.genre).lower() if analysis is not None else ""
    language = language_for_country(country)

    if content_type_filter == "anime":
        return _SearchPlan(content_types=("anime",), language="Japanese")
    if content_type_filter == "movie-series":
        return _SearchPlan(content_types=("movie", "series"), language=language)
    if content_type_filter == "kdrama-cdrama":
        drama_language = language if language in {"Korean", "Chinese"} else "Korean"
        if "c-drama" in style or "cdrama" in style:
            drama_language = "Chinese"
        return _SearchPlan(content_types=("series", "movie"), language=drama_language)

    looks_anime = any(marker in style or marker in genres for marker in _ANIME_MARKERS)
    if looks_anime or language == "Japanese":
        return _SearchPlan(content_types=("anime", "series", "movie"), language=language)
    return _SearchPlan(content_types=("movie", "series", "anime"), language=language)


def language_for_country(country: str) -> str:
    lowered = (country or "").lower()
    for markers, language in _COUNTRY_LANGUAGES:
        if any(m in lowered for m in markers):
            return language
    return "English"


def _alternative_titles(analysis: VisionAnalysisResult) -> list[str]:
    return [alt.title for alt in analysis.alternatives if not alt.is_unknown]
