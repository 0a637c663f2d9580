from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from scenelens.domain.entities import (
    UNKNOWN_TITLE,
    ContentTypeFilter,
    ImageBlob,
    MatchCandidate,
    ParseMode,
    VisionAnalysisResult,
)
from scenelens.domain.ports.cache import JsonCache
from scenelens.domain.ports.vision import VisionClient

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 2
PLACEHOLDER_CONFIDENCE = 0.5
SCENE_DESCRIPTION_CHARS = 200

_CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_HTML_TAG_RE = re.compile(r"<[^>]*>")

_FILTER_HINTS: dict[str, str] = {
    "all": "The screenshot may come from any movie, TV series or anime.",
    "anime": "The screenshot is expected to come from an anime (Japanese animation) series or film.",
    "movie-series": "The screenshot is expected to come from a live-action movie or TV series.",
    "kdrama-cdrama": "The screenshot is expected to come from a Korean drama (K-drama) or Chinese drama (C-drama).",
}

_PROMPT_TEMPLATE = """Analyze this screenshot from a TV show, movie or anime and identify where it comes from.
{filter_hint}

Return your answer as a single JSON object with exactly this shape:
{{
  "primaryMatch": {{"title": "exact title", "confidence": 0.0-1.0, "reason": "why you think so"}},
  "alternativeMatches": [
    {{"title": "second guess", "confidence": 0.0-1.0, "reason": "why"}},
    {{"title": "third guess", "confidence": 0.0-1.0, "reason": "why"}}
  ],
  "setting": "where the scene takes place (e.g. modern Korean office, historical palace)",
  "genre": ["genre1", "genre2"],
  "era": "time period (e.g. contemporary 2020s, historical)",
  "country": "production country (e.g. Korea, USA, Japan, China)",
  "productionStyle": "type of production (e.g. K-drama, C-drama, American TV, anime, Hollywood film)",
  "sceneDescription": "what is happening in the scene",
  "visualElements": ["element1", "element2"]
}}

Rules:
- ALWAYS return exactly three guesses: one primaryMatch and two alternativeMatches, even if you are very unsure.
  Use low confidence values instead of leaving them out.
- Use on-screen text, subtitles, logos, actors, characters and art style as evidence.
- Respond with the JSON object only, no markdown and no commentary."""


class _CandidatePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", validation_alias=AliasChoices("title", "name", "showName"))
    confidence: Any = None
    reason: str = Field(default="", validation_alias=AliasChoices("reason", "reasoning", "why"))

    @field_validator("title", "reason", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class _AnalysisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    primary_match: _CandidatePayload | str | None = Field(
        default=None,
        validation_alias=AliasChoices("primaryMatch", "primary_match"),
    )
    alternative_matches: list[_CandidatePayload | str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("alternativeMatches", "alternatives", "alternative_matches"),
    )
    show_name: str | None = Field(default=None, validation_alias=AliasChoices("showName", "title"))
    confidence: Any = None
    setting: str | None = None
    genre: list[str] = Field(default_factory=list, validation_alias=AliasChoices("genre", "genres"))
    era: str | None = None
    country: str | None = None
    production_style: str | None = Field(default=None, validation_alias=AliasChoices("productionStyle", "production_style"))
    scene_description: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sceneDescription", "scene_description", "description"),
    )
    visual_elements: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("visualElements", "visual_elements"),
    )

    @field_validator("genre", "visual_elements", mode="before")
    @classmethod
    def _coerce_str_list(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        if isinstance(v, list):
            return [str(p).strip() for p in v if p is not None and str(p).strip()]
        return [str(v).strip()]

    @field_validator("alternative_matches", mode="before")
    @classmethod
    def _coerce_alternatives(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        return v if isinstance(v, list) else [v]

    @field_validator("show_name", "setting", "era", "country", "production_style", "scene_description", mode="before")
    @classmethod
    def _coerce_optional_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    labels: tuple[str, ...]


_FIELD_SPECS: tuple[_FieldSpec, ...] = (
    _FieldSpec("title", ("show/movie name", "show name", "movie name", "showname", "primary match", "title")),
    _FieldSpec("confidence", ("confidence",)),
    _FieldSpec("setting", ("setting",)),
    _FieldSpec("genre", ("genres", "genre")),
    _FieldSpec("era", ("era",)),
    _FieldSpec("country", ("country",)),
    _FieldSpec("production_style", ("production style", "productionstyle", "production")),
    _FieldSpec("scene_description", ("scene description", "scenedescription", "description")),
)


def build_prompt(content_type_filter: ContentTypeFilter = "all") -> str:
    hint = _FILTER_HINTS.get(content_type_filter, _FILTER_HINTS["all"])
    return _PROMPT_TEMPLATE.format(filter_hint=hint)


class VisionAnalyzer:
    def __init__(
        self,
        *,
        client: VisionClient | None,
        cache: JsonCache,
        cache_ttl_seconds: int,
    ) -> None:
        self._client = client
        self._cache = cache
        self._cache_ttl = int(cache_ttl_seconds)
        self._missing_credential_logged = False
        self._strategies: tuple[Callable[[str], VisionAnalysisResult | None], ...] = (
            parse_json_block,
            parse_fields,
        )

    async def analyze(
        self,
        image: ImageBlob,
        *,
        content_type_filter: ContentTypeFilter = "all",
    ) -> VisionAnalysisResult | None:
        if self._client is None:
            if not self._missing_credential_logged:
                logger.warning("vision_credential_missing")
                self._missing_credential_logged = True
            return None

        cache_key = f"vision:{content_type_filter}:{image.sha256}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            return cached

        try:
            text = await self._client.generate(
                prompt=build_prompt(content_type_filter),
                image_bytes=image.content,
                mime_type=image.mime_type,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "vision_request_failed",
                extra={"reason": str(exc) or type(exc).__name__, "exc_class": type(exc).__name__},
            )
            return None

        result = self.parse_response(text)
        logger.info(
            "vision_analysis_complete",
            extra={
                "parse_mode": result.parse_mode,
                "primary_title": result.primary_match.title,
                "primary_confidence": result.primary_match.confidence,
            },
        )
        if result.parse_mode != "placeholder":
            await self._cache_set(cache_key, result)
        return result

    def parse_response(self, text: str) -> VisionAnalysisResult:
        for strategy in self._strategies:
            parsed = strategy(text)
            if parsed is not None:
                return parsed
        logger.warning("vision_response_unparsable", extra={"chars": len(text)})
        return placeholder_result()

    async def _cache_get(self, key: str) -> VisionAnalysisResult | None:
        try:
            value = await self._cache.get_json(key)
        except Exception:  # noqa: BLE001
            return None
        if not isinstance(value, dict):
            return None
        return _result_from_dict(value)

    async def _cache_set(self, key: str, result: VisionAnalysisResult) -> None:
        try:
            await self._cache.set_json(key, asdict(result), ttl_seconds=self._cache_ttl)
        except Exception:  # noqa: BLE001
            return


def parse_json_block(text: str) -> VisionAnalysisResult | None:
    cleaned = _CODE_FENCE_RE.sub("", text or "")
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        return None

    try:
        raw = json.loads(cleaned[start : end + 1])
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None

    try:
        payload = _AnalysisPayload.model_validate(raw)
    except ValidationError:
        return None
    if not payload.model_fields_set:
        return None

    candidates: list[MatchCandidate] = []
    primary = _candidate_from_payload(payload.primary_match, default_reason="primary match")
    if primary is None and payload.show_name:
        primary = MatchCandidate(
            title=payload.show_name,
            confidence=normalize_confidence(payload.confidence),
            reason="identified by show name",
        )
    if primary is not None:
        candidates.append(primary)
    for alt in payload.alternative_matches:
        cand = _candidate_from_payload(alt, default_reason="alternative match")
        if cand is not None:
            candidates.append(cand)

    return _assemble(
        candidates,
        missing_primary=MatchCandidate(
            title=UNKNOWN_TITLE,
            confidence=normalize_confidence(payload.confidence),
            reason="no title identified",
        ),
        setting=payload.setting,
        genre=payload.genre,
        era=payload.era,
        country=payload.country,
        production_style=payload.production_style,
        scene_description=payload.scene_description or "",
        visual_elements=payload.visual_elements,
        parse_mode="json",
    )


def parse_fields(text: str) -> VisionAnalysisResult | None:
    found: dict[str, str] = {}
    for spec in _FIELD_SPECS:
        value = _extract_field(text or "", spec.labels)
        if value:
            found[spec.name] = value
    if not found:
        return None

    confidence = normalize_confidence(found["confidence"]) if "confidence" in found else PLACEHOLDER_CONFIDENCE
    candidates: list[MatchCandidate] = []
    title = found.get("title", "")
    if title and title.lower() not in {"null", "none", "unknown", "n/a"}:
        candidates.append(MatchCandidate(title=title, confidence=confidence, reason="extracted from free-text response"))

    return _assemble(
        candidates,
        missing_primary=MatchCandidate(
            title=UNKNOWN_TITLE,
            confidence=PLACEHOLDER_CONFIDENCE,
            reason="no title in free-text response",
        ),
        setting=found.get("setting"),
        genre=[g.strip() for g in found.get("genre", "").split(",") if g.strip()],
        era=found.get("era"),
        country=found.get("country"),
        production_style=found.get("production_style"),
        scene_description=found.get("scene_description") or (text or "")[:SCENE_DESCRIPTION_CHARS].strip(),
        visual_elements=[],
        parse_mode="fields",
    )


def placeholder_result() -> VisionAnalysisResult:
    return VisionAnalysisResult(
        primary_match=MatchCandidate(title=UNKNOWN_TITLE, confidence=PLACEHOLDER_CONFIDENCE, reason="parse failure"),
        alternatives=[_unknown_alternative()],
        parse_mode="placeholder",
    )


def normalize_confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        raw = value.strip().rstrip("%").strip()
        percent = value.strip().endswith("%")
    else:
        raw = value
        percent = False
    try:
        conf = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if conf != conf:  # NaN
        return 0.0
    if percent or 1.0 < conf <= 100.0:
        conf = conf / 100.0
    return max(0.0, min(1.0, conf))


def _candidate_from_payload(item: _CandidatePayload | str | None, *, default_reason: str) -> MatchCandidate | None:
    if item is None:
        return None
    if isinstance(item, str):
        title = item.strip()
        if not title:
            return None
        return MatchCandidate(title=title, confidence=0.0, reason=default_reason)
    if not item.title:
        return None
    return MatchCandidate(
        title=item.title,
        confidence=normalize_confidence(item.confidence),
        reason=item.reason or default_reason,
    )


def _assemble(
    candidates: list[MatchCandidate],
    *,
    missing_primary: MatchCandidate,
    setting: str | None,
    genre: list[str],
    era: str | None,
    country: str | None,
    production_style: str | None,
    scene_description: str,
    visual_elements: list[str],
    parse_mode: ParseMode,
) -> VisionAnalysisResult:
    best: dict[str, MatchCandidate] = {}
    for c in candidates:
        if c.is_unknown:
            continue
        key = c.title.strip().lower()
        if key not in best or c.confidence > best[key].confidence:
            best[key] = c

    ranked = sorted(best.values(), key=lambda c: c.confidence, reverse=True)

    primary = ranked[0] if ranked else missing_primary
    alternatives = ranked[1 : 1 + MAX_ALTERNATIVES] or [_unknown_alternative()]

    return VisionAnalysisResult(
        primary_match=primary,
        alternatives=alternatives,
        setting=setting or UNKNOWN_TITLE,
        genre=list(genre),
        era=era or UNKNOWN_TITLE,
        country=country or UNKNOWN_TITLE,
        production_style=production_style or UNKNOWN_TITLE,
        scene_description=_HTML_TAG_RE.sub("", scene_description).strip(),
        visual_elements=list(visual_elements),
        parse_mode=parse_mode,
    )


def _unknown_alternative() -> MatchCandidate:
    return MatchCandidate(title=UNKNOWN_TITLE, confidence=0.0, reason="no alternative")


def _extract_field(text: str, labels: tuple[str, ...]) -> str | None:
    for label in labels:
        pattern = re.compile(
            rf"^[\s*\-#>\"'\d.]*{re.escape(label)}[\"'*]*\s*:\s*(.+)$",
            re.IGNORECASE | re.MULTILINE,
        )
        m = pattern.search(text)
        if not m:
            continue
        value = m.group(1).strip().strip("*").strip().strip("\",'").strip()
        if value:
            return value
    return None


def _result_from_dict(raw: dict[str, Any]) -> VisionAnalysisResult | None:
    try:
        primary = MatchCandidate(**raw["primary_match"])
        alternatives = [MatchCandidate(**a) for a in raw["alternatives"]]
        rest = {k: v for k, v in raw.items() if k not in {"primary_match", "alternatives"}}
        result = VisionAnalysisResult(primary_match=primary, alternatives=alternatives, **rest)
    except (KeyError, TypeError, ValueError):
        return None
    if not result.alternatives:
        return None
    return result
