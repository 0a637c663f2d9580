from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from scenelens.domain.entities import ContentQuery, ContentRecord

logger = logging.getLogger(__name__)

NEUTRAL_LANGUAGE = "English"


class FallbackCatalogRow(BaseModel):
    id: str = Field(min_length=1, max_length=128)
    title: str = Field(min_length=1, max_length=256)
    type: Literal["movie", "series", "anime"]
    moods: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    language: str = NEUTRAL_LANGUAGE
    rating: float = Field(default=0.0, ge=0.0, le=10.0)
    year: int = Field(default=0, ge=0)
    image_url: str = ""
    description: str = ""

    def to_record(self) -> ContentRecord:
        return ContentRecord(
            id=self.id,
            title=self.title,
            type=self.type,
            genres=list(self.genres),
            language=self.language,
            rating=self.rating,
            year=self.year,
            image_url=self.image_url,
            description=self.description,
            moods=list(self.moods),
        )


@lru_cache(maxsize=1)
def load_fallback_catalog() -> tuple[ContentRecord, ...]:
    try:
        data_text = resources.files("scenelens.resources").joinpath("fallback_catalog.json").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError, OSError) as exc:
        logger.warning("fallback_catalog_missing", extra={"reason": str(exc)})
        return tuple()

    try:
        raw = json.loads(data_text)
    except ValueError as exc:
        logger.warning("fallback_catalog_invalid", extra={"reason": str(exc)})
        return tuple()

    if not isinstance(raw, list):
        return tuple()

    out: list[ContentRecord] = []
    for item in raw:
        try:
            row = FallbackCatalogRow.model_validate(item)
        except ValidationError:
            logger.debug("fallback_catalog_row_skipped", extra={"row": str(item)[:200]})
            continue
        out.append(row.to_record())

    return tuple(out)


def filter_fallback(query: ContentQuery, catalog: tuple[ContentRecord, ...] | None = None) -> list[ContentRecord]:
    rows = load_fallback_catalog() if catalog is None else catalog
    hint = normalize_title(query.title_hint or "")

    out: list[ContentRecord] = []
    for record in rows:
        if record.type != query.type:
            continue
        if not _language_matches(record.language, query.language):
            continue
        if query.mood is not None:
            if query.mood not in record.moods:
                continue
        elif not titles_overlap(hint, normalize_title(record.title)):
            continue
        out.append(record)
    return out


def _language_matches(record_language: str, query_language: str) -> bool:
    # An English query accepts every language.
    return record_language == query_language or query_language == NEUTRAL_LANGUAGE


def titles_overlap(hint: str, title: str) -> bool:
    if not hint or not title:
        return False
    return hint in title or title in hint


def normalize_title(value: str) -> str:
    return " ".join("".join(ch.lower() if ch.isalnum() else " " for ch in value).split())
