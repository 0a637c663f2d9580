from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from scenelens.core.deps import content_resolver_dep
from scenelens.core.errors import RequestInvalidError, VibeNotRecognizedError
from scenelens.domain.entities import ContentQuery, ContentType, Language, Mood
from scenelens.domain.schemas import ContentRecordOut, ErrorResponse, RecommendationsResponse
from scenelens.services.content_resolver import ContentResolver
from scenelens.services.vibe import map_vibe_to_query

router = APIRouter()


@router.get("/recommendations", response_model=RecommendationsResponse, responses={422: {"model": ErrorResponse}})
async def recommendations(
    request: Request,
    vibe: str | None = Query(default=None, min_length=1, max_length=500),
    mood: Mood | None = Query(default=None),
    content_type: ContentType = Query(default="movie", alias="type"),
    language: Language = Query(default="English"),
    resolver: ContentResolver = Depends(content_resolver_dep),
) -> RecommendationsResponse:
    if (vibe is None) == (mood is None):
        raise RequestInvalidError("exactly one of vibe or mood is required")

    keywords: list[str] = []
    diagnostic_code: str | None = None
    prescription_type: str | None = None
    selected: Mood
    if vibe is not None:
        mapped = map_vibe_to_query(vibe)
        if mapped is None:
            raise VibeNotRecognizedError(f"unmapped vibe of {len(vibe)} chars")
        selected = mapped.mood
        keywords = list(mapped.keywords)
        diagnostic_code = mapped.diagnostic_code
        prescription_type = mapped.prescription_type
    else:
        selected = mood  # type: ignore[assignment]

    records = await resolver.resolve(ContentQuery(type=content_type, mood=selected, language=language))

    rid = getattr(request.state, "request_id", "-") or "-"
    return RecommendationsResponse(
        request_id=rid,
        mood=selected,
        keywords=keywords,
        diagnostic_code=diagnostic_code,
        prescription_type=prescription_type,
        items=[ContentRecordOut.from_entity(r) for r in records],
    )
