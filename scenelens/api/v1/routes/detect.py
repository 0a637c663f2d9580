from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile

from scenelens.core.deps import orchestrator_dep, upload_limits_dep
from scenelens.core.errors import NoMatchFoundError
from scenelens.core.image_validation import UploadLimits, read_image_upload
from scenelens.domain.entities import ContentTypeFilter
from scenelens.domain.schemas import DetectionOut, DetectResponse, ErrorResponse
from scenelens.services.detection_orchestrator import DetectionOrchestrator

router = APIRouter()


@router.post("/detect", response_model=DetectResponse, responses={404: {"model": ErrorResponse}})
async def detect_scene(
    request: Request,
    file: UploadFile = File(...),
    content_type: ContentTypeFilter = Query(default="all"),
    limits: UploadLimits = Depends(upload_limits_dep),
    orchestrator: DetectionOrchestrator = Depends(orchestrator_dep),
) -> DetectResponse:
    image = await read_image_upload(file, limits)

    result = await orchestrator.detect(image, content_type)
    if result is None:
        raise NoMatchFoundError(f"no title for sha256={image.sha256}")

    rid = getattr(request.state, "request_id", "-") or "-"
    return DetectResponse(request_id=rid, result=DetectionOut.from_entity(result))
