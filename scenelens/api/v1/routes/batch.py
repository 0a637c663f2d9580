from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile

from scenelens.core.config import Settings
from scenelens.core.deps import batch_engine_dep, settings_dep, upload_limits_dep
from scenelens.core.errors import BatchTooLargeError, RequestInvalidError
from scenelens.core.image_validation import UploadLimits, read_image_upload
from scenelens.domain.entities import ContentTypeFilter
from scenelens.domain.schemas import BatchJobOut, BatchProgressOut, BatchResponse, ErrorResponse
from scenelens.services.batch_engine import BatchEngine

router = APIRouter()


@router.post("/batch", response_model=BatchResponse, responses={413: {"model": ErrorResponse}})
async def detect_batch(
    request: Request,
    files: list[UploadFile] = File(...),
    content_type: ContentTypeFilter = Query(default="all"),
    settings: Settings = Depends(settings_dep),
    limits: UploadLimits = Depends(upload_limits_dep),
    engine: BatchEngine = Depends(batch_engine_dep),
) -> BatchResponse:
    if not files:
        raise RequestInvalidError("batch has no files")
    if len(files) > settings.batch_max_files:
        raise BatchTooLargeError(settings.batch_max_files)

    # Every upload is validated before any detection starts.
    images = [await read_image_upload(upload, limits) for upload in files]

    jobs = await engine.process_batch(images, content_type)

    rid = getattr(request.state, "request_id", "-") or "-"
    return BatchResponse(
        request_id=rid,
        progress=BatchProgressOut.from_entity(engine.get_progress()),
        jobs=[BatchJobOut.from_entity(job) for job in jobs],
    )
