from __future__ import annotations

from fastapi import Depends, Request

from scenelens.core.config import Settings, get_settings
from scenelens.core.image_validation import UploadLimits
from scenelens.services.batch_engine import BatchEngine
from scenelens.services.content_resolver import ContentResolver
from scenelens.services.detection_orchestrator import DetectionOrchestrator


def settings_dep() -> Settings:
    return get_settings()


def upload_limits_dep(settings: Settings = Depends(settings_dep)) -> UploadLimits:
    return UploadLimits.from_settings(settings)


def orchestrator_dep(request: Request) -> DetectionOrchestrator:
    orchestrator: DetectionOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("Detection orchestrator is not initialized")
    return orchestrator


def content_resolver_dep(request: Request) -> ContentResolver:
    resolver: ContentResolver | None = getattr(request.app.state, "content_resolver", None)
    if resolver is None:
        raise RuntimeError("Content resolver is not initialized")
    return resolver


def batch_engine_dep(
    settings: Settings = Depends(settings_dep),
    orchestrator: DetectionOrchestrator = Depends(orchestrator_dep),
) -> BatchEngine:
    # One engine per request so progress covers only that request's jobs.
    return BatchEngine(
        orchestrator=orchestrator,
        concurrency=settings.batch_concurrency,
        job_timeout_seconds=settings.batch_job_timeout_seconds,
    )
