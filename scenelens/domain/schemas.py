from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from scenelens.domain.entities import (
    BatchJob,
    BatchProgress,
    ContentRecord,
    ContentType,
    DetectionResult,
    DetectionSource,
    JobStatus,
)


class ContentRecordOut(BaseModel):
    id: str
    title: str
    type: ContentType
    genres: list[str] = Field(default_factory=list)
    language: str
    rating: float = Field(ge=0.0, le=10.0)
    year: int = Field(ge=0)
    image_url: str = ""
    description: str = ""
    moods: list[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, record: ContentRecord) -> "ContentRecordOut":
        return cls(
            id=record.id,
            title=record.title,
            type=record.type,
            genres=list(record.genres),
            language=record.language,
            rating=record.rating,
            year=record.year,
            image_url=record.image_url,
            description=record.description,
            moods=list(record.moods),
        )


class DetectionOut(BaseModel):
    title: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    description: str = ""
    alternatives: list[str] = Field(default_factory=list)
    matched_record: ContentRecordOut | None = None
    source: DetectionSource

    @classmethod
    def from_entity(cls, result: DetectionResult) -> "DetectionOut":
        return cls(
            title=result.title,
            confidence=result.confidence,
            description=result.description,
            alternatives=list(result.alternatives),
            matched_record=ContentRecordOut.from_entity(result.matched_record) if result.matched_record else None,
            source=result.source,
        )


class DetectResponse(BaseModel):
    status: Literal["ok"] = "ok"
    request_id: str
    result: DetectionOut


class BatchJobOut(BaseModel):
    id: str
    filename: str | None = None
    status: JobStatus
    progress: int = Field(ge=0, le=100)
    result: DetectionOut | None = None
    error: str | None = None

    @classmethod
    def from_entity(cls, job: BatchJob) -> "BatchJobOut":
        return cls(
            id=job.id,
            filename=job.image.filename,
            status=job.status,
            progress=job.progress,
            result=DetectionOut.from_entity(job.result) if job.result else None,
            error=job.error,
        )


class BatchProgressOut(BaseModel):
    total: int = Field(ge=0)
    completed: int = Field(ge=0)
    failed: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)

    @classmethod
    def from_entity(cls, progress: BatchProgress) -> "BatchProgressOut":
        return cls(
            total=progress.total,
            completed=progress.completed,
            failed=progress.failed,
            percentage=progress.percentage,
        )


class BatchResponse(BaseModel):
    request_id: str
    progress: BatchProgressOut
    jobs: list[BatchJobOut]


class RecommendationsResponse(BaseModel):
    request_id: str
    mood: str
    keywords: list[str] = Field(default_factory=list)
    diagnostic_code: str | None = None
    prescription_type: str | None = None
    items: list[ContentRecordOut]


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
    request_id: str
