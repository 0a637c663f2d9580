from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import Any

from scenelens.core.context import job_id_ctx_var
from scenelens.domain.entities import (
    BatchJob,
    BatchProgress,
    ContentTypeFilter,
    DetectionResult,
    ImageBlob,
)
from scenelens.services.detection_orchestrator import DetectionOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
NO_MATCH_MESSAGE = "No match found"
CANCELLED_MESSAGE = "Cancelled"

ProgressCallback = Callable[[BatchProgress], Any]
JobUpdateCallback = Callable[[BatchJob], Any]


class JobTimeoutError(Exception):
    pass


class BatchEngine:
    """Runs detection over many images with a bounded number of jobs in flight.

    Jobs are admitted in submission order; callbacks fire in completion order.
    ``clear()`` must only be called once ``process_batch`` has returned.
    """

    def __init__(
        self,
        *,
        orchestrator: DetectionOrchestrator,
        concurrency: int = DEFAULT_CONCURRENCY,
        job_timeout_seconds: float | None = None,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self._orchestrator = orchestrator
        self._concurrency = int(concurrency)
        self._semaphore = asyncio.Semaphore(self._concurrency)
        self._job_timeout = job_timeout_seconds
        self._jobs: dict[str, BatchJob] = {}
        self._lock = asyncio.Lock()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def process_batch(
        self,
        images: Sequence[ImageBlob],
        content_type_filter: ContentTypeFilter = "all",
        on_progress: ProgressCallback | None = None,
        on_job_update: JobUpdateCallback | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BatchJob]:
        batch_id = uuid.uuid4().hex[:12]
        jobs = [BatchJob(id=f"{batch_id}-{index}", image=image) for index, image in enumerate(images)]

        async with self._lock:
            for job in jobs:
                self._jobs[job.id] = job

        logger.info(
            "batch_started",
            extra={"batch_id": batch_id, "jobs": len(jobs), "concurrency": self._concurrency, "content_type": content_type_filter},
        )

        await asyncio.gather(
            *(self._run_job(job, content_type_filter, on_progress, on_job_update, cancel_event) for job in jobs)
        )

        progress = self.get_progress()
        logger.info(
            "batch_finished",
            extra={
                "batch_id": batch_id,
                "total": progress.total,
                "completed": progress.completed,
                "failed": progress.failed,
            },
        )
        return [replace(job) for job in jobs]

    def get_progress(self) -> BatchProgress:
        return compute_progress(self._jobs.values())

    def get_jobs(self) -> list[BatchJob]:
        return [replace(job) for job in self._jobs.values()]

    def clear(self) -> None:
        self._jobs.clear()

    async def _run_job(
        self,
        job: BatchJob,
        content_type_filter: ContentTypeFilter,
        on_progress: ProgressCallback | None,
        on_job_update: JobUpdateCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        async with self._semaphore:
            token = job_id_ctx_var.set(job.id)
            try:
                await self._transition(job, on_progress, on_job_update, status="processing", progress=0)

                if cancel_event is not None and cancel_event.is_set():
                    await self._transition(job, on_progress, on_job_update, status="error", error=CANCELLED_MESSAGE)
                    return

                try:
                    result = await self._detect(job.image, content_type_filter)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("batch_job_failed", extra={"reason": str(exc), "exc_class": type(exc).__name__}, exc_info=exc)
                    await self._transition(job, on_progress, on_job_update, status="error", error=str(exc) or "Unknown error")
                    return

                if result is None:
                    await self._transition(job, on_progress, on_job_update, status="error", error=NO_MATCH_MESSAGE)
                    return

                await self._transition(job, on_progress, on_job_update, status="complete", progress=100, result=result)
            finally:
                job_id_ctx_var.reset(token)

    async def _detect(self, image: ImageBlob, content_type_filter: ContentTypeFilter) -> DetectionResult | None:
        call = self._orchestrator.detect(image, content_type_filter)
        if self._job_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._job_timeout)
        except TimeoutError as exc:
            raise JobTimeoutError(f"Detection timed out after {self._job_timeout:g}s") from exc

    async def _transition(
        self,
        job: BatchJob,
        on_progress: ProgressCallback | None,
        on_job_update: JobUpdateCallback | None,
        **changes: Any,
    ) -> None:
        async with self._lock:
            if job.is_terminal:
                raise RuntimeError(f"job {job.id} is already {job.status}")
            for key, value in changes.items():
                setattr(job, key, value)
            self._jobs[job.id] = job
            snapshot = replace(job)
            progress = compute_progress(self._jobs.values())

        logger.debug("batch_job_update", extra={"status": snapshot.status, "progress": snapshot.progress})
        _safe_callback(on_job_update, snapshot, name="on_job_update")
        _safe_callback(on_progress, progress, name="on_progress")


def compute_progress(jobs: Iterable[BatchJob]) -> BatchProgress:
    total = completed = failed = 0
    for job in jobs:
        total += 1
        if job.status == "complete":
            completed += 1
        elif job.status == "error":
            failed += 1
    return BatchProgress(
        total=total,
        completed=completed,
        failed=failed,
        percentage=_round_half_up(100 * (completed + failed) / total) if total else 0,
    )


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _safe_callback(callback: Callable[[Any], Any] | None, payload: Any, *, name: str) -> None:
    if callback is None:
        return
    try:
        callback(payload)
    except Exception as exc:  # noqa: BLE001
        logger.warning("batch_callback_failed", extra={"callback": name, "reason": str(exc)}, exc_info=exc)
