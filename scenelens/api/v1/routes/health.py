from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    vision_enabled: bool = False
    cache_enabled: bool = False


router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz(request: Request) -> HealthResponse:
    state = request.app.state
    return HealthResponse(
        vision_enabled=bool(getattr(state, "vision_enabled", False)),
        cache_enabled=getattr(state, "redis", None) is not None,
    )
