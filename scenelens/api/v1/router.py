from __future__ import annotations

from fastapi import APIRouter

from scenelens.api.v1.routes.batch import router as batch_router
from scenelens.api.v1.routes.detect import router as detect_router
from scenelens.api.v1.routes.health import router as health_router
from scenelens.api.v1.routes.recommendations import router as recommendations_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(detect_router, tags=["detection"])
router.include_router(batch_router, tags=["detection"])
router.include_router(recommendations_router, tags=["recommendations"])
