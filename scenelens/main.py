from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from PIL import Image

from scenelens.api.v1.router import router as v1_router
from scenelens.core.config import Settings, get_settings
from scenelens.core.exception_handlers import register_exception_handlers
from scenelens.core.logging import setup_logging
from scenelens.core.middleware.access_log import AccessLogMiddleware
from scenelens.core.middleware.request_id import RequestIdMiddleware
from scenelens.domain.ports.cache import JsonCache
from scenelens.domain.ports.catalog import MovieTvCatalog
from scenelens.domain.ports.vision import VisionClient
from scenelens.infrastructure.cache.redis_client import (
    NullCache,
    RedisJsonCache,
    close_redis_client,
    create_redis_client,
)
from scenelens.infrastructure.catalogs.anilist_client import AniListCatalogClient
from scenelens.infrastructure.catalogs.tmdb_client import TmdbCatalogClient
from scenelens.infrastructure.ocr.tesseract_engine import TesseractConfig, TesseractOcrEngine
from scenelens.infrastructure.vision.gemini_client import GeminiVisionClient
from scenelens.services.content_resolver import ContentResolver
from scenelens.services.detection_orchestrator import DetectionOrchestrator
from scenelens.services.fallback_catalog import load_fallback_catalog
from scenelens.services.text_extractor import TextExtractor
from scenelens.services.vision_analyzer import VisionAnalyzer

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    Image.MAX_IMAGE_PIXELS = int(settings.max_image_pixels)

    docs_url = "/docs" if settings.docs_enabled else None
    redoc_url = "/redoc" if settings.docs_enabled else None
    openapi_url = "/openapi.json" if settings.docs_enabled else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await _startup(app, settings)
        try:
            yield
        finally:
            await _shutdown(app)

    app = FastAPI(
        title=settings.app_name,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(v1_router, prefix=settings.api_v1_prefix)

    return app


async def _startup(app: FastAPI, settings: Settings) -> None:
    redis = await create_redis_client(settings)
    app.state.redis = redis
    cache: JsonCache = (
        RedisJsonCache(redis=redis, operation_timeout_seconds=settings.redis_operation_timeout_seconds)
        if redis is not None
        else NullCache()
    )

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(max(settings.gemini_timeout_seconds, settings.catalog_timeout_seconds)),
        headers={"User-Agent": f"{settings.app_name}/1"},
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.http_client = http_client

    vision_client: VisionClient | None = None
    gemini_key = settings.gemini_api_key_plain()
    if gemini_key:
        vision_client = GeminiVisionClient(
            http_client=http_client,
            base_url=str(settings.gemini_base_url),
            api_key=gemini_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            timeout_seconds=settings.gemini_timeout_seconds,
        )
    app.state.vision_enabled = vision_client is not None

    movie_catalog: MovieTvCatalog | None = None
    tmdb_key = settings.tmdb_api_key_plain()
    if tmdb_key:
        movie_catalog = TmdbCatalogClient(
            http_client=http_client,
            base_url=str(settings.tmdb_base_url),
            api_key=tmdb_key,
            timeout_seconds=settings.catalog_timeout_seconds,
        )
    else:
        logger.warning("tmdb_credential_missing")

    anime_catalog = AniListCatalogClient(
        http_client=http_client,
        url=str(settings.anilist_url),
        timeout_seconds=settings.catalog_timeout_seconds,
    )

    ocr_engine = TesseractOcrEngine(
        cfg=TesseractConfig(
            concurrency=settings.ocr_concurrency,
            timeout_seconds=settings.ocr_timeout_seconds,
        )
    )

    resolver = ContentResolver(
        movie_catalog=movie_catalog,
        anime_catalog=anime_catalog,
        image_base_url=settings.tmdb_image_base_url,
        fallback_catalog=load_fallback_catalog(),
    )
    app.state.content_resolver = resolver
    app.state.orchestrator = DetectionOrchestrator(
        text_extractor=TextExtractor(engine=ocr_engine, languages=settings.ocr_languages),
        vision_analyzer=VisionAnalyzer(
            client=vision_client,
            cache=cache,
            cache_ttl_seconds=settings.vision_cache_ttl_seconds,
        ),
        content_resolver=resolver,
    )

    logger.info(
        "startup_complete",
        extra={
            "vision_enabled": vision_client is not None,
            "tmdb_enabled": movie_catalog is not None,
            "redis_enabled": redis is not None,
            "fallback_records": len(load_fallback_catalog()),
        },
    )


async def _shutdown(app: FastAPI) -> None:
    http_client: httpx.AsyncClient | None = getattr(app.state, "http_client", None)
    if http_client is not None:
        try:
            await http_client.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.debug("http_client_close_failed", extra={"reason": str(exc)})

    await close_redis_client(getattr(app.state, "redis", None))


app = create_app()
