from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scenelens.core.errors import AppError, InternalError

logger = logging.getLogger(__name__)

_MESSAGES: dict[str, str] = {
    "invalid_image": "The uploaded file is not a readable image.",
    "image_too_large": "The uploaded image is too large.",
    "unsupported_image_type": "Only JPEG, PNG and WEBP images are supported.",
    "image_dimensions_exceeded": "The image dimensions exceed the allowed limits.",
    "batch_too_large": "Too many files in one batch.",
    "request_invalid": "The request is invalid.",
    "vibe_not_recognized": "Could not map that vibe to a mood. Try words like sad, funny, scary or chill.",
    "no_match_found": "No match found.",
    "not_found": "Not found.",
    "method_not_allowed": "Method not allowed.",
    "internal_error": "Something went wrong. Please try again later.",
}


def message_for(code: str) -> str:
    return _MESSAGES.get(code, _MESSAGES["internal_error"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-") or "-"


def _error_envelope(*, code: str, message: str, request_id: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}, "request_id": request_id}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        rid = _request_id(request)
        payload = _error_envelope(code=exc.code, message=message_for(exc.code), request_id=rid)

        if exc.http_status >= 500:
            logger.warning("app_error", extra={"code": exc.code, "detail": exc.log_detail}, exc_info=exc)
        else:
            logger.info("app_error", extra={"code": exc.code, "detail": exc.log_detail})

        return JSONResponse(status_code=exc.http_status, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        rid = _request_id(request)

        if exc.status_code == 404:
            code = "not_found"
        elif exc.status_code == 405:
            code = "method_not_allowed"
        else:
            code = "request_invalid"

        logger.info("http_exception", extra={"code": code, "status": exc.status_code})
        payload = _error_envelope(code=code, message=message_for(code), request_id=rid)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        rid = _request_id(request)
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        logger.info("request_validation_error", extra={"fields": fields})
        payload = _error_envelope(code="request_invalid", message=message_for("request_invalid"), request_id=rid)
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        rid = _request_id(request)
        logger.exception("unhandled_exception")
        safe = InternalError()
        payload = _error_envelope(code=safe.code, message=message_for(safe.code), request_id=rid)
        return JSONResponse(status_code=safe.http_status, content=payload)
