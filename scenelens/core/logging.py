from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

from scenelens.core.config import Settings
from scenelens.core.context import job_id_ctx_var, request_id_ctx_var

_RESERVED_ATTRS: set[str] = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}

_CONTEXT_ATTRS = ("request_id", "job_id")

# Gemini takes its key as ?key=..., TMDB as ?api_key=...
_SECRET_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?i)([?&](?:api_)?key=)([^\s&\"']+)"), r"\1***"),
    (re.compile(r"(?i)(x-goog-api-key[\"']?\s*[:=]\s*[\"']?)([^\s\"',}]+)"), r"\1***"),
    (re.compile(r"(?i)(bearer\s+)([A-Za-z0-9\-_.=]+)"), r"\1***"),
    (re.compile(r"(rediss?://)(:)?([^@/\s]+)@"), r"\1:***@"),
]


def _redact_secrets(value: str) -> str:
    out = value
    for pattern, repl in _SECRET_REDACTIONS:
        out = pattern.sub(repl, out)
    return out


def _sanitize_any(value: Any) -> Any:
    if isinstance(value, str):
        return _redact_secrets(value)
    if isinstance(value, dict):
        return {str(k): _sanitize_any(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_any(v) for v in value]
    return value


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_ctx_var.get()
        if not hasattr(record, "job_id"):
            record.job_id = job_id_ctx_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = _redact_secrets(record.getMessage())

        base: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": msg,
            "request_id": getattr(record, "request_id", "-"),
            "job_id": getattr(record, "job_id", "-"),
        }

        extras: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in _CONTEXT_ATTRS or key.startswith("_"):
                continue
            extras[key] = _sanitize_any(value)

        if extras:
            base.update(extras)

        if record.exc_info:
            base["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            base["exc"] = _redact_secrets(self.formatException(record.exc_info))

        return json.dumps(base, ensure_ascii=False, separators=(",", ":"), default=str)


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _redact_secrets(super().format(record))


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(ContextFilter())

    if settings.log_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(RedactingFormatter("%(asctime)s %(levelname)s [%(name)s] [job=%(job_id)s] %(message)s"))

    root.addHandler(handler)

    # httpx logs full request URLs (API keys included) at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(level)
