from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
job_id_ctx_var: ContextVar[str] = ContextVar("job_id", default="-")
