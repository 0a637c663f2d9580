from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as redis_async

from scenelens.core.config import Settings
from scenelens.domain.ports.cache import JsonCache

logger = logging.getLogger(__name__)


async def create_redis_client(settings: Settings) -> redis_async.Redis | None:
    dsn = settings.redis_dsn_plain()
    if not dsn:
        logger.info("redis_disabled")
        return None

    client = redis_async.Redis.from_url(
        dsn,
        socket_connect_timeout=float(settings.redis_connect_timeout_seconds),
        socket_timeout=float(settings.redis_operation_timeout_seconds),
        retry_on_timeout=True,
        health_check_interval=10,
        decode_responses=False,
    )
    try:
        await asyncio.wait_for(client.ping(), timeout=float(settings.redis_connect_timeout_seconds))
    except Exception as exc:  # noqa: BLE001
        logger.warning("redis_unavailable", extra={"reason": str(exc)})
        await close_redis_client(client)
        return None
    return client


async def close_redis_client(client: redis_async.Redis | None) -> None:
    if client is None:
        return
    try:
        await client.aclose(close_connection_pool=True)
    except Exception as exc:  # noqa: BLE001
        logger.debug("redis_close_failed", extra={"reason": str(exc)})


class RedisJsonCache(JsonCache):
    def __init__(self, *, redis: redis_async.Redis, operation_timeout_seconds: float, key_prefix: str = "scenelens:") -> None:
        self._redis = redis
        self._timeout = float(operation_timeout_seconds)
        self._prefix = key_prefix

    async def get_json(self, key: str) -> Any | None:
        raw = await asyncio.wait_for(self._redis.get(self._prefix + key), timeout=self._timeout)
        if raw is None:
            return None
        text = raw.decode("utf-8", errors="strict") if isinstance(raw, bytes) else str(raw)
        return json.loads(text)

    async def set_json(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        await asyncio.wait_for(
            self._redis.set(self._prefix + key, payload.encode("utf-8"), ex=int(ttl_seconds)),
            timeout=self._timeout,
        )


class NullCache(JsonCache):
    async def get_json(self, key: str) -> Any | None:  # noqa: ARG002
        return None

    async def set_json(self, key: str, value: Any, *, ttl_seconds: int) -> None:  # noqa: ARG002
        return
