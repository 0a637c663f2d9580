from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import httpx

from scenelens.domain.ports.catalog import MovieTvCatalog, TmdbMediaType


class TmdbCatalogClient(MovieTvCatalog):
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        timeout_seconds: float,
    ) -> None:
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = float(timeout_seconds)

    async def discover(
        self,
        *,
        media_type: TmdbMediaType,
        genre_ids: Sequence[int],
        language_code: str,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "language": "en-US",
            "with_original_language": language_code,
            "with_genres": ",".join(str(g) for g in genre_ids),
            "sort_by": "popularity.desc",
            "include_adult": "false",
            "page": 1,
        }
        return await self._get_results(f"/discover/{media_type}", params)

    async def search_title(self, *, media_type: TmdbMediaType, title: str) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "language": "en-US",
            "query": title,
            "include_adult": "false",
            "page": 1,
        }
        return await self._get_results(f"/search/{media_type}", params)

    async def _get_results(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        resp = await asyncio.wait_for(
            self._client.get(
                f"{self._base_url}{path}",
                params={**params, "api_key": self._api_key},
                headers={"Accept": "application/json"},
            ),
            timeout=self._timeout,
        )
        resp.raise_for_status()

        data = resp.json()
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)]
