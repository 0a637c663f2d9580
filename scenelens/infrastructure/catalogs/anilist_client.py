from __future__ import annotations

import asyncio
from typing import Any

import httpx

from scenelens.domain.ports.catalog import AnimeCatalog

_MEDIA_FIELDS = """
      id
      title {
        english
        romaji
        native
      }
      description
      coverImage {
        extraLarge
      }
      averageScore
      seasonYear
      startDate {
        year
      }
      genres
"""

_BY_TAG_QUERY = (
    """
query ($tag: String, $perPage: Int) {
  Page(page: 1, perPage: $perPage) {
    media(tag: $tag, type: ANIME, sort: POPULARITY_DESC, isAdult: false) {"""
    + _MEDIA_FIELDS
    + """    }
  }
}
"""
)

_SEARCH_QUERY = (
    """
query ($search: String, $perPage: Int) {
  Page(page: 1, perPage: $perPage) {
    media(search: $search, type: ANIME, sort: SEARCH_MATCH, isAdult: false) {"""
    + _MEDIA_FIELDS
    + """    }
  }
}
"""
)


class AniListCatalogClient(AnimeCatalog):
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        url: str,
        timeout_seconds: float,
        per_page: int = 20,
    ) -> None:
        self._client = http_client
        self._url = url
        self._timeout = float(timeout_seconds)
        self._per_page = max(1, int(per_page))

    async def by_tag(self, *, tag: str) -> list[dict[str, Any]]:
        return await self._query(_BY_TAG_QUERY, {"tag": tag, "perPage": self._per_page})

    async def search_title(self, *, title: str) -> list[dict[str, Any]]:
        return await self._query(_SEARCH_QUERY, {"search": title, "perPage": min(self._per_page, 10)})

    async def _query(self, query: str, variables: dict[str, Any]) -> list[dict[str, Any]]:
        resp = await asyncio.wait_for(
            self._client.post(
                self._url,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            ),
            timeout=self._timeout,
        )
        resp.raise_for_status()

        data = resp.json()
        if not isinstance(data, dict):
            return []
        if data.get("errors"):
            raise ValueError(f"anilist errors: {data['errors']!r}"[:500])
        page = (data.get("data") or {}).get("Page") or {}
        media = page.get("media")
        if not isinstance(media, list):
            return []
        return [m for m in media if isinstance(m, dict)]
