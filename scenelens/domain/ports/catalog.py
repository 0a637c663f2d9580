from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal, Protocol

TmdbMediaType = Literal["movie", "tv"]


class MovieTvCatalog(Protocol):
    async def discover(
        self,
        *,
        media_type: TmdbMediaType,
        genre_ids: Sequence[int],
        language_code: str,
    ) -> list[dict[str, Any]]:
        ...

    async def search_title(self, *, media_type: TmdbMediaType, title: str) -> list[dict[str, Any]]:
        ...


class AnimeCatalog(Protocol):
    async def by_tag(self, *, tag: str) -> list[dict[str, Any]]:
        ...

    async def search_title(self, *, title: str) -> list[dict[str, Any]]:
        ...
