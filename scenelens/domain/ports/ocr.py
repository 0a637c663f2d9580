from __future__ import annotations

from typing import Protocol

from scenelens.domain.entities import OcrOutput


class OcrEngine(Protocol):
    async def recognize(self, image_bytes: bytes, *, languages: str) -> OcrOutput:
        ...
