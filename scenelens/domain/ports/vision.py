from __future__ import annotations

from typing import Protocol


class VisionClient(Protocol):
    async def generate(self, *, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        ...
