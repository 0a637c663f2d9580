from __future__ import annotations

import asyncio
import base64
from typing import Any

import httpx

from scenelens.domain.ports.vision import VisionClient


class GeminiVisionClient(VisionClient):
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        model: str,
        temperature: float,
        timeout_seconds: float,
    ) -> None:
        self._client = http_client
        self._url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self._api_key = api_key
        self._temperature = float(temperature)
        self._timeout = float(timeout_seconds)

    async def generate(self, *, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": 2048,
            },
        }

        resp = await asyncio.wait_for(
            self._client.post(self._url, json=payload, headers={"x-goog-api-key": self._api_key}),
            timeout=self._timeout,
        )
        resp.raise_for_status()

        data = resp.json()
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise ValueError("gemini response has no candidates")

        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise ValueError("gemini response has no content parts")

        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        if not text.strip():
            raise ValueError("empty gemini content")
        return text
