from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Any

import pytesseract
from PIL import Image

from scenelens.domain.entities import OcrOutput
from scenelens.domain.ports.ocr import OcrEngine


@dataclass(frozen=True)
class TesseractConfig:
    concurrency: int
    timeout_seconds: float
    tesseract_cmd: str | None = None


class TesseractOcrEngine(OcrEngine):
    def __init__(self, *, cfg: TesseractConfig) -> None:
        self._semaphore = asyncio.Semaphore(max(1, int(cfg.concurrency)))
        self._timeout = float(cfg.timeout_seconds)
        if cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = cfg.tesseract_cmd

    async def recognize(self, image_bytes: bytes, *, languages: str) -> OcrOutput:
        async with self._semaphore:
            return await asyncio.to_thread(self._recognize_sync, image_bytes, languages)

    def _recognize_sync(self, image_bytes: bytes, languages: str) -> OcrOutput:
        with Image.open(BytesIO(image_bytes)) as img:
            image = img.convert("RGB")

        data = pytesseract.image_to_data(
            image,
            lang=languages,
            output_type=pytesseract.Output.DICT,
            timeout=self._timeout,
        )
        return _ocr_output_from_data(data)


def _ocr_output_from_data(data: dict[str, list[Any]]) -> OcrOutput:
    texts = data.get("text") or []
    confs = data.get("conf") or []
    blocks = data.get("block_num") or [0] * len(texts)
    pars = data.get("par_num") or [0] * len(texts)
    lines_nums = data.get("line_num") or [0] * len(texts)

    lines: dict[tuple[int, int, int], list[str]] = {}
    words: list[str] = []
    scores: list[float] = []

    for i, raw in enumerate(texts):
        token = str(raw or "").strip()
        if not token:
            continue
        conf = _as_float(confs[i] if i < len(confs) else -1)
        if conf < 0:
            continue
        key = (int(blocks[i]), int(pars[i]), int(lines_nums[i]))
        lines.setdefault(key, []).append(token)
        words.append(token)
        scores.append(conf)

    text = "\n".join(" ".join(tokens) for _, tokens in sorted(lines.items()))
    confidence = sum(scores) / len(scores) if scores else 0.0
    return OcrOutput(text=text, confidence=confidence, words=words)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return -1.0
