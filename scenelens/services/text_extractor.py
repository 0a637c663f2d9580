from __future__ import annotations

import logging
import re

from scenelens.domain.entities import ExtractedText, ImageBlob
from scenelens.domain.ports.ocr import OcrEngine

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3

_UPPERCASE_RUN_RE = re.compile(r"[A-Z][A-Z ]{3,}")
_QUOTED_RE = re.compile(r"\"([^\"]+)\"|“([^”]+)”")
_HANGUL_RUN_RE = re.compile(r"[가-힣]{2,}")
_CJK_RUN_RE = re.compile(r"[一-龥]{2,}")
_NON_WORD_TOKEN_RE = re.compile(r"^[\d\W_]+$")


class TextExtractor:
    def __init__(self, *, engine: OcrEngine, languages: str) -> None:
        self._engine = engine
        self._languages = languages

    async def extract(self, image: ImageBlob) -> ExtractedText:
        try:
            raw = await self._engine.recognize(image.content, languages=self._languages)
        except Exception as exc:  # noqa: BLE001
            logger.warning("ocr_failed", extra={"reason": str(exc), "sha256": image.sha256})
            return ExtractedText.empty()

        text = (raw.text or "").strip()
        words = split_words(text)
        confidence = _normalize_confidence(raw.confidence)

        logger.info(
            "ocr_complete",
            extra={"chars": len(text), "word_count": len(words), "ocr_confidence": round(confidence, 3)},
        )
        return ExtractedText(text=text, confidence=confidence, words=words)


def split_words(text: str) -> list[str]:
    return [w for w in text.split() if len(w) > 2 and not _NON_WORD_TOKEN_RE.match(w)]


def extract_potential_titles(text: str, words: list[str]) -> list[str]:
    titles: list[str] = []

    titles.extend(m.strip() for m in _UPPERCASE_RUN_RE.findall(text))

    for m in _QUOTED_RE.finditer(text):
        titles.append((m.group(1) or m.group(2) or "").strip())

    if len(words) >= 2:
        titles.append(" ".join(words[:3]))
        titles.append(" ".join(words[:4]))

    titles.extend(_HANGUL_RUN_RE.findall(text))
    titles.extend(_CJK_RUN_RE.findall(text))

    unique = list(dict.fromkeys(titles))
    unique = [t for t in unique if len(t) >= MIN_TITLE_LENGTH]
    unique.sort(key=len, reverse=True)
    return unique


def _normalize_confidence(value: float) -> float:
    # Tesseract reports 0-100.
    try:
        conf = float(value) / 100.0
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, conf))
