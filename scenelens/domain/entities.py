from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ContentType = Literal["movie", "series", "anime"]
ContentTypeFilter = Literal["all", "anime", "movie-series", "kdrama-cdrama"]
Mood = Literal["Chill", "Excited", "Emotional", "Laugh", "Scared", "Mind-bending"]
Language = Literal[
    "English",
    "Hindi",
    "Japanese",
    "Spanish",
    "Korean",
    "French",
    "German",
    "Italian",
    "Chinese",
    "Portuguese",
    "Russian",
    "Arabic",
]
JobStatus = Literal["pending", "processing", "complete", "error"]
ParseMode = Literal["json", "fields", "placeholder"]
DetectionSource = Literal["vision", "ocr"]

UNKNOWN_TITLE = "Unknown"
TERMINAL_STATUSES: frozenset[str] = frozenset({"complete", "error"})


@dataclass(frozen=True)
class ImageBlob:
    content: bytes
    mime_type: str
    sha256: str
    width: int = 0
    height: int = 0
    filename: str | None = None


@dataclass(frozen=True)
class OcrOutput:
    text: str
    confidence: float
    words: list[str]


@dataclass(frozen=True)
class ExtractedText:
    text: str
    confidence: float
    words: list[str]

    @classmethod
    def empty(cls) -> "ExtractedText":
        return cls(text="", confidence=0.0, words=[])


@dataclass(frozen=True)
class MatchCandidate:
    title: str
    confidence: float
    reason: str = ""

    @property
    def is_unknown(self) -> bool:
        return not self.title.strip() or self.title.strip().lower() == UNKNOWN_TITLE.lower()


@dataclass(frozen=True)
class VisionAnalysisResult:
    primary_match: MatchCandidate
    alternatives: list[MatchCandidate]
    setting: str = UNKNOWN_TITLE
    genre: list[str] = field(default_factory=list)
    era: str = UNKNOWN_TITLE
    country: str = UNKNOWN_TITLE
    production_style: str = UNKNOWN_TITLE
    scene_description: str = ""
    visual_elements: list[str] = field(default_factory=list)
    parse_mode: ParseMode = "json"

    @property
    def degraded(self) -> bool:
        return self.parse_mode != "json"


@dataclass(frozen=True)
class ContentRecord:
    id: str
    title: str
    type: ContentType
    genres: list[str] = field(default_factory=list)
    language: str = "English"
    rating: float = 0.0
    year: int = 0
    image_url: str = ""
    description: str = ""
    moods: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentQuery:
    type: ContentType
    mood: Mood | None = None
    title_hint: str | None = None
    language: str = "English"

    def __post_init__(self) -> None:
        has_mood = self.mood is not None
        has_hint = bool(self.title_hint and self.title_hint.strip())
        if has_mood == has_hint:
            raise ValueError("exactly one of mood or title_hint must be set")


@dataclass(frozen=True)
class DetectionResult:
    title: str
    confidence: float
    description: str
    alternatives: list[str] = field(default_factory=list)
    matched_record: ContentRecord | None = None
    source: DetectionSource = "vision"


@dataclass
class BatchJob:
    id: str
    image: ImageBlob
    status: JobStatus = "pending"
    progress: int = 0
    result: DetectionResult | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class BatchProgress:
    total: int
    completed: int
    failed: int
    percentage: int
