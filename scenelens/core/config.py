from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any, Literal

from pydantic import AnyUrl, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_csv_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("[") and raw.endswith("]"):
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [str(v).strip() for v in parsed if str(v).strip()]
        parts = [p.strip() for p in raw.split(",")]
        return [p for p in parts if p]
    return [str(value).strip()]


def _secret_or_none(value: SecretStr | None) -> str | None:
    if value is None:
        return None
    plain = value.get_secret_value().strip()
    return plain or None


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: Literal["dev", "prod"] = Field(default="dev", validation_alias="APP_ENV")
    app_name: str = Field(default="scenelens", validation_alias="APP_NAME")
    api_v1_prefix: str = Field(default="/v1", validation_alias="API_V1_PREFIX")

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")

    docs_enabled: bool = Field(default=True, validation_alias="DOCS_ENABLED")

    cors_allow_origins: list[str] = Field(default_factory=list, validation_alias="CORS_ALLOW_ORIGINS")
    cors_allow_methods: list[str] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"], validation_alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["Content-Type", "Accept", "X-Request-ID"],
        validation_alias="CORS_ALLOW_HEADERS",
    )

    max_upload_bytes: int = Field(default=8_000_000, validation_alias="MAX_UPLOAD_BYTES")
    upload_read_chunk_size: int = Field(default=64 * 1024, validation_alias="UPLOAD_READ_CHUNK_SIZE")
    allowed_image_mime_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp"],
        validation_alias="ALLOWED_IMAGE_MIME_TYPES",
    )
    max_image_pixels: int = Field(default=40_000_000, validation_alias="MAX_IMAGE_PIXELS")
    max_image_width: int = Field(default=8000, validation_alias="MAX_IMAGE_WIDTH")
    max_image_height: int = Field(default=8000, validation_alias="MAX_IMAGE_HEIGHT")

    ocr_languages: str = Field(default="eng+kor+chi_sim+chi_tra", validation_alias="OCR_LANGUAGES")
    ocr_concurrency: int = Field(default=2, validation_alias="OCR_CONCURRENCY")
    ocr_timeout_seconds: float = Field(default=30.0, validation_alias="OCR_TIMEOUT_SECONDS")

    gemini_api_key: SecretStr | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
    gemini_base_url: AnyUrl = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )
    gemini_timeout_seconds: float = Field(default=30.0, validation_alias="GEMINI_TIMEOUT_SECONDS")
    gemini_temperature: float = Field(default=0.2, validation_alias="GEMINI_TEMPERATURE")

    tmdb_api_key: SecretStr | None = Field(default=None, validation_alias="TMDB_API_KEY")
    tmdb_base_url: AnyUrl = Field(default="https://api.themoviedb.org/3", validation_alias="TMDB_BASE_URL")
    tmdb_image_base_url: str = Field(default="https://image.tmdb.org/t/p/w780", validation_alias="TMDB_IMAGE_BASE_URL")
    anilist_url: AnyUrl = Field(default="https://graphql.anilist.co", validation_alias="ANILIST_URL")
    catalog_timeout_seconds: float = Field(default=8.0, validation_alias="CATALOG_TIMEOUT_SECONDS")

    redis_dsn: SecretStr | None = Field(default=None, validation_alias="REDIS_DSN")
    redis_connect_timeout_seconds: float = Field(default=2.0, validation_alias="REDIS_CONNECT_TIMEOUT_SECONDS")
    redis_operation_timeout_seconds: float = Field(default=1.0, validation_alias="REDIS_OPERATION_TIMEOUT_SECONDS")
    vision_cache_ttl_seconds: int = Field(default=24 * 3600, validation_alias="VISION_CACHE_TTL_SECONDS")

    batch_concurrency: int = Field(default=3, validation_alias="BATCH_CONCURRENCY")
    batch_max_files: int = Field(default=20, validation_alias="BATCH_MAX_FILES")
    batch_job_timeout_seconds: float | None = Field(default=None, validation_alias="BATCH_JOB_TIMEOUT_SECONDS")

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        "allowed_image_mime_types",
        mode="before",
    )
    @classmethod
    def _validate_csv_lists(cls, v: Any) -> list[str]:
        return _parse_csv_list(v)

    @model_validator(mode="after")
    def _validate_ranges(self) -> "BaseAppSettings":
        if self.max_upload_bytes <= 0:
            raise ValueError("MAX_UPLOAD_BYTES must be positive")
        if self.upload_read_chunk_size <= 0:
            raise ValueError("UPLOAD_READ_CHUNK_SIZE must be positive")
        if self.max_image_pixels <= 0:
            raise ValueError("MAX_IMAGE_PIXELS must be positive")
        if self.max_image_width <= 0 or self.max_image_height <= 0:
            raise ValueError("MAX_IMAGE_WIDTH and MAX_IMAGE_HEIGHT must be positive")
        if not self.ocr_languages.strip():
            raise ValueError("OCR_LANGUAGES must not be empty")
        if self.ocr_concurrency <= 0:
            raise ValueError("OCR_CONCURRENCY must be positive")
        if self.ocr_timeout_seconds <= 0 or self.gemini_timeout_seconds <= 0 or self.catalog_timeout_seconds <= 0:
            raise ValueError("remote timeout values must be positive")
        if self.batch_concurrency <= 0:
            raise ValueError("BATCH_CONCURRENCY must be positive")
        if self.batch_max_files <= 0:
            raise ValueError("BATCH_MAX_FILES must be positive")
        if self.batch_job_timeout_seconds is not None and self.batch_job_timeout_seconds <= 0:
            raise ValueError("BATCH_JOB_TIMEOUT_SECONDS must be positive when set")
        if self.redis_operation_timeout_seconds <= 0 or self.redis_connect_timeout_seconds <= 0:
            raise ValueError("redis timeout values must be positive")
        return self

    def gemini_api_key_plain(self) -> str | None:
        return _secret_or_none(self.gemini_api_key)

    def tmdb_api_key_plain(self) -> str | None:
        return _secret_or_none(self.tmdb_api_key)

    def redis_dsn_plain(self) -> str | None:
        return _secret_or_none(self.redis_dsn)


class DevSettings(BaseAppSettings):
    docs_enabled: bool = Field(default=True, validation_alias="DOCS_ENABLED")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")


class ProdSettings(BaseAppSettings):
    docs_enabled: bool = Field(default=False, validation_alias="DOCS_ENABLED")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_allow_origins: list[str] = Field(default_factory=list, validation_alias="CORS_ALLOW_ORIGINS")


Settings = BaseAppSettings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    env = (os.getenv("APP_ENV") or "dev").strip().lower()
    if env == "prod":
        return ProdSettings()
    return DevSettings()
