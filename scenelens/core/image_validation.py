from __future__ import annotations

import hashlib
from dataclasses import dataclass
from io import BytesIO

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from scenelens.core.config import Settings
from scenelens.core.errors import (
    ImageDimensionsExceededError,
    ImageTooLargeError,
    InvalidImageError,
    UnsupportedImageTypeError,
)
from scenelens.domain.entities import ImageBlob

_FORMAT_TO_MIME: dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}


@dataclass(frozen=True)
class UploadLimits:
    max_bytes: int
    chunk_size: int
    allowed_mime_types: frozenset[str]
    max_pixels: int
    max_width: int
    max_height: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadLimits":
        return cls(
            max_bytes=settings.max_upload_bytes,
            chunk_size=settings.upload_read_chunk_size,
            allowed_mime_types=frozenset(m.strip().lower() for m in settings.allowed_image_mime_types if m.strip()),
            max_pixels=settings.max_image_pixels,
            max_width=settings.max_image_width,
            max_height=settings.max_image_height,
        )


async def read_image_upload(upload: UploadFile, limits: UploadLimits) -> ImageBlob:
    try:
        data = await _read_limited(upload, max_bytes=limits.max_bytes, chunk_size=limits.chunk_size)
    finally:
        await upload.close()
    return image_blob_from_bytes(data, limits=limits, filename=upload.filename)


async def _read_limited(upload: UploadFile, *, max_bytes: int, chunk_size: int) -> bytes:
    buf = bytearray()
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise ImageTooLargeError(f"upload {upload.filename!r} exceeded {max_bytes} bytes")
    if not buf:
        raise InvalidImageError(f"empty upload {upload.filename!r}")
    return bytes(buf)


def image_blob_from_bytes(data: bytes, *, limits: UploadLimits, filename: str | None = None) -> ImageBlob:
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
        with Image.open(BytesIO(data)) as img:
            img.load()
            width, height = img.size
            fmt = (img.format or "").upper()
    except DecompressionBombError as exc:
        raise ImageDimensionsExceededError("decompression bomb detected") from exc
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError(f"cannot decode {filename!r}") from exc

    if width <= 0 or height <= 0:
        raise InvalidImageError("invalid image dimensions")
    if width * height > limits.max_pixels or width > limits.max_width or height > limits.max_height:
        raise ImageDimensionsExceededError(f"{width}x{height} exceeds limits")

    mime = _FORMAT_TO_MIME.get(fmt, "")
    if not mime or mime not in limits.allowed_mime_types:
        raise UnsupportedImageTypeError(f"unsupported image format: {fmt!r}")

    return ImageBlob(
        content=data,
        mime_type=mime,
        sha256=hashlib.sha256(data).hexdigest(),
        width=width,
        height=height,
        filename=filename,
    )
