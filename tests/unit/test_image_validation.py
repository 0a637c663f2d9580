from __future__ import annotations

import hashlib
from io import BytesIO

import pytest
from fastapi import UploadFile

from scenelens.core.config import Settings
from scenelens.core.errors import (
    ImageDimensionsExceededError,
    ImageTooLargeError,
    InvalidImageError,
    UnsupportedImageTypeError,
)
from scenelens.core.image_validation import UploadLimits, image_blob_from_bytes, read_image_upload


@pytest.fixture
def limits() -> UploadLimits:
    return UploadLimits.from_settings(Settings(_env_file=None))


class TestImageBlobFromBytes:
    def test_png(self, png_bytes, limits):
        blob = image_blob_from_bytes(png_bytes, limits=limits, filename="shot.png")

        assert blob.mime_type == "image/png"
        assert (blob.width, blob.height) == (8, 8)
        assert blob.sha256 == hashlib.sha256(png_bytes).hexdigest()
        assert blob.filename == "shot.png"

    def test_jpeg(self, jpeg_bytes, limits):
        assert image_blob_from_bytes(jpeg_bytes, limits=limits).mime_type == "image/jpeg"

    def test_unsupported_format(self, gif_bytes, limits):
        with pytest.raises(UnsupportedImageTypeError) as exc_info:
            image_blob_from_bytes(gif_bytes, limits=limits)
        assert exc_info.value.http_status == 415

    def test_garbage(self, limits):
        with pytest.raises(InvalidImageError):
            image_blob_from_bytes(b"definitely not an image", limits=limits)

    def test_dimension_limits(self, png_bytes):
        small = UploadLimits(
            max_bytes=1_000_000,
            chunk_size=1024,
            allowed_mime_types=frozenset({"image/png"}),
            max_pixels=1_000_000,
            max_width=4,
            max_height=4,
        )
        with pytest.raises(ImageDimensionsExceededError):
            image_blob_from_bytes(png_bytes, limits=small)


class TestReadImageUpload:
    @pytest.mark.asyncio
    async def test_reads_in_chunks(self, png_bytes, limits):
        upload = UploadFile(file=BytesIO(png_bytes), filename="a.png")
        blob = await read_image_upload(upload, limits)
        assert blob.content == png_bytes
        assert blob.filename == "a.png"

    @pytest.mark.asyncio
    async def test_too_large(self, png_bytes):
        tiny = UploadLimits(
            max_bytes=16,
            chunk_size=8,
            allowed_mime_types=frozenset({"image/png"}),
            max_pixels=1_000_000,
            max_width=100,
            max_height=100,
        )
        with pytest.raises(ImageTooLargeError):
            await read_image_upload(UploadFile(file=BytesIO(png_bytes), filename="a.png"), tiny)

    @pytest.mark.asyncio
    async def test_empty(self, limits):
        with pytest.raises(InvalidImageError):
            await read_image_upload(UploadFile(file=BytesIO(b""), filename="empty.png"), limits)
