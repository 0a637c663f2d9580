from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image


def _encode(fmt: str, size: tuple[int, int] = (8, 8), color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return _encode("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode("JPEG", color=(10, 120, 220))


@pytest.fixture
def gif_bytes() -> bytes:
    return _encode("GIF")


@pytest.fixture
def png_factory():
    def factory(index: int) -> bytes:
        return _encode("PNG", color=(index % 256, 64, 128))

    return factory
