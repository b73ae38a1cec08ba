import io
import struct
import zlib
from typing import Callable

import pytest
from PIL import Image

from pixel_audit.models import ImageRecord


def encode_image(width: int = 40, height: int = 30, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "red").save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image(40, 30, "PNG")


@pytest.fixture
def make_record() -> Callable[..., ImageRecord]:
    def factory(**kwargs) -> ImageRecord:
        kwargs.setdefault("source_url", "https://example.com/image.png")
        kwargs.setdefault("byte_size", 10_000)
        return ImageRecord(**kwargs)

    return factory


def png_with_declared_size(width: int, height: int) -> bytes:
    """A tiny PNG whose IHDR claims ``width`` x ``height`` pixels."""
    data = bytearray(encode_image(1, 1, "PNG"))
    data[16:24] = struct.pack(">II", width, height)
    data[29:33] = struct.pack(">I", zlib.crc32(bytes(data[12:29])))
    return bytes(data)
