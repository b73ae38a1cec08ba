"""Image format resolution, decoding and framework-component detection."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from filetype import guess
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError
from .models import IMAGE_FORMATS, RawImageFacts

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "avif", "svg"}
_FORMAT_ALIASES = {"jpg": "jpeg", "pjpeg": "jpeg", "svg+xml": "svg"}
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class DecodedImage:
    """Pixel metadata read from an image buffer."""

    format: Optional[str]
    width: int
    height: int


def _canonical_format(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    name = name.strip().lower()
    name = _FORMAT_ALIASES.get(name, name)
    if name in IMAGE_FORMATS and name != "unknown":
        return name
    return None


def format_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Return the image format declared by a Content-Type header, if any."""
    if not content_type:
        return None
    mime = content_type.split(";")[0].strip().lower()
    if not mime.startswith("image/"):
        return None
    return _canonical_format(mime.split("/", 1)[1])


def format_from_url(url: str) -> Optional[str]:
    """Map the URL path's file extension through the allow-list."""
    path = urlparse(url).path
    if "." not in path:
        return None
    extension = path.rsplit(".", 1)[-1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        return None
    return _canonical_format(extension)


def resolve_format(url: str, content_type: Optional[str] = None) -> str:
    """Guess an image format from HTTP metadata, then from the URL."""
    return format_from_content_type(content_type) or format_from_url(url) or "unknown"


def merge_decoded_format(current: str, decoded: Optional[str]) -> str:
    """Let a recognised decoded format override the initial guess."""
    return _canonical_format(decoded) or current


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type from the file signature using filetype."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        return _canonical_format(kind.extension)
    return None


def decode_image(data: bytes, url: str = "") -> DecodedImage:
    """Read format and pixel dimensions from an encoded image."""
    if not data:
        raise DecodeError(url, "empty image body")
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            pil_format = image.format
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(url, str(exc)) from exc
    if width <= 0 or height <= 0:
        raise DecodeError(url, f"invalid dimensions {width}x{height}")
    return DecodedImage(
        format=detect_image_format(data) or _canonical_format(pil_format),
        width=width,
        height=height,
    )


def _compact_style(style: Optional[str]) -> str:
    return _WHITESPACE.sub("", style or "").lower()


def is_framework_image(facts: RawImageFacts) -> bool:
    """Heuristically decide whether an ``<img>`` came from the Next.js Image component.

    A determination already made against the live DOM wins over the markup
    heuristics.
    """
    if facts.is_framework_image is not None:
        return facts.is_framework_image

    attributes = facts.attributes
    if "data-nimg" in attributes:
        return True

    if (facts.parent_tag or "").lower() == "span" and facts.parent_style:
        style = _compact_style(facts.parent_style)
        if "box-sizing:border-box" in style and "display:inline-block" in style:
            return True

    class_name = attributes.get("class") or ""
    if "next-image" in class_name:
        return True

    srcset = facts.srcset or attributes.get("srcset") or ""
    return "/_next/image" in srcset
