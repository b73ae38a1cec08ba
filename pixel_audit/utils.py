"""Formatting helpers for human-readable output."""

from __future__ import annotations

import re
from urllib.parse import urlparse

BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
_SCHEME_PATTERN = re.compile(r"^https?://")


def format_bytes(size: float, decimals: int = 2) -> str:
    """Scale a byte count into 1024-based units."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    value = float(size)
    while value >= 1024 and exponent < len(BYTE_UNITS) - 1:
        value /= 1024
        exponent += 1
    value = round(value, max(0, decimals))
    return f"{value:g} {BYTE_UNITS[exponent]}"


def truncate_url(url: str, max_length: int = 50) -> str:
    """Shorten long URLs to the host plus the tail of the path."""
    if len(url) <= max_length:
        return url
    domain = urlparse(url).hostname
    if not domain:
        return url[: max_length - 3] + "..."
    without_scheme = _SCHEME_PATTERN.sub("", url)
    if len(without_scheme) > max_length:
        return f"{domain}/...{without_scheme[-20:]}"
    return url
