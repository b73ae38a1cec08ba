"""Configuration objects and constants for the analyzer."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("pixel_audit.config")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
STATIC_USER_AGENT = "Mozilla/5.0 (compatible; PixelAudit/1.0)"

ENV_PREFIX = "PIXEL_AUDIT_"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class AnalyzerConfig:
    """Settings that control page collection and per-image fetching."""

    render: bool = True
    browser_endpoint: Optional[str] = None
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT
    static_user_agent: str = STATIC_USER_AGENT
    navigation_timeout: float = 20.0
    settle_delay: float = 2.0
    page_timeout: float = 10.0
    image_timeout: float = 5.0
    max_concurrent_fetches: Optional[int] = None

    @classmethod
    def from_env(cls, **overrides) -> "AnalyzerConfig":
        """Build a config from ``PIXEL_AUDIT_*`` variables, then apply overrides."""
        config = cls()
        if os.getenv(f"{ENV_PREFIX}DISABLE_RENDER", "").lower() in _TRUTHY:
            config.render = False
        endpoint = os.getenv(f"{ENV_PREFIX}BROWSER_ENDPOINT")
        if endpoint:
            config.browser_endpoint = endpoint
        for name in ("navigation_timeout", "settle_delay", "page_timeout", "image_timeout"):
            value = _env_float(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                setattr(config, name, value)
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        return config


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s is set to %r which is not a number; ignoring it", name, raw)
        return None
    if value < 0:
        logger.warning("%s must not be negative (got %s); ignoring it", name, value)
        return None
    return value
