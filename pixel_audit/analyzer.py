"""High-level orchestration: collect, normalize, score and aggregate."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import async_playwright

from .collectors import Collector, choose_collector
from .config import AnalyzerConfig
from .errors import InvalidUrlError
from .models import AnalysisResult
from .normalizer import normalize_images
from .report import aggregate, select_lcp
from .scoring import score_image

logger = logging.getLogger("pixel_audit")


def validate_url(url: str) -> str:
    """Ensure ``url`` is an absolute http(s) URL."""
    candidate = (url or "").strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {url!r}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc or " " in candidate:
        raise InvalidUrlError(f"Invalid URL: {url!r}")
    return candidate


async def run_analysis(
    url: str,
    collector: Collector,
    config: AnalyzerConfig,
) -> AnalysisResult:
    """Run the pipeline with an already chosen collection strategy."""
    start = time.perf_counter()
    evidence = await collector.collect(url)
    records = await normalize_images(evidence, config)
    site_flag = evidence.is_likely_framework_site
    scored = [score_image(record, site_flag) for record in records]
    select_lcp(scored, site_flag)
    result = aggregate(
        url=url,
        records=scored,
        is_likely_framework_site=site_flag,
        used_rendered_collection=collector.rendered,
        duration_seconds=time.perf_counter() - start,
    )
    logger.info(
        "Analyzed %d images on %s in %.2fs",
        len(scored),
        url,
        result.duration_seconds,
    )
    return result


async def analyze(url: str, config: Optional[AnalyzerConfig] = None) -> AnalysisResult:
    """Analyze every image on the page at ``url``.

    Rendering is used when a headless browser is reachable; otherwise the
    raw HTML is fetched and parsed.
    """
    url = validate_url(url)
    config = config or AnalyzerConfig.from_env()
    if not config.render:
        return await run_analysis(url, choose_collector(None, config), config)
    async with async_playwright() as playwright:
        collector = choose_collector(playwright, config)
        return await run_analysis(url, collector, config)


def analyze_url(url: str, config: Optional[AnalyzerConfig] = None) -> AnalysisResult:
    """Blocking wrapper around :func:`analyze`."""
    return asyncio.run(analyze(url, config))
