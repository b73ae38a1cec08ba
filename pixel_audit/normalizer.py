"""Merge raw per-image facts into canonical image records."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncContextManager, List, Optional
from urllib.parse import urljoin, urlparse

from .config import AnalyzerConfig
from .errors import DecodeError, ImageFetchError
from .images import decode_image, is_framework_image, merge_decoded_format, resolve_format
from .models import Dimensions, ImageRecord, RawImageFacts, RawPageEvidence
from .network import (
    ImageFetch,
    extract_cache_evidence,
    extract_server_evidence,
    fetch_image,
)
from .srcset import summarize_srcset

logger = logging.getLogger("pixel_audit.normalizer")


def is_embedded_source(src: str) -> bool:
    """True for sources that carry no fetchable URL."""
    src = src.strip()
    return not src or src.lower().startswith("data:") or ";base64," in src


def resolve_source_url(src: str, base_url: str) -> Optional[str]:
    """Return the absolute http(s) URL for an image source, or ``None`` to skip it."""
    if is_embedded_source(src):
        return None
    absolute = urljoin(base_url, src.strip())
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def _attribute_dimensions(facts: RawImageFacts) -> Optional[Dimensions]:
    try:
        width = int(str(facts.attributes.get("width") or "0").strip())
        height = int(str(facts.attributes.get("height") or "0").strip())
    except ValueError:
        return None
    if width > 0 and height > 0:
        return Dimensions(width, height)
    return None


class ImageNormalizer:
    """Build one ``ImageRecord`` per distinct, fetchable image on the page."""

    def __init__(self, evidence: RawPageEvidence, config: AnalyzerConfig) -> None:
        self.evidence = evidence
        self.config = config
        if config.max_concurrent_fetches:
            self._limit: Optional[asyncio.Semaphore] = asyncio.Semaphore(
                config.max_concurrent_fetches
            )
        else:
            self._limit = None

    def _slot(self) -> AsyncContextManager:
        return self._limit if self._limit is not None else contextlib.nullcontext()

    def _unique_sources(self) -> List[tuple]:
        base_url = self.evidence.final_url or self.evidence.page_url
        seen = set()
        sources = []
        for facts in self.evidence.images:
            url = resolve_source_url(facts.src, base_url)
            if url is None:
                logger.debug("Skipping embedded or empty image source")
                continue
            if url in seen:
                continue
            seen.add(url)
            sources.append((url, facts))
        return sources

    async def _fetch(self, url: str) -> ImageFetch:
        async with self._slot():
            return await asyncio.to_thread(fetch_image, url, self.config)

    async def normalize_one(self, url: str, facts: RawImageFacts) -> Optional[ImageRecord]:
        response = self.evidence.network_responses.get(url)
        headers = response.headers if response is not None else None
        content_type = response.content_type if response is not None else None
        byte_size = 0
        if response is not None and response.status < 400:
            byte_size = response.content_length

        dimensions: Optional[Dimensions] = None
        if facts.natural_width and facts.natural_height:
            dimensions = Dimensions(facts.natural_width, facts.natural_height)

        image_format = resolve_format(url, content_type)
        fetched: Optional[ImageFetch] = None
        needs_decode = dimensions is None and image_format != "svg"

        if byte_size <= 0 or needs_decode:
            try:
                fetched = await self._fetch(url)
            except ImageFetchError as exc:
                if byte_size <= 0:
                    logger.warning("Excluding image %s", exc)
                    return None
                logger.debug("Could not fetch %s for decoding: %s", url, exc.reason)

        if fetched is not None:
            if byte_size <= 0:
                byte_size = len(fetched.content)
            if headers is None:
                headers = fetched.headers
                image_format = resolve_format(url, fetched.content_type)
                needs_decode = dimensions is None and image_format != "svg"

        if needs_decode and fetched is not None:
            try:
                decoded = decode_image(fetched.content, url)
            except DecodeError as exc:
                logger.debug("Could not decode %s", exc)
            else:
                image_format = merge_decoded_format(image_format, decoded.format)
                dimensions = Dimensions(decoded.width, decoded.height)

        if dimensions is None:
            dimensions = _attribute_dimensions(facts)

        srcset = facts.srcset or facts.attributes.get("srcset") or ""
        return ImageRecord(
            source_url=url,
            byte_size=byte_size,
            format=image_format,
            dimensions=dimensions,
            is_using_framework_image=is_framework_image(facts),
            is_in_viewport=facts.is_in_viewport if facts.is_in_viewport is not None else True,
            is_visible=facts.is_visible if facts.is_visible is not None else True,
            srcset=srcset or None,
            variants=summarize_srcset(srcset),
            cache_evidence=extract_cache_evidence(headers),
            server_evidence=extract_server_evidence(headers),
            alt_text=facts.attributes.get("alt"),
            fetch_seconds=fetched.elapsed if fetched is not None else None,
        )

    async def _normalize_isolated(self, url: str, facts: RawImageFacts) -> Optional[ImageRecord]:
        try:
            return await self.normalize_one(url, facts)
        except Exception:
            logger.warning("Excluding image %s after unexpected error", url, exc_info=True)
            return None

    async def normalize(self) -> List[ImageRecord]:
        sources = self._unique_sources()
        results = await asyncio.gather(
            *(self._normalize_isolated(url, facts) for url, facts in sources)
        )
        records = [record for record in results if record is not None]
        logger.info(
            "Normalized %d of %d images (%d excluded)",
            len(records),
            len(sources),
            len(sources) - len(records),
        )
        return records


async def normalize_images(evidence: RawPageEvidence, config: AnalyzerConfig) -> List[ImageRecord]:
    return await ImageNormalizer(evidence, config).normalize()
