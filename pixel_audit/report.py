"""LCP selection and page-level aggregation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .models import AnalysisResult, ImageRecord
from .scoring import LCP_PRIORITY_ADVICE

logger = logging.getLogger("pixel_audit.report")

SAVINGS_THRESHOLD = 80


def _largest(records: Sequence[ImageRecord]) -> ImageRecord:
    largest = records[0]
    for record in records[1:]:
        if record.byte_size > largest.byte_size:
            largest = record
    return largest


def select_lcp(
    records: Sequence[ImageRecord],
    is_likely_framework_site: bool,
) -> Optional[ImageRecord]:
    """Flag the Largest Contentful Paint candidate among ``records``.

    The largest visible, in-viewport image wins; without one, the largest
    image overall. Ties keep the first record encountered.
    """
    if not records:
        return None
    candidates = [record for record in records if record.is_visible and record.is_in_viewport]
    lcp = _largest(candidates or records)
    lcp.is_lcp = True
    if not lcp.is_using_framework_image and is_likely_framework_site:
        lcp.recommendations.insert(0, LCP_PRIORITY_ADVICE)
    logger.debug("LCP candidate: %s (%d bytes)", lcp.source_url, lcp.byte_size)
    return lcp


def potential_savings(record: ImageRecord) -> float:
    if record.optimization_score >= SAVINGS_THRESHOLD:
        return 0.0
    return record.byte_size * (SAVINGS_THRESHOLD - record.optimization_score) / 100


def aggregate(
    url: str,
    records: List[ImageRecord],
    is_likely_framework_site: bool,
    used_rendered_collection: bool,
    duration_seconds: float = 0.0,
) -> AnalysisResult:
    """Reduce scored records into page totals."""
    total_bytes = sum(record.byte_size for record in records)
    savings = sum(potential_savings(record) for record in records)
    cached = sum(
        1
        for record in records
        if record.cache_evidence is not None and record.cache_evidence.cache_hit
    )
    return AnalysisResult(
        url=url,
        images=records,
        total_bytes=total_bytes,
        potential_savings_bytes=savings,
        potential_savings_percent=(savings / total_bytes * 100) if total_bytes else 0.0,
        is_likely_framework_site=is_likely_framework_site,
        used_rendered_collection=used_rendered_collection,
        total_transformations=sum(record.variants.transformation_count for record in records),
        cached_images_percent=(cached / len(records) * 100) if records else 0.0,
        analyzed_at=datetime.now(timezone.utc).isoformat(),
        duration_seconds=duration_seconds,
    )
