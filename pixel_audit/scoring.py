"""Per-image optimization score and recommendations."""

from __future__ import annotations

import dataclasses
from typing import List

from .models import ImageRecord

MODERN_FORMATS = {"webp", "avif"}
FORMAT_PENALTIES = {"png": 15, "jpeg": 10, "jpg": 10, "gif": 30}
DEFAULT_FORMAT_PENALTY = 5
MIN_CACHE_TTL = 86_400

WELL_OPTIMIZED = "Image appears to be well optimized."
LCP_PRIORITY_ADVICE = (
    "This is an LCP element - use the Next.js Image component with priority attribute"
)


def _format_penalty(image_format: str) -> int:
    if image_format in MODERN_FORMATS:
        return 0
    return FORMAT_PENALTIES.get(image_format, DEFAULT_FORMAT_PENALTY)


def _size_penalty(byte_size: int) -> int:
    if byte_size > 1_000_000:
        return 20
    if byte_size > 500_000:
        return 10
    if byte_size > 200_000:
        return 5
    return 0


def _area_penalty(record: ImageRecord) -> int:
    if record.dimensions is None:
        return 0
    pixels = record.dimensions.area
    if pixels > 2_000_000:
        return 15
    if pixels > 1_000_000:
        return 10
    if pixels > 500_000:
        return 5
    return 0


def _variant_penalty(record: ImageRecord) -> int:
    count = record.variants.transformation_count
    if count == 0:
        return 15
    if count == 1:
        return 5
    return 0


def is_cache_miss(record: ImageRecord) -> bool:
    return record.cache_evidence is not None and not record.cache_evidence.cache_hit


def calculate_optimization_score(record: ImageRecord) -> int:
    """Start from 100 and subtract weighted penalties, clamped to 0-100."""
    score = 100
    if is_cache_miss(record):
        score -= 15
    score -= _format_penalty(record.format)
    score -= _size_penalty(record.byte_size)
    score -= _area_penalty(record)
    score -= _variant_penalty(record)
    if not record.is_using_framework_image:
        score -= 15
    return max(0, min(100, score))


def generate_recommendations(record: ImageRecord, is_likely_framework_site: bool) -> List[str]:
    """Build the ordered advice list for one image, most critical first."""
    recommendations: List[str] = []
    uses_component = record.is_using_framework_image
    cache = record.cache_evidence

    if is_cache_miss(record):
        recommendations.insert(
            0,
            "Image is not being served from cache - set appropriate cache headers "
            "to improve performance",
        )
    elif cache is not None and cache.ttl_seconds is not None and cache.ttl_seconds < MIN_CACHE_TTL:
        recommendations.append(
            f"Consider increasing cache TTL (currently {cache.ttl_seconds} seconds) "
            "to reduce origin requests"
        )

    if not uses_component:
        if is_likely_framework_site:
            recommendations.append(
                "Replace standard <img> tag with Next.js Image component for automatic optimization"
            )
        else:
            recommendations.append(
                "Consider using Next.js for your project to leverage its Image component "
                "for optimization"
            )

    if record.format not in MODERN_FORMATS:
        if uses_component:
            recommendations.append(
                "Next.js Image should be converting this to WebP/AVIF - check your configuration"
            )
        else:
            recommendations.append("Convert to WebP format to reduce size by ~30%")

    size_kb = round(record.byte_size / 1024)
    if record.byte_size > 1_000_000:
        recommendations.append(f"Compress the image - current size ({size_kb}KB) is too large")
    elif record.byte_size > 500_000:
        recommendations.append(
            f"Consider further compression - current size ({size_kb}KB) could be reduced"
        )

    if record.dimensions is not None:
        width, height = record.dimensions.width, record.dimensions.height
        if width > 2000 or height > 2000:
            if uses_component:
                recommendations.append(
                    f"Image dimensions ({width}×{height}) are very large - ensure proper "
                    "sizing with Next.js Image"
                )
            else:
                recommendations.append(
                    f"Resize image dimensions ({width}×{height}) - current size is excessive "
                    "for web use"
                )
        elif width > 1200 or height > 1200:
            if uses_component:
                recommendations.append(
                    f"Use responsive sizing with Next.js Image for this large image "
                    f"({width}×{height})"
                )
            else:
                recommendations.append(
                    "Consider using responsive images with multiple sizes for this large "
                    f"image ({width}×{height})"
                )

    # Zero variants get no srcset advice.
    variants = record.variants
    if variants.transformation_count == 1:
        recommendations.append(
            "Add more size variants to your srcset for better responsive coverage"
        )
    elif variants.transformation_count >= 2:
        if not variants.has_mobile_size:
            recommendations.append("Add smaller image sizes to your srcset for mobile devices")
        if not variants.has_desktop_size:
            recommendations.append("Add larger image sizes to your srcset for desktop displays")

    if not recommendations:
        recommendations.append(WELL_OPTIMIZED)
    return recommendations


def score_image(record: ImageRecord, is_likely_framework_site: bool) -> ImageRecord:
    """Return a copy of ``record`` with its score and recommendations set."""
    return dataclasses.replace(
        record,
        optimization_score=calculate_optimization_score(record),
        recommendations=generate_recommendations(record, is_likely_framework_site),
    )
