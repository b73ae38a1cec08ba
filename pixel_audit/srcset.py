"""Responsive-variant parsing and coverage analysis."""

from __future__ import annotations

from typing import List, Sequence

from .models import SizeRange, VariantEntry, VariantSummary

MOBILE_BREAKPOINT = 640
DESKTOP_BREAKPOINT = 1024


def _parse_descriptor(url: str, descriptor: str) -> VariantEntry:
    value = descriptor[:-1]
    try:
        if descriptor.endswith("w"):
            return VariantEntry(url=url, width=int(value))
        if descriptor.endswith("x"):
            return VariantEntry(url=url, density=float(value))
    except ValueError:
        pass
    return VariantEntry(url=url)


def parse_srcset(srcset: str) -> List[VariantEntry]:
    """Split a srcset value into URL/descriptor entries.

    Candidates without a descriptor are dropped.
    """
    if not srcset:
        return []
    entries: List[VariantEntry] = []
    for candidate in srcset.split(","):
        parts = candidate.split()
        if len(parts) < 2:
            continue
        entries.append(_parse_descriptor(parts[0], parts[1].lower()))
    return entries


def analyze_srcset(entries: Sequence[VariantEntry]) -> VariantSummary:
    """Summarize breakpoint coverage for a list of variants."""
    if not entries:
        return VariantSummary()

    count = len(entries)
    widths = [entry.width for entry in entries if entry.width is not None]
    if widths:
        smallest, largest = min(widths), max(widths)
        return VariantSummary(
            transformation_count=count,
            has_appropriate_range=(
                largest / smallest >= 2 if smallest > 0 else largest > 0
            ),
            has_mobile_size=smallest <= MOBILE_BREAKPOINT,
            has_desktop_size=largest >= DESKTOP_BREAKPOINT,
            size_range=SizeRange(min=smallest, max=largest),
        )

    densities = [entry.density for entry in entries if entry.density is not None]
    if densities:
        return VariantSummary(
            transformation_count=count,
            has_appropriate_range=max(densities) >= 2,
            has_mobile_size=True,
            has_desktop_size=True,
        )

    return VariantSummary(transformation_count=count)


def summarize_srcset(srcset: str) -> VariantSummary:
    return analyze_srcset(parse_srcset(srcset))
