"""Data models used throughout the image analysis pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

IMAGE_FORMATS = ("jpeg", "png", "gif", "webp", "avif", "svg", "unknown")


@dataclass(frozen=True)
class Dimensions:
    """Pixel dimensions of a decoded or rendered image."""

    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class VariantEntry:
    """One candidate from a srcset descriptor list."""

    url: str
    width: Optional[int] = None
    density: Optional[float] = None


@dataclass(frozen=True)
class SizeRange:
    min: int
    max: int


@dataclass(frozen=True)
class VariantSummary:
    """Coverage summary for the responsive variants of one image."""

    transformation_count: int = 0
    has_appropriate_range: bool = False
    has_mobile_size: bool = False
    has_desktop_size: bool = False
    size_range: Optional[SizeRange] = None


@dataclass(frozen=True)
class CacheEvidence:
    """Cache behaviour inferred from response headers."""

    cache_hit: bool
    cache_provider: Optional[str] = None
    ttl_seconds: Optional[int] = None
    cache_control_raw: Optional[str] = None


@dataclass(frozen=True)
class ServerEvidence:
    """Origin server, hosting provider and edge location hints."""

    server_header: Optional[str] = None
    provider: Optional[str] = None
    approx_location: Optional[str] = None


@dataclass(frozen=True)
class ResponseFacts:
    """An image response observed while the page was rendering."""

    url: str
    status: int
    headers: Mapping[str, str]
    content_type: str = ""
    content_length: int = 0


@dataclass
class RawImageFacts:
    """An ``<img>`` element as reported by a collection strategy.

    Fields the strategy cannot determine stay ``None``; the normalizer
    fills in defaults.
    """

    src: str
    attributes: Dict[str, str] = field(default_factory=dict)
    srcset: str = ""
    natural_width: Optional[int] = None
    natural_height: Optional[int] = None
    is_visible: Optional[bool] = None
    is_in_viewport: Optional[bool] = None
    is_framework_image: Optional[bool] = None
    parent_tag: Optional[str] = None
    parent_style: Optional[str] = None


@dataclass
class RawPageEvidence:
    """Everything a collection strategy learned about the page."""

    page_url: str
    final_url: str
    is_likely_framework_site: bool
    images: List[RawImageFacts] = field(default_factory=list)
    network_responses: Mapping[str, ResponseFacts] = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass
class ImageRecord:
    """Canonical, normalized description of a single page image."""

    source_url: str
    byte_size: int
    format: str = "unknown"
    dimensions: Optional[Dimensions] = None
    is_using_framework_image: bool = False
    is_in_viewport: bool = True
    is_visible: bool = True
    is_lcp: bool = False
    srcset: Optional[str] = None
    variants: VariantSummary = field(default_factory=VariantSummary)
    cache_evidence: Optional[CacheEvidence] = None
    server_evidence: Optional[ServerEvidence] = None
    optimization_score: int = 0
    recommendations: List[str] = field(default_factory=list)
    alt_text: Optional[str] = None
    fetch_seconds: Optional[float] = None


@dataclass
class AnalysisResult:
    """Page-level outcome of one analysis run."""

    url: str
    images: List[ImageRecord]
    total_bytes: int
    potential_savings_bytes: float
    potential_savings_percent: float
    is_likely_framework_site: bool
    used_rendered_collection: bool
    total_transformations: int
    cached_images_percent: float
    analyzed_at: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
