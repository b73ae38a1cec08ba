from types import MappingProxyType
from unittest.mock import MagicMock

import pytest

from pixel_audit import analyzer
from pixel_audit.analyzer import analyze, run_analysis, validate_url
from pixel_audit.collectors import Collector
from pixel_audit.config import AnalyzerConfig
from pixel_audit.errors import InvalidUrlError
from pixel_audit.models import RawImageFacts, RawPageEvidence, ResponseFacts
from pixel_audit.scoring import LCP_PRIORITY_ADVICE


class StubCollector(Collector):
    rendered = True

    def __init__(self, evidence):
        self.evidence = evidence
        self.calls = []

    async def collect(self, url):
        self.calls.append(url)
        return self.evidence


def _response(url, size, content_type, **headers):
    headers = {"content-type": content_type, **headers}
    return ResponseFacts(
        url=url,
        status=200,
        headers=headers,
        content_type=content_type,
        content_length=size,
    )


@pytest.mark.parametrize("url", ["not a url", "", "ftp://example.com/file", "example.com", "http://"])
def test_validate_url_rejects(url):
    with pytest.raises(InvalidUrlError):
        validate_url(url)


def test_validate_url_accepts():
    assert validate_url(" https://example.com/page ") == "https://example.com/page"


@pytest.mark.asyncio
async def test_invalid_url_fails_before_network(monkeypatch):
    playwright_factory = MagicMock(side_effect=AssertionError("network touched"))
    monkeypatch.setattr(analyzer, "async_playwright", playwright_factory)
    with pytest.raises(InvalidUrlError):
        await analyze("not a url", AnalyzerConfig())
    playwright_factory.assert_not_called()


@pytest.mark.asyncio
async def test_run_analysis_end_to_end():
    hero = "https://example.com/hero.jpg"
    logo = "https://example.com/logo.webp"
    evidence = RawPageEvidence(
        page_url="https://example.com/",
        final_url="https://example.com/",
        is_likely_framework_site=True,
        images=[
            RawImageFacts(
                src=logo,
                natural_width=200,
                natural_height=100,
                is_visible=True,
                is_in_viewport=True,
                is_framework_image=True,
                srcset=f"{logo}?w=320 320w, {logo}?w=1280 1280w",
            ),
            RawImageFacts(
                src=hero,
                natural_width=2400,
                natural_height=1600,
                is_visible=True,
                is_in_viewport=True,
                is_framework_image=False,
            ),
            RawImageFacts(src="data:image/png;base64,AAAA"),
        ],
        network_responses=MappingProxyType(
            {
                hero: _response(hero, 1_200_000, "image/jpeg", **{"cf-cache-status": "MISS"}),
                logo: _response(logo, 20_000, "image/webp", **{"x-vercel-cache": "HIT"}),
            }
        ),
    )
    collector = StubCollector(evidence)
    result = await run_analysis("https://example.com/", collector, AnalyzerConfig())

    assert collector.calls == ["https://example.com/"]
    assert result.used_rendered_collection
    assert result.is_likely_framework_site
    assert [image.source_url for image in result.images] == [logo, hero]

    logo_record, hero_record = result.images
    assert logo_record.optimization_score == 100
    assert not logo_record.is_lcp

    # 100 - 15 cache - 10 jpeg - 20 size - 15 area - 15 srcset - 15 component
    assert hero_record.optimization_score == 10
    assert hero_record.is_lcp
    assert hero_record.recommendations[0] == LCP_PRIORITY_ADVICE
    assert hero_record.recommendations[1].startswith("Image is not being served from cache")

    assert result.total_bytes == 1_220_000
    assert result.potential_savings_bytes == pytest.approx(1_200_000 * 0.7)
    assert result.cached_images_percent == 50
    assert result.total_transformations == 2


@pytest.mark.asyncio
async def test_static_mode_skips_browser(monkeypatch):
    evidence = RawPageEvidence(
        page_url="https://example.com/",
        final_url="https://example.com/",
        is_likely_framework_site=False,
    )
    stub = StubCollector(evidence)
    stub.rendered = False
    monkeypatch.setattr(analyzer, "choose_collector", lambda playwright, config: stub)
    monkeypatch.setattr(
        analyzer, "async_playwright", MagicMock(side_effect=AssertionError("browser started"))
    )
    result = await analyze("https://example.com/", AnalyzerConfig(render=False))
    assert not result.used_rendered_collection
    assert result.images == []
    assert result.cached_images_percent == 0
