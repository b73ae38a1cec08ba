import pytest

from pixel_audit.models import CacheEvidence, VariantSummary
from pixel_audit.report import aggregate, potential_savings, select_lcp
from pixel_audit.scoring import LCP_PRIORITY_ADVICE


def _records(make_record, sizes, **kwargs):
    return [
        make_record(source_url=f"https://example.com/{index}.png", byte_size=size, **kwargs)
        for index, size in enumerate(sizes)
    ]


def test_lcp_is_largest_visible_in_viewport(make_record):
    records = _records(make_record, [10_000, 99_999, 50_000])
    lcp = select_lcp(records, False)
    assert lcp is records[1]
    assert [record.is_lcp for record in records] == [False, True, False]


def test_lcp_ignores_offscreen_images(make_record):
    records = _records(make_record, [10_000, 99_999, 50_000])
    records[1].is_in_viewport = False
    assert select_lcp(records, False) is records[2]


def test_lcp_falls_back_to_largest_overall(make_record):
    records = _records(make_record, [10_000, 99_999, 50_000], is_in_viewport=False)
    select_lcp(records, False)
    assert [record.is_lcp for record in records] == [False, True, False]


def test_lcp_tie_keeps_first(make_record):
    records = _records(make_record, [5_000, 5_000])
    assert select_lcp(records, False) is records[0]


def test_lcp_empty():
    assert select_lcp([], True) is None


def test_lcp_priority_advice_on_framework_site(make_record):
    records = _records(make_record, [10_000, 20_000])
    for record in records:
        record.recommendations = ["Convert to WebP format to reduce size by ~30%"]
    select_lcp(records, True)
    assert records[1].recommendations[0] == LCP_PRIORITY_ADVICE
    assert LCP_PRIORITY_ADVICE not in records[0].recommendations


def test_no_priority_advice_for_component_images(make_record):
    records = _records(make_record, [10_000], is_using_framework_image=True)
    select_lcp(records, True)
    assert LCP_PRIORITY_ADVICE not in records[0].recommendations


def test_potential_savings(make_record):
    assert potential_savings(make_record(byte_size=100_000, optimization_score=60)) == 20_000
    assert potential_savings(make_record(byte_size=100_000, optimization_score=80)) == 0


def test_aggregate_totals(make_record):
    records = [
        make_record(
            source_url="https://example.com/a.png",
            byte_size=100_000,
            optimization_score=60,
            variants=VariantSummary(transformation_count=3),
            cache_evidence=CacheEvidence(cache_hit=True),
        ),
        make_record(
            source_url="https://example.com/b.png",
            byte_size=200_000,
            optimization_score=90,
            cache_evidence=CacheEvidence(cache_hit=False),
        ),
    ]
    result = aggregate("https://example.com", records, True, False)
    assert result.total_bytes == 300_000
    assert result.potential_savings_bytes == pytest.approx(20_000)
    assert result.potential_savings_percent == pytest.approx(6.6667, rel=1e-3)
    assert result.total_transformations == 3
    assert result.cached_images_percent == 50
    assert result.is_likely_framework_site
    assert not result.used_rendered_collection


def test_aggregate_empty():
    result = aggregate("https://example.com", [], False, True)
    assert result.total_bytes == 0
    assert result.potential_savings_percent == 0
    assert result.cached_images_percent == 0
    assert result.to_dict()["images"] == []
