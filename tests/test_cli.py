import json
from io import StringIO

from pixel_audit import cli
from pixel_audit.errors import FetchError
from pixel_audit.models import CacheEvidence, Dimensions, ImageRecord, ServerEvidence
from pixel_audit.report import aggregate


def _result():
    record = ImageRecord(
        source_url="https://example.com/hero.png",
        byte_size=300_000,
        format="png",
        dimensions=Dimensions(1600, 900),
        is_lcp=True,
        cache_evidence=CacheEvidence(cache_hit=True, cache_provider="Cloudflare"),
        server_evidence=ServerEvidence(provider="Cloudflare", approx_location="SJC"),
        optimization_score=45,
        recommendations=["Convert to WebP format to reduce size by ~30%"],
    )
    return aggregate("https://example.com/", [record], False, True)


def test_build_config_from_args(monkeypatch):
    monkeypatch.delenv("PIXEL_AUDIT_DISABLE_RENDER", raising=False)
    args = cli.parse_args(["https://example.com", "--static", "--image-timeout", "2", "--max-fetches", "4"])
    config = cli.build_config(args)
    assert not config.render
    assert config.image_timeout == 2
    assert config.max_concurrent_fetches == 4
    assert config.navigation_timeout == 20.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PIXEL_AUDIT_DISABLE_RENDER", "1")
    monkeypatch.setenv("PIXEL_AUDIT_PAGE_TIMEOUT", "3.5")
    monkeypatch.setenv("PIXEL_AUDIT_IMAGE_TIMEOUT", "soon")
    config = cli.build_config(cli.parse_args(["https://example.com"]))
    assert not config.render
    assert config.page_timeout == 3.5
    assert config.image_timeout == 5.0


def test_render_text():
    text = cli.render_text(_result())
    assert "Image analysis for https://example.com/ (rendered)" in text
    assert "[LCP]" in text
    assert "score 45/100 | png | 292.97 KB | 1600×900" in text
    assert "cache HIT via Cloudflare" in text
    assert "served by Cloudflare (SJC)" in text
    assert "- Convert to WebP format" in text


def test_write_json():
    stream = StringIO()
    cli.write_result(_result(), True, stream)
    payload = json.loads(stream.getvalue())
    assert payload["total_bytes"] == 300_000
    assert payload["images"][0]["is_lcp"] is True


def test_main_reports_fatal_errors(monkeypatch, capsys):
    async def failing(url, config):
        raise FetchError("Failed to fetch https://example.com/: 503 Service Unavailable")

    monkeypatch.setattr(cli, "analyze", failing)
    assert cli.main(["https://example.com/", "--static"]) == 1
    assert capsys.readouterr().out == ""


def test_main_prints_result(monkeypatch, capsys):
    async def succeed(url, config):
        return _result()

    monkeypatch.setattr(cli, "analyze", succeed)
    assert cli.main(["https://example.com/", "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["url"] == "https://example.com/"
