import re

from pixel_audit.utils import BYTE_UNITS, format_bytes, truncate_url


def _magnitude(text: str) -> float:
    value, unit = text.split(" ")
    return float(value) * 1024 ** BYTE_UNITS.index(unit)


def test_format_bytes_examples():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1024) == "1 KB"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5 MB"


def test_format_bytes_is_monotonic():
    sizes = [0, 1, 10, 1023, 1024, 1500, 10_000, 500_000, 1_048_576, 5_000_000, 3 * 1024 ** 3]
    magnitudes = [_magnitude(format_bytes(size)) for size in sizes]
    assert magnitudes == sorted(magnitudes)


def test_format_bytes_output_reparses_to_itself():
    for size in (1, 2_048, 123_456, 9_876_543):
        text = format_bytes(size)
        assert format_bytes(_magnitude(text)) == text


def test_truncate_url():
    short = "https://example.com/a.png"
    assert truncate_url(short) == short
    long = "https://cdn.example.com/" + "x" * 80 + "/photo.jpg"
    truncated = truncate_url(long)
    assert truncated.startswith("cdn.example.com/...")
    assert truncated.endswith(long[-20:])
    assert re.match(r"^not a url", truncate_url("not a url " * 10))
