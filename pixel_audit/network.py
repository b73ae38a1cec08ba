"""Cache, server and provider evidence derived from HTTP response headers."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, List, Mapping, Optional, Tuple

import requests
from requests.structures import CaseInsensitiveDict

from .config import AnalyzerConfig
from .errors import ImageFetchError
from .models import CacheEvidence, ServerEvidence

logger = logging.getLogger("pixel_audit.network")

FASTLY_POP_PATTERN = re.compile(r"cache-[a-z]{3}-[a-z]+\d+-[a-z]{3}", re.IGNORECASE)
MAX_AGE_PATTERN = re.compile(r"max-age=(\d+)")
_LEADING_LETTERS = re.compile(r"^[A-Za-z]+")

CHUNK_SIZE = 64 * 1024

Headers = Mapping[str, str]


def _as_headers(headers: Optional[Headers]) -> CaseInsensitiveDict:
    if isinstance(headers, CaseInsensitiveDict):
        return headers
    return CaseInsensitiveDict(headers or {})


@dataclass
class _CacheState:
    provider: Optional[str] = None
    hit: bool = False
    has_hit_signal: bool = False

    def observe(self, provider: Optional[str], hit: Optional[bool]) -> None:
        if provider and not self.provider:
            self.provider = provider
        if hit is not None and not self.has_hit_signal:
            self.hit = hit
            self.has_hit_signal = True


def _expires_in_future(value: str, now: datetime) -> bool:
    try:
        expires = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return False
    if expires is None:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires > now


def extract_cache_evidence(
    headers: Optional[Headers],
    now: Optional[datetime] = None,
) -> Optional[CacheEvidence]:
    """Infer cache hit/miss, provider and TTL from response headers.

    Returns ``None`` when the response carries no cache-related header.
    """
    headers = _as_headers(headers)
    state = _CacheState()
    seen = False

    vercel = headers.get("x-vercel-cache")
    if vercel:
        seen = True
        state.observe("Vercel", vercel.strip().upper() == "HIT")

    cloudflare = headers.get("cf-cache-status")
    if cloudflare:
        seen = True
        state.observe("Cloudflare", cloudflare.strip().upper() == "HIT")

    # x-cache only counts once a provider rule below recognises it.
    x_cache = headers.get("x-cache")
    if x_cache and "cloudfront" in x_cache.lower():
        state.observe("Cloudfront", "HIT" in x_cache.upper())

    served_by = headers.get("x-served-by")
    if x_cache and served_by and not state.provider:
        if FASTLY_POP_PATTERN.search(served_by.split(",")[0].strip()):
            state.observe("Fastly", "HIT" in x_cache.upper())

    if x_cache and not state.provider and "TCP" in x_cache:
        state.observe("Akamai", "HIT" in x_cache.upper())

    if state.provider:
        seen = True

    if headers.get("x-cache-key"):
        seen = True
        state.observe("Akamai", None)

    expires = headers.get("expires")
    if expires:
        seen = True
        if not state.has_hit_signal:
            if _expires_in_future(expires, now or datetime.now(timezone.utc)):
                state.observe(None, True)

    ttl: Optional[int] = None
    cache_control = headers.get("cache-control")
    if cache_control:
        seen = True
        match = MAX_AGE_PATTERN.search(cache_control)
        if match:
            ttl = int(match.group(1))
        if not state.provider and ("public" in cache_control or "private" in cache_control):
            state.provider = "Generic"

    if not seen:
        return None
    return CacheEvidence(
        cache_hit=state.hit,
        cache_provider=state.provider,
        ttl_seconds=ttl,
        cache_control_raw=cache_control,
    )


_SERVER_TOKENS: Tuple[Tuple[str, str], ...] = (
    ("cloudflare", "Cloudflare"),
    ("vercel", "Vercel"),
    ("amazons3", "Amazon S3"),
    ("cloudfront", "Amazon CloudFront"),
    ("netlify", "Netlify"),
    ("fastly", "Fastly"),
    ("varnish", "Fastly"),
    ("akamai", "Akamai"),
    ("github.com", "GitHub Pages"),
    ("gws", "Google"),
    ("uploadserver", "Google Cloud Storage"),
)


def _server_token(headers: CaseInsensitiveDict) -> Optional[str]:
    server = (headers.get("server") or "").lower().replace(" ", "")
    for token, provider in _SERVER_TOKENS:
        if token in server:
            return provider
    return None


def _has(*names: str) -> Callable[[CaseInsensitiveDict], bool]:
    return lambda headers: any(name in headers for name in names)


PROVIDER_MARKERS: List[Tuple[str, Callable[[CaseInsensitiveDict], bool]]] = [
    ("Amazon S3", _has("x-amz-storage-class")),
    ("Amazon S3", _has("x-amz-request-id")),
    ("Amazon CloudFront", _has("x-amz-cf-id", "x-amz-cf-pop")),
    ("Cloudflare", _has("cf-polished", "cf-bgj")),
    ("Vercel", _has("x-vercel-id")),
    ("Cloudflare", _has("cf-cache-status")),
    ("Fastly", lambda headers: "cache" in (headers.get("x-served-by") or "").lower()),
]


def detect_provider(headers: Optional[Headers]) -> Optional[str]:
    """Return the first provider whose marker matches, in priority order."""
    headers = _as_headers(headers)
    provider = _server_token(headers)
    if provider:
        return provider
    for name, matches in PROVIDER_MARKERS:
        if matches(headers):
            return name
    return None


def detect_location(headers: Optional[Headers]) -> Optional[str]:
    """Extract an edge POP code from routing headers."""
    headers = _as_headers(headers)

    ray = headers.get("cf-ray")
    if ray and "-" in ray:
        code = ray.rsplit("-", 1)[-1].strip()
        if code:
            return code.upper()

    pop = headers.get("x-amz-cf-pop")
    if pop:
        match = _LEADING_LETTERS.match(pop.strip())
        if match:
            return match.group(0).upper()

    vercel_id = headers.get("x-vercel-id")
    if vercel_id:
        match = _LEADING_LETTERS.match(vercel_id.split("::")[0].strip())
        if match:
            return match.group(0).upper()

    served_by = headers.get("x-served-by")
    if served_by:
        first = served_by.split(",")[0].strip()
        if FASTLY_POP_PATTERN.search(first):
            return first.rsplit("-", 1)[-1].upper()

    return None


def extract_server_evidence(headers: Optional[Headers]) -> Optional[ServerEvidence]:
    headers = _as_headers(headers)
    server = headers.get("server")
    provider = detect_provider(headers)
    location = detect_location(headers)
    if not (server or provider or location):
        return None
    return ServerEvidence(server_header=server, provider=provider, approx_location=location)


@dataclass
class ImageFetch:
    """Body and metadata of a directly fetched image."""

    url: str
    status: int
    content: bytes
    headers: CaseInsensitiveDict
    elapsed: float

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


def is_success(status: int) -> bool:
    return 200 <= status < 300


def read_body(
    resp: requests.Response,
    started: float,
    timeout: float,
    clock: Optional[Callable[[], float]] = None,
) -> bytes:
    """Read a streamed body, giving up once ``timeout`` seconds have passed since ``started``.

    ``requests`` applies its own ``timeout`` to each socket read, not to the
    whole body. Raises ``requests.Timeout`` when the deadline passes.
    """
    clock = clock or time.perf_counter
    deadline = started + timeout
    chunks: List[bytes] = []
    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
        chunks.append(chunk)
        if clock() > deadline:
            raise requests.Timeout(f"{resp.url} took longer than {timeout}s to download")
    return b"".join(chunks)


def fetch_image(url: str, config: AnalyzerConfig) -> ImageFetch:
    """Download an image within ``config.image_timeout`` seconds in total.

    Raises ``ImageFetchError`` on any non-2xx status, timeouts and any
    other transport failure.
    """
    start = time.perf_counter()
    try:
        with requests.get(
            url,
            headers={"User-Agent": config.static_user_agent},
            timeout=config.image_timeout,
            stream=True,
        ) as resp:
            if not is_success(resp.status_code):
                raise ImageFetchError(url, f"HTTP {resp.status_code}")
            content = read_body(resp, start, config.image_timeout)
            status = resp.status_code
            headers = CaseInsensitiveDict(resp.headers)
    except requests.Timeout as exc:
        raise ImageFetchError(url, f"timed out after {config.image_timeout}s") from exc
    except requests.RequestException as exc:
        raise ImageFetchError(url, str(exc)) from exc
    return ImageFetch(
        url=url,
        status=status,
        content=content,
        headers=headers,
        elapsed=time.perf_counter() - start,
    )
