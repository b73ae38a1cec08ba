"""Page collection strategies: headless rendering and static HTML parsing."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Playwright,
    Response,
    TimeoutError as PlaywrightTimeoutError,
)

from .config import AnalyzerConfig
from .errors import FetchError, RenderError
from .models import RawImageFacts, RawPageEvidence, ResponseFacts
from .network import is_success, read_body

logger = logging.getLogger("pixel_audit.collectors")

FRAMEWORK_MARKERS = ("__NEXT_DATA__", "/_next/", "data-nimg")
IMAGE_URL_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp|avif|svg)(\?.*)?$", re.IGNORECASE)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

FRAMEWORK_SITE_SCRIPT = """
() => (
  document.querySelector("[data-nimg]") !== null ||
  document.querySelector("script#__NEXT_DATA__") !== null ||
  document.querySelector('link[href*="/_next/"]') !== null
)
"""

IMAGE_FACTS_SCRIPT = """
() => Array.from(document.querySelectorAll("img")).map((img) => {
  const style = window.getComputedStyle(img);
  const rect = img.getBoundingClientRect();
  const attributes = {};
  for (const attr of Array.from(img.attributes)) {
    attributes[attr.name] = attr.value;
  }
  const parent = img.parentElement;
  const isNextImage = Boolean(
    img.hasAttribute("data-nimg") ||
    (img.srcset && img.srcset.includes("/_next/image")) ||
    (parent && parent.tagName === "SPAN" &&
      parent.style.boxSizing === "border-box" &&
      parent.style.display === "inline-block")
  );
  return {
    src: img.currentSrc || img.src || "",
    width: img.naturalWidth || img.width || 0,
    height: img.naturalHeight || img.height || 0,
    isVisible: style.display !== "none" && style.visibility !== "hidden" && style.opacity !== "0",
    isInViewport: rect.top < window.innerHeight && rect.bottom > 0,
    attributes,
    isNextImage,
    srcset: img.srcset || "",
  };
})
"""


def _positive(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class Collector(ABC):
    """Gathers raw page evidence for one URL."""

    rendered = False

    @abstractmethod
    async def collect(self, url: str) -> RawPageEvidence:
        ...


class RenderedCollector(Collector):
    """Render the page in headless Chromium and inspect the live DOM."""

    rendered = True

    def __init__(self, playwright: Playwright, config: AnalyzerConfig) -> None:
        self.playwright = playwright
        self.config = config

    async def _launch(self) -> Browser:
        try:
            if self.config.browser_endpoint:
                logger.info("Connecting to browser at %s", self.config.browser_endpoint)
                return await self.playwright.chromium.connect_over_cdp(
                    self.config.browser_endpoint
                )
            return await self.playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
        except PlaywrightError as exc:
            raise RenderError(f"Could not launch headless browser: {exc}") from exc

    @staticmethod
    def _record_response(responses: Dict[str, ResponseFacts], response: Response) -> None:
        headers = response.headers
        content_type = headers.get("content-type", "")
        url = response.url
        if not (content_type.startswith("image/") or IMAGE_URL_PATTERN.search(url)):
            return
        responses[url] = ResponseFacts(
            url=url,
            status=response.status,
            headers=MappingProxyType(dict(headers)),
            content_type=content_type,
            content_length=_positive(headers.get("content-length")) or 0,
        )

    async def collect(self, url: str) -> RawPageEvidence:
        browser = await self._launch()
        responses: Dict[str, ResponseFacts] = {}
        try:
            context = await browser.new_context(
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
                user_agent=self.config.user_agent,
                ignore_https_errors=True,
            )
            page = await context.new_page()
            page.on("response", lambda response: self._record_response(responses, response))
            page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)

            logger.info("Rendering %s", url)
            try:
                await page.goto(url, wait_until="networkidle")
            except PlaywrightTimeoutError as exc:
                raise RenderError(
                    f"Timed out loading {url} after {self.config.navigation_timeout:.0f}s"
                ) from exc
            if self.config.settle_delay:
                await page.wait_for_timeout(int(self.config.settle_delay * 1000))

            is_framework_site = bool(await page.evaluate(FRAMEWORK_SITE_SCRIPT))
            image_data: List[Dict[str, Any]] = await page.evaluate(IMAGE_FACTS_SCRIPT)
            final_url = page.url
        except PlaywrightError as exc:
            raise RenderError(f"Failed to render {url}: {exc}") from exc
        finally:
            try:
                await browser.close()
            except PlaywrightError as exc:
                logger.warning("Error while closing browser: %s", exc)
            logger.debug("Browser closed")

        images = [
            RawImageFacts(
                src=item.get("src") or "",
                attributes=dict(item.get("attributes") or {}),
                srcset=item.get("srcset") or "",
                natural_width=_positive(item.get("width")),
                natural_height=_positive(item.get("height")),
                is_visible=bool(item.get("isVisible", True)),
                is_in_viewport=bool(item.get("isInViewport", True)),
                is_framework_image=bool(item.get("isNextImage")),
            )
            for item in image_data
        ]
        logger.info(
            "Collected %d images and %d image responses from %s",
            len(images),
            len(responses),
            final_url,
        )
        return RawPageEvidence(
            page_url=url,
            final_url=final_url,
            is_likely_framework_site=is_framework_site,
            images=images,
            network_responses=MappingProxyType(responses),
        )


def _attribute_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(value)
    return str(value)


def parse_images(html: str) -> List[RawImageFacts]:
    """Extract ``<img>`` facts from raw markup without running scripts."""
    soup = BeautifulSoup(html, "html.parser")
    images: List[RawImageFacts] = []
    for img in soup.find_all("img"):
        attributes = {name: _attribute_value(value) for name, value in img.attrs.items()}
        parent = img.parent
        images.append(
            RawImageFacts(
                src=attributes.get("src", ""),
                attributes=attributes,
                srcset=attributes.get("srcset", ""),
                parent_tag=parent.name if parent is not None else None,
                parent_style=parent.get("style") if parent is not None else None,
            )
        )
    return images


def looks_like_framework_site(html: str) -> bool:
    return any(marker in html for marker in FRAMEWORK_MARKERS)


def _decode_html(body: bytes, encoding: Optional[str]) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class StaticCollector(Collector):
    """Fetch the raw HTML once and parse it."""

    def __init__(self, config: AnalyzerConfig) -> None:
        self.config = config

    def _fetch(self, url: str) -> Tuple[str, str]:
        start = time.perf_counter()
        try:
            with requests.get(
                url,
                headers={
                    "User-Agent": self.config.static_user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                },
                timeout=self.config.page_timeout,
                stream=True,
            ) as resp:
                if not is_success(resp.status_code):
                    raise FetchError(f"Failed to fetch {url}: {resp.status_code} {resp.reason}")
                body = read_body(resp, start, self.config.page_timeout)
                html = _decode_html(body, resp.encoding)
                final_url = resp.url or url
        except requests.Timeout as exc:
            raise FetchError(
                f"Timed out fetching {url} after {self.config.page_timeout:.0f}s"
            ) from exc
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}") from exc
        logger.info("Fetched %s in %.2fs", url, time.perf_counter() - start)
        return html, final_url

    def _collect_sync(self, url: str) -> RawPageEvidence:
        html, final_url = self._fetch(url)
        images = parse_images(html)
        logger.info("Found %d <img> elements in static markup", len(images))
        return RawPageEvidence(
            page_url=url,
            final_url=final_url,
            is_likely_framework_site=looks_like_framework_site(html),
            images=images,
        )

    async def collect(self, url: str) -> RawPageEvidence:
        return await asyncio.to_thread(self._collect_sync, url)


def rendering_available(playwright: Optional[Playwright], config: AnalyzerConfig) -> bool:
    """True when rendering is enabled and a browser can be reached."""
    if not config.render or playwright is None:
        return False
    if config.browser_endpoint:
        return True
    try:
        executable = playwright.chromium.executable_path
    except PlaywrightError:
        return False
    return bool(executable) and Path(executable).exists()


def choose_collector(playwright: Optional[Playwright], config: AnalyzerConfig) -> Collector:
    if rendering_available(playwright, config):
        return RenderedCollector(playwright, config)
    logger.info("Headless rendering unavailable; falling back to static HTML fetch")
    return StaticCollector(config)
