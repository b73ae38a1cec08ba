"""Command-line entry point for the image analyzer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Sequence, TextIO

from .analyzer import analyze
from .config import AnalyzerConfig
from .errors import AnalysisError
from .models import AnalysisResult, ImageRecord
from .utils import format_bytes, truncate_url

logger = logging.getLogger("pixel_audit.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Analyze how a web page uses images and suggest optimizations.",
    )
    parser.add_argument("url", help="Absolute http(s) URL of the page to analyze")
    parser.add_argument(
        "--static",
        action="store_true",
        help="Skip headless rendering and parse the raw HTML only",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Navigation timeout in seconds when rendering (default: 20)",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=None,
        help="Seconds to wait after load for lazy images (default: 2)",
    )
    parser.add_argument(
        "--page-timeout",
        type=float,
        default=None,
        help="Timeout in seconds for the static HTML fetch (default: 10)",
    )
    parser.add_argument(
        "--image-timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each image download (default: 5)",
    )
    parser.add_argument(
        "--max-fetches",
        type=int,
        default=None,
        help="Maximum number of concurrent image downloads (default: unbounded)",
    )
    parser.add_argument(
        "--browser-endpoint",
        default=None,
        help="CDP endpoint of an already running Chromium instance",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AnalyzerConfig:
    config = AnalyzerConfig.from_env(
        navigation_timeout=args.timeout,
        settle_delay=args.wait,
        page_timeout=args.page_timeout,
        image_timeout=args.image_timeout,
        max_concurrent_fetches=args.max_fetches,
        browser_endpoint=args.browser_endpoint,
    )
    if args.static:
        config.render = False
    return config


def _describe_image(index: int, image: ImageRecord) -> List[str]:
    marker = " [LCP]" if image.is_lcp else ""
    dims = (
        f"{image.dimensions.width}×{image.dimensions.height}"
        if image.dimensions
        else "unknown size"
    )
    lines = [
        f"{index:>3}. {truncate_url(image.source_url, 70)}{marker}",
        f"     score {image.optimization_score}/100 | {image.format} | "
        f"{format_bytes(image.byte_size)} | {dims} | "
        f"{image.variants.transformation_count} variants",
    ]
    if image.cache_evidence is not None:
        cache = image.cache_evidence
        status = "HIT" if cache.cache_hit else "MISS"
        provider = f" via {cache.cache_provider}" if cache.cache_provider else ""
        lines.append(f"     cache {status}{provider}")
    if image.server_evidence is not None and image.server_evidence.provider:
        location = image.server_evidence.approx_location
        suffix = f" ({location})" if location else ""
        lines.append(f"     served by {image.server_evidence.provider}{suffix}")
    lines.extend(f"     - {advice}" for advice in image.recommendations)
    return lines


def render_text(result: AnalysisResult) -> str:
    mode = "rendered" if result.used_rendered_collection else "static HTML"
    lines = [
        f"Image analysis for {result.url} ({mode})",
        f"Images: {len(result.images)} | Total: {format_bytes(result.total_bytes)} | "
        f"Potential savings: {format_bytes(result.potential_savings_bytes)} "
        f"({result.potential_savings_percent:.1f}%)",
        f"Cached: {result.cached_images_percent:.0f}% | "
        f"Variants: {result.total_transformations} | "
        f"Next.js site: {'yes' if result.is_likely_framework_site else 'no'}",
        "",
    ]
    ordered = sorted(result.images, key=lambda image: image.optimization_score)
    for index, image in enumerate(ordered, start=1):
        lines.extend(_describe_image(index, image))
    return "\n".join(lines)


def write_result(result: AnalysisResult, as_json: bool, stream: TextIO) -> None:
    if as_json:
        json.dump(result.to_dict(), stream, indent=2, ensure_ascii=False)
        stream.write("\n")
    else:
        stream.write(render_text(result) + "\n")
    stream.flush()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    config = build_config(args)
    try:
        result = asyncio.run(analyze(args.url, config))
    except AnalysisError as exc:
        logger.error("Analysis failed: %s", exc)
        return 1
    write_result(result, args.json, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
