"""MCP server exposing the image analyzer as a tool."""

from __future__ import annotations

import json
import logging

from mcp.server.fastmcp import FastMCP

from .analyzer import analyze
from .config import AnalyzerConfig

logger = logging.getLogger("pixel_audit.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="pixel-audit")


@mcp.tool()
async def analyze_images(url: str, static: bool = False) -> str:
    """Analyze the images on a web page and return the result as JSON."""
    config = AnalyzerConfig.from_env()
    if static:
        config.render = False
    result = await analyze(url, config)
    return json.dumps(result.to_dict(), ensure_ascii=False)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
