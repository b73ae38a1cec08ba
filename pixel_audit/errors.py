"""Exceptions raised by the analysis pipeline."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures that abort a whole analysis."""


class InvalidUrlError(AnalysisError):
    """The target is not an absolute http(s) URL."""


class FetchError(AnalysisError):
    """The page could not be fetched without rendering."""


class RenderError(AnalysisError):
    """The headless browser could not launch, navigate or inspect the page."""


class ImageError(Exception):
    """Per-image failure; the image is excluded from the result."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ImageFetchError(ImageError):
    pass


class DecodeError(ImageError):
    pass
