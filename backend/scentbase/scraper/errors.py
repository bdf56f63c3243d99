"""Typed failures raised by the scraping pipeline.

The fetcher and extractor raise these unchanged through the scraper; only the
queue manager looks at ``kind`` to decide between requeue, skip and stop.
"""
import enum


class FetchErrorKind(str, enum.Enum):
    NETWORK_FAILURE = "NETWORK_FAILURE"
    RATE_LIMITED = "RATE_LIMITED"


class ScraperError(Exception):
    """Base class for scrape failures."""

    kind: str = "SCRAPE_FAILED"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        kind = self.kind.value if isinstance(self.kind, enum.Enum) else self.kind
        return f"{kind}: {self.message}"


class FetchError(ScraperError):
    """Page could not be retrieved, or the source refused to serve it."""

    def __init__(self, kind: FetchErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    @property
    def rate_limited(self) -> bool:
        return self.kind == FetchErrorKind.RATE_LIMITED


class ScrapeValidationError(ScraperError):
    """Extraction produced a record that must not be stored."""

    kind = "INVALID_DATA"
